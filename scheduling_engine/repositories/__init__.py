"""Storage ports and their SQL / in-memory implementations"""
from scheduling_engine.repositories.base import PartyRole, ProfileRepository, SessionRepository
from scheduling_engine.repositories.memory import InMemoryProfileRepository, InMemorySessionRepository
from scheduling_engine.repositories.sql import SqlProfileRepository, SqlSessionRepository

__all__ = [
    "PartyRole",
    "SessionRepository",
    "ProfileRepository",
    "InMemorySessionRepository",
    "InMemoryProfileRepository",
    "SqlSessionRepository",
    "SqlProfileRepository",
]
