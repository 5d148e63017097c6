"""SQLAlchemy ORM Models for the scheduling engine schema"""
from scheduling_engine.models.tutor import TutorProfile
from scheduling_engine.models.student import StudentProfile, TrainingPointEntry
from scheduling_engine.models.session import TutoringSession, SessionRegistration
from scheduling_engine.models.notification import Notification

__all__ = [
    "TutorProfile",
    "StudentProfile",
    "TrainingPointEntry",
    "TutoringSession",
    "SessionRegistration",
    "Notification",
]
