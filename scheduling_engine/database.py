"""Database connection and session management using SQLAlchemy async ORM"""
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base

from scheduling_engine.config import get_settings

# Base class for declarative models
Base = declarative_base()

engine: AsyncEngine = None
AsyncSessionLocal: async_sessionmaker = None


def init_engine(database_url: str = None) -> async_sessionmaker:
    """
    Create the async engine and session factory.

    pool_size=20 / max_overflow=30 keeps up to 50 connections for bursts of
    concurrent registrations; pool_recycle avoids stale connections.
    """
    global engine, AsyncSessionLocal
    url = database_url or get_settings().database_url
    engine = create_async_engine(
        url,
        echo=False,  # Set to True for SQL query logging during development
        pool_size=20,
        max_overflow=30,
        pool_recycle=3600,
        pool_pre_ping=True,  # Verify connection health before using
    )
    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return AsyncSessionLocal


async def dispose_engine():
    """Close all pooled connections"""
    global engine, AsyncSessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None
