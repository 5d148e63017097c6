"""
Service Wiring

Builds the SessionService for the configured storage backend. The API,
the background scheduler and the CLI all share one instance per process.
"""
import logging
from typing import Optional

from scheduling_engine.config import EngineSettings, get_settings
from scheduling_engine.database import init_engine
from scheduling_engine.repositories import (
    InMemoryProfileRepository,
    InMemorySessionRepository,
    SqlProfileRepository,
    SqlSessionRepository,
)
from scheduling_engine.services.clock import Clock
from scheduling_engine.services.notifications import DatabaseNotificationSink, LoggingNotificationSink
from scheduling_engine.services.session_service import SessionService

logger = logging.getLogger(__name__)

_service: Optional[SessionService] = None


def build_session_service(settings: EngineSettings, clock: Optional[Clock] = None) -> SessionService:
    clock = clock or Clock(settings.canonical_timezone)

    if settings.repository_backend == "memory":
        logger.info("Using in-memory session store")
        profiles = InMemoryProfileRepository()
        return SessionService(
            InMemorySessionRepository(profiles),
            profiles,
            LoggingNotificationSink(),
            clock,
            settings,
        )

    session_factory = init_engine(settings.database_url)
    return SessionService(
        SqlSessionRepository(session_factory),
        SqlProfileRepository(session_factory),
        DatabaseNotificationSink(session_factory),
        clock,
        settings,
    )


def get_session_service() -> SessionService:
    """Get or create the process-wide SessionService"""
    global _service
    if _service is None:
        _service = build_session_service(get_settings())
    return _service


def set_session_service(service: Optional[SessionService]):
    """Replace the process-wide service (tests, embedding)"""
    global _service
    _service = service
