"""
Notification Side Channel

The scheduling core only tells the outside world "notify user X of event Y".
Delivery is fire-and-forget: a failing sink is logged and never rolls back
the state change that triggered it.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict

from scheduling_engine.models.notification import Notification

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    SESSION_REGISTRATION = "session_registration"
    SESSION_CONFIRMED = "session_confirmed"
    SESSION_COMPLETED = "session_completed"
    SESSION_NO_SHOW = "session_no_show"
    SESSION_CANCELLED = "session_cancelled"
    SESSION_RESCHEDULED = "session_rescheduled"
    NEW_SESSION = "new_session"


class NotificationSink(ABC):
    """Outbound port to the notification component"""

    @abstractmethod
    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]):
        ...


class LoggingNotificationSink(NotificationSink):
    """Sink for the in-memory backend: events only reach the log"""

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]):
        logger.info(f"Notify {user_id}: {event_type} {payload.get('session_id', '')}")


class DatabaseNotificationSink(NotificationSink):
    """Queues events in the notifications table for the delivery worker"""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]):
        async with self._session_factory() as db:
            db.add(Notification(user_id=user_id, event_type=event_type, payload=payload))
            await db.commit()


async def dispatch_notification(
    sink: NotificationSink,
    user_id: str,
    event_type: EventType,
    payload: Dict[str, Any],
) -> bool:
    """
    Send one event, swallowing sink failures.

    Returns:
        True if the sink accepted the event
    """
    if not user_id:
        return False
    try:
        await sink.notify(user_id, EventType(event_type).value, payload)
        return True
    except Exception as e:
        logger.error(f"Failed to notify {user_id} of {event_type}: {e}", exc_info=True)
        return False
