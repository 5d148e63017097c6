"""
Session State Machine

Single authoritative transition table for tutoring sessions:

    pending   -> confirmed | cancelled
    confirmed -> completed | cancelled | no_show

completed, cancelled and no_show are terminal. Nothing ever returns to
pending. Applying a transition is a compare-and-set on the stored status,
so a concurrent writer that got there first turns the request into an
InvalidTransition instead of a double update.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from scheduling_engine.services.errors import InvalidTransition, NotFound
from scheduling_engine.services.notifications import EventType, dispatch_notification

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


NON_TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.PENDING, SessionStatus.CONFIRMED}
)
TERMINAL_STATUSES: FrozenSet[SessionStatus] = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
)

ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.PENDING: frozenset({SessionStatus.CONFIRMED, SessionStatus.CANCELLED}),
    SessionStatus.CONFIRMED: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.NO_SHOW}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.CANCELLED: frozenset(),
    SessionStatus.NO_SHOW: frozenset(),
}

# Statuses that only the background sweep may record
SCHEDULER_ONLY_TARGETS: FrozenSet[SessionStatus] = frozenset({SessionStatus.NO_SHOW})


TRANSITION_EVENTS: Dict[SessionStatus, EventType] = {
    SessionStatus.CONFIRMED: EventType.SESSION_CONFIRMED,
    SessionStatus.COMPLETED: EventType.SESSION_COMPLETED,
    SessionStatus.CANCELLED: EventType.SESSION_CANCELLED,
    SessionStatus.NO_SHOW: EventType.SESSION_NO_SHOW,
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[SessionStatus(current)]


def validate_transition(current: SessionStatus, target: SessionStatus):
    """Raise InvalidTransition unless current -> target is a legal edge"""
    current, target = SessionStatus(current), SessionStatus(target)
    if not can_transition(current, target):
        raise InvalidTransition(
            f"Cannot change status from {current.value} to {target.value}",
            details={"from": current.value, "to": target.value},
        )


def no_show_reason(grace_minutes: int) -> str:
    return f"Not started within {grace_minutes} minutes of scheduled time"


def session_payload(session, **extra) -> Dict[str, Any]:
    """Notification payload describing a session"""
    payload = {
        "session_id": session.id,
        "title": session.title,
        "status": SessionStatus(session.status).value,
        "scheduled_date": session.scheduled_date.isoformat(),
        "start_time": session.start_time.strftime("%H:%M"),
        "end_time": session.end_time.strftime("%H:%M"),
    }
    payload.update(extra)
    return payload


class SessionStateMachine:
    """
    Validates and applies status transitions, then runs their side effects.

    On completion the tutor's completed-session counter is incremented and
    every bound student (primary and registered, each once) gets a completed
    session plus the per-session training point award. Cancellation and
    no-show change no statistics.
    """

    def __init__(self, sessions, profiles, notifier, clock, settings):
        self.sessions = sessions
        self.profiles = profiles
        self.notifier = notifier
        self.clock = clock
        self.settings = settings

    async def transition(
        self,
        session,
        target: SessionStatus,
        *,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
        automatic: bool = False,
        notify: bool = True,
        extra_changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Move a session to `target`.

        Args:
            session: SessionRecord as last read by the caller
            target: Requested status
            actor_id: User performing the action (None for the sweep)
            reason: Cancellation reason
            automatic: True when no human requested the change
            notify: Emit the transition's notification event
            extra_changes: Additional fields written in the same update

        Returns:
            The updated SessionRecord

        Raises:
            InvalidTransition: Illegal edge, or the stored status moved on
            NotFound: The session disappeared
        """
        target = SessionStatus(target)
        validate_transition(session.status, target)
        if target in SCHEDULER_ONLY_TARGETS and not automatic:
            raise InvalidTransition(
                f"Status {target.value} can only be recorded by the scheduler",
                details={"from": SessionStatus(session.status).value, "to": target.value},
            )

        changes = self._changes_for(target, actor_id, reason, automatic)
        changes.update(extra_changes or {})
        if target == SessionStatus.NO_SHOW and not reason:
            reason = no_show_reason(self.settings.no_show_grace_minutes)

        expected = SessionStatus(session.status)
        if target == SessionStatus.COMPLETED:
            updated = await self.sessions.complete_with_credit(
                session.id, expected, self._completion_credit(session, automatic), **changes
            )
        else:
            updated = await self.sessions.compare_and_set(
                session.id, expected, status=target, **changes
            )
        if updated is None:
            current = await self.sessions.get_session(session.id)
            if current is None:
                raise NotFound(f"Session {session.id} not found")
            raise InvalidTransition(
                f"Session {session.id} is {SessionStatus(current.status).value}, "
                f"cannot change to {target.value}",
                details={"from": SessionStatus(current.status).value, "to": target.value},
            )

        logger.info(
            f"Session {updated.id}: {expected.value} -> {target.value}"
            f"{' (automatic)' if automatic else ''}{f': {reason}' if reason else ''}"
        )

        if notify:
            # The write is saved; a cancelled caller must not drop the notifications
            await asyncio.shield(
                self._notify_transition(updated, target, actor_id, automatic, reason)
            )

        return updated

    def _changes_for(self, target, actor_id, reason, automatic) -> Dict[str, Any]:
        now = self.clock.now()
        if target == SessionStatus.COMPLETED:
            return {"completed_at": now, "auto_completed": automatic}
        if target == SessionStatus.CANCELLED:
            return {"cancelled_by": actor_id, "cancellation_reason": reason, "cancelled_at": now}
        if target == SessionStatus.NO_SHOW:
            return {"auto_completed": True}
        return {}

    def _completion_credit(self, session, automatic: bool):
        from scheduling_engine.schemas import CompletionCredit

        prefix = "Auto-completed session" if automatic else "Completed session"
        return CompletionCredit(
            points=self.settings.training_points_per_session,
            reason=f"{prefix}: {session.title}",
            awarded_at=self.clock.now(),
        )

    async def _notify_transition(self, session, target, actor_id, automatic, reason):
        if target == SessionStatus.NO_SHOW:
            recipients = [session.tutor_id] + session.bound_student_ids
        elif target == SessionStatus.COMPLETED and automatic:
            recipients = [session.tutor_id]
        else:
            recipients = [
                party for party in [session.tutor_id] + session.bound_student_ids
                if party != actor_id
            ]

        extra = {"automatic": automatic}
        if reason:
            extra["reason"] = reason
        payload = session_payload(session, **extra)
        for user_id in recipients:
            await dispatch_notification(self.notifier, user_id, TRANSITION_EVENTS[target], payload)
