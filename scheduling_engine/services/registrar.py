"""
Capacity-Safe Registration

Admits students into open sessions. The capacity and duplicate checks are
part of one guarded write in the repository, so any number of concurrent
registrants for the last seat yields exactly one success.

The conflict check for the registering student runs before that write and is
not part of it: a student racing themselves into two overlapping sessions at
the same instant can win both. No per-student lock is taken.
"""
import logging

from scheduling_engine.repositories.base import PartyRole
from scheduling_engine.services.errors import AlreadyRegistered, Full, InvalidTransition, NotFound, NotOpen
from scheduling_engine.services.notifications import EventType, dispatch_notification
from scheduling_engine.services.state_machine import SessionStatus, session_payload

logger = logging.getLogger(__name__)


class CapacityRegistrar:

    def __init__(self, sessions, conflict_checker, state_machine, notifier, clock):
        self.sessions = sessions
        self.conflict_checker = conflict_checker
        self.state_machine = state_machine
        self.notifier = notifier
        self.clock = clock

    async def register(self, session_id: str, student_id: str):
        """
        Register a student for an open session.

        Returns:
            Updated SessionRecord

        Raises:
            NotFound, NotOpen, AlreadyRegistered, Full, ScheduleConflict
        """
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        if not session.is_open or session.status.is_terminal:
            raise NotOpen(f"Session {session_id} is not open for registration")

        await self.conflict_checker.ensure_free(
            PartyRole.STUDENT, student_id, session.window, exclude_session_id=session_id
        )

        updated = await self.sessions.register_student(session_id, student_id, self.clock.now())
        if updated is None:
            raise await self._rejection_reason(session_id, student_id)

        logger.info(
            f"Student {student_id} registered for session {session_id} "
            f"({len(updated.registered_students)}/{updated.max_participants})"
        )

        updated = await self._confirm_if_full(updated, student_id)

        await dispatch_notification(
            self.notifier,
            updated.tutor_id,
            EventType.SESSION_REGISTRATION,
            session_payload(updated, student_id=student_id),
        )
        return updated

    async def _rejection_reason(self, session_id: str, student_id: str):
        """Re-read the session to explain why the guarded write was refused"""
        current = await self.sessions.get_session(session_id)
        if current is None:
            return NotFound(f"Session {session_id} not found")
        if not current.is_open or current.status.is_terminal:
            return NotOpen(f"Session {session_id} is not open for registration")
        if current.is_registered(student_id):
            return AlreadyRegistered(f"Student {student_id} is already registered for this session")
        return Full(
            f"Session {session_id} is full",
            details={"max_participants": current.max_participants},
        )

    async def _confirm_if_full(self, session, student_id: str):
        """
        A session whose last seat was just taken becomes a firm booking:
        pending -> confirmed, and a single-seat session also gets its primary
        student.
        """
        if session.seats_left > 0:
            return session

        extra = {}
        if session.max_participants == 1 and session.student_id is None:
            extra["student_id"] = student_id

        if session.status == SessionStatus.PENDING:
            try:
                return await self.state_machine.transition(
                    session,
                    SessionStatus.CONFIRMED,
                    actor_id=student_id,
                    automatic=True,
                    notify=False,
                    extra_changes=extra,
                )
            except InvalidTransition:
                # Confirmed or cancelled concurrently; the seat is still ours
                session = await self.sessions.get_session(session.id)

        if extra and session.status == SessionStatus.CONFIRMED:
            updated = await self.sessions.compare_and_set(session.id, session.status, **extra)
            return updated or session
        return session
