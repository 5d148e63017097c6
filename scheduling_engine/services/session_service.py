"""
Session Scheduling Service

Caller-facing operations of the scheduling core: opening, registering,
confirming, completing, cancelling and rescheduling sessions, tutor matching,
and manual sweeps. Wires the conflict checker, capacity registrar, state
machine and auto-completion sweep around one pair of repositories.
"""
import logging
from datetime import date
from typing import List, Optional, Sequence

from scheduling_engine.repositories.base import PartyRole
from scheduling_engine.schemas import MatchResult, SessionRecord, SweepSummary
from scheduling_engine.services import match_scorer
from scheduling_engine.services.authorization import (
    Actor,
    Role,
    require_role,
    require_session_access,
    require_staff,
)
from scheduling_engine.services.auto_completion import AutoCompletionScheduler
from scheduling_engine.services.conflict_checker import ConflictChecker
from scheduling_engine.services.errors import InvalidSchedule, InvalidTransition, NotFound, Unauthorized
from scheduling_engine.services.notifications import EventType, dispatch_notification
from scheduling_engine.services.registrar import CapacityRegistrar
from scheduling_engine.services.state_machine import SessionStateMachine, SessionStatus, session_payload
from scheduling_engine.services.time_window import TimeLike, TimeWindow

logger = logging.getLogger(__name__)


class SessionService:

    def __init__(self, sessions, profiles, notifier, clock, settings):
        self.sessions = sessions
        self.profiles = profiles
        self.notifier = notifier
        self.clock = clock
        self.settings = settings

        self.conflict_checker = ConflictChecker(sessions)
        self.state_machine = SessionStateMachine(sessions, profiles, notifier, clock, settings)
        self.registrar = CapacityRegistrar(
            sessions, self.conflict_checker, self.state_machine, notifier, clock
        )
        self.sweeper = AutoCompletionScheduler(sessions, self.state_machine, clock, settings)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _load(self, session_id: str) -> SessionRecord:
        session = await self.sessions.get_session(session_id)
        if session is None:
            raise NotFound(f"Session {session_id} not found")
        return session

    async def get_session(self, actor: Actor, session_id: str) -> SessionRecord:
        session = await self._load(session_id)
        if not (actor.is_staff or session.is_open or session.involves(actor.user_id)):
            raise Unauthorized("Not authorized to view this session")
        return session

    async def list_open_sessions(self, from_date: Optional[date] = None) -> List[SessionRecord]:
        """Open sessions with free seats, today onwards by default"""
        return await self.sessions.list_open_sessions(from_date or self.clock.today())

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def _validated_window(
        self, scheduled_date: date, start_time: TimeLike, end_time: TimeLike
    ) -> TimeWindow:
        window = TimeWindow.parse(scheduled_date, start_time, end_time)
        if window.day < self.clock.today():
            raise InvalidSchedule("Cannot schedule a session in the past")
        return window

    async def open_session(
        self,
        actor: Actor,
        *,
        title: str,
        scheduled_date: date,
        start_time: TimeLike,
        end_time: TimeLike,
        subject: Optional[str] = None,
        max_participants: int = 1,
        is_open: Optional[bool] = None,
        student_id: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ) -> SessionRecord:
        """
        Create a pending session owned by the calling tutor.

        Without a student the session is open for registration; with a
        student it is a direct booking for that student. Asking for both
        is rejected, since the booked student would hold no seat.

        Raises:
            Unauthorized, NotFound, InvalidSchedule, ScheduleConflict
        """
        require_role(actor, Role.TUTOR)

        if not title or not title.strip():
            raise InvalidSchedule("Title is required")
        window = self._validated_window(scheduled_date, start_time, end_time)
        if duration_minutes is not None and duration_minutes != window.duration_minutes:
            raise InvalidSchedule(
                f"Duration {duration_minutes} does not match the {window.duration_minutes} "
                f"minute window"
            )
        if max_participants < 1:
            raise InvalidSchedule("max_participants must be at least 1")
        if is_open and student_id:
            raise InvalidSchedule(
                "An open session cannot also be booked for a student",
                details={"student_id": student_id},
            )

        if await self.profiles.get_tutor(actor.user_id) is None:
            raise NotFound("Tutor profile not found")
        if student_id and await self.profiles.get_student(student_id) is None:
            raise NotFound(f"Student profile {student_id} not found")

        await self.conflict_checker.ensure_free(PartyRole.TUTOR, actor.user_id, window)
        if student_id:
            await self.conflict_checker.ensure_free(PartyRole.STUDENT, student_id, window)

        record = SessionRecord(
            tutor_id=actor.user_id,
            student_id=student_id,
            title=title.strip(),
            subject=subject,
            is_open=bool(is_open) or student_id is None,
            max_participants=max_participants,
            scheduled_date=window.day,
            start_time=window.start,
            end_time=window.end,
            duration_minutes=window.duration_minutes,
        )
        session = await self.sessions.create_session(record)
        logger.info(
            f"Tutor {actor.user_id} opened session {session.id} at {window} "
            f"(open={session.is_open}, seats={session.max_participants})"
        )

        if student_id:
            await dispatch_notification(
                self.notifier, student_id, EventType.NEW_SESSION, session_payload(session)
            )
        return session

    async def register_for_session(self, actor: Actor, session_id: str) -> SessionRecord:
        require_role(actor, Role.STUDENT)
        if await self.profiles.get_student(actor.user_id) is None:
            raise NotFound("Student profile not found")
        return await self.registrar.register(session_id, actor.user_id)

    async def reschedule_session(
        self,
        actor: Actor,
        session_id: str,
        *,
        scheduled_date: date,
        start_time: TimeLike,
        end_time: TimeLike,
    ) -> SessionRecord:
        """
        Move a live session to a new window, re-checking every party's
        calendar against the new window (ignoring the session itself).
        """
        session = await self._load(session_id)
        require_session_access(actor, session, tutor=True, student=True)
        if session.status.is_terminal:
            raise InvalidTransition(
                f"Cannot reschedule a {session.status.value} session",
                details={"from": session.status.value},
            )

        window = self._validated_window(scheduled_date, start_time, end_time)
        await self.conflict_checker.ensure_free(
            PartyRole.TUTOR, session.tutor_id, window, exclude_session_id=session.id
        )
        for student_id in session.bound_student_ids:
            await self.conflict_checker.ensure_free(
                PartyRole.STUDENT, student_id, window, exclude_session_id=session.id
            )

        updated = await self.sessions.compare_and_set(
            session.id,
            session.status,
            scheduled_date=window.day,
            start_time=window.start,
            end_time=window.end,
            duration_minutes=window.duration_minutes,
        )
        if updated is None:
            current = await self._load(session_id)
            raise InvalidTransition(
                f"Session {session_id} changed to {current.status.value} while rescheduling",
                details={"from": current.status.value},
            )

        logger.info(f"Session {session_id} rescheduled from {session.window} to {window}")
        payload = session_payload(updated, previous_window=str(session.window))
        for party in [updated.tutor_id] + updated.bound_student_ids:
            if party != actor.user_id:
                await dispatch_notification(
                    self.notifier, party, EventType.SESSION_RESCHEDULED, payload
                )
        return updated

    # ------------------------------------------------------------------
    # Status actions
    # ------------------------------------------------------------------

    async def confirm_session(self, actor: Actor, session_id: str) -> SessionRecord:
        session = await self._load(session_id)
        require_session_access(actor, session, tutor=True, student=True)
        return await self.state_machine.transition(
            session, SessionStatus.CONFIRMED, actor_id=actor.user_id
        )

    async def complete_session(self, actor: Actor, session_id: str) -> SessionRecord:
        session = await self._load(session_id)
        require_session_access(actor, session, tutor=True)
        return await self.state_machine.transition(
            session, SessionStatus.COMPLETED, actor_id=actor.user_id
        )

    async def cancel_session(
        self, actor: Actor, session_id: str, reason: Optional[str] = None
    ) -> SessionRecord:
        session = await self._load(session_id)
        require_session_access(actor, session, tutor=True, student=True, registrant=True)
        return await self.state_machine.transition(
            session, SessionStatus.CANCELLED, actor_id=actor.user_id, reason=reason
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def compute_match_score(
        self, student_id: str, tutor_id: str, requested_subjects: Sequence[str] = ()
    ) -> MatchResult:
        tutor = await self.profiles.get_tutor(tutor_id)
        if tutor is None:
            raise NotFound(f"Tutor profile {tutor_id} not found")
        student = await self.profiles.get_student(student_id)
        return match_scorer.score(student, tutor, requested_subjects)

    async def suggest_tutors(
        self,
        student_id: str,
        limit: int = 10,
        subjects: Optional[Sequence[str]] = None,
    ) -> List[tuple]:
        """Best-matching tutors for a student, using their learning needs by default"""
        student = await self.profiles.get_student(student_id)
        if subjects is None:
            subjects = student.learning_needs if student else []
        tutors = await self.profiles.list_tutors()
        return match_scorer.rank_tutors(student, tutors, subjects, limit)

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def run_sweep_once(self, actor: Optional[Actor] = None) -> SweepSummary:
        """Manual sweep trigger; actor is None for system callers"""
        if actor is not None:
            require_staff(actor)
        return await self.sweeper.run_sweep_once()
