"""
In-Memory Repositories

Process-local store with the same atomic guarantees as the SQL store: every
guarded write runs under one asyncio.Lock, and callers only ever receive
deep copies. Backs REPOSITORY_BACKEND=memory and the test-suite.
"""
import asyncio
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from scheduling_engine.repositories.base import (
    PartyRole,
    ProfileRepository,
    SessionRepository,
    check_mutable_fields,
)
from scheduling_engine.schemas import (
    CompletionCredit,
    Registration,
    SessionRecord,
    StudentProfileRecord,
    TrainingPointAward,
    TutorProfileRecord,
)
from scheduling_engine.services.errors import NotFound
from scheduling_engine.services.state_machine import NON_TERMINAL_STATUSES, SessionStatus


def _sort_key(session: SessionRecord):
    return (session.scheduled_date, session.start_time, session.id)


class InMemorySessionRepository(SessionRepository):
    """
    Session store paired with the profile store that completion credits.
    Lock order is always sessions, then profiles.
    """

    def __init__(self, profiles: "InMemoryProfileRepository"):
        self._sessions: Dict[str, SessionRecord] = {}
        self._profiles = profiles
        self._lock = asyncio.Lock()

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        async with self._lock:
            if record.id in self._sessions:
                raise ValueError(f"Session {record.id} already exists")
            self._sessions[record.id] = record.model_copy(deep=True)
            return record.model_copy(deep=True)

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        async with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    async def find_party_sessions(
        self,
        role: PartyRole,
        party_id: str,
        on_date: date,
        statuses: Iterable[SessionStatus],
    ) -> List[SessionRecord]:
        wanted = {SessionStatus(s) for s in statuses}
        async with self._lock:
            matches = []
            for session in self._sessions.values():
                if session.scheduled_date != on_date or session.status not in wanted:
                    continue
                if role == PartyRole.TUTOR:
                    involved = session.tutor_id == party_id
                else:
                    involved = session.student_id == party_id or session.is_registered(party_id)
                if involved:
                    matches.append(session.model_copy(deep=True))
            return sorted(matches, key=_sort_key)

    async def register_student(
        self, session_id: str, student_id: str, registered_at: datetime
    ) -> Optional[SessionRecord]:
        async with self._lock:
            session = self._sessions.get(session_id)
            if (
                session is None
                or not session.is_open
                or session.status not in NON_TERMINAL_STATUSES
                or session.is_registered(student_id)
                or len(session.registered_students) >= session.max_participants
            ):
                return None
            session.registered_students.append(
                Registration(student_id=student_id, registered_at=registered_at)
            )
            return session.model_copy(deep=True)

    async def compare_and_set(
        self, session_id: str, expected_status: SessionStatus, **changes
    ) -> Optional[SessionRecord]:
        check_mutable_fields(changes)
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.status != SessionStatus(expected_status):
                return None
            return self._apply(session, changes)

    async def complete_with_credit(
        self, session_id: str, expected_status: SessionStatus, credit: CompletionCredit, **changes
    ) -> Optional[SessionRecord]:
        check_mutable_fields(changes)
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.status != SessionStatus(expected_status):
                return None
            # Raises before touching anything if a profile is missing
            await self._profiles.apply_credit(session, credit)
            return self._apply(session, dict(changes, status=SessionStatus.COMPLETED))

    def _apply(self, session: SessionRecord, changes: dict) -> SessionRecord:
        updated = session.model_copy(update=changes, deep=True)
        # model_copy skips validation; keep the enum type for status
        updated.status = SessionStatus(updated.status)
        self._sessions[session.id] = updated
        return updated.model_copy(deep=True)

    async def list_by_status(
        self, status: SessionStatus, scheduled_on_or_before: date
    ) -> List[SessionRecord]:
        status = SessionStatus(status)
        async with self._lock:
            return sorted(
                (
                    s.model_copy(deep=True)
                    for s in self._sessions.values()
                    if s.status == status and s.scheduled_date <= scheduled_on_or_before
                ),
                key=_sort_key,
            )

    async def list_open_sessions(self, from_date: date) -> List[SessionRecord]:
        async with self._lock:
            return sorted(
                (
                    s.model_copy(deep=True)
                    for s in self._sessions.values()
                    if s.is_open
                    and s.status in NON_TERMINAL_STATUSES
                    and s.scheduled_date >= from_date
                    and s.seats_left > 0
                ),
                key=_sort_key,
            )


class InMemoryProfileRepository(ProfileRepository):

    def __init__(self):
        self._tutors: Dict[str, TutorProfileRecord] = {}
        self._students: Dict[str, StudentProfileRecord] = {}
        self._lock = asyncio.Lock()

    def add_tutor(self, tutor: TutorProfileRecord):
        self._tutors[tutor.id] = tutor.model_copy(deep=True)

    def add_student(self, student: StudentProfileRecord):
        self._students[student.id] = student.model_copy(deep=True)

    async def get_tutor(self, tutor_id: str) -> Optional[TutorProfileRecord]:
        async with self._lock:
            tutor = self._tutors.get(tutor_id)
            return tutor.model_copy(deep=True) if tutor else None

    async def get_student(self, student_id: str) -> Optional[StudentProfileRecord]:
        async with self._lock:
            student = self._students.get(student_id)
            return student.model_copy(deep=True) if student else None

    async def list_tutors(self) -> List[TutorProfileRecord]:
        async with self._lock:
            return [self._tutors[k].model_copy(deep=True) for k in sorted(self._tutors)]

    async def apply_credit(self, session: SessionRecord, credit: CompletionCredit):
        """
        Credit the tutor and every student of a completed session, all or
        nothing: every profile is looked up before any counter moves.
        """
        async with self._lock:
            tutor = self._tutors.get(session.tutor_id)
            if tutor is None:
                raise NotFound(f"Tutor profile {session.tutor_id} not found")
            students = []
            for student_id in session.bound_student_ids:
                student = self._students.get(student_id)
                if student is None:
                    raise NotFound(f"Student profile {student_id} not found")
                students.append(student)

            tutor.completed_sessions += 1
            for student in students:
                student.completed_sessions += 1
                student.training_points += credit.points
                student.training_history.append(
                    TrainingPointAward(
                        points=credit.points,
                        reason=credit.reason,
                        session_id=session.id,
                        awarded_at=credit.awarded_at,
                    )
                )
