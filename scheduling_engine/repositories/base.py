"""
Repository Interfaces

The scheduling core reads and writes sessions and profile counters only
through these ports. Implementations must make register_student,
compare_and_set and complete_with_credit atomic at the storage layer.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from enum import Enum
from typing import Iterable, List, Optional

from scheduling_engine.services.state_machine import SessionStatus

# Fields compare_and_set is allowed to write
MUTABLE_SESSION_FIELDS = frozenset({
    "status",
    "student_id",
    "auto_completed",
    "completed_at",
    "cancelled_by",
    "cancellation_reason",
    "cancelled_at",
    "scheduled_date",
    "start_time",
    "end_time",
    "duration_minutes",
})


class PartyRole(str, Enum):
    TUTOR = "tutor"
    STUDENT = "student"


def check_mutable_fields(changes: dict):
    unknown = set(changes) - MUTABLE_SESSION_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated through compare_and_set: {sorted(unknown)}")


class SessionRepository(ABC):

    @abstractmethod
    async def create_session(self, record) -> "SessionRecord":
        ...

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional["SessionRecord"]:
        ...

    @abstractmethod
    async def find_party_sessions(
        self,
        role: PartyRole,
        party_id: str,
        on_date: date,
        statuses: Iterable[SessionStatus],
    ) -> List["SessionRecord"]:
        """
        Sessions on `on_date` in one of `statuses` that involve the party.

        For students this covers both the primary student slot and
        membership of the registered-students list.
        """

    @abstractmethod
    async def register_student(
        self, session_id: str, student_id: str, registered_at: datetime
    ) -> Optional["SessionRecord"]:
        """
        Append a registration only if, at write time, the session is open and
        non-terminal, the student is not registered yet, and a seat is free.

        Returns:
            The updated session, or None when the guarded write was rejected
        """

    @abstractmethod
    async def compare_and_set(
        self, session_id: str, expected_status: SessionStatus, **changes
    ) -> Optional["SessionRecord"]:
        """
        Apply `changes` only if the stored status still equals
        `expected_status`.

        Returns:
            The updated session, or None when the status had moved on
        """

    @abstractmethod
    async def complete_with_credit(
        self, session_id: str, expected_status: SessionStatus, credit, **changes
    ) -> Optional["SessionRecord"]:
        """
        Mark the session completed and apply `credit` as one unit of work:
        the status compare-and-set, the tutor's completed-session counter and
        one training-point award per student either all persist or none do.

        Returns:
            The updated session, or None when the status had moved on

        Raises:
            NotFound: A credited profile is missing; nothing was written
        """

    @abstractmethod
    async def list_by_status(
        self, status: SessionStatus, scheduled_on_or_before: date
    ) -> List["SessionRecord"]:
        ...

    @abstractmethod
    async def list_open_sessions(self, from_date: date) -> List["SessionRecord"]:
        """Open, non-terminal sessions from `from_date` on with a free seat"""


class ProfileRepository(ABC):

    @abstractmethod
    async def get_tutor(self, tutor_id: str) -> Optional["TutorProfileRecord"]:
        ...

    @abstractmethod
    async def get_student(self, student_id: str) -> Optional["StudentProfileRecord"]:
        ...

    @abstractmethod
    async def list_tutors(self) -> List["TutorProfileRecord"]:
        ...
