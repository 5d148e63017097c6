"""
Schedule Conflict Detection

A party (tutor or student) may not hold two live sessions whose windows
overlap on the same day. Only pending and confirmed sessions count; a session
that is being edited is excluded from its own check.
"""
import logging
from typing import List, Optional

from scheduling_engine.repositories.base import PartyRole
from scheduling_engine.services.errors import ScheduleConflict
from scheduling_engine.services.state_machine import NON_TERMINAL_STATUSES
from scheduling_engine.services.time_window import TimeWindow

logger = logging.getLogger(__name__)


class ConflictChecker:

    def __init__(self, sessions):
        self.sessions = sessions

    async def find_conflicts(
        self,
        role: PartyRole,
        party_id: str,
        window: TimeWindow,
        exclude_session_id: Optional[str] = None,
    ) -> List:
        candidates = await self.sessions.find_party_sessions(
            role, party_id, window.day, NON_TERMINAL_STATUSES
        )
        return [
            s for s in candidates
            if s.id != exclude_session_id and s.window.overlaps(window)
        ]

    async def has_conflict(
        self,
        role: PartyRole,
        party_id: str,
        window: TimeWindow,
        exclude_session_id: Optional[str] = None,
    ) -> bool:
        return bool(await self.find_conflicts(role, party_id, window, exclude_session_id))

    async def ensure_free(
        self,
        role: PartyRole,
        party_id: str,
        window: TimeWindow,
        exclude_session_id: Optional[str] = None,
    ):
        """Raise ScheduleConflict if the party is already booked during `window`"""
        conflicts = await self.find_conflicts(role, party_id, window, exclude_session_id)
        if conflicts:
            logger.info(f"Schedule conflict for {role.value} {party_id} at {window}")
            raise ScheduleConflict(
                f"The {role.value} already has another session scheduled at this time",
                details={
                    "party_id": party_id,
                    "window": str(window),
                    "conflicting_session_ids": [s.id for s in conflicts],
                },
            )
