"""
Scheduling Error Taxonomy

Every failure the scheduling core reports to its callers. All of them are
recoverable; the API layer decides how each kind maps to an HTTP status.
"""
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for caller-recoverable scheduling failures"""

    code = "SCHEDULING_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFound(SchedulingError):
    code = "NOT_FOUND"


class InvalidTransition(SchedulingError):
    code = "INVALID_TRANSITION"


class ScheduleConflict(SchedulingError):
    code = "SCHEDULE_CONFLICT"


class NotOpen(SchedulingError):
    code = "NOT_OPEN"


class AlreadyRegistered(SchedulingError):
    code = "ALREADY_REGISTERED"


class Full(SchedulingError):
    code = "FULL"


class Unauthorized(SchedulingError):
    code = "UNAUTHORIZED"


class InvalidSchedule(SchedulingError):
    """Malformed window, past date or impossible capacity"""

    code = "INVALID_SCHEDULE"
