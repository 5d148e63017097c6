"""Caller identity and role checks for scheduling actions"""
from dataclasses import dataclass
from enum import Enum

from scheduling_engine.services.errors import Unauthorized


class Role(str, Enum):
    STUDENT = "student"
    TUTOR = "tutor"
    COORDINATOR = "coordinator"
    DEPARTMENT_HEAD = "department_head"
    ADMIN = "admin"


# Roles allowed to act on any session
STAFF_ROLES = frozenset({Role.ADMIN, Role.COORDINATOR})


@dataclass(frozen=True)
class Actor:
    user_id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def require_role(actor: Actor, *roles: Role):
    if actor.role not in roles:
        allowed = ", ".join(r.value for r in roles)
        raise Unauthorized(f"Only {allowed} users can perform this action")


def require_staff(actor: Actor):
    if not actor.is_staff:
        raise Unauthorized("Only administrators or coordinators can perform this action")


def require_session_access(actor: Actor, session, *, tutor=False, student=False, registrant=False):
    """
    Allow staff, plus whichever session parties are switched on.

    Args:
        tutor: the owning tutor may act
        student: the primary student may act
        registrant: any registered student may act
    """
    if actor.is_staff:
        return
    if tutor and actor.user_id == session.tutor_id:
        return
    if student and session.student_id and actor.user_id == session.student_id:
        return
    if registrant and session.is_registered(actor.user_id):
        return
    raise Unauthorized("Not authorized to perform this action on the session")
