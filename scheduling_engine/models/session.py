"""Session models - Tutoring sessions and open-session registrations"""
from sqlalchemy import (
    Column, String, Integer, Boolean, Date, Time, DateTime, ForeignKey, Index,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from scheduling_engine.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class TutoringSession(Base):
    """Scheduled or open tutoring engagement owned by one tutor"""

    __tablename__ = "tutoring_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    tutor_id = Column(
        String(36),
        ForeignKey("tutor_profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    student_id = Column(
        String(36),
        ForeignKey("student_profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    title = Column(String(200), nullable=False)
    subject = Column(String(100), nullable=True)

    is_open = Column(Boolean, nullable=False, default=False)
    max_participants = Column(Integer, nullable=False, default=1)
    # Mirrors len(registrations); guarded by the conditional registration UPDATE
    registered_count = Column(Integer, nullable=False, default=0)

    scheduled_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default="pending")
    auto_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(36), nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    registrations = relationship(
        "SessionRegistration",
        order_by="SessionRegistration.registered_at",
        lazy="selectin",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_sessions_window"),
        CheckConstraint("max_participants >= 1", name="ck_sessions_max_participants"),
        CheckConstraint(
            "registered_count >= 0 AND registered_count <= max_participants",
            name="ck_sessions_capacity",
        ),
        Index("idx_sessions_tutor_date", "tutor_id", "scheduled_date"),
        Index("idx_sessions_student_date", "student_id", "scheduled_date"),
        Index("idx_sessions_status_date", "status", "scheduled_date"),
    )

    def __repr__(self):
        return f"<TutoringSession(id={self.id}, tutor={self.tutor_id}, status={self.status})>"


class SessionRegistration(Base):
    """Student seat in an open session"""

    __tablename__ = "session_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        String(36),
        ForeignKey("tutoring_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id = Column(
        String(36),
        ForeignKey("student_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    registered_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_registration_session_student"),
        Index("idx_registrations_student", "student_id"),
    )

    def __repr__(self):
        return f"<SessionRegistration(session={self.session_id}, student={self.student_id})>"
