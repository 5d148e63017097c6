"""Student profile model and training point ledger"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from scheduling_engine.database import Base


class StudentProfile(Base):
    """Student learning preferences and completion statistics"""

    __tablename__ = "student_profiles"

    id = Column(String(36), primary_key=True)
    display_name = Column(String(200), nullable=True)
    department = Column(String(100), nullable=True)
    faculty = Column(String(100), nullable=True)
    learning_style = Column(String(50), nullable=True)
    learning_needs = Column(JSON, nullable=False, default=list)
    # Same slot shape as TutorProfile.availability
    schedule_preference = Column(JSON, nullable=False, default=list)
    completed_sessions = Column(Integer, nullable=False, default=0)
    training_points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    training_history = relationship(
        "TrainingPointEntry",
        order_by="TrainingPointEntry.awarded_at",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<StudentProfile(id={self.id}, training_points={self.training_points})>"


class TrainingPointEntry(Base):
    """Auditable training point award"""

    __tablename__ = "training_point_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(
        String(36),
        ForeignKey("student_profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    points = Column(Integer, nullable=False)
    reason = Column(String(300), nullable=False)
    session_id = Column(String(36), nullable=True)
    awarded_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_training_points_student", "student_id"),
    )

    def __repr__(self):
        return f"<TrainingPointEntry(student={self.student_id}, points={self.points})>"
