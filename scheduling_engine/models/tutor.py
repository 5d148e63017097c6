"""Tutor profile model - the fields the scheduling core reads and increments"""
from sqlalchemy import Column, String, Integer, Float, DateTime, CheckConstraint, JSON
from sqlalchemy.sql import func

from scheduling_engine.database import Base


class TutorProfile(Base):
    """Tutor expertise, rating and session statistics"""

    __tablename__ = "tutor_profiles"

    id = Column(String(36), primary_key=True)
    display_name = Column(String(200), nullable=True)
    department = Column(String(100), nullable=True)
    faculty = Column(String(100), nullable=True)
    # [{"subject": "Calculus", "level": "advanced"}, ...]
    expertise = Column(JSON, nullable=False, default=list)
    subjects = Column(JSON, nullable=False, default=list)
    teaching_style = Column(String(200), nullable=True)
    # [{"day_of_week": 1, "start_time": "08:00", "end_time": "12:00"}, ...]
    availability = Column(JSON, nullable=False, default=list)
    average_rating = Column(
        Float,
        CheckConstraint("average_rating >= 0 AND average_rating <= 5"),
        nullable=False,
        default=0.0,
    )
    completed_sessions = Column(Integer, nullable=False, default=0)
    total_sessions = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<TutorProfile(id={self.id}, department={self.department})>"
