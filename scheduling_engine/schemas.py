"""
Domain Records

Pydantic models shared by the repositories, the scheduling services and the
API layer. Repositories always hand out fresh copies; nothing here caches
session state between calls.
"""
from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator

from scheduling_engine.services.state_machine import SessionStatus
from scheduling_engine.services.time_window import TimeWindow


class Registration(BaseModel):
    """A student's seat in an open session"""
    student_id: str
    registered_at: datetime


class SessionRecord(BaseModel):
    """Scheduled or open tutoring engagement"""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tutor_id: str
    student_id: Optional[str] = None
    title: str
    subject: Optional[str] = None
    is_open: bool = False
    max_participants: int = Field(1, ge=1)
    registered_students: List[Registration] = Field(default_factory=list)
    scheduled_date: date
    start_time: time
    end_time: time
    duration_minutes: int = Field(..., gt=0)
    status: SessionStatus = SessionStatus.PENDING
    auto_completed: bool = False
    completed_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    @property
    def window(self) -> TimeWindow:
        return TimeWindow(self.scheduled_date, self.start_time, self.end_time)

    @property
    def registered_ids(self) -> List[str]:
        return [r.student_id for r in self.registered_students]

    @property
    def bound_student_ids(self) -> List[str]:
        """Primary student first, then registrants, each listed once"""
        ids = []
        for student_id in [self.student_id] + self.registered_ids:
            if student_id and student_id not in ids:
                ids.append(student_id)
        return ids

    @property
    def seats_left(self) -> int:
        return max(self.max_participants - len(self.registered_students), 0)

    def is_registered(self, student_id: str) -> bool:
        return student_id in self.registered_ids

    def involves(self, party_id: str) -> bool:
        return party_id == self.tutor_id or party_id in self.bound_student_ids


class ExpertiseEntry(BaseModel):
    subject: str
    level: Optional[str] = None


class AvailabilitySlot(BaseModel):
    """Recurring weekly slot; day_of_week 0 = Sunday"""
    day_of_week: int = Field(..., ge=0, le=6)
    start_time: time
    end_time: time


class TutorProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    department: Optional[str] = None
    faculty: Optional[str] = None
    expertise: List[ExpertiseEntry] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    teaching_style: Optional[str] = None
    availability: List[AvailabilitySlot] = Field(default_factory=list)
    average_rating: float = Field(0.0, ge=0, le=5)
    completed_sessions: int = Field(0, ge=0)
    total_sessions: int = Field(0, ge=0)

    @field_validator("expertise", mode="before")
    @classmethod
    def _coerce_plain_subjects(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"subject": v} if isinstance(v, str) else v for v in value]
        return value


class TrainingPointAward(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    points: int
    reason: str
    session_id: Optional[str] = None
    awarded_at: datetime


class CompletionCredit(BaseModel):
    """
    Training-point award written together with a session's completion. The
    tutor and students credited are read from the stored session in the same
    unit of work.
    """
    points: int = Field(..., ge=0)
    reason: str
    awarded_at: datetime


class StudentProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    display_name: Optional[str] = None
    department: Optional[str] = None
    faculty: Optional[str] = None
    learning_style: Optional[str] = None
    learning_needs: List[str] = Field(default_factory=list)
    schedule_preference: List[AvailabilitySlot] = Field(default_factory=list)
    completed_sessions: int = Field(0, ge=0)
    training_points: int = Field(0, ge=0)
    training_history: List[TrainingPointAward] = Field(default_factory=list)


class MatchResult(BaseModel):
    """Compatibility score with its breakdown and explanation"""
    total: int = Field(..., ge=0, le=100)
    breakdown: Dict[str, int]
    reasons: List[str]


class SweepSummary(BaseModel):
    """Outcome of one auto-completion sweep"""
    completed: int = 0
    no_show: int = 0
    failed: int = 0
    skipped: bool = False
    duration_ms: float = 0.0
