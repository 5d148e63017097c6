"""
Shared test fixtures

Every scheduling component runs against the in-memory repositories and a
manual clock frozen at 2026-03-02 08:00 (a Monday) in the canonical timezone.
"""
from datetime import time

import pytest

from scheduling_engine.config import EngineSettings
from scheduling_engine.repositories import InMemoryProfileRepository, InMemorySessionRepository
from scheduling_engine.schemas import AvailabilitySlot, StudentProfileRecord, TutorProfileRecord
from scheduling_engine.services.authorization import Actor, Role
from scheduling_engine.services.clock import ManualClock
from scheduling_engine.services.session_service import SessionService
from tests.factories import (
    OTHER_TUTOR_ID,
    START_OF_TEST,
    STUDENT_IDS,
    TIMEZONE,
    TUTOR_ID,
    RecordingNotificationSink,
)


@pytest.fixture
def settings():
    return EngineSettings(
        repository_backend="memory",
        canonical_timezone=TIMEZONE,
        no_show_grace_minutes=30,
        training_points_per_session=5,
        sweep_session_timeout_seconds=5,
        scheduler_enabled=False,
    )


@pytest.fixture
def clock():
    return ManualClock(TIMEZONE, START_OF_TEST)


@pytest.fixture
def sink():
    return RecordingNotificationSink()


@pytest.fixture
def profiles():
    repo = InMemoryProfileRepository()
    repo.add_tutor(TutorProfileRecord(
        id=TUTOR_ID,
        display_name="Dr. Tran",
        department="Computer Science",
        faculty="Engineering",
        expertise=[{"subject": "Calculus", "level": "advanced"}, {"subject": "Linear Algebra"}],
        teaching_style="Interactive, hands_on problem solving",
        availability=[
            AvailabilitySlot(day_of_week=1, start_time=time(8), end_time=time(12)),
            AvailabilitySlot(day_of_week=3, start_time=time(13), end_time=time(17)),
        ],
        average_rating=4.6,
        completed_sessions=120,
    ))
    repo.add_tutor(TutorProfileRecord(
        id=OTHER_TUTOR_ID,
        display_name="Ms. Le",
        department="Physics",
        faculty="Science",
        subjects=["Mechanics"],
        average_rating=3.0,
        completed_sessions=3,
    ))
    for student_id in STUDENT_IDS:
        repo.add_student(StudentProfileRecord(
            id=student_id,
            department="Computer Science",
            faculty="Engineering",
            learning_style="kinesthetic",
            learning_needs=["Calculus"],
            schedule_preference=[
                AvailabilitySlot(day_of_week=1, start_time=time(9), end_time=time(11)),
            ],
        ))
    return repo


@pytest.fixture
def sessions(profiles):
    return InMemorySessionRepository(profiles)


@pytest.fixture
def service(sessions, profiles, sink, clock, settings):
    return SessionService(sessions, profiles, sink, clock, settings)


@pytest.fixture
def tutor():
    return Actor(TUTOR_ID, Role.TUTOR)


@pytest.fixture
def other_tutor():
    return Actor(OTHER_TUTOR_ID, Role.TUTOR)


@pytest.fixture
def admin():
    return Actor("admin-1", Role.ADMIN)
