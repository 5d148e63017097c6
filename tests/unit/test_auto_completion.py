"""
Unit tests for the auto-completion sweep

Tests completion vs no-show timing, idempotence, per-session failure
isolation, the single-flight guard and the APScheduler job wiring.
"""

import asyncio
from datetime import datetime, time, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from scheduling_engine.services import scheduler as background
from scheduling_engine.services.auto_completion import AutoCompletionScheduler
from scheduling_engine.services.errors import Full, InvalidTransition, Unauthorized
from scheduling_engine.services.session_service import SessionService
from scheduling_engine.services.state_machine import SessionStatus
from tests.factories import TODAY, TOMORROW, TUTOR_ID, make_session, student


class StubStateMachine:
    """Records transitions; optionally blocks or fails per session"""

    def __init__(self, fail_ids=(), gate=None, error=RuntimeError):
        self.fail_ids = set(fail_ids)
        self.gate = gate
        self.error = error
        self.applied = []

    async def transition(self, session, target, **kwargs):
        if self.gate is not None:
            await self.gate.wait()
        if session.id in self.fail_ids:
            raise self.error(f"boom {session.id}")
        self.applied.append((session.id, target))
        return session


class TestEndToEnd:
    """Full lifecycle through the service and the sweep"""

    async def test_open_session_fills_and_auto_completes(
        self, service, tutor, profiles, clock, sink
    ):
        session = await service.open_session(
            tutor,
            title="Integration by parts",
            scheduled_date=TOMORROW,
            start_time="14:00",
            end_time="15:00",
            max_participants=2,
        )

        after_a = await service.register_for_session(student("student-a"), session.id)
        assert after_a.status == SessionStatus.PENDING
        await service.register_for_session(student("student-b"), session.id)
        with pytest.raises(Full):
            await service.register_for_session(student("student-c"), session.id)

        clock.set(datetime.combine(TOMORROW, time(15, 1)))
        summary = await service.run_sweep_once()

        assert summary.completed == 1
        stored = await service.sessions.get_session(session.id)
        assert stored.status == SessionStatus.COMPLETED
        assert stored.auto_completed
        for student_id in ("student-a", "student-b"):
            profile = await profiles.get_student(student_id)
            assert profile.training_points == 5
            assert profile.completed_sessions == 1
        untouched = await profiles.get_student("student-c")
        assert untouched.training_points == 0 and untouched.training_history == []

        # Second sweep is a no-op
        again = await service.run_sweep_once()
        assert (again.completed, again.no_show, again.failed) == (0, 0, 0)
        assert (await profiles.get_student("student-a")).training_points == 5

    async def test_unstarted_session_becomes_no_show(self, service, tutor, clock, profiles):
        session = await service.open_session(
            tutor,
            title="Limits",
            scheduled_date=TODAY,
            start_time="09:00",
            end_time="10:00",
            student_id="student-a",
        )
        await service.confirm_session(tutor, session.id)

        clock.set(datetime.combine(TODAY, time(9, 31)))
        summary = await service.run_sweep_once()

        assert (summary.completed, summary.no_show) == (0, 1)
        stored = await service.sessions.get_session(session.id)
        assert stored.status == SessionStatus.NO_SHOW
        assert (await profiles.get_student("student-a")).training_points == 0


class TestDueTransition:
    """Test the wall-clock rules for a confirmed session"""

    @pytest.fixture
    def sweeper(self, sessions, clock, settings):
        return AutoCompletionScheduler(sessions, StubStateMachine(), clock, settings)

    @pytest.mark.parametrize("now,expected", [
        (time(8, 59), None),
        (time(9, 30), None),
        (time(9, 31), SessionStatus.NO_SHOW),
        (time(9, 59), SessionStatus.NO_SHOW),
        (time(10, 0), SessionStatus.COMPLETED),
        (time(23, 0), SessionStatus.COMPLETED),
    ])
    def test_window_rules(self, sweeper, clock, now, expected):
        clock.set(datetime.combine(TODAY, now))
        assert sweeper.due_transition(make_session(), clock.now()) == expected

    def test_short_session_completes_before_grace_expires(self, sweeper, clock):
        session = make_session(start_time=time(9, 0), end_time=time(9, 20), duration_minutes=20)
        clock.set(datetime.combine(TODAY, time(9, 25)))
        assert sweeper.due_transition(session, clock.now()) == SessionStatus.COMPLETED

    def test_custom_grace_period(self, sessions, clock, settings):
        lenient = settings.model_copy(update={"no_show_grace_minutes": 45})
        sweeper = AutoCompletionScheduler(sessions, StubStateMachine(), clock, lenient)
        clock.set(datetime.combine(TODAY, time(9, 40)))
        assert sweeper.due_transition(make_session(), clock.now()) is None


class TestSweep:

    async def test_only_confirmed_sessions_are_swept(self, service, sessions, clock):
        pending = await sessions.create_session(make_session(status=SessionStatus.PENDING))
        future = await sessions.create_session(make_session(scheduled_date=TOMORROW))
        clock.set(datetime.combine(TODAY, time(12, 0)))

        summary = await service.run_sweep_once()

        assert summary.completed == 0
        assert (await sessions.get_session(pending.id)).status == SessionStatus.PENDING
        assert (await sessions.get_session(future.id)).status == SessionStatus.CONFIRMED

    async def test_yesterdays_sessions_are_caught_up(self, service, sessions, clock):
        overdue = await sessions.create_session(make_session(student_id="student-a"))
        clock.set(datetime.combine(TODAY + timedelta(days=1), time(0, 5)))

        summary = await service.run_sweep_once()

        assert summary.completed == 1
        assert (await sessions.get_session(overdue.id)).status == SessionStatus.COMPLETED

    async def test_one_failure_does_not_stop_the_sweep(self, sessions, clock, settings):
        first = await sessions.create_session(make_session(start_time=time(8, 0), end_time=time(9, 0)))
        second = await sessions.create_session(make_session())
        third = await sessions.create_session(make_session(start_time=time(10, 0), end_time=time(11, 0)))
        machine = StubStateMachine(fail_ids={second.id})
        sweeper = AutoCompletionScheduler(sessions, machine, clock, settings)
        clock.set(datetime.combine(TODAY, time(12, 0)))

        summary = await sweeper.run_sweep_once()

        assert summary.failed == 1
        assert summary.completed == 2
        assert [sid for sid, _ in machine.applied] == [first.id, third.id]

    async def test_concurrent_manual_action_is_not_a_failure(self, sessions, clock, settings):
        session = await sessions.create_session(make_session())
        machine = StubStateMachine(fail_ids={session.id}, error=InvalidTransition)
        sweeper = AutoCompletionScheduler(sessions, machine, clock, settings)
        clock.set(datetime.combine(TODAY, time(12, 0)))

        summary = await sweeper.run_sweep_once()

        assert (summary.completed, summary.failed) == (0, 0)

    async def test_timed_out_completion_leaves_nothing_half_written(
        self, sessions, profiles, sink, clock, settings
    ):
        impatient = settings.model_copy(update={"sweep_session_timeout_seconds": 0.05})
        service = SessionService(sessions, profiles, sink, clock, impatient)
        session = await sessions.create_session(make_session(student_id="student-a"))
        clock.set(datetime.combine(TODAY, time(10, 1)))
        apply_credit = profiles.apply_credit

        async def slow_credit(stored, credit):
            await asyncio.sleep(0.2)
            await apply_credit(stored, credit)

        with patch.object(profiles, "apply_credit", AsyncMock(side_effect=slow_credit)):
            first = await service.run_sweep_once()

        assert (first.completed, first.failed) == (0, 1)
        assert (await sessions.get_session(session.id)).status == SessionStatus.CONFIRMED
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 120
        assert (await profiles.get_student("student-a")).training_points == 0

        # Still confirmed, so the next sweep completes it and credits once
        second = await service.run_sweep_once()

        assert (second.completed, second.failed) == (1, 0)
        assert (await sessions.get_session(session.id)).status == SessionStatus.COMPLETED
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 121
        student_a = await profiles.get_student("student-a")
        assert (student_a.training_points, len(student_a.training_history)) == (5, 1)

    async def test_overlapping_sweep_is_skipped(self, sessions, clock, settings):
        await sessions.create_session(make_session())
        gate = asyncio.Event()
        sweeper = AutoCompletionScheduler(sessions, StubStateMachine(gate=gate), clock, settings)
        clock.set(datetime.combine(TODAY, time(12, 0)))

        running = asyncio.create_task(sweeper.run_sweep_once())
        while not sweeper.is_running:
            await asyncio.sleep(0)

        skipped = await sweeper.run_sweep_once()
        gate.set()
        finished = await running

        assert skipped.skipped
        assert not finished.skipped and finished.completed == 1
        assert not sweeper.is_running

    async def test_manual_sweep_requires_staff(self, service, tutor, admin):
        with pytest.raises(Unauthorized):
            await service.run_sweep_once(tutor)
        assert not (await service.run_sweep_once(admin)).skipped


class TestSchedulerJob:
    """Test the APScheduler interval job"""

    def test_job_configuration(self, service, settings):
        try:
            scheduler = background.configure_scheduler(service.sweeper, settings)
            job = scheduler.get_job(background.SWEEP_JOB_ID)

            assert job is not None
            assert job.trigger.interval == timedelta(minutes=settings.sweep_interval_minutes)
            assert job.max_instances == 1
            assert job.coalesce is True
        finally:
            background.stop_scheduler()
        assert background.scheduler is None

    async def test_job_swallows_sweep_errors(self):
        class BrokenSweeper:
            async def run_sweep_once(self):
                raise RuntimeError("database unavailable")

        await background.auto_complete_sessions(BrokenSweeper())
