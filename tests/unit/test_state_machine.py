"""
Unit tests for the session state machine

Tests the transition table, compare-and-set behaviour, completion side
effects and transition notifications.
"""

import itertools
import random
from unittest.mock import AsyncMock, patch

import pytest

from scheduling_engine.schemas import Registration
from scheduling_engine.services.errors import InvalidTransition, NotFound
from scheduling_engine.services.notifications import EventType
from scheduling_engine.services.state_machine import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    SessionStateMachine,
    SessionStatus,
    can_transition,
    validate_transition,
)
from tests.factories import TUTOR_ID, make_session

ALL_STATUSES = list(SessionStatus)


@pytest.fixture
def machine(sessions, profiles, sink, clock, settings):
    return SessionStateMachine(sessions, profiles, sink, clock, settings)


class TestTransitionTable:
    """Test the single authoritative transition table"""

    def test_legal_edges(self):
        assert can_transition(SessionStatus.PENDING, SessionStatus.CONFIRMED)
        assert can_transition(SessionStatus.PENDING, SessionStatus.CANCELLED)
        assert can_transition(SessionStatus.CONFIRMED, SessionStatus.COMPLETED)
        assert can_transition(SessionStatus.CONFIRMED, SessionStatus.CANCELLED)
        assert can_transition(SessionStatus.CONFIRMED, SessionStatus.NO_SHOW)

    def test_pending_cannot_skip_confirmation(self):
        assert not can_transition(SessionStatus.PENDING, SessionStatus.COMPLETED)
        assert not can_transition(SessionStatus.PENDING, SessionStatus.NO_SHOW)

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal.is_terminal
        for target in ALL_STATUSES:
            assert not can_transition(terminal, target)

    def test_nothing_returns_to_pending(self):
        for current in ALL_STATUSES:
            assert not can_transition(current, SessionStatus.PENDING)

    def test_validate_transition_raises_typed_error(self):
        with pytest.raises(InvalidTransition) as exc_info:
            validate_transition(SessionStatus.COMPLETED, SessionStatus.CANCELLED)
        assert exc_info.value.details == {"from": "completed", "to": "cancelled"}

    def test_random_sequences_only_follow_table(self):
        """Walk random request sequences; every accepted step is a table edge"""
        rng = random.Random(42)
        for _ in range(200):
            status = SessionStatus.PENDING
            for target in (rng.choice(ALL_STATUSES) for _ in range(6)):
                try:
                    validate_transition(status, target)
                except InvalidTransition:
                    continue
                assert target in ALLOWED_TRANSITIONS[status]
                assert target != SessionStatus.PENDING
                status = target
            if status.is_terminal:
                assert not ALLOWED_TRANSITIONS[status]

    def test_every_pair_is_classified(self):
        for current, target in itertools.product(ALL_STATUSES, ALL_STATUSES):
            assert can_transition(current, target) == (target in ALLOWED_TRANSITIONS[current])


class TestApplyingTransitions:
    """Test compare-and-set transitions against the repository"""

    async def test_confirm_pending_session(self, machine, sessions):
        session = await sessions.create_session(make_session(status=SessionStatus.PENDING))

        updated = await machine.transition(session, SessionStatus.CONFIRMED, actor_id=TUTOR_ID)

        assert updated.status == SessionStatus.CONFIRMED
        assert (await sessions.get_session(session.id)).status == SessionStatus.CONFIRMED

    async def test_stale_read_loses_to_concurrent_writer(self, machine, sessions):
        session = await sessions.create_session(make_session(status=SessionStatus.CONFIRMED))
        await machine.transition(session, SessionStatus.CANCELLED, actor_id=TUTOR_ID)

        # `session` still says confirmed
        with pytest.raises(InvalidTransition, match="is cancelled"):
            await machine.transition(session, SessionStatus.COMPLETED, actor_id=TUTOR_ID)

    async def test_missing_session(self, machine):
        with pytest.raises(NotFound):
            await machine.transition(make_session(), SessionStatus.COMPLETED)

    async def test_no_show_is_scheduler_only(self, machine, sessions):
        session = await sessions.create_session(make_session())
        with pytest.raises(InvalidTransition, match="only be recorded by the scheduler"):
            await machine.transition(session, SessionStatus.NO_SHOW, actor_id=TUTOR_ID)

        updated = await machine.transition(session, SessionStatus.NO_SHOW, automatic=True)
        assert updated.status == SessionStatus.NO_SHOW
        assert updated.auto_completed

    async def test_cancel_records_actor_and_reason(self, machine, sessions, clock):
        session = await sessions.create_session(make_session(status=SessionStatus.PENDING))

        updated = await machine.transition(
            session, SessionStatus.CANCELLED, actor_id=TUTOR_ID, reason="Sick"
        )

        assert updated.cancelled_by == TUTOR_ID
        assert updated.cancellation_reason == "Sick"
        assert updated.cancelled_at == clock.now()


class TestCompletionEffects:
    """Test statistics and training points on completion"""

    async def test_completion_awards_every_bound_student_once(self, machine, sessions, profiles):
        record = make_session(student_id="student-a", is_open=True, max_participants=3)
        session = await sessions.create_session(record)
        for student_id in ("student-a", "student-b"):
            session = await sessions.register_student(session.id, student_id, machine.clock.now())

        await machine.transition(session, SessionStatus.COMPLETED, actor_id=TUTOR_ID)

        a = await profiles.get_student("student-a")
        b = await profiles.get_student("student-b")
        c = await profiles.get_student("student-c")
        assert (a.training_points, a.completed_sessions) == (5, 1)
        assert (b.training_points, b.completed_sessions) == (5, 1)
        assert (c.training_points, c.completed_sessions) == (0, 0)
        assert a.training_history[0].reason == "Completed session: Calculus review"
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 121

    async def test_automatic_completion_reason(self, machine, sessions, profiles):
        session = await sessions.create_session(make_session(student_id="student-a"))

        updated = await machine.transition(session, SessionStatus.COMPLETED, automatic=True)

        assert updated.auto_completed
        student = await profiles.get_student("student-a")
        assert student.training_history[0].reason == "Auto-completed session: Calculus review"
        assert student.training_history[0].session_id == session.id

    @pytest.mark.parametrize("target", [SessionStatus.CANCELLED, SessionStatus.NO_SHOW])
    async def test_other_terminal_states_change_no_statistics(
        self, machine, sessions, profiles, target
    ):
        session = await sessions.create_session(make_session(student_id="student-a"))

        await machine.transition(session, target, automatic=True)

        assert (await profiles.get_student("student-a")).training_points == 0
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 120

    async def test_profile_store_failure_leaves_session_confirmed(
        self, machine, sessions, profiles, sink
    ):
        session = await sessions.create_session(make_session(student_id="student-a"))

        failing = AsyncMock(side_effect=RuntimeError("profile store down"))
        with patch.object(profiles, "apply_credit", failing):
            with pytest.raises(RuntimeError, match="profile store down"):
                await machine.transition(session, SessionStatus.COMPLETED, actor_id=TUTOR_ID)

        assert (await sessions.get_session(session.id)).status == SessionStatus.CONFIRMED
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 120
        assert sink.events == []

        # Completing again once the store recovers credits exactly once
        await machine.transition(session, SessionStatus.COMPLETED, actor_id=TUTOR_ID)
        student = await profiles.get_student("student-a")
        assert (student.training_points, len(student.training_history)) == (5, 1)
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 121

    async def test_missing_profile_credits_nobody(self, machine, sessions, profiles):
        record = make_session(
            student_id="student-a",
            registered_students=[Registration(student_id="ghost", registered_at=machine.clock.now())],
        )
        session = await sessions.create_session(record)

        with pytest.raises(NotFound, match="ghost"):
            await machine.transition(session, SessionStatus.COMPLETED, actor_id=TUTOR_ID)

        assert (await sessions.get_session(session.id)).status == SessionStatus.CONFIRMED
        assert (await profiles.get_student("student-a")).training_points == 0
        assert (await profiles.get_tutor(TUTOR_ID)).completed_sessions == 120


class TestTransitionNotifications:
    """Test who hears about each transition"""

    async def test_actor_is_not_notified(self, machine, sessions, sink):
        session = await sessions.create_session(
            make_session(status=SessionStatus.PENDING, student_id="student-a")
        )

        await machine.transition(session, SessionStatus.CONFIRMED, actor_id=TUTOR_ID)

        assert sink.recipients_of(EventType.SESSION_CONFIRMED.value) == ["student-a"]

    async def test_automatic_completion_notifies_tutor_only(self, machine, sessions, sink):
        session = await sessions.create_session(make_session(student_id="student-a"))

        await machine.transition(session, SessionStatus.COMPLETED, automatic=True)

        assert sink.recipients_of(EventType.SESSION_COMPLETED.value) == [TUTOR_ID]

    async def test_no_show_notifies_everyone(self, machine, sessions, sink):
        session = await sessions.create_session(make_session(student_id="student-a"))

        await machine.transition(session, SessionStatus.NO_SHOW, automatic=True)

        assert sink.recipients_of(EventType.SESSION_NO_SHOW.value) == [TUTOR_ID, "student-a"]

    async def test_no_show_carries_reason(self, machine, sessions, sink):
        session = await sessions.create_session(make_session(student_id="student-a"))

        await machine.transition(session, SessionStatus.NO_SHOW, automatic=True)

        payloads = [payload for _, _, payload in sink.events]
        assert payloads and all(
            p["reason"] == "Not started within 30 minutes of scheduled time" for p in payloads
        )

    async def test_failing_sink_does_not_undo_transition(self, machine, sessions, sink):
        sink.fail = True
        session = await sessions.create_session(make_session(student_id="student-a"))

        updated = await machine.transition(session, SessionStatus.CANCELLED, actor_id=TUTOR_ID)

        assert updated.status == SessionStatus.CANCELLED
        assert (await sessions.get_session(session.id)).status == SessionStatus.CANCELLED
