"""
Auto-Completion Sweep

Drives confirmed sessions forward once their wall-clock window has elapsed:
- end time reached               -> completed (auto_completed=True)
- start + grace period exceeded  -> no_show

Times are evaluated in the canonical timezone. Each session is processed
independently; one failure is logged and the sweep moves on. A session that
times out before its completion write commits stays confirmed and is retried
by the next sweep. Sweeps never overlap: a sweep requested while another is
running is skipped.
"""
import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Optional

from scheduling_engine.schemas import SweepSummary
from scheduling_engine.services.errors import InvalidTransition
from scheduling_engine.services.state_machine import SessionStatus

logger = logging.getLogger(__name__)


class AutoCompletionScheduler:

    def __init__(self, sessions, state_machine, clock, settings):
        self.sessions = sessions
        self.state_machine = state_machine
        self.clock = clock
        self.settings = settings
        self._sweep_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._sweep_lock.locked()

    def due_transition(self, session, now: datetime) -> Optional[SessionStatus]:
        """
        Terminal status a confirmed session should move to at `now`, if any.
        Completion wins over no-show once the end time has passed.
        """
        window = session.window
        if window.end_instant(self.clock) <= now:
            return SessionStatus.COMPLETED
        grace = timedelta(minutes=self.settings.no_show_grace_minutes)
        if now - window.start_instant(self.clock) > grace:
            return SessionStatus.NO_SHOW
        return None

    async def run_sweep_once(self) -> SweepSummary:
        """
        Run one sweep now (timer, CLI or admin endpoint).

        Returns:
            SweepSummary with counts per outcome; skipped=True when another
            sweep was still in flight
        """
        if self._sweep_lock.locked():
            logger.warning("Auto-completion sweep already running, skipping this run")
            return SweepSummary(skipped=True)

        async with self._sweep_lock:
            return await self._sweep()

    async def _sweep(self) -> SweepSummary:
        start_time = time.time()
        now = self.clock.now()
        summary = SweepSummary()

        candidates = await self.sessions.list_by_status(SessionStatus.CONFIRMED, now.date())

        for session in candidates:
            target = self.due_transition(session, now)
            if target is None:
                continue

            try:
                await asyncio.wait_for(
                    self.state_machine.transition(session, target, automatic=True),
                    timeout=self.settings.sweep_session_timeout_seconds,
                )
            except InvalidTransition:
                # Advanced by a concurrent manual action since it was listed
                logger.info(f"Session {session.id} already left confirmed, skipping")
                continue
            except asyncio.TimeoutError:
                summary.failed += 1
                logger.error(
                    f"Timed out advancing session {session.id} to {target.value} "
                    f"after {self.settings.sweep_session_timeout_seconds}s"
                )
                continue
            except Exception as e:
                summary.failed += 1
                logger.error(
                    f"Failed to advance session {session.id} to {target.value}: {e}",
                    exc_info=True,
                )
                continue

            if target == SessionStatus.COMPLETED:
                summary.completed += 1
            else:
                summary.no_show += 1

        summary.duration_ms = (time.time() - start_time) * 1000

        if summary.completed or summary.no_show or summary.failed:
            logger.info(
                f"Sweep processed: {summary.completed} completed, {summary.no_show} no-show, "
                f"{summary.failed} failed in {summary.duration_ms:.2f}ms"
            )
        return summary
