"""
APScheduler Configuration

Runs the session auto-completion sweep on a fixed interval.
"""
import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

# Process-wide scheduler, None until started
scheduler: AsyncIOScheduler = None

SWEEP_JOB_ID = "session_auto_completion"


async def auto_complete_sessions(sweeper):
    """
    Interval job: advance elapsed confirmed sessions.

    Per-session failures are handled inside the sweep; this only guards
    against the candidate query itself failing.
    """
    try:
        await sweeper.run_sweep_once()
    except Exception as e:
        logger.error(f"Auto-completion sweep failed: {e}", exc_info=True)


def configure_scheduler(sweeper, settings) -> AsyncIOScheduler:
    """
    Configure APScheduler with the sweep job.

    Jobs:
        - Session auto-completion: every SWEEP_INTERVAL_MINUTES, first run
          immediately on start
    """
    global scheduler
    scheduler = AsyncIOScheduler(timezone=pytz.timezone(settings.canonical_timezone))

    scheduler.add_job(
        auto_complete_sessions,
        trigger=IntervalTrigger(minutes=settings.sweep_interval_minutes),
        args=[sweeper],
        id=SWEEP_JOB_ID,
        name="Auto-complete Elapsed Sessions",
        replace_existing=True,
        coalesce=True,  # Missed runs collapse into one sweep
        max_instances=1,
        next_run_time=datetime.now(pytz.utc),
    )

    logger.info(f"Scheduler configured with sweep every {settings.sweep_interval_minutes} minutes")
    return scheduler


def start_scheduler(sweeper, settings):
    """Configure the sweep job and start the scheduler on the running event loop"""
    configure_scheduler(sweeper, settings)
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Shut the scheduler down without waiting for an in-flight sweep"""
    global scheduler
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None
