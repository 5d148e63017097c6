"""
Scheduler API Endpoints

POST /api/v1/scheduler/sweep   - Run one auto-completion sweep now
GET  /api/v1/scheduler/status  - Background job status
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from scheduling_engine.api.auth import get_current_actor
from scheduling_engine.dependencies import get_session_service
from scheduling_engine.schemas import SweepSummary
from scheduling_engine.services import scheduler as background
from scheduling_engine.services.authorization import Actor, require_staff
from scheduling_engine.services.session_service import SessionService

router = APIRouter(prefix="/api/v1/scheduler", tags=["scheduler"])


class SweepResponse(BaseModel):
    data: SweepSummary


class SchedulerStatusResponse(BaseModel):
    data: Dict[str, Any]


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """
    Admin endpoint to run the auto-completion sweep immediately.

    Returns skipped=true if a sweep is already in progress.
    """
    summary = await service.run_sweep_once(actor)
    return SweepResponse(data=summary)


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    require_staff(actor)

    job = None
    if background.scheduler is not None:
        job = background.scheduler.get_job(background.SWEEP_JOB_ID)

    return SchedulerStatusResponse(data={
        "scheduler_running": bool(background.scheduler and background.scheduler.running),
        "sweep_in_progress": service.sweeper.is_running,
        "interval_minutes": service.settings.sweep_interval_minutes,
        "next_run_time": job.next_run_time.isoformat() if job and job.next_run_time else None,
    })
