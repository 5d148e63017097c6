"""
Session API Endpoints

POST /api/v1/sessions                     - Tutor opens a session (or books a student)
GET  /api/v1/sessions/open                - Open sessions with free seats
GET  /api/v1/sessions/{id}                - Session details
POST /api/v1/sessions/{id}/register       - Student registers for an open session
PUT  /api/v1/sessions/{id}/confirm        - Confirm a pending session
PUT  /api/v1/sessions/{id}/complete       - Tutor completes a confirmed session
PUT  /api/v1/sessions/{id}/cancel         - Cancel a live session
PUT  /api/v1/sessions/{id}/reschedule     - Move a live session to a new window
"""
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel, Field

from scheduling_engine.api.auth import get_current_actor
from scheduling_engine.dependencies import get_session_service
from scheduling_engine.schemas import SessionRecord
from scheduling_engine.services.authorization import Actor
from scheduling_engine.services.session_service import SessionService

router = APIRouter(prefix="/api/v1/sessions", tags=["sessions"])

HH_MM = r"^([01]\d|2[0-3]):[0-5]\d$"


# Request/Response models
class OpenSessionRequest(BaseModel):
    """Request model for opening a session"""
    title: str = Field(..., min_length=1, max_length=200)
    subject: Optional[str] = Field(None, max_length=100)
    scheduled_date: date
    start_time: str = Field(..., pattern=HH_MM, description="Start time (HH:MM)")
    end_time: str = Field(..., pattern=HH_MM, description="End time (HH:MM)")
    duration_minutes: Optional[int] = Field(None, gt=0)
    max_participants: int = Field(1, ge=1, le=100)
    is_open: Optional[bool] = None
    student_id: Optional[str] = Field(None, description="Book this student directly")


class RescheduleRequest(BaseModel):
    scheduled_date: date
    start_time: str = Field(..., pattern=HH_MM)
    end_time: str = Field(..., pattern=HH_MM)


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class SessionResponse(BaseModel):
    """Standard response wrapper"""
    data: SessionRecord


class SessionListResponse(BaseModel):
    data: List[SessionRecord]
    metadata: Dict[str, Any]


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def open_session(
    request: OpenSessionRequest,
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """
    Open a new session owned by the calling tutor.

    Raises:
        403: Caller is not a tutor
        404: Tutor or student profile not found
        409: Tutor (or booked student) already has an overlapping session
        422: Invalid or past schedule
    """
    session = await service.open_session(actor, **request.model_dump())
    return SessionResponse(data=session)


@router.get("/open", response_model=SessionListResponse)
async def list_open_sessions(
    from_date: Optional[date] = Query(None, description="Earliest date (default: today)"),
    service: SessionService = Depends(get_session_service),
    actor: Actor = Depends(get_current_actor),
):
    """List open sessions that still have free seats"""
    sessions = await service.list_open_sessions(from_date)
    return SessionListResponse(data=sessions, metadata={"count": len(sessions)})


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    return SessionResponse(data=await service.get_session(actor, session_id))


@router.post("/{session_id}/register", response_model=SessionResponse)
async def register_for_session(
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """
    Register the calling student for an open session.

    Raises:
        404: Session or student profile not found
        409: NOT_OPEN, ALREADY_REGISTERED, FULL or SCHEDULE_CONFLICT
    """
    session = await service.register_for_session(actor, session_id)
    return SessionResponse(data=session)


@router.put("/{session_id}/confirm", response_model=SessionResponse)
async def confirm_session(
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    return SessionResponse(data=await service.confirm_session(actor, session_id))


@router.put("/{session_id}/complete", response_model=SessionResponse)
async def complete_session(
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """Complete a confirmed session and award training points"""
    return SessionResponse(data=await service.complete_session(actor, session_id))


@router.put("/{session_id}/cancel", response_model=SessionResponse)
async def cancel_session(
    request: Optional[CancelRequest] = None,
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    reason = request.reason if request else None
    session = await service.cancel_session(actor, session_id, reason=reason)
    return SessionResponse(data=session)


@router.put("/{session_id}/reschedule", response_model=SessionResponse)
async def reschedule_session(
    request: RescheduleRequest,
    session_id: str = Path(..., description="Session ID"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    session = await service.reschedule_session(actor, session_id, **request.model_dump())
    return SessionResponse(data=session)
