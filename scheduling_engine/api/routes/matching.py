"""
Matching API Endpoints

POST /api/v1/matching/score        - Compatibility score for one tutor
GET  /api/v1/matching/suggestions  - Best-matching tutors for the caller
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from scheduling_engine.api.auth import get_current_actor
from scheduling_engine.dependencies import get_session_service
from scheduling_engine.schemas import MatchResult
from scheduling_engine.services.authorization import Actor, Role, require_role
from scheduling_engine.services.session_service import SessionService

router = APIRouter(prefix="/api/v1/matching", tags=["matching"])


class MatchScoreRequest(BaseModel):
    tutor_id: str
    requested_subjects: List[str] = Field(default_factory=list)
    student_id: Optional[str] = Field(
        None, description="Student to score for (staff only; defaults to the caller)"
    )


class MatchScoreResponse(BaseModel):
    data: MatchResult


class TutorSuggestion(BaseModel):
    tutor: Dict[str, Any]
    match_score: int
    breakdown: Dict[str, int]
    reasons: List[str]


class SuggestionsResponse(BaseModel):
    data: List[TutorSuggestion]
    metadata: Dict[str, Any]


def _student_for(actor: Actor, requested: Optional[str]) -> str:
    if actor.is_staff and requested:
        return requested
    require_role(actor, Role.STUDENT)
    return actor.user_id


@router.post("/score", response_model=MatchScoreResponse)
async def compute_match_score(
    request: MatchScoreRequest,
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """
    Score how well a tutor fits a student for the requested subjects.

    Returns:
        total (0-100), per-component breakdown and human-readable reasons
    """
    student_id = _student_for(actor, request.student_id)
    result = await service.compute_match_score(
        student_id, request.tutor_id, request.requested_subjects
    )
    return MatchScoreResponse(data=result)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def get_suggestions(
    limit: int = Query(10, ge=1, le=50),
    subjects: Optional[List[str]] = Query(None, description="Override the student's learning needs"),
    student_id: Optional[str] = Query(None, description="Staff only"),
    actor: Actor = Depends(get_current_actor),
    service: SessionService = Depends(get_session_service),
):
    """Rank tutors for the calling student, best match first"""
    student_id = _student_for(actor, student_id)
    ranked = await service.suggest_tutors(student_id, limit=limit, subjects=subjects)

    suggestions = [
        TutorSuggestion(
            tutor={
                "id": tutor.id,
                "display_name": tutor.display_name,
                "department": tutor.department,
                "expertise": [e.subject for e in tutor.expertise],
                "average_rating": tutor.average_rating,
                "completed_sessions": tutor.completed_sessions,
            },
            match_score=result.total,
            breakdown=result.breakdown,
            reasons=result.reasons,
        )
        for tutor, result in ranked
    ]
    return SuggestionsResponse(
        data=suggestions,
        metadata={"student_id": student_id, "count": len(suggestions)},
    )
