from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel

from src.maternity.domain.models.common import OptionalUtcDatetime
from src.maternity.domain.models.progress_note import (
    Priority,
    Recommendation,
    RecommendationStatus,
    RecommendationType,
)
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_self_or_staff, ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.notes.service import progress_note_service

router = APIRouter(
    prefix="/recommendations",
    tags=["progress-notes"],
    dependencies=[Depends(get_api_key)],
)


class RecommendationUpdateRequest(BaseModel):
    type: Optional[RecommendationType] = None
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[Priority] = None
    status: Optional[RecommendationStatus] = None
    due_date: OptionalUtcDatetime = None


@router.get("/", response_model=List[Recommendation])
async def list_recommendations(
    patient_id: Optional[str] = None,
    status_filter: Optional[RecommendationStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
) -> List[Recommendation]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    return progress_note_service.list_recommendations(patient_id=patient_id, status=status_filter)


@router.patch("/{recommendation_id}", response_model=Recommendation)
async def update_recommendation(
    recommendation_id: str,
    payload: RecommendationUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> Recommendation:
    ensure_staff(current_user)
    return progress_note_service.update_recommendation(recommendation_id, payload.model_dump(exclude_unset=True))


@router.post("/{recommendation_id}/complete", response_model=Recommendation)
async def complete_recommendation(
    recommendation_id: str,
    current_user: User = Depends(get_current_user),
) -> Recommendation:
    recommendation = progress_note_service.get_recommendation(recommendation_id)
    ensure_self_or_staff(current_user, recommendation.patient_id)
    recommendation = progress_note_service.complete_recommendation(recommendation_id)
    audit_service.log_event(
        action="complete_recommendation",
        resource_type="recommendation",
        resource_id=recommendation_id,
        user=current_user,
    )
    return recommendation


@router.delete("/{recommendation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recommendation(recommendation_id: str, current_user: User = Depends(get_current_user)) -> Response:
    ensure_staff(current_user)
    progress_note_service.delete_recommendation(recommendation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
