from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status

from src.maternity.domain.models.analytics import InstitutionDashboardMetrics
from src.maternity.domain.models.user import User, UserRole
from src.maternity.security import ensure_staff, get_api_key, get_current_user
from src.maternity.services.analytics.service import analytics_service

router = APIRouter(
    prefix="/analytics",
    tags=["analytics"],
    dependencies=[Depends(get_api_key)],
)


@router.get("/institution-dashboard", response_model=InstitutionDashboardMetrics)
async def institution_dashboard(
    institution_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> InstitutionDashboardMetrics:
    ensure_staff(current_user)
    target_id = institution_id or current_user.institution_id
    if not target_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="institution_id is required")
    if current_user.role != UserRole.ADMIN and current_user.institution_id not in {None, target_id}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a member of this institution")
    return analytics_service.compute_institution_dashboard(target_id)
