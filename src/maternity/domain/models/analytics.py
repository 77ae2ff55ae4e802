from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field


class InstitutionDashboardMetrics(BaseModel):
    institution_id: str
    linked_patients: int
    pending_links: int
    appointments_by_status: Dict[str, int] = Field(default_factory=dict)
    active_prescriptions: int
    open_referrals: int
    overdue_tasks: int
    patients_by_risk: Dict[str, int] = Field(default_factory=dict)
    active_alerts: int
