from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Optional

from src.maternity.domain.models.alert import AlertStatus
from src.maternity.domain.models.analytics import InstitutionDashboardMetrics
from src.maternity.domain.models.common import ensure_utc, utcnow
from src.maternity.domain.models.patient_link import LinkStatus
from src.maternity.domain.models.prescription import PrescriptionStatus
from src.maternity.domain.models.referral import ReferralStatus
from src.maternity.domain.models.task import OPEN_TASK_STATUSES, TaskStatus
from src.maternity.infra.db.inmemory import store


class AnalyticsService:
    def compute_institution_dashboard(
        self,
        institution_id: str,
        *,
        now: Optional[datetime] = None,
    ) -> InstitutionDashboardMetrics:
        now = ensure_utc(now) if now is not None else utcnow()

        links = list(store.patient_links.list_by_filters(institution_id=institution_id))
        linked_ids = {l.patient_id for l in links if l.status == LinkStatus.ACTIVE and l.patient_id}
        pending_links = sum(1 for l in links if l.status == LinkStatus.PENDING)

        appointments = Counter(
            a.status.value for a in store.appointments.list_by_filters(institution_id=institution_id)
        )

        active_prescriptions = sum(
            1 for _ in store.prescriptions.list_by_filters(
                institution_id=institution_id, status=PrescriptionStatus.ACTIVE
            )
        )

        open_referrals = 0
        for referral in store.referrals.list_by_filters():
            if institution_id not in {referral.referring_institution_id, referral.receiving_institution_id}:
                continue
            if referral.status in {ReferralStatus.PENDING, ReferralStatus.ACCEPTED}:
                open_referrals += 1

        # Open tasks past due count as overdue even before the overdue sweep flips them.
        overdue_tasks = sum(
            1 for t in store.tasks.list_by_filters(institution_id=institution_id)
            if t.status == TaskStatus.OVERDUE or (t.status in OPEN_TASK_STATUSES and t.due_date < now)
        )

        by_risk: Counter = Counter()
        for patient_id in linked_ids:
            patient = store.patients.get(patient_id)
            if patient is not None:
                by_risk[patient.risk_level.value] += 1

        active_alerts = sum(
            1 for a in store.alerts.list_by_filters(status=AlertStatus.ACTIVE) if a.patient_id in linked_ids
        )

        return InstitutionDashboardMetrics(
            institution_id=institution_id,
            linked_patients=len(linked_ids),
            pending_links=pending_links,
            appointments_by_status=dict(appointments),
            active_prescriptions=active_prescriptions,
            open_referrals=open_referrals,
            overdue_tasks=overdue_tasks,
            patients_by_risk=dict(by_risk),
            active_alerts=active_alerts,
        )


analytics_service = AnalyticsService()
