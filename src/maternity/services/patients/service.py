from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.maternity.domain.models.alert import AlertType, EmergencyAlert
from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.patient import KickSession, Patient, RiskLevel
from src.maternity.domain.models.risk import FetalHealthAssessment
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.alerts.service import AlertService, alert_service
from src.maternity.services.linking.service import PatientLinkService, patient_link_service
from src.maternity.services.risk.assessment import assess_fetal_risk, should_notify_doctor
from src.maternity.services.risk.fetal_health import assess_kick_session

logger = logging.getLogger("maternity.patients")


@dataclass
class KickSessionOutcome:
    session: KickSession
    session_assessment: FetalHealthAssessment
    previous_risk: RiskLevel
    risk_level: RiskLevel
    alert: Optional[EmergencyAlert] = None


class PatientService:
    def __init__(self, alerts: AlertService, links: PatientLinkService) -> None:
        self._alerts = alerts
        self._links = links

    def create_patient(self, patient: Patient) -> Patient:
        if store.patients.get(patient.id) is not None:
            raise ConflictError("Patient profile already exists")
        store.patients.save(patient)
        return patient

    def get_patient(self, patient_id: str) -> Patient:
        patient = store.patients.get(patient_id)
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    def list_patients(
        self,
        *,
        institution_id: Optional[str] = None,
        risk_level: Optional[RiskLevel] = None,
    ) -> List[Patient]:
        patients = list(store.patients.list_by_filters(risk_level=risk_level))
        if institution_id is not None:
            linked = {
                link.patient_id
                for link in self._links.list_for_institution(institution_id)
                if link.patient_id is not None
            }
            patients = [p for p in patients if p.institution_id == institution_id or p.id in linked]
        patients.sort(key=lambda p: p.name.lower())
        return patients

    def update_patient(self, patient_id: str, updates: Dict[str, Any]) -> Patient:
        patient = self.get_patient(patient_id)
        updated = Patient.model_validate({**patient.model_dump(), **updates, "id": patient.id, "updated_at": utcnow()})
        store.patients.save(updated)
        return updated

    def list_kick_sessions(self, patient_id: str, *, since: Optional[datetime] = None) -> List[KickSession]:
        sessions = [
            s for s in store.kick_sessions.list_by_filters(patient_id=patient_id)
            if since is None or s.date >= since
        ]
        sessions.sort(key=lambda s: s.date)
        return sessions

    def record_kick_session(self, session: KickSession) -> KickSessionOutcome:
        """Store a counting session and re-evaluate the patient's risk level.

        When the level rises, an emergency alert is raised and the patient's
        care team is notified.
        """

        patient = self.get_patient(session.patient_id)
        store.kick_sessions.save(session)

        sessions = self.list_kick_sessions(patient.id)
        new_risk = assess_fetal_risk(sessions)
        previous_risk = patient.risk_level

        alert: Optional[EmergencyAlert] = None
        if should_notify_doctor(previous_risk, new_risk):
            logger.info("Fetal risk for patient %s rose from %s to %s", patient.id, previous_risk.value, new_risk.value)
            alert = self._alerts.raise_alert(
                patient_id=patient.id,
                type=AlertType.REDUCED_MOVEMENT,
                severity=new_risk,
                description=f"Fetal movement risk rose from {previous_risk.value} to {new_risk.value}.",
                notify_user_ids=sorted(self._links.care_team_user_ids(patient.id)),
            )

        if new_risk != previous_risk:
            patient.risk_level = new_risk
            patient.updated_at = utcnow()
            store.patients.save(patient)

        return KickSessionOutcome(
            session=session,
            session_assessment=assess_kick_session(session.kick_count, session.duration, session.phone_on_abdomen),
            previous_risk=previous_risk,
            risk_level=new_risk,
            alert=alert,
        )


patient_service = PatientService(alert_service, patient_link_service)
