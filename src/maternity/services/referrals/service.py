from __future__ import annotations

import logging
from typing import FrozenSet, List, Optional

from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.referral import (
    Referral,
    ReferralResponse,
    ReferralResponseKind,
    ReferralStatus,
    ReferralUrgency,
)
from src.maternity.errors import ConflictError, DomainValidationError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.services.messaging.service import NotificationService, notification_service

logger = logging.getLogger("maternity.referrals")

OPEN_REFERRAL_STATUSES = frozenset({ReferralStatus.PENDING, ReferralStatus.ACCEPTED})


class ReferralService:
    """Referrals between providers and institutions.

    Allowed transitions: pending -> accepted | rejected | cancelled and
    accepted -> completed | cancelled. Anything else is a conflict.
    """

    def __init__(self, notifications: NotificationService) -> None:
        self._notifications = notifications

    def create_referral(self, referral: Referral) -> Referral:
        referral.status = ReferralStatus.PENDING
        if referral.patient_consent and referral.consent_given_at is None:
            referral.consent_given_at = utcnow()
        store.referrals.save(referral)

        if referral.receiving_doctor_id:
            self._notifications.notify(
                user_id=referral.receiving_doctor_id,
                type=NotificationType.REFERRAL,
                title="New referral",
                message=f"{referral.urgency.value.capitalize()} referral for {referral.specialty}",
                related_id=referral.id,
            )
        logger.info("Created %s referral %s", referral.urgency.value, referral.id)
        return referral

    def get_referral(self, referral_id: str) -> Referral:
        referral = store.referrals.get(referral_id)
        if referral is None:
            raise NotFoundError("Referral not found")
        return referral

    def list_for_user(self, user_id: str) -> List[Referral]:
        found = {}
        for field in ("patient_id", "referring_doctor_id", "receiving_doctor_id"):
            for referral in store.referrals.list_by_filters(**{field: user_id}):
                found[referral.id] = referral
        return sorted(found.values(), key=lambda r: r.created_at, reverse=True)

    def list_for_institution(
        self,
        institution_id: str,
        *,
        direction: str = "received",
        status: Optional[ReferralStatus] = None,
        urgency: Optional[ReferralUrgency] = None,
    ) -> List[Referral]:
        if direction not in {"sent", "received"}:
            raise DomainValidationError("direction must be 'sent' or 'received'")
        field = "referring_institution_id" if direction == "sent" else "receiving_institution_id"
        referrals = list(store.referrals.list_by_filters(**{field: institution_id}, status=status, urgency=urgency))
        referrals.sort(key=lambda r: r.created_at, reverse=True)
        return referrals

    def _transition(
        self,
        referral_id: str,
        target: ReferralStatus,
        allowed_from: FrozenSet[ReferralStatus],
    ) -> Referral:
        referral = self.get_referral(referral_id)
        if referral.status not in allowed_from:
            raise ConflictError(
                f"Cannot move referral from {referral.status.value} to {target.value}",
                details={"status": referral.status.value},
            )
        referral.status = target
        referral.updated_at = utcnow()
        return referral

    def accept(self, referral_id: str, *, doctor_id: str, notes: Optional[str] = None) -> Referral:
        referral = self._transition(referral_id, ReferralStatus.ACCEPTED, frozenset({ReferralStatus.PENDING}))
        referral.accepted_at = referral.updated_at
        referral.receiving_doctor_id = referral.receiving_doctor_id or doctor_id
        referral.response_notes = notes
        store.referrals.save(referral)
        self._record_response(referral, doctor_id, ReferralResponseKind.ACCEPT, notes or "")
        return referral

    def reject(self, referral_id: str, *, doctor_id: str, notes: str) -> Referral:
        if not notes or not notes.strip():
            raise DomainValidationError("A reason is required to reject a referral")
        referral = self._transition(referral_id, ReferralStatus.REJECTED, frozenset({ReferralStatus.PENDING}))
        referral.response_notes = notes
        store.referrals.save(referral)
        self._record_response(referral, doctor_id, ReferralResponseKind.REJECT, notes)
        return referral

    def complete(self, referral_id: str, *, notes: Optional[str] = None) -> Referral:
        referral = self._transition(referral_id, ReferralStatus.COMPLETED, frozenset({ReferralStatus.ACCEPTED}))
        referral.completed_at = referral.updated_at
        if notes:
            referral.response_notes = notes
        store.referrals.save(referral)
        return referral

    def cancel(self, referral_id: str) -> Referral:
        referral = self._transition(referral_id, ReferralStatus.CANCELLED, OPEN_REFERRAL_STATUSES)
        store.referrals.save(referral)
        return referral

    def _record_response(
        self,
        referral: Referral,
        doctor_id: str,
        kind: ReferralResponseKind,
        notes: str,
    ) -> ReferralResponse:
        response = ReferralResponse(
            referral_id=referral.id,
            responding_doctor_id=doctor_id,
            response=kind,
            notes=notes,
        )
        store.referral_responses.save(response)
        self._notifications.notify(
            user_id=referral.referring_doctor_id,
            type=NotificationType.REFERRAL,
            title="Referral update",
            message=f"Your referral for {referral.specialty} is now {referral.status.value}.",
            related_id=referral.id,
        )
        return response

    def add_response(self, response: ReferralResponse) -> ReferralResponse:
        """Record a free-form response, e.g. a proposed transfer, without changing status."""

        self.get_referral(response.referral_id)
        store.referral_responses.save(response)
        return response

    def list_responses(self, referral_id: str) -> List[ReferralResponse]:
        self.get_referral(referral_id)
        responses = list(store.referral_responses.list_by_filters(referral_id=referral_id))
        responses.sort(key=lambda r: r.created_at)
        return responses

    def search(self, term: str, *, institution_id: Optional[str] = None) -> List[Referral]:
        needle = term.strip().lower()
        results = []
        for referral in store.referrals.list_by_filters():
            if institution_id and institution_id not in {
                referral.referring_institution_id,
                referral.receiving_institution_id,
            }:
                continue
            text = " ".join([referral.specialty, referral.reason, referral.diagnosis or "", referral.clinical_notes])
            if needle in text.lower():
                results.append(referral)
        results.sort(key=lambda r: r.created_at, reverse=True)
        return results


referral_service = ReferralService(notification_service)
