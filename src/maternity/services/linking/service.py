from __future__ import annotations

import logging
import secrets
import string
import time
from datetime import timedelta
from threading import Lock
from typing import List, Optional, Set

from src.maternity.config import settings
from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.institution import StaffRole, StaffStatus
from src.maternity.domain.models.patient_link import (
    LinkMetadata,
    LinkPermissions,
    LinkSource,
    LinkStatus,
    LinkType,
    PatientLink,
)
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store

logger = logging.getLogger("maternity.linking")

_CODE_ALPHABET = string.digits + string.ascii_lowercase
_CODE_SUFFIX_LENGTH = 9
_MAX_CODE_ATTEMPTS = 5

INVALID_CODE_MESSAGE = "Invalid or expired link code"


def build_link_code(prefix: str, institution_id: str) -> str:
    """Return ``<PREFIX>_<institutionId>_<epochMillis>_<9 base36 chars>``."""

    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_SUFFIX_LENGTH))
    return f"{prefix}_{institution_id}_{int(time.time() * 1000)}_{suffix}"


class PatientLinkService:
    """Pairs patients with institutions through redeemable codes.

    Code creation, redemption and status changes run under one lock so that a
    code is never issued twice and two patients cannot both redeem the same
    pending link.
    """

    def __init__(self) -> None:
        self._lock = Lock()

    def _unique_code(self, prefix: str, institution_id: str) -> str:
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = build_link_code(prefix, institution_id)
            if next(iter(store.patient_links.list_by_filters(link_code=code)), None) is None:
                return code
            logger.warning("Link code collision for institution %s; regenerating", institution_id)
        raise ConflictError("Could not generate a unique link code")

    def _generate(
        self,
        *,
        prefix: str,
        link_type: LinkType,
        institution_id: str,
        metadata: LinkMetadata,
        created_by: Optional[str],
    ) -> PatientLink:
        now = utcnow()
        ttl = settings.link_code_ttl_hours
        with self._lock:
            link = PatientLink(
                institution_id=institution_id,
                link_type=link_type,
                link_code=self._unique_code(prefix, institution_id),
                linked_at=now,
                linked_by=created_by,
                expires_at=now + timedelta(hours=ttl) if ttl > 0 else None,
                metadata=metadata,
            )
            store.patient_links.save(link)
        return link

    def generate_qr_code(self, institution_id: str, *, created_by: Optional[str] = None) -> PatientLink:
        return self._generate(
            prefix="QR",
            link_type=LinkType.QR,
            institution_id=institution_id,
            metadata=LinkMetadata(source=LinkSource.ONLINE, tags=["qr_generated"]),
            created_by=created_by,
        )

    def generate_referral_code(
        self,
        institution_id: str,
        *,
        referrer_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> PatientLink:
        return self._generate(
            prefix="REF",
            link_type=LinkType.REFERRAL,
            institution_id=institution_id,
            metadata=LinkMetadata(source=LinkSource.REFERRAL, referrer=referrer_id, tags=["referral_generated"]),
            created_by=created_by,
        )

    def validate_and_link(self, link_code: str, patient_id: str) -> PatientLink:
        """Redeem a pending code on behalf of ``patient_id``.

        Unknown codes are 404; codes that were already redeemed, revoked or
        have expired are 409. Expired codes are moved to ``inactive``.
        """

        with self._lock:
            link = next(iter(store.patient_links.list_by_filters(link_code=link_code)), None)
            if link is None:
                raise NotFoundError(INVALID_CODE_MESSAGE)
            if link.status != LinkStatus.PENDING:
                raise ConflictError(INVALID_CODE_MESSAGE)

            now = utcnow()
            if link.expires_at is not None and link.expires_at <= now:
                link.status = LinkStatus.INACTIVE
                store.patient_links.save(link)
                raise ConflictError(INVALID_CODE_MESSAGE)

            link.patient_id = patient_id
            link.status = LinkStatus.ACTIVE
            link.linked_by = patient_id
            link.linked_at = now
            store.patient_links.save(link)

        logger.info("Patient linked to institution %s via %s code", link.institution_id, link.link_type.value)
        return link

    def create_link(
        self,
        *,
        patient_id: str,
        institution_id: str,
        created_by: str,
        permissions: Optional[LinkPermissions] = None,
        notes: Optional[str] = None,
    ) -> PatientLink:
        """Create a manual (walk-in) link; it stays pending until activated."""

        with self._lock:
            link = PatientLink(
                patient_id=patient_id,
                institution_id=institution_id,
                link_type=LinkType.MANUAL,
                link_code=self._unique_code("MAN", institution_id),
                permissions=permissions or LinkPermissions(),
                linked_by=created_by,
                metadata=LinkMetadata(source=LinkSource.WALKIN, notes=notes, tags=["manual"]),
            )
            store.patient_links.save(link)
        return link

    def get_link(self, link_id: str) -> PatientLink:
        link = store.patient_links.get(link_id)
        if link is None:
            raise NotFoundError("Link not found")
        return link

    def list_for_patient(self, patient_id: str) -> List[PatientLink]:
        links = list(store.patient_links.list_by_filters(patient_id=patient_id))
        links.sort(key=lambda link: link.linked_at, reverse=True)
        return links

    def list_for_institution(self, institution_id: str, *, status: Optional[LinkStatus] = None) -> List[PatientLink]:
        links = list(store.patient_links.list_by_filters(institution_id=institution_id, status=status))
        links.sort(key=lambda link: link.linked_at, reverse=True)
        return links

    def update_link(
        self,
        link_id: str,
        *,
        permissions: Optional[LinkPermissions] = None,
        status: Optional[LinkStatus] = None,
        notes: Optional[str] = None,
    ) -> PatientLink:
        with self._lock:
            link = self.get_link(link_id)
            if status == LinkStatus.ACTIVE and link.patient_id is None:
                raise ConflictError("A link cannot be activated before a patient redeems it")
            if permissions is not None:
                link.permissions = permissions
            if status is not None:
                link.status = status
            if notes is not None:
                link.metadata.notes = notes
            store.patient_links.save(link)
        return link

    def revoke_link(self, link_id: str) -> PatientLink:
        with self._lock:
            link = self.get_link(link_id)
            if link.status == LinkStatus.REVOKED:
                raise ConflictError("Link is already revoked")
            link.status = LinkStatus.REVOKED
            store.patient_links.save(link)
        return link

    def delete_link(self, link_id: str) -> None:
        if not store.patient_links.delete(link_id):
            raise NotFoundError("Link not found")

    def active_institution_ids(self, patient_id: str) -> Set[str]:
        return {
            link.institution_id
            for link in store.patient_links.list_by_filters(patient_id=patient_id, status=LinkStatus.ACTIVE)
        }

    def care_team_user_ids(self, patient_id: str) -> Set[str]:
        """Active doctors and nurses at every institution the patient is linked to."""

        user_ids: Set[str] = set()
        for institution_id in self.active_institution_ids(patient_id):
            for member in store.staff.list_by_filters(institution_id=institution_id, status=StaffStatus.ACTIVE):
                if member.role in {StaffRole.DOCTOR, StaffRole.NURSE}:
                    user_ids.add(member.user_id)
        return user_ids


patient_link_service = PatientLinkService()
