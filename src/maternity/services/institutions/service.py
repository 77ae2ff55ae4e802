from __future__ import annotations

from typing import Any, Dict, List, Optional

from src.maternity.domain.models.common import utcnow
from src.maternity.domain.models.institution import Institution, InstitutionType, StaffMember, StaffStatus
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store


class InstitutionService:
    def create_institution(self, institution: Institution) -> Institution:
        store.institutions.save(institution)
        return institution

    def get_institution(self, institution_id: str) -> Institution:
        institution = store.institutions.get(institution_id)
        if institution is None:
            raise NotFoundError("Institution not found")
        return institution

    def list_institutions(self, *, type: Optional[InstitutionType] = None) -> List[Institution]:
        items = list(store.institutions.list_by_filters(type=type))
        items.sort(key=lambda i: i.name.lower())
        return items

    def update_institution(self, institution_id: str, updates: Dict[str, Any]) -> Institution:
        current = self.get_institution(institution_id)
        updated = Institution.model_validate(
            {**current.model_dump(), **updates, "id": current.id, "created_at": current.created_at, "updated_at": utcnow()}
        )
        store.institutions.save(updated)
        return updated

    def delete_institution(self, institution_id: str) -> None:
        if not store.institutions.delete(institution_id):
            raise NotFoundError("Institution not found")

    # Staff

    def add_staff(self, member: StaffMember) -> StaffMember:
        self.get_institution(member.institution_id)
        existing = store.staff.list_by_filters(institution_id=member.institution_id, user_id=member.user_id)
        if next(iter(existing), None) is not None:
            raise ConflictError("User is already a staff member of this institution")
        store.staff.save(member)
        return member

    def get_staff(self, staff_id: str) -> StaffMember:
        member = store.staff.get(staff_id)
        if member is None:
            raise NotFoundError("Staff member not found")
        return member

    def list_staff(self, institution_id: str, *, status: Optional[StaffStatus] = None) -> List[StaffMember]:
        members = list(store.staff.list_by_filters(institution_id=institution_id, status=status))
        members.sort(key=lambda m: m.joined_at)
        return members

    def update_staff(self, staff_id: str, updates: Dict[str, Any]) -> StaffMember:
        current = self.get_staff(staff_id)
        updated = StaffMember.model_validate(
            {
                **current.model_dump(),
                **updates,
                "id": current.id,
                "institution_id": current.institution_id,
                "user_id": current.user_id,
            }
        )
        store.staff.save(updated)
        return updated

    def remove_staff(self, staff_id: str) -> None:
        if not store.staff.delete(staff_id):
            raise NotFoundError("Staff member not found")


institution_service = InstitutionService()
