from __future__ import annotations

import logging
from pathlib import PurePath
from typing import Any, Dict, List, Optional

from src.maternity.domain.models.common import new_id, utcnow
from src.maternity.domain.models.medical_record import FilePermissions, MedicalRecord, RecordCategory
from src.maternity.domain.models.user import User
from src.maternity.errors import NotFoundError, PermissionDeniedError
from src.maternity.infra.db.inmemory import store
from src.maternity.infra.storage.records import RecordStorageBackend, record_storage_backend

logger = logging.getLogger("maternity.records")

_METADATA_FIELDS = ("file_name", "category", "tags", "description", "is_confidential")


def can_view(record: MedicalRecord, user: User) -> bool:
    """Staff and the uploader see everything.

    A patient sees their own non-confidential records; anything confidential
    needs an explicit entry in the record's view list.
    """

    if user.is_staff or user.id == record.uploaded_by:
        return True
    if user.id in record.access_permissions.view:
        return True
    return user.id == record.patient_id and not record.is_confidential


class MedicalRecordService:
    def __init__(self, storage: RecordStorageBackend) -> None:
        self._storage = storage

    def upload_record(
        self,
        *,
        content: bytes,
        patient_id: str,
        uploaded_by: str,
        file_name: str,
        file_type: str,
        institution_id: Optional[str] = None,
        category: RecordCategory = RecordCategory.OTHER,
        tags: Optional[List[str]] = None,
        description: Optional[str] = None,
        is_confidential: bool = False,
    ) -> MedicalRecord:
        record_id = new_id()
        safe_name = PurePath(file_name).name or "upload"
        storage_url = self._storage.save_file(content, key=f"{record_id}_{safe_name}")

        record = MedicalRecord(
            id=record_id,
            patient_id=patient_id,
            institution_id=institution_id,
            uploaded_by=uploaded_by,
            file_name=safe_name,
            file_type=file_type,
            file_size=len(content),
            storage_url=storage_url,
            category=category,
            tags=tags or [],
            description=description,
            is_confidential=is_confidential,
            access_permissions=FilePermissions(view=[uploaded_by], download=[uploaded_by], share=[uploaded_by]),
        )
        store.medical_records.save(record)
        logger.info("Stored medical record %s (%d bytes)", record.id, record.file_size)
        return record

    def _load(self, record_id: str) -> MedicalRecord:
        record = store.medical_records.get(record_id)
        if record is None:
            raise NotFoundError("Medical record not found")
        return record

    def get_record(self, record_id: str, *, user: User) -> MedicalRecord:
        record = self._load(record_id)
        if not can_view(record, user):
            raise PermissionDeniedError("Not authorized to view this record")
        record.last_accessed = utcnow()
        store.medical_records.save(record)
        return record

    def read_content(self, record_id: str, *, user: User) -> bytes:
        record = self.get_record(record_id, user=user)
        allowed = (
            user.is_staff
            or user.id in {record.uploaded_by, *record.access_permissions.download}
            or (user.id == record.patient_id and not record.is_confidential)
        )
        if not allowed:
            raise PermissionDeniedError("Not authorized to download this record")
        return self._storage.read_file(record.storage_url)

    def list_for_patient(
        self,
        patient_id: str,
        *,
        user: User,
        category: Optional[RecordCategory] = None,
    ) -> List[MedicalRecord]:
        records = [
            r for r in store.medical_records.list_by_filters(patient_id=patient_id, category=category)
            if can_view(r, user)
        ]
        records.sort(key=lambda r: r.uploaded_at, reverse=True)
        return records

    def list_for_institution(
        self,
        institution_id: str,
        *,
        category: Optional[RecordCategory] = None,
    ) -> List[MedicalRecord]:
        records = list(store.medical_records.list_by_filters(institution_id=institution_id, category=category))
        records.sort(key=lambda r: r.uploaded_at, reverse=True)
        return records

    def update_metadata(self, record_id: str, updates: Dict[str, Any]) -> MedicalRecord:
        record = self._load(record_id)
        payload = record.model_dump()
        for field in _METADATA_FIELDS:
            if field in updates and updates[field] is not None:
                payload[field] = updates[field]
        payload["version"] = record.version + 1
        updated = MedicalRecord.model_validate(payload)
        store.medical_records.save(updated)
        return updated

    def update_permissions(self, record_id: str, permissions: FilePermissions) -> MedicalRecord:
        record = self._load(record_id)
        record.access_permissions = permissions
        store.medical_records.save(record)
        return record

    def delete_record(self, record_id: str) -> None:
        record = self._load(record_id)
        self._storage.delete_file(record.storage_url)
        store.medical_records.delete(record.id)

    def search(
        self,
        term: str,
        *,
        user: User,
        patient_id: Optional[str] = None,
        institution_id: Optional[str] = None,
    ) -> List[MedicalRecord]:
        needle = term.strip().lower()
        results: List[MedicalRecord] = []
        for record in store.medical_records.list_by_filters(patient_id=patient_id, institution_id=institution_id):
            haystack = [record.file_name, record.description or "", *record.tags]
            if needle in " ".join(haystack).lower() and can_view(record, user):
                results.append(record)
        results.sort(key=lambda r: r.uploaded_at, reverse=True)
        return results


medical_record_service = MedicalRecordService(record_storage_backend)
