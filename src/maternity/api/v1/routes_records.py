from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from pydantic import BaseModel

from src.maternity.config import settings
from src.maternity.domain.models.medical_record import FilePermissions, MedicalRecord, RecordCategory
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import PermissionDeniedError
from src.maternity.security import ensure_self_or_staff, ensure_staff, get_api_key, get_current_user
from src.maternity.services.audit.service import audit_service
from src.maternity.services.records.service import medical_record_service

router = APIRouter(
    prefix="/records",
    tags=["medical-records"],
    dependencies=[Depends(get_api_key)],
)

ALLOWED_CONTENT_PREFIXES = ("image/", "text/", "application/pdf", "application/dicom")


class RecordUpdateRequest(BaseModel):
    file_name: Optional[str] = None
    category: Optional[RecordCategory] = None
    tags: Optional[List[str]] = None
    description: Optional[str] = None
    is_confidential: Optional[bool] = None


def _ensure_can_modify(user: User, record: MedicalRecord) -> None:
    if user.is_staff or user.id == record.uploaded_by:
        return
    raise PermissionDeniedError("Only staff or the uploader can modify this record")


@router.post("/", response_model=MedicalRecord, status_code=status.HTTP_201_CREATED)
async def upload_record(
    file: UploadFile = File(...),
    patient_id: str = Form(...),
    institution_id: Optional[str] = Form(None),
    category: RecordCategory = Form(RecordCategory.OTHER),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="Comma-separated tags"),
    is_confidential: bool = Form(False),
    current_user: User = Depends(get_current_user),
) -> MedicalRecord:
    ensure_self_or_staff(current_user, patient_id)

    content_type = file.content_type or "application/octet-stream"
    if not content_type.startswith(ALLOWED_CONTENT_PREFIXES):
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail="Unsupported file type; expected an image, PDF or text document.",
        )

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Uploaded file too large.",
        )

    record = medical_record_service.upload_record(
        content=content,
        patient_id=patient_id,
        uploaded_by=current_user.id,
        file_name=file.filename or "upload",
        file_type=content_type,
        institution_id=institution_id or current_user.institution_id,
        category=category,
        tags=[t.strip() for t in tags.split(",") if t.strip()] if tags else [],
        description=description,
        is_confidential=is_confidential,
    )

    audit_service.log_event(
        action="upload_medical_record",
        resource_type="medical_record",
        resource_id=record.id,
        user=current_user,
        extra={"patient_id": patient_id, "size_bytes": record.file_size, "confidential": is_confidential},
    )
    return record


@router.get("/", response_model=List[MedicalRecord])
async def list_records(
    patient_id: Optional[str] = None,
    institution_id: Optional[str] = None,
    category: Optional[RecordCategory] = None,
    current_user: User = Depends(get_current_user),
) -> List[MedicalRecord]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    if patient_id is not None:
        records = medical_record_service.list_for_patient(patient_id, user=current_user, category=category)
    else:
        ensure_staff(current_user)
        target = institution_id or current_user.institution_id
        if not target:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="patient_id or institution_id is required",
            )
        records = medical_record_service.list_for_institution(target, category=category)

    audit_service.log_event(
        action="list_medical_records",
        resource_type="medical_record",
        user=current_user,
        extra={"count": len(records)},
    )
    return records


@router.get("/search", response_model=List[MedicalRecord])
async def search_records(
    term: str,
    patient_id: Optional[str] = None,
    institution_id: Optional[str] = None,
    current_user: User = Depends(get_current_user),
) -> List[MedicalRecord]:
    if current_user.role == UserRole.PATIENT:
        patient_id = current_user.id
    return medical_record_service.search(term, user=current_user, patient_id=patient_id, institution_id=institution_id)


@router.get("/{record_id}", response_model=MedicalRecord)
async def get_record(record_id: str, current_user: User = Depends(get_current_user)) -> MedicalRecord:
    record = medical_record_service.get_record(record_id, user=current_user)
    audit_service.log_event(action="get_medical_record", resource_type="medical_record", resource_id=record_id, user=current_user)
    return record


@router.get("/{record_id}/content")
async def download_record(record_id: str, current_user: User = Depends(get_current_user)) -> Response:
    record = medical_record_service.get_record(record_id, user=current_user)
    content = medical_record_service.read_content(record_id, user=current_user)
    audit_service.log_event(
        action="download_medical_record",
        resource_type="medical_record",
        resource_id=record_id,
        user=current_user,
    )
    return Response(
        content=content,
        media_type=record.file_type,
        headers={"Content-Disposition": f'attachment; filename="{record.file_name}"'},
    )


@router.patch("/{record_id}", response_model=MedicalRecord)
async def update_record(
    record_id: str,
    payload: RecordUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> MedicalRecord:
    _ensure_can_modify(current_user, medical_record_service.get_record(record_id, user=current_user))
    record = medical_record_service.update_metadata(record_id, payload.model_dump(exclude_unset=True))
    audit_service.log_event(
        action="update_medical_record",
        resource_type="medical_record",
        resource_id=record_id,
        user=current_user,
        extra={"version": record.version},
    )
    return record


@router.put("/{record_id}/permissions", response_model=MedicalRecord)
async def update_record_permissions(
    record_id: str,
    payload: FilePermissions,
    current_user: User = Depends(get_current_user),
) -> MedicalRecord:
    _ensure_can_modify(current_user, medical_record_service.get_record(record_id, user=current_user))
    record = medical_record_service.update_permissions(record_id, payload)
    audit_service.log_event(
        action="update_medical_record_permissions",
        resource_type="medical_record",
        resource_id=record_id,
        user=current_user,
        extra={"viewers": len(payload.view)},
    )
    return record


@router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(record_id: str, current_user: User = Depends(get_current_user)) -> Response:
    _ensure_can_modify(current_user, medical_record_service.get_record(record_id, user=current_user))
    medical_record_service.delete_record(record_id)
    audit_service.log_event(action="delete_medical_record", resource_type="medical_record", resource_id=record_id, user=current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
