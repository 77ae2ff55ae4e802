from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.config import settings
from src.maternity.domain.models.common import new_id
from src.maternity.domain.models.medical_record import FilePermissions, RecordCategory
from src.maternity.domain.models.user import User, UserRole
from src.maternity.errors import DomainValidationError, NotFoundError, PermissionDeniedError
from src.maternity.infra.storage.records import LocalRecordStorageBackend
from src.maternity.main import app
from src.maternity.services.records.service import medical_record_service


@pytest.fixture(autouse=True)
def tmp_record_storage(tmp_path, monkeypatch):
    monkeypatch.setattr(medical_record_service, "_storage", LocalRecordStorageBackend(tmp_path))
    return tmp_path


def _user(user_id, role=UserRole.PATIENT):
    return User(id=user_id, email="someone@example.com", role=role)


def _upload(patient_id, **kwargs):
    defaults = {
        "content": b"%PDF-1.4 scan",
        "patient_id": patient_id,
        "uploaded_by": "doc-records",
        "file_name": "../scan.pdf",
        "file_type": "application/pdf",
    }
    defaults.update(kwargs)
    return medical_record_service.upload_record(**defaults)


def test_upload_stores_blob_and_metadata(tmp_record_storage):
    patient_id = new_id()
    record = _upload(patient_id, category=RecordCategory.ULTRASOUND, tags=["20-week"])

    assert record.file_name == "scan.pdf"
    assert record.file_size == len(b"%PDF-1.4 scan")
    assert record.version == 1
    assert record.storage_url.startswith(str(tmp_record_storage.resolve()))
    assert medical_record_service.read_content(record.id, user=_user(patient_id)) == b"%PDF-1.4 scan"


def test_confidential_records_need_explicit_view_permission():
    patient_id = new_id()
    public = _upload(patient_id)
    secret = _upload(patient_id, is_confidential=True)
    assert secret.access_permissions.view == ["doc-records"]

    patient = _user(patient_id)
    assert [r.id for r in medical_record_service.list_for_patient(patient_id, user=patient)] == [public.id]
    with pytest.raises(PermissionDeniedError):
        medical_record_service.get_record(secret.id, user=patient)
    with pytest.raises(PermissionDeniedError):
        medical_record_service.read_content(secret.id, user=patient)

    staff = _user("nurse-1", UserRole.PROVIDER)
    assert {r.id for r in medical_record_service.list_for_patient(patient_id, user=staff)} == {public.id, secret.id}

    medical_record_service.update_permissions(secret.id, FilePermissions(view=[patient_id]))
    assert medical_record_service.get_record(secret.id, user=patient).last_accessed is not None

    stranger = _user("stranger")
    with pytest.raises(PermissionDeniedError):
        medical_record_service.get_record(public.id, user=stranger)


def test_storage_key_ignores_patient_id_path_segments(tmp_record_storage):
    record = _upload("../../escaped", file_name="a.pdf")

    stored = Path(record.storage_url)
    assert stored.parent == tmp_record_storage.resolve()
    assert stored.name == f"{record.id}_a.pdf"
    assert not (tmp_record_storage.parent.parent / "escaped").exists()


def test_local_storage_rejects_paths_outside_base(tmp_path):
    backend = LocalRecordStorageBackend(tmp_path / "base")

    with pytest.raises(DomainValidationError):
        backend.save_file(b"x", key="../outside.pdf")
    with pytest.raises(DomainValidationError):
        backend.read_file(str(tmp_path / "outside.pdf"))
    assert not (tmp_path / "outside.pdf").exists()


def test_update_metadata_bumps_version():
    record = _upload(new_id())
    updated = medical_record_service.update_metadata(
        record.id,
        {"description": "Anatomy scan", "category": RecordCategory.ULTRASOUND, "storage_url": "elsewhere"},
    )
    assert updated.version == 2
    assert updated.description == "Anatomy scan"
    assert updated.storage_url == record.storage_url


def test_search_and_delete_removes_blob(tmp_record_storage):
    patient_id = new_id()
    record = _upload(patient_id, description="Glucose tolerance test", tags=["lab"])
    _upload(patient_id, file_name="other.pdf")
    staff = _user("doc-search", UserRole.PROVIDER)

    assert [r.id for r in medical_record_service.search("GLUCOSE", user=staff, patient_id=patient_id)] == [record.id]
    assert [r.id for r in medical_record_service.search("lab", user=staff, patient_id=patient_id)] == [record.id]

    medical_record_service.delete_record(record.id)
    assert not any(tmp_record_storage.rglob(f"{record.id}_*"))
    with pytest.raises(NotFoundError):
        medical_record_service.get_record(record.id, user=staff)


async def test_upload_via_api_enforces_type_and_size(monkeypatch):
    patient_id = new_id()
    headers = {"X-User-ID": patient_id, "X-User-Role": "patient"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        ok = await ac.post(
            "/api/v1/records/",
            data={"patient_id": patient_id, "category": "lab_results", "tags": "blood, iron"},
            files={"file": ("labs.pdf", b"%PDF-1.4 labs", "application/pdf")},
            headers=headers,
        )
        assert ok.status_code == status.HTTP_201_CREATED
        body = ok.json()
        assert body["tags"] == ["blood", "iron"]
        assert body["uploaded_by"] == patient_id

        content = await ac.get(f"/api/v1/records/{body['id']}/content", headers=headers)
        assert content.content == b"%PDF-1.4 labs"

        wrong_type = await ac.post(
            "/api/v1/records/",
            data={"patient_id": patient_id},
            files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
            headers=headers,
        )
        assert wrong_type.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE

        monkeypatch.setattr(settings, "max_upload_bytes", 4)
        too_big = await ac.post(
            "/api/v1/records/",
            data={"patient_id": patient_id},
            files={"file": ("big.txt", b"0123456789", "text/plain")},
            headers=headers,
        )
        assert too_big.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
        assert too_big.json()["error"]["code"] == "payload_too_large"

        other_patient = await ac.post(
            "/api/v1/records/",
            data={"patient_id": "someone-else"},
            files={"file": ("a.txt", b"a", "text/plain")},
            headers=headers,
        )
        assert other_patient.status_code == status.HTTP_403_FORBIDDEN
