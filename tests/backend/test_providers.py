import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.common import new_id
from src.maternity.domain.models.messaging import NotificationType
from src.maternity.domain.models.provider import ProviderAccount, ProviderStatus
from src.maternity.errors import ConflictError, DomainValidationError, NotFoundError
from src.maternity.main import app
from src.maternity.services.messaging.service import notification_service
from src.maternity.services.providers.service import provider_service


def _register(**overrides):
    fields = {"id": new_id(), "name": "Dr. Mensah", "email": "mensah@example.com", "license_number": "LIC-1"}
    fields.update(overrides)
    return provider_service.register_provider(ProviderAccount(**fields))


def test_registration_always_starts_pending():
    account = _register(status=ProviderStatus.ACTIVE, approved_by="self")

    assert account.status == ProviderStatus.PENDING_APPROVAL
    assert account.approved_by is None
    assert account.id in [a.id for a in provider_service.list_pending()]

    with pytest.raises(ConflictError):
        _register(id=account.id)


def test_approve_activates_and_notifies_provider():
    account = _register()

    approved = provider_service.approve(account.id, admin_id="admin-1")

    assert approved.status == ProviderStatus.ACTIVE
    assert approved.approved_by == "admin-1"
    assert approved.approved_at is not None
    assert account.id not in [a.id for a in provider_service.list_pending()]
    assert [n.type for n in notification_service.list_for_user(account.id)] == [NotificationType.ACCOUNT]

    with pytest.raises(ConflictError):
        provider_service.approve(account.id, admin_id="admin-1")
    with pytest.raises(ConflictError):
        provider_service.reject(account.id, admin_id="admin-1", reason="Too late")


def test_reject_requires_reason_and_a_pending_account():
    account = _register()

    with pytest.raises(DomainValidationError):
        provider_service.reject(account.id, admin_id="admin-1", reason="  ")

    rejected = provider_service.reject(account.id, admin_id="admin-1", reason="License could not be verified")
    assert rejected.status == ProviderStatus.REJECTED
    assert rejected.rejection_reason == "License could not be verified"

    with pytest.raises(ConflictError):
        provider_service.reject(account.id, admin_id="admin-1", reason="Again")
    with pytest.raises(NotFoundError):
        provider_service.approve(new_id(), admin_id="admin-1")


async def test_provider_approval_flow_via_api():
    provider_id = new_id()
    provider_headers = {"X-User-ID": provider_id, "X-User-Role": "provider"}
    admin_headers = {"X-User-ID": "admin-1", "X-User-Role": "admin"}

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        created = await ac.post(
            "/api/v1/providers/",
            json={"name": "Dr. Osei", "email": "osei@example.com", "license_number": "LIC-9"},
            headers=provider_headers,
        )
        assert created.status_code == status.HTTP_201_CREATED
        assert created.json()["status"] == "pending_approval"

        own = await ac.get(f"/api/v1/providers/{provider_id}", headers=provider_headers)
        assert own.status_code == status.HTTP_200_OK

        forbidden = await ac.get("/api/v1/providers/pending", headers=provider_headers)
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN
        self_approve = await ac.post(f"/api/v1/providers/{provider_id}/approve", headers=provider_headers)
        assert self_approve.status_code == status.HTTP_403_FORBIDDEN

        pending = await ac.get("/api/v1/providers/pending", headers=admin_headers)
        assert provider_id in [p["id"] for p in pending.json()]

        approved = await ac.post(f"/api/v1/providers/{provider_id}/approve", headers=admin_headers)
        assert approved.status_code == status.HTTP_200_OK
        assert approved.json()["status"] == "active"

        late_reject = await ac.post(
            f"/api/v1/providers/{provider_id}/reject",
            json={"reason": "Changed our mind"},
            headers=admin_headers,
        )
        assert late_reject.status_code == status.HTTP_409_CONFLICT
        assert late_reject.json()["error"]["code"] == "conflict"

        active = await ac.get("/api/v1/providers/", params={"status": "active"}, headers=admin_headers)
        assert provider_id in [p["id"] for p in active.json()]
