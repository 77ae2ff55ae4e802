from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.config import settings
from src.maternity.main import app


async def test_api_key_required_when_auth_enabled(monkeypatch):
    monkeypatch.setattr(settings, "enable_api_auth", True)
    monkeypatch.setattr(settings, "api_keys", "k1, k2")

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        missing = await ac.get("/api/v1/patients/")
        assert missing.status_code == status.HTTP_401_UNAUTHORIZED
        body = missing.json()["error"]
        assert body["code"] == "not_authenticated"
        assert body["request_id"]

        wrong = await ac.get("/api/v1/patients/", headers={"X-API-Key": "nope"})
        assert wrong.status_code == status.HTTP_401_UNAUTHORIZED

        # Known keys resolve to a provider account.
        ok = await ac.get("/api/v1/patients/", headers={"X-API-Key": "k2"})
        assert ok.status_code == status.HTTP_200_OK

        health = await ac.get("/api/v1/health")
        assert health.status_code == status.HTTP_200_OK


async def test_auth_enabled_without_keys_rejects(monkeypatch):
    monkeypatch.setattr(settings, "enable_api_auth", True)
    monkeypatch.setattr(settings, "api_keys", None)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/tasks/", headers={"X-API-Key": "k1"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_request_id_is_echoed_in_errors():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/appointments/missing", headers={"X-Request-ID": "req-123"})

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == {
        "code": "not_found",
        "message": "Appointment not found",
        "details": None,
        "request_id": "req-123",
    }
