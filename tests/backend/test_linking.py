import threading
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from fastapi import status

from src.maternity.domain.models.common import new_id, utcnow
from src.maternity.domain.models.institution import StaffMember, StaffRole
from src.maternity.domain.models.patient_link import LinkStatus, LinkType
from src.maternity.errors import ConflictError, NotFoundError
from src.maternity.infra.db.inmemory import store
from src.maternity.main import app
from src.maternity.services.linking import service as linking_module
from src.maternity.services.linking.service import build_link_code, patient_link_service


def test_link_code_format():
    code = build_link_code("QR", "inst-9")
    prefix, institution_id, millis, suffix = code.split("_")
    assert prefix == "QR"
    assert institution_id == "inst-9"
    assert millis.isdigit()
    assert len(suffix) == 9 and suffix.isalnum() and suffix == suffix.lower()


def test_generate_qr_code_is_pending_with_expiry():
    institution_id = new_id()
    link = patient_link_service.generate_qr_code(institution_id, created_by="staff-1")

    assert link.link_code.startswith(f"QR_{institution_id}_")
    assert link.link_type == LinkType.QR
    assert link.status == LinkStatus.PENDING
    assert link.patient_id is None
    assert link.expires_at is not None and link.expires_at > utcnow()
    assert link.metadata.tags == ["qr_generated"]


def test_redeem_activates_link_once():
    institution_id = new_id()
    link = patient_link_service.generate_referral_code(institution_id, referrer_id="doc-1")
    assert link.link_code.startswith("REF_")

    redeemed = patient_link_service.validate_and_link(link.link_code, "pat-link-1")
    assert redeemed.status == LinkStatus.ACTIVE
    assert redeemed.patient_id == "pat-link-1"
    assert patient_link_service.active_institution_ids("pat-link-1") >= {institution_id}

    with pytest.raises(ConflictError):
        patient_link_service.validate_and_link(link.link_code, "pat-link-2")

    stored = patient_link_service.get_link(link.id)
    assert stored.patient_id == "pat-link-1"


def test_unknown_code_is_not_found():
    with pytest.raises(NotFoundError):
        patient_link_service.validate_and_link("QR_nope_0_aaaaaaaaa", "pat-x")


def test_expired_code_is_rejected_and_deactivated():
    link = patient_link_service.generate_qr_code(new_id())
    link.expires_at = utcnow() - timedelta(minutes=1)
    store.patient_links.save(link)

    with pytest.raises(ConflictError):
        patient_link_service.validate_and_link(link.link_code, "pat-late")

    assert patient_link_service.get_link(link.id).status == LinkStatus.INACTIVE


def test_manual_link_cannot_be_activated_without_patient_and_revoke_twice_conflicts():
    qr = patient_link_service.generate_qr_code(new_id())
    with pytest.raises(ConflictError):
        patient_link_service.update_link(qr.id, status=LinkStatus.ACTIVE)

    manual = patient_link_service.create_link(patient_id="pat-man", institution_id=new_id(), created_by="staff-2")
    assert manual.link_type == LinkType.MANUAL
    assert manual.status == LinkStatus.PENDING
    activated = patient_link_service.update_link(manual.id, status=LinkStatus.ACTIVE, notes="walk-in")
    assert activated.metadata.notes == "walk-in"

    patient_link_service.revoke_link(manual.id)
    with pytest.raises(ConflictError):
        patient_link_service.revoke_link(manual.id)


def test_care_team_includes_active_doctors_and_nurses_only():
    institution_id = new_id()
    patient_id = new_id()
    store.staff.save(StaffMember(institution_id=institution_id, user_id="doc-care", role=StaffRole.DOCTOR))
    store.staff.save(StaffMember(institution_id=institution_id, user_id="nurse-care", role=StaffRole.NURSE))
    store.staff.save(StaffMember(institution_id=institution_id, user_id="admin-care", role=StaffRole.ADMIN))

    link = patient_link_service.generate_qr_code(institution_id)
    assert patient_link_service.care_team_user_ids(patient_id) == set()

    patient_link_service.validate_and_link(link.link_code, patient_id)
    assert patient_link_service.care_team_user_ids(patient_id) == {"doc-care", "nurse-care"}


async def test_link_flow_via_api():
    institution_id = new_id()
    staff_headers = {"X-User-ID": "inst-admin", "X-User-Role": "institution", "X-Institution-ID": institution_id}
    patient_headers = {"X-User-ID": "pat-api-link", "X-User-Role": "patient"}

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        create_resp = await ac.post("/api/v1/links/qr", json={}, headers=staff_headers)
        assert create_resp.status_code == status.HTTP_201_CREATED
        code = create_resp.json()["link_code"]

        forbidden = await ac.post("/api/v1/links/qr", json={}, headers=patient_headers)
        assert forbidden.status_code == status.HTTP_403_FORBIDDEN
        assert forbidden.json()["error"]["code"] == "permission_denied"

        redeem_resp = await ac.post("/api/v1/links/redeem", json={"link_code": code}, headers=patient_headers)
        assert redeem_resp.status_code == status.HTTP_200_OK
        assert redeem_resp.json()["status"] == "active"
        assert redeem_resp.json()["patient_id"] == "pat-api-link"

        again = await ac.post("/api/v1/links/redeem", json={"link_code": code}, headers=patient_headers)
        assert again.status_code == status.HTTP_409_CONFLICT
        assert again.json()["error"]["message"] == "Invalid or expired link code"

        missing = await ac.post("/api/v1/links/redeem", json={"link_code": "QR_x_1_abc"}, headers=patient_headers)
        assert missing.status_code == status.HTTP_404_NOT_FOUND
        assert missing.json()["error"]["code"] == "not_found"
        assert missing.json()["error"]["request_id"]

        mine = await ac.get("/api/v1/links/", headers=patient_headers)
        assert [link["link_code"] for link in mine.json()] == [code]

        institution_links = await ac.get("/api/v1/links/", params={"status": "active"}, headers=staff_headers)
        assert [link["link_code"] for link in institution_links.json()] == [code]


def _race(*calls):
    """Run the callables on separate threads released together; return (results, errors)."""

    barrier = threading.Barrier(len(calls))
    results, errors = [], []

    def run(call):
        barrier.wait()
        try:
            results.append(call())
        except ConflictError as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run, args=(call,)) for call in calls]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results, errors


def test_concurrent_redemptions_of_one_code_link_a_single_patient():
    link = patient_link_service.generate_qr_code(new_id())

    results, errors = _race(
        lambda: patient_link_service.validate_and_link(link.link_code, "pat-race-1"),
        lambda: patient_link_service.validate_and_link(link.link_code, "pat-race-2"),
    )

    assert len(results) == 1
    assert len(errors) == 1
    assert patient_link_service.get_link(link.id).patient_id == results[0].patient_id


def test_revoke_racing_a_redemption_keeps_the_redeeming_patient():
    link = patient_link_service.generate_qr_code(new_id())

    results, _ = _race(
        lambda: patient_link_service.validate_and_link(link.link_code, "pat-race-3"),
        lambda: patient_link_service.revoke_link(link.id),
    )

    stored = patient_link_service.get_link(link.id)
    redeemed = any(r.patient_id == "pat-race-3" for r in results)
    assert stored.status == LinkStatus.REVOKED
    assert stored.patient_id == ("pat-race-3" if redeemed else None)


def test_code_generation_retries_on_collision(monkeypatch):
    institution_id = new_id()
    taken = patient_link_service.generate_qr_code(institution_id).link_code
    codes = iter([taken, f"QR_{institution_id}_1_fresh0000"])
    monkeypatch.setattr(linking_module, "build_link_code", lambda prefix, inst: next(codes))

    link = patient_link_service.generate_qr_code(institution_id)

    assert link.link_code == f"QR_{institution_id}_1_fresh0000"


def test_code_generation_gives_up_after_repeated_collisions(monkeypatch):
    institution_id = new_id()
    taken = patient_link_service.generate_qr_code(institution_id).link_code
    calls = []

    def always_taken(prefix, inst):
        calls.append(prefix)
        return taken

    monkeypatch.setattr(linking_module, "build_link_code", always_taken)

    with pytest.raises(ConflictError):
        patient_link_service.generate_qr_code(institution_id)
    assert len(calls) == linking_module._MAX_CODE_ATTEMPTS
