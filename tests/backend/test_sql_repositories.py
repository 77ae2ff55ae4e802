from datetime import datetime, timezone

from src.maternity.domain.models.appointment import Appointment, AppointmentStatus, AppointmentType
from src.maternity.domain.models.patient import Patient, RiskLevel
from src.maternity.infra.db.bootstrap import init_sql_repositories
from src.maternity.infra.db.inmemory import RepositoryRegistry
from src.maternity.infra.db.sql_documents import SqlDocumentRepository


def _registry(tmp_path) -> RepositoryRegistry:
    registry = RepositoryRegistry()
    assert init_sql_repositories(f"sqlite:///{tmp_path / 'maternity.db'}", registry=registry, force=True)
    return registry


def test_bootstrap_is_noop_when_disabled():
    registry = RepositoryRegistry()
    assert init_sql_repositories(registry=registry) is False
    assert not isinstance(registry.patients, SqlDocumentRepository)


def test_documents_round_trip(tmp_path):
    registry = _registry(tmp_path)
    scheduled = datetime(2030, 1, 7, 9, 30, tzinfo=timezone.utc)
    appointment = Appointment(
        patient_id="p-sql",
        doctor_id="doc-sql",
        scheduled_time=scheduled,
        type=AppointmentType.VIRTUAL,
    )

    registry.appointments.save(appointment)
    loaded = registry.appointments.get(appointment.id)

    assert loaded == appointment
    assert loaded.scheduled_time.tzinfo is not None
    assert loaded.type is AppointmentType.VIRTUAL


def test_save_overwrites_and_filters_apply(tmp_path):
    registry = _registry(tmp_path)
    patient = Patient(id="p-sql-1", name="Amina")
    registry.patients.save(patient)
    registry.patients.save(Patient(id="p-sql-2", name="Beth", risk_level=RiskLevel.HIGH))

    patient.risk_level = RiskLevel.MEDIUM
    registry.patients.save(patient)

    assert registry.patients.get("p-sql-1").risk_level == RiskLevel.MEDIUM
    assert [p.id for p in registry.patients.list_by_filters(risk_level=RiskLevel.HIGH)] == ["p-sql-2"]
    assert len(list(registry.patients.list_by_filters(risk_level=None))) == 2
    # Collections do not leak into each other.
    assert list(registry.appointments.list_by_filters(status=AppointmentStatus.PENDING)) == []


def test_delete(tmp_path):
    registry = _registry(tmp_path)
    registry.patients.save(Patient(id="p-sql-del", name="Chloe"))

    assert registry.patients.delete("p-sql-del") is True
    assert registry.patients.get("p-sql-del") is None
    assert registry.patients.delete("p-sql-del") is False
