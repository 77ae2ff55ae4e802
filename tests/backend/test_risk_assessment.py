from datetime import datetime, timedelta, timezone

import pytest

from src.maternity.domain.models.patient import KickSession, RiskLevel
from src.maternity.domain.models.risk import SymptomSeverity
from src.maternity.services.risk.assessment import (
    RiskAssessmentService,
    assess_fetal_risk,
    extract_json_object,
    should_notify_doctor,
)
from src.maternity.services.risk.backends import DemoRiskLLMBackend

NOW = datetime(2030, 3, 1, 12, 0, tzinfo=timezone.utc)


def _sessions(*counts, hours_ago=1):
    return [
        KickSession(patient_id="pat-risk", date=NOW - timedelta(hours=hours_ago), kick_count=count, duration=60)
        for count in counts
    ]


class StaticBackend:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        return self.reply


class FailingBackend:
    def complete(self, prompt):
        raise RuntimeError("model unavailable")


@pytest.mark.parametrize(
    ("counts", "expected"),
    [
        ((2, 3), RiskLevel.HIGH),
        ((4, 5), RiskLevel.HIGH),
        ((5,), RiskLevel.MEDIUM),
        ((8, 9), RiskLevel.MEDIUM),
        ((10,), RiskLevel.LOW),
        ((12, 15), RiskLevel.LOW),
    ],
)
def test_threshold_assessment_uses_mean_of_recent_sessions(counts, expected):
    assert assess_fetal_risk(_sessions(*counts), now=NOW) == expected


def test_no_sessions_is_medium_risk():
    assert assess_fetal_risk([], now=NOW) == RiskLevel.MEDIUM


def test_sessions_outside_window_are_ignored():
    old = _sessions(1, 1, hours_ago=30)
    assert assess_fetal_risk(old, now=NOW) == RiskLevel.MEDIUM

    mixed = old + _sessions(12)
    assert assess_fetal_risk(mixed, now=NOW) == RiskLevel.LOW


def test_window_boundary_is_inclusive():
    at_boundary = KickSession(patient_id="pat-risk", date=NOW - timedelta(hours=24), kick_count=2, duration=60)
    just_outside = KickSession(
        patient_id="pat-risk",
        date=NOW - timedelta(hours=24, microseconds=1),
        kick_count=2,
        duration=60,
    )

    assert assess_fetal_risk([at_boundary], now=NOW, window_hours=24) == RiskLevel.HIGH
    assert assess_fetal_risk([just_outside], now=NOW, window_hours=24) == RiskLevel.MEDIUM


def test_window_can_be_overridden():
    sessions = _sessions(2, hours_ago=30)
    assert assess_fetal_risk(sessions, now=NOW, window_hours=48) == RiskLevel.HIGH


def test_should_notify_doctor_only_on_increase():
    assert should_notify_doctor(RiskLevel.LOW, RiskLevel.HIGH)
    assert should_notify_doctor("medium", "high")
    assert not should_notify_doctor(RiskLevel.HIGH, RiskLevel.HIGH)
    assert not should_notify_doctor(RiskLevel.HIGH, RiskLevel.LOW)


def test_extract_json_object_from_chatty_reply():
    reply = 'Here is my answer:\n```json\n{"risk": "low", "confidence": 88}\n```'
    assert extract_json_object(reply) == {"risk": "low", "confidence": 88}
    assert extract_json_object("no json here") is None
    assert extract_json_object("{not json}") is None


def test_ai_assessment_parses_model_json():
    backend = StaticBackend(
        '{"risk": "medium", "confidence": 82, "analysis": "Activity slightly low.", '
        '"recommendations": ["Count again tonight"], "shouldConsultDoctor": false}'
    )
    service = RiskAssessmentService(backend=backend)

    result = service.assess_fetal_risk_with_ai(_sessions(12), gestational_age=32, now=NOW)

    assert result.risk == RiskLevel.MEDIUM
    assert result.confidence == 82
    assert result.recommendations == ["Count again tonight"]
    assert result.should_consult_doctor is False
    assert "32 weeks" in backend.prompts[0]


def test_ai_assessment_unknown_risk_falls_back_to_threshold():
    service = RiskAssessmentService(backend=StaticBackend('{"risk": "critical", "confidence": true}'))

    result = service.assess_fetal_risk_with_ai(_sessions(2), now=NOW)

    assert result.risk == RiskLevel.HIGH
    assert result.confidence == 70
    assert result.should_consult_doctor is True


def test_ai_assessment_without_json_uses_canned_analysis():
    service = RiskAssessmentService(backend=DemoRiskLLMBackend())

    result = service.assess_fetal_risk_with_ai(_sessions(12), now=NOW)

    assert result.risk == RiskLevel.LOW
    assert result.confidence == 70
    assert "within normal ranges" in result.analysis
    assert result.should_consult_doctor is False


def test_ai_assessment_backend_failure_degrades_to_threshold():
    service = RiskAssessmentService(backend=FailingBackend())

    result = service.assess_fetal_risk_with_ai(_sessions(3), now=NOW)

    assert result.risk == RiskLevel.HIGH
    assert result.confidence == 50
    assert "AI analysis unavailable" in result.analysis


def test_symptom_analysis_fallbacks():
    no_json = RiskAssessmentService(backend=DemoRiskLLMBackend())
    severe = no_json.analyze_symptoms_with_ai(["headache", "blurred vision"], severity=SymptomSeverity.SEVERE)
    assert severe.urgency == RiskLevel.HIGH
    assert severe.should_seek_care is True

    mild = no_json.analyze_symptoms_with_ai(["nausea"], severity=SymptomSeverity.MILD)
    assert mild.urgency == RiskLevel.LOW
    assert mild.should_seek_care is False

    failing = RiskAssessmentService(backend=FailingBackend())
    result = failing.analyze_symptoms_with_ai(["cramps"])
    assert result.urgency == RiskLevel.MEDIUM
    assert result.should_seek_care is True


def test_symptom_analysis_parses_model_json():
    service = RiskAssessmentService(
        backend=StaticBackend('{"urgency": "HIGH", "analysis": "See a doctor", "shouldSeekCare": true}')
    )
    result = service.analyze_symptoms_with_ai(["bleeding"], gestational_age=30)
    assert result.urgency == RiskLevel.HIGH
    assert result.should_seek_care is True
    assert result.recommendations == []
