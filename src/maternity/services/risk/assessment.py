from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from src.maternity.config import settings
from src.maternity.domain.models.common import ensure_utc, utcnow
from src.maternity.domain.models.patient import KickSession, RiskLevel
from src.maternity.domain.models.risk import (
    AIRiskAssessment,
    MaternalFactors,
    SymptomAnalysis,
    SymptomSeverity,
)
from src.maternity.services.risk.backends import RiskLLMBackend, get_risk_llm_backend_from_env

logger = logging.getLogger("risk")

# Mean kicks per session in the recent window.
HIGH_RISK_BELOW = 5
MEDIUM_RISK_BELOW = 10

# Number of most recent sessions included in an AI prompt.
PROMPT_SESSION_LIMIT = 10

_RISK_ORDER = {RiskLevel.LOW: 1, RiskLevel.MEDIUM: 2, RiskLevel.HIGH: 3}
_JSON_BLOB = re.compile(r"\{[\s\S]*\}")


def assess_fetal_risk(
    kick_sessions: Sequence[KickSession],
    now: Optional[datetime] = None,
    window_hours: Optional[int] = None,
) -> RiskLevel:
    """Classify fetal risk from the mean kick count of recent sessions.

    With no sessions at all, or none inside the window, the result is
    ``medium``: absence of data is neither reassuring nor alarming.
    """

    if not kick_sessions:
        return RiskLevel.MEDIUM

    reference = ensure_utc(now) if now is not None else utcnow()
    hours = settings.risk_window_hours if window_hours is None else window_hours
    cutoff = reference - timedelta(hours=hours)

    recent = [s for s in kick_sessions if s.date >= cutoff]
    if not recent:
        return RiskLevel.MEDIUM

    average = sum(s.kick_count for s in recent) / len(recent)
    if average < HIGH_RISK_BELOW:
        return RiskLevel.HIGH
    if average < MEDIUM_RISK_BELOW:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def should_notify_doctor(current_risk: RiskLevel | str, new_risk: RiskLevel | str) -> bool:
    """Return True only when the risk level strictly increases."""

    return _RISK_ORDER[RiskLevel(new_risk)] > _RISK_ORDER[RiskLevel(current_risk)]


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """Pull the outermost ``{...}`` blob out of a model reply.

    Returns None when there is no blob or it does not decode to an object.
    """

    match = _JSON_BLOB.search(text or "")
    if match is None:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _coerce_level(value: Any, default: RiskLevel) -> RiskLevel:
    if isinstance(value, str):
        try:
            return RiskLevel(value.strip().lower())
        except ValueError:
            return default
    return default


def _coerce_confidence(value: Any, default: float) -> float:
    # bool is an int subclass; a model answering `true` is not a confidence.
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not value:
        return default
    return float(value)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


_FALLBACK_ACTIVITY = {
    RiskLevel.LOW: "within normal ranges",
    RiskLevel.MEDIUM: "borderline",
    RiskLevel.HIGH: "below expected levels",
}

_SEVERITY_URGENCY = {
    SymptomSeverity.SEVERE: RiskLevel.HIGH,
    SymptomSeverity.MODERATE: RiskLevel.MEDIUM,
    SymptomSeverity.MILD: RiskLevel.LOW,
}


class RiskAssessmentService:
    """AI-assisted wrappers around the threshold assessment.

    The LLM is advisory only: every failure mode (backend error, reply without
    JSON, malformed fields) degrades to the deterministic thresholds.
    """

    def __init__(self, backend: Optional[RiskLLMBackend] = None) -> None:
        self._backend = backend or get_risk_llm_backend_from_env()

    def _build_kick_prompt(
        self,
        kick_sessions: Sequence[KickSession],
        gestational_age: Optional[int],
        maternal_factors: Optional[MaternalFactors],
        basic_risk: RiskLevel,
    ) -> str:
        latest = sorted(kick_sessions, key=lambda s: s.date)[-PROMPT_SESSION_LIMIT:]
        session_data = [
            {"date": s.date.isoformat(), "kicks": s.kick_count, "duration": s.duration}
            for s in latest
        ]
        factors = maternal_factors.model_dump() if maternal_factors is not None else {}
        return (
            "Analyze fetal health based on kick count data and provide a comprehensive assessment.\n\n"
            "Patient Data:\n"
            f"- Gestational Age: {gestational_age or 'Unknown'} weeks\n"
            f"- Recent Kick Sessions: {json.dumps(session_data, indent=2)}\n"
            f"- Maternal Factors: {json.dumps(factors, indent=2)}\n\n"
            f"Current Basic Risk Assessment: {basic_risk.value}\n\n"
            "Please provide:\n"
            "1. Overall risk level (low/medium/high)\n"
            "2. Confidence percentage (0-100)\n"
            "3. Detailed analysis explaining the assessment\n"
            "4. Specific recommendations for the patient\n"
            "5. Whether immediate medical consultation is needed\n\n"
            "Format your response as JSON with keys: risk, confidence, analysis, "
            "recommendations, shouldConsultDoctor\n"
        )

    def assess_fetal_risk_with_ai(
        self,
        kick_sessions: Sequence[KickSession],
        *,
        gestational_age: Optional[int] = None,
        maternal_factors: Optional[MaternalFactors] = None,
        now: Optional[datetime] = None,
    ) -> AIRiskAssessment:
        basic_risk = assess_fetal_risk(kick_sessions, now=now)

        try:
            prompt = self._build_kick_prompt(kick_sessions, gestational_age, maternal_factors, basic_risk)
            reply = self._backend.complete(prompt)
        except Exception:
            logger.exception("AI risk assessment failed; using threshold assessment")
            return AIRiskAssessment(
                risk=basic_risk,
                confidence=50,
                analysis="Basic risk assessment completed. AI analysis unavailable.",
                recommendations=["Continue regular monitoring", "Consult healthcare provider for concerns"],
                should_consult_doctor=basic_risk == RiskLevel.HIGH,
            )

        parsed = extract_json_object(reply)
        if parsed is not None:
            return AIRiskAssessment(
                risk=_coerce_level(parsed.get("risk"), basic_risk),
                confidence=_coerce_confidence(parsed.get("confidence"), 70),
                analysis=str(parsed.get("analysis") or "AI analysis completed"),
                recommendations=_string_list(parsed.get("recommendations")),
                should_consult_doctor=bool(parsed.get("shouldConsultDoctor")) or basic_risk == RiskLevel.HIGH,
            )

        logger.warning("AI risk reply contained no JSON object; using threshold assessment")
        return AIRiskAssessment(
            risk=basic_risk,
            confidence=70,
            analysis=(
                "Based on your kick count data, the fetal activity appears to be "
                f"{_FALLBACK_ACTIVITY[basic_risk]}."
            ),
            recommendations=[
                "Continue monitoring kick counts daily",
                "Maintain a healthy diet and adequate rest",
                "Contact your healthcare provider if concerned",
            ],
            should_consult_doctor=basic_risk == RiskLevel.HIGH,
        )

    def analyze_symptoms_with_ai(
        self,
        symptoms: Sequence[str],
        *,
        gestational_age: Optional[int] = None,
        severity: SymptomSeverity = SymptomSeverity.MILD,
    ) -> SymptomAnalysis:
        prompt = (
            "Analyze pregnancy symptoms and provide medical guidance.\n\n"
            "Patient Information:\n"
            f"- Gestational Age: {gestational_age or 'Unknown'} weeks\n"
            f"- Symptoms: {', '.join(symptoms)}\n"
            f"- Reported Severity: {severity.value}\n\n"
            "Please assess:\n"
            "1. Urgency level (low/medium/high)\n"
            "2. Medical analysis of symptoms\n"
            "3. Specific recommendations\n"
            "4. Whether immediate medical care is needed\n\n"
            "Consider pregnancy-specific concerns and when symptoms warrant medical attention.\n\n"
            "Format response as JSON with keys: urgency, analysis, recommendations, shouldSeekCare\n"
        )

        try:
            reply = self._backend.complete(prompt)
        except Exception:
            logger.exception("AI symptom analysis failed")
            return SymptomAnalysis(
                urgency=RiskLevel.MEDIUM,
                analysis="Unable to perform AI analysis. Please consult healthcare provider.",
                recommendations=["Contact healthcare provider for symptom evaluation"],
                should_seek_care=True,
            )

        parsed = extract_json_object(reply)
        if parsed is not None:
            return SymptomAnalysis(
                urgency=_coerce_level(parsed.get("urgency"), RiskLevel.MEDIUM),
                analysis=str(parsed.get("analysis") or "Symptoms analyzed"),
                recommendations=_string_list(parsed.get("recommendations")),
                should_seek_care=bool(parsed.get("shouldSeekCare")),
            )

        logger.warning("AI symptom reply contained no JSON object; using severity mapping")
        return SymptomAnalysis(
            urgency=_SEVERITY_URGENCY[severity],
            analysis=(
                f"Symptoms reported: {', '.join(symptoms)}. Please monitor closely and consult "
                "healthcare provider if symptoms worsen."
            ),
            recommendations=[
                "Monitor symptoms closely",
                "Stay hydrated and rest",
                "Contact healthcare provider if symptoms persist or worsen",
            ],
            should_seek_care=severity == SymptomSeverity.SEVERE,
        )


risk_assessment_service = RiskAssessmentService()
