from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.patient import RiskLevel


class SymptomSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class MaternalFactors(BaseModel):
    age: Optional[int] = None
    medical_history: List[str] = Field(default_factory=list)
    current_symptoms: List[str] = Field(default_factory=list)


class AIRiskAssessment(BaseModel):
    risk: RiskLevel
    confidence: float
    analysis: str
    recommendations: List[str] = Field(default_factory=list)
    should_consult_doctor: bool


class SymptomAnalysis(BaseModel):
    urgency: RiskLevel
    analysis: str
    recommendations: List[str] = Field(default_factory=list)
    should_seek_care: bool


class FetalHealthStatus(str, Enum):
    NORMAL = "Normal"
    SUSPECT = "Suspect"
    CONCERNING = "Concerning"


class FetalHealthAssessment(BaseModel):
    """Rule-based assessment of a single kick-count session.

    ``predicted_class`` follows the fetal-health dataset convention:
    0 normal, 1 suspect, 2 pathological.
    """

    predicted_class: int
    confidence: float
    status: FetalHealthStatus
    message: str
    recommendation: str
