from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from src.maternity.domain.models.common import OptionalUtcDatetime, UtcDatetime, new_id, utcnow


class RecordCategory(str, Enum):
    ULTRASOUND = "ultrasound"
    LAB_RESULTS = "lab_results"
    PRESCRIPTION = "prescription"
    CONSULTATION = "consultation"
    OTHER = "other"


class FilePermissions(BaseModel):
    """User ids granted each kind of access to a record."""

    view: List[str] = Field(default_factory=list)
    download: List[str] = Field(default_factory=list)
    share: List[str] = Field(default_factory=list)


class MedicalRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    patient_id: str
    institution_id: Optional[str] = None
    uploaded_by: str
    file_name: str
    file_type: str
    file_size: int
    storage_url: str
    category: RecordCategory = RecordCategory.OTHER
    tags: List[str] = Field(default_factory=list)
    description: Optional[str] = None
    is_confidential: bool = False
    access_permissions: FilePermissions = Field(default_factory=FilePermissions)
    uploaded_at: UtcDatetime = Field(default_factory=utcnow)
    last_accessed: OptionalUtcDatetime = None
    version: int = 1
