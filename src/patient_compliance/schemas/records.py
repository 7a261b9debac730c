"""Read views of documents and medical record entries."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import Field

from .base import ComplianceModel
from .enums import RETENTION_DOCUMENT_TYPES


class DocumentRecord(ComplianceModel):
    """Stored patient document."""

    id: UUID
    patient_id: UUID
    file_name: str
    file_type: Optional[str] = None
    file_size: int = 0
    file_path: Optional[str] = None
    document_type: str = "other"
    uploaded_at: datetime
    uploaded_by: Optional[str] = None
    is_anonymized: bool = False

    @property
    def requires_retention(self) -> bool:
        """Legal and consent documents are kept after deletion."""
        return self.document_type in {t.value for t in RETENTION_DOCUMENT_TYPES}


class MedicalRecordEntry(ComplianceModel):
    """Stored clinical entry."""

    id: UUID
    patient_id: Optional[UUID] = None
    subject_pseudonym: Optional[str] = None
    record_type: str = "evolution"
    content: Dict[str, Any] = Field(default_factory=dict)
    recorded_at: datetime
    recorded_by: Optional[str] = None
    anonymized_at: Optional[datetime] = None
