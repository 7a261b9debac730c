"""Duplicate detection schemas."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .base import ComplianceModel
from .enums import DuplicateConfidence


class DuplicateCandidate(ComplianceModel):
    """Stored patient that may be the same person as the intake."""

    patient_id: UUID
    full_name: str
    date_of_birth: date
    cpf: Optional[str] = None


class DuplicateDetectionResult(ComplianceModel):
    """Classification of an intake against stored patients."""

    is_duplicate: bool
    confidence: DuplicateConfidence
    candidates: List[DuplicateCandidate] = Field(default_factory=list)
    matching_fields: List[str] = Field(default_factory=list)

    @property
    def candidate_ids(self) -> List[UUID]:
        """Ids of every candidate."""
        return [c.patient_id for c in self.candidates]
