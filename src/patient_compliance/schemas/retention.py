"""Retention schemas."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .base import ComplianceModel, RecordModel
from .enums import DataCategory


class RetentionRequirement(RecordModel):
    """A legal or operational obligation to keep a data category."""

    data_category: DataCategory
    legal_basis: str
    minimum_retention_period: str
    overridable: bool
    description: str
    in_effect: bool = True
    retained_until: Optional[date] = None


class RetentionAssessment(ComplianceModel):
    """Requirements that apply to one patient and what they allow."""

    patient_id: UUID
    patient_found: bool
    requirements: List[RetentionRequirement] = Field(default_factory=list)
    can_fully_delete: bool = False
    warnings: List[str] = Field(default_factory=list)

    @property
    def exceptions(self) -> List[RetentionRequirement]:
        """In-effect requirements that cannot be overridden."""
        return [r for r in self.requirements if r.in_effect and not r.overridable]

    def requirement_for(self, category: DataCategory) -> Optional[RetentionRequirement]:
        """Return the requirement for ``category`` if present."""
        for requirement in self.requirements:
            if requirement.data_category == category:
                return requirement
        return None

    def is_retained(self, category: DataCategory) -> bool:
        """Check whether ``category`` is under an in-effect requirement."""
        requirement = self.requirement_for(category)
        return requirement is not None and requirement.in_effect
