"""Deletion and anonymization schemas."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from .base import ComplianceModel, RecordModel
from .enums import DeletionMethod, DeletionReason, DeletionScope, DeletionStatus
from .retention import RetentionRequirement


class DeletionRequest(ComplianceModel):
    """Right-to-erasure request."""

    id: UUID
    patient_id: UUID
    requested_by: str
    requested_at: datetime
    reason: DeletionReason
    justification: Optional[str] = None
    scope: DeletionScope
    status: DeletionStatus
    scheduled_for: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    audit_trail_preserved: bool = False
    audit_trail_id: Optional[str] = None
    retention_exceptions: List[RetentionRequirement] = Field(default_factory=list)
    validation_errors: List[str] = Field(default_factory=list)
    execution_errors: List[str] = Field(default_factory=list)


class DeletionValidationResult(ComplianceModel):
    """Outcome of validating a deletion before creating a request."""

    can_delete: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    retention_requirements: List[RetentionRequirement] = Field(default_factory=list)
    affected_systems: List[str] = Field(default_factory=list)
    estimated_deletion_ms: int = 0


class DeletedItem(RecordModel):
    """Item removed or anonymized during execution."""

    type: str
    id: str
    description: str
    deleted_at: datetime
    method: DeletionMethod


class PreservedItem(RecordModel):
    """Item kept during execution because of a retention obligation."""

    type: str
    id: str
    description: str
    reason: str
    legal_basis: str
    retention_period: str


class StepError(RecordModel):
    """Failure of one execution step or item."""

    step: str
    category: str
    item_id: Optional[str] = None
    message: str

    def __str__(self) -> str:
        """Human-readable description naming the category and item."""
        target = f"{self.category} {self.item_id}" if self.item_id else self.category
        return f"{self.step}: failed on {target}: {self.message}"


class DeletionExecutionResult(ComplianceModel):
    """Outcome of executing a deletion request."""

    request_id: Optional[UUID] = None
    patient_id: UUID
    success: bool
    status: DeletionStatus
    deleted_items: List[DeletedItem] = Field(default_factory=list)
    preserved_items: List[PreservedItem] = Field(default_factory=list)
    errors: List[StepError] = Field(default_factory=list)
    audit_trail_id: Optional[str] = None
    completed_at: Optional[datetime] = None
