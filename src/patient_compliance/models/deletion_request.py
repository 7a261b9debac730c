"""Deletion request model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from patient_compliance.schemas.enums import DeletionStatus

from .base import BaseModel
from .db_types import JSONB, UUID


class DeletionRequestModel(BaseModel):
    """Right-to-erasure request and its execution outcome."""

    __tablename__ = "deletion_requests"

    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    requested_by = Column(String(100), nullable=False)
    requested_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    reason = Column(String(50), nullable=False)
    justification = Column(Text)
    scope = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=DeletionStatus.PENDING.value)
    scheduled_for = Column(DateTime)
    completed_at = Column(DateTime)

    audit_trail_preserved = Column(Boolean, nullable=False, default=False)
    audit_trail_id = Column(String(36))
    retention_exceptions = Column(JSONB, nullable=False, default=list)
    validation_errors = Column(JSONB, nullable=False, default=list)
    execution_errors = Column(JSONB, nullable=False, default=list)


__all__ = ["DeletionRequestModel"]
