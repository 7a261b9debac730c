"""Consent ledger model (append-only)."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, UniqueConstraint

from .base import BaseModel
from .db_types import UUID


class ConsentRecordModel(BaseModel):
    """A single consent grant or withdrawal."""

    __tablename__ = "consent_records"

    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    purpose = Column(String(50), nullable=False)
    granted = Column(Boolean, nullable=False)
    granted_at = Column(DateTime)
    withdrawn_at = Column(DateTime)
    legal_basis = Column(String(50), nullable=False)
    recorded_by = Column(String(100), nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    sequence = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("patient_id", "sequence", name="uq_consent_sequence"),
        Index("idx_consent_patient_purpose", "patient_id", "purpose"),
    )


__all__ = ["ConsentRecordModel"]
