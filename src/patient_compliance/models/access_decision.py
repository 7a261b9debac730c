"""Audit models: access decisions and preserved audit trail snapshots."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text

from .base import BaseModel
from .db_types import JSONB, UUID


class AccessDecisionRecord(BaseModel):
    """Immutable record of one access decision."""

    __tablename__ = "access_decisions"

    user_id = Column(String(100), nullable=False, index=True)
    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    operation = Column(String(20), nullable=False)
    result = Column(String(20), nullable=False)
    justification = Column(Text, nullable=False)
    data_type = Column(String(50), nullable=False, default="patient_data")
    decided_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_access_decision_patient_time", "patient_id", "decided_at"),
    )


class AuditTrailSnapshot(BaseModel):
    """Copy of a patient's audit trail taken before deletion."""

    __tablename__ = "audit_trail_snapshots"

    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    reason = Column(String(255), nullable=False)
    decision_count = Column(Integer, nullable=False, default=0)
    digest = Column(String(64), nullable=False)  # SHA-256 over entries
    entries = Column(JSONB, nullable=False, default=list)
    preserved_at = Column(DateTime, nullable=False, default=datetime.utcnow)


__all__ = ["AccessDecisionRecord", "AuditTrailSnapshot"]
