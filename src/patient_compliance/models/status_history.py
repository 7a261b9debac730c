"""Status transition history model (append-only)."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from .base import BaseModel
from .db_types import UUID


class StatusTransitionRecord(BaseModel):
    """One lifecycle transition of a patient.

    Rows are never updated. ``sequence`` orders transitions of one patient
    even when two share a timestamp. The patient id is deliberately not a
    foreign key so history survives hard deletion of the patient row.
    """

    __tablename__ = "patient_status_history"

    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    from_status = Column(String(20))  # NULL for the creation transition
    to_status = Column(String(20), nullable=False)
    reason = Column(Text)
    changed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    changed_by = Column(String(100), nullable=False)
    sequence = Column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("patient_id", "sequence", name="uq_status_history_sequence"),
        Index("idx_status_history_to_status", "to_status"),
    )


__all__ = ["StatusTransitionRecord"]
