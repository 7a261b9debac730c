"""Medical record entry model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String

from .base import BaseModel
from .db_types import JSONB, UUID


class MedicalRecord(BaseModel):
    """Clinical entry for a patient.

    After anonymization ``patient_id`` is cleared and the entry is only
    linked through ``subject_pseudonym``.
    """

    __tablename__ = "medical_records"

    patient_id = Column(UUID(), index=True)  # type: ignore[var-annotated]
    subject_pseudonym = Column(String(64), index=True)
    record_type = Column(String(50), nullable=False, default="evolution")
    content = Column(JSONB, nullable=False, default=dict)
    recorded_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    recorded_by = Column(String(100))
    anonymized_at = Column(DateTime)


__all__ = ["MedicalRecord"]
