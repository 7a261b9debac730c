"""Patient model.

Holds the identifying data used by duplicate detection and the lifecycle
status guarded by optimistic versioning.
"""

from datetime import datetime

from sqlalchemy import Column, Date, DateTime, Index, Integer, String

from patient_compliance.schemas.enums import PatientStatus

from .base import BaseModel
from .db_types import JSONB


class Patient(BaseModel):
    """Patient registry entry."""

    __tablename__ = "patients"

    # Identity
    full_name = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(20), nullable=False, default="unknown")
    cpf = Column(String(11), index=True)  # digits only
    rg = Column(String(20))

    # Contact
    primary_phone = Column(String(30))
    secondary_phone = Column(String(30))
    email = Column(String(255))
    address = Column(JSONB, default=dict)

    # Lifecycle
    status = Column(String(20), nullable=False, default=PatientStatus.NEW.value)
    version = Column(Integer, nullable=False, default=1)
    anonymized_at = Column(DateTime)

    __table_args__ = (
        Index("idx_patient_name_dob", "full_name", "date_of_birth"),
        Index("idx_patient_status", "status"),
    )

    def mark_anonymized(self, sentinel: str) -> None:
        """Overwrite directly identifying fields with ``sentinel``."""
        self.full_name = sentinel
        self.cpf = sentinel
        self.rg = sentinel
        self.primary_phone = sentinel
        self.secondary_phone = sentinel
        self.email = sentinel
        self.address = {
            "street": sentinel,
            "number": sentinel,
            "neighborhood": sentinel,
            "city": sentinel,
            "state": sentinel,
            "zip_code": sentinel,
        }
        self.anonymized_at = datetime.utcnow()

    def __repr__(self) -> str:
        """Return string representation of Patient."""
        return f"<Patient(id={self.id}, status={self.status})>"


__all__ = ["Patient"]
