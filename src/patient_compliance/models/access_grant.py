"""Access grant model backing the default permission oracle."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String

from .base import BaseModel
from .db_types import JSONB, UUID


class AccessGrant(BaseModel):
    """Operations a user may perform on one patient, or on all patients."""

    __tablename__ = "access_grants"

    user_id = Column(String(100), nullable=False, index=True)
    patient_id = Column(UUID())  # type: ignore[var-annotated]  # NULL grants every patient
    operations = Column(JSONB, nullable=False, default=list)
    granted_by = Column(String(100))
    valid_until = Column(DateTime)
    revoked_at = Column(DateTime)

    __table_args__ = (Index("idx_access_grant_user_patient", "user_id", "patient_id"),)

    def is_active(self, now: datetime) -> bool:
        """Check whether the grant is currently usable."""
        if self.revoked_at is not None:
            return False
        return self.valid_until is None or self.valid_until > now


__all__ = ["AccessGrant"]
