"""Consent ledger schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from .base import RecordModel
from .enums import ConsentPurpose, LegalBasis


class ConsentRecord(RecordModel):
    """A consent grant or withdrawal as stored in the ledger."""

    id: UUID
    patient_id: UUID
    purpose: ConsentPurpose
    granted: bool
    granted_at: Optional[datetime] = None
    withdrawn_at: Optional[datetime] = None
    legal_basis: LegalBasis
    recorded_by: str
    recorded_at: datetime
    sequence: int = 0

    @property
    def is_effective(self) -> bool:
        """A record is effective when it grants and was not withdrawn."""
        return self.granted and self.withdrawn_at is None
