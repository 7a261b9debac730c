"""Access decision schemas."""

from datetime import datetime
from uuid import UUID

from .base import RecordModel
from .enums import AccessResult, DataOperation


class AccessDecision(RecordModel):
    """Audited outcome of an access check."""

    id: UUID
    user_id: str
    patient_id: UUID
    operation: DataOperation
    result: AccessResult
    timestamp: datetime
    justification: str
    data_type: str = "patient_data"

    @property
    def granted(self) -> bool:
        """Check whether the decision allows the operation."""
        return self.result == AccessResult.GRANTED
