"""Status lifecycle schemas."""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import ComplianceModel, RecordModel, to_naive_utc
from .enums import PatientStatus


class StatusTransition(RecordModel):
    """One entry of a patient's status history."""

    id: UUID
    patient_id: UUID
    from_status: Optional[PatientStatus] = None
    to_status: PatientStatus
    reason: Optional[str] = None
    timestamp: datetime
    changed_by: str
    sequence: int = 0


class TransitionRule(RecordModel):
    """Entry of the transition table."""

    from_status: Optional[PatientStatus]
    to_status: PatientStatus
    is_allowed: bool
    requires_reason: bool
    description: str


class StatusHistoryQuery(ComplianceModel):
    """Filters for searching transitions across patients."""

    patient_id: Optional[UUID] = None
    from_status: Optional[PatientStatus] = None
    to_status: Optional[PatientStatus] = None
    changed_by: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: int = Field(default=50, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Compare dates in naive UTC."""
        return to_naive_utc(v)


class StatusStatistics(ComplianceModel):
    """Aggregate view of patient statuses and recent transitions."""

    total_patients: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    recent_transitions: List[StatusTransition] = Field(default_factory=list)
