"""Security incident schemas."""

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import Field

from .base import ComplianceModel
from .enums import IncidentSeverity, IncidentStatus, IncidentType


class IncidentReportRequest(ComplianceModel):
    """Data needed to report an incident."""

    incident_type: IncidentType
    severity: IncidentSeverity
    description: str = Field(..., min_length=1)
    affected_patients: List[UUID] = Field(default_factory=list)
    detected_at: datetime
    reported_by: str = Field(..., min_length=1)
    mitigation_actions: List[str] = Field(default_factory=list)


class IncidentReport(ComplianceModel):
    """Stored incident."""

    id: UUID
    incident_type: IncidentType
    severity: IncidentSeverity
    description: str
    affected_patients: List[UUID] = Field(default_factory=list)
    detected_at: datetime
    reported_at: datetime
    reported_by: str
    status: IncidentStatus
    mitigation_actions: List[str] = Field(default_factory=list)
    authority_notified: bool = False

    @property
    def requires_notification(self) -> bool:
        """High and critical incidents must be escalated."""
        return self.severity in (IncidentSeverity.HIGH, IncidentSeverity.CRITICAL)
