"""Security incident model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, String, Text

from .base import BaseModel
from .db_types import JSONB


class IncidentReportModel(BaseModel):
    """Reported security incident affecting patient data."""

    __tablename__ = "incident_reports"

    incident_type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False, index=True)
    description = Column(Text, nullable=False)
    affected_patients = Column(JSONB, nullable=False, default=list)
    detected_at = Column(DateTime, nullable=False)
    reported_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    reported_by = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="detected")
    mitigation_actions = Column(JSONB, nullable=False, default=list)
    authority_notified = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime)


__all__ = ["IncidentReportModel"]
