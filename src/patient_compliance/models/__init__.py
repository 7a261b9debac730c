"""Database models for the compliance engine.

Histories, consents and audit records reference patients by id only, so they
outlive hard deletion of the patient row.
"""

from .access_decision import AccessDecisionRecord, AuditTrailSnapshot
from .access_grant import AccessGrant
from .base import Base, BaseModel, TimestampMixin
from .consent import ConsentRecordModel
from .deletion_request import DeletionRequestModel
from .document import Document
from .incident import IncidentReportModel
from .medical_record import MedicalRecord
from .patient import Patient
from .status_history import StatusTransitionRecord

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "AccessDecisionRecord",
    "AuditTrailSnapshot",
    "AccessGrant",
    "ConsentRecordModel",
    "DeletionRequestModel",
    "Document",
    "IncidentReportModel",
    "MedicalRecord",
    "Patient",
    "StatusTransitionRecord",
]
