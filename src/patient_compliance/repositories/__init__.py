"""SQLAlchemy adapters for the engine's collaborators."""

from .access_grant_repository import AccessGrantRepository
from .audit_repository import AuditRepository
from .consent_repository import ConsentRepository
from .deletion_request_repository import DeletionRequestRepository
from .document_repository import DocumentRepository
from .history_repository import HistoryRepository
from .incident_repository import IncidentRepository
from .medical_record_repository import MedicalRecordRepository
from .patient_repository import PatientRepository

__all__ = [
    "AccessGrantRepository",
    "AuditRepository",
    "ConsentRepository",
    "DeletionRequestRepository",
    "DocumentRepository",
    "HistoryRepository",
    "IncidentRepository",
    "MedicalRecordRepository",
    "PatientRepository",
]
