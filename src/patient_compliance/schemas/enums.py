"""Enumerations shared by models, schemas and services."""

import enum


class PatientStatus(str, enum.Enum):
    """Patient lifecycle status."""

    NEW = "new"
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    DISCHARGED = "discharged"
    INACTIVE = "inactive"


class Gender(str, enum.Enum):
    """Gender enumeration."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"


class ConsentPurpose(str, enum.Enum):
    """Purposes a patient can consent to."""

    DATA_PROCESSING = "data_processing"
    DATA_SHARING = "data_sharing"
    MARKETING = "marketing"
    RESEARCH = "research"
    AUTOMATED_DECISION_MAKING = "automated_decision_making"


class LegalBasis(str, enum.Enum):
    """LGPD legal bases for processing."""

    CONSENT = "consent"
    CONTRACT = "contract"
    LEGAL_OBLIGATION = "legal_obligation"
    VITAL_INTERESTS = "vital_interests"
    PUBLIC_TASK = "public_task"
    LEGITIMATE_INTERESTS = "legitimate_interests"


class DataOperation(str, enum.Enum):
    """Operations gated by the access policy."""

    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    SHARE = "share"


class AccessResult(str, enum.Enum):
    """Outcome of an access decision."""

    GRANTED = "granted"
    DENIED = "denied"
    PARTIAL = "partial"


class DuplicateConfidence(str, enum.Enum):
    """Confidence tier of a duplicate match."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DeletionReason(str, enum.Enum):
    """Reasons accepted for a deletion request."""

    PATIENT_REQUEST = "patient_request"
    CONSENT_WITHDRAWAL = "consent_withdrawal"
    DATA_NO_LONGER_NEEDED = "data_no_longer_needed"
    LEGAL_OBLIGATION = "legal_obligation"
    ADMINISTRATIVE_CLEANUP = "administrative_cleanup"


class DeletionStatus(str, enum.Enum):
    """Deletion request lifecycle."""

    PENDING = "pending"
    VALIDATED = "validated"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class DeletionScope(str, enum.Enum):
    """How far a deletion may go."""

    COMPLETE = "complete"
    ANONYMIZATION_ONLY = "anonymization_only"


class DeletionMethod(str, enum.Enum):
    """How an item was removed."""

    HARD_DELETE = "hard_delete"
    ANONYMIZATION = "anonymization"


class ExportFormat(str, enum.Enum):
    """Supported export encodings."""

    JSON = "json"
    XML = "xml"
    CSV = "csv"
    PDF = "pdf"


class DataCategory(str, enum.Enum):
    """Data categories subject to retention rules."""

    MEDICAL_RECORDS = "medical_records"
    LEGAL_DOCUMENTS = "legal_documents"
    AUDIT_LOGS = "audit_logs"
    FINANCIAL_RECORDS = "financial_records"
    ACTIVE_CARE = "active_care"


class DocumentType(str, enum.Enum):
    """Document tags."""

    LEGAL = "legal"
    CONSENT_FORM = "consent_form"
    CLINICAL = "clinical"
    IDENTIFICATION = "identification"
    OTHER = "other"


RETENTION_DOCUMENT_TYPES = frozenset({DocumentType.LEGAL, DocumentType.CONSENT_FORM})


class IncidentType(str, enum.Enum):
    """Security incident types."""

    DATA_BREACH = "data_breach"
    UNAUTHORIZED_ACCESS = "unauthorized_access"
    DATA_LOSS = "data_loss"
    SYSTEM_COMPROMISE = "system_compromise"
    HUMAN_ERROR = "human_error"


class IncidentSeverity(str, enum.Enum):
    """Security incident severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IncidentStatus(str, enum.Enum):
    """Security incident handling status."""

    DETECTED = "detected"
    INVESTIGATING = "investigating"
    CONTAINED = "contained"
    RESOLVED = "resolved"
