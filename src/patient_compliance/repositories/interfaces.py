"""Collaborator contracts used by the engine services.

The SQLAlchemy repositories in this package are the default adapters. Any
object with matching methods can be injected instead. Implementations report
infrastructure failures as ``CollaboratorUnavailableError`` and lost races as
``ConflictError``.
"""

from datetime import date, datetime
from typing import Dict, List, Optional, Protocol, Sequence
from uuid import UUID

from patient_compliance.schemas.access import AccessDecision
from patient_compliance.schemas.consent import ConsentRecord
from patient_compliance.schemas.deletion import DeletionRequest
from patient_compliance.schemas.enums import (
    ConsentPurpose,
    DataOperation,
    LegalBasis,
    PatientStatus,
)
from patient_compliance.schemas.identity import DuplicateCandidate
from patient_compliance.schemas.incident import IncidentReport
from patient_compliance.schemas.patient import PatientRecord, PatientRegistrationRequest
from patient_compliance.schemas.records import DocumentRecord, MedicalRecordEntry
from patient_compliance.schemas.status import StatusHistoryQuery, StatusTransition


class PatientStore(Protocol):
    """Patient registry with atomic status updates."""

    def find_by_id(self, patient_id: UUID) -> Optional[PatientRecord]:
        """Load a patient or return None."""

    def find_potential_duplicates(
        self, full_name: str, date_of_birth: date, cpf: Optional[str] = None
    ) -> List[DuplicateCandidate]:
        """Return stored patients sharing the CPF or the birth date."""

    def create(
        self, request: PatientRegistrationRequest, created_by: str
    ) -> PatientRecord:
        """Insert a patient in status ``new`` with its creation transition."""

    def apply_transition(
        self,
        patient_id: UUID,
        expected_status: PatientStatus,
        expected_version: int,
        to_status: PatientStatus,
        reason: Optional[str],
        changed_by: str,
        changed_at: datetime,
    ) -> StatusTransition:
        """Update the status and append history in one unit of work.

        Raises ConflictError when the stored status or version moved on.
        """

    def anonymize(self, patient_id: UUID, sentinel: str) -> bool:
        """Overwrite identifying fields with ``sentinel``."""

    def delete(self, patient_id: UUID) -> bool:
        """Remove the patient row."""

    def count_by_status(self) -> Dict[str, int]:
        """Number of patients per status."""


class HistoryStore(Protocol):
    """Append-only status transition history."""

    def append_transition(
        self,
        patient_id: UUID,
        from_status: Optional[PatientStatus],
        to_status: PatientStatus,
        reason: Optional[str],
        changed_by: str,
        changed_at: datetime,
    ) -> StatusTransition:
        """Append one transition."""

    def list_transitions(
        self, patient_id: UUID, limit: Optional[int] = None
    ) -> List[StatusTransition]:
        """Transitions of a patient, newest first."""

    def search(self, query: StatusHistoryQuery) -> List[StatusTransition]:
        """Transitions matching ``query``, newest first."""


class ConsentStore(Protocol):
    """Append-only consent ledger."""

    def append(
        self,
        patient_id: UUID,
        purpose: ConsentPurpose,
        granted: bool,
        legal_basis: LegalBasis,
        recorded_by: str,
        granted_at: Optional[datetime] = None,
        withdrawn_at: Optional[datetime] = None,
    ) -> ConsentRecord:
        """Append a grant or withdrawal record."""

    def find_latest(
        self, patient_id: UUID, purpose: ConsentPurpose
    ) -> Optional[ConsentRecord]:
        """Latest record for (patient, purpose)."""

    def list_by_patient(self, patient_id: UUID) -> List[ConsentRecord]:
        """Every record of a patient, oldest first."""


class AuditSink(Protocol):
    """Destination of access decisions."""

    def append(self, decision: AccessDecision) -> None:
        """Persist one decision."""

    def list_by_patient(
        self,
        patient_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[AccessDecision]:
        """Decisions about a patient, oldest first."""

    def preserve_trail(self, patient_id: UUID, reason: str) -> str:
        """Snapshot a patient's decisions and return the snapshot id."""


class PermissionOracle(Protocol):
    """Role and grant based authorization."""

    def has_permission(
        self, user_id: str, patient_id: UUID, operation: DataOperation
    ) -> bool:
        """Check whether ``user_id`` may perform ``operation``."""


class DocumentStore(Protocol):
    """Patient document storage."""

    def list_by_patient(self, patient_id: UUID) -> List[DocumentRecord]:
        """Documents of a patient."""

    def find_by_types(
        self, patient_id: UUID, document_types: Sequence[str]
    ) -> List[DocumentRecord]:
        """Documents of a patient with one of ``document_types``."""

    def anonymize(self, document_id: UUID, sentinel: str) -> bool:
        """Replace identifying metadata of a document with ``sentinel``."""

    def delete(self, document_id: UUID) -> bool:
        """Remove a document."""


class MedicalRecordStore(Protocol):
    """Clinical entries."""

    def list_by_patient(
        self,
        patient_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[MedicalRecordEntry]:
        """Entries of a patient, oldest first."""

    def count_recorded_since(self, patient_id: UUID, since: datetime) -> int:
        """Number of entries recorded at or after ``since``."""

    def latest_recorded_at(self, patient_id: UUID) -> Optional[datetime]:
        """Timestamp of the most recent entry, if any."""

    def anonymize(self, record_id: UUID, pseudonym: str) -> bool:
        """Detach an entry from the patient, keeping ``pseudonym``."""

    def delete(self, record_id: UUID) -> bool:
        """Remove an entry."""


class FinancialRecordStore(Protocol):
    """Billing data owned by another system."""

    def has_records(self, patient_id: UUID) -> bool:
        """Check whether the patient has fiscal records."""


class DeletionRequestStore(Protocol):
    """Persistence of deletion requests."""

    def save(self, request: DeletionRequest) -> DeletionRequest:
        """Insert or update a request."""

    def get(self, request_id: UUID) -> Optional[DeletionRequest]:
        """Load a request or return None."""


class IncidentStore(Protocol):
    """Persistence of security incidents."""

    def save(self, report: IncidentReport) -> IncidentReport:
        """Insert or update a report."""

    def list_unresolved(self) -> List[IncidentReport]:
        """Incidents that are not resolved yet."""


class IncidentNotifier(Protocol):
    """Escalation channel for serious incidents."""

    def notify(self, report: IncidentReport) -> None:
        """Deliver a notification about ``report``."""
