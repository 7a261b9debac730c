"""Engine facade wiring stores and services for one database session."""

from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from patient_compliance.config import Settings, get_settings
from patient_compliance.policies.retention_policy import RetentionResolver
from patient_compliance.repositories import (
    AccessGrantRepository,
    AuditRepository,
    ConsentRepository,
    DeletionRequestRepository,
    DocumentRepository,
    HistoryRepository,
    IncidentRepository,
    MedicalRecordRepository,
    PatientRepository,
)
from patient_compliance.repositories.interfaces import (
    FinancialRecordStore,
    IncidentNotifier,
    PermissionOracle,
)
from patient_compliance.security.encryption import FieldEncryptor, Pseudonymizer
from patient_compliance.services.access_policy import AccessPolicyGate
from patient_compliance.services.consent_ledger import ConsentLedger
from patient_compliance.services.deletion_orchestrator import DeletionOrchestrator
from patient_compliance.services.identity_matcher import IdentityMatcher
from patient_compliance.services.incident_service import IncidentService
from patient_compliance.services.patient_registry import PatientRegistry
from patient_compliance.services.portability_exporter import PortabilityExporter
from patient_compliance.services.status_lifecycle import StatusLifecycleService


class ComplianceEngine:
    """All engine services sharing one session and one configuration."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        permission_oracle: PermissionOracle,
        financial_record_store: Optional[FinancialRecordStore] = None,
        notifier: Optional[IncidentNotifier] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Build repositories and services.

        Args:
            session: SQLAlchemy session used by every repository
            settings: Engine configuration
            permission_oracle: Authorization collaborator
            financial_record_store: Optional billing collaborator
            notifier: Optional escalation channel for serious incidents
            clock: Time source for retention and deletion scheduling
        """
        self.session = session
        self.settings = settings

        self.patients = PatientRepository(session)
        self.history = HistoryRepository(session)
        self.consents = ConsentRepository(session)
        self.audit = AuditRepository(session)
        self.documents = DocumentRepository(session)
        self.medical_records = MedicalRecordRepository(session)
        self.deletion_requests = DeletionRequestRepository(session)
        self.incidents = IncidentRepository(session)
        self.permission_oracle = permission_oracle

        self.encryptor = FieldEncryptor(settings)
        self.pseudonymizer = Pseudonymizer(settings)

        self.access_gate = AccessPolicyGate(
            self.patients, self.consents, permission_oracle, self.audit
        )
        self.status_lifecycle = StatusLifecycleService(self.patients, self.history)
        self.identity_matcher = IdentityMatcher(self.patients, settings)
        self.registry = PatientRegistry(self.patients, self.identity_matcher)
        self.consent_ledger = ConsentLedger(
            self.patients, self.consents, self.access_gate
        )
        self.retention = RetentionResolver(
            self.patients,
            self.medical_records,
            self.documents,
            financial_record_store,
            settings=settings,
            clock=clock,
        )
        self.exporter = PortabilityExporter(
            self.patients,
            self.history,
            self.consents,
            self.documents,
            self.medical_records,
            self.audit,
            self.access_gate,
            self.retention,
            encryptor=self.encryptor,
            settings=settings,
        )
        self.deletion = DeletionOrchestrator(
            self.patients,
            self.history,
            self.consents,
            self.documents,
            self.medical_records,
            self.audit,
            self.deletion_requests,
            self.access_gate,
            self.retention,
            pseudonymizer=self.pseudonymizer,
            settings=settings,
            clock=clock,
        )
        self.incident_service = IncidentService(
            self.incidents, self.access_gate, notifier
        )

    @classmethod
    def from_session(
        cls,
        session: Session,
        settings: Optional[Settings] = None,
        permission_oracle: Optional[PermissionOracle] = None,
        financial_record_store: Optional[FinancialRecordStore] = None,
        notifier: Optional[IncidentNotifier] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> "ComplianceEngine":
        """Create an engine, defaulting to grant-based authorization."""
        return cls(
            session,
            settings or get_settings(),
            permission_oracle or AccessGrantRepository(session),
            financial_record_store=financial_record_store,
            notifier=notifier,
            clock=clock,
        )
