"""Right-to-erasure orchestration (LGPD Article 18, VI).

Execution touches several stores with no shared transaction. Each step is
isolated: a failing step or item is recorded with its category and id and
the remaining steps still run. Nothing is rolled back; partial anonymization
is an acceptable outcome, re-creating deleted personal data is not.

Status history, consent history and access decisions are never deleted.
"""

import uuid
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union
from uuid import UUID

from patient_compliance.config import Settings, get_settings
from patient_compliance.core.exceptions import InvalidInputError, NotFoundError
from patient_compliance.policies.retention_policy import RetentionResolver
from patient_compliance.repositories.interfaces import (
    AuditSink,
    ConsentStore,
    DeletionRequestStore,
    DocumentStore,
    HistoryStore,
    MedicalRecordStore,
    PatientStore,
)
from patient_compliance.schemas.base import to_naive_utc
from patient_compliance.schemas.deletion import (
    DeletedItem,
    DeletionExecutionResult,
    DeletionRequest,
    DeletionValidationResult,
    PreservedItem,
    StepError,
)
from patient_compliance.schemas.enums import (
    AccessResult,
    DataCategory,
    DataOperation,
    DeletionMethod,
    DeletionReason,
    DeletionScope,
    DeletionStatus,
    PatientStatus,
)
from patient_compliance.schemas.retention import RetentionAssessment
from patient_compliance.security.encryption import Pseudonymizer
from patient_compliance.services.access_policy import (
    JUSTIFICATION_NOT_FOUND,
    AccessPolicyGate,
)
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

DELETION_DATA_TYPE = "patient_deletion"

EXECUTABLE_STATUSES = (DeletionStatus.VALIDATED, DeletionStatus.SCHEDULED)
CANCELLABLE_STATUSES = (
    DeletionStatus.PENDING,
    DeletionStatus.VALIDATED,
    DeletionStatus.SCHEDULED,
)

# Estimation constants (milliseconds)
BASE_DELETION_MS = 2000
MS_PER_DOCUMENT = 500
MS_PER_SYSTEM = 1000


def coerce_reason(reason: Union[DeletionReason, str]) -> DeletionReason:
    """Parse a deletion reason."""
    if isinstance(reason, DeletionReason):
        return reason
    try:
        return DeletionReason(reason)
    except ValueError as e:
        raise InvalidInputError(f"Unknown deletion reason: {reason!r}") from e


class _Execution:
    """Accumulates the outcome of one deletion run."""

    def __init__(self) -> None:
        self.deleted: List[DeletedItem] = []
        self.preserved: List[PreservedItem] = []
        self.errors: List[StepError] = []
        self.audit_trail_id: Optional[str] = None

    def delete(
        self, item_type: str, item_id: object, description: str, method: DeletionMethod
    ) -> None:
        self.deleted.append(
            DeletedItem(
                type=item_type,
                id=str(item_id),
                description=description,
                deleted_at=datetime.utcnow(),
                method=method,
            )
        )

    def preserve(
        self,
        item_type: str,
        item_id: object,
        description: str,
        reason: str,
        legal_basis: str,
        retention_period: str,
    ) -> None:
        self.preserved.append(
            PreservedItem(
                type=item_type,
                id=str(item_id),
                description=description,
                reason=reason,
                legal_basis=legal_basis,
                retention_period=retention_period,
            )
        )

    def fail(
        self, step: str, category: str, error: Exception, item_id: object = None
    ) -> None:
        step_error = StepError(
            step=step,
            category=category,
            item_id=str(item_id) if item_id is not None else None,
            message=str(error) or error.__class__.__name__,
        )
        self.errors.append(step_error)
        logger.error(
            "Deletion step failed",
            step=step,
            category=category,
            item_id=step_error.item_id,
            error=step_error.message,
        )


class DeletionOrchestrator:
    """Validates, schedules and executes deletion requests."""

    def __init__(
        self,
        patient_store: PatientStore,
        history_store: HistoryStore,
        consent_store: ConsentStore,
        document_store: DocumentStore,
        medical_record_store: MedicalRecordStore,
        audit_sink: AuditSink,
        deletion_request_store: DeletionRequestStore,
        access_gate: AccessPolicyGate,
        retention_resolver: RetentionResolver,
        pseudonymizer: Optional[Pseudonymizer] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize orchestrator with its collaborators."""
        self.settings = settings or get_settings()
        self.patient_store = patient_store
        self.history_store = history_store
        self.consent_store = consent_store
        self.document_store = document_store
        self.medical_record_store = medical_record_store
        self.audit_sink = audit_sink
        self.deletion_request_store = deletion_request_store
        self.access_gate = access_gate
        self.retention_resolver = retention_resolver
        self.pseudonymizer = pseudonymizer or Pseudonymizer(self.settings)
        self.clock = clock

    # Validation and requests

    def validate_deletion_request(
        self, patient_id: UUID, reason: Union[DeletionReason, str]
    ) -> DeletionValidationResult:
        """Describe what deleting a patient would involve."""
        result, _ = self._validate(patient_id, coerce_reason(reason))
        return result

    def request_deletion(
        self,
        patient_id: UUID,
        reason: Union[DeletionReason, str],
        justification: Optional[str],
        requested_by: str,
        scheduled_for: Optional[datetime] = None,
    ) -> DeletionRequest:
        """Create a deletion request with its scope resolved from retention rules.

        The scope is ``complete`` when nothing blocks full deletion and
        ``anonymization_only`` otherwise. The request is ``pending`` when
        validation failed, ``scheduled`` when a future date was given and
        ``validated`` otherwise.
        """
        reason = coerce_reason(reason)
        if not requested_by or not requested_by.strip():
            raise InvalidInputError("A requester is required for a deletion request")
        now = self.clock()
        scheduled_for = to_naive_utc(scheduled_for)
        if scheduled_for is not None and scheduled_for <= now:
            raise InvalidInputError("Scheduled deletion date must be in the future")

        validation, assessment = self._validate(patient_id, reason)
        if assessment.patient_found:
            decision = self.access_gate.check_access(
                requested_by, patient_id, DataOperation.DELETE, DELETION_DATA_TYPE
            )
            self.access_gate.raise_for_denial(decision)
        else:
            self.access_gate.record_decision(
                requested_by,
                patient_id,
                DataOperation.DELETE,
                AccessResult.DENIED,
                JUSTIFICATION_NOT_FOUND,
                DELETION_DATA_TYPE,
            )

        if validation.errors:
            status = DeletionStatus.PENDING
        elif scheduled_for is not None:
            status = DeletionStatus.SCHEDULED
        else:
            status = DeletionStatus.VALIDATED

        request = DeletionRequest(
            id=uuid.uuid4(),
            patient_id=patient_id,
            requested_by=requested_by,
            requested_at=now,
            reason=reason,
            justification=justification,
            scope=(
                DeletionScope.COMPLETE
                if assessment.can_fully_delete
                else DeletionScope.ANONYMIZATION_ONLY
            ),
            status=status,
            scheduled_for=scheduled_for,
            retention_exceptions=assessment.exceptions,
            validation_errors=validation.errors,
        )
        request = self.deletion_request_store.save(request)
        logger.info(
            "Deletion requested",
            request_id=str(request.id),
            patient_id=str(patient_id),
            reason=reason.value,
            scope=request.scope.value,
            status=request.status.value,
        )
        return request

    def get_deletion_request(self, request_id: UUID) -> DeletionRequest:
        """Load a deletion request."""
        request = self.deletion_request_store.get(request_id)
        if request is None:
            raise NotFoundError(f"Deletion request {request_id} not found")
        return request

    def cancel_deletion(self, request_id: UUID, cancelled_by: str) -> DeletionRequest:
        """Cancel a request that has not started."""
        request = self.get_deletion_request(request_id)
        if request.status not in CANCELLABLE_STATUSES:
            raise InvalidInputError(
                f"Cannot cancel deletion request in status {request.status.value}"
            )
        request = self.deletion_request_store.save(
            request.model_copy(
                update={"status": DeletionStatus.CANCELLED, "completed_at": self.clock()}
            )
        )
        logger.info(
            "Deletion cancelled", request_id=str(request_id), cancelled_by=cancelled_by
        )
        return request

    # Execution

    def execute_deletion(self, request_id: UUID) -> DeletionExecutionResult:
        """Run a validated (or due scheduled) request.

        Raises:
            NotFoundError: unknown request id
            InvalidInputError: the request is not executable yet or any more
        """
        request = self.get_deletion_request(request_id)
        now = self.clock()
        if request.status not in EXECUTABLE_STATUSES:
            raise InvalidInputError(
                f"Cannot execute deletion request in status {request.status.value}"
            )
        if (
            request.status == DeletionStatus.SCHEDULED
            and request.scheduled_for is not None
            and request.scheduled_for > now
        ):
            raise InvalidInputError(
                f"Deletion request is scheduled for {request.scheduled_for.isoformat()}"
            )

        request = self.deletion_request_store.save(
            request.model_copy(update={"status": DeletionStatus.IN_PROGRESS})
        )
        logger.info(
            "Deletion started",
            request_id=str(request.id),
            patient_id=str(request.patient_id),
            scope=request.scope.value,
        )

        run = _Execution()
        trail_reason = f"deletion request {request.id}"
        if self._preserve_audit_trail(request.patient_id, trail_reason, run):
            assessment = self.retention_resolver.resolve(
                request.patient_id, request.reason
            )
            self._handle_documents(request.patient_id, assessment, run)
            self._handle_medical_records(request, assessment, run)
            self._handle_patient(request.patient_id, request.scope, run)
            self._preserve_histories(request.patient_id, run)

        return self._finish(request, run)

    def anonymize_patient_data(
        self, patient_id: UUID, requested_by: str
    ) -> DeletionExecutionResult:
        """Anonymize a patient explicitly, keeping every record's shape."""
        if self.patient_store.find_by_id(patient_id) is None:
            self.access_gate.record_decision(
                requested_by,
                patient_id,
                DataOperation.DELETE,
                AccessResult.DENIED,
                JUSTIFICATION_NOT_FOUND,
                DELETION_DATA_TYPE,
            )
            raise NotFoundError(f"Patient {patient_id} not found")
        decision = self.access_gate.check_access(
            requested_by, patient_id, DataOperation.DELETE, DELETION_DATA_TYPE
        )
        self.access_gate.raise_for_denial(decision)

        run = _Execution()
        if self._preserve_audit_trail(patient_id, "explicit anonymization", run):
            self._handle_patient(patient_id, DeletionScope.ANONYMIZATION_ONLY, run)
            self._anonymize_documents(patient_id, run)
            self._anonymize_all_medical_records(patient_id, run)
            self._preserve_histories(patient_id, run)

        success = not run.errors
        self.access_gate.record_decision(
            requested_by,
            patient_id,
            DataOperation.DELETE,
            AccessResult.GRANTED if success else AccessResult.PARTIAL,
            "patient data anonymized"
            if success
            else f"anonymization partially failed: {len(run.errors)} error(s)",
            DELETION_DATA_TYPE,
        )
        return DeletionExecutionResult(
            patient_id=patient_id,
            success=success,
            status=DeletionStatus.COMPLETED if success else DeletionStatus.FAILED,
            deleted_items=run.deleted,
            preserved_items=run.preserved,
            errors=run.errors,
            audit_trail_id=run.audit_trail_id,
            completed_at=self.clock(),
        )

    # Steps

    def _preserve_audit_trail(self, patient_id: UUID, reason: str, run: _Execution) -> bool:
        try:
            run.audit_trail_id = self.audit_sink.preserve_trail(patient_id, reason)
        except Exception as e:
            run.fail("audit_trail", DataCategory.AUDIT_LOGS.value, e)
            return False
        run.preserve(
            "audit_trail",
            run.audit_trail_id,
            "Access decisions snapshot taken before deletion",
            "Audit trail preservation",
            "LGPD Article 37",
            f"{self.settings.audit_log_retention_years} years minimum",
        )
        return True

    def _handle_documents(
        self, patient_id: UUID, assessment: RetentionAssessment, run: _Execution
    ) -> None:
        try:
            documents = self.document_store.list_by_patient(patient_id)
        except Exception as e:
            run.fail("documents", "documents", e)
            return

        legal = assessment.requirement_for(DataCategory.LEGAL_DOCUMENTS)
        legal_years = self.settings.legal_document_retention_years
        for document in documents:
            if document.requires_retention:
                run.preserve(
                    "document",
                    document.id,
                    f"Document {document.file_name} ({document.document_type}) preserved",
                    "Legal retention requirement",
                    legal.legal_basis if legal else "LGPD Article 37",
                    legal.minimum_retention_period
                    if legal
                    else f"processing duration + {legal_years} years",
                )
                continue
            try:
                self.document_store.delete(document.id)
            except Exception as e:
                run.fail("documents", "document", e, document.id)
                continue
            run.delete(
                "document",
                document.id,
                f"Document {document.file_name} deleted",
                DeletionMethod.HARD_DELETE,
            )

    def _handle_medical_records(
        self,
        request: DeletionRequest,
        assessment: RetentionAssessment,
        run: _Execution,
    ) -> None:
        try:
            records = self.medical_record_store.list_by_patient(request.patient_id)
        except Exception as e:
            run.fail("medical_records", "medical_records", e)
            return

        years = self.settings.medical_record_retention_years
        medical = assessment.requirement_for(DataCategory.MEDICAL_RECORDS)
        # Retention runs from the latest entry, so it covers every entry
        retain = request.scope == DeletionScope.ANONYMIZATION_ONLY or (
            assessment.is_retained(DataCategory.MEDICAL_RECORDS)
        )
        pseudonym = self.pseudonymizer.pseudonym(request.patient_id)
        for record in records:
            try:
                if retain:
                    self.medical_record_store.anonymize(record.id, pseudonym)
                else:
                    self.medical_record_store.delete(record.id)
            except Exception as e:
                run.fail("medical_records", "medical_record", e, record.id)
                continue
            if retain:
                run.preserve(
                    "medical_record",
                    record.id,
                    "Medical record preserved with anonymized identifiers",
                    "Healthcare data retention requirement",
                    medical.legal_basis if medical else "CFM Resolution 1821/2007",
                    medical.minimum_retention_period if medical else f"{years} years",
                )
            else:
                run.delete(
                    "medical_record",
                    record.id,
                    "Medical record past its retention period deleted",
                    DeletionMethod.HARD_DELETE,
                )

    def _handle_patient(
        self, patient_id: UUID, scope: DeletionScope, run: _Execution
    ) -> None:
        try:
            if scope == DeletionScope.ANONYMIZATION_ONLY:
                changed = self.patient_store.anonymize(
                    patient_id, self.settings.anonymization_sentinel
                )
                method = DeletionMethod.ANONYMIZATION
                description = "Personal identifiers anonymized"
            else:
                changed = self.patient_store.delete(patient_id)
                method = DeletionMethod.HARD_DELETE
                description = "Patient record deleted"
            if not changed:
                raise NotFoundError(f"Patient {patient_id} not found")
        except Exception as e:
            run.fail("patient", "personal_data", e, patient_id)
            return
        run.delete("personal_data", patient_id, description, method)

    def _anonymize_documents(self, patient_id: UUID, run: _Execution) -> None:
        try:
            documents = self.document_store.list_by_patient(patient_id)
        except Exception as e:
            run.fail("documents", "documents", e)
            return
        sentinel = self.settings.anonymization_sentinel
        for document in documents:
            try:
                self.document_store.anonymize(document.id, sentinel)
            except Exception as e:
                run.fail("documents", "document", e, document.id)
                continue
            run.delete(
                "document",
                document.id,
                "Document metadata anonymized",
                DeletionMethod.ANONYMIZATION,
            )

    def _anonymize_all_medical_records(self, patient_id: UUID, run: _Execution) -> None:
        try:
            records = self.medical_record_store.list_by_patient(patient_id)
        except Exception as e:
            run.fail("medical_records", "medical_records", e)
            return
        pseudonym = self.pseudonymizer.pseudonym(patient_id)
        years = self.settings.medical_record_retention_years
        for record in records:
            try:
                self.medical_record_store.anonymize(record.id, pseudonym)
            except Exception as e:
                run.fail("medical_records", "medical_record", e, record.id)
                continue
            run.preserve(
                "medical_record",
                record.id,
                "Medical record preserved with anonymized identifiers",
                "Healthcare data retention requirement",
                "CFM Resolution 1821/2007",
                f"{years} years",
            )

    def _preserve_histories(self, patient_id: UUID, run: _Execution) -> None:
        try:
            transitions = self.history_store.list_transitions(patient_id)
            consents = self.consent_store.list_by_patient(patient_id)
        except Exception as e:
            run.fail("history", "history", e)
            return
        run.preserve(
            "status_history",
            patient_id,
            f"{len(transitions)} status transition(s) preserved",
            "Audit trail preservation",
            "LGPD Article 37",
            f"{self.settings.audit_log_retention_years} years minimum",
        )
        run.preserve(
            "consent_history",
            patient_id,
            f"{len(consents)} consent record(s) preserved",
            "Evidence of consent",
            "LGPD Article 8",
            f"processing duration + {self.settings.legal_document_retention_years} years",
        )

    def _finish(self, request: DeletionRequest, run: _Execution) -> DeletionExecutionResult:
        success = not run.errors
        completed_at = self.clock()
        status = DeletionStatus.COMPLETED if success else DeletionStatus.FAILED
        self.deletion_request_store.save(
            request.model_copy(
                update={
                    "status": status,
                    "completed_at": completed_at,
                    "audit_trail_preserved": run.audit_trail_id is not None,
                    "audit_trail_id": run.audit_trail_id,
                    "execution_errors": [str(e) for e in run.errors],
                }
            )
        )
        self.access_gate.record_decision(
            request.requested_by,
            request.patient_id,
            DataOperation.DELETE,
            AccessResult.GRANTED if success else AccessResult.PARTIAL,
            f"deletion {status.value} ({request.scope.value})"
            if success
            else f"deletion failed with {len(run.errors)} error(s)",
            DELETION_DATA_TYPE,
        )
        logger.info(
            "Deletion finished",
            request_id=str(request.id),
            status=status.value,
            deleted=len(run.deleted),
            preserved=len(run.preserved),
            errors=len(run.errors),
        )
        return DeletionExecutionResult(
            request_id=request.id,
            patient_id=request.patient_id,
            success=success,
            status=status,
            deleted_items=run.deleted,
            preserved_items=run.preserved,
            errors=run.errors,
            audit_trail_id=run.audit_trail_id,
            completed_at=completed_at,
        )

    def _validate(
        self, patient_id: UUID, reason: DeletionReason
    ) -> Tuple[DeletionValidationResult, RetentionAssessment]:
        assessment = self.retention_resolver.resolve(patient_id, reason)
        if not assessment.patient_found:
            return (
                DeletionValidationResult(can_delete=False, errors=["Patient not found"]),
                assessment,
            )

        patient = self.patient_store.find_by_id(patient_id)
        warnings: List[str] = []
        if patient is not None and patient.status == PatientStatus.ACTIVE:
            warnings.append(
                "Patient has active status - consider changing status before deletion"
            )
        if not assessment.can_fully_delete:
            warnings.append(
                "Full deletion is blocked by legal retention requirements; "
                "personal data will be anonymized instead"
            )
        warnings.extend(assessment.warnings)

        documents = self.document_store.list_by_patient(patient_id)
        affected_systems = ["patient_registry"]
        estimated = BASE_DELETION_MS
        if documents:
            affected_systems.append("document_storage")
            estimated += len(documents) * MS_PER_DOCUMENT
        if self.medical_record_store.latest_recorded_at(patient_id) is not None:
            affected_systems.append("medical_records")
        affected_systems.append("audit_system")
        if assessment.is_retained(DataCategory.FINANCIAL_RECORDS):
            affected_systems.append("billing_system")
        estimated += len(affected_systems) * MS_PER_SYSTEM

        return (
            DeletionValidationResult(
                can_delete=assessment.can_fully_delete,
                warnings=warnings,
                retention_requirements=assessment.requirements,
                affected_systems=affected_systems,
                estimated_deletion_ms=estimated,
            ),
            assessment,
        )
