"""Access policy gate.

Every check appends exactly one access decision to the audit sink, whatever
branch was taken. Evaluation failures deny, and a failed audit append is
reported as ``AuditUnavailableError`` carrying a denied decision: logging
is fail-closed.
"""

import uuid
from datetime import datetime
from typing import Optional, Tuple, Type, Union
from uuid import UUID

from patient_compliance.core.exceptions import (
    AuditUnavailableError,
    CollaboratorUnavailableError,
    ComplianceError,
    ConsentMissingError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from patient_compliance.repositories.interfaces import (
    AuditSink,
    ConsentStore,
    PatientStore,
    PermissionOracle,
)
from patient_compliance.schemas.access import AccessDecision
from patient_compliance.schemas.enums import AccessResult, ConsentPurpose, DataOperation
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

JUSTIFICATION_NOT_FOUND = "not found"
JUSTIFICATION_NO_PERMISSION = "insufficient permissions"
JUSTIFICATION_NO_CONSENT = "no consent for data processing"
JUSTIFICATION_AUTHORIZED = "access authorized"

# Operations that process existing patient data need data_processing consent
CONSENT_REQUIRED_OPERATIONS = frozenset(
    {DataOperation.READ, DataOperation.UPDATE, DataOperation.SHARE}
)

_DENIAL_ERRORS = {
    JUSTIFICATION_NOT_FOUND: NotFoundError,
    JUSTIFICATION_NO_PERMISSION: PermissionDeniedError,
    JUSTIFICATION_NO_CONSENT: ConsentMissingError,
}


def coerce_operation(operation: Union[DataOperation, str]) -> DataOperation:
    """Parse an operation name."""
    if isinstance(operation, DataOperation):
        return operation
    try:
        return DataOperation(operation)
    except ValueError as e:
        raise InvalidInputError(f"Unknown operation: {operation!r}") from e


class AccessPolicyGate:
    """Decides whether a user may perform an operation on a patient's data."""

    def __init__(
        self,
        patient_store: PatientStore,
        consent_store: ConsentStore,
        permission_oracle: PermissionOracle,
        audit_sink: AuditSink,
    ):
        """Initialize gate with its collaborators."""
        self.patient_store = patient_store
        self.consent_store = consent_store
        self.permission_oracle = permission_oracle
        self.audit_sink = audit_sink

    def check_access(
        self,
        user_id: str,
        patient_id: UUID,
        operation: Union[DataOperation, str],
        data_type: str = "patient_data",
    ) -> AccessDecision:
        """Evaluate and audit one access request.

        Returns the decision, granted or denied. The operation name is parsed
        first, as input validation: an unknown name is not an access request,
        so it raises before anything is evaluated or appended.

        Raises:
            InvalidInputError: ``operation`` is not a known operation
            AuditUnavailableError: the decision could not be appended
        """
        operation = coerce_operation(operation)
        try:
            result, justification = self._evaluate(user_id, patient_id, operation)
        except Exception as e:  # fail closed on any evaluation fault
            logger.error(
                "Access evaluation failed",
                user_id=user_id,
                patient_id=str(patient_id),
                operation=operation.value,
                error=str(e),
            )
            result = AccessResult.DENIED
            justification = f"access evaluation failed: {_describe(e)}"

        return self.record_decision(
            user_id, patient_id, operation, result, justification, data_type
        )

    def require_access(
        self,
        user_id: str,
        patient_id: UUID,
        operation: Union[DataOperation, str],
        data_type: str = "patient_data",
    ) -> AccessDecision:
        """Like ``check_access`` but raise the typed failure on denial."""
        decision = self.check_access(user_id, patient_id, operation, data_type)
        self.raise_for_denial(decision)
        return decision

    def raise_for_denial(self, decision: AccessDecision) -> None:
        """Raise the typed failure matching a denied decision."""
        if decision.granted:
            return
        error_cls: Type[ComplianceError] = _DENIAL_ERRORS.get(
            decision.justification, CollaboratorUnavailableError
        )
        if error_cls is CollaboratorUnavailableError:
            raise CollaboratorUnavailableError(
                decision.justification, collaborator="access_policy", decision=decision
            )
        raise error_cls(
            f"Access denied for {decision.operation.value} "
            f"on patient {decision.patient_id}: {decision.justification}",
            justification=decision.justification,
        )

    def record_decision(
        self,
        user_id: str,
        patient_id: UUID,
        operation: DataOperation,
        result: AccessResult,
        justification: str,
        data_type: str = "patient_data",
    ) -> AccessDecision:
        """Append a decision to the audit sink.

        Also used by the consent, export and deletion services for their own
        decisions.
        """
        decision = AccessDecision(
            id=uuid.uuid4(),
            user_id=user_id,
            patient_id=patient_id,
            operation=operation,
            result=result,
            timestamp=datetime.utcnow(),
            justification=justification,
            data_type=data_type,
        )
        try:
            self.audit_sink.append(decision)
        except Exception as e:
            denied = decision.model_copy(
                update={
                    "result": AccessResult.DENIED,
                    "justification": "audit logging unavailable",
                }
            )
            logger.critical(
                "Audit append failed, access denied",
                user_id=user_id,
                patient_id=str(patient_id),
                operation=operation.value,
                evaluated_result=result.value,
                error=str(e),
            )
            raise AuditUnavailableError(decision=denied, cause=e) from e

        if result != AccessResult.GRANTED:
            logger.warning(
                "Access denied",
                user_id=user_id,
                patient_id=str(patient_id),
                operation=operation.value,
                justification=justification,
            )
        return decision

    def _evaluate(
        self, user_id: str, patient_id: UUID, operation: DataOperation
    ) -> Tuple[AccessResult, str]:
        if self.patient_store.find_by_id(patient_id) is None:
            return AccessResult.DENIED, JUSTIFICATION_NOT_FOUND

        if not self.permission_oracle.has_permission(user_id, patient_id, operation):
            return AccessResult.DENIED, JUSTIFICATION_NO_PERMISSION

        if operation in CONSENT_REQUIRED_OPERATIONS:
            consent = self.consent_store.find_latest(
                patient_id, ConsentPurpose.DATA_PROCESSING
            )
            if consent is None or not consent.is_effective:
                return AccessResult.DENIED, JUSTIFICATION_NO_CONSENT

        return AccessResult.GRANTED, JUSTIFICATION_AUTHORIZED


def _describe(error: Exception) -> str:
    collaborator: Optional[str] = getattr(error, "collaborator", None)
    if collaborator:
        return f"{collaborator} unavailable"
    return error.__class__.__name__
