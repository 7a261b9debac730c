"""Consent ledger.

Records are append-only. A withdrawal adds a new record with
``granted=False`` and never touches the grant it supersedes; the effective
consent for a purpose is always the latest record.
"""

from datetime import datetime
from typing import List, Optional, Union
from uuid import UUID

from patient_compliance.core.exceptions import (
    ConsentAlreadyWithdrawnError,
    InvalidInputError,
    NotFoundError,
)
from patient_compliance.repositories.interfaces import ConsentStore, PatientStore
from patient_compliance.schemas.consent import ConsentRecord
from patient_compliance.schemas.enums import (
    AccessResult,
    ConsentPurpose,
    DataOperation,
    LegalBasis,
)
from patient_compliance.services.access_policy import (
    JUSTIFICATION_NOT_FOUND,
    AccessPolicyGate,
)
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)


def coerce_purpose(purpose: Union[ConsentPurpose, str]) -> ConsentPurpose:
    """Parse a consent purpose."""
    if isinstance(purpose, ConsentPurpose):
        return purpose
    try:
        return ConsentPurpose(purpose)
    except ValueError as e:
        raise InvalidInputError(f"Unknown consent purpose: {purpose!r}") from e


def coerce_legal_basis(legal_basis: Union[LegalBasis, str]) -> LegalBasis:
    """Parse a legal basis."""
    if isinstance(legal_basis, LegalBasis):
        return legal_basis
    try:
        return LegalBasis(legal_basis)
    except ValueError as e:
        raise InvalidInputError(f"Unknown legal basis: {legal_basis!r}") from e


class ConsentLedger:
    """Records, withdraws and resolves patient consent."""

    def __init__(
        self,
        patient_store: PatientStore,
        consent_store: ConsentStore,
        access_gate: AccessPolicyGate,
    ):
        """Initialize ledger with its collaborators."""
        self.patient_store = patient_store
        self.consent_store = consent_store
        self.access_gate = access_gate

    def record_consent(
        self,
        patient_id: UUID,
        purpose: Union[ConsentPurpose, str],
        granted: bool,
        legal_basis: Union[LegalBasis, str],
        user_id: str,
    ) -> ConsentRecord:
        """Append a grant (or refusal) for ``purpose``."""
        purpose = coerce_purpose(purpose)
        legal_basis = coerce_legal_basis(legal_basis)
        self._require_user(user_id)
        self._require_patient(patient_id, user_id, DataOperation.CREATE)

        now = datetime.utcnow()
        record = self.consent_store.append(
            patient_id=patient_id,
            purpose=purpose,
            granted=granted,
            legal_basis=legal_basis,
            recorded_by=user_id,
            granted_at=now if granted else None,
            withdrawn_at=None,
        )
        self.access_gate.record_decision(
            user_id,
            patient_id,
            DataOperation.CREATE,
            AccessResult.GRANTED,
            f"consent {'granted' if granted else 'refused'} for {purpose.value}",
            data_type="consent",
        )
        logger.info(
            "Consent recorded",
            patient_id=str(patient_id),
            purpose=purpose.value,
            granted=granted,
            legal_basis=legal_basis.value,
        )
        return record

    def withdraw_consent(
        self, patient_id: UUID, purpose: Union[ConsentPurpose, str], user_id: str
    ) -> ConsentRecord:
        """Append a withdrawal for the latest grant of ``purpose``.

        Raises:
            NotFoundError: nothing was ever recorded for the purpose
            ConsentAlreadyWithdrawnError: the latest record is not a grant
        """
        purpose = coerce_purpose(purpose)
        self._require_user(user_id)
        self._require_patient(patient_id, user_id, DataOperation.UPDATE)

        latest = self.consent_store.find_latest(patient_id, purpose)
        if latest is None:
            raise NotFoundError(
                f"No consent recorded for {purpose.value} on patient {patient_id}"
            )
        if not latest.is_effective:
            raise ConsentAlreadyWithdrawnError()

        record = self.consent_store.append(
            patient_id=patient_id,
            purpose=purpose,
            granted=False,
            legal_basis=latest.legal_basis,
            recorded_by=user_id,
            granted_at=latest.granted_at,
            withdrawn_at=datetime.utcnow(),
        )
        self.access_gate.record_decision(
            user_id,
            patient_id,
            DataOperation.UPDATE,
            AccessResult.GRANTED,
            f"consent withdrawn for {purpose.value}",
            data_type="consent",
        )
        logger.info(
            "Consent withdrawn", patient_id=str(patient_id), purpose=purpose.value
        )
        return record

    def get_effective_consent(
        self, patient_id: UUID, purpose: Union[ConsentPurpose, str]
    ) -> Optional[ConsentRecord]:
        """Latest record for the purpose, whether granted or not."""
        return self.consent_store.find_latest(patient_id, coerce_purpose(purpose))

    def has_effective_consent(
        self, patient_id: UUID, purpose: Union[ConsentPurpose, str]
    ) -> bool:
        """Check whether the latest record for the purpose is a live grant."""
        record = self.get_effective_consent(patient_id, purpose)
        return record is not None and record.is_effective

    def list_consent_history(self, patient_id: UUID) -> List[ConsentRecord]:
        """Every consent record of a patient, oldest first."""
        return self.consent_store.list_by_patient(patient_id)

    @staticmethod
    def _require_user(user_id: str) -> None:
        if not user_id or not user_id.strip():
            raise InvalidInputError("A user id is required to record consent")

    def _require_patient(
        self, patient_id: UUID, user_id: str, operation: DataOperation
    ) -> None:
        if self.patient_store.find_by_id(patient_id) is None:
            self.access_gate.record_decision(
                user_id,
                patient_id,
                operation,
                AccessResult.DENIED,
                JUSTIFICATION_NOT_FOUND,
                data_type="consent",
            )
            raise NotFoundError(f"Patient {patient_id} not found")
