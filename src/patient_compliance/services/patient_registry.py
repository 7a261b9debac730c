"""Patient intake with duplicate blocking."""

from typing import Any, Dict, Optional, Union

from patient_compliance.core.exceptions import DuplicateBlockedError, InvalidInputError
from patient_compliance.repositories.interfaces import PatientStore
from patient_compliance.schemas.base import parse_request
from patient_compliance.schemas.enums import DuplicateConfidence
from patient_compliance.schemas.patient import (
    PatientRegistrationRequest,
    PatientRegistrationResult,
)
from patient_compliance.services.identity_matcher import IdentityMatcher
from patient_compliance.utils.cpf import format_cpf, is_valid_cpf
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)


class PatientRegistry:
    """Registers new patients in status ``new``."""

    def __init__(self, patient_store: PatientStore, identity_matcher: IdentityMatcher):
        """Initialize registry."""
        self.patient_store = patient_store
        self.identity_matcher = identity_matcher

    def register_patient(
        self,
        request: Union[PatientRegistrationRequest, Dict[str, Any]],
        user_id: str,
    ) -> PatientRegistrationResult:
        """Validate intake data, block high-confidence duplicates and persist.

        Medium and low confidence matches are returned as warnings.
        """
        request = parse_request(PatientRegistrationRequest, request)
        if not user_id or not user_id.strip():
            raise InvalidInputError("A user id is required to register a patient")

        duplicates = self.identity_matcher.check_for_duplicates(
            request.full_name, request.date_of_birth, request.cpf
        )
        if duplicates.confidence == DuplicateConfidence.HIGH:
            raise DuplicateBlockedError(
                "Patient already registered (matched on "
                f"{', '.join(duplicates.matching_fields)})",
                candidate_ids=duplicates.candidate_ids,
            )

        warnings = []
        if duplicates.is_duplicate:
            warnings.append(
                f"Possible duplicate ({duplicates.confidence.value} confidence): "
                f"matched on {', '.join(duplicates.matching_fields)}"
            )
        if request.cpf is None:
            warnings.append("No CPF provided; duplicate detection relies on name and birth date")

        patient = self.patient_store.create(request, created_by=user_id)
        logger.info(
            "Patient registered",
            patient_id=str(patient.id),
            registered_by=user_id,
            duplicate_confidence=duplicates.confidence.value,
        )
        return PatientRegistrationResult(
            patient=patient,
            warnings=warnings,
            possible_duplicates=duplicates.candidate_ids,
        )

    @staticmethod
    def validate_cpf(value: Optional[str]) -> bool:
        """Check a CPF's length and check digits."""
        return is_valid_cpf(value)

    @staticmethod
    def format_cpf(value: str) -> str:
        """Format a CPF for display."""
        return format_cpf(value)
