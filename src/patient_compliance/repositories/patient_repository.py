"""Patient repository."""

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, or_, update

from patient_compliance.core.exceptions import ConflictError
from patient_compliance.models.patient import Patient
from patient_compliance.models.status_history import StatusTransitionRecord
from patient_compliance.schemas.enums import PatientStatus
from patient_compliance.schemas.identity import DuplicateCandidate
from patient_compliance.schemas.patient import PatientRecord, PatientRegistrationRequest
from patient_compliance.schemas.status import StatusTransition
from patient_compliance.utils.logging import get_logger

from .base import SQLAlchemyRepository
from .history_repository import stage_transition, to_transition

logger = get_logger(__name__)


class PatientRepository(SQLAlchemyRepository):
    """Patient registry backed by the ``patients`` table."""

    collaborator = "patient_store"

    def find_by_id(self, patient_id: UUID) -> Optional[PatientRecord]:
        """Load a patient, bypassing any stale identity-map copy."""
        with self._guard("find_by_id"):
            row = self.session.get(Patient, patient_id, populate_existing=True)
            return PatientRecord.model_validate(row) if row else None

    def find_potential_duplicates(
        self, full_name: str, date_of_birth: date, cpf: Optional[str] = None
    ) -> List[DuplicateCandidate]:
        """Patients sharing the CPF or the birth date.

        Anonymized patients are never candidates.
        """
        with self._guard("find_potential_duplicates"):
            criteria = [Patient.date_of_birth == date_of_birth]
            if cpf:
                criteria.append(Patient.cpf == cpf)
            rows = (
                self.session.query(Patient)
                .filter(or_(*criteria), Patient.anonymized_at.is_(None))
                .order_by(Patient.created_at)
                .all()
            )
            return [
                DuplicateCandidate(
                    patient_id=row.id,
                    full_name=row.full_name,
                    date_of_birth=row.date_of_birth,
                    cpf=row.cpf,
                )
                for row in rows
            ]

    def create(
        self, request: PatientRegistrationRequest, created_by: str
    ) -> PatientRecord:
        """Insert a patient with status ``new`` and its creation transition."""
        with self._guard("create"):
            now = datetime.utcnow()
            patient = Patient(
                full_name=request.full_name,
                date_of_birth=request.date_of_birth,
                gender=request.gender.value,
                cpf=request.cpf,
                rg=request.rg,
                primary_phone=request.primary_phone,
                secondary_phone=request.secondary_phone,
                email=request.email,
                address=request.address.model_dump() if request.address else {},
                status=PatientStatus.NEW.value,
                version=1,
                created_at=now,
                updated_at=now,
            )
            self.session.add(patient)
            stage_transition(
                self.session,
                patient.id,
                1,
                None,
                PatientStatus.NEW,
                None,
                created_by,
                now,
            )
            self.session.commit()
            return PatientRecord.model_validate(patient)

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
        """Conditionally update the status and append history in one commit."""
        with self._guard("apply_transition"):
            result = self.session.execute(
                update(Patient)
                .where(
                    Patient.id == patient_id,
                    Patient.status == expected_status.value,
                    Patient.version == expected_version,
                )
                .values(
                    status=to_status.value,
                    version=expected_version + 1,
                    updated_at=changed_at,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.session.rollback()
                logger.warning(
                    "Status update lost a race",
                    patient_id=str(patient_id),
                    expected_status=expected_status.value,
                    expected_version=expected_version,
                )
                raise ConflictError(
                    f"Patient {patient_id} changed concurrently; "
                    f"expected status {expected_status.value} at version {expected_version}"
                )
            row = stage_transition(
                self.session,
                patient_id,
                self._next_sequence(StatusTransitionRecord, patient_id),
                expected_status,
                to_status,
                reason,
                changed_by,
                changed_at,
            )
            self.session.commit()
            return to_transition(row)

    def anonymize(self, patient_id: UUID, sentinel: str) -> bool:
        """Overwrite identifying fields, keeping status and birth date."""
        with self._guard("anonymize"):
            patient = self.session.get(Patient, patient_id)
            if patient is None:
                return False
            patient.mark_anonymized(sentinel)
            self.session.commit()
            return True

    def delete(self, patient_id: UUID) -> bool:
        """Hard delete the patient row."""
        with self._guard("delete"):
            deleted = (
                self.session.query(Patient)
                .filter(Patient.id == patient_id)
                .delete(synchronize_session=False)
            )
            self.session.commit()
            return bool(deleted)

    def count_by_status(self) -> Dict[str, int]:
        """Number of patients per status."""
        with self._guard("count_by_status"):
            rows = (
                self.session.query(Patient.status, func.count(Patient.id))
                .group_by(Patient.status)
                .all()
            )
            return {status: count for status, count in rows}
