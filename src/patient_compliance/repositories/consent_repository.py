"""Consent ledger repository."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from patient_compliance.models.consent import ConsentRecordModel
from patient_compliance.schemas.consent import ConsentRecord
from patient_compliance.schemas.enums import ConsentPurpose, LegalBasis

from .base import SQLAlchemyRepository


def to_consent(row: ConsentRecordModel) -> ConsentRecord:
    """Convert a ledger row to its domain record."""
    return ConsentRecord.model_validate(row)


class ConsentRepository(SQLAlchemyRepository):
    """Append-only access to ``consent_records``."""

    collaborator = "consent_store"

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
        with self._guard("append"):
            row = ConsentRecordModel(
                patient_id=patient_id,
                purpose=purpose.value,
                granted=granted,
                granted_at=granted_at,
                withdrawn_at=withdrawn_at,
                legal_basis=legal_basis.value,
                recorded_by=recorded_by,
                recorded_at=datetime.utcnow(),
                sequence=self._next_sequence(ConsentRecordModel, patient_id),
            )
            self.session.add(row)
            self.session.commit()
            return to_consent(row)

    def find_latest(
        self, patient_id: UUID, purpose: ConsentPurpose
    ) -> Optional[ConsentRecord]:
        """Latest record for (patient, purpose) by ledger order."""
        with self._guard("find_latest"):
            row = (
                self.session.query(ConsentRecordModel)
                .filter(
                    ConsentRecordModel.patient_id == patient_id,
                    ConsentRecordModel.purpose == purpose.value,
                )
                .order_by(ConsentRecordModel.sequence.desc())
                .first()
            )
            return to_consent(row) if row else None

    def list_by_patient(self, patient_id: UUID) -> List[ConsentRecord]:
        """Every record of a patient, oldest first."""
        with self._guard("list_by_patient"):
            rows = (
                self.session.query(ConsentRecordModel)
                .filter(ConsentRecordModel.patient_id == patient_id)
                .order_by(ConsentRecordModel.sequence.asc())
                .all()
            )
            return [to_consent(row) for row in rows]
