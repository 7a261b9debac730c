"""Medical record repository."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func

from patient_compliance.models.medical_record import MedicalRecord
from patient_compliance.schemas.records import MedicalRecordEntry

from .base import SQLAlchemyRepository


class MedicalRecordRepository(SQLAlchemyRepository):
    """Access to ``medical_records``."""

    collaborator = "medical_record_store"

    def list_by_patient(
        self,
        patient_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[MedicalRecordEntry]:
        """Entries of a patient, oldest first."""
        with self._guard("list_by_patient"):
            query = self.session.query(MedicalRecord).filter(
                MedicalRecord.patient_id == patient_id
            )
            if date_from:
                query = query.filter(MedicalRecord.recorded_at >= date_from)
            if date_to:
                query = query.filter(MedicalRecord.recorded_at <= date_to)
            rows = query.order_by(MedicalRecord.recorded_at.asc()).all()
            return [MedicalRecordEntry.model_validate(row) for row in rows]

    def count_recorded_since(self, patient_id: UUID, since: datetime) -> int:
        """Number of entries recorded at or after ``since``."""
        with self._guard("count_recorded_since"):
            return (
                self.session.query(func.count(MedicalRecord.id))
                .filter(
                    MedicalRecord.patient_id == patient_id,
                    MedicalRecord.recorded_at >= since,
                )
                .scalar()
                or 0
            )

    def latest_recorded_at(self, patient_id: UUID) -> Optional[datetime]:
        """Timestamp of the most recent entry, if any."""
        with self._guard("latest_recorded_at"):
            return (
                self.session.query(func.max(MedicalRecord.recorded_at))
                .filter(MedicalRecord.patient_id == patient_id)
                .scalar()
            )

    def anonymize(self, record_id: UUID, pseudonym: str) -> bool:
        """Replace the patient link with ``pseudonym``."""
        with self._guard("anonymize"):
            row = self.session.get(MedicalRecord, record_id)
            if row is None:
                return False
            row.patient_id = None
            row.subject_pseudonym = pseudonym
            row.anonymized_at = datetime.utcnow()
            self.session.commit()
            return True

    def delete(self, record_id: UUID) -> bool:
        """Remove an entry."""
        with self._guard("delete"):
            deleted = (
                self.session.query(MedicalRecord)
                .filter(MedicalRecord.id == record_id)
                .delete(synchronize_session=False)
            )
            self.session.commit()
            return bool(deleted)
