"""Patient document repository."""

from typing import List, Sequence
from uuid import UUID

from patient_compliance.models.document import Document
from patient_compliance.schemas.records import DocumentRecord

from .base import SQLAlchemyRepository


class DocumentRepository(SQLAlchemyRepository):
    """Access to ``patient_documents``."""

    collaborator = "document_store"

    def list_by_patient(self, patient_id: UUID) -> List[DocumentRecord]:
        """Documents of a patient, oldest upload first."""
        with self._guard("list_by_patient"):
            rows = (
                self.session.query(Document)
                .filter(Document.patient_id == patient_id)
                .order_by(Document.uploaded_at.asc())
                .all()
            )
            return [DocumentRecord.model_validate(row) for row in rows]

    def find_by_types(
        self, patient_id: UUID, document_types: Sequence[str]
    ) -> List[DocumentRecord]:
        """Documents of a patient whose tag is one of ``document_types``."""
        with self._guard("find_by_types"):
            rows = (
                self.session.query(Document)
                .filter(
                    Document.patient_id == patient_id,
                    Document.document_type.in_(list(document_types)),
                )
                .all()
            )
            return [DocumentRecord.model_validate(row) for row in rows]

    def delete(self, document_id: UUID) -> bool:
        """Remove a document row."""
        with self._guard("delete"):
            deleted = (
                self.session.query(Document)
                .filter(Document.id == document_id)
                .delete(synchronize_session=False)
            )
            self.session.commit()
            return bool(deleted)

    def anonymize(self, document_id: UUID, sentinel: str) -> bool:
        """Replace the file name, which often carries the patient's name."""
        with self._guard("anonymize"):
            row = self.session.get(Document, document_id)
            if row is None:
                return False
            extension = row.file_name.rsplit(".", 1)[-1] if "." in row.file_name else ""
            row.file_name = f"{sentinel}.{extension}" if extension else sentinel
            row.is_anonymized = True
            self.session.commit()
            return True
