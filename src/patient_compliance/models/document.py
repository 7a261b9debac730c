"""Patient document model."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from .base import BaseModel
from .db_types import UUID


class Document(BaseModel):
    """Document attached to a patient record.

    ``document_type`` carries the tag used by retention rules
    (``legal`` and ``consent_form`` documents are kept after deletion).
    """

    __tablename__ = "patient_documents"

    patient_id = Column(UUID(), nullable=False, index=True)  # type: ignore[var-annotated]
    file_name = Column(String(255), nullable=False)
    file_type = Column(String(100))  # mime type
    file_size = Column(Integer, nullable=False, default=0)  # in bytes
    file_path = Column(String(500))
    document_type = Column(String(50), nullable=False, default="other")
    uploaded_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    uploaded_by = Column(String(100))
    is_anonymized = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """Return string representation of Document."""
        return f"<Document(id={self.id}, type={self.document_type})>"


__all__ = ["Document"]
