"""Portability export schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from .base import ComplianceModel, to_naive_utc


class ExportRequest(ComplianceModel):
    """What to include in a portability export."""

    patient_id: UUID
    format: str = "json"
    requested_by: str = Field(..., min_length=1)
    include_medical_history: bool = True
    include_documents: bool = True
    include_status_history: bool = True
    include_consent_history: bool = True
    include_audit_trail: bool = False
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    reason: Optional[str] = None

    @field_validator("date_from", "date_to")
    @classmethod
    def normalize_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Compare dates in naive UTC."""
        return to_naive_utc(v)

    @field_validator("format")
    @classmethod
    def normalize_format(cls, v: str) -> str:
        """Lower-case the requested format."""
        return v.lower()


class ExportValidationResult(ComplianceModel):
    """Outcome of validating an export request."""

    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    estimated_size_bytes: int = 0
    estimated_processing_ms: int = 0


class ExportMetadata(ComplianceModel):
    """Descriptive metadata attached to every export."""

    record_counts: Dict[str, int] = Field(default_factory=dict)
    data_categories: List[str] = Field(default_factory=list)
    exported_by: str
    legal_basis: str = "LGPD Article 18 - Data Portability Right"
    retention_notices: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    estimated_size_bytes: int = 0
    estimated_processing_ms: int = 0


class ExportBundle(ComplianceModel):
    """Structured export before encoding."""

    export_id: str
    patient_id: UUID
    format: str
    exported_at: datetime
    sections: Dict[str, Any] = Field(default_factory=dict)
    metadata: ExportMetadata


class RenderedExport(ComplianceModel):
    """Encoded export ready for delivery."""

    export_id: str
    format: str
    filename: str
    media_type: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        """Size of the encoded payload."""
        return len(self.content)


class SealedExport(ComplianceModel):
    """Encrypted export with a time-limited download token."""

    export_id: str
    filename: str
    token: str
    download_url: str
    expires_at: datetime
    ciphertext: bytes
