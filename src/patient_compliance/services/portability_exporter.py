"""Data portability (LGPD Article 18) exports.

Every export call appends exactly one ``export`` access decision: the gate's
decision once the request is valid, or a denial naming the validation
failure otherwise.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from patient_compliance.config import Settings, get_settings
from patient_compliance.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    UnsupportedFormatError,
)
from patient_compliance.policies.retention_policy import (
    RetentionResolver,
    shift_years,
)
from patient_compliance.repositories.interfaces import (
    AuditSink,
    ConsentStore,
    DocumentStore,
    HistoryStore,
    MedicalRecordStore,
    PatientStore,
)
from patient_compliance.schemas.base import parse_request
from patient_compliance.schemas.enums import AccessResult, DataOperation, ExportFormat
from patient_compliance.schemas.export import (
    ExportBundle,
    ExportMetadata,
    ExportRequest,
    ExportValidationResult,
    RenderedExport,
    SealedExport,
)
from patient_compliance.schemas.patient import PatientRecord
from patient_compliance.security.encryption import FieldEncryptor
from patient_compliance.services.access_policy import (
    JUSTIFICATION_NOT_FOUND,
    AccessPolicyGate,
)
from patient_compliance.services.export_renderers import render_export
from patient_compliance.utils.cpf import format_cpf
from patient_compliance.utils.id_generator import generate_id, generate_token
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

EXPORT_DATA_TYPE = "portability_export"

# Estimation constants
BYTES_PER_RECORD = 1024
MS_PER_RECORD = 50
MS_PER_DOCUMENT = 100
AUDIT_TRAIL_BYTES = 10 * 1024 * 1024
AUDIT_TRAIL_MS = 5000


class PortabilityExporter:
    """Assembles, encodes and seals patient data exports."""

    SUPPORTED_FORMATS = tuple(f.value for f in ExportFormat)

    def __init__(
        self,
        patient_store: PatientStore,
        history_store: HistoryStore,
        consent_store: ConsentStore,
        document_store: DocumentStore,
        medical_record_store: MedicalRecordStore,
        audit_sink: AuditSink,
        access_gate: AccessPolicyGate,
        retention_resolver: RetentionResolver,
        encryptor: Optional[FieldEncryptor] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize exporter with its collaborators."""
        self.settings = settings or get_settings()
        self.patient_store = patient_store
        self.history_store = history_store
        self.consent_store = consent_store
        self.document_store = document_store
        self.medical_record_store = medical_record_store
        self.audit_sink = audit_sink
        self.access_gate = access_gate
        self.retention_resolver = retention_resolver
        self.encryptor = encryptor or FieldEncryptor(self.settings)

    def export_patient_data(
        self,
        patient_id: UUID,
        export_format: str,
        requested_by: str,
        **options: Any,
    ) -> ExportBundle:
        """Export a patient's data; ``options`` are ExportRequest fields."""
        request = parse_request(
            ExportRequest,
            {
                "patient_id": patient_id,
                "format": export_format,
                "requested_by": requested_by,
                **options,
            },
        )
        return self.export(request)

    def export(self, request: Union[ExportRequest, Dict[str, Any]]) -> ExportBundle:
        """Validate, authorize and assemble an export.

        Raises:
            UnsupportedFormatError: the format is not json, xml, csv or pdf
            NotFoundError: the patient does not exist
            InvalidInputError: dates or size limits are violated
            PermissionDeniedError: the permission oracle refused the export
        """
        request = parse_request(ExportRequest, request)

        if request.format not in self.SUPPORTED_FORMATS:
            self._deny(request, f"unsupported format: {request.format}")
            raise UnsupportedFormatError(f"Unsupported export format: {request.format}")

        patient = self.patient_store.find_by_id(request.patient_id)
        if patient is None:
            self._deny(request, JUSTIFICATION_NOT_FOUND)
            raise NotFoundError(f"Patient {request.patient_id} not found")

        validation = self._validate(request, patient)
        if not validation.is_valid:
            self._deny(request, f"invalid export request: {'; '.join(validation.errors)}")
            raise InvalidInputError("; ".join(validation.errors))

        decision = self.access_gate.check_access(
            request.requested_by,
            request.patient_id,
            DataOperation.EXPORT,
            data_type=EXPORT_DATA_TYPE,
        )
        self.access_gate.raise_for_denial(decision)

        sections = self._assemble_sections(request, patient)
        metadata = ExportMetadata(
            record_counts={
                name: len(content)
                for name, content in sections.items()
                if isinstance(content, list)
            },
            data_categories=list(sections.keys()),
            exported_by=request.requested_by,
            retention_notices=self.retention_resolver.retention_notices(
                request.patient_id
            ),
            warnings=validation.warnings,
            estimated_size_bytes=validation.estimated_size_bytes,
            estimated_processing_ms=validation.estimated_processing_ms,
        )
        bundle = ExportBundle(
            export_id=generate_id("export"),
            patient_id=request.patient_id,
            format=request.format,
            exported_at=datetime.utcnow(),
            sections=sections,
            metadata=metadata,
        )
        logger.info(
            "Patient data exported",
            export_id=bundle.export_id,
            patient_id=str(request.patient_id),
            format=request.format,
            exported_by=request.requested_by,
            record_counts=metadata.record_counts,
        )
        return bundle

    def validate_export_request(
        self, request: Union[ExportRequest, Dict[str, Any]]
    ) -> ExportValidationResult:
        """Check an export request and estimate its size and duration."""
        request = parse_request(ExportRequest, request)
        errors: List[str] = []
        if request.format not in self.SUPPORTED_FORMATS:
            errors.append(f"Unsupported export format: {request.format}")
        patient = self.patient_store.find_by_id(request.patient_id)
        if patient is None:
            errors.append("Patient not found")
            return ExportValidationResult(is_valid=False, errors=errors)
        result = self._validate(request, patient)
        return result.model_copy(
            update={"errors": errors + result.errors, "is_valid": not (errors + result.errors)}
        )

    def render_export(self, bundle: ExportBundle) -> RenderedExport:
        """Encode a bundle in its format."""
        return render_export(bundle)

    def seal_export(self, bundle: ExportBundle) -> SealedExport:
        """Encrypt the rendered export behind a time-limited download token."""
        rendered = self.render_export(bundle)
        ciphertext, expires_at = self.encryptor.seal(rendered.content)
        token = generate_token()
        base_url = self.settings.export_base_url.rstrip("/")
        logger.info(
            "Export sealed",
            export_id=bundle.export_id,
            size_bytes=rendered.size_bytes,
            expires_at=expires_at.isoformat(),
        )
        return SealedExport(
            export_id=bundle.export_id,
            filename=rendered.filename,
            token=token,
            download_url=f"{base_url}/exports/{bundle.export_id}/download?token={token}",
            expires_at=expires_at,
            ciphertext=ciphertext,
        )

    def _deny(self, request: ExportRequest, justification: str) -> None:
        self.access_gate.record_decision(
            request.requested_by,
            request.patient_id,
            DataOperation.EXPORT,
            AccessResult.DENIED,
            justification,
            data_type=EXPORT_DATA_TYPE,
        )

    def _validate(
        self, request: ExportRequest, patient: PatientRecord
    ) -> ExportValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        now = datetime.utcnow()

        if request.date_from and request.date_to:
            if request.date_from > request.date_to:
                errors.append("Start date must be before end date")
            limit_years = self.settings.export_large_range_years
            if shift_years(request.date_from, limit_years) < request.date_to:
                span = (request.date_to - request.date_from).days / 365.25
                warnings.append(
                    f"Large date range ({round(span)} years) may result in slow processing"
                )
        for label, value in (("Start", request.date_from), ("End", request.date_to)):
            if value and value > now:
                errors.append(f"{label} date cannot be in the future")

        size = 0
        duration = 0
        if request.include_documents:
            documents = self.document_store.list_by_patient(patient.id)
            size += sum(d.file_size or 0 for d in documents)
            duration += len(documents) * MS_PER_DOCUMENT
        if request.include_medical_history:
            records = self.medical_record_store.list_by_patient(
                patient.id, request.date_from, request.date_to
            )
            size += len(records) * BYTES_PER_RECORD
            duration += len(records) * MS_PER_RECORD
        if request.include_audit_trail:
            size += AUDIT_TRAIL_BYTES
            duration += AUDIT_TRAIL_MS
            warnings.append(
                "Including audit trail may significantly increase export size "
                "and processing time"
            )

        max_size = self.settings.export_max_size_bytes
        if size > max_size:
            errors.append(
                f"Estimated export size ({round(size / 1024 / 1024)}MB) exceeds "
                f"maximum allowed size ({round(max_size / 1024 / 1024)}MB)"
            )
        if duration > self.settings.export_max_processing_ms:
            warnings.append(
                f"Estimated processing time ({round(duration / 1000 / 60)} minutes) "
                "is very long"
            )

        return ExportValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            estimated_size_bytes=size,
            estimated_processing_ms=duration,
        )

    def _assemble_sections(
        self, request: ExportRequest, patient: PatientRecord
    ) -> Dict[str, Any]:
        date_from, date_to = request.date_from, request.date_to

        def in_range(moment: datetime) -> bool:
            if date_from and moment < date_from:
                return False
            return not (date_to and moment > date_to)

        sections: Dict[str, Any] = {
            "personal_info": {
                "id": str(patient.id),
                "full_name": patient.full_name,
                "date_of_birth": patient.date_of_birth.isoformat(),
                "gender": patient.gender,
                "cpf": format_cpf(patient.cpf) if patient.cpf else None,
                "rg": patient.rg,
                "status": patient.status.value,
                "registered_at": patient.created_at.isoformat() if patient.created_at else None,
            },
            "contact_info": {
                "primary_phone": patient.primary_phone,
                "secondary_phone": patient.secondary_phone,
                "email": patient.email,
                "address": patient.address,
            },
        }
        if request.include_medical_history:
            sections["medical_history"] = [
                entry.model_dump(mode="json", exclude={"patient_id", "subject_pseudonym"})
                for entry in self.medical_record_store.list_by_patient(
                    patient.id, date_from, date_to
                )
            ]
        if request.include_documents:
            sections["documents"] = [
                doc.model_dump(mode="json", exclude={"patient_id", "file_path"})
                for doc in self.document_store.list_by_patient(patient.id)
                if in_range(doc.uploaded_at)
            ]
        if request.include_status_history:
            sections["status_history"] = [
                t.model_dump(mode="json", exclude={"patient_id"})
                for t in reversed(self.history_store.list_transitions(patient.id))
                if in_range(t.timestamp)
            ]
        if request.include_consent_history:
            sections["consent_history"] = [
                c.model_dump(mode="json", exclude={"patient_id"})
                for c in self.consent_store.list_by_patient(patient.id)
                if in_range(c.recorded_at)
            ]
        if request.include_audit_trail:
            sections["audit_trail"] = [
                d.model_dump(mode="json", exclude={"patient_id"})
                for d in self.audit_sink.list_by_patient(patient.id, date_from, date_to)
            ]
        return sections
