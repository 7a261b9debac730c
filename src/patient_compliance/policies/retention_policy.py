"""Retention resolution.

Requirements are recomputed from live data on every call; nothing here is
persisted or cached.

Structural requirements (medical records, legal documents, audit logs) are
non-overridable. A ``legal_obligation`` deletion reason may widen the
deletion scope, but the items those requirements cover are still preserved
one by one when the deletion runs.
"""

from datetime import date, datetime
from typing import Callable, List, Optional, Union
from uuid import UUID

from patient_compliance.config import Settings, get_settings
from patient_compliance.repositories.interfaces import (
    DocumentStore,
    FinancialRecordStore,
    MedicalRecordStore,
    PatientStore,
)
from patient_compliance.schemas.enums import (
    RETENTION_DOCUMENT_TYPES,
    DataCategory,
    DeletionReason,
    PatientStatus,
)
from patient_compliance.schemas.retention import (
    RetentionAssessment,
    RetentionRequirement,
)
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

Moment = Union[date, datetime]


def shift_years(moment: Moment, years: int) -> Moment:
    """Move ``moment`` by whole years, clamping Feb 29 to Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)


class RetentionResolver:
    """Computes which retention requirements apply to a patient."""

    def __init__(
        self,
        patient_store: PatientStore,
        medical_record_store: MedicalRecordStore,
        document_store: DocumentStore,
        financial_record_store: Optional[FinancialRecordStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """Initialize resolver with its stores."""
        self.settings = settings or get_settings()
        self.patient_store = patient_store
        self.medical_record_store = medical_record_store
        self.document_store = document_store
        self.financial_record_store = financial_record_store
        self.clock = clock

    def resolve(
        self, patient_id: UUID, reason: Optional[DeletionReason] = None
    ) -> RetentionAssessment:
        """List the requirements for ``patient_id`` and whether full deletion is allowed."""
        patient = self.patient_store.find_by_id(patient_id)
        if patient is None:
            return RetentionAssessment(
                patient_id=patient_id,
                patient_found=False,
                can_fully_delete=False,
                warnings=["Patient not found"],
            )

        now = self.clock()
        requirements = [
            self._medical_records(patient_id, now),
            self._legal_documents(patient_id),
            self._audit_logs(),
        ]
        financial = self._financial_records(patient_id, now)
        if financial is not None:
            requirements.append(financial)
        requirements.append(self._active_care(patient.status))

        blocking = [r for r in requirements if self._blocks(r)]
        can_fully_delete = reason == DeletionReason.LEGAL_OBLIGATION or not blocking

        warnings = [
            f"{r.description} ({r.legal_basis}, {r.minimum_retention_period})"
            for r in requirements
            if r.in_effect
        ]
        assessment = RetentionAssessment(
            patient_id=patient_id,
            patient_found=True,
            requirements=requirements,
            can_fully_delete=can_fully_delete,
            warnings=warnings,
        )
        logger.info(
            "Retention resolved",
            patient_id=str(patient_id),
            reason=reason.value if reason else None,
            in_effect=[r.data_category.value for r in requirements if r.in_effect],
            can_fully_delete=can_fully_delete,
        )
        return assessment

    def retention_notices(self, patient_id: UUID) -> List[str]:
        """Human-readable notices of in-effect requirements, for exports."""
        return self.resolve(patient_id).warnings

    @staticmethod
    def _blocks(requirement: RetentionRequirement) -> bool:
        # Audit logs are preserved through the trail snapshot, never by blocking
        if not requirement.in_effect:
            return False
        return (
            requirement.overridable
            or requirement.data_category != DataCategory.AUDIT_LOGS
        )

    def _medical_records(self, patient_id: UUID, now: datetime) -> RetentionRequirement:
        years = self.settings.medical_record_retention_years
        cutoff = shift_years(now, -years)
        recent = self.medical_record_store.count_recorded_since(patient_id, cutoff)
        latest = self.medical_record_store.latest_recorded_at(patient_id)
        return RetentionRequirement(
            data_category=DataCategory.MEDICAL_RECORDS,
            legal_basis="CFM Resolution 1821/2007",
            minimum_retention_period=f"{years} years from last entry",
            overridable=False,
            description="Medical records must be retained after the last entry",
            in_effect=recent > 0,
            retained_until=shift_years(latest, years).date() if latest else None,
        )

    def _legal_documents(self, patient_id: UUID) -> RetentionRequirement:
        years = self.settings.legal_document_retention_years
        documents = self.document_store.find_by_types(
            patient_id, [t.value for t in RETENTION_DOCUMENT_TYPES]
        )
        return RetentionRequirement(
            data_category=DataCategory.LEGAL_DOCUMENTS,
            legal_basis="LGPD Article 37",
            minimum_retention_period=f"processing duration + {years} years",
            overridable=False,
            description="Legal and consent documents must be retained as evidence",
            in_effect=bool(documents),
        )

    def _audit_logs(self) -> RetentionRequirement:
        years = self.settings.audit_log_retention_years
        return RetentionRequirement(
            data_category=DataCategory.AUDIT_LOGS,
            legal_basis="LGPD Article 37",
            minimum_retention_period=f"{years} years minimum",
            overridable=False,
            description="Audit logs must be retained for compliance",
            in_effect=True,
        )

    def _financial_records(
        self, patient_id: UUID, now: datetime
    ) -> Optional[RetentionRequirement]:
        if self.financial_record_store is None:
            return None
        if not self.financial_record_store.has_records(patient_id):
            return None
        years = self.settings.financial_record_retention_years
        return RetentionRequirement(
            data_category=DataCategory.FINANCIAL_RECORDS,
            legal_basis="Brazilian tax legislation",
            minimum_retention_period=f"{years} years",
            overridable=False,
            description="Financial records must be retained for tax purposes",
            in_effect=True,
            retained_until=shift_years(now, years).date(),
        )

    @staticmethod
    def _active_care(status: PatientStatus) -> RetentionRequirement:
        return RetentionRequirement(
            data_category=DataCategory.ACTIVE_CARE,
            legal_basis="Continuity of care",
            minimum_retention_period="while treatment is ongoing",
            overridable=True,
            description="Patient is under active care",
            in_effect=status in (PatientStatus.ACTIVE, PatientStatus.ON_HOLD),
        )
