"""Audit sink backed by the ``access_decisions`` table."""

import hashlib
import json
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func

from patient_compliance.models.access_decision import (
    AccessDecisionRecord,
    AuditTrailSnapshot,
)
from patient_compliance.schemas.access import AccessDecision
from patient_compliance.utils.logging import get_logger

from .base import SQLAlchemyRepository

logger = get_logger(__name__)


def to_decision(row: AccessDecisionRecord) -> AccessDecision:
    """Convert an audit row to its domain record."""
    return AccessDecision(
        id=row.id,
        user_id=row.user_id,
        patient_id=row.patient_id,
        operation=row.operation,
        result=row.result,
        timestamp=row.decided_at,
        justification=row.justification,
        data_type=row.data_type,
    )


class AuditRepository(SQLAlchemyRepository):
    """Append-only audit storage with trail snapshots."""

    collaborator = "audit_sink"

    def append(self, decision: AccessDecision) -> None:
        """Persist one decision."""
        with self._guard("append"):
            self.session.add(
                AccessDecisionRecord(
                    id=decision.id,
                    user_id=decision.user_id,
                    patient_id=decision.patient_id,
                    operation=decision.operation.value,
                    result=decision.result.value,
                    justification=decision.justification,
                    data_type=decision.data_type,
                    decided_at=decision.timestamp,
                )
            )
            self.session.commit()

    def list_by_patient(
        self,
        patient_id: UUID,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> List[AccessDecision]:
        """Decisions about a patient, oldest first."""
        with self._guard("list_by_patient"):
            query = self.session.query(AccessDecisionRecord).filter(
                AccessDecisionRecord.patient_id == patient_id
            )
            if date_from:
                query = query.filter(AccessDecisionRecord.decided_at >= date_from)
            if date_to:
                query = query.filter(AccessDecisionRecord.decided_at <= date_to)
            rows = query.order_by(AccessDecisionRecord.decided_at.asc()).all()
            return [to_decision(row) for row in rows]

    def count_by_patient(self, patient_id: UUID) -> int:
        """Number of decisions about a patient."""
        with self._guard("count_by_patient"):
            return (
                self.session.query(func.count(AccessDecisionRecord.id))
                .filter(AccessDecisionRecord.patient_id == patient_id)
                .scalar()
                or 0
            )

    def preserve_trail(self, patient_id: UUID, reason: str) -> str:
        """Copy every decision about a patient into a sealed snapshot."""
        with self._guard("preserve_trail"):
            rows = (
                self.session.query(AccessDecisionRecord)
                .filter(AccessDecisionRecord.patient_id == patient_id)
                .order_by(AccessDecisionRecord.decided_at.asc())
                .all()
            )
            entries = [to_decision(row).model_dump(mode="json") for row in rows]
            digest = hashlib.sha256(
                json.dumps(entries, sort_keys=True).encode("utf-8")
            ).hexdigest()
            snapshot = AuditTrailSnapshot(
                patient_id=patient_id,
                reason=reason,
                decision_count=len(entries),
                digest=digest,
                entries=entries,
                preserved_at=datetime.utcnow(),
            )
            self.session.add(snapshot)
            self.session.commit()
            logger.info(
                "Audit trail preserved",
                patient_id=str(patient_id),
                snapshot_id=str(snapshot.id),
                decisions=len(entries),
            )
            return str(snapshot.id)
