"""Status transition history repository."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from patient_compliance.models.status_history import StatusTransitionRecord
from patient_compliance.schemas.enums import PatientStatus
from patient_compliance.schemas.status import StatusHistoryQuery, StatusTransition

from .base import SQLAlchemyRepository


def to_transition(row: StatusTransitionRecord) -> StatusTransition:
    """Convert a history row to its domain record."""
    return StatusTransition(
        id=row.id,
        patient_id=row.patient_id,
        from_status=row.from_status,
        to_status=row.to_status,
        reason=row.reason,
        timestamp=row.changed_at,
        changed_by=row.changed_by,
        sequence=row.sequence,
    )


def stage_transition(
    session: Session,
    patient_id: UUID,
    sequence: int,
    from_status: Optional[PatientStatus],
    to_status: PatientStatus,
    reason: Optional[str],
    changed_by: str,
    changed_at: datetime,
) -> StatusTransitionRecord:
    """Add a history row to the session without committing."""
    row = StatusTransitionRecord(
        patient_id=patient_id,
        from_status=from_status.value if from_status else None,
        to_status=to_status.value,
        reason=reason,
        changed_by=changed_by,
        changed_at=changed_at,
        sequence=sequence,
    )
    session.add(row)
    return row


class HistoryRepository(SQLAlchemyRepository):
    """Append-only access to ``patient_status_history``."""

    collaborator = "history_store"

    def append_transition(
        self,
        patient_id: UUID,
        from_status: Optional[PatientStatus],
        to_status: PatientStatus,
        reason: Optional[str],
        changed_by: str,
        changed_at: datetime,
    ) -> StatusTransition:
        """Append one transition in its own transaction."""
        with self._guard("append_transition"):
            row = stage_transition(
                self.session,
                patient_id,
                self._next_sequence(StatusTransitionRecord, patient_id),
                from_status,
                to_status,
                reason,
                changed_by,
                changed_at,
            )
            self.session.commit()
            return to_transition(row)

    def list_transitions(
        self, patient_id: UUID, limit: Optional[int] = None
    ) -> List[StatusTransition]:
        """Transitions of a patient, newest first."""
        with self._guard("list_transitions"):
            query = (
                self.session.query(StatusTransitionRecord)
                .filter(StatusTransitionRecord.patient_id == patient_id)
                .order_by(StatusTransitionRecord.sequence.desc())
            )
            if limit is not None:
                query = query.limit(limit)
            return [to_transition(row) for row in query.all()]

    def search(self, query: StatusHistoryQuery) -> List[StatusTransition]:
        """Transitions matching every given filter, newest first."""
        with self._guard("search"):
            q = self.session.query(StatusTransitionRecord)
            if query.patient_id:
                q = q.filter(StatusTransitionRecord.patient_id == query.patient_id)
            if query.from_status:
                q = q.filter(
                    StatusTransitionRecord.from_status == query.from_status.value
                )
            if query.to_status:
                q = q.filter(StatusTransitionRecord.to_status == query.to_status.value)
            if query.changed_by:
                q = q.filter(StatusTransitionRecord.changed_by == query.changed_by)
            if query.date_from:
                q = q.filter(StatusTransitionRecord.changed_at >= query.date_from)
            if query.date_to:
                q = q.filter(StatusTransitionRecord.changed_at <= query.date_to)
            rows = (
                q.order_by(
                    StatusTransitionRecord.changed_at.desc(),
                    StatusTransitionRecord.sequence.desc(),
                )
                .offset(query.offset)
                .limit(query.limit)
                .all()
            )
            return [to_transition(row) for row in rows]
