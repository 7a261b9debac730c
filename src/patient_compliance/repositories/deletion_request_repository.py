"""Deletion request repository."""

from typing import Optional
from uuid import UUID

from patient_compliance.models.deletion_request import DeletionRequestModel
from patient_compliance.schemas.deletion import DeletionRequest

from .base import SQLAlchemyRepository


def to_request(row: DeletionRequestModel) -> DeletionRequest:
    """Convert a request row to its domain record."""
    return DeletionRequest.model_validate(row)


class DeletionRequestRepository(SQLAlchemyRepository):
    """Access to ``deletion_requests``."""

    collaborator = "deletion_request_store"

    def save(self, request: DeletionRequest) -> DeletionRequest:
        """Insert or update a request."""
        with self._guard("save"):
            row = self.session.get(DeletionRequestModel, request.id)
            if row is None:
                row = DeletionRequestModel(id=request.id)
                self.session.add(row)
            row.patient_id = request.patient_id
            row.requested_by = request.requested_by
            row.requested_at = request.requested_at
            row.reason = request.reason.value
            row.justification = request.justification
            row.scope = request.scope.value
            row.status = request.status.value
            row.scheduled_for = request.scheduled_for
            row.completed_at = request.completed_at
            row.audit_trail_preserved = request.audit_trail_preserved
            row.audit_trail_id = request.audit_trail_id
            row.retention_exceptions = [
                r.model_dump(mode="json") for r in request.retention_exceptions
            ]
            row.validation_errors = list(request.validation_errors)
            row.execution_errors = list(request.execution_errors)
            self.session.commit()
            return to_request(row)

    def get(self, request_id: UUID) -> Optional[DeletionRequest]:
        """Load a request or return None."""
        with self._guard("get"):
            row = self.session.get(
                DeletionRequestModel, request_id, populate_existing=True
            )
            return to_request(row) if row else None
