"""Grant-based permission oracle."""

from datetime import datetime
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import or_

from patient_compliance.models.access_grant import AccessGrant
from patient_compliance.schemas.enums import DataOperation

from .base import SQLAlchemyRepository


class AccessGrantRepository(SQLAlchemyRepository):
    """Answers permission questions from the ``access_grants`` table."""

    collaborator = "permission_oracle"

    def grant(
        self,
        user_id: str,
        operations: Iterable[DataOperation],
        patient_id: Optional[UUID] = None,
        granted_by: Optional[str] = None,
        valid_until: Optional[datetime] = None,
    ) -> UUID:
        """Grant ``operations`` on one patient, or on all when ``patient_id`` is None."""
        with self._guard("grant"):
            row = AccessGrant(
                user_id=user_id,
                patient_id=patient_id,
                operations=sorted(op.value for op in operations),
                granted_by=granted_by,
                valid_until=valid_until,
            )
            self.session.add(row)
            self.session.commit()
            return row.id

    def revoke(self, grant_id: UUID) -> bool:
        """Revoke a grant."""
        with self._guard("revoke"):
            row = self.session.get(AccessGrant, grant_id)
            if row is None or row.revoked_at is not None:
                return False
            row.revoked_at = datetime.utcnow()
            self.session.commit()
            return True

    def has_permission(
        self, user_id: str, patient_id: UUID, operation: DataOperation
    ) -> bool:
        """Check for an active grant covering the operation."""
        with self._guard("has_permission"):
            now = datetime.utcnow()
            rows = (
                self.session.query(AccessGrant)
                .filter(
                    AccessGrant.user_id == user_id,
                    or_(
                        AccessGrant.patient_id == patient_id,
                        AccessGrant.patient_id.is_(None),
                    ),
                )
                .all()
            )
            return any(
                row.is_active(now) and operation.value in (row.operations or [])
                for row in rows
            )
