"""Shared plumbing for SQLAlchemy repositories."""

from contextlib import contextmanager
from typing import Any, Generator, Type
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from patient_compliance.core.exceptions import (
    CollaboratorUnavailableError,
    ConflictError,
)
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)


class SQLAlchemyRepository:
    """Base repository holding the session and translating storage errors."""

    collaborator = "store"

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    @contextmanager
    def _guard(self, action: str) -> Generator[None, None, None]:
        """Roll back and report storage failures in engine terms.

        A unique constraint violation means a concurrent writer appended the
        same sequence number first.
        """
        try:
            yield
        except IntegrityError as e:
            self.session.rollback()
            logger.warning(
                "Concurrent write rejected",
                collaborator=self.collaborator,
                action=action,
                error=str(e.orig),
            )
            raise ConflictError(
                f"{self.collaborator}: concurrent modification during {action}"
            ) from e
        except (SQLAlchemyError, TimeoutError) as e:
            self.session.rollback()
            logger.error(
                "Storage failure",
                collaborator=self.collaborator,
                action=action,
                error=str(e),
            )
            raise CollaboratorUnavailableError(
                f"{self.collaborator} unavailable during {action}: {e}",
                collaborator=self.collaborator,
            ) from e

    def _next_sequence(self, model: Type[Any], patient_id: UUID) -> int:
        current = (
            self.session.query(func.max(model.sequence))
            .filter(model.patient_id == patient_id)
            .scalar()
        )
        return (current or 0) + 1
