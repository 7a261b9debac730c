"""Declarative base and shared columns for the engine's tables."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .db_types import UUID


class Base(DeclarativeBase):
    """Declarative base shared by all models."""


class TimestampMixin:
    """Row creation and last update times."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class BaseModel(Base, TimestampMixin):
    """Table with a UUID primary key assigned at construction.

    Repositories stage dependent rows (history, decisions) before the first
    flush, so the id cannot wait for the column default.
    """

    __abstract__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(), primary_key=True, default=uuid.uuid4, nullable=False
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize row, assigning an id when none was given."""
        super().__init__(**kwargs)
        if not self.id:
            self.id = uuid.uuid4()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"<{self.__class__.__name__}(id={self.id})>"
