"""Base Pydantic models for domain records and requests."""

from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from patient_compliance.core.exceptions import InvalidInputError

ModelT = TypeVar("ModelT", bound=BaseModel)


class ComplianceModel(BaseModel):
    """Base model for all engine schemas with common configuration."""

    model_config = ConfigDict(
        # Model behavior
        validate_assignment=True,
        validate_default=True,
        arbitrary_types_allowed=True,
        from_attributes=True,
        # Serialization
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class RecordModel(ComplianceModel):
    """Immutable record: history entries, consents and decisions."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Express an aware datetime as naive UTC, the form stored timestamps use."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_request(model: Type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` into ``model``, reporting failures as invalid input."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInputError(f"Invalid {model.__name__}: {details}") from e
