"""Patient schemas."""

import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field, field_validator

from patient_compliance.utils.cpf import clean_cpf, is_valid_cpf

from .base import ComplianceModel
from .enums import Gender, PatientStatus

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class Address(ComplianceModel):
    """Postal address."""

    street: str = ""
    number: str = ""
    complement: Optional[str] = None
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""


class PatientRecord(ComplianceModel):
    """Read view of a stored patient."""

    id: UUID
    full_name: str
    date_of_birth: date
    gender: str = Gender.UNKNOWN.value
    cpf: Optional[str] = None
    rg: Optional[str] = None
    primary_phone: Optional[str] = None
    secondary_phone: Optional[str] = None
    email: Optional[str] = None
    address: Dict[str, Any] = Field(default_factory=dict)
    status: PatientStatus
    version: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    anonymized_at: Optional[datetime] = None

    @property
    def is_anonymized(self) -> bool:
        """Check whether identifying fields were overwritten."""
        return self.anonymized_at is not None


class PatientRegistrationRequest(ComplianceModel):
    """Intake data for a new patient."""

    full_name: str = Field(..., min_length=2, max_length=255)
    date_of_birth: date
    gender: Gender = Gender.UNKNOWN
    cpf: Optional[str] = None
    rg: Optional[str] = Field(None, max_length=20)
    primary_phone: Optional[str] = None
    secondary_phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[Address] = None

    @field_validator("cpf")
    @classmethod
    def validate_cpf(cls, v: Optional[str]) -> Optional[str]:
        """Normalize CPF to digits and verify its check digits."""
        if v is None or not v.strip():
            return None
        if not is_valid_cpf(v):
            raise ValueError("Invalid CPF format or checksum")
        return clean_cpf(v)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date) -> date:
        """Reject birth dates in the future."""
        if v > date.today():
            raise ValueError("Date of birth cannot be in the future")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        """Validate email format."""
        if v is None or not v:
            return None
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v.lower()

    @field_validator("primary_phone", "secondary_phone")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        """Validate and normalize phone number."""
        if v is None or not v:
            return None
        cleaned = re.sub(r"\D", "", v)
        if len(cleaned) < 10 or len(cleaned) > 15:
            raise ValueError("Invalid phone number length")
        return cleaned


class PatientRegistrationResult(ComplianceModel):
    """Outcome of registering a patient."""

    patient: PatientRecord
    warnings: List[str] = Field(default_factory=list)
    possible_duplicates: List[UUID] = Field(default_factory=list)
