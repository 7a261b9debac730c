"""Base configuration settings.

Note: keys configured here protect anonymized identifiers and sealed exports.
They must come from the environment in production and staging.
"""

import os
import warnings

from cryptography.fernet import Fernet
from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_protected_environment() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in ["production", "staging"]


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )

    # Application
    app_name: str = "Patient Compliance Engine"
    app_version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    log_format: str = "console"

    # Database
    database_url: str = "sqlite:///./patient_compliance.db"
    database_echo: bool = False
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Bounded wait for store and audit calls
    collaborator_timeout_seconds: float = Field(default=5.0, gt=0)

    # Retention (years)
    medical_record_retention_years: int = Field(default=7, ge=1)
    legal_document_retention_years: int = Field(default=5, ge=1)
    audit_log_retention_years: int = Field(default=5, ge=1)
    financial_record_retention_years: int = Field(default=5, ge=1)

    # Duplicate detection
    name_similarity_threshold: float = Field(default=0.7, gt=0, le=1)
    name_token_max_edits: int = Field(default=2, ge=0)

    # Portability
    export_max_size_bytes: int = 100 * 1024 * 1024  # 100MB
    export_max_processing_ms: int = 30 * 60 * 1000  # 30 minutes
    export_large_range_years: int = 10
    export_link_ttl_hours: int = 72
    export_base_url: str = "https://app.evolua.com"

    # Anonymization
    anonymization_sentinel: str = "ANONYMIZED"
    pseudonym_key: str = Field(
        default_factory=lambda: os.getenv("PSEUDONYM_KEY", ""),
        description="HMAC key for anonymized identifiers - MUST be set in production",
    )
    encryption_key: str = Field(
        default_factory=lambda: os.getenv("ENCRYPTION_KEY", ""),
        description="Fernet key for sealed exports - MUST be set in production",
    )

    @field_validator("pseudonym_key")
    @classmethod
    def validate_pseudonym_key(cls, v: str, info: ValidationInfo) -> str:
        """Require a pseudonym key in protected environments."""
        if not v:
            if _is_protected_environment():
                raise ValueError(f"{info.field_name} must be set in production")
            warnings.warn(
                f"{info.field_name} is not set. Generated a temporary key; "
                "pseudonyms will not be stable across restarts.",
                stacklevel=2,
            )
            return Fernet.generate_key().decode()
        if len(v) < 32:
            raise ValueError(f"{info.field_name} must be at least 32 characters long")
        return v

    @field_validator("encryption_key")
    @classmethod
    def validate_encryption_key(cls, v: str, info: ValidationInfo) -> str:
        """Require a valid Fernet key, generating one outside production."""
        if not v:
            if _is_protected_environment():
                raise ValueError(f"{info.field_name} must be set in production")
            warnings.warn(
                f"{info.field_name} is not set. Generated a temporary key for development.",
                stacklevel=2,
            )
            return Fernet.generate_key().decode()
        try:
            Fernet(v.encode())
        except ValueError as e:
            raise ValueError(
                f"{info.field_name} must be a urlsafe base64-encoded 32-byte key"
            ) from e
        return v

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured database is SQLite."""
        return self.database_url.startswith("sqlite")
