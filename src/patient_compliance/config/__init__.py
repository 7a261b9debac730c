"""Configuration module for the compliance engine."""

from patient_compliance.config.base import Settings
from patient_compliance.config.loader import get_settings

__all__ = ["Settings", "get_settings"]
