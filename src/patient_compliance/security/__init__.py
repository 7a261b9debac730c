"""Cryptographic helpers for sealed exports and anonymized identifiers."""

from .encryption import FieldEncryptor, Pseudonymizer

__all__ = ["FieldEncryptor", "Pseudonymizer"]
