"""Tests for export encryption and pseudonyms."""

from datetime import datetime

import pytest
from cryptography.fernet import Fernet

from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.security.encryption import FieldEncryptor, Pseudonymizer


class TestFieldEncryptor:
    """Fernet sealing."""

    def test_round_trip(self, settings):
        """Sealed payloads decrypt with the same key."""
        encryptor = FieldEncryptor(settings)

        ciphertext, expires_at = encryptor.seal("patient export")

        assert ciphertext != b"patient export"
        assert encryptor.decrypt(ciphertext) == b"patient export"
        assert expires_at > datetime.utcnow()

    def test_foreign_key_is_rejected(self, settings):
        """Payloads sealed with another key are invalid."""
        other = FieldEncryptor(
            settings.model_copy(update={"encryption_key": Fernet.generate_key().decode()})
        )
        token = other.encrypt(b"payload")

        with pytest.raises(InvalidInputError):
            FieldEncryptor(settings).decrypt(token)


class TestPseudonymizer:
    """Keyed pseudonyms."""

    def test_stable_and_keyed(self, settings):
        """Same input and key give the same pseudonym, another key does not."""
        first = Pseudonymizer(settings)
        other = Pseudonymizer(
            settings.model_copy(update={"pseudonym_key": "another-key-" + "x" * 32})
        )

        assert first.pseudonym("abc") == first.pseudonym("abc")
        assert len(first.pseudonym("abc")) == 64
        assert first.pseudonym("abc") != first.pseudonym("abd")
        assert first.pseudonym("abc") != other.pseudonym("abc")
