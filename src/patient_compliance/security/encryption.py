"""Encryption for sealed exports and keyed pseudonyms for retained records."""

from datetime import datetime, timedelta
from typing import Optional, Tuple, Union
from uuid import UUID

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes, hmac

from patient_compliance.config import Settings, get_settings
from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)


class FieldEncryptor:
    """Fernet encryption of field values and export payloads."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize encryptor with the configured key."""
        settings = settings or get_settings()
        self.fernet = Fernet(settings.encryption_key.encode())
        self.ttl = timedelta(hours=settings.export_link_ttl_hours)

    def encrypt(self, data: Union[str, bytes]) -> bytes:
        """Encrypt data using Fernet (symmetric encryption)."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return self.fernet.encrypt(data)

    def decrypt(self, token: bytes, enforce_ttl: bool = True) -> bytes:
        """Decrypt a payload, rejecting it once the download window closed."""
        try:
            if enforce_ttl:
                return self.fernet.decrypt(token, ttl=int(self.ttl.total_seconds()))
            return self.fernet.decrypt(token)
        except InvalidToken as e:
            logger.warning("Rejected export payload", reason="invalid or expired")
            raise InvalidInputError("Export payload is invalid or expired") from e

    def seal(self, data: Union[str, bytes]) -> Tuple[bytes, datetime]:
        """Encrypt data and return it with its expiry."""
        return self.encrypt(data), datetime.utcnow() + self.ttl


class Pseudonymizer:
    """Derives stable, non-reversible identifiers with HMAC-SHA256."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """Initialize pseudonymizer with the configured key."""
        settings = settings or get_settings()
        self._key = settings.pseudonym_key.encode("utf-8")

    def pseudonym(self, value: Union[str, UUID]) -> str:
        """Return the hex pseudonym of ``value``."""
        mac = hmac.HMAC(self._key, hashes.SHA256())
        mac.update(str(value).encode("utf-8"))
        return mac.finalize().hex()
