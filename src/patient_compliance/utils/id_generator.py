"""Identifiers for exports and download links."""

import secrets
import uuid
from typing import Optional


def generate_id(prefix: Optional[str] = None) -> str:
    """Return a random UUID string, as ``<prefix>_<uuid>`` when prefixed.

    Export ids are prefixed so they are never mistaken for patient ids in
    audit data.
    """
    base_id = str(uuid.uuid4())
    return f"{prefix}_{base_id}" if prefix else base_id


def generate_token(nbytes: int = 24) -> str:
    """Unguessable URL-safe token for a sealed export's download link."""
    return secrets.token_urlsafe(nbytes)
