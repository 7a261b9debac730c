"""Patient Lifecycle & Compliance Engine.

Governs patient status transitions, detects duplicate identities at intake and
enforces LGPD obligations: consent, access gating, portability and erasure.
"""

__version__ = "0.1.0"
