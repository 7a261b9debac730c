"""Core Exceptions Module.

Every failure raised by the engine carries a stable machine-readable ``code``
and a human-readable ``justification`` suitable for audit display.

Policy errors are final: retrying cannot change the outcome. Conflict and
collaborator failures are retryable by the caller; the engine never retries.
"""

from typing import Any, Optional


class ComplianceError(Exception):
    """Base exception for all compliance engine errors."""

    code = "COMPLIANCE_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        justification: Optional[str] = None,
    ):
        """Initialize exception.

        Args:
            message: Error message
            code: Optional error code overriding the class default
            justification: Audit-facing justification, defaults to the message
        """
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.justification = justification or message

    def to_dict(self) -> dict:
        """Serialize the error for API layers."""
        return {
            "code": self.code,
            "message": self.message,
            "justification": self.justification,
            "retryable": self.retryable,
        }


class PolicyError(ComplianceError):
    """Expected policy outcome or validation failure."""


class NotFoundError(PolicyError):
    """Raised when a patient or record does not exist."""

    code = "NOT_FOUND"


class InvalidInputError(PolicyError):
    """Raised when a request is malformed."""

    code = "INVALID_INPUT"


class ConsentAlreadyWithdrawnError(InvalidInputError):
    """Raised when withdrawing a consent that is already withdrawn."""

    code = "CONSENT_ALREADY_WITHDRAWN"

    def __init__(self, message: str = "Consent already withdrawn"):
        """Initialize ConsentAlreadyWithdrawnError."""
        super().__init__(message)


class StatusTransitionError(PolicyError):
    """Base exception for status lifecycle errors."""

    def __init__(self, message: str, from_status: Any = None, to_status: Any = None):
        """Initialize StatusTransitionError."""
        super().__init__(message)
        self.from_status = from_status
        self.to_status = to_status


class UndefinedTransitionError(StatusTransitionError):
    """Raised when a (from, to) pair is absent from the transition table."""

    code = "UNDEFINED_TRANSITION"


class DisallowedTransitionError(StatusTransitionError):
    """Raised when the transition table explicitly forbids a transition."""

    code = "DISALLOWED_TRANSITION"


class MissingReasonError(StatusTransitionError):
    """Raised when a transition requires a reason and none was given."""

    code = "MISSING_REASON"


class DuplicateBlockedError(PolicyError):
    """Raised when intake matches an existing patient with high confidence."""

    code = "DUPLICATE_BLOCKED"

    def __init__(self, message: str, candidate_ids: Optional[list] = None):
        """Initialize DuplicateBlockedError."""
        super().__init__(message)
        self.candidate_ids = candidate_ids or []


class ConsentMissingError(PolicyError):
    """Raised when an operation requires consent that is not in effect."""

    code = "CONSENT_MISSING"


class PermissionDeniedError(PolicyError):
    """Raised when the permission oracle refuses an operation."""

    code = "PERMISSION_DENIED"


class RetentionBlockedError(PolicyError):
    """Raised when legal retention prevents a deletion from proceeding."""

    code = "RETENTION_BLOCKED"


class UnsupportedFormatError(PolicyError):
    """Raised when an export format is not supported."""

    code = "UNSUPPORTED_FORMAT"


class ConflictError(ComplianceError):
    """Raised when a concurrent modification won the race."""

    code = "CONFLICT"
    retryable = True


class CollaboratorUnavailableError(ComplianceError):
    """Raised when a store, the audit sink or the permission oracle fails."""

    code = "COLLABORATOR_UNAVAILABLE"
    retryable = True

    def __init__(
        self,
        message: str,
        collaborator: Optional[str] = None,
        decision: Any = None,
    ):
        """Initialize CollaboratorUnavailableError.

        Args:
            message: Error message
            collaborator: Name of the failing collaborator
            decision: Access decision evaluated before the failure, if any
        """
        super().__init__(message)
        self.collaborator = collaborator
        self.decision = decision


class AuditUnavailableError(CollaboratorUnavailableError):
    """Raised when an access decision could not be appended to the audit sink."""

    def __init__(self, decision: Any = None, cause: Optional[BaseException] = None):
        """Initialize AuditUnavailableError."""
        message = "audit logging unavailable"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, collaborator="audit_sink", decision=decision)
        self.justification = "audit logging unavailable"
