"""Tests for the engine's error hierarchy."""

from patient_compliance.core.exceptions import (
    AuditUnavailableError,
    CollaboratorUnavailableError,
    ConflictError,
    ConsentMissingError,
    PolicyError,
)


class TestComplianceErrors:
    """Error codes and retry classification."""

    def test_policy_errors_are_final(self):
        """Policy outcomes are never retryable."""
        error = ConsentMissingError(
            "Access denied", justification="no consent for data processing"
        )

        assert isinstance(error, PolicyError)
        assert error.to_dict() == {
            "code": "CONSENT_MISSING",
            "message": "Access denied",
            "justification": "no consent for data processing",
            "retryable": False,
        }

    def test_conflicts_and_outages_are_retryable(self):
        """Races and collaborator failures may be retried by the caller."""
        assert ConflictError("lost race").retryable is True
        assert CollaboratorUnavailableError("down", collaborator="patient_store").retryable

    def test_audit_unavailable_keeps_justification(self):
        """The cause is in the message, not the audit justification."""
        error = AuditUnavailableError(cause=TimeoutError("write timed out"))

        assert error.collaborator == "audit_sink"
        assert error.justification == "audit logging unavailable"
        assert "write timed out" in error.message
