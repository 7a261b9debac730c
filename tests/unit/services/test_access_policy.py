"""Tests for the access policy gate."""

import uuid
from datetime import datetime, timedelta

import pytest

from patient_compliance.core.exceptions import (
    AuditUnavailableError,
    CollaboratorUnavailableError,
    ConsentMissingError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from patient_compliance.engine import ComplianceEngine
from patient_compliance.repositories import AccessGrantRepository
from patient_compliance.schemas.enums import AccessResult, ConsentPurpose, DataOperation
from patient_compliance.services.access_policy import AccessPolicyGate
from tests.conftest import BrokenOracle, DenyAllOracle, FailingAuditSink


def build_gate(compliance, oracle=None, audit_sink=None):
    return AccessPolicyGate(
        compliance.patients,
        compliance.consents,
        oracle or compliance.permission_oracle,
        audit_sink or compliance.audit,
    )


@pytest.mark.audit_required
class TestCheckAccess:
    """Decisions and their audit records."""

    def test_read_granted_with_permission_and_consent(
        self, compliance, make_patient, grant_processing_consent
    ):
        """The happy path grants and is audited."""
        patient = make_patient()
        grant_processing_consent(patient.id)

        decision = compliance.access_gate.check_access(
            "clinician-1", patient.id, DataOperation.READ
        )

        assert decision.granted
        assert decision.justification == "access authorized"
        stored = compliance.audit.list_by_patient(patient.id)
        assert stored[-1].id == decision.id
        assert stored[-1].result == AccessResult.GRANTED

    @pytest.mark.parametrize("operation", ["read", "update", "share"])
    def test_processing_operations_need_consent(self, compliance, make_patient, operation):
        """Permission alone is not enough to process data."""
        patient = make_patient()

        decision = compliance.access_gate.check_access("clinician-1", patient.id, operation)

        assert decision.result == AccessResult.DENIED
        assert decision.justification == "no consent for data processing"

    @pytest.mark.parametrize("operation", ["create", "delete", "export"])
    def test_other_operations_skip_consent(self, compliance, make_patient, operation):
        """Consent gates processing, not record keeping or data subject rights."""
        patient = make_patient()

        decision = compliance.access_gate.check_access("clinician-1", patient.id, operation)

        assert decision.granted

    def test_withdrawn_consent_denies(
        self, compliance, make_patient, grant_processing_consent
    ):
        """Only the latest consent record counts."""
        patient = make_patient()
        grant_processing_consent(patient.id)
        compliance.consent_ledger.withdraw_consent(
            patient.id, ConsentPurpose.DATA_PROCESSING, "clinician-1"
        )

        decision = compliance.access_gate.check_access("clinician-1", patient.id, "read")

        assert decision.justification == "no consent for data processing"

    def test_unknown_patient(self, compliance):
        """Missing patients are denied as not found."""
        decision = compliance.access_gate.check_access(
            "clinician-1", uuid.uuid4(), DataOperation.READ
        )

        assert decision.result == AccessResult.DENIED
        assert decision.justification == "not found"

    def test_permission_refused(self, compliance, make_patient, grant_processing_consent):
        """The oracle has the final say on authorization."""
        patient = make_patient()
        grant_processing_consent(patient.id)
        gate = build_gate(compliance, oracle=DenyAllOracle())

        decision = gate.check_access("intern-7", patient.id, DataOperation.READ)

        assert decision.justification == "insufficient permissions"

    def test_oracle_failure_denies_and_is_audited(
        self, compliance, make_patient, count_decisions
    ):
        """Evaluation faults fail closed."""
        patient = make_patient()
        gate = build_gate(compliance, oracle=BrokenOracle())
        before = count_decisions(patient.id)

        decision = gate.check_access("clinician-1", patient.id, DataOperation.EXPORT)

        assert decision.result == AccessResult.DENIED
        assert decision.justification == (
            "access evaluation failed: permission_oracle unavailable"
        )
        assert count_decisions(patient.id) == before + 1

    def test_audit_failure_denies(self, compliance, make_patient, grant_processing_consent):
        """A decision that cannot be logged is never returned as granted."""
        patient = make_patient()
        grant_processing_consent(patient.id)
        sink = FailingAuditSink()
        gate = build_gate(compliance, audit_sink=sink)

        with pytest.raises(AuditUnavailableError) as exc_info:
            gate.check_access("clinician-1", patient.id, DataOperation.READ)

        error = exc_info.value
        assert sink.attempts == 1
        assert error.retryable is True
        assert error.collaborator == "audit_sink"
        assert error.decision.result == AccessResult.DENIED
        assert error.decision.justification == "audit logging unavailable"

    def test_exactly_one_decision_per_check(
        self, compliance, make_patient, grant_processing_consent, count_decisions
    ):
        """Every branch appends one decision."""
        patient = make_patient()
        grant_processing_consent(patient.id)
        gates = [
            compliance.access_gate,
            build_gate(compliance, oracle=DenyAllOracle()),
            build_gate(compliance, oracle=BrokenOracle()),
        ]
        for gate in gates:
            for operation in DataOperation:
                before = count_decisions()
                gate.check_access("clinician-1", patient.id, operation)
                assert count_decisions() == before + 1

        before = count_decisions()
        compliance.access_gate.check_access("clinician-1", uuid.uuid4(), "read")
        assert count_decisions() == before + 1

    def test_unknown_operation(self, compliance, make_patient, oracle, count_decisions):
        """Operation names are validated before evaluation or audit."""
        patient = make_patient()
        before = count_decisions()

        with pytest.raises(InvalidInputError):
            compliance.access_gate.check_access("clinician-1", patient.id, "print")

        assert count_decisions() == before
        assert oracle.calls == []


class TestRequireAccess:
    """Typed failures for denials."""

    def test_consent_missing(self, compliance, make_patient):
        """Missing consent raises ConsentMissingError."""
        patient = make_patient()
        with pytest.raises(ConsentMissingError) as exc_info:
            compliance.access_gate.require_access("clinician-1", patient.id, "read")
        assert exc_info.value.justification == "no consent for data processing"
        assert exc_info.value.retryable is False

    def test_permission_denied(self, compliance, make_patient):
        """Refused permission raises PermissionDeniedError."""
        patient = make_patient()
        gate = build_gate(compliance, oracle=DenyAllOracle())
        with pytest.raises(PermissionDeniedError):
            gate.require_access("intern-7", patient.id, "delete")

    def test_not_found(self, compliance):
        """Missing patient raises NotFoundError."""
        with pytest.raises(NotFoundError):
            compliance.access_gate.require_access("clinician-1", uuid.uuid4(), "read")

    def test_evaluation_failure(self, compliance, make_patient):
        """Collaborator faults stay retryable."""
        patient = make_patient()
        gate = build_gate(compliance, oracle=BrokenOracle())
        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            gate.require_access("clinician-1", patient.id, "create")
        assert exc_info.value.retryable is True
        assert exc_info.value.decision.result == AccessResult.DENIED


class TestAccessGrantOracle:
    """Grant-based permission oracle."""

    def test_patient_scoped_grant(self, db_session):
        """Grants cover only their patient and operations."""
        grants = AccessGrantRepository(db_session)
        patient_id = uuid.uuid4()
        grants.grant("clinician-1", [DataOperation.READ], patient_id=patient_id)

        assert grants.has_permission("clinician-1", patient_id, DataOperation.READ)
        assert not grants.has_permission("clinician-1", patient_id, DataOperation.DELETE)
        assert not grants.has_permission("clinician-1", uuid.uuid4(), DataOperation.READ)
        assert not grants.has_permission("clinician-2", patient_id, DataOperation.READ)

    def test_global_grant(self, db_session):
        """A grant without patient covers every patient."""
        grants = AccessGrantRepository(db_session)
        grants.grant("dpo", [DataOperation.EXPORT, DataOperation.DELETE])

        assert grants.has_permission("dpo", uuid.uuid4(), DataOperation.EXPORT)

    def test_revoked_and_expired_grants(self, db_session):
        """Inactive grants are ignored."""
        grants = AccessGrantRepository(db_session)
        patient_id = uuid.uuid4()
        grant_id = grants.grant("clinician-1", [DataOperation.READ], patient_id=patient_id)
        grants.grant(
            "clinician-2",
            [DataOperation.READ],
            patient_id=patient_id,
            valid_until=datetime.utcnow() - timedelta(minutes=1),
        )

        assert grants.revoke(grant_id) is True
        assert grants.revoke(grant_id) is False
        assert not grants.has_permission("clinician-1", patient_id, DataOperation.READ)
        assert not grants.has_permission("clinician-2", patient_id, DataOperation.READ)

    def test_default_engine_oracle(self, db_session, settings, make_patient):
        """The engine falls back to grants when no oracle is injected."""
        engine = ComplianceEngine.from_session(db_session, settings)
        patient = make_patient()

        denied = engine.access_gate.check_access("auditor", patient.id, "export")
        engine.permission_oracle.grant("auditor", [DataOperation.EXPORT])
        granted = engine.access_gate.check_access("auditor", patient.id, "export")

        assert denied.justification == "insufficient permissions"
        assert granted.granted
