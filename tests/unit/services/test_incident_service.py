"""Tests for security incident reporting."""

import uuid
from datetime import datetime, timedelta

import pytest

from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.engine import ComplianceEngine
from patient_compliance.schemas.enums import (
    AccessResult,
    DataOperation,
    IncidentSeverity,
    IncidentStatus,
)
from tests.conftest import RecordingNotifier


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def incidents(db_session, settings, oracle, notifier):
    """Incident service with a recording notifier."""
    engine = ComplianceEngine.from_session(
        db_session, settings, permission_oracle=oracle, notifier=notifier
    )
    return engine.incident_service


def incident_data(severity="high", affected=None):
    return {
        "incident_type": "unauthorized_access",
        "severity": severity,
        "description": "Shared workstation left logged in",
        "affected_patients": affected or [],
        "detected_at": datetime.utcnow() - timedelta(hours=2),
        "reported_by": "security-officer",
        "mitigation_actions": ["Session revoked", "Password reset"],
    }


@pytest.mark.lgpd_required
@pytest.mark.audit_required
class TestReportIncident:
    """Incident intake and escalation."""

    def test_high_severity_is_escalated(self, incidents, notifier, compliance, make_patient):
        """Serious incidents reach the notifier and are flagged."""
        patient = make_patient()

        report = incidents.report_incident(incident_data("high", [patient.id]))

        assert report.status == IncidentStatus.DETECTED
        assert report.requires_notification
        assert report.authority_notified is True
        assert [r.id for r in notifier.notified] == [report.id]

        decisions = compliance.audit.list_by_patient(patient.id)
        assert len(decisions) == 1
        assert decisions[0].operation == DataOperation.CREATE
        assert decisions[0].result == AccessResult.GRANTED
        assert decisions[0].data_type == "incident"

    def test_low_severity_is_not_escalated(self, incidents, notifier):
        """Minor incidents are only recorded."""
        report = incidents.report_incident(incident_data("low"))

        assert report.severity == IncidentSeverity.LOW
        assert report.authority_notified is False
        assert notifier.notified == []

    def test_notifier_failure_keeps_report(self, db_session, settings, oracle):
        """A failed escalation leaves the report unflagged."""
        engine = ComplianceEngine.from_session(
            db_session, settings, permission_oracle=oracle, notifier=RecordingNotifier(fail=True)
        )

        report = engine.incident_service.report_incident(incident_data("critical"))

        assert report.authority_notified is False
        assert [r.id for r in engine.incident_service.list_open_incidents()] == [report.id]

    def test_one_decision_per_affected_patient(
        self, incidents, compliance, make_patient, count_decisions
    ):
        """Each affected patient's audit trail records the incident."""
        first = make_patient()
        other_id = uuid.uuid4()

        incidents.report_incident(incident_data("medium", [first.id, other_id]))

        assert count_decisions(first.id) == 1
        assert count_decisions(other_id) == 1

    def test_invalid_report(self, incidents):
        """Reports are validated."""
        data = incident_data()
        data["description"] = ""
        with pytest.raises(InvalidInputError):
            incidents.report_incident(data)

    def test_status_updates(self, incidents):
        """Resolved incidents leave the open list."""
        report = incidents.report_incident(incident_data("low"))

        incidents.update_status(report, "contained")
        assert incidents.list_open_incidents()[0].status == IncidentStatus.CONTAINED
        incidents.update_status(report, IncidentStatus.RESOLVED)
        assert incidents.list_open_incidents() == []
        with pytest.raises(InvalidInputError):
            incidents.update_status(report, "forgotten")
