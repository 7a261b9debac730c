"""Security incident reporting (LGPD Article 48)."""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.repositories.interfaces import IncidentNotifier, IncidentStore
from patient_compliance.schemas.base import parse_request
from patient_compliance.schemas.enums import AccessResult, DataOperation, IncidentStatus
from patient_compliance.schemas.incident import IncidentReport, IncidentReportRequest
from patient_compliance.services.access_policy import AccessPolicyGate
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

INCIDENT_DATA_TYPE = "incident"


class IncidentService:
    """Records incidents and escalates the serious ones."""

    def __init__(
        self,
        incident_store: IncidentStore,
        access_gate: AccessPolicyGate,
        notifier: Optional[IncidentNotifier] = None,
    ):
        """Initialize service with its collaborators."""
        self.incident_store = incident_store
        self.access_gate = access_gate
        self.notifier = notifier

    def report_incident(
        self, request: Union[IncidentReportRequest, Dict[str, Any]]
    ) -> IncidentReport:
        """Persist an incident and log a decision for each affected patient.

        High and critical incidents are handed to the notifier. A notifier
        failure leaves ``authority_notified`` false and is logged; the report
        itself stays recorded.
        """
        request = parse_request(IncidentReportRequest, request)
        report = IncidentReport(
            id=uuid.uuid4(),
            incident_type=request.incident_type,
            severity=request.severity,
            description=request.description,
            affected_patients=request.affected_patients,
            detected_at=request.detected_at,
            reported_at=datetime.utcnow(),
            reported_by=request.reported_by,
            status=IncidentStatus.DETECTED,
            mitigation_actions=request.mitigation_actions,
        )
        report = self.incident_store.save(report)

        for patient_id in report.affected_patients:
            self.access_gate.record_decision(
                request.reported_by,
                patient_id,
                DataOperation.CREATE,
                AccessResult.GRANTED,
                f"incident reported: {report.incident_type.value} ({report.severity.value})",
                INCIDENT_DATA_TYPE,
            )

        logger.warning(
            "Security incident reported",
            incident_id=str(report.id),
            incident_type=report.incident_type.value,
            severity=report.severity.value,
            affected_patients=len(report.affected_patients),
        )

        if report.requires_notification and self.notifier is not None:
            try:
                self.notifier.notify(report)
            except Exception as e:
                logger.error(
                    "Incident notification failed",
                    incident_id=str(report.id),
                    error=str(e),
                )
            else:
                report = self.incident_store.save(
                    report.model_copy(update={"authority_notified": True})
                )
        return report

    def list_open_incidents(self) -> List[IncidentReport]:
        """Incidents that are not resolved yet."""
        return self.incident_store.list_unresolved()

    def update_status(
        self, incident: IncidentReport, status: Union[IncidentStatus, str]
    ) -> IncidentReport:
        """Move an incident through its handling states."""
        try:
            status = IncidentStatus(status)
        except ValueError as e:
            raise InvalidInputError(f"Unknown incident status: {status!r}") from e
        return self.incident_store.save(incident.model_copy(update={"status": status}))
