"""Security incident repository."""

from typing import List

from patient_compliance.models.incident import IncidentReportModel
from patient_compliance.schemas.enums import IncidentStatus
from patient_compliance.schemas.incident import IncidentReport

from .base import SQLAlchemyRepository


def to_report(row: IncidentReportModel) -> IncidentReport:
    """Convert an incident row to its domain record."""
    return IncidentReport.model_validate(row)


class IncidentRepository(SQLAlchemyRepository):
    """Access to ``incident_reports``."""

    collaborator = "incident_store"

    def save(self, report: IncidentReport) -> IncidentReport:
        """Insert or update a report."""
        with self._guard("save"):
            row = self.session.get(IncidentReportModel, report.id)
            if row is None:
                row = IncidentReportModel(id=report.id)
                self.session.add(row)
            row.incident_type = report.incident_type.value
            row.severity = report.severity.value
            row.description = report.description
            row.affected_patients = [str(p) for p in report.affected_patients]
            row.detected_at = report.detected_at
            row.reported_at = report.reported_at
            row.reported_by = report.reported_by
            row.status = report.status.value
            row.mitigation_actions = list(report.mitigation_actions)
            row.authority_notified = report.authority_notified
            if report.status == IncidentStatus.RESOLVED and row.resolved_at is None:
                row.resolved_at = report.reported_at
            self.session.commit()
            return to_report(row)

    def list_unresolved(self) -> List[IncidentReport]:
        """Incidents that are not resolved yet, newest first."""
        with self._guard("list_unresolved"):
            rows = (
                self.session.query(IncidentReportModel)
                .filter(IncidentReportModel.status != IncidentStatus.RESOLVED.value)
                .order_by(IncidentReportModel.reported_at.desc())
                .all()
            )
            return [to_report(row) for row in rows]
