"""Test configuration for the patient compliance engine.

Every test runs against a real in-memory SQLite database shared through a
static connection pool, so the repositories exercise the same SQL they run in
production.
"""

import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from patient_compliance.config import Settings
from patient_compliance.core.database import create_session_factory, drop_db, init_db
from patient_compliance.core.exceptions import CollaboratorUnavailableError
from patient_compliance.engine import ComplianceEngine
from patient_compliance.models import AccessDecisionRecord, Document, MedicalRecord
from patient_compliance.schemas.enums import ConsentPurpose, LegalBasis

# Set testing environment BEFORE settings are built
os.environ["ENVIRONMENT"] = "testing"

# Check digits verified by hand
VALID_CPF = "52998224725"
OTHER_VALID_CPF = "11144477735"

TEST_PSEUDONYM_KEY = "test-pseudonym-key-0123456789abcdef"


def pytest_configure(config):
    """Register custom markers for compliance tests."""
    config.addinivalue_line(
        "markers", "lgpd_required: mark test as covering an LGPD obligation"
    )
    config.addinivalue_line(
        "markers", "audit_required: mark test as requiring audit logging"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an end-to-end workflow"
    )


class AllowAllOracle:
    """Permission oracle granting everything."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def has_permission(self, user_id, patient_id, operation) -> bool:
        self.calls.append((user_id, patient_id, operation))
        return True


class DenyAllOracle:
    """Permission oracle refusing everything."""

    def has_permission(self, user_id, patient_id, operation) -> bool:
        return False


class BrokenOracle:
    """Permission oracle whose backend is down."""

    def has_permission(self, user_id, patient_id, operation) -> bool:
        raise CollaboratorUnavailableError(
            "grants backend timed out", collaborator="permission_oracle"
        )


class FailingAuditSink:
    """Audit sink whose storage rejects every write."""

    def __init__(self) -> None:
        self.attempts = 0

    def append(self, decision) -> None:
        self.attempts += 1
        raise CollaboratorUnavailableError(
            "audit store unreachable", collaborator="audit_sink"
        )

    def list_by_patient(self, patient_id, date_from=None, date_to=None):
        return []

    def preserve_trail(self, patient_id, reason) -> str:
        raise CollaboratorUnavailableError(
            "audit store unreachable", collaborator="audit_sink"
        )


class RecordingNotifier:
    """Incident notifier keeping what it was asked to deliver."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.notified: List[Any] = []

    def notify(self, report) -> None:
        if self.fail:
            raise ConnectionError("notification gateway unreachable")
        self.notified.append(report)


@pytest.fixture
def settings() -> Settings:
    """Engine settings with fixed keys."""
    return Settings(
        environment="testing",
        database_url="sqlite://",
        pseudonym_key=TEST_PSEUDONYM_KEY,
        encryption_key=Fernet.generate_key().decode(),
    )


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with every table created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    drop_db(engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Database session for a single test."""
    session = create_session_factory(db_engine)()
    yield session
    session.close()


@pytest.fixture
def oracle() -> AllowAllOracle:
    """Permissive oracle; tests needing denial build their own gate."""
    return AllowAllOracle()


@pytest.fixture
def compliance(db_session, settings, oracle) -> ComplianceEngine:
    """Fully wired engine over the test database."""
    return ComplianceEngine.from_session(db_session, settings, permission_oracle=oracle)


@pytest.fixture
def make_patient(compliance):
    """Register patients through the intake service."""

    def _make(
        full_name: str = "Maria Aparecida da Silva",
        date_of_birth: date = date(1985, 4, 12),
        cpf: Optional[str] = None,
        **extra: Any,
    ):
        data: Dict[str, Any] = {
            "full_name": full_name,
            "date_of_birth": date_of_birth,
            "cpf": cpf,
            **extra,
        }
        return compliance.registry.register_patient(data, user_id="intake-clerk").patient

    return _make


@pytest.fixture
def grant_processing_consent(compliance):
    """Record an effective data processing consent."""

    def _grant(patient_id, user_id: str = "clinician-1"):
        return compliance.consent_ledger.record_consent(
            patient_id,
            ConsentPurpose.DATA_PROCESSING,
            True,
            LegalBasis.CONSENT,
            user_id,
        )

    return _grant


@pytest.fixture
def add_document(db_session):
    """Attach a stored document to a patient."""

    def _add(
        patient_id,
        document_type: str = "clinical",
        file_name: str = "exam.pdf",
        file_size: int = 2048,
    ) -> Document:
        document = Document(
            patient_id=patient_id,
            file_name=file_name,
            file_type="application/pdf",
            file_size=file_size,
            file_path=f"/documents/{patient_id}/{file_name}",
            document_type=document_type,
            uploaded_at=datetime.utcnow(),
            uploaded_by="clinician-1",
        )
        db_session.add(document)
        db_session.commit()
        return document

    return _add


@pytest.fixture
def add_medical_record(db_session):
    """Store a clinical entry for a patient."""

    def _add(patient_id, recorded_at: Optional[datetime] = None, **content: Any):
        record = MedicalRecord(
            patient_id=patient_id,
            record_type="evolution",
            content=content or {"note": "Session notes"},
            recorded_at=recorded_at or datetime.utcnow(),
            recorded_by="clinician-1",
        )
        db_session.add(record)
        db_session.commit()
        return record

    return _add


@pytest.fixture
def count_decisions(db_session):
    """Number of stored access decisions, optionally for one patient."""

    def _count(patient_id=None) -> int:
        query = db_session.query(AccessDecisionRecord)
        if patient_id is not None:
            query = query.filter(AccessDecisionRecord.patient_id == patient_id)
        return query.count()

    return _count
