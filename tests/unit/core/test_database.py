"""Tests for engine and session management."""

from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from patient_compliance.core.database import (
    create_engine_from_settings,
    create_session_factory,
    drop_db,
    init_db,
    session_scope,
)
from patient_compliance.models import Patient


@pytest.fixture
def settings_factory(settings):
    """Session factory over an engine built from settings."""
    engine = create_engine_from_settings(settings)
    init_db(engine)
    yield create_session_factory(engine)
    drop_db(engine)
    engine.dispose()


def _patient() -> Patient:
    return Patient(full_name="Joana Prado", date_of_birth=date(1990, 1, 2))


class TestSessionScope:
    """Transactional scope."""

    def test_commits_on_success(self, settings_factory):
        """Work inside the scope is committed."""
        with session_scope(settings_factory) as session:
            session.add(_patient())

        with session_scope(settings_factory) as session:
            assert session.query(Patient).count() == 1

    def test_rolls_back_on_database_error(self, settings_factory):
        """A database error discards the scope's work and propagates."""
        with pytest.raises(SQLAlchemyError):
            with session_scope(settings_factory) as session:
                session.add(_patient())
                session.flush()
                raise SQLAlchemyError("connection reset")

        with session_scope(settings_factory) as session:
            assert session.query(Patient).count() == 0

    def test_sessions_keep_loaded_state_after_commit(self, settings_factory):
        """Committed objects stay readable without a refresh."""
        with session_scope(settings_factory) as session:
            patient = _patient()
            session.add(patient)

        assert patient.full_name == "Joana Prado"


class TestEngineFromSettings:
    """Engine construction."""

    def test_sqlite_engine(self, settings):
        """SQLite URLs get a thread-shareable engine."""
        engine = create_engine_from_settings(settings)

        assert engine.dialect.name == "sqlite"
        engine.dispose()
