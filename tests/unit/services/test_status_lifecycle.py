"""Tests for the patient status lifecycle."""

import itertools
import uuid
from datetime import date, datetime, timedelta

import pytest

from patient_compliance.core.exceptions import (
    ConflictError,
    DisallowedTransitionError,
    InvalidInputError,
    MissingReasonError,
    NotFoundError,
    UndefinedTransitionError,
)
from patient_compliance.schemas.enums import PatientStatus
from patient_compliance.schemas.status import StatusHistoryQuery
from patient_compliance.services.status_lifecycle import (
    TRANSITION_TABLE,
    allowed_transitions,
    requires_reason,
    validate_transition,
)

S = PatientStatus

ALL_FROM = [None] + list(PatientStatus)


class TestTransitionTable:
    """The static transition table."""

    def test_allowed_transitions_from_each_status(self):
        """Only allowed edges are offered."""
        assert allowed_transitions(None) == [S.NEW]
        assert allowed_transitions(S.NEW) == [S.ACTIVE, S.INACTIVE]
        assert allowed_transitions(S.ACTIVE) == [S.ON_HOLD, S.DISCHARGED, S.INACTIVE]
        assert allowed_transitions(S.ON_HOLD) == [S.ACTIVE, S.DISCHARGED, S.INACTIVE]
        assert allowed_transitions(S.DISCHARGED) == [S.ACTIVE, S.INACTIVE]
        assert allowed_transitions(S.INACTIVE) == [S.ACTIVE]

    def test_allowed_transitions_is_repeatable(self):
        """Two calls with the same status give the same answer."""
        for status in ALL_FROM:
            assert allowed_transitions(status) == allowed_transitions(status)

    def test_allowed_transitions_accepts_strings(self):
        """Status names are parsed."""
        assert allowed_transitions("on_hold") == allowed_transitions(S.ON_HOLD)

    def test_reverting_to_new_is_disallowed_not_undefined(self):
        """Existing patients cannot go back to intake."""
        for status in (S.ACTIVE, S.ON_HOLD, S.DISCHARGED, S.INACTIVE):
            rule = TRANSITION_TABLE[(status, S.NEW)]
            assert rule.is_allowed is False
            with pytest.raises(DisallowedTransitionError):
                validate_transition(status, S.NEW, "re-intake")

    def test_pairs_outside_table_are_undefined(self):
        """Every missing pair, self transitions included, is undefined."""
        missing = [
            (f, t)
            for f, t in itertools.product(ALL_FROM, list(PatientStatus))
            if (f, t) not in TRANSITION_TABLE
        ]
        assert (S.ACTIVE, S.ACTIVE) in missing
        assert (None, S.ACTIVE) in missing
        for from_status, to_status in missing:
            with pytest.raises(UndefinedTransitionError):
                validate_transition(from_status, to_status, "some reason")

    def test_requires_reason(self):
        """Reason flags follow the table."""
        assert requires_reason(S.NEW, S.ACTIVE) is False
        assert requires_reason(S.ACTIVE, S.DISCHARGED) is True
        assert requires_reason(S.DISCHARGED, S.INACTIVE) is False
        assert requires_reason("inactive", "active") is True

    def test_requires_reason_on_undefined_pair(self):
        """Undefined pairs have no reason rule."""
        with pytest.raises(UndefinedTransitionError):
            requires_reason(S.NEW, S.DISCHARGED)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [key for key, rule in TRANSITION_TABLE.items() if rule.requires_reason],
    )
    def test_reason_required_edges(self, from_status, to_status):
        """Blank reasons are rejected where a reason is required."""
        for blank in (None, "", "   "):
            with pytest.raises(MissingReasonError):
                validate_transition(from_status, to_status, blank)
        assert validate_transition(from_status, to_status, "documented").is_allowed


class TestChangePatientStatus:
    """Status changes against the database."""

    def test_new_to_active_without_reason(self, compliance, make_patient):
        """Starting treatment needs no reason."""
        patient = make_patient()

        transition = compliance.status_lifecycle.change_patient_status(
            patient.id, "active", "clinician-1"
        )

        assert transition.from_status == S.NEW
        assert transition.to_status == S.ACTIVE
        assert transition.changed_by == "clinician-1"
        stored = compliance.patients.find_by_id(patient.id)
        assert stored.status == S.ACTIVE
        assert stored.version == 2

    def test_history_records_every_change(self, compliance, make_patient):
        """History is append-only and newest first."""
        patient = make_patient()
        lifecycle = compliance.status_lifecycle
        lifecycle.change_patient_status(patient.id, S.ACTIVE, "clinician-1")
        lifecycle.change_patient_status(patient.id, S.ON_HOLD, "clinician-1", "travel")
        lifecycle.change_patient_status(patient.id, S.ACTIVE, "clinician-2")

        history = lifecycle.get_patient_status_history(patient.id)

        assert [t.to_status for t in history] == [S.ACTIVE, S.ON_HOLD, S.ACTIVE, S.NEW]
        assert history[-1].from_status is None
        assert [t.sequence for t in history] == [4, 3, 2, 1]
        assert history[1].reason == "travel"
        assert len(lifecycle.get_patient_status_history(patient.id, limit=2)) == 2

    def test_missing_reason_leaves_status_unchanged(self, compliance, make_patient):
        """A rejected change writes nothing."""
        patient = make_patient()
        lifecycle = compliance.status_lifecycle
        lifecycle.change_patient_status(patient.id, S.ACTIVE, "clinician-1")

        with pytest.raises(MissingReasonError):
            lifecycle.change_patient_status(patient.id, S.DISCHARGED, "clinician-1", "  ")

        assert compliance.patients.find_by_id(patient.id).status == S.ACTIVE
        assert len(lifecycle.get_patient_status_history(patient.id)) == 2

    def test_undefined_transition(self, compliance, make_patient):
        """Skipping treatment straight to discharge is undefined."""
        patient = make_patient()
        with pytest.raises(UndefinedTransitionError):
            compliance.status_lifecycle.change_patient_status(
                patient.id, S.DISCHARGED, "clinician-1", "done"
            )

    def test_unknown_patient(self, compliance):
        """Unknown ids are reported as not found."""
        with pytest.raises(NotFoundError):
            compliance.status_lifecycle.change_patient_status(
                uuid.uuid4(), S.ACTIVE, "clinician-1"
            )

    def test_invalid_inputs(self, compliance, make_patient):
        """Unknown statuses and blank users are rejected."""
        patient = make_patient()
        with pytest.raises(InvalidInputError):
            compliance.status_lifecycle.change_patient_status(
                patient.id, "archived", "clinician-1"
            )
        with pytest.raises(InvalidInputError):
            compliance.status_lifecycle.change_patient_status(patient.id, S.ACTIVE, " ")

    def test_expected_status_mismatch_is_conflict(self, compliance, make_patient):
        """A caller working from an outdated view gets a retryable conflict."""
        patient = make_patient()
        compliance.status_lifecycle.change_patient_status(
            patient.id, S.ACTIVE, "clinician-1"
        )

        with pytest.raises(ConflictError) as exc_info:
            compliance.status_lifecycle.change_patient_status(
                patient.id, S.INACTIVE, "clinician-2", "no show", expected_status=S.NEW
            )

        assert exc_info.value.retryable is True
        assert compliance.patients.find_by_id(patient.id).status == S.ACTIVE


class TestStatusQueries:
    """History search and statistics."""

    def test_search_filters(self, compliance, make_patient):
        """Filters combine."""
        first = make_patient()
        second = make_patient(full_name="Joao Pereira", date_of_birth=date(1970, 1, 5))
        lifecycle = compliance.status_lifecycle
        lifecycle.change_patient_status(first.id, S.ACTIVE, "clinician-1")
        lifecycle.change_patient_status(second.id, S.ACTIVE, "clinician-2")

        by_user = lifecycle.get_status_history(StatusHistoryQuery(changed_by="clinician-2"))
        assert [t.patient_id for t in by_user] == [second.id]

        activations = lifecycle.get_status_history(StatusHistoryQuery(to_status=S.ACTIVE))
        assert {t.patient_id for t in activations} == {first.id, second.id}

        future = lifecycle.get_status_history(
            StatusHistoryQuery(date_from=datetime.utcnow() + timedelta(days=1))
        )
        assert future == []

    def test_search_rejects_inverted_range(self, compliance):
        """date_from after date_to is invalid."""
        now = datetime.utcnow()
        with pytest.raises(InvalidInputError):
            compliance.status_lifecycle.get_status_history(
                StatusHistoryQuery(date_from=now, date_to=now - timedelta(days=1))
            )

    def test_statistics(self, compliance, make_patient):
        """Counts cover every status."""
        first = make_patient()
        make_patient(full_name="Joao Pereira", date_of_birth=date(1970, 1, 5))
        compliance.status_lifecycle.change_patient_status(first.id, S.ACTIVE, "clinician-1")

        stats = compliance.status_lifecycle.get_status_statistics()

        assert stats.total_patients == 2
        assert stats.by_status["new"] == 1
        assert stats.by_status["active"] == 1
        assert stats.by_status["discharged"] == 0
        assert len(stats.recent_transitions) == 3
