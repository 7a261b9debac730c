"""Tests for patient intake."""

from datetime import date, timedelta

import pytest

from patient_compliance.core.exceptions import DuplicateBlockedError, InvalidInputError
from patient_compliance.schemas.enums import PatientStatus
from patient_compliance.services.patient_registry import PatientRegistry
from tests.conftest import OTHER_VALID_CPF, VALID_CPF


class TestRegisterPatient:
    """Registration with duplicate blocking."""

    def test_registers_in_status_new(self, compliance):
        """New patients start in ``new`` with their creation transition."""
        result = compliance.registry.register_patient(
            {
                "full_name": "Ana Beatriz Lima",
                "date_of_birth": date(1992, 7, 30),
                "cpf": "529.982.247-25",
                "email": "Ana.Lima@Example.com",
                "primary_phone": "(11) 98765-4321",
                "address": {"street": "Rua das Flores", "number": "10", "city": "Recife"},
            },
            user_id="intake-clerk",
        )

        patient = result.patient
        assert patient.status == PatientStatus.NEW
        assert patient.version == 1
        assert patient.cpf == VALID_CPF
        assert patient.email == "ana.lima@example.com"
        assert patient.primary_phone == "11987654321"
        assert patient.address["city"] == "Recife"
        assert result.warnings == []

        history = compliance.status_lifecycle.get_patient_status_history(patient.id)
        assert len(history) == 1
        assert history[0].from_status is None
        assert history[0].to_status == PatientStatus.NEW
        assert history[0].changed_by == "intake-clerk"

    def test_same_cpf_is_blocked(self, compliance, make_patient):
        """High confidence matches are refused with the candidates."""
        stored = make_patient(cpf=VALID_CPF)

        with pytest.raises(DuplicateBlockedError) as exc_info:
            compliance.registry.register_patient(
                {"full_name": "Other Name", "date_of_birth": date(2000, 1, 1), "cpf": VALID_CPF},
                user_id="intake-clerk",
            )

        assert exc_info.value.candidate_ids == [stored.id]
        assert "cpf" in exc_info.value.message

    def test_similar_name_registers_with_warning(self, compliance, make_patient):
        """Medium confidence matches only warn."""
        stored = make_patient(full_name="Maria Aparecida da Silva", cpf=VALID_CPF)

        result = compliance.registry.register_patient(
            {
                "full_name": "Maria Aparecida Silva",
                "date_of_birth": date(1985, 4, 12),
                "cpf": OTHER_VALID_CPF,
            },
            user_id="intake-clerk",
        )

        assert result.possible_duplicates == [stored.id]
        assert any("medium confidence" in w for w in result.warnings)
        assert result.patient.id != stored.id

    def test_missing_cpf_warns(self, compliance):
        """Detection without CPF is weaker."""
        result = compliance.registry.register_patient(
            {"full_name": "Carlos Nunes", "date_of_birth": date(1960, 2, 2)},
            user_id="intake-clerk",
        )
        assert any("No CPF" in w for w in result.warnings)

    @pytest.mark.parametrize(
        "data",
        [
            {"full_name": "Carlos Nunes", "date_of_birth": "1960-02-02", "cpf": "123.456.789-00"},
            {"full_name": "Carlos Nunes", "date_of_birth": "1960-02-02", "cpf": "111.111.111-11"},
            {"full_name": "Carlos Nunes", "date_of_birth": date.today() + timedelta(days=1)},
            {"full_name": "C", "date_of_birth": "1960-02-02"},
            {"full_name": "Carlos Nunes", "date_of_birth": "1960-02-02", "email": "not-mail"},
            {"date_of_birth": "1960-02-02"},
        ],
    )
    def test_invalid_requests(self, compliance, data):
        """Malformed intake data never reaches the store."""
        with pytest.raises(InvalidInputError):
            compliance.registry.register_patient(data, user_id="intake-clerk")
        assert compliance.patients.count_by_status() == {}

    def test_requires_user(self, compliance):
        """Registrations are attributed."""
        with pytest.raises(InvalidInputError):
            compliance.registry.register_patient(
                {"full_name": "Carlos Nunes", "date_of_birth": date(1960, 2, 2)}, user_id=""
            )


class TestCpfHelpers:
    """Static CPF helpers."""

    def test_validate_and_format(self):
        """Check digits and display format."""
        assert PatientRegistry.validate_cpf("529.982.247-25")
        assert not PatientRegistry.validate_cpf("529.982.247-26")
        assert PatientRegistry.format_cpf(VALID_CPF) == "529.982.247-25"
