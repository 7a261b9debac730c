"""Tests for duplicate patient detection."""

import uuid
from datetime import date, timedelta

import pytest

from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.schemas.enums import DuplicateConfidence
from patient_compliance.schemas.identity import DuplicateCandidate
from patient_compliance.services.identity_matcher import (
    is_similar_name,
    levenshtein_distance,
    normalize_name_tokens,
)
from tests.conftest import OTHER_VALID_CPF, VALID_CPF

DOB = date(1985, 4, 12)


def candidate(full_name, date_of_birth=DOB, cpf=None):
    return DuplicateCandidate(
        patient_id=uuid.uuid4(),
        full_name=full_name,
        date_of_birth=date_of_birth,
        cpf=cpf,
    )


class TestNameHelpers:
    """Name normalization and similarity."""

    def test_normalize_folds_accents_and_punctuation(self):
        """Accents are folded and non-letters dropped."""
        assert normalize_name_tokens("  José D'Ávila-Júnior ") == ["jose", "davilajunior"]
        assert normalize_name_tokens("") == []

    def test_levenshtein(self):
        """Classic edit distances."""
        assert levenshtein_distance("kitten", "sitting") == 3
        assert levenshtein_distance("", "abc") == 3
        assert levenshtein_distance("silva", "silva") == 0

    def test_similar_names(self):
        """Small spelling differences still match."""
        assert is_similar_name("Maria Aparecida da Silva", "Maria Aparecida Silva")
        assert is_similar_name("José Souza", "Jose Sousa")
        assert not is_similar_name("Joana Souza", "Maria Silva")
        assert not is_similar_name("", "Maria Silva")


class TestAnalyze:
    """Classification without storage."""

    def test_same_cpf_is_high_regardless_of_name(self, compliance):
        """An identical CPF is enough."""
        result = compliance.identity_matcher.analyze(
            "Completely Different",
            date(2001, 1, 1),
            "529.982.247-25",
            [candidate("Maria Silva", cpf=VALID_CPF)],
        )

        assert result.confidence == DuplicateConfidence.HIGH
        assert result.is_duplicate is True
        assert result.matching_fields == ["cpf"]

    def test_same_name_and_birth_date_is_high(self, compliance):
        """Case differences do not matter."""
        result = compliance.identity_matcher.analyze(
            "MARIA SILVA", DOB, None, [candidate("maria silva")]
        )

        assert result.confidence == DuplicateConfidence.HIGH
        assert "fullName" in result.matching_fields
        assert "dateOfBirth" in result.matching_fields
        assert result.matching_fields.count("dateOfBirth") == 1

    def test_similar_name_and_birth_date_is_medium(self, compliance):
        """A similar name on the same birth date needs review."""
        stored = candidate("Maria Aparecida da Silva")
        result = compliance.identity_matcher.analyze(
            "Maria Aparecida Silva", DOB, None, [stored]
        )

        assert result.confidence == DuplicateConfidence.MEDIUM
        assert result.matching_fields == ["similarName", "dateOfBirth"]
        assert result.candidate_ids == [stored.patient_id]

    def test_dissimilar_everything_is_low(self, compliance):
        """Nothing in common yields no candidates."""
        result = compliance.identity_matcher.analyze(
            "Joana Souza",
            date(1990, 9, 9),
            OTHER_VALID_CPF,
            [candidate("Maria Silva", cpf=VALID_CPF)],
        )

        assert result.confidence == DuplicateConfidence.LOW
        assert result.is_duplicate is False
        assert result.candidates == []
        assert result.matching_fields == []

    def test_strongest_candidate_wins(self, compliance):
        """Confidence is the maximum over candidates."""
        result = compliance.identity_matcher.analyze(
            "Maria Aparecida Silva",
            DOB,
            VALID_CPF,
            [candidate("Maria Aparecida da Silva"), candidate("Other Person", cpf=VALID_CPF)],
        )

        assert result.confidence == DuplicateConfidence.HIGH
        assert len(result.candidates) == 2
        assert result.matching_fields == ["similarName", "dateOfBirth", "cpf"]


class TestCheckForDuplicates:
    """Detection against stored patients."""

    def test_finds_stored_patient_by_cpf(self, compliance, make_patient):
        """Formatted and raw CPFs are compared as digits."""
        stored = make_patient(cpf=VALID_CPF)

        result = compliance.identity_matcher.check_for_duplicates(
            "Someone Else", date(1999, 3, 3), "529.982.247-25"
        )

        assert result.confidence == DuplicateConfidence.HIGH
        assert result.candidate_ids == [stored.id]

    def test_anonymized_patients_are_ignored(self, compliance, make_patient):
        """Anonymized identities cannot be matched."""
        stored = make_patient(cpf=VALID_CPF)
        compliance.patients.anonymize(stored.id, "ANONYMIZED")

        result = compliance.identity_matcher.check_for_duplicates(
            "Maria Aparecida da Silva", DOB, VALID_CPF
        )

        assert result.confidence == DuplicateConfidence.LOW

    def test_rejects_blank_name(self, compliance):
        """A name is mandatory."""
        with pytest.raises(InvalidInputError):
            compliance.identity_matcher.check_for_duplicates("  ", DOB)

    def test_rejects_future_birth_date(self, compliance):
        """Birth dates cannot be in the future."""
        with pytest.raises(InvalidInputError):
            compliance.identity_matcher.check_for_duplicates(
                "Maria Silva", date.today() + timedelta(days=1)
            )
