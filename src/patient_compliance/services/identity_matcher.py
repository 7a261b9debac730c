"""Duplicate patient detection.

Stored patients sharing the CPF or the birth date are pre-filtered by the
patient store; this module classifies each of them:

- high: same CPF digits, or same case-insensitive full name and birth date
- medium: similar name (token edit distance) and same birth date
- low: nothing matched

Name similarity is a coarse token heuristic, not a phonetic match. Names
transliterated differently or with reordered surnames beyond the edit
budget are not detected.
"""

import re
import unicodedata
from datetime import date
from typing import List, Optional

from patient_compliance.config import Settings, get_settings
from patient_compliance.core.exceptions import InvalidInputError
from patient_compliance.repositories.interfaces import PatientStore
from patient_compliance.schemas.enums import DuplicateConfidence
from patient_compliance.schemas.identity import (
    DuplicateCandidate,
    DuplicateDetectionResult,
)
from patient_compliance.utils.cpf import clean_cpf
from patient_compliance.utils.logging import get_logger

logger = get_logger(__name__)

_NON_LETTER = re.compile(r"[^a-z\s]")

_RANK = {
    DuplicateConfidence.LOW: 0,
    DuplicateConfidence.MEDIUM: 1,
    DuplicateConfidence.HIGH: 2,
}


def normalize_name_tokens(name: str) -> List[str]:
    """Lower-case, fold accents, drop non-letters and split on whitespace."""
    if not name:
        return []
    folded = (
        unicodedata.normalize("NFKD", name)
        .encode("ascii", "ignore")
        .decode("utf-8")
        .lower()
    )
    return _NON_LETTER.sub("", folded).split()


def _casefold_name(name: str) -> str:
    return " ".join(name.casefold().split())


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with a two-row table."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + (ca != cb),  # substitution
                )
            )
        previous = current
    return previous[-1]


def is_similar_name(
    name1: str, name2: str, threshold: float = 0.7, max_edits: int = 2
) -> bool:
    """Check whether enough tokens of ``name1`` have a close token in ``name2``."""
    tokens1 = normalize_name_tokens(name1)
    tokens2 = normalize_name_tokens(name2)
    if not tokens1 or not tokens2:
        return False
    matched = sum(
        1
        for t1 in tokens1
        if any(t1 == t2 or levenshtein_distance(t1, t2) <= max_edits for t2 in tokens2)
    )
    return matched >= min(len(tokens1), len(tokens2)) * threshold


class IdentityMatcher:
    """Classifies intake data against stored patients."""

    def __init__(self, patient_store: PatientStore, settings: Optional[Settings] = None):
        """Initialize matcher with the patient store and tuning settings."""
        settings = settings or get_settings()
        self.patient_store = patient_store
        self.similarity_threshold = settings.name_similarity_threshold
        self.max_edits = settings.name_token_max_edits

    def check_for_duplicates(
        self, full_name: str, date_of_birth: date, national_id: Optional[str] = None
    ) -> DuplicateDetectionResult:
        """Fetch candidates from the store and classify them."""
        if not full_name or not full_name.strip():
            raise InvalidInputError("Full name is required for duplicate detection")
        if date_of_birth > date.today():
            raise InvalidInputError("Date of birth cannot be in the future")
        cpf = clean_cpf(national_id) or None

        candidates = self.patient_store.find_potential_duplicates(
            full_name, date_of_birth, cpf
        )
        result = self.analyze(full_name, date_of_birth, cpf, candidates)
        if result.is_duplicate:
            logger.info(
                "Possible duplicate patient",
                confidence=result.confidence.value,
                candidates=[str(c.patient_id) for c in result.candidates],
                matching_fields=result.matching_fields,
            )
        return result

    def analyze(
        self,
        full_name: str,
        date_of_birth: date,
        national_id: Optional[str],
        candidates: List[DuplicateCandidate],
    ) -> DuplicateDetectionResult:
        """Classify ``candidates`` without touching storage."""
        cpf = clean_cpf(national_id)
        wanted_name = _casefold_name(full_name)
        confidence = DuplicateConfidence.LOW
        matching_fields: List[str] = []
        matched: List[DuplicateCandidate] = []

        for candidate in candidates:
            fields: List[str] = []
            level = DuplicateConfidence.LOW
            same_dob = candidate.date_of_birth == date_of_birth

            if cpf and clean_cpf(candidate.cpf) == cpf:
                fields.append("cpf")
                level = DuplicateConfidence.HIGH

            if same_dob and _casefold_name(candidate.full_name) == wanted_name:
                fields.extend(["fullName", "dateOfBirth"])
                level = DuplicateConfidence.HIGH

            if same_dob and is_similar_name(
                candidate.full_name,
                full_name,
                threshold=self.similarity_threshold,
                max_edits=self.max_edits,
            ):
                fields.extend(["similarName", "dateOfBirth"])
                if level == DuplicateConfidence.LOW:
                    level = DuplicateConfidence.MEDIUM

            if fields:
                matched.append(candidate)
                matching_fields.extend(f for f in fields if f not in matching_fields)
            if _RANK[level] > _RANK[confidence]:
                confidence = level

        return DuplicateDetectionResult(
            is_duplicate=confidence != DuplicateConfidence.LOW,
            confidence=confidence,
            candidates=matched,
            matching_fields=matching_fields,
        )
