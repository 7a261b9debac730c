"""Brazilian CPF (individual taxpayer registry) helpers."""

import re
from typing import Optional

_NON_DIGIT = re.compile(r"\D")


def clean_cpf(value: Optional[str]) -> str:
    """Strip everything but digits."""
    if not value:
        return ""
    return _NON_DIGIT.sub("", value)


def format_cpf(value: str) -> str:
    """Format eleven digits as ``000.000.000-00``."""
    digits = clean_cpf(value)
    if len(digits) != 11:
        return value
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def _check_digit(digits: str, weight: int) -> int:
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cpf(value: Optional[str]) -> bool:
    """Validate length and both check digits."""
    digits = clean_cpf(value)
    if len(digits) != 11:
        return False
    # Repeated digits pass the checksum but are never issued
    if digits == digits[0] * 11:
        return False
    if int(digits[9]) != _check_digit(digits[:9], 10):
        return False
    return int(digits[10]) == _check_digit(digits[:10], 11)
