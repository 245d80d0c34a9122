"""CNPJ normalisation and check-digit validation."""

from __future__ import annotations

import re
from typing import Final

from .errors import InvalidIdentifier

CNPJ_LENGTH: Final = 14

_NON_DIGITS = re.compile(r"\D+")
_FIRST_WEIGHTS: Final = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
_SECOND_WEIGHTS: Final = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)


def normalise_registry_id(value: object) -> str:
    """Strip everything but digits (``"11.222.333/0001-81"`` -> ``"11222333000181"``)."""

    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def _check_digit(digits: str, weights: tuple[int, ...]) -> int:
    total = sum(int(digit) * weight for digit, weight in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_registry_id(value: object) -> bool:
    digits = normalise_registry_id(value)
    if len(digits) != CNPJ_LENGTH:
        return False
    # 00000000000000, 11111111111111, ... pass the arithmetic but are not real.
    if len(set(digits)) == 1:
        return False
    first = _check_digit(digits[:12], _FIRST_WEIGHTS)
    if first != int(digits[12]):
        return False
    second = _check_digit(digits[:13], _SECOND_WEIGHTS)
    return second == int(digits[13])


def validate_registry_id(value: object) -> str:
    """Return the normalised CNPJ or raise :class:`InvalidIdentifier`."""

    digits = normalise_registry_id(value)
    if not is_valid_registry_id(digits):
        raise InvalidIdentifier(f"CNPJ inválido: {value!r}", registry_id=digits or None)
    return digits


def format_registry_id(value: object) -> str:
    """Render a CNPJ as ``XX.XXX.XXX/XXXX-XX``; other input is returned normalised."""

    digits = normalise_registry_id(value)
    if len(digits) != CNPJ_LENGTH:
        return digits
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"


__all__ = [
    "CNPJ_LENGTH",
    "format_registry_id",
    "is_valid_registry_id",
    "normalise_registry_id",
    "validate_registry_id",
]
