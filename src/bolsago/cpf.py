"""
Brazilian CPF (individual taxpayer id) helpers.

Canonical form is 11 ASCII digits; display form is ``XXX.XXX.XXX-XX``.
"""
from __future__ import annotations

import re
from typing import Optional

_NON_DIGITS = re.compile(r"[^0-9]")

CPF_LENGTH = 11

# All-same-digit sequences pass the check-digit math but are never issued.
DEGENERATE_CPFS = frozenset(str(d) * CPF_LENGTH for d in range(10))


def unformat_cpf(value: Optional[str]) -> str:
    """Return only the digits of ``value``, whatever their count."""
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def format_cpf(value: Optional[str]) -> str:
    """
    Render up to 11 digits of ``value`` as ``XXX.XXX.XXX-XX``.
    Partial input is partially formatted: ``"12345"`` -> ``"123.45"``.
    """
    digits = unformat_cpf(value)[:CPF_LENGTH]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]}.{digits[3:]}"
    if len(digits) <= 9:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:]}"
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"


def _check_digit(digits: str) -> int:
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder >= 10 else remainder


def cpf_check_digits(base: str) -> str:
    """Compute the two verification digits for a 9-digit CPF base."""
    if len(base) != 9 or _NON_DIGITS.search(base):
        raise ValueError("CPF base must be exactly 9 digits")
    first = _check_digit(base)
    second = _check_digit(base + str(first))
    return f"{first}{second}"


def is_valid_cpf(value: Optional[str]) -> bool:
    cpf = unformat_cpf(value)
    if len(cpf) != CPF_LENGTH:
        return False
    if cpf in DEGENERATE_CPFS:
        return False
    if _check_digit(cpf[:9]) != int(cpf[9]):
        return False
    return _check_digit(cpf[:10]) == int(cpf[10])
