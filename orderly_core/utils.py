"""Utility functions shared across the order and invoice engine."""
from __future__ import annotations

import secrets
import string
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from dateutil import parser

CENT = Decimal("0.01")
ZERO = Decimal("0")

_ID_ALPHABET = string.ascii_uppercase + string.digits


def parse_date(value: str) -> Optional[date]:
    """Parse a date string into a date object; returns None on failure."""
    if not value:
        return None
    try:
        return parser.parse(value, dayfirst=False, yearfirst=True).date()
    except (ValueError, TypeError, OverflowError):
        try:
            return parser.parse(value, dayfirst=True, yearfirst=True).date()
        except (ValueError, TypeError, OverflowError):
            return None


def to_decimal(value: object) -> Decimal:
    """Convert a money-like value to Decimal without rounding.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1") rather than
    its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"not a monetary value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"not a monetary value: {value!r}")
    return result


def round2(value: object) -> Decimal:
    """Round half-up to two decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str = "ID") -> str:
    """Short human-readable identifier such as ``ORD-7K2Q9XB1M``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{prefix}-{suffix}"
