"""
Percent <-> decimal-fraction conversion for house-edge values.

Operators type percentages ("5" meaning 5 %) but rules persist fractions
("0.0500"). Values greater than 1 are read as percentages; values at or below 1
are taken as already-normalized fractions. All arithmetic uses `Decimal` so the
stored strings never pick up binary floating-point noise.

Malformed numeric input degrades to 0 instead of being rejected. This mirrors
the behaviour operators are used to, but it can mask typos, so every fallback is
logged at WARNING level with the offending field and raw text.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)

FRACTION_PLACES = Decimal("0.0001")
PERCENT_PLACES = Decimal("0.01")
_HUNDRED = Decimal(100)

Numeric = Union[str, int, float, Decimal]


def parse_decimal(raw: Optional[Numeric], field: str = "value") -> Decimal:
    """
    Parse `raw` into a finite Decimal, falling back to 0 when it is malformed.
    """
    if raw is None:
        return Decimal(0)
    if isinstance(raw, Decimal):
        value = raw
    else:
        text = str(raw).strip()
        if not text:
            return Decimal(0)
        try:
            value = Decimal(text)
        except InvalidOperation:
            log.warning(
                "Malformed numeric input replaced with 0",
                extra={"field": field, "raw": text},
            )
            return Decimal(0)
    if not value.is_finite():
        log.warning(
            "Non-finite numeric input replaced with 0",
            extra={"field": field, "raw": str(raw)},
        )
        return Decimal(0)
    return value


def is_numeric(raw: Optional[Numeric]) -> bool:
    """True when `raw` parses as a finite decimal without falling back."""
    if raw is None:
        return False
    try:
        return Decimal(str(raw).strip()).is_finite()
    except InvalidOperation:
        return False


def to_fraction(raw: Optional[Numeric]) -> str:
    """
    Convert operator input to a stored fraction string with 4 decimal places.

    "5" -> "0.0500", "12" -> "0.1200", "0.05" -> "0.0500", "100" -> "1.0000".
    """
    value = parse_decimal(raw, field="house_edge")
    if value > 1:
        value = value / _HUNDRED
    return str(value.quantize(FRACTION_PLACES, rounding=ROUND_HALF_UP))


def to_percent(fraction: Optional[Numeric]) -> str:
    """
    Render a stored fraction as a percentage string with 2 decimal places.
    """
    value = parse_decimal(fraction, field="house_edge") * _HUNDRED
    return str(value.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP))


def format_percent(fraction: Optional[Numeric]) -> str:
    return f"{to_percent(fraction)}%"


def normalize_amount(raw: Optional[Numeric], field: str = "amount") -> str:
    """
    Keep a bet amount as entered when it parses; malformed text becomes "0".
    """
    if raw is None or not str(raw).strip():
        return "0"
    if is_numeric(raw):
        return str(raw).strip()
    log.warning("Malformed amount replaced with 0", extra={"field": field, "raw": str(raw)})
    return "0"


__all__ = [
    "parse_decimal",
    "is_numeric",
    "to_fraction",
    "to_percent",
    "format_percent",
    "normalize_amount",
]
