"""
Input checks shared by the repositories.
Raised errors are ValueError subclasses so forms can report them directly.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable


class OversellError(ValueError):
    """A sell exceeds the quantity held on its date."""


def require_decimal(value: Any, field: str, allow_zero: bool = False) -> Decimal:
    """
    Parse a positive (or non-negative) decimal.

    Args:
        value: Number or numeric string
        field: Field name used in the error message
        allow_zero: Accept 0 (fees)

    Returns:
        The value as Decimal
    """
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValueError(f"{field} must be a number, got {value!r}")
    if not number.is_finite():
        raise ValueError(f"{field} must be a finite number")
    if number < 0 or (number == 0 and not allow_zero):
        qualifier = "zero or positive" if allow_zero else "positive"
        raise ValueError(f"{field} must be {qualifier}, got {number}")
    return number


def require_choice(value: Any, choices: Iterable[str], field: str) -> str:
    """Normalize to lower case and check membership."""
    normalized = str(value or "").strip().lower()
    allowed = tuple(choices)
    if normalized not in allowed:
        raise ValueError(f"{field} must be one of {', '.join(allowed)}, got {value!r}")
    return normalized
