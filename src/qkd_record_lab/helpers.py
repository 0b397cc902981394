from __future__ import annotations
import math
import re
from typing import Optional, Union


Number = Union[int, float]

# Decimal literal with optional sign, fraction and exponent. No hex, no
# nan/inf spellings: those cannot be carried through the JSON record.
_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


# --- Input Validation Helpers ---

def validate_int(
    name: str,
    value: Number,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
) -> int:
    """
    Validate that value is an integer within optional bounds.

    Integral floats (``5.0``) are accepted; bools are rejected.

    Raises
    ------
    ValueError
        If value is not a valid integer or out of bounds.
    """
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{name}: expected int, got {type(value).__name__} ({value!r})")
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{name}: expected int, got float {value}")
    int_val = int(value)
    if min_value is not None and int_val < min_value:
        raise ValueError(f"{name}: {int_val} < minimum {min_value}")
    if max_value is not None and int_val > max_value:
        raise ValueError(f"{name}: {int_val} > maximum {max_value}")
    return int_val


def validate_float(
    name: str,
    value: Number,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> float:
    """
    Validate that value is a finite float within optional bounds.

    Parameters
    ----------
    name : str
        Parameter name for error messages.
    value : int or float
        Value to validate.
    min_value, max_value : float, optional
        Inclusive bounds.

    Raises
    ------
    ValueError
        If value is not numeric, NaN, infinite or out of bounds.
    """
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValueError(f"{name}: expected float, got {type(value).__name__} ({value!r})")
    float_val = float(value)
    if math.isnan(float_val):
        raise ValueError(f"{name}: NaN not allowed")
    if math.isinf(float_val):
        raise ValueError(f"{name}: infinity not allowed")
    if min_value is not None and float_val < min_value:
        raise ValueError(f"{name}: {float_val} < minimum {min_value}")
    if max_value is not None and float_val > max_value:
        raise ValueError(f"{name}: {float_val} > maximum {max_value}")
    return float_val


def is_number(value: object) -> bool:
    """True for int/float values that are not bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def coerce_value(raw: str) -> Union[Number, str]:
    """
    Turn a trimmed vendor value into a number when it looks like one.

    Underscore digit grouping is accepted (``1_050_000`` -> ``1050000``).
    Integer literals stay ``int``; fractions and exponents become ``float``.
    Anything else, including literals that overflow a float, is returned
    unchanged.
    """
    cleaned = raw.replace("_", "").strip()
    if not cleaned or not _NUMERIC_RE.match(cleaned):
        return raw
    if any(ch in cleaned for ch in ".eE"):
        value = float(cleaned)
        return value if math.isfinite(value) else raw
    return int(cleaned)


# --- Binary Entropy ---

def h2(p: float) -> float:
    """Binary entropy in bits. Defined as 0 at p<=0 or p>=1."""
    if p <= 0.0 or p >= 1.0:
        return 0.0
    return -p * math.log2(p) - (1 - p) * math.log2(1 - p)
