from decimal import Decimal, InvalidOperation
from typing import Any, Optional

MINOR_UNITS_PER_MAJOR = 100


def to_minor_units(value: Any) -> Optional[int]:
    """Coerce a provider-reported minor-unit amount to ``int``.

    Accepts ints and integral strings/decimals; anything fractional or
    non-numeric yields ``None`` so the caller can treat it as a mismatch.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount != amount.to_integral_value():
        return None
    return int(amount)


def minor_to_major(amount_minor: int) -> float:
    return float(Decimal(int(amount_minor or 0)) / MINOR_UNITS_PER_MAJOR)
