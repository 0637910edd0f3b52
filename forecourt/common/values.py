"""Lenient value parsing and price unit conversion."""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping


def safe_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        parsed = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if math.isnan(parsed) or math.isinf(parsed):
        return None
    return parsed


def _decimal(value: float) -> Decimal | None:
    # repr-based so 1.459 stays 1.459 instead of its binary expansion.
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def pence_to_pounds(value: Any) -> float | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return float(_decimal(parsed) / 100)


def pounds_to_pence(value: Any) -> float | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return float(_decimal(parsed) * 100)


def subtract_pence(minuend: float, subtrahend: float) -> float:
    return float(_decimal(minuend) - _decimal(subtrahend))


def first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first truthy value found under ``keys``, else ``None``."""
    for key in keys:
        value = record.get(key)
        if value:
            return value
    return None


def as_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)
