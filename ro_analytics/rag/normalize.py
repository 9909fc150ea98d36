from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List
from uuid import UUID

MAX_ROWS = 200
# Largest integer a JSON consumer can hold exactly as a double.
MAX_SAFE_INTEGER = 2**53 - 1

NormalizedRow = Dict[str, Any]


def _normalize_int(v: int) -> Any:
    return v if abs(v) <= MAX_SAFE_INTEGER else str(v)


def normalize_value(v: Any) -> Any:
    """Coerce a driver-native value into a JSON-safe one."""
    if v is None or isinstance(v, (bool, str)):
        return v
    if isinstance(v, int):
        return _normalize_int(v)
    if isinstance(v, float):
        return v if math.isfinite(v) else None
    if isinstance(v, Decimal):
        if not v.is_finite():
            return None
        if v == v.to_integral_value():
            return _normalize_int(int(v))
        return float(v)
    # datetime is a date subclass, so it has to be checked first.
    if isinstance(v, datetime):
        return v.isoformat()
    if isinstance(v, (date, time)):
        return v.isoformat()
    if isinstance(v, timedelta):
        return v.total_seconds()
    if isinstance(v, UUID):
        return str(v)
    if isinstance(v, Enum):
        return normalize_value(v.value)
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if hasattr(v, "_mapping"):
        return normalize_value(v._mapping)
    if isinstance(v, Mapping):
        return {str(k): normalize_value(val) for k, val in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [normalize_value(x) for x in v]
    return str(v)


def normalize_row(row: Any) -> NormalizedRow:
    normalized = normalize_value(row)
    if isinstance(normalized, dict):
        return normalized
    return {"valor": normalized}


def normalize_rows(rows: Iterable[Any], max_rows: int = MAX_ROWS) -> List[NormalizedRow]:
    """Cap the row set to ``max_rows`` and normalize every row."""
    capped: List[Any] = []
    for row in rows:
        if len(capped) >= max_rows:
            break
        capped.append(row)
    return [normalize_row(r) for r in capped]
