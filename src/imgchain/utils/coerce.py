from __future__ import annotations

import math
from typing import Any, Mapping, Optional

_TRUE = {"1", "true", "yes", "y", "on"}
_FALSE = {"0", "false", "no", "n", "off"}


def coerce_float(value: object, default: Optional[float]) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if math.isnan(out) or math.isinf(out):
        return default
    return out


def coerce_int(value: object, default: Optional[int]) -> Optional[int]:
    # "12.7" and 12.7 both truncate to 12, like parseInt.
    out = coerce_float(value, None)
    if out is None:
        return default
    return int(out)


def coerce_bool(value: object, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return default


def coerce_str(value: object, default: Optional[str]) -> Optional[str]:
    if value is None:
        return default
    text = str(value).strip()
    return text if text else default


def number_or_default(params: Mapping[str, Any], key: str, default: float) -> float:
    """Read a numeric field, keeping ints as ints so defaults round-trip unchanged."""
    value = params.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    out = coerce_float(value, None)
    if out is None:
        return default
    return int(out) if out.is_integer() else out
