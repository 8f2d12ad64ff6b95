"""
Temporal resampling helpers.

- linear_interpolate / angular_interpolate resample a control series onto an
  evenly spaced grid of ``target_count`` points spanning the same range.
- interpolate_hourly_to_15min turns hourly records into 15-minute records,
  treating every ``*direction*`` field as a 0-360 degree quantity.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

_LOGGER = logging.getLogger(__name__)

SLOTS_PER_HOUR = 4
DIRECTION_MARKER = "direction"


def _grid(count: int, target_count: int) -> np.ndarray:
    return np.linspace(0.0, float(count - 1), num=target_count)


def linear_interpolate(values: Sequence[float], target_count: int) -> List[float]:
    """Resample ``values`` to ``target_count`` points by linear blending.

    Series shorter than two points (or a target shorter than two) are
    returned unchanged. The first and last outputs equal the first and last
    inputs exactly.
    """
    n = len(values)
    if n < 2 or target_count < 2:
        return list(values)
    xp = np.arange(n, dtype=float)
    out = np.interp(_grid(n, target_count), xp, np.asarray(values, dtype=float))
    return [float(v) for v in out]


def angular_interpolate(values: Sequence[float], target_count: int) -> List[float]:
    """Resample compass angles along the shortest arc between control points.

    Output angles are normalized into [0, 360).
    """
    n = len(values)
    if n < 2 or target_count < 2:
        return list(values)
    unwrapped = np.unwrap(np.asarray(values, dtype=float), period=360.0)
    xp = np.arange(n, dtype=float)
    out = np.mod(np.interp(_grid(n, target_count), xp, unwrapped), 360.0)
    return [float(v) for v in out]


def _shortest_arc(a: float, b: float) -> float:
    diff = b - a
    if diff > 180.0:
        diff -= 360.0
    elif diff < -180.0:
        diff += 360.0
    return diff


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and not math.isnan(v)


def _blend(field: str, a: Any, b: Any, frac: float) -> Optional[float]:
    if not (_is_number(a) and _is_number(b)):
        return None
    if DIRECTION_MARKER in field:
        value = (a + _shortest_arc(a, b) * frac) % 360.0
    else:
        value = a + (b - a) * frac
    return round(value, 2)


def _field_names(records: Iterable[Mapping[str, Any]]) -> List[str]:
    names: Dict[str, None] = {}
    for rec in records:
        for key in rec.keys():
            names.setdefault(key, None)
    return list(names)


def interpolate_hourly_to_15min(records: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Expand hourly records into 15-minute records.

    Produces ``(n - 1) * 4 + 1`` records for ``n`` hourly inputs, or an empty
    list when fewer than two are given. ``timestamp`` is interpolated and
    rounded to an int; other numeric fields are rounded to 2 decimals. A
    field missing at either end of an hour pair is None for that slot.
    """
    n = len(records)
    if n < 2:
        return []

    fields = _field_names(records)
    total = (n - 1) * SLOTS_PER_HOUR + 1
    out: List[Dict[str, Any]] = []
    for slot in range(total):
        hour = min(slot // SLOTS_PER_HOUR, n - 2)
        frac = slot / SLOTS_PER_HOUR - hour
        lo = records[hour]
        hi = records[hour + 1]
        row: Dict[str, Any] = {}
        for field in fields:
            a = lo.get(field)
            b = hi.get(field)
            if field == "timestamp":
                row[field] = int(round(a + (b - a) * frac))
            else:
                row[field] = _blend(field, a, b, frac)
        out.append(row)

    _LOGGER.debug("Interpolated %d hourly records into %d 15-minute records", n, len(out))
    return out
