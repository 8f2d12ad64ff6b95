"""Unit conversion helper utilities shared across the integration.

Converters attempt to coerce to float and return None on failure.
Canonical units used by the integration:
- wind: kilometres/hour (km/h) as delivered by Open-Meteo; models work in knots
- current: knots
- heights: meters (m)
- temperature: Celsius (°C)
- pressure: hectopascals (hPa)
- time: Unix epoch seconds (UTC)
"""
from typing import Any, Optional
import logging

from .const import KMH_TO_KNOTS

_LOGGER = logging.getLogger(__name__)


def _to_float(v: Any) -> Optional[float]:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


def _to_int(v: Any) -> Optional[int]:
    f = _to_float(v)
    if f is None:
        return None
    return int(f)


# ---- Speed ----

def kmh_to_knots(v: Any) -> Optional[float]:
    """Convert km/h to knots."""
    f = _to_float(v)
    if f is None:
        return None
    return f * KMH_TO_KNOTS


# ---- Numeric helpers used by the scoring models ----

def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp value into [lo, hi]."""
    return max(lo, min(hi, value))


def estimate_wave_height(wind_kmh: Optional[float], cap: float) -> float:
    """Rough wind-sea height (m) from wind speed when no marine height is available.

    Uses 10% of the wind speed in m/s, capped at ``cap``.
    """
    w = _to_float(wind_kmh) or 0.0
    return min(w / 3.6 * 0.1, cap)
