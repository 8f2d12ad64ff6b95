"""
Sun and moon data for the forecast window.

SkyfieldAstronomy computes rise/set/transit times and the lunar phase from
the JPL de421 ephemeris. The ephemeris is loaded lazily in the executor on
first use. The module-level helpers give the synodic approximation that the
models fall back on when no AstronomyDay covers a date.
"""
from __future__ import annotations

import asyncio
import logging
import math
import os
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from skyfield import almanac as _almanac  # type: ignore
from skyfield.api import Loader, wgs84  # type: ignore
import skyfield

from .const import DOMAIN
from .models import AstronomyDay

_LOGGER = logging.getLogger(__name__)

SYNODIC_MONTH_DAYS = 29.53059
NEW_MOON_EPOCH_JD = 2451550.1  # Jan 6 2000
_UNIX_EPOCH_JD = 2440587.5

_PHASE_NAMES = (
    (0.0625, "New Moon"),
    (0.1875, "Waxing Crescent"),
    (0.3125, "First Quarter"),
    (0.4375, "Waxing Gibbous"),
    (0.5625, "Full Moon"),
    (0.6875, "Waning Gibbous"),
    (0.8125, "Last Quarter"),
    (0.9375, "Waning Crescent"),
)


def julian_day(dt: datetime) -> float:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() / 86400.0 + _UNIX_EPOCH_JD


def moon_phase_fraction(dt: datetime) -> float:
    """Position in the synodic cycle: 0 = new moon, 0.5 = full moon."""
    phase = ((julian_day(dt) - NEW_MOON_EPOCH_JD) % SYNODIC_MONTH_DAYS) / SYNODIC_MONTH_DAYS
    return phase % 1.0


def moon_illumination_pct(phase: float) -> float:
    return float(round((1.0 - math.cos(2.0 * math.pi * phase)) / 2.0 * 100.0))


def moon_phase_name(phase: float) -> str:
    p = phase % 1.0
    for upper, name in _PHASE_NAMES:
        if p < upper:
            return name
    return "New Moon"


def solar_elevation(latitude: float, longitude: float, timestamp: int) -> float:
    """Approximate sun elevation in degrees (NOAA general solar position)."""
    dt = datetime.fromtimestamp(int(timestamp), tz=timezone.utc)
    hour = dt.hour + dt.minute / 60.0 + dt.second / 3600.0
    gamma = 2.0 * math.pi / 365.0 * (dt.timetuple().tm_yday - 1 + (hour - 12.0) / 24.0)
    decl = (
        0.006918
        - 0.399912 * math.cos(gamma)
        + 0.070257 * math.sin(gamma)
        - 0.006758 * math.cos(2 * gamma)
        + 0.000907 * math.sin(2 * gamma)
        - 0.002697 * math.cos(3 * gamma)
        + 0.00148 * math.sin(3 * gamma)
    )
    eqtime = 229.18 * (
        0.000075
        + 0.001868 * math.cos(gamma)
        - 0.032077 * math.sin(gamma)
        - 0.014615 * math.cos(2 * gamma)
        - 0.040849 * math.sin(2 * gamma)
    )
    true_solar_minutes = hour * 60.0 + eqtime + 4.0 * float(longitude)
    hour_angle = math.radians(true_solar_minutes / 4.0 - 180.0)
    lat = math.radians(float(latitude))
    cos_zenith = math.sin(lat) * math.sin(decl) + math.cos(lat) * math.cos(decl) * math.cos(hour_angle)
    cos_zenith = max(-1.0, min(1.0, cos_zenith))
    return round(90.0 - math.degrees(math.acos(cos_zenith)), 2)


def _epoch(t) -> int:
    return int(t.utc_datetime().replace(tzinfo=timezone.utc).timestamp())


def _first_in(times: Sequence[Tuple[int, int]], want: int, start: int, end: int) -> Optional[int]:
    for ts, ev in times:
        if ev == want and start <= ts < end:
            return ts
    return None


class SkyfieldAstronomy:
    """Local astronomy channel backed by skyfield."""

    def __init__(self, hass, data_dir: Optional[str] = None) -> None:
        self.hass = hass
        if data_dir is None:
            data_dir = hass.config.path("custom_components", DOMAIN, "data")
        os.makedirs(data_dir, exist_ok=True)
        self._loader = Loader(data_dir)
        self._sf_ts = None
        self._sf_eph = None
        self._load_lock = asyncio.Lock()

    async def _ensure_loaded(self) -> None:
        if self._sf_eph is not None and self._sf_ts is not None:
            return
        async with self._load_lock:
            if self._sf_eph is not None and self._sf_ts is not None:
                return

            def _blocking_load():
                sf_ts = self._loader.timescale()
                sf_eph = self._loader("de421.bsp")
                return sf_ts, sf_eph, getattr(skyfield, "__version__", "unknown")

            try:
                sf_ts, sf_eph, version = await self.hass.async_add_executor_job(_blocking_load)
            except Exception:
                _LOGGER.exception("Failed to load Skyfield resources")
                raise
            self._sf_ts = sf_ts
            self._sf_eph = sf_eph
            _LOGGER.info("Skyfield loaded version=%s", version)

    def _compute_days(
        self, latitude: float, longitude: float, start_date: date, days: int, utc_offset_seconds: int
    ) -> Tuple[AstronomyDay, ...]:
        ts = self._sf_ts
        eph = self._sf_eph
        topos = wgs84.latlon(latitude, longitude)
        offset = timedelta(seconds=utc_offset_seconds)

        window_start = datetime(start_date.year, start_date.month, start_date.day, tzinfo=timezone.utc) - offset
        window_end = window_start + timedelta(days=days)
        t0 = ts.from_datetime(window_start)
        t1 = ts.from_datetime(window_end)

        def _events(fn) -> List[Tuple[int, int]]:
            times, events = _almanac.find_discrete(t0, t1, fn)
            return [(_epoch(t), int(ev)) for t, ev in zip(times, events)]

        sun_events = _events(_almanac.sunrise_sunset(eph, topos))
        moon_events = _events(_almanac.risings_and_settings(eph, eph["moon"], topos))
        transits = _events(_almanac.meridian_transits(eph, eph["moon"], topos))

        result: List[AstronomyDay] = []
        for i in range(days):
            day_start = window_start + timedelta(days=i)
            s = int(day_start.timestamp())
            e = s + 86400
            noon = ts.from_datetime(day_start + timedelta(hours=12))
            phase = float(_almanac.moon_phase(eph, noon).degrees) / 360.0
            illum = float(_almanac.fraction_illuminated(eph, "moon", noon))
            result.append(
                AstronomyDay(
                    date=(start_date + timedelta(days=i)).isoformat(),
                    sunrise=_first_in(sun_events, 1, s, e),
                    sunset=_first_in(sun_events, 0, s, e),
                    moonrise=_first_in(moon_events, 1, s, e),
                    moonset=_first_in(moon_events, 0, s, e),
                    moon_transit=_first_in(transits, 1, s, e),
                    moon_phase=round(phase, 4),
                    moon_illumination=round(illum, 4),
                    moon_phase_name=moon_phase_name(phase),
                )
            )
        return tuple(result)

    async def async_astronomy_days(
        self,
        latitude: float,
        longitude: float,
        start_date: date,
        days: int,
        utc_offset_seconds: int = 0,
    ) -> Optional[Tuple[AstronomyDay, ...]]:
        """Per-day sun and moon data, or None when the computation fails."""
        try:
            await self._ensure_loaded()
            out = await self.hass.async_add_executor_job(
                self._compute_days, float(latitude), float(longitude), start_date, int(days), int(utc_offset_seconds)
            )
        except Exception:
            _LOGGER.warning("Local astronomy unavailable for lat=%s lon=%s", latitude, longitude, exc_info=True)
            return None
        _LOGGER.debug("Computed %d astronomy days from %s", len(out), start_date)
        return out


def illumination_by_date(days: Optional[Sequence[AstronomyDay]]) -> Dict[str, float]:
    """Map YYYY-MM-DD to moon illumination percent."""
    out: Dict[str, float] = {}
    for day in days or ():
        if day.moon_illumination is not None:
            out[day.date] = round(day.moon_illumination * 100.0, 1)
        elif day.moon_phase is not None:
            out[day.date] = moon_illumination_pct(day.moon_phase)
    return out
