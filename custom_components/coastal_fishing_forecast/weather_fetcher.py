"""
Open-Meteo forecast and marine client.

- The forecast endpoint is the primary channel: any HTTP or payload failure
  raises PrimaryChannelFailure.
- The marine endpoint is best-effort: failures return None.
- Samples are 15-minute resolution. When the provider omits the
  ``minutely_15`` block the hourly block is resampled.
"""
from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import aiohttp

from .const import MARINE_MERGE_TOLERANCE, MARINE_TIMEOUT, OM_BASE, OM_MARINE_BASE, WEATHER_TIMEOUT
from .exceptions import PrimaryChannelFailure
from .interpolation import interpolate_hourly_to_15min
from .models import SAMPLE_FIELDS, Sample, SunTimes
from . import unit_helpers

_LOGGER = logging.getLogger(__name__)

# Open-Meteo variable -> Sample field
OM_WEATHER_FIELDS: Dict[str, str] = {
    "temperature_2m": "temperature",
    "relative_humidity_2m": "humidity",
    "dew_point_2m": "dew_point",
    "apparent_temperature": "apparent_temperature",
    "precipitation": "precipitation",
    "precipitation_probability": "precipitation_probability",
    "weather_code": "weather_code",
    "surface_pressure": "pressure",
    "cloud_cover": "cloud_cover",
    "wind_speed_10m": "wind_speed",
    "wind_direction_10m": "wind_direction",
    "wind_gusts_10m": "wind_gust",
    "visibility": "visibility",
    "sunshine_duration": "sunshine_duration",
    "lightning_potential": "lightning_potential",
    "cape": "cape",
}

OM_MARINE_FIELDS: Dict[str, str] = {
    "swell_wave_height": "swell_height",
    "swell_wave_period": "swell_period",
    "sea_surface_temperature": "sea_surface_temperature",
    "wave_height": "wave_height",
    "wave_period": "wave_period",
    "wave_direction": "wave_direction",
    "ocean_current_velocity": "current_speed",
    "ocean_current_direction": "current_direction",
}

OM_PARAMS = ",".join(OM_WEATHER_FIELDS)
OM_MARINE_PARAMS = ",".join(OM_MARINE_FIELDS)
OM_DAILY_PARAMS = "sunrise,sunset,temperature_2m_max,temperature_2m_min"


@dataclass(frozen=True)
class WeatherForecast:
    samples: Tuple[Sample, ...]
    sun_times: Tuple[SunTimes, ...]
    utc_offset_seconds: int = 0


def _columns_to_rows(block: Mapping[str, Any], field_map: Mapping[str, str]) -> List[Dict[str, Any]]:
    """Turn an Open-Meteo column block into row dicts keyed by Sample field name."""
    times = block.get("time")
    if not isinstance(times, list):
        raise ValueError("Open-Meteo block missing 'time' array")
    rows: List[Dict[str, Any]] = []
    for i, ts in enumerate(times):
        if ts is None:
            continue
        row: Dict[str, Any] = {"timestamp": int(ts)}
        for om_name, field_name in field_map.items():
            column = block.get(om_name)
            value = column[i] if isinstance(column, list) and i < len(column) else None
            row[field_name] = unit_helpers._to_float(value)
        rows.append(row)
    return rows


def _rows_to_samples(rows: Sequence[Mapping[str, Any]]) -> Tuple[Sample, ...]:
    """Strictly increasing, de-duplicated samples (first row wins on a duplicate)."""
    by_ts: Dict[int, Sample] = {}
    for row in rows:
        ts = row.get("timestamp")
        if ts is None:
            continue
        ts = int(ts)
        if ts in by_ts:
            continue
        by_ts[ts] = Sample.from_dict({**row, "timestamp": ts})
    return tuple(by_ts[t] for t in sorted(by_ts))


def _parse_sun_times(daily: Optional[Mapping[str, Any]], utc_offset_seconds: int) -> Tuple[SunTimes, ...]:
    if not isinstance(daily, Mapping):
        return ()
    tz = timezone(timedelta(seconds=utc_offset_seconds))
    times = daily.get("time") or []
    sunrises = daily.get("sunrise") or []
    sunsets = daily.get("sunset") or []
    out: List[SunTimes] = []
    for i, ts in enumerate(times):
        if ts is None:
            continue
        day = datetime.fromtimestamp(int(ts), tz=tz).date().isoformat()
        rise = unit_helpers._to_int(sunrises[i]) if i < len(sunrises) else None
        sset = unit_helpers._to_int(sunsets[i]) if i < len(sunsets) else None
        out.append(SunTimes(day, rise, sset))
    return tuple(out)


def merge_marine(
    samples: Sequence[Sample],
    marine_rows: Optional[Sequence[Mapping[str, Any]]],
    tolerance_s: int = MARINE_MERGE_TOLERANCE,
) -> Tuple[Sample, ...]:
    """Attach the nearest marine row within ``tolerance_s`` to each sample.

    Marine values only fill fields the weather sample left empty. Samples
    with no row inside the tolerance are passed through untouched.
    """
    if not marine_rows:
        return tuple(samples)
    rows = sorted((r for r in marine_rows if r.get("timestamp") is not None), key=lambda r: int(r["timestamp"]))
    times = [int(r["timestamp"]) for r in rows]
    if not times:
        return tuple(samples)

    merged: List[Sample] = []
    for sample in samples:
        idx = bisect.bisect_left(times, sample.timestamp)
        best: Optional[Mapping[str, Any]] = None
        best_gap: Optional[int] = None
        for j in (idx - 1, idx):
            if 0 <= j < len(times):
                gap = abs(times[j] - sample.timestamp)
                if best_gap is None or gap < best_gap:
                    best, best_gap = rows[j], gap
        if best is None or best_gap is None or best_gap > tolerance_s:
            merged.append(sample)
            continue
        merged.append(sample.merged({k: v for k, v in best.items() if k != "timestamp" and k in SAMPLE_FIELDS}))
    return tuple(merged)


class OpenMeteoClient:
    """Thin client over the Open-Meteo forecast and marine endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = OM_BASE,
        marine_base_url: str = OM_MARINE_BASE,
    ) -> None:
        self._session = session
        self._base_url = base_url
        self._marine_base_url = marine_base_url

    async def fetch_weather(self, latitude: float, longitude: float, forecast_days: int) -> WeatherForecast:
        params = {
            "latitude": round(float(latitude), 6),
            "longitude": round(float(longitude), 6),
            "minutely_15": OM_PARAMS,
            "hourly": OM_PARAMS,
            "daily": OM_DAILY_PARAMS,
            "forecast_days": int(forecast_days),
            "timezone": "auto",
            "timeformat": "unixtime",
            "wind_speed_unit": "kmh",
        }
        try:
            async with self._session.get(
                self._base_url, params=params, timeout=aiohttp.ClientTimeout(total=WEATHER_TIMEOUT)
            ) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
            if not isinstance(data, dict):
                raise ValueError("Open-Meteo returned unexpected payload shape")

            offset = int(data.get("utc_offset_seconds") or 0)
            minutely = data.get("minutely_15")
            if isinstance(minutely, dict) and minutely.get("time"):
                samples = _rows_to_samples(_columns_to_rows(minutely, OM_WEATHER_FIELDS))
            else:
                hourly = data.get("hourly")
                if not isinstance(hourly, dict):
                    raise ValueError("Open-Meteo payload has neither 'minutely_15' nor 'hourly'")
                hourly_rows = _columns_to_rows(hourly, OM_WEATHER_FIELDS)
                _LOGGER.debug("No 15-minute block; resampling %d hourly rows", len(hourly_rows))
                samples = _rows_to_samples(interpolate_hourly_to_15min(hourly_rows))
            if not samples:
                raise ValueError("Open-Meteo returned no forecast rows")
        except Exception as exc:
            _LOGGER.exception("Open-Meteo forecast fetch failed for %s,%s", latitude, longitude)
            raise PrimaryChannelFailure("Open-Meteo forecast fetch failed") from exc

        _LOGGER.debug("Open-Meteo returned %d samples (utc_offset=%s)", len(samples), offset)
        return WeatherForecast(samples, _parse_sun_times(data.get("daily"), offset), offset)

    async def fetch_marine(self, latitude: float, longitude: float, days: int) -> Optional[List[Dict[str, Any]]]:
        """Hourly marine rows, or None when the channel is unavailable."""
        params = {
            "latitude": round(float(latitude), 6),
            "longitude": round(float(longitude), 6),
            "hourly": OM_MARINE_PARAMS,
            "forecast_days": int(days),
            "timezone": "auto",
            "timeformat": "unixtime",
        }
        try:
            async with self._session.get(
                self._marine_base_url, params=params, timeout=aiohttp.ClientTimeout(total=MARINE_TIMEOUT)
            ) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
            if not isinstance(data, dict) or not isinstance(data.get("hourly"), dict):
                raise ValueError("Open-Meteo marine payload missing 'hourly'")
            rows = _columns_to_rows(data["hourly"], OM_MARINE_FIELDS)
        except Exception:
            _LOGGER.warning("Open-Meteo marine fetch failed for %s,%s", latitude, longitude, exc_info=True)
            return None

        for row in rows:
            # ocean_current_velocity arrives in km/h
            row["current_speed"] = unit_helpers.kmh_to_knots(row.get("current_speed"))
        _LOGGER.debug("Open-Meteo marine returned %d rows", len(rows))
        return rows
