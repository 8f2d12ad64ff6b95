"""
Key-gated enrichment proxy (Stormglass-compatible API).

Supplies sea water temperature, per-day astronomy, and tide extremes plus
sea level used as a fallback when no authoritative tide station resolves.
Without an API key every call returns None without touching the network.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp

from .const import ENRICHMENT_BASE, ENRICHMENT_TIMEOUT
from .models import AstronomyDay, TideEvent
from . import unit_helpers

_LOGGER = logging.getLogger(__name__)

SOURCE_PREFERENCE = ("sg", "noaa", "meto")


def best_value(field: Optional[Mapping[str, Any]]) -> Optional[float]:
    """Pick the preferred source out of a multi-source value."""
    if not isinstance(field, Mapping) or not field:
        return None
    for source in SOURCE_PREFERENCE:
        if field.get(source) is not None:
            return unit_helpers._to_float(field[source])
    return unit_helpers._to_float(next(iter(field.values())))


def _epoch(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class EnrichmentClient:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str] = None,
        base_url: str = ENRICHMENT_BASE,
    ) -> None:
        self._session = session
        self._api_key = api_key or None
        self._base_url = base_url.rstrip("/")

    @property
    def available(self) -> bool:
        return self._api_key is not None

    async def _get(self, path: str, latitude: float, longitude: float, start: datetime, end: datetime, **extra: str) -> Any:
        params: Dict[str, Any] = {
            "lat": round(float(latitude), 4),
            "lng": round(float(longitude), 4),
            "start": _iso(start),
            "end": _iso(end),
        }
        params.update(extra)
        async with self._session.get(
            f"{self._base_url}{path}",
            params=params,
            headers={"Authorization": self._api_key},
            timeout=aiohttp.ClientTimeout(total=ENRICHMENT_TIMEOUT),
        ) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    async def fetch_water_temperature(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> Optional[List[Tuple[int, float]]]:
        if not self.available:
            return None
        try:
            data = await self._get("/weather", latitude, longitude, start, end, params="waterTemperature")
            hours = data["hours"]
            series: List[Tuple[int, float]] = []
            for hour in hours:
                value = best_value(hour.get("waterTemperature"))
                ts = _epoch(hour.get("time"))
                if value is not None and ts is not None:
                    series.append((ts, value))
        except Exception:
            _LOGGER.warning("Enrichment water temperature unavailable", exc_info=True)
            return None
        _LOGGER.debug("Enrichment water temperature: %d points", len(series))
        return series

    async def fetch_astronomy(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> Optional[Tuple[AstronomyDay, ...]]:
        if not self.available:
            return None
        try:
            data = await self._get("/astronomy", latitude, longitude, start, end)
            days: List[AstronomyDay] = []
            for point in data["data"]:
                phase = (point.get("moonPhase") or {}).get("current") or {}
                days.append(
                    AstronomyDay(
                        date=str(point["time"])[:10],
                        sunrise=_epoch(point.get("sunrise")),
                        sunset=_epoch(point.get("sunset")),
                        moonrise=_epoch(point.get("moonrise")),
                        moonset=_epoch(point.get("moonset")),
                        moon_transit=_epoch(point.get("moonTransit")),
                        moon_phase=unit_helpers._to_float(phase.get("value")),
                        moon_illumination=unit_helpers._to_float(point.get("moonFraction")),
                        moon_phase_name=phase.get("text"),
                    )
                )
        except Exception:
            _LOGGER.warning("Enrichment astronomy unavailable", exc_info=True)
            return None
        return tuple(days)

    async def fetch_tide_extremes(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> Optional[List[TideEvent]]:
        if not self.available:
            return None
        try:
            data = await self._get("/tide/extremes", latitude, longitude, start, end)
            events: List[TideEvent] = []
            for item in data["data"]:
                ts = _epoch(item.get("time"))
                height = unit_helpers._to_float(item.get("height"))
                kind = str(item.get("type") or "").lower()
                if ts is None or height is None or kind not in ("high", "low"):
                    _LOGGER.debug("Skipping malformed enrichment tide extreme: %s", item)
                    continue
                events.append(TideEvent(ts, height, kind))
            events.sort(key=lambda e: e.timestamp)
        except Exception:
            _LOGGER.warning("Enrichment tide extremes unavailable", exc_info=True)
            return None
        return events

    async def fetch_sea_level(
        self, latitude: float, longitude: float, start: datetime, end: datetime
    ) -> Optional[List[Tuple[int, float]]]:
        if not self.available:
            return None
        try:
            data = await self._get("/tide/sea-level", latitude, longitude, start, end)
            levels: List[Tuple[int, float]] = []
            for item in data["data"]:
                ts = _epoch(item.get("time"))
                height = unit_helpers._to_float(item.get("height"))
                if ts is None or height is None:
                    continue
                levels.append((ts, height))
            levels.sort()
        except Exception:
            _LOGGER.warning("Enrichment sea level unavailable", exc_info=True)
            return None
        return levels
