"""
Canadian Hydrographic Service (IWLS) tide client.

Stations are resolved by explicit code or by the nearest station within a
radius. Water-level predictions (wlp) and extremes (wlp-hilo) are fetched
for a 14-day window starting 6 hours before ``now`` and reduced to a
TideState through tides.build_tide_state.
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiohttp
from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_TIDE_MAX_RADIUS_KM,
    IWLS_BASE,
    IWLS_REGION_CODE,
    IWLS_STATION_CACHE_TTL,
    TIDE_AUTHORITATIVE,
    TIDE_CHUNK_DAYS,
    TIDE_TIMEOUT,
    TIDE_WINDOW_LOOKBACK,
)
from .exceptions import StationNotFound
from .models import TideEvent, TideState
from .tides import build_tide_state, classify_extremes

_LOGGER = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class Station:
    id: str
    code: str
    name: str
    latitude: float
    longitude: float
    type: Optional[str] = None
    timezone: Optional[str] = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "Station":
        return cls(
            id=str(raw["id"]),
            code=str(raw["code"]),
            name=raw.get("officialName") or raw.get("name") or str(raw["code"]),
            latitude=float(raw["latitude"]),
            longitude=float(raw["longitude"]),
            type=raw.get("type"),
            timezone=raw.get("timeZone"),
        )


SEED_STATIONS: Tuple[Station, ...] = (
    Station("5cebf1df3d0f4a073c4bbd15", "07080", "Pedder Bay", 48.3333, -123.5500),
    Station("5cebf1df3d0f4a073c4bbd11", "07024", "Sooke Basin", 48.3711, -123.7256),
    Station("5cebf1df3d0f4a073c4bbd1e", "07120", "Victoria Harbour", 48.4236, -123.3711),
    Station("5cebf1e13d0f4a073c4bbf85", "07592", "Roberts Bank", 49.0167, -123.2333),
    Station("5cebf1e43d0f4a073c4bc404", "07707", "Kitsilano", 49.2750, -123.1550),
    Station("5cebf1e23d0f4a073c4bc062", "08545", "Bamfield", 48.8333, -125.1333),
    Station("5cebf1de3d0f4a073c4bb9c7", "08408", "Port Hardy", 50.7217, -127.4883),
    Station("5cebf1de3d0f4a073c4bb996", "08074", "Campbell River", 50.0422, -125.2472),
    Station("5cebf1de3d0f4a073c4bb96d", "07917", "Nanaimo Harbour", 49.1667, -123.9333),
    Station("5cebf1e23d0f4a073c4bc07c", "08615", "Tofino", 49.1542, -125.9111),
    Station("5cebf1e43d0f4a073c4bc469", "09346", "Prince Rupert RoRo", 54.3167, -130.3333),
    Station("5cebf1de3d0f4a073c4bba2d", "09713", "Rose Harbour", 52.0889, -131.0667),
    Station("5dd3064ee0fdc4b9b4be670a", "07824", "Roberts Creek", 49.4167, -123.6333),
    Station("5cebf1e23d0f4a073c4bc0b7", "08937", "Bella Coola", 52.3833, -126.7500),
    Station("5cebf1df3d0f4a073c4bbd08", "07010", "Sooke", 48.3703, -123.7264),
    Station("5cebf1df3d0f4a073c4bbd0f", "07020", "Otter Point", 48.3581, -123.8094),
    Station("5cebf1df3d0f4a073c4bbd12", "07030", "Becher Bay", 48.3200, -123.6283),
    Station("5cebf1df3d0f4a073c4bbd17", "07090", "Esquimalt", 48.4322, -123.4389),
    Station("5cebf1df3d0f4a073c4bbd1a", "07108", "Patricia Bay", 48.6539, -123.4517),
    Station("5cebf1df3d0f4a073c4bbd1c", "07110", "Fulford Harbour", 48.7728, -123.4494),
    Station("5cebf1df3d0f4a073c4bbd21", "07160", "Cowichan Bay", 48.7361, -123.6250),
    Station("5cebf1e03d0f4a073c4bbe37", "07277", "Point Atkinson", 49.3306, -123.2631),
    Station("5cebf1de3d0f4a073c4bb995", "08070", "Comox", 49.6742, -124.9231),
    Station("5cebf1de3d0f4a073c4bb990", "08050", "Nanoose Bay", 49.2667, -124.1667),
    Station("5cebf1de3d0f4a073c4bb9a7", "08300", "Alert Bay", 50.5900, -126.9300),
    Station("5cebf1e23d0f4a073c4bc08a", "08640", "Ucluelet", 48.9422, -125.5464),
    Station("5cebf1e33d0f4a073c4bc10a", "09020", "Queen Charlotte City", 53.2500, -132.0700),
)


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = math.sin(d_lat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _iso_z(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _parse_event_date(value: str) -> int:
    s = value.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _parse_points(data: Any) -> List[Tuple[int, float]]:
    if not isinstance(data, list):
        raise ValueError("IWLS data payload is not a list")
    points: List[Tuple[int, float]] = []
    for item in data:
        if not isinstance(item, Mapping) or item.get("eventDate") is None or item.get("value") is None:
            continue
        points.append((_parse_event_date(str(item["eventDate"])), float(item["value"])))
    points.sort()
    return points


class IwlsTideClient:
    """Tide predictions from the IWLS API with a cached station registry."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str = IWLS_BASE,
        region_code: str = IWLS_REGION_CODE,
        cache_ttl: int = IWLS_STATION_CACHE_TTL,
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._region_code = region_code
        self._cache_ttl = cache_ttl
        self._stations: Optional[List[Station]] = None
        self._stations_loaded_at = 0.0
        self._registry_lock = asyncio.Lock()

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        async with self._session.get(
            f"{self._base_url}{path}", params=params, timeout=aiohttp.ClientTimeout(total=TIDE_TIMEOUT)
        ) as resp:
            resp.raise_for_status()
            return await resp.json(content_type=None)

    # ---- station registry ----

    async def load_station_registry(self) -> List[Station]:
        """Pacific stations merged over the seed list, cached for 24 hours."""
        async with self._registry_lock:
            if self._stations is not None and time.monotonic() - self._stations_loaded_at < self._cache_ttl:
                return self._stations
            merged: Dict[str, Station] = {s.code: s for s in SEED_STATIONS}
            try:
                raw = await self._get_json("/stations", {"chs-region-code": self._region_code})
                if not isinstance(raw, list):
                    raise ValueError("IWLS station list is not a list")
                for item in raw:
                    try:
                        station = Station.from_api(item)
                    except (KeyError, TypeError, ValueError):
                        _LOGGER.debug("Skipping malformed IWLS station entry: %s", item)
                        continue
                    merged[station.code] = station
                _LOGGER.debug("IWLS station registry loaded: %d stations", len(merged))
            except Exception:
                _LOGGER.warning("Failed to fetch IWLS station list, using seed stations", exc_info=True)
            self._stations = list(merged.values())
            self._stations_loaded_at = time.monotonic()
            return self._stations

    async def find_nearest_station(
        self, latitude: float, longitude: float, max_radius_km: float = DEFAULT_TIDE_MAX_RADIUS_KM
    ) -> Tuple[Station, float]:
        """Nearest station and its distance (km, 2 decimals).

        Raises StationNotFound when nothing lies within ``max_radius_km``.
        """
        stations = await self.load_station_registry()
        best: Optional[Station] = None
        best_distance = math.inf
        for station in stations:
            d = haversine_km(latitude, longitude, station.latitude, station.longitude)
            if d < best_distance:
                best, best_distance = station, d
        if best is None or best_distance > max_radius_km:
            raise StationNotFound(f"No tide station within {max_radius_km}km of ({latitude}, {longitude})")
        return best, round(best_distance, 2)

    async def _lookup_code(self, code: str) -> Optional[Station]:
        stations = await self.load_station_registry()
        match = next((s for s in stations if s.code == code), None)
        if match is not None:
            return match
        try:
            data = await self._get_json("/stations", {"code": code})
            raw = data[0] if isinstance(data, list) and data else data
            if isinstance(raw, Mapping) and raw.get("id"):
                return Station.from_api(raw)
        except Exception:
            _LOGGER.warning("Failed to resolve station code %s", code, exc_info=True)
        return None

    async def resolve_station(
        self,
        latitude: float,
        longitude: float,
        code: Optional[str] = None,
        max_radius_km: float = DEFAULT_TIDE_MAX_RADIUS_KM,
    ) -> Optional[Tuple[Station, float]]:
        """Explicit code first, then the nearest station; None when neither resolves."""
        if code:
            station = await self._lookup_code(code)
            if station is not None:
                d = haversine_km(latitude, longitude, station.latitude, station.longitude)
                return station, round(d, 2)
        try:
            return await self.find_nearest_station(latitude, longitude, max_radius_km)
        except StationNotFound as err:
            _LOGGER.info("%s", err)
            return None

    # ---- data series ----

    async def fetch_station_metadata(self, station_id: str) -> Optional[Station]:
        try:
            return Station.from_api(await self._get_json(f"/stations/{station_id}"))
        except Exception:
            _LOGGER.warning("Failed to fetch IWLS station metadata for %s", station_id, exc_info=True)
            return None

    async def fetch_water_levels(self, station_id: str, start: datetime, end: datetime) -> List[Tuple[int, float]]:
        params = {"time-series-code": "wlp", "from": _iso_z(start), "to": _iso_z(end)}
        try:
            return _parse_points(await self._get_json(f"/stations/{station_id}/data", params))
        except Exception:
            _LOGGER.warning("Failed to fetch IWLS water levels for %s", station_id, exc_info=True)
            return []

    async def fetch_extremes(self, station_id: str, start: datetime, end: datetime) -> List[TideEvent]:
        params = {"time-series-code": "wlp-hilo", "from": _iso_z(start), "to": _iso_z(end)}
        try:
            return classify_extremes(_parse_points(await self._get_json(f"/stations/{station_id}/data", params)))
        except Exception:
            _LOGGER.warning("Failed to fetch IWLS tide extremes for %s", station_id, exc_info=True)
            return []

    async def fetch_tide(
        self,
        latitude: float,
        longitude: float,
        station_code: Optional[str] = None,
        max_radius_km: float = DEFAULT_TIDE_MAX_RADIUS_KM,
        now: Optional[datetime] = None,
        utc_offset_seconds: int = 0,
    ) -> Optional[TideState]:
        """Authoritative TideState for the location, or None."""
        resolved = await self.resolve_station(latitude, longitude, station_code, max_radius_km)
        if resolved is None:
            return None
        station, distance_km = resolved

        now = now or dt_util.utcnow()
        start = now - timedelta(seconds=TIDE_WINDOW_LOOKBACK)
        mid = start + timedelta(days=TIDE_CHUNK_DAYS)
        end = mid + timedelta(days=TIDE_CHUNK_DAYS)

        meta, week1, week2, events = await asyncio.gather(
            self.fetch_station_metadata(station.id),
            self.fetch_water_levels(station.id, start, mid),
            self.fetch_water_levels(station.id, mid, end),
            self.fetch_extremes(station.id, start, end),
        )
        levels = week1 + week2
        if meta is None or not levels:
            _LOGGER.warning("Incomplete IWLS data for station %s (%s)", station.code, station.name)
            return None

        _LOGGER.debug(
            "IWLS station %s at %.2fkm: %d levels, %d extremes", station.code, distance_km, len(levels), len(events)
        )
        return build_tide_state(
            events,
            levels,
            int(now.timestamp()),
            provenance=TIDE_AUTHORITATIVE,
            range_mode="daily",
            station_id=meta.id,
            station_code=station.code,
            station_name=meta.name,
            distance_km=distance_km,
            utc_offset_seconds=utc_offset_seconds,
        )
