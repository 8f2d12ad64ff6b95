"""
Per location/hotspot/species/day forecast cache.

ForecastCacheService owns the expiry, eviction and hit-count policy; the
storage itself sits behind a CacheBackend. Two backends ship:

- MemoryCacheBackend: a dict table for the lifetime of the process.
- StoreCacheBackend: the same table persisted through the Home Assistant
  ``Store`` helper so cached forecasts survive a restart.


Cache failures never reach the caller: reads degrade to a miss, writes to
False, maintenance to zero counts.
"""
from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from .const import (
    CACHE_DURATION_ENV,
    CACHE_EVICTION_BUFFER,
    DEFAULT_CACHE_DURATION_HOURS,
    DEFAULT_CLEANUP_INTERVAL_HOURS,
    DEFAULT_MAX_CACHE_ENTRIES,
    STORE_VERSION,
)

_LOGGER = logging.getLogger(__name__)

NO_SPECIES = "no-species"
STORE_SAVE_DELAY = 10  # seconds
TOP_HITS = 10


def make_cache_key(location: str, hotspot: str, species: Optional[str], day: Optional[Any] = None) -> str:
    """``location|hotspot|species|YYYY-MM-DD``; ``day`` defaults to today (UTC)."""
    if day is None:
        day = dt_util.utcnow().date()
    elif isinstance(day, datetime):
        day = day.astimezone(timezone.utc).date() if day.tzinfo else day.date()
    return f"{location}|{hotspot}|{species or NO_SPECIES}|{day.isoformat()}"


def _env_duration_hours() -> float:
    raw = os.environ.get(CACHE_DURATION_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_CACHE_DURATION_HOURS
    try:
        hours = float(raw)
    except ValueError:
        _LOGGER.error("Ignoring invalid %s=%r", CACHE_DURATION_ENV, raw)
        return DEFAULT_CACHE_DURATION_HOURS
    if hours <= 0:
        _LOGGER.error("Ignoring non-positive %s=%r", CACHE_DURATION_ENV, raw)
        return DEFAULT_CACHE_DURATION_HOURS
    return hours


@dataclass(frozen=True)
class CacheConfig:
    default_cache_duration_hours: float = field(default_factory=_env_duration_hours)
    max_cache_entries: int = DEFAULT_MAX_CACHE_ENTRIES
    cleanup_interval_hours: float = DEFAULT_CLEANUP_INTERVAL_HOURS
    eviction_buffer: int = CACHE_EVICTION_BUFFER


@dataclass
class CacheEntry:
    cache_key: str
    location_name: str
    hotspot_name: str
    species_name: Optional[str]
    coordinates: Dict[str, float]
    data: Dict[str, Any]
    created_at: float
    expires_at: float
    cache_duration_hours: float
    hit_count: int = 0
    last_accessed: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CacheEntry":
        return cls(**raw)


@dataclass(frozen=True)
class CachedForecast:
    data: Optional[Dict[str, Any]]
    cached: bool
    created_at: Optional[float] = None
    expires_at: Optional[float] = None


MISS = CachedForecast(None, False)


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[CacheEntry]: ...

    async def upsert(self, entry: CacheEntry) -> None: ...

    async def touch(self, key: str, now: float) -> None: ...

    async def delete_expired(self, now: float) -> int: ...

    async def count(self) -> int: ...

    async def delete_least_recently_accessed(self, n: int) -> int: ...

    async def clear(self) -> int: ...

    async def all(self) -> List[CacheEntry]: ...

    async def get_location_ttl(self, location: str, hotspot: str) -> Optional[float]: ...

    async def set_location_ttl(self, location: str, hotspot: str, hours: float) -> None: ...


class MemoryCacheBackend:
    """Dict-backed table; every operation holds the lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._entries: Dict[str, CacheEntry] = {}
        self._location_ttl: Dict[Tuple[str, str], float] = {}

    def _changed(self) -> None:
        """Hook for persisting subclasses."""

    async def get(self, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            return self._entries.get(key)

    async def upsert(self, entry: CacheEntry) -> None:
        async with self._lock:
            self._entries[entry.cache_key] = entry
            self._changed()

    async def touch(self, key: str, now: float) -> None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            entry.hit_count += 1
            entry.last_accessed = now
            self._changed()

    async def delete_expired(self, now: float) -> int:
        async with self._lock:
            expired = [k for k, e in self._entries.items() if e.expires_at <= now]
            for key in expired:
                del self._entries[key]
            if expired:
                self._changed()
            return len(expired)

    async def count(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def delete_least_recently_accessed(self, n: int) -> int:
        if n <= 0:
            return 0
        async with self._lock:
            oldest = sorted(self._entries.values(), key=lambda e: (e.last_accessed, e.created_at))[:n]
            for entry in oldest:
                del self._entries[entry.cache_key]
            if oldest:
                self._changed()
            return len(oldest)

    async def clear(self) -> int:
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._changed()
            return removed

    async def all(self) -> List[CacheEntry]:
        async with self._lock:
            return list(self._entries.values())

    async def get_location_ttl(self, location: str, hotspot: str) -> Optional[float]:
        async with self._lock:
            return self._location_ttl.get((location, hotspot))

    async def set_location_ttl(self, location: str, hotspot: str, hours: float) -> None:
        async with self._lock:
            self._location_ttl[(location, hotspot)] = float(hours)
            self._changed()


class StoreCacheBackend(MemoryCacheBackend):
    """MemoryCacheBackend persisted through a Home Assistant Store."""

    def __init__(self, hass, key: str) -> None:
        super().__init__()
        self._store = Store(hass, STORE_VERSION, key)
        self._loaded = False
        self._load_lock = asyncio.Lock()

    async def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if self._loaded:
                return
            stored = await self._store.async_load()
            if stored:
                if not isinstance(stored, dict):
                    raise RuntimeError("Persisted forecast cache payload invalid")
                async with self._lock:
                    for raw in stored.get("entries", []):
                        entry = CacheEntry.from_dict(raw)
                        self._entries[entry.cache_key] = entry
                    for item in stored.get("location_ttl", []):
                        self._location_ttl[(item["location"], item["hotspot"])] = float(item["hours"])
                _LOGGER.debug("Restored %d cached forecasts from store", len(self._entries))
            self._loaded = True

    def _data_to_save(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self._entries.values()],
            "location_ttl": [
                {"location": loc, "hotspot": spot, "hours": hours}
                for (loc, spot), hours in self._location_ttl.items()
            ],
        }

    def _changed(self) -> None:
        self._store.async_delay_save(self._data_to_save, STORE_SAVE_DELAY)

    async def get(self, key: str) -> Optional[CacheEntry]:
        await self._ensure_loaded()
        return await super().get(key)

    async def upsert(self, entry: CacheEntry) -> None:
        await self._ensure_loaded()
        await super().upsert(entry)

    async def touch(self, key: str, now: float) -> None:
        await self._ensure_loaded()
        await super().touch(key, now)

    async def delete_expired(self, now: float) -> int:
        await self._ensure_loaded()
        return await super().delete_expired(now)

    async def count(self) -> int:
        await self._ensure_loaded()
        return await super().count()

    async def delete_least_recently_accessed(self, n: int) -> int:
        await self._ensure_loaded()
        return await super().delete_least_recently_accessed(n)

    async def clear(self) -> int:
        await self._ensure_loaded()
        return await super().clear()

    async def all(self) -> List[CacheEntry]:
        await self._ensure_loaded()
        return await super().all()

    async def get_location_ttl(self, location: str, hotspot: str) -> Optional[float]:
        await self._ensure_loaded()
        return await super().get_location_ttl(location, hotspot)

    async def set_location_ttl(self, location: str, hotspot: str, hours: float) -> None:
        await self._ensure_loaded()
        await super().set_location_ttl(location, hotspot, hours)


def _now(now: Optional[float]) -> float:
    return dt_util.utcnow().timestamp() if now is None else float(now)


def _day_of(now: float) -> Any:
    return dt_util.utc_from_timestamp(now).date()


class ForecastCacheService:
    """Forecast cache policy over a CacheBackend; disabled when no backend is given."""

    def __init__(self, backend: Optional[CacheBackend] = None, config: Optional[CacheConfig] = None) -> None:
        self._backend = backend
        self.config = config or CacheConfig()
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return self._backend is not None

    async def _location_duration(self, location: str, hotspot: str) -> float:
        hours = await self._backend.get_location_ttl(location, hotspot)
        return self.config.default_cache_duration_hours if hours is None else float(hours)

    async def _record_hit(self, key: str, now: float) -> None:
        try:
            await self._backend.touch(key, now)
        except Exception:
            _LOGGER.exception("Failed to record cache hit for %s", key)

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def get_cached_forecast(
        self, location: str, hotspot: str, species: Optional[str], now: Optional[float] = None
    ) -> CachedForecast:
        if self._backend is None:
            return MISS
        now = _now(now)
        key = make_cache_key(location, hotspot, species, _day_of(now))
        try:
            entry = await self._backend.get(key)
        except Exception:
            _LOGGER.exception("Cache read failed for %s", key)
            return MISS
        if entry is None or now >= entry.expires_at:
            _LOGGER.debug("Cache miss for %s", key)
            return MISS

        self._schedule(self._record_hit(key, now))
        _LOGGER.debug("Cache hit for %s (expires %s)", key, entry.expires_at)
        return CachedForecast(entry.data, True, entry.created_at, entry.expires_at)

    async def store_forecast_cache(
        self,
        location: str,
        hotspot: str,
        species: Optional[str],
        coordinates: Dict[str, float],
        forecasts: Any,
        bundle: Optional[Dict[str, Any]],
        tide: Optional[Dict[str, Any]],
        now: Optional[float] = None,
    ) -> bool:
        if self._backend is None:
            return True
        now = _now(now)
        key = make_cache_key(location, hotspot, species, _day_of(now))
        try:
            hours = await self._location_duration(location, hotspot)
            entry = CacheEntry(
                cache_key=key,
                location_name=location,
                hotspot_name=hotspot,
                species_name=species,
                coordinates=dict(coordinates),
                data={"forecasts": forecasts, "open_meteo_data": bundle, "tide_data": tide},
                created_at=now,
                expires_at=now + hours * 3600.0,
                cache_duration_hours=hours,
                last_accessed=now,
            )
            await self._backend.upsert(entry)
        except Exception:
            _LOGGER.exception("Failed to store forecast cache for %s", key)
            return False

        await self.cleanup(now)
        return True

    async def cleanup(self, now: Optional[float] = None) -> None:
        """Drop expired entries, then trim past the entry limit with headroom."""
        if self._backend is None:
            return
        now = _now(now)
        try:
            await self._backend.delete_expired(now)
            count = await self._backend.count()
            limit = self.config.max_cache_entries
            if count > limit:
                excess = count - limit
                removed = await self._backend.delete_least_recently_accessed(
                    excess + max(self.config.eviction_buffer, 0)
                )
                _LOGGER.debug("Evicted %d least recently used cache entries", removed)
        except Exception:
            _LOGGER.exception("Forecast cache cleanup failed")

    async def force_cleanup(self, now: Optional[float] = None) -> Dict[str, int]:
        result = {"removed_expired": 0, "removed_lru": 0}
        if self._backend is None:
            return result
        now = _now(now)
        try:
            result["removed_expired"] = await self._backend.delete_expired(now)
            count = await self._backend.count()
            limit = self.config.max_cache_entries
            if count > limit:
                result["removed_lru"] = await self._backend.delete_least_recently_accessed(count - limit)
        except Exception:
            _LOGGER.exception("Forced forecast cache cleanup failed")
        return result

    async def get_cache_stats(self, now: Optional[float] = None) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "total_entries": 0,
            "expired_entries": 0,
            "hit_counts": [],
            "average_age_hours": 0.0,
        }
        if self._backend is None:
            return stats
        now = _now(now)
        try:
            entries = await self._backend.all()
        except Exception:
            _LOGGER.exception("Failed to read forecast cache stats")
            return stats
        stats["total_entries"] = len(entries)
        stats["expired_entries"] = sum(1 for e in entries if e.expires_at <= now)
        top = sorted(entries, key=lambda e: e.hit_count, reverse=True)[:TOP_HITS]
        stats["hit_counts"] = [
            {"location": e.location_name, "hotspot": e.hotspot_name, "species": e.species_name, "hits": e.hit_count}
            for e in top
        ]
        if entries:
            stats["average_age_hours"] = round(
                sum(now - e.created_at for e in entries) / len(entries) / 3600.0, 2
            )
        return stats

    async def clear_all_cache(self) -> int:
        if self._backend is None:
            return 0
        try:
            removed = await self._backend.clear()
        except Exception:
            _LOGGER.exception("Failed to clear forecast cache")
            return 0
        _LOGGER.debug("Cleared %d cached forecasts", removed)
        return removed

    async def update_location_cache_duration(self, location: str, hotspot: str, hours: float) -> bool:
        if self._backend is None:
            return False
        try:
            await self._backend.set_location_ttl(location, hotspot, float(hours))
        except Exception:
            _LOGGER.exception("Failed to update cache duration for %s/%s", location, hotspot)
            return False
        return True

    async def async_shutdown(self) -> None:
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
