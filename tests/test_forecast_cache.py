import asyncio
from datetime import date, datetime, timezone

import pytest

from custom_components.coastal_fishing_forecast import forecast_cache as cache_mod
from custom_components.coastal_fishing_forecast.forecast_cache import (
    CacheConfig,
    ForecastCacheService,
    MemoryCacheBackend,
    StoreCacheBackend,
    make_cache_key,
)

NOW = 1_755_259_200.0  # 2025-08-15T12:00:00Z
HOUR = 3600.0


async def store(service, location="Sooke", hotspot="Secretary Island", species="chum", now=NOW):
    return await service.store_forecast_cache(
        location,
        hotspot,
        species,
        {"lat": 48.37, "lon": -123.73},
        [{"timestamp": 1, "total": 6.5}],
        {"samples": []},
        None,
        now=now,
    )


class BrokenBackend(MemoryCacheBackend):
    async def get(self, key):
        raise ConnectionError("backend down")

    async def upsert(self, entry):
        raise ConnectionError("backend down")


class FakeStore:
    saved = {}

    def __init__(self, hass, version, key):
        self.key = key
        self.delayed = None

    async def async_load(self):
        return FakeStore.saved.get(self.key)

    def async_delay_save(self, data_func, delay=0):
        self.delayed = data_func
        FakeStore.saved[self.key] = data_func()


def test_make_cache_key():
    assert make_cache_key("Sooke", "Whiffin Spit", None, date(2025, 8, 15)) == "Sooke|Whiffin Spit|no-species|2025-08-15"
    assert make_cache_key("Sooke", "Whiffin Spit", "pink", date(2025, 8, 15)).endswith("|pink|2025-08-15")


def test_cache_duration_from_environment(monkeypatch):
    monkeypatch.setenv("FORECAST_CACHE_DURATION_HOURS", "3")
    assert CacheConfig().default_cache_duration_hours == 3.0
    monkeypatch.setenv("FORECAST_CACHE_DURATION_HOURS", "soon")
    assert CacheConfig().default_cache_duration_hours == 6.0
    monkeypatch.delenv("FORECAST_CACHE_DURATION_HOURS")
    assert CacheConfig().default_cache_duration_hours == 6.0


@pytest.mark.asyncio
async def test_hit_then_expiry():
    service = ForecastCacheService(MemoryCacheBackend(), CacheConfig(default_cache_duration_hours=6))
    assert await store(service) is True

    hit = await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + HOUR)
    assert hit.cached
    assert hit.data["forecasts"][0]["total"] == 6.5
    assert hit.expires_at == NOW + 6 * HOUR

    expired = await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 6 * HOUR)
    assert not expired.cached
    assert expired.data is None
    await service.async_shutdown()


@pytest.mark.asyncio
async def test_default_clock_is_home_assistant_utc(monkeypatch):
    clock = [datetime(2025, 8, 15, 12, tzinfo=timezone.utc)]
    monkeypatch.setattr(cache_mod.dt_util, "utcnow", lambda: clock[0])
    service = ForecastCacheService(MemoryCacheBackend(), CacheConfig(default_cache_duration_hours=6))

    assert await store(service, now=None) is True
    assert make_cache_key("Sooke", "Secretary Island", "chum").endswith("|2025-08-15")
    assert (await service.get_cached_forecast("Sooke", "Secretary Island", "chum")).expires_at == NOW + 6 * HOUR

    clock[0] = datetime(2025, 8, 15, 18, tzinfo=timezone.utc)
    assert not (await service.get_cached_forecast("Sooke", "Secretary Island", "chum")).cached
    await service.async_shutdown()


@pytest.mark.asyncio
async def test_hit_count_recorded_in_background():
    backend = MemoryCacheBackend()
    service = ForecastCacheService(backend, CacheConfig(default_cache_duration_hours=6))
    await store(service)
    await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 60)
    await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 120)
    await service.async_shutdown()

    (entry,) = await backend.all()
    assert entry.hit_count == 2
    assert entry.last_accessed == NOW + 120


@pytest.mark.asyncio
async def test_hit_bookkeeping_failure_does_not_reach_read():
    class TouchFails(MemoryCacheBackend):
        async def touch(self, key, now):
            raise RuntimeError("touch failed")

    service = ForecastCacheService(TouchFails(), CacheConfig(default_cache_duration_hours=6))
    await store(service)
    hit = await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 60)
    assert hit.cached
    await service.async_shutdown()


@pytest.mark.asyncio
async def test_location_ttl_overrides_default():
    service = ForecastCacheService(MemoryCacheBackend(), CacheConfig(default_cache_duration_hours=6))
    assert await service.update_location_cache_duration("Sooke", "Secretary Island", 1) is True
    await store(service)
    hit = await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 30 * 60)
    assert hit.expires_at == NOW + HOUR
    miss = await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 2 * HOUR)
    assert not miss.cached
    await service.async_shutdown()


@pytest.mark.asyncio
async def test_cleanup_evicts_least_recently_accessed_with_buffer():
    backend = MemoryCacheBackend()
    config = CacheConfig(default_cache_duration_hours=6, max_cache_entries=3, eviction_buffer=1)
    service = ForecastCacheService(backend, config)
    for i, species in enumerate(["chum", "pink", "sockeye", "lingcod"]):
        await store(service, species=species, now=NOW + i)

    remaining = {e.species_name for e in await backend.all()}
    assert remaining == {"sockeye", "lingcod"}


@pytest.mark.asyncio
async def test_force_cleanup_trims_to_exact_limit():
    backend = MemoryCacheBackend()
    service = ForecastCacheService(backend, CacheConfig(default_cache_duration_hours=6, max_cache_entries=10))
    for i, species in enumerate(["chum", "pink", "sockeye", "lingcod"]):
        await store(service, species=species, now=NOW + i)
    await store(service, hotspot="Otter Point", now=NOW - 7 * HOUR)

    service.config = CacheConfig(default_cache_duration_hours=6, max_cache_entries=2)
    result = await service.force_cleanup(now=NOW + 10)
    assert result == {"removed_expired": 1, "removed_lru": 2}
    assert await backend.count() == 2


@pytest.mark.asyncio
async def test_stats_and_clear():
    service = ForecastCacheService(MemoryCacheBackend(), CacheConfig(default_cache_duration_hours=6))
    await store(service, species="chum")
    await store(service, species="pink")
    await service.get_cached_forecast("Sooke", "Secretary Island", "pink", now=NOW + 10)
    await service.async_shutdown()

    stats = await service.get_cache_stats(now=NOW + 2 * HOUR)
    assert stats["total_entries"] == 2
    assert stats["expired_entries"] == 0
    assert stats["hit_counts"][0]["species"] == "pink"
    assert stats["average_age_hours"] == 2.0

    assert await service.clear_all_cache() == 2
    assert (await service.get_cache_stats(now=NOW))["total_entries"] == 0


@pytest.mark.asyncio
async def test_disabled_cache():
    service = ForecastCacheService()
    assert not service.enabled
    assert await store(service) is True
    assert not (await service.get_cached_forecast("Sooke", "Secretary Island", "chum")).cached
    assert await service.force_cleanup() == {"removed_expired": 0, "removed_lru": 0}
    assert await service.clear_all_cache() == 0


@pytest.mark.asyncio
async def test_backend_errors_degrade():
    service = ForecastCacheService(BrokenBackend())
    assert await store(service) is False
    assert not (await service.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW)).cached


@pytest.mark.asyncio
async def test_store_backend_persists_and_restores(monkeypatch):
    FakeStore.saved = {}
    monkeypatch.setattr(cache_mod, "Store", FakeStore)

    first = ForecastCacheService(StoreCacheBackend(object(), "cff_test"), CacheConfig(default_cache_duration_hours=6))
    await store(first)
    await first.update_location_cache_duration("Sooke", "Otter Point", 2)
    assert "cff_test" in FakeStore.saved

    second_backend = StoreCacheBackend(object(), "cff_test")
    second = ForecastCacheService(second_backend, CacheConfig(default_cache_duration_hours=6))
    hit = await second.get_cached_forecast("Sooke", "Secretary Island", "chum", now=NOW + 60)
    assert hit.cached
    assert await second_backend.get_location_ttl("Sooke", "Otter Point") == 2.0
    await second.async_shutdown()


@pytest.mark.asyncio
async def test_concurrent_upserts_last_writer_wins():
    backend = MemoryCacheBackend()
    service = ForecastCacheService(backend, CacheConfig(default_cache_duration_hours=6))
    results = await asyncio.gather(*(store(service, now=NOW + i) for i in range(5)))
    assert all(results)
    (entry,) = await backend.all()
    assert entry.created_at == NOW + 4
