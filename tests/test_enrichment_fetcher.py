from datetime import timedelta

import pytest

from custom_components.coastal_fishing_forecast.enrichment_fetcher import EnrichmentClient, best_value

from conftest import EXTREMES, NOW


class NoNetworkSession:
    def get(self, *args, **kwargs):
        raise AssertionError("network must not be touched without an API key")


def client_for(upstream, session, key="sg-test-key"):
    return EnrichmentClient(session, key, base_url=upstream.url("/sg"))


def test_best_value_prefers_sg():
    assert best_value({"noaa": 11.0, "sg": 10.5}) == 10.5
    assert best_value({"meto": 9.0, "noaa": 11.0}) == 11.0
    assert best_value({"icon": 8.0}) == 8.0
    assert best_value({}) is None
    assert best_value(None) is None


@pytest.mark.asyncio
async def test_without_key_nothing_is_fetched():
    client = EnrichmentClient(NoNetworkSession(), None)
    end = NOW + timedelta(days=1)
    assert not client.available
    assert await client.fetch_water_temperature(50.0, -128.0, NOW, end) is None
    assert await client.fetch_astronomy(50.0, -128.0, NOW, end) is None
    assert await client.fetch_tide_extremes(50.0, -128.0, NOW, end) is None
    assert await client.fetch_sea_level(50.0, -128.0, NOW, end) is None


@pytest.mark.asyncio
async def test_water_temperature_sends_key(upstream, session):
    series = await client_for(upstream, session).fetch_water_temperature(50.0, -128.0, NOW, NOW + timedelta(days=1))
    assert len(series) == 8
    assert series[0][1] == 10.5
    assert upstream.auth_headers == ["sg-test-key"]
    assert upstream.requests[0][1]["params"] == "waterTemperature"


@pytest.mark.asyncio
async def test_astronomy_days(upstream, session):
    (day,) = await client_for(upstream, session).fetch_astronomy(50.0, -128.0, NOW, NOW + timedelta(days=1))
    assert day.date == "2025-08-15"
    assert day.moon_illumination == 0.62
    assert day.moon_phase_name == "Waning gibbous"
    assert day.sunrise < day.sunset


@pytest.mark.asyncio
async def test_tide_extremes_and_sea_level(upstream, session):
    client = client_for(upstream, session)
    events = await client.fetch_tide_extremes(50.0, -128.0, NOW, NOW + timedelta(days=1))
    assert [e.timestamp for e in events] == [ts for ts, _ in EXTREMES]
    assert events[1].kind == "high"

    levels = await client.fetch_sea_level(50.0, -128.0, NOW, NOW + timedelta(days=1))
    assert levels == sorted(levels)
    assert len(levels) > 100


@pytest.mark.asyncio
async def test_failures_degrade_to_none(upstream, session):
    upstream.fail.update({"sg_weather", "sg_astronomy", "sg_extremes", "sg_sea_level"})
    client = client_for(upstream, session)
    end = NOW + timedelta(days=1)
    assert await client.fetch_water_temperature(50.0, -128.0, NOW, end) is None
    assert await client.fetch_astronomy(50.0, -128.0, NOW, end) is None
    assert await client.fetch_tide_extremes(50.0, -128.0, NOW, end) is None
    assert await client.fetch_sea_level(50.0, -128.0, NOW, end) is None


@pytest.mark.asyncio
async def test_malformed_tide_records_are_skipped(upstream, session):
    upstream.extra_extremes = [
        {"time": None, "height": 1.0, "type": "high"},
        {"time": "2025-08-16T00:00:00Z", "height": None, "type": "low"},
        {"time": "2025-08-16T03:00:00Z", "height": 2.0},
    ]
    upstream.extra_sea_level = [{"time": None, "height": 1.0}, {"time": "2025-08-16T00:00:00Z"}]
    client = client_for(upstream, session)
    end = NOW + timedelta(days=1)

    events = await client.fetch_tide_extremes(50.0, -128.0, NOW, end)
    assert [e.timestamp for e in events] == [ts for ts, _ in EXTREMES]

    levels = await client.fetch_sea_level(50.0, -128.0, NOW, end)
    assert all(ts is not None and h is not None for ts, h in levels)
    assert levels == sorted(levels)
