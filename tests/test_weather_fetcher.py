import pytest

from custom_components.coastal_fishing_forecast.exceptions import PrimaryChannelFailure
from custom_components.coastal_fishing_forecast.models import Sample
from custom_components.coastal_fishing_forecast.weather_fetcher import OpenMeteoClient, merge_marine

from conftest import HOUR, NOW_TS


def client_for(upstream, session):
    return OpenMeteoClient(
        session,
        base_url=upstream.url("/v1/forecast"),
        marine_base_url=upstream.url("/v1/marine"),
    )


@pytest.mark.asyncio
async def test_fetch_weather_uses_15_minute_block(upstream, session):
    forecast = await client_for(upstream, session).fetch_weather(50.0, -128.0, 3)

    assert len(forecast.samples) == 29
    assert forecast.samples[0].timestamp == NOW_TS - HOUR
    assert forecast.samples[1].timestamp - forecast.samples[0].timestamp == 900
    assert forecast.samples[0].wind_speed == 10.0
    assert forecast.samples[0].pressure == 1012.0
    assert forecast.utc_offset_seconds == -7 * HOUR
    assert forecast.sun_times[0].date == "2025-08-15"

    _, params = upstream.requests[0]
    assert params["timeformat"] == "unixtime"
    assert params["forecast_days"] == "3"


@pytest.mark.asyncio
async def test_fetch_weather_resamples_hourly_when_15_minute_missing(upstream, session):
    upstream.minutely = False
    forecast = await client_for(upstream, session).fetch_weather(50.0, -128.0, 3)

    # 8 hourly rows -> 7 * 4 + 1 quarter-hour samples
    assert len(forecast.samples) == 29
    times = [s.timestamp for s in forecast.samples]
    assert all(b - a == 900 for a, b in zip(times, times[1:]))
    assert forecast.samples[2].wind_direction == 270.0


@pytest.mark.asyncio
async def test_fetch_weather_failure_raises_primary_channel_failure(upstream, session):
    upstream.fail.add("weather")
    with pytest.raises(PrimaryChannelFailure):
        await client_for(upstream, session).fetch_weather(50.0, -128.0, 3)


@pytest.mark.asyncio
async def test_fetch_marine_converts_current_to_knots(upstream, session):
    rows = await client_for(upstream, session).fetch_marine(50.0, -128.0, 3)

    assert len(rows) == 8
    assert rows[0]["current_speed"] == pytest.approx(1.0, abs=1e-3)
    assert rows[0]["swell_height"] == 0.4
    assert rows[0]["sea_surface_temperature"] == 11.0


@pytest.mark.asyncio
async def test_fetch_marine_failure_returns_none(upstream, session):
    upstream.fail.add("marine")
    assert await client_for(upstream, session).fetch_marine(50.0, -128.0, 3) is None


def test_merge_marine_within_tolerance_only():
    samples = [
        Sample(timestamp=NOW_TS, wind_speed=10.0),
        Sample(timestamp=NOW_TS + 900, wind_speed=10.0, swell_height=1.1),
        Sample(timestamp=NOW_TS + 10 * HOUR),
    ]
    rows = [{"timestamp": NOW_TS, "swell_height": 0.4, "current_speed": 0.8, "unknown": 3}]

    merged = merge_marine(samples, rows, tolerance_s=HOUR)

    assert merged[0].swell_height == 0.4
    assert merged[0].current_speed == 0.8
    assert merged[0].wind_speed == 10.0
    # marine values never overwrite what the weather sample already carries
    assert merged[1].swell_height == 1.1
    assert merged[2].swell_height is None


def test_merge_marine_without_rows_passes_through():
    samples = [Sample(timestamp=NOW_TS)]
    assert merge_marine(samples, None) == tuple(samples)
