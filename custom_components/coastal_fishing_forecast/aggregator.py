"""
Fan-out over every data channel into one ForecastDataBundle.

Only the primary weather channel is mandatory. Marine, tide, enrichment and
local astronomy each degrade to None on failure and are recorded as such in
the bundle metadata.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional, Tuple

import aiohttp
from homeassistant.util import dt as dt_util

from .const import (
    CONF_FORECAST_DAYS,
    CONF_INCLUDE_ENRICHMENT,
    CONF_MARINE_DAYS,
    CONF_TIDE_MAX_RADIUS_KM,
    CONF_TIDE_STATION_CODE,
    DEFAULT_FORECAST_DAYS,
    DEFAULT_MARINE_DAYS,
    DEFAULT_TIDE_MAX_RADIUS_KM,
    MARINE_MERGE_TOLERANCE,
    TIDE_FALLBACK,
)
from .enrichment_fetcher import EnrichmentClient
from .models import AstronomyDay, DataSourceMetadata, ForecastDataBundle, TideEvent, TideState
from .tide_fetcher import IwlsTideClient
from .tides import build_tide_state
from .weather_fetcher import OpenMeteoClient, merge_marine

_LOGGER = logging.getLogger(__name__)

FALLBACK_STATION_ID = "enrichment"
FALLBACK_STATION_CODE = "FALLBACK"
FALLBACK_STATION_NAME = "Enrichment estimated"
ENRICHMENT_CHANNELS = ("water temperature", "astronomy", "tide extremes", "sea level")


@dataclass(frozen=True)
class BundleOptions:
    forecast_days: int = DEFAULT_FORECAST_DAYS
    marine_days: int = DEFAULT_MARINE_DAYS
    tide_station_code: Optional[str] = None
    tide_max_radius_km: float = DEFAULT_TIDE_MAX_RADIUS_KM
    include_enrichment: bool = True

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "BundleOptions":
        data = data or {}
        return cls(
            forecast_days=int(data.get(CONF_FORECAST_DAYS, DEFAULT_FORECAST_DAYS)),
            marine_days=int(data.get(CONF_MARINE_DAYS, DEFAULT_MARINE_DAYS)),
            tide_station_code=data.get(CONF_TIDE_STATION_CODE) or None,
            tide_max_radius_km=float(data.get(CONF_TIDE_MAX_RADIUS_KM, DEFAULT_TIDE_MAX_RADIUS_KM)),
            include_enrichment=bool(data.get(CONF_INCLUDE_ENRICHMENT, True)),
        )


async def _noop() -> None:
    return None


def _fallback_tide(
    extremes: Optional[List[TideEvent]],
    levels: Optional[List[Tuple[int, float]]],
    now: int,
    utc_offset_seconds: int,
) -> Optional[TideState]:
    if not extremes:
        return None
    return build_tide_state(
        extremes,
        levels or [],
        now,
        provenance=TIDE_FALLBACK,
        range_mode="extremes",
        station_id=FALLBACK_STATION_ID,
        station_code=FALLBACK_STATION_CODE,
        station_name=FALLBACK_STATION_NAME,
        utc_offset_seconds=utc_offset_seconds,
    )


async def fetch_forecast_bundle(
    session: aiohttp.ClientSession,
    latitude: float,
    longitude: float,
    options: Any = None,
    *,
    weather_client: Optional[OpenMeteoClient] = None,
    tide_client: Optional[IwlsTideClient] = None,
    enrichment: Optional[EnrichmentClient] = None,
    astronomy: Any = None,
    now: Optional[datetime] = None,
) -> ForecastDataBundle:
    """Assemble the bundle for one location.

    Raises PrimaryChannelFailure when the primary weather read fails.
    """
    opts = options if isinstance(options, BundleOptions) else BundleOptions.from_mapping(options)
    weather_client = weather_client or OpenMeteoClient(session)
    tide_client = tide_client or IwlsTideClient(session)
    now = now or dt_util.utcnow()
    now_ts = int(now.timestamp())

    weather_result, marine_rows = await asyncio.gather(
        weather_client.fetch_weather(latitude, longitude, opts.forecast_days),
        weather_client.fetch_marine(latitude, longitude, opts.marine_days),
        return_exceptions=True,
    )
    if isinstance(weather_result, BaseException):
        raise weather_result
    if isinstance(marine_rows, BaseException):
        _LOGGER.warning("Marine channel raised unexpectedly: %s", marine_rows)
        marine_rows = None

    offset = weather_result.utc_offset_seconds
    samples = merge_marine(weather_result.samples, marine_rows, MARINE_MERGE_TOLERANCE)

    tide: Optional[TideState]
    try:
        tide = await tide_client.fetch_tide(
            latitude,
            longitude,
            station_code=opts.tide_station_code,
            max_radius_km=opts.tide_max_radius_km,
            now=now,
            utc_offset_seconds=offset,
        )
    except Exception:
        _LOGGER.warning("Authoritative tide channel failed for %s,%s", latitude, longitude, exc_info=True)
        tide = None

    water_temps: Optional[List[Tuple[int, float]]] = None
    astro: Optional[Tuple[AstronomyDay, ...]] = None
    astronomy_source: Optional[str] = None
    if opts.include_enrichment and enrichment is not None and enrichment.available:
        end = now + timedelta(days=opts.forecast_days)
        need_fallback = tide is None
        results = await asyncio.gather(
            enrichment.fetch_water_temperature(latitude, longitude, now, end),
            enrichment.fetch_astronomy(latitude, longitude, now, end),
            enrichment.fetch_tide_extremes(latitude, longitude, now, end) if need_fallback else _noop(),
            enrichment.fetch_sea_level(latitude, longitude, now, end) if need_fallback else _noop(),
            return_exceptions=True,
        )
        for name, result in zip(ENRICHMENT_CHANNELS, results):
            if isinstance(result, Exception):
                _LOGGER.warning("Enrichment %s channel raised unexpectedly: %s", name, result)
        water_temps, astro, extremes, sea_level = (None if isinstance(r, Exception) else r for r in results)
        if astro is not None:
            astronomy_source = "enrichment"
        if need_fallback:
            try:
                tide = _fallback_tide(extremes, sea_level, now_ts, offset)
            except Exception:
                _LOGGER.warning("Enrichment tide fallback could not be derived", exc_info=True)
                tide = None
            if tide is not None:
                _LOGGER.debug("Using enrichment tide fallback (%d extremes)", len(tide.events))

    enrichment_available = water_temps is not None or astro is not None

    if water_temps:
        samples = merge_marine(
            samples,
            [{"timestamp": ts, "water_temperature": v} for ts, v in water_temps],
            MARINE_MERGE_TOLERANCE,
        )

    if astro is None and astronomy is not None:
        local_start = (now + timedelta(seconds=offset)).date()
        astro = await astronomy.async_astronomy_days(latitude, longitude, local_start, opts.forecast_days, offset)
        if astro is not None:
            astronomy_source = "skyfield"

    if water_temps:
        water_source: Optional[str] = "enrichment"
    elif marine_rows is not None:
        water_source = "open-meteo"
    else:
        water_source = None

    metadata = DataSourceMetadata(
        weather="open-meteo",
        marine="open-meteo" if marine_rows is not None else None,
        tide=tide.provenance if tide else None,
        tide_station_code=tide.station_code if tide else None,
        tide_station_name=tide.station_name if tide else None,
        tide_station_distance_km=tide.distance_km if tide else None,
        water_temperature=water_source,
        astronomy=astronomy_source,
        enrichment_available=enrichment_available,
    )
    _LOGGER.debug("Bundle for %s,%s: %d samples, metadata=%s", latitude, longitude, len(samples), metadata)
    return ForecastDataBundle(
        latitude=float(latitude),
        longitude=float(longitude),
        samples=samples,
        metadata=metadata,
        tide=tide,
        astronomy=astro,
        sun_times=weather_result.sun_times,
        utc_offset_seconds=offset,
    )
