"""
Coastal Fishing Forecast - integration entry points.

Entry data is validated against ENTRY_SCHEMA before anything is built. An
invalid entry fails setup (logged, returns False). A valid entry gets one
ForecastService plus one coordinator, stored under hass.data[DOMAIN].
"""
import logging

import voluptuous as vol

from homeassistant.const import CONF_LATITUDE, CONF_LONGITUDE
from homeassistant.helpers import aiohttp_client
import homeassistant.helpers.config_validation as cv

from .const import (
    CONF_CACHE_DURATION_HOURS,
    CONF_ENRICHMENT_API_KEY,
    CONF_ENRICHMENT_BASE_URL,
    CONF_FORECAST_DAYS,
    CONF_HOTSPOT_NAME,
    CONF_INCLUDE_ENRICHMENT,
    CONF_LOCAL_ASTRONOMY,
    CONF_LOCATION_NAME,
    CONF_MARINE_DAYS,
    CONF_MAX_CACHE_ENTRIES,
    CONF_PERSIST_CACHE,
    CONF_REPORT_TEXT,
    CONF_SPECIES,
    CONF_TIDE_MAX_RADIUS_KM,
    CONF_TIDE_STATION_CODE,
    CONF_UPDATE_INTERVAL,
    DEFAULT_FORECAST_DAYS,
    DEFAULT_MARINE_DAYS,
    DEFAULT_MAX_CACHE_ENTRIES,
    DEFAULT_TIDE_MAX_RADIUS_KM,
    DEFAULT_UPDATE_INTERVAL,
    DOMAIN,
    ENRICHMENT_BASE,
    STORE_KEY,
)
from .species import SPECIES_MODELS

_LOGGER = logging.getLogger(__name__)

ENTRY_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_LATITUDE): cv.latitude,
        vol.Required(CONF_LONGITUDE): cv.longitude,
        vol.Required(CONF_LOCATION_NAME): cv.string,
        vol.Required(CONF_HOTSPOT_NAME): cv.string,
        vol.Required(CONF_SPECIES): vol.All(cv.ensure_list, vol.Length(min=1), [vol.In(sorted(SPECIES_MODELS))]),
        vol.Optional(CONF_FORECAST_DAYS, default=DEFAULT_FORECAST_DAYS): vol.All(
            vol.Coerce(int), vol.Range(min=1, max=16)
        ),
        vol.Optional(CONF_MARINE_DAYS, default=DEFAULT_MARINE_DAYS): vol.All(vol.Coerce(int), vol.Range(min=1, max=8)),
        vol.Optional(CONF_TIDE_STATION_CODE): vol.Any(None, cv.string),
        vol.Optional(CONF_TIDE_MAX_RADIUS_KM, default=DEFAULT_TIDE_MAX_RADIUS_KM): vol.All(
            vol.Coerce(float), vol.Range(min=0)
        ),
        vol.Optional(CONF_INCLUDE_ENRICHMENT, default=True): cv.boolean,
        vol.Optional(CONF_ENRICHMENT_API_KEY): vol.Any(None, cv.string),
        vol.Optional(CONF_ENRICHMENT_BASE_URL, default=ENRICHMENT_BASE): cv.url,
        vol.Optional(CONF_UPDATE_INTERVAL, default=DEFAULT_UPDATE_INTERVAL): vol.All(
            vol.Coerce(int), vol.Range(min=60)
        ),
        vol.Optional(CONF_PERSIST_CACHE, default=False): cv.boolean,
        vol.Optional(CONF_CACHE_DURATION_HOURS): vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False)),
        vol.Optional(CONF_MAX_CACHE_ENTRIES, default=DEFAULT_MAX_CACHE_ENTRIES): vol.All(
            vol.Coerce(int), vol.Range(min=1)
        ),
        vol.Optional(CONF_LOCAL_ASTRONOMY, default=True): cv.boolean,
        vol.Optional(CONF_REPORT_TEXT): vol.Any(None, cv.string),
    },
    extra=vol.REMOVE_EXTRA,
)


async def async_setup_entry(hass, entry):
    """Set up integration from a config entry."""
    _LOGGER.debug("Starting async_setup_entry for entry %s", entry.entry_id)
    try:
        data = ENTRY_SCHEMA(dict(entry.data))
    except vol.Invalid as exc:
        _LOGGER.error("Config entry %s has invalid data: %s", entry.entry_id, exc)
        return False

    from .astronomy import SkyfieldAstronomy
    from .coordinator import CoastalForecastCoordinator
    from .enrichment_fetcher import EnrichmentClient
    from .forecast_cache import CacheConfig, ForecastCacheService, MemoryCacheBackend, StoreCacheBackend
    from .forecast_service import ForecastService

    session = aiohttp_client.async_get_clientsession(hass)

    if data[CONF_PERSIST_CACHE]:
        backend = StoreCacheBackend(hass, f"{STORE_KEY}_{entry.entry_id}_cache")
    else:
        backend = MemoryCacheBackend()
    config_kwargs = {"max_cache_entries": data[CONF_MAX_CACHE_ENTRIES]}
    if data.get(CONF_CACHE_DURATION_HOURS) is not None:
        config_kwargs["default_cache_duration_hours"] = data[CONF_CACHE_DURATION_HOURS]
    cache = ForecastCacheService(backend, CacheConfig(**config_kwargs))

    enrichment = None
    if data[CONF_INCLUDE_ENRICHMENT] and data.get(CONF_ENRICHMENT_API_KEY):
        enrichment = EnrichmentClient(session, data[CONF_ENRICHMENT_API_KEY], data[CONF_ENRICHMENT_BASE_URL])
        _LOGGER.debug("Enrichment enabled for entry %s", entry.entry_id)

    astronomy = SkyfieldAstronomy(hass) if data[CONF_LOCAL_ASTRONOMY] else None

    service = ForecastService(session, cache, data, astronomy=astronomy, enrichment=enrichment)
    coord = CoastalForecastCoordinator(
        hass,
        entry.entry_id,
        service=service,
        location_name=data[CONF_LOCATION_NAME],
        hotspot_name=data[CONF_HOTSPOT_NAME],
        species=data[CONF_SPECIES],
        lat=data[CONF_LATITUDE],
        lon=data[CONF_LONGITUDE],
        update_interval=data[CONF_UPDATE_INTERVAL],
        report_text=data.get(CONF_REPORT_TEXT),
    )
    _LOGGER.debug("CoastalForecastCoordinator created for entry %s", entry.entry_id)

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "coordinator": coord,
        "service": service,
        "cache": cache,
    }
    _LOGGER.debug("Stored coordinator in hass.data[%s][%s]", DOMAIN, entry.entry_id)

    await coord.async_request_refresh()
    _LOGGER.debug("Initial data refresh requested for entry %s", entry.entry_id)
    return True


async def async_unload_entry(hass, entry):
    """Unload a config entry."""
    _LOGGER.debug("Starting async_unload_entry for entry %s", entry.entry_id)
    removed = hass.data.get(DOMAIN, {}).pop(entry.entry_id, None)
    if removed is None:
        _LOGGER.debug("Entry %s was not loaded", entry.entry_id)
        return True

    try:
        await removed["cache"].async_shutdown()
    except Exception:
        _LOGGER.exception("Failed to flush forecast cache for entry %s", entry.entry_id)
        return False

    _LOGGER.debug("async_unload_entry finished for entry %s", entry.entry_id)
    return True
