"""Constants for Coastal Fishing Forecast."""

# Integration identity
DOMAIN = "coastal_fishing_forecast"

# Update interval (seconds) default used by coordinator
DEFAULT_UPDATE_INTERVAL = 30 * 60  # seconds
COORDINATOR_TIMEOUT = 120  # seconds for one full refresh

# Open-Meteo endpoints
OM_BASE = "https://api.open-meteo.com/v1/forecast"
OM_MARINE_BASE = "https://marine-api.open-meteo.com/v1/marine"

# Canadian Hydrographic Service IWLS endpoint
IWLS_BASE = "https://api.iwls-sine.azure.cloud-nuage.dfo-mpo.gc.ca/api/v1"
IWLS_REGION_CODE = "PAC"
IWLS_STATION_CACHE_TTL = 24 * 3600  # seconds

# Enrichment proxy (Stormglass-compatible)
ENRICHMENT_BASE = "https://api.stormglass.io/v2"

# Per-call timeouts (seconds)
WEATHER_TIMEOUT = 30
MARINE_TIMEOUT = 30
TIDE_TIMEOUT = 20
ENRICHMENT_TIMEOUT = 20

# Storage keys
STORE_VERSION = 1
STORE_KEY = f"{DOMAIN}_store"

# Aggregation defaults
DEFAULT_FORECAST_DAYS = 14
DEFAULT_MARINE_DAYS = 7
DEFAULT_TIDE_MAX_RADIUS_KM = 20.0
MARINE_MERGE_TOLERANCE = 3600  # seconds
TIDE_WINDOW_LOOKBACK = 6 * 3600  # seconds before now the tide window starts
TIDE_CHUNK_DAYS = 7

# Cache defaults
CACHE_DURATION_ENV = "FORECAST_CACHE_DURATION_HOURS"
DEFAULT_CACHE_DURATION_HOURS = 6.0
DEFAULT_MAX_CACHE_ENTRIES = 1000
DEFAULT_CLEANUP_INTERVAL_HOURS = 1.0
CACHE_EVICTION_BUFFER = 50

# Tide provenance tags
TIDE_AUTHORITATIVE = "authoritative"
TIDE_FALLBACK = "fallback-estimated"

# Scoring
SAFETY_CAP = 3.0
CONFIDENCE_NEUTRAL = 5.0
KMH_TO_KNOTS = 0.539957

# ----- Config keys used in entry data -----
CONF_LOCATION_NAME = "location_name"
CONF_HOTSPOT_NAME = "hotspot_name"
CONF_SPECIES = "species"
CONF_FORECAST_DAYS = "forecast_days"
CONF_MARINE_DAYS = "marine_days"
CONF_TIDE_STATION_CODE = "tide_station_code"
CONF_TIDE_MAX_RADIUS_KM = "tide_max_radius_km"
CONF_INCLUDE_ENRICHMENT = "include_enrichment"
CONF_ENRICHMENT_API_KEY = "enrichment_api_key"
CONF_ENRICHMENT_BASE_URL = "enrichment_base_url"
CONF_UPDATE_INTERVAL = "update_interval"
CONF_PERSIST_CACHE = "persist_cache"
CONF_CACHE_DURATION_HOURS = "cache_duration_hours"
CONF_MAX_CACHE_ENTRIES = "max_cache_entries"
CONF_LOCAL_ASTRONOMY = "local_astronomy"
CONF_REPORT_TEXT = "report_text"
