from datetime import datetime, timezone

import aiohttp
import pytest
from aiohttp import web

NOW = datetime(2025, 8, 15, 12, tzinfo=timezone.utc)
NOW_TS = int(NOW.timestamp())
HOUR = 3600

# 8 km due north of LOCATION; no seed station lies within 20 km of it
LOCATION = (50.0, -128.0)
STATION = {
    "id": "fake-station-id",
    "code": "99001",
    "officialName": "Test Inlet",
    "latitude": 50.0 + 8.0 / 111.19492664455873,
    "longitude": -128.0,
    "type": "PERMANENT",
    "timeZone": "Canada/Pacific",
}

EXTREMES = [
    (NOW_TS - 5 * HOUR, 0.4),
    (NOW_TS + 1 * HOUR, 3.2),
    (NOW_TS + 7 * HOUR, 0.6),
    (NOW_TS + 13 * HOUR, 3.0),
    (NOW_TS + 19 * HOUR, 0.5),
]


def iso(ts):
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_iso(value):
    return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())


def level_at(ts):
    """Piecewise-linear water level through EXTREMES."""
    if ts <= EXTREMES[0][0]:
        return EXTREMES[0][1]
    for (t0, h0), (t1, h1) in zip(EXTREMES, EXTREMES[1:]):
        if t0 <= ts <= t1:
            return round(h0 + (h1 - h0) * (ts - t0) / (t1 - t0), 3)
    return EXTREMES[-1][1]


def levels_between(start, end):
    return [(ts, level_at(ts)) for ts in range(NOW_TS - 6 * HOUR, NOW_TS + 24 * HOUR + 1, 15 * 60) if start <= ts < end]


def weather_payload(minutely=True):
    times = list(range(NOW_TS - HOUR, NOW_TS + 6 * HOUR + 1, 900))
    hours = list(range(NOW_TS - HOUR, NOW_TS + 6 * HOUR + 1, HOUR))

    def block(ts_list):
        n = len(ts_list)
        return {
            "time": ts_list,
            "temperature_2m": [12.0] * n,
            "wind_speed_10m": [10.0] * n,
            "wind_direction_10m": [270.0] * n,
            "surface_pressure": [1012.0 - i * 0.1 for i in range(n)],
            "cloud_cover": [40.0] * n,
            "precipitation": [0.0] * n,
        }

    day_start = int(datetime(2025, 8, 15, 7, tzinfo=timezone.utc).timestamp())
    payload = {
        "utc_offset_seconds": -7 * HOUR,
        "hourly": block(hours),
        "daily": {
            "time": [day_start],
            "sunrise": [day_start + 13 * HOUR],
            "sunset": [day_start + 27 * HOUR],
        },
    }
    if minutely:
        payload["minutely_15"] = block(times)
    return payload


def marine_payload():
    hours = list(range(NOW_TS - HOUR, NOW_TS + 6 * HOUR + 1, HOUR))
    n = len(hours)
    return {
        "hourly": {
            "time": hours,
            "wave_height": [0.6] * n,
            "swell_wave_height": [0.4] * n,
            "swell_wave_period": [9.0] * n,
            "sea_surface_temperature": [11.0] * n,
            "ocean_current_velocity": [1.852] * n,
            "ocean_current_direction": [90.0] * n,
        }
    }


class FakeUpstream:
    """Open-Meteo, IWLS and enrichment endpoints on one test server."""

    def __init__(self):
        self.fail = set()
        self.stations = [STATION]
        self.minutely = True
        self.requests = []
        self.auth_headers = []
        self.extra_extremes = []
        self.extra_sea_level = []
        self.server = None

    def url(self, path):
        return str(self.server.make_url(path))

    def _guard(self, name, request):
        self.requests.append((name, dict(request.query)))
        if name in self.fail:
            raise web.HTTPInternalServerError()

    async def weather(self, request):
        self._guard("weather", request)
        return web.json_response(weather_payload(self.minutely))

    async def marine(self, request):
        self._guard("marine", request)
        return web.json_response(marine_payload())

    async def stations_list(self, request):
        self._guard("stations", request)
        code = request.query.get("code")
        if code:
            return web.json_response([s for s in self.stations if s["code"] == code])
        return web.json_response(self.stations)

    async def station(self, request):
        self._guard("station", request)
        for s in self.stations:
            if s["id"] == request.match_info["station_id"]:
                return web.json_response(s)
        raise web.HTTPNotFound()

    async def station_data(self, request):
        self._guard("station_data", request)
        start = parse_iso(request.query["from"])
        end = parse_iso(request.query["to"])
        if request.query["time-series-code"] == "wlp-hilo":
            points = [(ts, h) for ts, h in EXTREMES if start <= ts < end]
        else:
            points = levels_between(start, end)
        return web.json_response([{"eventDate": iso(ts), "value": h, "qcFlagCode": "1"} for ts, h in points])

    async def sg_weather(self, request):
        self._guard("sg_weather", request)
        self.auth_headers.append(request.headers.get("Authorization"))
        hours = range(NOW_TS - HOUR, NOW_TS + 6 * HOUR + 1, HOUR)
        return web.json_response(
            {"hours": [{"time": iso(ts), "waterTemperature": {"noaa": 11.0, "sg": 10.5}} for ts in hours]}
        )

    async def sg_astronomy(self, request):
        self._guard("sg_astronomy", request)
        return web.json_response(
            {
                "data": [
                    {
                        "time": "2025-08-15T00:00:00+00:00",
                        "sunrise": "2025-08-15T13:05:00+00:00",
                        "sunset": "2025-08-16T03:20:00+00:00",
                        "moonFraction": 0.62,
                        "moonPhase": {"current": {"text": "Waning gibbous", "value": 0.72}},
                    }
                ]
            }
        )

    async def sg_extremes(self, request):
        self._guard("sg_extremes", request)
        kinds = ["low", "high", "low", "high", "low"]
        return web.json_response(
            {"data": [{"time": iso(ts), "height": h, "type": k} for (ts, h), k in zip(EXTREMES, kinds)] + self.extra_extremes}
        )

    async def sg_sea_level(self, request):
        self._guard("sg_sea_level", request)
        return web.json_response(
            {"data": [{"time": iso(ts), "sg": h, "height": h} for ts, h in levels_between(NOW_TS - 6 * HOUR, NOW_TS + 24 * HOUR)] + self.extra_sea_level}
        )

    def app(self):
        app = web.Application()
        app.router.add_get("/v1/forecast", self.weather)
        app.router.add_get("/v1/marine", self.marine)
        app.router.add_get("/iwls/stations", self.stations_list)
        app.router.add_get("/iwls/stations/{station_id}", self.station)
        app.router.add_get("/iwls/stations/{station_id}/data", self.station_data)
        app.router.add_get("/sg/weather", self.sg_weather)
        app.router.add_get("/sg/astronomy", self.sg_astronomy)
        app.router.add_get("/sg/tide/extremes", self.sg_extremes)
        app.router.add_get("/sg/tide/sea-level", self.sg_sea_level)
        return app


@pytest.fixture
async def upstream(aiohttp_server):
    fake = FakeUpstream()
    fake.server = await aiohttp_server(fake.app())
    return fake


@pytest.fixture
async def session():
    async with aiohttp.ClientSession() as s:
        yield s
