import pytest

from custom_components.coastal_fishing_forecast.const import TIDE_AUTHORITATIVE
from custom_components.coastal_fishing_forecast.exceptions import StationNotFound
from custom_components.coastal_fishing_forecast.tide_fetcher import IwlsTideClient, haversine_km

from conftest import EXTREMES, LOCATION, NOW

SOOKE_BASIN = (48.3711, -123.7256)


def client_for(upstream, session):
    return IwlsTideClient(session, base_url=upstream.url("/iwls"))


def test_haversine_one_degree_of_latitude():
    assert haversine_km(49.0, -123.0, 50.0, -123.0) == pytest.approx(111.19, abs=0.01)


@pytest.mark.asyncio
async def test_registry_merges_api_over_seeds_and_is_cached(upstream, session):
    client = client_for(upstream, session)
    stations = await client.load_station_registry()
    codes = {s.code for s in stations}
    assert "99001" in codes
    assert "07024" in codes

    await client.load_station_registry()
    assert [name for name, _ in upstream.requests].count("stations") == 1
    assert upstream.requests[0][1]["chs-region-code"] == "PAC"


@pytest.mark.asyncio
async def test_registry_falls_back_to_seeds(upstream, session):
    upstream.fail.add("stations")
    station, distance = await client_for(upstream, session).find_nearest_station(*SOOKE_BASIN)
    assert station.code == "07024"
    assert distance == 0.0


@pytest.mark.asyncio
async def test_nearest_station_and_radius(upstream, session):
    client = client_for(upstream, session)
    station, distance = await client.find_nearest_station(*LOCATION, max_radius_km=20)
    assert station.code == "99001"
    assert distance == pytest.approx(8.0, abs=0.01)

    with pytest.raises(StationNotFound):
        await client.find_nearest_station(*LOCATION, max_radius_km=5)
    assert await client.resolve_station(*LOCATION, max_radius_km=5) is None


@pytest.mark.asyncio
async def test_explicit_code_wins_over_radius(upstream, session):
    station, distance = await client_for(upstream, session).resolve_station(
        *LOCATION, code="07024", max_radius_km=5
    )
    assert station.name == "Sooke Basin"
    assert distance > 100


@pytest.mark.asyncio
async def test_fetch_tide_builds_authoritative_state(upstream, session):
    state = await client_for(upstream, session).fetch_tide(*LOCATION, max_radius_km=20, now=NOW)

    assert state.provenance == TIDE_AUTHORITATIVE
    assert state.station_code == "99001"
    assert state.station_name == "Test Inlet"
    assert state.distance_km == pytest.approx(8.0, abs=0.01)
    assert state.is_rising is True
    assert state.next_event.kind == "high"
    assert state.next_event.timestamp == EXTREMES[1][0]
    assert state.minutes_to_next == 60
    assert state.current_type == "flood"
    assert state.current_speed > 0
    assert [e.kind for e in state.events] == ["low", "high", "low", "high", "low"]

    codes = {params["time-series-code"] for name, params in upstream.requests if name == "station_data"}
    assert codes == {"wlp", "wlp-hilo"}


@pytest.mark.asyncio
async def test_fetch_tide_without_metadata_is_none(upstream, session):
    upstream.fail.add("station")
    assert await client_for(upstream, session).fetch_tide(*LOCATION, max_radius_km=20, now=NOW) is None


@pytest.mark.asyncio
async def test_fetch_tide_without_station_is_none(upstream, session):
    assert await client_for(upstream, session).fetch_tide(0.0, 0.0, now=NOW) is None
