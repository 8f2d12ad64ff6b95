from types import SimpleNamespace

import pytest
import voluptuous as vol

import custom_components.coastal_fishing_forecast as integration
from custom_components.coastal_fishing_forecast import coordinator as coordinator_mod
from custom_components.coastal_fishing_forecast.const import DOMAIN
from custom_components.coastal_fishing_forecast.forecast_cache import MemoryCacheBackend

VALID = {
    "latitude": "48.37",
    "longitude": -123.73,
    "location_name": "Sooke",
    "hotspot_name": "Secretary Island",
    "species": "chum",
    "forecast_days": "3",
    "local_astronomy": False,
    "something_else": 1,
}


class DummyCoordinator:
    instances = []

    def __init__(self, hass, entry_id, **kwargs):
        self.hass = hass
        self.entry_id = entry_id
        self.kwargs = kwargs
        self.refreshed = False
        DummyCoordinator.instances.append(self)

    async def async_request_refresh(self):
        self.refreshed = True


def make_entry(data, entry_id="entry1"):
    return SimpleNamespace(entry_id=entry_id, data=data)


@pytest.fixture
def hass(monkeypatch):
    DummyCoordinator.instances = []
    monkeypatch.setattr(coordinator_mod, "CoastalForecastCoordinator", DummyCoordinator)
    monkeypatch.setattr(integration.aiohttp_client, "async_get_clientsession", lambda hass: object())
    return SimpleNamespace(data={})


def test_schema_coerces_and_fills_defaults():
    data = integration.ENTRY_SCHEMA(dict(VALID))
    assert data["latitude"] == 48.37
    assert data["species"] == ["chum"]
    assert data["forecast_days"] == 3
    assert data["marine_days"] == 7
    assert data["update_interval"] == 1800
    assert "something_else" not in data


@pytest.mark.parametrize(
    "bad",
    [
        {"species": ["tuna"]},
        {"species": []},
        {"latitude": 123.0},
        {"forecast_days": 30},
        {"update_interval": 10},
        {"cache_duration_hours": 0},
    ],
)
def test_schema_rejects_bad_values(bad):
    with pytest.raises(vol.Invalid):
        integration.ENTRY_SCHEMA({**VALID, **bad})


@pytest.mark.asyncio
async def test_setup_with_invalid_data_fails(hass):
    assert await integration.async_setup_entry(hass, make_entry({"location_name": "Sooke"})) is False
    assert DummyCoordinator.instances == []


@pytest.mark.asyncio
async def test_setup_and_unload(hass):
    assert await integration.async_setup_entry(hass, make_entry(dict(VALID))) is True

    stored = hass.data[DOMAIN]["entry1"]
    coord = stored["coordinator"]
    assert coord is DummyCoordinator.instances[0]
    assert coord.refreshed
    assert coord.kwargs["species"] == ["chum"]
    assert coord.kwargs["lat"] == 48.37
    assert isinstance(stored["cache"]._backend, MemoryCacheBackend)
    assert stored["service"].options.forecast_days == 3
    assert stored["service"].cache is stored["cache"]

    assert await integration.async_unload_entry(hass, make_entry(dict(VALID))) is True
    assert "entry1" not in hass.data[DOMAIN]


@pytest.mark.asyncio
async def test_unload_unknown_entry(hass):
    assert await integration.async_unload_entry(hass, make_entry({}, "missing")) is True
