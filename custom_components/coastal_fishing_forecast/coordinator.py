# Coordinator: refreshes the scored forecast for one config entry on a fixed interval

from datetime import timedelta
import async_timeout
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import COORDINATOR_TIMEOUT, DEFAULT_UPDATE_INTERVAL, DOMAIN
from .exceptions import PrimaryChannelFailure
from .forecast_service import ForecastService

_LOGGER = logging.getLogger(__name__)


class CoastalForecastCoordinator(DataUpdateCoordinator):
    def __init__(
        self,
        hass,
        entry_id: str,
        service: ForecastService,
        location_name: str,
        hotspot_name: str,
        species: Sequence[str],
        lat: float,
        lon: float,
        update_interval: int = DEFAULT_UPDATE_INTERVAL,
        report_text: Optional[str] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_{entry_id}",
            update_interval=timedelta(seconds=update_interval),
        )
        self.entry_id = entry_id
        self.service = service
        self.location_name = location_name
        self.hotspot_name = hotspot_name
        self.species = list(species)
        self.lat = lat
        self.lon = lon
        self.report_text = report_text
        self.overrides = dict(overrides or {})

    def set_report_text(self, report_text: Optional[str]) -> None:
        """Use a new fishing report for subsequent refreshes."""
        self.report_text = report_text or None

    async def _async_update_data(self) -> Dict[str, Any]:
        """Run one cache-aware forecast; a primary weather outage fails the update."""
        try:
            async with async_timeout.timeout(COORDINATOR_TIMEOUT):
                result = await self.service.async_get_forecast(
                    self.location_name,
                    self.hotspot_name,
                    self.species,
                    self.lat,
                    self.lon,
                    report_text=self.report_text,
                    overrides=self.overrides,
                )
        except PrimaryChannelFailure as exc:
            raise UpdateFailed(f"Weather forecast unavailable for {self.location_name}/{self.hotspot_name}") from exc

        data = result.to_dict()
        _LOGGER.debug(
            "Coordinator %s refreshed %d species (overall confidence %s)",
            self.entry_id,
            len(data["species"]),
            data["confidence"]["overall"],
        )
        return data
