"""
Cache-aware forecast service: bundle -> per-species scored timeline.

One call covers one location/hotspot and any number of species. Species
already in the cache are served from it; the rest share a single bundle
fetch, are scored sample by sample and written back per species.
"""
from __future__ import annotations

import asyncio
import bisect
import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiohttp

from .aggregator import BundleOptions, fetch_forecast_bundle
from .astronomy import illumination_by_date, moon_illumination_pct, moon_phase_fraction, solar_elevation
from .confidence import ConfidenceScores, apply_confidence_to_score, compute_confidence
from .contexts import AlgorithmContext, build_context
from .enrichment_fetcher import EnrichmentClient
from .forecast_cache import ForecastCacheService
from .models import DataSourceMetadata, ForecastDataBundle, Sample
from .scoring import local_datetime
from .species import SPECIES_MODELS, score_species
from .tide_fetcher import IwlsTideClient
from .tides import tide_state_at
from .weather_fetcher import OpenMeteoClient

_LOGGER = logging.getLogger(__name__)

PRESSURE_WINDOW = 6 * 3600  # seconds


@dataclass(frozen=True)
class SpeciesForecast:
    species: str
    cached: bool
    forecasts: List[Dict[str, Any]]
    created_at: Optional[float] = None
    expires_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "species": self.species,
            "cached": self.cached,
            "forecasts": self.forecasts,
            "created_at": self.created_at,
            "expires_at": self.expires_at,
        }


@dataclass(frozen=True)
class ForecastResult:
    location: str
    hotspot: str
    species: Dict[str, SpeciesForecast]
    confidence: ConfidenceScores
    metadata: DataSourceMetadata
    bundle: Optional[ForecastDataBundle] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "location": self.location,
            "hotspot": self.hotspot,
            "species": {k: v.to_dict() for k, v in self.species.items()},
            "confidence": self.confidence.to_dict(),
            "metadata": self.metadata.to_dict(),
        }


def _sun_lookup(bundle: ForecastDataBundle) -> Dict[str, tuple]:
    """YYYY-MM-DD -> (sunrise, sunset); provider times win over computed ones."""
    lookup: Dict[str, tuple] = {}
    for day in bundle.astronomy or ():
        lookup[day.date] = (day.sunrise, day.sunset)
    for sun in bundle.sun_times:
        if sun.sunrise is not None or sun.sunset is not None:
            lookup[sun.date] = (sun.sunrise, sun.sunset)
    return lookup


def _pressure_history(samples: Sequence[Sample], times: Sequence[int], index: int) -> tuple:
    start = bisect.bisect_left(times, times[index] - PRESSURE_WINDOW)
    return tuple(s.pressure for s in samples[start:index] if s.pressure is not None)


def _species_extras(species: str, sample: Sample, overrides: Mapping[str, Any]) -> Dict[str, Any]:
    context_fields = {f.name for f in fields(SPECIES_MODELS[species].context_cls)}
    extras: Dict[str, Any] = {}
    if "cloud_cover" in context_fields and sample.cloud_cover is not None:
        extras["cloud_cover"] = sample.cloud_cover
    extras.update(overrides)
    return extras


def score_bundle(
    bundle: ForecastDataBundle,
    species_list: Sequence[str],
    confidence: ConfidenceScores,
    *,
    location_name: Optional[str] = None,
    report_text: Optional[str] = None,
    overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    """Score every bundle sample for each species.

    ``overrides`` maps a species id to extra context fields for that species.
    """
    overrides = overrides or {}
    offset = bundle.utc_offset_seconds
    sun_by_date = _sun_lookup(bundle)
    moon_by_date = illumination_by_date(bundle.astronomy)
    samples = bundle.samples
    times = [s.timestamp for s in samples]
    out: Dict[str, List[Dict[str, Any]]] = {sp: [] for sp in species_list}

    for i, sample in enumerate(samples):
        when = local_datetime(sample.timestamp, offset)
        day = when.date().isoformat()
        sunrise, sunset = sun_by_date.get(day, (None, None))
        moon = moon_by_date.get(day)
        if moon is None:
            moon = moon_illumination_pct(moon_phase_fraction(when))
        base = AlgorithmContext(
            sunrise=sunrise,
            sunset=sunset,
            latitude=bundle.latitude,
            longitude=bundle.longitude,
            location_name=location_name,
            utc_offset_seconds=offset,
            pressure_history=_pressure_history(samples, times, i),
            report_text=report_text,
            moon_illumination=moon,
            sun_elevation=solar_elevation(bundle.latitude, bundle.longitude, sample.timestamp),
        )
        tide = tide_state_at(bundle.tide, sample.timestamp, offset)

        for species in species_list:
            context = build_context(species, base, **_species_extras(species, sample, overrides.get(species) or {}))
            result = score_species(species, sample, context, tide)
            out[species].append(
                {
                    "timestamp": sample.timestamp,
                    "raw_total": result.total,
                    "total": apply_confidence_to_score(result.total, confidence.overall),
                    "is_safe": result.is_safe,
                    "is_in_season": result.is_in_season,
                    "warnings": list(result.warnings),
                    "advice": list(result.advice),
                    "factors": {name: f.to_dict() for name, f in result.factors.items()},
                    "algorithm_version": result.algorithm_version,
                }
            )
    return out


class ForecastService:
    """Fetch, score and cache forecasts for one configured area."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        cache: Optional[ForecastCacheService] = None,
        options: Any = None,
        astronomy: Any = None,
        enrichment: Optional[EnrichmentClient] = None,
        *,
        weather_client: Optional[OpenMeteoClient] = None,
        tide_client: Optional[IwlsTideClient] = None,
    ) -> None:
        self._session = session
        self.cache = cache or ForecastCacheService()
        self.options = options if isinstance(options, BundleOptions) else BundleOptions.from_mapping(options)
        self._astronomy = astronomy
        self._enrichment = enrichment
        self._weather = weather_client or OpenMeteoClient(session)
        # kept across calls so the station registry is cached
        self._tides = tide_client or IwlsTideClient(session)

    async def async_get_forecast(
        self,
        location: str,
        hotspot: str,
        species_list: Sequence[str],
        latitude: float,
        longitude: float,
        report_text: Optional[str] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> ForecastResult:
        """Raises KeyError for an unknown species and PrimaryChannelFailure when weather is down."""
        species_list = list(dict.fromkeys(species_list))
        for species in species_list:
            if species not in SPECIES_MODELS:
                raise KeyError(f"Unknown species '{species}'")

        hits = await asyncio.gather(
            *(self.cache.get_cached_forecast(location, hotspot, sp) for sp in species_list)
        )
        results: Dict[str, SpeciesForecast] = {}
        missing: List[str] = []
        cached_bundle: Optional[Mapping[str, Any]] = None
        for species, hit in zip(species_list, hits):
            if hit.cached and hit.data is not None:
                results[species] = SpeciesForecast(
                    species, True, list(hit.data.get("forecasts") or []), hit.created_at, hit.expires_at
                )
                cached_bundle = cached_bundle or hit.data.get("open_meteo_data")
            else:
                missing.append(species)

        if not missing:
            _LOGGER.debug("All %d species served from cache for %s/%s", len(species_list), location, hotspot)
            metadata = DataSourceMetadata.from_dict((cached_bundle or {}).get("metadata") or {})
            return ForecastResult(location, hotspot, results, compute_confidence(metadata), metadata)

        bundle = await fetch_forecast_bundle(
            self._session,
            latitude,
            longitude,
            self.options,
            weather_client=self._weather,
            tide_client=self._tides,
            enrichment=self._enrichment,
            astronomy=self._astronomy,
        )
        confidence = compute_confidence(bundle.metadata)
        scored = score_bundle(
            bundle,
            missing,
            confidence,
            location_name=location,
            report_text=report_text,
            overrides=overrides,
        )

        bundle_dict = bundle.to_dict()
        tide_dict = bundle.tide.to_dict() if bundle.tide else None
        coordinates = {"lat": float(latitude), "lon": float(longitude)}
        for species in missing:
            results[species] = SpeciesForecast(species, False, scored[species])
            stored = await self.cache.store_forecast_cache(
                location, hotspot, species, coordinates, scored[species], bundle_dict, tide_dict
            )
            if not stored:
                _LOGGER.warning("Forecast for %s at %s/%s was not cached", species, location, hotspot)

        _LOGGER.debug(
            "Scored %d species over %d samples for %s/%s (confidence %s)",
            len(missing),
            len(bundle.samples),
            location,
            hotspot,
            confidence.overall,
        )
        ordered = {sp: results[sp] for sp in species_list}
        return ForecastResult(location, hotspot, ordered, confidence, bundle.metadata, bundle)
