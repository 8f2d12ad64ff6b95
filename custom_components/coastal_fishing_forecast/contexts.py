"""
Per-evaluation context handed to the species models.

AlgorithmContext carries what is common to every model; each species adds
its own frozen variant tagged with ``species``. build_context() produces the
right variant for a species id and rejects unknown override names.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date
from typing import Any, ClassVar, Dict, Optional, Tuple, Type


@dataclass(frozen=True)
class AlgorithmContext:
    species: ClassVar[str] = "generic"

    sunrise: Optional[int]
    sunset: Optional[int]
    latitude: float
    longitude: float
    location_name: Optional[str] = None
    utc_offset_seconds: int = 0
    # hPa readings covering the preceding ~6 hours, oldest first
    pressure_history: Tuple[float, ...] = ()
    recent_catch_count: Optional[int] = None
    report_text: Optional[str] = None
    moon_illumination: Optional[float] = None  # percent
    sun_elevation: Optional[float] = None  # degrees


@dataclass(frozen=True)
class ChumContext(AlgorithmContext):
    species: ClassVar[str] = "chum"

    cloud_cover: Optional[float] = None
    precipitation_24h: Optional[float] = None


@dataclass(frozen=True)
class RockfishContext(AlgorithmContext):
    species: ClassVar[str] = "rockfish"

    is_in_rca: bool = False
    swell_height: Optional[float] = None
    swell_period: Optional[float] = None
    wind_direction: Optional[float] = None
    current_direction: Optional[float] = None
    cloud_cover: Optional[float] = None


@dataclass(frozen=True)
class SpotPrawnContext(AlgorithmContext):
    species: ClassVar[str] = "spot_prawn"

    target_depth_ft: float = 300.0
    season_open: Optional[date] = None
    season_close: Optional[date] = None


@dataclass(frozen=True)
class SockeyeContext(AlgorithmContext):
    species: ClassVar[str] = "sockeye"

    fishery_open: Optional[bool] = None
    target_river: Optional[str] = None
    river_temperature: Optional[float] = None
    cloud_cover: Optional[float] = None
    precipitation_24h: Optional[float] = None


@dataclass(frozen=True)
class PinkContext(AlgorithmContext):
    species: ClassVar[str] = "pink"

    cloud_cover: Optional[float] = None
    precipitation_24h: Optional[float] = None


@dataclass(frozen=True)
class LingcodContext(AlgorithmContext):
    species: ClassVar[str] = "lingcod"

    swell_height: Optional[float] = None
    swell_period: Optional[float] = None
    wind_direction: Optional[float] = None
    current_direction: Optional[float] = None
    cloud_cover: Optional[float] = None


@dataclass(frozen=True)
class ChinookContext(AlgorithmContext):
    species: ClassVar[str] = "chinook"

    cloud_cover: Optional[float] = None
    wind_direction: Optional[float] = None
    current_direction: Optional[float] = None
    tidal_range: Optional[float] = None  # m
    minutes_to_slack: Optional[int] = None


@dataclass(frozen=True)
class CohoContext(AlgorithmContext):
    species: ClassVar[str] = "coho"

    cloud_cover: Optional[float] = None
    minutes_to_slack: Optional[int] = None
    wind_direction: Optional[float] = None
    current_direction: Optional[float] = None
    swell_height: Optional[float] = None
    swell_period: Optional[float] = None
    precipitation_24h: Optional[float] = None
    max_temp_24h: Optional[float] = None


@dataclass(frozen=True)
class HalibutContext(AlgorithmContext):
    species: ClassVar[str] = "halibut"

    minutes_to_slack: Optional[int] = None
    wind_direction: Optional[float] = None
    current_direction: Optional[float] = None
    swell_height: Optional[float] = None
    swell_period: Optional[float] = None


CONTEXT_TYPES: Dict[str, Type[AlgorithmContext]] = {
    cls.species: cls
    for cls in (
        ChumContext,
        RockfishContext,
        SpotPrawnContext,
        SockeyeContext,
        PinkContext,
        LingcodContext,
        ChinookContext,
        CohoContext,
        HalibutContext,
    )
}


def build_context(species: str, base: AlgorithmContext, **overrides: Any) -> AlgorithmContext:
    """Build the species-tagged context from a base context plus species extras.

    Raises KeyError for an unknown species and TypeError for an override name
    the species context does not define.
    """
    cls = CONTEXT_TYPES[species]
    allowed = {f.name for f in fields(cls)}
    unknown = set(overrides) - allowed
    if unknown:
        raise TypeError(f"Unknown context fields for {species}: {sorted(unknown)}")
    values = {f.name: getattr(base, f.name) for f in fields(AlgorithmContext)}
    values.update(overrides)
    return cls(**values)
