"""
Data model shared by the adapters, the aggregator, the scoring models and the cache.

All types are plain dataclasses. Types that travel through the cache expose
``to_dict`` / ``from_dict`` so they survive a JSON round-trip through the
Home Assistant store.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class Sample:
    """One forecast instant. Wind in km/h, current in knots, heights in m."""

    timestamp: int
    temperature: Optional[float] = None
    apparent_temperature: Optional[float] = None
    humidity: Optional[float] = None
    dew_point: Optional[float] = None
    pressure: Optional[float] = None
    wind_speed: Optional[float] = None
    wind_gust: Optional[float] = None
    wind_direction: Optional[float] = None
    precipitation: Optional[float] = None
    precipitation_probability: Optional[float] = None
    weather_code: Optional[float] = None
    cloud_cover: Optional[float] = None
    visibility: Optional[float] = None
    sunshine_duration: Optional[float] = None
    lightning_potential: Optional[float] = None
    cape: Optional[float] = None
    sea_surface_temperature: Optional[float] = None
    water_temperature: Optional[float] = None
    wave_height: Optional[float] = None
    wave_period: Optional[float] = None
    wave_direction: Optional[float] = None
    swell_height: Optional[float] = None
    swell_period: Optional[float] = None
    current_speed: Optional[float] = None
    current_direction: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Sample":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def merged(self, values: Mapping[str, Any]) -> "Sample":
        """Return a copy with ``values`` filled in where this sample has None."""
        updates = {k: v for k, v in values.items() if v is not None and getattr(self, k, None) is None}
        if not updates:
            return self
        return replace(self, **updates)


SAMPLE_FIELDS = tuple(f.name for f in fields(Sample))


@dataclass(frozen=True)
class TideEvent:
    timestamp: int
    height: float
    kind: str  # "high" | "low"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TideEvent":
        return cls(int(data["timestamp"]), float(data["height"]), str(data["kind"]))


@dataclass(frozen=True)
class TideState:
    """Tide situation at ``reference_time`` plus the series it was derived from."""

    reference_time: int
    current_height: Optional[float]
    next_event: Optional[TideEvent]
    previous_event: Optional[TideEvent]
    tidal_range: float
    change_rate: float
    is_rising: bool
    minutes_to_next: Optional[int]
    current_speed: float
    current_direction: float
    current_type: str
    provenance: str
    range_mode: str = "daily"
    station_id: Optional[str] = None
    station_code: Optional[str] = None
    station_name: Optional[str] = None
    distance_km: Optional[float] = None
    events: Tuple[TideEvent, ...] = ()
    water_levels: Tuple[Tuple[int, float], ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["water_levels"] = [list(p) for p in self.water_levels]
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TideState":
        def _event(raw: Optional[Mapping[str, Any]]) -> Optional[TideEvent]:
            return TideEvent.from_dict(raw) if raw else None

        return cls(
            reference_time=int(data["reference_time"]),
            current_height=data.get("current_height"),
            next_event=_event(data.get("next_event")),
            previous_event=_event(data.get("previous_event")),
            tidal_range=float(data.get("tidal_range", 0.0)),
            change_rate=float(data.get("change_rate", 0.0)),
            is_rising=bool(data.get("is_rising", False)),
            minutes_to_next=data.get("minutes_to_next"),
            current_speed=float(data.get("current_speed", 0.0)),
            current_direction=float(data.get("current_direction", 0.0)),
            current_type=str(data.get("current_type", "slack")),
            provenance=str(data["provenance"]),
            range_mode=str(data.get("range_mode", "daily")),
            station_id=data.get("station_id"),
            station_code=data.get("station_code"),
            station_name=data.get("station_name"),
            distance_km=data.get("distance_km"),
            events=tuple(TideEvent.from_dict(e) for e in data.get("events") or ()),
            water_levels=tuple((int(t), float(h)) for t, h in data.get("water_levels") or ()),
        )


@dataclass(frozen=True)
class AstronomyDay:
    date: str  # YYYY-MM-DD
    sunrise: Optional[int] = None
    sunset: Optional[int] = None
    moonrise: Optional[int] = None
    moonset: Optional[int] = None
    moon_transit: Optional[int] = None
    moon_phase: Optional[float] = None  # 0..1 position in the synodic cycle
    moon_illumination: Optional[float] = None  # 0..1 fraction lit
    moon_phase_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AstronomyDay":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class DataSourceMetadata:
    weather: str = "open-meteo"
    marine: Optional[str] = None
    tide: Optional[str] = None
    tide_station_code: Optional[str] = None
    tide_station_name: Optional[str] = None
    tide_station_distance_km: Optional[float] = None
    water_temperature: Optional[str] = None
    astronomy: Optional[str] = None
    enrichment_available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DataSourceMetadata":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass(frozen=True)
class SunTimes:
    date: str
    sunrise: Optional[int]
    sunset: Optional[int]


@dataclass(frozen=True)
class ForecastDataBundle:
    latitude: float
    longitude: float
    samples: Tuple[Sample, ...]
    metadata: DataSourceMetadata
    tide: Optional[TideState] = None
    astronomy: Optional[Tuple[AstronomyDay, ...]] = None
    sun_times: Tuple[SunTimes, ...] = ()
    utc_offset_seconds: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "samples": [s.to_dict() for s in self.samples],
            "metadata": self.metadata.to_dict(),
            "tide": self.tide.to_dict() if self.tide else None,
            "astronomy": [a.to_dict() for a in self.astronomy] if self.astronomy is not None else None,
            "sun_times": [asdict(s) for s in self.sun_times],
            "utc_offset_seconds": self.utc_offset_seconds,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ForecastDataBundle":
        astro = data.get("astronomy")
        tide = data.get("tide")
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            samples=tuple(Sample.from_dict(s) for s in data.get("samples") or ()),
            metadata=DataSourceMetadata.from_dict(data.get("metadata") or {}),
            tide=TideState.from_dict(tide) if tide else None,
            astronomy=tuple(AstronomyDay.from_dict(a) for a in astro) if astro is not None else None,
            sun_times=tuple(SunTimes(**s) for s in data.get("sun_times") or ()),
            utc_offset_seconds=int(data.get("utc_offset_seconds") or 0),
        )


@dataclass(frozen=True)
class FactorScore:
    value: Any
    weight: float
    score: float
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    species: str
    total: float
    factors: Dict[str, FactorScore]
    is_safe: bool
    is_in_season: bool
    algorithm_version: str
    warnings: Tuple[str, ...] = ()
    advice: Tuple[str, ...] = ()
    debug: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "species": self.species,
            "total": self.total,
            "factors": {k: v.to_dict() for k, v in self.factors.items()},
            "is_safe": self.is_safe,
            "is_in_season": self.is_in_season,
            "algorithm_version": self.algorithm_version,
            "warnings": list(self.warnings),
            "advice": list(self.advice),
            "debug": dict(self.debug),
        }

