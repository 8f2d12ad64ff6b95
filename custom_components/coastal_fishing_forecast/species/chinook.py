"""
Chinook salmon: deep trollers that follow the tide and the bait.

Weights shift with the seasonal mode. Resident feeders (December-May) are
bait and light driven; summer spawners are tide driven. High sun changes the
depth advice rather than penalizing the score, large exchanges blow trolling
gear off depth outside the slack window, and orca in the reports suppress
the whole bite. Massive bait floors the total at 6.0.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..astronomy import solar_elevation
from ..bio_intel import detect_bait_presence, detect_predator_presence
from ..contexts import ChinookContext
from ..models import Sample, ScoreResult, TideState
from ..physics import cloud_cover, current_knots, pressure_trend_score, trollability, wind_knots, wind_tide_interaction
from ..scoring import ScoreBuilder, day_of_year, local_datetime, validate_weights
from ..unit_helpers import estimate_wave_height, kmh_to_knots

SPECIES = "chinook"
VERSION = "chinook-v2.0"

FEEDER_WEIGHTS = validate_weights({
    "tidalCurrent": 0.12,
    "trollability": 0.13,
    "lightDepth": 0.22,
    "baitPresence": 0.23,
    "solunar": 0.10,
    "pressureTrend": 0.10,
    "seaState": 0.05,
    "precipitation": 0.03,
    "waterTemp": 0.02,
})

SPAWNER_WEIGHTS = validate_weights({
    "tidalCurrent": 0.18,
    "trollability": 0.17,
    "lightDepth": 0.18,
    "baitPresence": 0.17,
    "solunar": 0.10,
    "pressureTrend": 0.10,
    "seaState": 0.05,
    "precipitation": 0.03,
    "waterTemp": 0.02,
})

BAIT_OVERRIDE_FLOOR = 6.0
DEFAULT_TIDAL_RANGE = 3.0
DEFAULT_MINUTES_TO_SLACK = 180
LIGHTNING_CAPE = 1500.0
MAX_CURRENT_KT = 4.5
NORTHERN_LOCATIONS = ("campbell", "port hardy", "prince rupert")


@dataclass(frozen=True)
class SeasonalMode:
    mode: str
    month_range: str
    behavior: str


FEEDER = SeasonalMode("feeder", "Dec-May", "Resident fish actively feeding. Follow the bait.")
SPAWNER = SeasonalMode("spawner", "Jun-Sep", "Migrating fish staging for spawning runs. Work tide changes.")


def seasonal_mode(month: int) -> SeasonalMode:
    return FEEDER if month >= 12 or month <= 5 else SPAWNER


@dataclass(frozen=True)
class DepthAdvice:
    min_ft: int
    max_ft: int
    is_deep_bite: bool
    advice: str

    @property
    def recommended_depth(self) -> str:
        return f"{self.min_ft}-{self.max_ft}ft"


_DEPTHS = (
    (10, DepthAdvice(40, 80, False, "Low light conditions. Fish may be higher in the water column.")),
    (25, DepthAdvice(60, 100, False, "Good light conditions for mid-depth trolling.")),
    (40, DepthAdvice(80, 120, False, "Bright conditions. Target deeper structure and thermoclines.")),
    (55, DepthAdvice(100, 150, True, "DEEP BITE ALERT: High sun pushing fish deep. Use downriggers at 100-150ft.")),
)
_MAX_DEPTH = DepthAdvice(
    120, 180, True, "DEEP BITE ALERT: Peak sun. Fish are at maximum depth. Target 120-180ft with downriggers."
)


def depth_advice(sun_elevation: float, cloud_pct: float) -> DepthAdvice:
    effective = sun_elevation * (1 - cloud_pct * 0.005)
    advice = next((a for upper, a in _DEPTHS if effective < upper), _MAX_DEPTH)
    if cloud_pct > 70 and effective > 25:
        return DepthAdvice(
            advice.min_ft - 20,
            advice.max_ft - 20,
            False,
            "Overcast conditions. Fish may be shallower than typical for this time.",
        )
    return advice


_NORTHERN_SEASON = {
    1: (0.3, "winter_resident"), 2: (0.4, "winter_feeder"), 3: (0.5, "early_spring"),
    4: (0.6, "spring_feeder"), 5: (0.7, "late_spring"), 6: (0.85, "early_migrant"),
    7: (1.0, "peak_migration"), 8: (1.0, "peak_migration"), 9: (0.9, "late_migration"),
    10: (0.6, "fall_resident"), 11: (0.4, "late_fall"), 12: (0.3, "winter_resident"),
}

# month -> (score before the 15th, score from the 15th, run type)
_SOUTHERN_SEASON = {
    1: (0.45, 0.45, "winter_feeder"),
    2: (0.55, 0.65, "winter_feeder"),
    3: (0.7, 0.7, "winter_feeder_peak"),
    4: (0.65, 0.6, "spring_transition"),
    5: (0.55, 0.55, "spring_transition"),
    6: (0.7, 0.8, "early_migration"),
    7: (0.9, 1.0, "peak_migration"),
    8: (1.0, 1.0, "peak_migration"),
    9: (0.9, 0.8, "late_migration"),
    10: (0.6, 0.5, "fall_transition"),
    11: (0.4, 0.4, "late_fall"),
    12: (0.35, 0.4, "early_winter"),
}


def seasonality(month: int, day: int, location_name: Optional[str] = None) -> Tuple[float, str]:
    """Run timing; northern BC peaks later than the southern feeder fishery."""
    name = (location_name or "").lower()
    if any(place in name for place in NORTHERN_LOCATIONS):
        return _NORTHERN_SEASON[month]
    early, late, run_type = _SOUTHERN_SEASON[month]
    return (early if day < 15 else late), run_type


MAJOR_WINDOW_S = 45 * 60
MINOR_WINDOW_S = 30 * 60


def solunar(timestamp: int, longitude: float, utc_offset_seconds: int = 0) -> Tuple[float, str]:
    """Major periods at moon overhead/underfoot, minor at moonrise/moonset.

    Moon times are approximated from the day of year (moonrise ~50 min later
    each day) and the longitude offset from 123W.
    """
    when = local_datetime(timestamp, utc_offset_seconds)
    midnight = int(when.replace(hour=0, minute=0, second=0, microsecond=0).timestamp())
    rise = ((day_of_year(when) * 50 / 60) % 24 + (longitude + 123) / 15) % 24
    overhead = (rise + 6.2) % 24
    major = (overhead, (overhead + 12) % 24)
    minor = (rise, (rise + 12.4) % 24)
    if any(abs(timestamp - (midnight + h * 3600)) <= MAJOR_WINDOW_S for h in major):
        return 1.0, "major"
    if any(abs(timestamp - (midnight + h * 3600)) <= MINOR_WINDOW_S for h in minor):
        return 0.7, "minor"
    return 0.3, "none"


def tidal_current(current_kt: float, is_rising: bool) -> Tuple[float, str]:
    if 0.5 <= current_kt <= 2.0:
        score, label = 1.0, "optimal_current"
    elif 0.3 <= current_kt < 0.5:
        score, label = 0.75, "light_current"
    elif current_kt < 0.3:
        score, label = 0.5, "slack_tide"
    elif current_kt <= 3.5:
        score, label = 0.4, "strong_current"
    else:
        score, label = 0.1, "dangerous_current"
    if is_rising and score > 0.3:
        score, label = min(score + 0.1, 1.0), label + "_incoming"
    return score, label


@dataclass(frozen=True)
class SeaState:
    score: float
    label: str
    warning: Optional[str] = None


def sea_state(wind_kmh: float, gust_kmh: float, wave_m: Optional[float] = None) -> SeaState:
    """Merged wind and wave comfort; ``warning`` is set only when unsafe."""
    wind = kmh_to_knots(wind_kmh) or 0.0
    gust = kmh_to_knots(gust_kmh) or 0.0
    wave = wave_m if wave_m is not None else estimate_wave_height(wind_kmh, 5.0)
    if wind > 25 or gust > 35:
        return SeaState(0.0, "dangerous_wind", f"Dangerous wind conditions: {round(wind)} knots (gusts {round(gust)})")
    if wave > 2.0:
        return SeaState(0.0, "dangerous_waves", f"Dangerous wave height: {wave:.1f}m")
    if 0.3 <= wave <= 0.8 and 5 <= wind <= 15:
        return SeaState(1.0, "salmon_chop")
    if wave < 0.3 and wind < 5:
        return SeaState(0.7, "calm_glassy")
    if wave <= 1.0 and wind <= 18:
        return SeaState(0.8, "moderate_chop")
    if wave <= 1.5 and wind <= 22:
        return SeaState(0.5, "rough")
    return SeaState(0.25, "very_rough")


def water_temperature(temp_c: Optional[float]) -> Tuple[float, str]:
    if temp_c is None:
        return 0.5, "no_data"
    if 9 <= temp_c <= 13:
        return 1.0, "optimal"
    if 7 <= temp_c < 9:
        return 0.75, "cool"
    if 13 < temp_c <= 15:
        return 0.75, "warm"
    if 5 <= temp_c < 7:
        return 0.5, "cold"
    if 15 < temp_c <= 17:
        return 0.5, "too_warm"
    return 0.2, "very_cold" if temp_c < 5 else "too_hot"


def precipitation(mm: float) -> Tuple[float, str]:
    if mm <= 0.1:
        return 0.9, "dry"
    if mm <= 2:
        return 1.0, "light_rain"
    if mm <= 5:
        return 0.7, "moderate_rain"
    if mm <= 10:
        return 0.4, "heavy_rain"
    return 0.2, "very_heavy_rain"


def score(sample: Sample, context: ChinookContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    mode = seasonal_mode(when.month)
    b = ScoreBuilder(SPECIES, VERSION, FEEDER_WEIGHTS if mode is FEEDER else SPAWNER_WEIGHTS)
    b.advise(f"{mode.mode.upper()} MODE ({mode.month_range}): {mode.behavior}")

    if context.sun_elevation is not None:
        sun = context.sun_elevation
    else:
        sun = solar_elevation(context.latitude, context.longitude, sample.timestamp)
    clouds = cloud_cover(context.cloud_cover, sample)
    depth = depth_advice(sun, clouds)
    if depth.is_deep_bite:
        light_score = 0.85
        b.advise(depth.advice)
    elif sun < 25:
        light_score = 1.0
    else:
        light_score = 0.7
    b.add_factor(
        "lightDepth", round(sun, 1), light_score, "deep_bite" if depth.is_deep_bite else f"depth_{depth.recommended_depth}"
    )

    current = current_knots(sample, tide)
    if tide is None and sample.current_speed is None:
        current_score, current_label = 0.5, "no_tide_data"
    else:
        current_score, current_label = tidal_current(current, tide is not None and tide.is_rising)
    b.add_factor("tidalCurrent", round(current, 2), current_score, current_label)

    if context.tidal_range is not None:
        tidal_range = context.tidal_range
    elif tide is not None:
        tidal_range = abs(tide.tidal_range)
    else:
        tidal_range = DEFAULT_TIDAL_RANGE
    if context.minutes_to_slack is not None:
        to_slack = context.minutes_to_slack
    elif tide is not None and tide.minutes_to_next is not None:
        to_slack = tide.minutes_to_next
    else:
        to_slack = DEFAULT_MINUTES_TO_SLACK
    troll = trollability(tidal_range, to_slack, current if tide is not None else None)
    b.add_factor("trollability", round(tidal_range, 2), troll.score, troll.blowback)
    if troll.warning:
        b.advise(troll.warning)
    if troll.recommendation:
        b.advise(troll.recommendation)

    bait = detect_bait_presence(context.report_text, default="moderate")
    b.add_factor("baitPresence", len(bait.keywords), bait.score, bait.presence)
    b.advise(bait.recommendation)

    solunar_score, period = solunar(sample.timestamp, context.longitude, context.utc_offset_seconds)
    b.add_factor("solunar", {"major": 2, "minor": 1}.get(period, 0), solunar_score, period)

    pressure_score, trend = pressure_trend_score(sample.pressure, context.pressure_history)
    b.add_factor("pressureTrend", sample.pressure, pressure_score, trend)

    sea = sea_state(sample.wind_speed or 0.0, sample.wind_gust or 0.0, sample.wave_height)
    b.add_factor("seaState", sample.wind_speed, sea.score, sea.label)
    if sea.warning:
        b.unsafe(sea.warning)

    if context.wind_direction is not None and context.current_direction is not None:
        interaction = wind_tide_interaction(context.wind_direction, wind_knots(sample), context.current_direction, current)
        if interaction.severity == "dangerous":
            b.unsafe(interaction.warning)
        elif interaction.warning:
            b.warn(interaction.warning)

    rain = sample.precipitation or 0.0
    rain_score, rain_label = precipitation(rain)
    b.add_factor("precipitation", rain, rain_score, rain_label)

    if sample.sea_surface_temperature is not None:
        water_temp = sample.sea_surface_temperature
    else:
        water_temp = sample.water_temperature
    temp_score, temp_label = water_temperature(water_temp)
    b.add_factor("waterTemp", water_temp, temp_score, temp_label)

    if (sample.lightning_potential or 0.0) > LIGHTNING_CAPE:
        b.unsafe(f"High lightning risk: {sample.lightning_potential:g} J/kg")
    if current > MAX_CURRENT_KT:
        b.unsafe(f"Dangerous current: {current:.1f} knots")
    if water_temp is not None and water_temp < 6:
        b.warn(f"Cold water warning: {water_temp:g}°C - hypothermia risk")

    predator = detect_predator_presence(context.report_text)
    if predator.detected:
        b.warn(predator.recommendation)
        b.advise("Consider fishing different area or waiting for orca to move through.")
        b.bonus(predator.multiplier, predator.confidence)

    if bait.is_override:
        b.floor(BAIT_OVERRIDE_FLOOR, "massive_bait")
        b.advise("BAIT OVERRIDE: Massive bait presence guarantees good fishing!")

    season_score, run_type = seasonality(when.month, when.day, context.location_name)
    return b.build(
        is_in_season=season_score > 0.3,
        debug={
            "seasonal_mode": mode.mode,
            "run_type": run_type,
            "pressure_trend": trend,
            "solunar_period": period,
            "depth": depth.recommended_depth,
            "blowback": troll.blowback,
        },
    )
