"""
Chum salmon: storm biters.

Falling pressure with moderate rain scores highest, the inverse of the usual
fair-weather preference. Fish stage in soft water near river mouths and feed
hardest in cold water during the October-November peak.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..bio_intel import detect_chum_activity
from ..contexts import ChumContext
from ..models import Sample, ScoreResult, TideState
from ..physics import current_knots, pressure_change, pressure_trend, wind_knots
from ..scoring import Band, BandTable, LinearSegments, ScoreBuilder, day_of_year, local_datetime, validate_weights

SPECIES = "chum"
VERSION = "chum-v2.0"

WEIGHTS = validate_weights({
    "stormTrigger": 0.35,
    "stagingSeams": 0.25,
    "seasonality": 0.20,
    "thermalGate": 0.10,
    "bioIntel": 0.10,
})

DEFAULT_WATER_TEMP = 10.0

SEP_15 = 258
OCT_15 = 288
NOV_15 = 319
NOV_30 = 334

_BUILDING = LinearSegments([(SEP_15, 0.5), (OCT_15, 1.0)])
_LATE = LinearSegments([(NOV_15, 1.0), (NOV_30, 0.6)])

STAGING_SEAMS = BandTable(
    [
        Band(0.3, 0.5, "dead_slack", inclusive=False),
        Band(0.5, 0.7, "building", inclusive=False),
        Band(1.5, 1.0, "soft_water"),
        Band(2.5, 0.7, "moderate"),
    ],
    above=(0.3, "fast_water"),
)

THERMAL_GATE = BandTable(
    [
        Band(10.0, 1.0, "cold_activation", inclusive=False),
        Band(12.0, 0.9, "cold_optimal"),
        Band(14.0, 0.6, "warming"),
    ],
    above=(0.3, "too_warm"),
)


@dataclass(frozen=True)
class StormTrigger:
    score: float
    is_active: bool
    strength: str
    recommendation: str


def storm_trigger(trend: str, precipitation: float) -> StormTrigger:
    falling = trend in ("falling", "crashing")
    if falling and 5 <= precipitation <= 20:
        return StormTrigger(1.0, True, "strong", "STORM BITER ACTIVE: Falling pressure + rain = Chum feeding frenzy!")
    if trend == "falling" and 0 < precipitation < 5:
        return StormTrigger(0.9, True, "moderate", "Good conditions: Light rain + falling pressure triggers Chum aggression")
    if 5 <= precipitation <= 20:
        return StormTrigger(0.8, True, "moderate", "Rain alone - Chums still active while other salmon slow down")
    if falling:
        return StormTrigger(0.75, True, "light", "Falling pressure - Chums feeding ahead of weather change")
    if trend == "rising" and precipitation < 1:
        return StormTrigger(0.5, False, "none", "Fair conditions - Chums present but not as aggressive")
    if precipitation > 25:
        return StormTrigger(0.3, False, "light", "Very heavy rain - even Chums slow down in extreme conditions")
    return StormTrigger(0.6, False, "light", "Moderate conditions for Chum fishing")


def seasonality(doy: int):
    if doy < SEP_15 - 15:
        score, label = 0.1, "off_season"
    elif doy < SEP_15:
        score, label = 0.4, "early_scouts"
    elif doy < OCT_15:
        score, label = _BUILDING(doy), "building_run"
    elif doy <= NOV_15:
        score, label = 1.0, "peak_run"
    elif doy <= NOV_30:
        score, label = _LATE(doy), "late_run"
    elif doy <= NOV_30 + 15:
        score, label = 0.3, "tail_end"
    else:
        score, label = 0.1, "off_season"
    return max(0.1, score), label


def score(sample: Sample, context: ChumContext, tide: Optional[TideState] = None) -> ScoreResult:
    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)

    if sample.sea_surface_temperature is not None:
        water_temp = sample.sea_surface_temperature
    elif sample.water_temperature is not None:
        water_temp = sample.water_temperature
    else:
        water_temp = DEFAULT_WATER_TEMP
    current = current_knots(sample, tide)
    precip = sample.precipitation or 0.0

    trend = pressure_trend(pressure_change(sample.pressure, context.pressure_history))
    storm = storm_trigger(trend, precip)
    b.add_factor("stormTrigger", f"{trend}, {precip}mm", storm.score, storm.strength)
    b.advise(storm.recommendation)

    seam_score, seam_type = STAGING_SEAMS.lookup(current)
    b.add_factor("stagingSeams", f"{current:.1f} kts", seam_score, seam_type)

    season_score, season_label = seasonality(day_of_year(when))
    b.add_factor("seasonality", when.month, season_score, season_label)
    if season_label == "peak_run":
        b.advise("Peak Chum season - late-season aggression active")

    thermal_score, thermal_label = THERMAL_GATE.lookup(water_temp)
    is_cold = water_temp <= 12.0
    b.add_factor("thermalGate", f"{water_temp:.1f}°C", thermal_score, "cold_active" if is_cold else "warm_slow")

    intel = detect_chum_activity(context.report_text)
    b.add_factor(
        "bioIntel",
        ", ".join(intel.keywords) if intel.detected else "no reports",
        1.0 if intel.detected else 0.5,
        "run_reported" if intel.detected else "no_intel",
    )
    if intel.detected:
        b.advise(f"Chum activity reported: {', '.join(intel.keywords)}")

    wind = wind_knots(sample)
    if wind > 25:
        b.unsafe(f"Unsafe: Wind {round(wind)} knots")
    if current > 4.0:
        b.unsafe(f"Unsafe: Current speed {current:.1f} knots")
    if precip > 30:
        b.unsafe("Unsafe: Extreme precipitation - visibility and safety hazard")

    if storm.is_active and is_cold and seam_type == "soft_water":
        b.bonus(1.15, "storm_biter_prime")
        b.advise("STORM BITER PRIME: Cold water + rain + staging seams = aggressive feeding!")

    return b.build(
        is_in_season=season_score > 0.3,
        debug={
            "pressure_trend": trend,
            "storm_trigger": storm.strength,
            "thermal": thermal_label,
            "tidal_direction": ("flood" if tide.is_rising else "ebb") if tide else None,
        },
    )
