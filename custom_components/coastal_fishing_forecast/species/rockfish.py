"""
Rockfish: structure fishing that lives or dies on holding position.

- Rockfish Conservation Areas close the location outright.
- Resultant drift (wind push + current vector) decides whether the boat can
  stay over structure; above 1.5 kt the spot is unfishable.
- Current is scored with a smooth exponential decay rather than bands.
- Tidal range is inverted: neap tides give longer slack windows.
"""
from __future__ import annotations

import math
from typing import List, Optional

from ..contexts import RockfishContext
from ..models import Sample, ScoreResult, TideState
from ..physics import (
    barometric_stability,
    cloud_cover,
    current_knots,
    resultant_drift,
    swell_heave,
    wind_knots,
)
from ..scoring import Band, BandTable, ScoreBuilder, gated_result, local_datetime, validate_weights
from ..unit_helpers import estimate_wave_height

SPECIES = "rockfish"
VERSION = "rockfish-v2.0"

WEIGHTS = validate_weights({
    "resultantDrift": 0.35,
    "swellHeave": 0.15,
    "slackTide": 0.15,
    "tidalRange": 0.10,
    "lightConditions": 0.10,
    "barometricStability": 0.10,
    "windSafety": 0.05,
})

RCA_MESSAGE = "This location is within a Rockfish Conservation Area - fishing prohibited"
SLACK_DECAY = 0.9
MAX_WIND_KT = 20.0

SLACK_LABELS = (
    (0.1, "perfect_slack"),
    (0.3, "near_slack"),
    (0.5, "good_window"),
    (1.0, "moderate_flow"),
    (1.5, "difficult"),
)

TIDAL_RANGE = BandTable(
    [
        Band(1.0, 1.0, "neap_tide_ideal"),
        Band(1.5, 0.85, "small_range_good"),
        Band(2.0, 0.7, "moderate_range"),
        Band(2.5, 0.5, "large_range"),
    ],
    above=(0.3, "spring_tide_short_slack"),
)


def slack_tide(tide: Optional[TideState]):
    if tide is None:
        return 0.5, "no_tide_data"
    current = abs(tide.current_speed)
    label = next((name for upper, name in SLACK_LABELS if current <= upper), "not_fishable")
    return max(math.exp(-SLACK_DECAY * current), 0.05), label


def tidal_range(tide: Optional[TideState]):
    if tide is None:
        return 0.5, "no_data"
    return TIDAL_RANGE.lookup(abs(tide.tidal_range))


def light_conditions(cloud_pct: float, hour: int):
    if hour < 6 or hour > 20:
        return 0.5, "low_light", "Low light - rockfish less active, stick to shallower structure"
    if cloud_pct >= 70:
        return 1.0, "overcast_ideal", "Overcast conditions - rockfish may suspend and feed actively"
    if cloud_pct >= 40:
        return 0.8, "partly_cloudy", "Good light conditions - fish may be slightly off structure"
    return 0.6, "bright", "Bright conditions - rockfish tight to structure, fish the shadows"


def regulation_notes(month: int) -> List[str]:
    notes = ["Yelloweye Rockfish: Check area-specific closures - zero retention in many areas"]
    if 2 <= month <= 5:
        notes.append("Quillback Rockfish: Closed Feb-May in many areas")
    notes.append("Bocaccio: Zero retention in most BC waters")
    notes.append("Check Rockfish Conservation Areas (RCAs) - all rockfish retention prohibited in RCAs")
    return notes


BAROTRAUMA_ADVISORY = (
    "Rockfish caught from depths >20m may suffer barotrauma. "
    "Use descending devices for release to minimize mortality."
)


def score(sample: Sample, context: RockfishContext, tide: Optional[TideState] = None) -> ScoreResult:
    if context.is_in_rca:
        return gated_result(SPECIES, VERSION, RCA_MESSAGE, is_safe=False, advice=("RCA closure - find alternative location",))

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    for note in regulation_notes(when.month):
        b.advise(note)

    wind = wind_knots(sample)
    wind_dir = context.wind_direction if context.wind_direction is not None else (sample.wind_direction or 0.0)
    current = current_knots(sample, tide)
    if context.current_direction is not None:
        current_dir = context.current_direction
    else:
        current_dir = 0.0 if (tide is not None and tide.is_rising) else 180.0

    drift = resultant_drift(wind, wind_dir, current, current_dir)
    b.add_factor("resultantDrift", f"{drift.drift_speed} kts", drift.score, drift.recommendation)
    b.advise(drift.recommendation)
    if not drift.can_hold_position:
        b.unsafe("Cannot hold position over structure - drift too fast")

    wind_kmh = sample.wind_speed or 0.0
    if context.swell_height is not None:
        swell_h = context.swell_height
    elif sample.swell_height is not None:
        swell_h = sample.swell_height
    else:
        swell_h = estimate_wave_height(wind_kmh, 2.0) if wind_kmh > 0 else 0.3
    swell_t = context.swell_period or sample.swell_period or 8.0
    heave = swell_heave(swell_h, swell_t)
    b.add_factor("swellHeave", f"{swell_h:.1f}m @ {swell_t:g}s", heave.score, f"{heave.comfort} - heave {heave.heave_rate} m/s")
    if heave.comfort == "unfishable":
        b.unsafe(heave.warning or "Swell unfishable")
    elif heave.warning:
        b.warn(heave.warning)

    slack_score, slack_label = slack_tide(tide)
    b.add_factor("slackTide", tide.current_speed if tide else 0.0, slack_score, slack_label)
    if slack_label in ("perfect_slack", "near_slack"):
        b.advise("Slack tide window - optimal for vertical presentation")

    range_score, range_label = tidal_range(tide)
    b.add_factor("tidalRange", f"{tide.tidal_range:.2f}m" if tide else "n/a", range_score, range_label)

    clouds = cloud_cover(context.cloud_cover, sample)
    light_score, light_label, light_advice = light_conditions(clouds, when.hour)
    b.add_factor("lightConditions", f"{clouds:g}% cloud", light_score, light_label)
    b.advise(light_advice)

    baro = barometric_stability(sample.pressure, context.pressure_history)
    b.add_factor("barometricStability", f"{baro.change_rate} hPa/hr", baro.score, baro.trend)
    if baro.warning:
        b.advise(baro.warning)

    wind_safe = wind <= MAX_WIND_KT
    b.add_factor("windSafety", f"{round(wind)} kts", 1.0 if wind_safe else 0.0, "safe" if wind_safe else "dangerous")
    if not wind_safe:
        b.unsafe(f"Unsafe: Wind {round(wind)} knots - cannot maintain position")

    b.advise(BAROTRAUMA_ADVISORY)

    if drift.score >= 0.9 and heave.comfort == "stable" and slack_score >= 0.8 and light_label == "overcast_ideal":
        b.bonus(1.1, "prime_time")
        b.advise("PRIME TIME: Stable boat + slack tide + overcast = rockfish actively feeding!")

    return b.build(
        is_in_season=True,
        debug={"drift_speed": drift.drift_speed, "heave_rate": heave.heave_rate, "pressure_trend": baro.trend},
    )
