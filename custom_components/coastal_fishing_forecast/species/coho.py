"""
Coho salmon: visual hunters on the tide lines.

Bright midday light is penalized hard unless cloud softens it, a high sun
over clear sky pushes fish deep, and glass calm makes them line-shy. Active
1.5-3 kt currents build the tide lines that concentrate bait. A blown-out
river kills visual feeding near estuaries; massive bait floors the total at
8.0 regardless.
"""
from __future__ import annotations

from typing import Optional, Tuple

from ..bio_intel import detect_bait_presence
from ..contexts import CohoContext
from ..models import Sample, ScoreResult, TideState
from ..physics import (
    cloud_cover,
    freshet_status,
    pressure_trend_score,
    swell_quality,
    wind_knots,
    wind_tide_interaction,
)
from ..scoring import LinearSegments, ScoreBuilder, day_of_year, local_datetime, validate_weights

SPECIES = "coho"
VERSION = "coho-v2.0"

WEIGHTS = validate_weights({
    "seasonality": 0.15,
    "baitPresence": 0.20,
    "lightAndStealth": 0.20,
    "currentFlow": 0.15,
    "seaSurfaceState": 0.15,
    "pressureTrend": 0.10,
    "riverTurbidity": 0.05,
})

JUL_1 = 183
AUG_1 = 213
SEP_15 = 258
SEP_30 = 273
OCT_31 = 304
NOV_30 = 334

_RAMP = LinearSegments([(AUG_1, 0.5), (SEP_15, 1.0)])
_DECLINE = LinearSegments([(SEP_30, 1.0), (OCT_31, 0.5)])

BAIT_OVERRIDE_FLOOR = 8.0
GLASS_CALM_PENALTY = 0.85
BLOWN_OUT_PENALTY = 0.4
TIDE_TURN_MINUTES = 45
MAX_CURRENT_KT = 4.5


def seasonality(doy: int) -> Tuple[float, str]:
    if doy < JUL_1:
        return 0.2, "early_season"
    if doy < AUG_1:
        return 0.5, "summer_feeders"
    if doy < SEP_15:
        return _RAMP(doy), "building"
    if doy <= SEP_30:
        return 1.0, "peak_season"
    if doy <= OCT_31:
        return _DECLINE(doy), "late_season"
    if doy <= NOV_30:
        return 0.3, "tail_end"
    return 0.1, "off_season"


def light_and_cloud(
    timestamp: int,
    sunrise: Optional[int],
    sunset: Optional[int],
    clouds: float,
    sun_elevation: Optional[float],
) -> Tuple[float, str, float, Optional[str]]:
    """(score, condition, sun angle penalty, depth advice).

    Golden hours score full regardless of cloud; midday starts at 0.2 and
    recovers up to 0.7 under full overcast.
    """
    sun = 30.0 if sun_elevation is None else sun_elevation
    if sunrise is None or sunset is None:
        score, condition = 0.5, "no_sun_times"
    else:
        from_sunrise = (timestamp - sunrise) / 60.0
        to_sunset = (sunset - timestamp) / 60.0
        if 0 <= from_sunrise <= 90:
            score, condition = 1.0, "golden_hour_dawn"
        elif 0 <= to_sunset <= 90:
            score, condition = 1.0, "golden_hour_dusk"
        elif -35 <= from_sunrise < 0:
            score, condition = 0.9, "civil_twilight_dawn"
        elif -35 <= to_sunset < 0:
            score, condition = 0.85, "civil_twilight_dusk"
        elif 90 < from_sunrise <= 180 or 90 < to_sunset <= 180:
            score, condition = 0.6, "shoulder_hours"
        elif from_sunrise > 180 and to_sunset > 180:
            score, condition = 0.2, "midday"
            if clouds > 50:
                score += 0.5 * (clouds - 50) / 50
                condition = "midday_overcast"
        else:
            score, condition = 0.3, "night"

    penalty, advice = 1.0, None
    if sun > 45 and clouds < 25:
        penalty = 0.7
        condition += "_high_sun_penalty"
        advice = "High bright sun. Fish are deep. Use downriggers >60ft or wait for evening."
    elif sun > 45 and clouds < 50:
        penalty = 0.85
        advice = "Sun angle high but partial clouds. Fish 40-80ft."
    elif sun > 30 and clouds < 30:
        advice = "Moderate sun penetration. Fish 30-60ft."
    return min(score, 1.0), condition, penalty, advice


def current_flow(current_kt: float, minutes_to_slack: Optional[float]) -> Tuple[float, str, bool]:
    """(score, label, tide turn) favouring the 1.5-3 kt tide-line band."""
    tide_turn = minutes_to_slack is not None and minutes_to_slack <= TIDE_TURN_MINUTES
    if 1.5 <= current_kt <= 3.0:
        score, label = 1.0, "optimal_tide_lines"
    elif 1.0 <= current_kt < 1.5:
        score, label = 0.8, "good_flow"
    elif 3.0 < current_kt <= 4.0:
        score, label = 0.5, "strong_but_fishable"
    elif 0.5 <= current_kt < 1.0:
        score, label = 0.6, "moderate_flow"
    elif current_kt < 0.5:
        score, label = (0.8, "tide_turn_window") if tide_turn else (0.3, "dead_slack")
    else:
        score, label = 0.2, "too_strong"
    if tide_turn and score < 0.8:
        score, label = min(score + 0.15, 1.0), label + "_tide_turn"
    return score, label, tide_turn


def score(sample: Sample, context: CohoContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)

    season_score, season_label = seasonality(day_of_year(when))
    b.add_factor("seasonality", when.month, season_score, season_label)

    bait = detect_bait_presence(context.report_text)
    b.add_factor("baitPresence", bait.presence, bait.score, bait.presence)
    b.advise(bait.recommendation)

    clouds = cloud_cover(context.cloud_cover, sample)
    light, condition, sun_penalty, depth = light_and_cloud(
        sample.timestamp, context.sunrise, context.sunset, clouds, context.sun_elevation
    )
    b.add_factor("lightAndStealth", context.sun_elevation, light, condition)
    if depth:
        b.advise(depth)

    minutes = context.minutes_to_slack
    if minutes is None and tide is not None:
        minutes = tide.minutes_to_next
    if tide is None:
        current = abs(sample.current_speed or 0.0)
        flow_score, flow_label, tide_turn = 0.5, "no_tide_data", False
    else:
        current = abs(tide.current_speed)
        flow_score, flow_label, tide_turn = current_flow(current, minutes)
    b.add_factor("currentFlow", round(current, 2), flow_score, flow_label)

    wind = wind_knots(sample)
    wind_dir = context.wind_direction if context.wind_direction is not None else 0.0
    current_dir = context.current_direction if context.current_direction is not None else 180.0
    if context.swell_height is not None:
        swell_h = context.swell_height
    elif sample.swell_height is not None:
        swell_h = sample.swell_height
    else:
        swell_h = 0.5
    swell_t = context.swell_period or sample.swell_period or 8.0
    interaction = wind_tide_interaction(wind_dir, wind, current_dir, current)
    swell = swell_quality(swell_h, swell_t)
    sea_label = f"{interaction.severity}_{swell.comfort}"
    if interaction.is_opposing:
        sea_label = "wind_against_tide_" + sea_label
    b.add_factor(
        "seaSurfaceState",
        f"{wind:.1f}kt/{swell_h:.1f}m",
        interaction.score * 0.6 + swell.score * 0.4,
        sea_label,
    )
    dangerous = interaction.severity == "dangerous" or swell.comfort == "dangerous"
    for warning in (interaction.warning, swell.warning):
        if not warning:
            continue
        if dangerous:
            b.unsafe(warning)
        else:
            b.warn(warning)
    if dangerous and b.is_safe:
        b.unsafe("Dangerous sea state")

    pressure_score, trend = pressure_trend_score(sample.pressure, context.pressure_history)
    b.add_factor("pressureTrend", sample.pressure, pressure_score, trend)

    rain = context.precipitation_24h
    if rain is None:
        rain = (sample.precipitation or 0.0) * 24
    max_temp = context.max_temp_24h
    if max_temp is None:
        max_temp = sample.temperature if sample.temperature is not None else 15.0
    freshet = freshet_status(rain, max_temp, when.month)
    b.add_factor("riverTurbidity", freshet.severity, freshet.turbidity_score, freshet.severity)
    if freshet.warning:
        b.advise(freshet.warning)
    if freshet.is_blown_out:
        b.advise("Consider offshore instead of estuary fishing.")

    if current > MAX_CURRENT_KT:
        b.unsafe(f"Dangerous current: {current:.1f} knots")

    if sun_penalty < 1.0:
        b.bonus(sun_penalty, "high_sun")
    if wind < 4 and clouds < 50:
        b.bonus(GLASS_CALM_PENALTY, "glass_calm")
        b.advise("GLASS CALM: Fish are line-shy. Lengthen leaders and drop gear deeper")
    if freshet.is_blown_out:
        b.bonus(BLOWN_OUT_PENALTY, "river_blown_out")
        b.warn("RIVER BLOWN OUT: Turbidity shuts down visual feeding")
    if bait.is_override:
        b.floor(BAIT_OVERRIDE_FLOOR, "massive_bait")
        b.advise("BAIT OVERRIDE: Massive bait presence. Predators stacked regardless of other conditions.")

    return b.build(
        is_in_season=season_score > 0.3,
        debug={
            "pressure_trend": trend,
            "light_condition": condition,
            "tide_turn": tide_turn,
            "sun_angle_penalty": sun_penalty,
        },
    )
