"""
Pacific halibut: bottom fish worked at anchor around slack water.

Proximity to slack dominates because gear has to hold bottom. Short-period
chop over 1.5 m is a gatekeeper (nobody can anchor in it), wind against the
tide caps the anchor safety factor, and bait schools overhead mark where the
fish are staged. Closed December to February.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..bio_intel import detect_bait_presence
from ..contexts import HalibutContext
from ..models import Sample, ScoreResult, TideState
from ..physics import swell_quality, wind_knots, wind_tide_interaction
from ..scoring import Band, BandTable, ScoreBuilder, gated_result, local_datetime, validate_weights

SPECIES = "halibut"
VERSION = "halibut-v2.0"

WEIGHTS = validate_weights({
    "tidalSlope": 0.30,
    "tidalRange": 0.10,
    "swellQuality": 0.15,
    "windTideSafety": 0.15,
    "seasonality": 0.10,
    "lightTideInteraction": 0.10,
    "baitScent": 0.10,
})

CLOSED_MONTHS = (12, 1, 2)
GATE_MAX_PERIOD_S = 6.0
GATE_MIN_HEIGHT_M = 1.5
ANCHOR_CAP_WIND_KT = 15.0
MAX_WIND_KT = 25.0
MAX_CURRENT_KT = 3.5

SLOPE_BY_MINUTES = BandTable(
    [
        Band(30, 1.0, "slack_window"),
        Band(60, 0.9, "approaching_slack"),
        Band(90, 0.7, "pre_slack_window"),
        Band(120, 0.5, "building_flow"),
    ],
    above=(0.3, "mid_tide"),
)

SLOPE_BY_CURRENT = BandTable(
    [
        Band(0.3, 1.0, "slack_tide"),
        Band(0.8, 0.85, "near_slack"),
        Band(1.5, 0.5, "moderate_flow"),
        Band(2.5, 0.3, "strong_flow"),
    ],
    above=(0.1, "very_strong_flow"),
)

_SEASON = {
    3: (0.6, "early_late_season"),
    4: (0.8, "shoulder_season"),
    10: (0.8, "shoulder_season"),
    11: (0.6, "early_late_season"),
}


def seasonality(month: int) -> Tuple[float, str]:
    if 5 <= month <= 9:
        return 1.0, "peak_season"
    return _SEASON.get(month, (0.1, "closed_season"))


def tidal_slope(current_kt: Optional[float], minutes_to_slack: Optional[float]) -> Tuple[float, str]:
    if minutes_to_slack is not None:
        return SLOPE_BY_MINUTES.lookup(minutes_to_slack)
    if current_kt is None:
        return 0.5, "no_tide_data"
    return SLOPE_BY_CURRENT.lookup(current_kt)


def tidal_range(range_m: float) -> Tuple[float, str]:
    if 2.5 <= range_m <= 4.0:
        return 1.0, "optimal_exchange"
    if 2.0 <= range_m < 2.5:
        return 0.9, "strong_exchange"
    if 4.0 < range_m <= 5.0:
        return 0.8, "large_exchange"
    if 1.5 <= range_m < 2.0:
        return 0.7, "moderate_exchange"
    if range_m > 5.0:
        return 0.5, "extreme_exchange_short_slack"
    return 0.4, "minimal_exchange"


def light_tide_interaction(
    timestamp: int,
    sunrise: Optional[int],
    sunset: Optional[int],
    current_kt: float,
    minutes_to_slack: Optional[float],
) -> Tuple[float, str]:
    """Low light and slack water together beat either one alone."""
    if sunrise is None or sunset is None:
        light, condition = 0.5, "unknown_light"
    else:
        from_sunrise = (timestamp - sunrise) / 60.0
        to_sunset = (sunset - timestamp) / 60.0
        if 0 <= from_sunrise <= 90 or 0 <= to_sunset <= 90:
            light, condition = 1.0, "golden_hour"
        elif -30 <= from_sunrise < 0 or -30 <= to_sunset < 0:
            light, condition = 0.9, "twilight"
        elif 90 < from_sunrise <= 150 or 90 < to_sunset <= 150:
            light, condition = 0.6, "shoulder_hours"
        elif from_sunrise > 150 and to_sunset > 150:
            light, condition = 0.3, "midday"
        else:
            light, condition = 0.4, "night"

    if minutes_to_slack is not None:
        tide = 1.0 if minutes_to_slack <= 45 else 0.7 if minutes_to_slack <= 90 else 0.4
    else:
        tide = 1.0 if current_kt <= 0.5 else 0.7 if current_kt <= 1.0 else 0.4

    bonus = 0.2 if light >= 0.7 and tide >= 0.7 else 0.0
    phase = "near_slack" if tide >= 0.7 else "moving_tide"
    return min((light + tide) / 2 + bonus, 1.0), f"{condition}_{phase}"


@dataclass(frozen=True)
class AnchorSafety:
    score: float
    label: str
    is_safe: bool
    is_capped: bool
    warning: Optional[str] = None


def anchor_safety(wind_kt: float, wind_from_deg: float, current_kt: float, current_to_deg: float) -> AnchorSafety:
    interaction = wind_tide_interaction(wind_from_deg, wind_kt, current_to_deg, current_kt)
    score, capped, warning = interaction.score, False, interaction.warning
    if interaction.is_opposing and wind_kt > ANCHOR_CAP_WIND_KT:
        score, capped = min(score, 0.4), True
        warning = f"ANCHOR CAP: Wind opposing tide at {round(wind_kt)}kt. Anchoring difficult. Consider drift fishing."
    if wind_kt > MAX_WIND_KT:
        score = 0.0
        warning = f"DANGEROUS: Wind {round(wind_kt)}kt too strong for safe halibut fishing."
    label = interaction.severity + ("_opposing" if interaction.is_opposing else "_aligned")
    safe = interaction.severity != "dangerous" and wind_kt <= MAX_WIND_KT
    return AnchorSafety(score, label, safe, capped, warning)


def score(sample: Sample, context: HalibutContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    season_score, season_label = seasonality(when.month)
    if when.month in CLOSED_MONTHS:
        return gated_result(SPECIES, VERSION, "Halibut season typically closed December-February")

    if context.swell_height is not None:
        swell_h = context.swell_height
    elif sample.swell_height is not None:
        swell_h = sample.swell_height
    else:
        swell_h = 0.5
    swell_t = context.swell_period or sample.swell_period or 8.0
    if swell_t < GATE_MAX_PERIOD_S and swell_h > GATE_MIN_HEIGHT_M:
        return gated_result(
            SPECIES,
            VERSION,
            f"UNFISHABLE: Short period chop ({swell_t:g}s/{swell_h:.1f}m). Cannot hold bottom or anchor safely.",
            is_safe=False,
            is_in_season=season_score > 0.3,
            advice=("Wait for better swell period.",),
        )

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)

    minutes = context.minutes_to_slack
    if minutes is None and tide is not None:
        minutes = tide.minutes_to_next
    current = abs(tide.current_speed) if tide is not None else abs(sample.current_speed or 0.0)

    if tide is None and minutes is None:
        slope_score, slope_label = 0.5, "no_tide_data"
    else:
        slope_score, slope_label = tidal_slope(current, minutes)
    b.add_factor("tidalSlope", minutes if minutes is not None else round(current, 2), slope_score, slope_label)

    if tide is None:
        range_score, range_label = 0.5, "no_data"
        range_m = 0.0
    else:
        range_m = abs(tide.tidal_range)
        range_score, range_label = tidal_range(range_m)
    b.add_factor("tidalRange", range_m, range_score, range_label)

    swell = swell_quality(swell_h, swell_t)
    b.add_factor("swellQuality", f"{swell_h:.1f}m/{swell_t:g}s", swell.score, swell.comfort)
    if swell.comfort == "dangerous":
        b.unsafe(swell.warning or "Dangerous swell")
    elif swell.warning:
        b.warn(swell.warning)

    wind = wind_knots(sample)
    wind_dir = context.wind_direction if context.wind_direction is not None else 0.0
    current_dir = context.current_direction if context.current_direction is not None else 180.0
    anchor = anchor_safety(wind, wind_dir, current, current_dir)
    b.add_factor("windTideSafety", f"{wind:.1f}kt", anchor.score, anchor.label)
    if not anchor.is_safe:
        b.unsafe(anchor.warning or "Dangerous wind against tide")
    elif anchor.warning:
        b.warn(anchor.warning)

    b.add_factor("seasonality", when.month, season_score, season_label)

    light_score, light_label = light_tide_interaction(
        sample.timestamp, context.sunrise, context.sunset, current, minutes
    )
    b.add_factor("lightTideInteraction", round(when.hour + when.minute / 60, 2), light_score, light_label)

    bait = detect_bait_presence(context.report_text)
    b.add_factor("baitScent", bait.presence, bait.score, bait.presence)
    if bait.presence in ("massive", "high"):
        b.advise("Strong bait scent. Anchor here - halibut will be staged below bait schools.")
    elif bait.presence == "none":
        b.advise("No bait reported. Use fresh cut bait and scent trail to attract fish.")
    else:
        b.advise(bait.recommendation)

    if current > MAX_CURRENT_KT:
        b.unsafe(f"Dangerous current: {current:.1f} knots")

    return b.build(
        is_in_season=season_score > 0.3,
        debug={
            "light_condition": light_label,
            "slack_proximity": slope_label,
            "anchor_safety_cap": anchor.is_capped,
        },
    )
