"""
Lingcod: ambush predators that feed on the tidal shoulder.

Closed January to March for spawning protection. Feeding peaks when the
current builds through 0.5-1.5 kt rather than at dead slack; jig control
depends on the swell period/height ratio and rockfish in the reports mean
lingcod are hunting nearby.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..bio_intel import detect_rockfish_indicator
from ..contexts import LingcodContext
from ..models import Sample, ScoreResult, TideState
from ..physics import current_knots, jigging_conditions, tidal_shoulder, wind_knots, wind_tide_interaction
from ..scoring import ScoreBuilder, gated_result, local_datetime, validate_weights
from ..unit_helpers import estimate_wave_height

SPECIES = "lingcod"
VERSION = "lingcod-v2.0"

WEIGHTS = validate_weights({
    "tidalShoulder": 0.35,
    "swellQuality": 0.20,
    "seasonality": 0.15,
    "bioIntel": 0.15,
    "windTideSafety": 0.15,
})

PRIME_TIME_BONUS = 1.15


@dataclass(frozen=True)
class SeasonalStrategy:
    mode: str
    depth_range: str
    multiplier: float
    advice: str


CLOSED_SEASON = SeasonalStrategy("closed", "N/A", 0.0, "Season closed for Lingcod spawning protection")

_STRATEGIES = {
    4: SeasonalStrategy("standard", "80-140ft", 1.0, "Standard depth range 80-140ft. Work structure edges."),
    5: SeasonalStrategy(
        "shallow_aggressive", "40-80ft", 1.15,
        "SHALLOW BITE: Target 40-80ft. Males guarding structure are hyper-aggressive. Use large swimbaits.",
    ),
    7: SeasonalStrategy("standard", "60-120ft", 1.0, "Standard depths 60-120ft. Fish transitioning - try multiple depth zones."),
    8: SeasonalStrategy(
        "deep_females", "120-200ft", 1.1,
        "DEEP BITE: Target 120-200ft pinnacles. Big females have moved offshore. Use heavy jigs (8-12oz).",
    ),
    10: SeasonalStrategy("standard", "80-150ft", 1.1, "Pre-spawn feeding frenzy. Fish 80-150ft. Aggressive strikes expected."),
}
_STRATEGIES[6] = _STRATEGIES[5]
_STRATEGIES[9] = _STRATEGIES[8]
_STRATEGIES[11] = _STRATEGIES[4]
_STRATEGIES[12] = _STRATEGIES[4]


def seasonal_strategy(month: int) -> SeasonalStrategy:
    return _STRATEGIES.get(month, CLOSED_SEASON)


def score(sample: Sample, context: LingcodContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    strategy = seasonal_strategy(when.month)
    if strategy.mode == "closed":
        return gated_result(
            SPECIES,
            VERSION,
            "Lingcod season CLOSED (January-March) - no retention allowed",
            advice=(strategy.advice,),
        )

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)

    current = current_knots(sample, tide)
    shoulder = tidal_shoulder(current)
    b.add_factor("tidalShoulder", round(current, 2), shoulder.combined, f"{shoulder.phase} - {shoulder.recommendation}")
    b.advise(shoulder.recommendation)

    wind_kmh = sample.wind_speed or 0.0
    if context.swell_height is not None:
        swell_h = context.swell_height
    elif sample.swell_height is not None:
        swell_h = sample.swell_height
    else:
        swell_h = estimate_wave_height(wind_kmh, 2.0) if wind_kmh > 0 else 0.5
    swell_t = context.swell_period or sample.swell_period or 8.0
    jig = jigging_conditions(swell_h, swell_t)
    ratio = "inf" if jig.ratio == float("inf") else f"{jig.ratio:.1f}"
    b.add_factor("swellQuality", f"{swell_t:g}s / {swell_h:.1f}m", jig.score, f"Puke ratio {ratio} - {jig.comfort}")
    if jig.comfort == "unfishable":
        b.unsafe(jig.warning or "Unfishable swell")
    elif jig.warning:
        b.warn(jig.warning)
    if jig.warning:
        b.advise(jig.warning)

    b.add_factor("seasonality", when.month, strategy.multiplier, f"{strategy.mode} - Target {strategy.depth_range}")
    b.advise(f"Depth Strategy: {strategy.depth_range} ({strategy.mode})")
    b.advise(strategy.advice)

    intel = detect_rockfish_indicator(context.report_text)
    b.add_factor(
        "bioIntel",
        ", ".join(intel.keywords) if intel.keywords else "none",
        1.0 if intel.detected else 0.5,
        f"{'prey detected' if intel.detected else 'no prey signal'} - {intel.multiplier}x multiplier",
    )
    if intel.recommendation:
        b.advise(intel.recommendation)

    wind = wind_knots(sample)
    wind_dir = context.wind_direction if context.wind_direction is not None else (sample.wind_direction or 0.0)
    if context.current_direction is not None:
        current_dir = context.current_direction
    elif tide is not None and tide.current_direction is not None:
        current_dir = tide.current_direction
    else:
        current_dir = 0.0 if (tide is not None and tide.is_rising) else 180.0
    interaction = wind_tide_interaction(wind_dir, wind, current_dir, current)
    b.add_factor("windTideSafety", f"Wind {round(wind)}kts @ {wind_dir:g}°", interaction.score, interaction.severity)
    if interaction.severity == "dangerous":
        b.unsafe(interaction.warning)
    elif interaction.warning:
        b.warn(interaction.warning)

    if intel.multiplier > 1.0:
        b.bonus(intel.multiplier, intel.confidence)
        b.advise(f"Rockfish indicator bonus: {(intel.multiplier - 1) * 100:.0f}%")
    if strategy.multiplier != 1.0:
        b.bonus(strategy.multiplier, strategy.mode)
        b.advise(f"{strategy.mode} season bonus: {(strategy.multiplier - 1) * 100:.0f}%")

    prime_time = shoulder.phase == "shoulder" and jig.comfort == "perfect" and intel.detected
    if prime_time:
        b.bonus(PRIME_TIME_BONUS, "prime_time")
        b.advise("PRIME TIME: Shoulder tide + calm seas + prey present!")

    return b.build(
        is_in_season=True,
        debug={
            "prime_time": prime_time,
            "tidal_direction": ("flood" if tide.is_rising else "ebb") if tide else None,
            "depth_range": strategy.depth_range,
        },
    )
