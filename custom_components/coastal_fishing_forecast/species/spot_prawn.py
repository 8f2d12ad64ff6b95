"""
Spot prawn: deep trap fishing in a short regulated season.

Two gates run before any scoring: the season window, then a hard safety
check on wind and estimated sea state. The maximum safe current shrinks with
target depth, and the slack window implied by the tidal range multiplies the
total (neap tides reward, spring tides penalize).
"""
from __future__ import annotations

from datetime import date
from typing import Optional, Tuple

from ..astronomy import moon_illumination_pct, moon_phase_fraction
from ..contexts import SpotPrawnContext
from ..models import Sample, ScoreResult, TideState
from ..physics import catenary_drag, current_knots, slack_window, wind_knots
from ..scoring import ScoreBuilder, gated_result, local_datetime, validate_weights
from ..unit_helpers import estimate_wave_height, kmh_to_knots

SPECIES = "spot_prawn"
VERSION = "spotprawn-v2.0"

WEIGHTS = validate_weights({
    "catenaryDrag": 0.45,
    "slackWindow": 0.20,
    "intraSeason": 0.15,
    "darkness": 0.10,
    "retrievalSafety": 0.10,
})

MAX_WIND_KT = 20.0
MAX_WAVE_M = 1.5

CLOSED_MESSAGE = "Spot prawn season is closed. Check DFO for current season dates."
UNSAFE_GUIDANCE = "Wait for calm weather window - heavy traps in rough seas are extremely dangerous"


def season_status(day: date, season_open: Optional[date] = None, season_close: Optional[date] = None) -> Tuple[bool, int]:
    """Return (is_open, days_into_season). Defaults to May 15 - June 30."""
    if season_open is not None and season_close is not None:
        is_open = season_open <= day <= season_close
        return is_open, (day - season_open).days if is_open else 0
    if day.month == 5 and day.day >= 15:
        return True, day.day - 15
    if day.month == 6:
        return True, 16 + day.day
    return False, 0


def safety_gate(wind_kmh: float) -> Optional[str]:
    wind = kmh_to_knots(wind_kmh) or 0.0
    if wind > MAX_WIND_KT:
        return f"Unsafe: Wind {round(wind)} knots - too dangerous for deep water prawn fishing"
    wave = estimate_wave_height(wind_kmh, 5.0)
    if wave > MAX_WAVE_M:
        return f"Unsafe: Wave height {wave:.1f}m - too rough for trap operations"
    return None


def darkness(moon_illum_pct: float, is_night: bool):
    if is_night and moon_illum_pct < 25:
        return 1.0, "new_moon_ideal", "NEW MOON + NIGHT: Peak prawn activity - traps will be loaded!"
    if is_night and moon_illum_pct < 60:
        return 0.85, "dark", "Dark night - good prawn trap activity"
    if moon_illum_pct >= 75:
        return 0.5, "bright", "Full moon - prawns foraging visually, less trap-dependent"
    return 0.7, "moderate", "Moderate light conditions"


def retrieval_safety(wind_kt: float):
    if wind_kt < 10:
        return 1.0, "calm"
    if wind_kt < 15:
        return 0.7, "moderate"
    if wind_kt < 20:
        return 0.4, "rough"
    return 0.0, "rough"


def score(sample: Sample, context: SpotPrawnContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    is_open, days_in = season_status(when.date(), context.season_open, context.season_close)
    if not is_open:
        return gated_result(SPECIES, VERSION, CLOSED_MESSAGE)

    unsafe = safety_gate(sample.wind_speed or 0.0)
    if unsafe:
        return gated_result(SPECIES, VERSION, unsafe, is_safe=False, is_in_season=True, advice=(UNSAFE_GUIDANCE,))

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)
    depth = context.target_depth_ft

    current = current_knots(sample, tide)
    drag = catenary_drag(current, depth)
    b.add_factor("catenaryDrag", f"{current:.2f} kts @ {depth:g}ft", drag.score, drag.line_angle_risk)
    b.advise(drag.recommendation)
    if drag.line_angle_risk in ("severe", "impossible"):
        b.warn("Current too strong for safe retrieval - high gear loss risk")

    if tide is not None:
        tidal_range = abs(tide.tidal_range)
        window = slack_window(tidal_range)
        b.add_factor("slackWindow", f"{tidal_range:.1f}m exchange", window.score, f"{window.duration} ({window.estimated_minutes}min)")
        b.advise(window.recommendation)
        if window.multiplier > 1.0:
            b.bonus(window.multiplier, "neap_slack_window")
            b.advise(f"Neap tide bonus: {(window.multiplier - 1) * 100:.0f}% - extra time for deep work")
        elif window.multiplier < 1.0:
            b.bonus(window.multiplier, "spring_slack_window")
            b.advise(f"Spring tide penalty: {(1 - window.multiplier) * 100:.0f}% - short window stress")
        b.advise(f"Haul window: {window.estimated_minutes} min - plan trap count accordingly")
    else:
        b.add_factor("slackWindow", "no tide data", 0.5, "unknown")

    decay = max(0.2, 1.0 - days_in * 0.02)
    if days_in <= 7:
        season_label = "opening_week_peak"
        b.advise("Opening week - peak prawn density!")
    elif days_in <= 20:
        season_label = "mid_season"
    else:
        season_label = "late_season"
    if days_in > 30:
        b.advise("Late season - prawn density declining, focus on untouched areas")
    b.add_factor("intraSeason", f"Day {days_in}", decay, season_label)

    if context.moon_illumination is not None:
        illum = context.moon_illumination
    else:
        illum = moon_illumination_pct(moon_phase_fraction(when))
    is_night = (context.sunrise is not None and sample.timestamp < context.sunrise) or (
        context.sunset is not None and sample.timestamp > context.sunset
    )
    dark_score, dark_label, dark_advice = darkness(illum, is_night)
    b.add_factor("darkness", f"{round(illum)}% moon, {'night' if is_night else 'day'}", dark_score, dark_label)
    b.advise(dark_advice)

    wind = wind_knots(sample)
    retrieval_score, retrieval_label = retrieval_safety(wind)
    b.add_factor("retrievalSafety", f"{round(wind)} kts", retrieval_score, retrieval_label)

    b.advise(f"Deploy heavy weights (15lb+) for {depth:g}ft depth")
    return b.build(is_in_season=True, debug={"days_into_season": days_in, "max_safe_current": drag.max_safe_current})
