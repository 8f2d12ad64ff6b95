"""
Boat and gear mechanics shared by the species models.

Wind speeds are in knots unless a parameter says km/h; currents are in knots;
directions are compass degrees (wind FROM, current TOWARDS).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .models import Sample, TideState
from .scoring import Band, BandTable
from .unit_helpers import kmh_to_knots


# ---- Sample / tide accessors ----

def wind_knots(sample: Sample) -> float:
    return kmh_to_knots(sample.wind_speed) or 0.0


def current_knots(sample: Sample, tide: Optional[TideState]) -> float:
    """Current speed from the tide state, else the marine model, else 0."""
    if tide is not None:
        return abs(tide.current_speed)
    return abs(sample.current_speed or 0.0)


def cloud_cover(context_value: Optional[float], sample: Sample, default: float = 50.0) -> float:
    if context_value is not None:
        return float(context_value)
    if sample.cloud_cover is not None:
        return float(sample.cloud_cover)
    return default


def pressure_change(pressure: Optional[float], history: Sequence[float]) -> float:
    """hPa change from the oldest reading in ``history``; 0 without data."""
    if pressure is None or not history:
        return 0.0
    return float(pressure) - float(history[0])


def pressure_trend(change_hpa: float) -> str:
    if change_hpa < -2:
        return "crashing"
    if change_hpa < -0.5:
        return "falling"
    if change_hpa > 0.5:
        return "rising"
    return "stable"


# ---- Resultant drift (spot lock) ----

@dataclass(frozen=True)
class DriftResult:
    score: float
    drift_speed: float
    can_hold_position: bool
    recommendation: str


WIND_DRIFT_FACTOR = 0.04


def resultant_drift(wind_kt: float, wind_from_deg: float, current_kt: float, current_to_deg: float) -> DriftResult:
    """Vector sum of wind push and current; above 1.5 kt the spot cannot be held."""
    wind_drift = wind_kt * WIND_DRIFT_FACTOR
    wind_rad = math.radians((wind_from_deg + 180.0) % 360.0)
    current_rad = math.radians(current_to_deg)
    x = wind_drift * math.sin(wind_rad) + current_kt * math.sin(current_rad)
    y = wind_drift * math.cos(wind_rad) + current_kt * math.cos(current_rad)
    drift = math.hypot(x, y)

    can_hold = True
    if drift <= 0.3:
        score = 1.0
        rec = "Perfect spot lock conditions - anchor or drift very slowly over structure"
    elif drift <= 0.8:
        score = 0.9 - ((drift - 0.3) / 0.5) * 0.1
        rec = "Good positioning - minor motor corrections needed"
    elif drift <= 1.2:
        score = 0.7 - ((drift - 0.8) / 0.4) * 0.2
        rec = "Challenging - constant corrections required, consider controlled drift"
    elif drift <= 1.5:
        score = 0.4 - ((drift - 1.2) / 0.3) * 0.3
        rec = "Difficult - struggling to hold, drift fishing may be better option"
    else:
        score = max(0.1 - ((drift - 1.5) / 1.0) * 0.1, 0.0)
        rec = "Cannot hold position - too much drift for structure fishing"
        can_hold = False
    return DriftResult(max(score, 0.0), round(drift, 2), can_hold, rec)


# ---- Swell heave (vertical jig control) ----

@dataclass(frozen=True)
class HeaveResult:
    score: float
    heave_rate: float
    comfort: str
    warning: Optional[str] = None


def swell_heave(height_m: float, period_s: float) -> HeaveResult:
    """Peak vertical velocity of a sinusoidal swell, pi * H / T (m/s)."""
    if height_m < 0.3:
        return HeaveResult(1.0, 0.0, "stable")

    rate = math.pi * height_m / period_s if period_s > 0 else float("inf")
    warning = None
    if rate < 0.3:
        score, comfort = 1.0 - (rate / 0.3) * 0.1, "stable"
    elif rate < 0.5:
        score, comfort = 0.8 - ((rate - 0.3) / 0.2) * 0.2, "manageable"
    elif rate < 0.8:
        score, comfort = 0.5 - ((rate - 0.5) / 0.3) * 0.2, "uncomfortable"
        warning = "Swell causing significant boat heave - jig control compromised"
    else:
        score, comfort = max(0.2 - ((rate - 0.8) / 0.5) * 0.2, 0.0), "unfishable"
        warning = f"Severe heave ({rate:.2f} m/s) - vertical fishing not recommended"

    if height_m > 2.0:
        score = min(score, 0.2)
        comfort = "unfishable"
        warning = f"Swell height {height_m:.1f}m too large for structure fishing"
    return HeaveResult(max(score, 0.0), round(rate, 2) if math.isfinite(rate) else rate, comfort, warning)


# ---- Jigging conditions (period / height ratio) ----

@dataclass(frozen=True)
class JiggingResult:
    score: float
    ratio: float
    comfort: str
    warning: Optional[str] = None


_JIGGING_RATIO = BandTable(
    [
        Band(4.0, 0.2, "unfishable", inclusive=False),
        Band(6.0, 0.5, "difficult", inclusive=False),
        Band(8.0, 0.75, "good", inclusive=False),
    ],
    above=(1.0, "perfect"),
)


def jigging_conditions(height_m: float, period_s: float) -> JiggingResult:
    if height_m < 0.5:
        return JiggingResult(1.0, math.inf, "perfect")

    ratio = period_s / height_m
    score, comfort = _JIGGING_RATIO.lookup(ratio)
    warning = None
    if comfort == "unfishable":
        warning = "UNFISHABLE: Short steep chop - jig control impossible, high seasickness risk."
    elif comfort == "difficult":
        warning = "Difficult jigging conditions - short period swell causing jig bounce."

    if height_m > 2.0:
        score = min(score, 0.3)
        comfort = "unfishable"
        warning = f"UNFISHABLE: Swell height {height_m:.1f}m too large for structure fishing."
    return JiggingResult(score, ratio, comfort, warning)


# ---- Barometric stability ----

@dataclass(frozen=True)
class BarometricResult:
    score: float
    trend: str
    change_rate: float
    warning: Optional[str] = None


def barometric_stability(pressure: Optional[float], history: Sequence[float], hours: float = 3.0) -> BarometricResult:
    """Score the hourly pressure change rate; stable pressure scores highest."""
    if pressure is None or len(history) < 2:
        return BarometricResult(0.7, "stable", 0.0)

    rate = (float(pressure) - float(history[0])) / hours
    warning = None
    if -0.5 <= rate <= 0.5:
        score, trend = 0.95, "stable"
    elif 0.5 < rate <= 1.5:
        score, trend = 0.75 - (rate - 0.5) * 0.1, "rising"
    elif rate > 1.5:
        score, trend = 0.5 - ((rate - 1.5) / 2.0) * 0.2, "rising"
        warning = "Rapidly rising pressure - rockfish may be less active"
    elif rate >= -1.5:
        score, trend = 0.7 - (abs(rate) - 0.5) * 0.2, "falling"
    elif rate >= -3.0:
        score, trend = 0.4 - ((abs(rate) - 1.5) / 1.5) * 0.2, "falling"
        warning = "Falling pressure - rockfish bladders stressed, bite slowing"
    else:
        score, trend = max(0.2 - ((abs(rate) - 3.0) / 2.0) * 0.2, 0.0), "crashing"
        warning = "Pressure crashing - rockfish shut down due to bladder stress"
    return BarometricResult(max(score, 0.0), trend, round(rate, 2), warning)


# ---- Wind against tide ----

@dataclass(frozen=True)
class WindTideResult:
    score: float
    is_opposing: bool
    severity: str
    warning: Optional[str] = None


def wind_tide_interaction(wind_from_deg: float, wind_kt: float, current_to_deg: float, current_kt: float) -> WindTideResult:
    """Wind blowing against the current stacks up steep chop."""
    diff = abs(wind_from_deg - current_to_deg)
    if diff > 180:
        diff = 360 - diff
    opposing = diff > 135
    energy = wind_kt * 0.7 + current_kt * 0.3

    if opposing:
        if wind_kt > 20 or energy > 25:
            return WindTideResult(0.2, True, "dangerous", "DANGEROUS: Wind opposing tide creates steep, breaking waves. Small craft advisory.")
        if wind_kt > 15 or energy > 18:
            return WindTideResult(0.4, True, "rough", "CAUTION: Wind opposing tide. Expect steep chop and uncomfortable conditions.")
        if wind_kt > 10 or energy > 12:
            return WindTideResult(0.6, True, "moderate", "Wind opposing tide. Some chop expected.")
        return WindTideResult(0.8, True, "moderate")

    if diff < 45 and wind_kt < 20:
        return WindTideResult(1.0, False, "calm")
    if wind_kt > 25:
        return WindTideResult(0.5, False, "rough", "Strong winds despite favorable tide alignment.")
    if wind_kt > 15:
        return WindTideResult(0.7, False, "moderate")
    return WindTideResult(0.9, False, "calm")


# ---- Tidal shoulder (feeding vs. holding bottom) ----

@dataclass(frozen=True)
class ShoulderResult:
    feeding: float
    fishability: float
    combined: float
    phase: str
    recommendation: str


_SHOULDER = (
    (0.3, False, 0.7, 1.0, "dead_slack", "Dead slack - easy jigging but less aggressive feeding. Work the structure edges."),
    (0.5, False, 0.85, 0.9, "shoulder", "Current building - feeding activity increasing. Position upstream of structure."),
    (1.5, True, 1.0, 0.7, "shoulder", "PRIME TIME: Tidal shoulder - peak feeding aggression! Use heavier jigs (6-8oz)."),
    (2.0, True, 0.6, 0.4, "moderate_flow", "Strong current - use heavy gear or wait for it to ease."),
)


def tidal_shoulder(current_kt: float) -> ShoulderResult:
    feeding, fishability, phase, rec = 0.2, 0.1, "ripping", "Current too strong to hold bottom. Wait for slack window."
    for upper, inclusive, f, fi, p, r in _SHOULDER:
        if current_kt < upper or (inclusive and current_kt == upper):
            feeding, fishability, phase, rec = f, fi, p, r
            break
    return ShoulderResult(feeding, fishability, feeding * 0.6 + fishability * 0.4, phase, rec)


# ---- Trap gear: catenary drag and slack window ----

@dataclass(frozen=True)
class CatenaryResult:
    score: float
    max_safe_current: float
    line_angle_risk: str
    recommendation: str


def catenary_drag(current_kt: float, target_depth_ft: float = 300.0) -> CatenaryResult:
    """Blowback risk on a deep trap line; deeper sets tolerate less current."""
    max_safe = 1.1 - math.floor(target_depth_ft / 100.0) * 0.15
    depth = f"{target_depth_ft:g}ft"
    if current_kt <= 0.2:
        score, risk, rec = 1.0, "safe", f"Perfect slack - traps vertical at {depth}"
    elif current_kt <= max_safe:
        score, risk, rec = 0.8, "safe", f"Manageable current for {depth} - minimal blowback"
    elif current_kt <= max_safe + 0.15:
        score, risk, rec = 0.5, "moderate", f"Moderate blowback at {depth} - use extra weight (15lb+)"
    elif current_kt <= max_safe + 0.3:
        score, risk, rec = 0.2, "severe", "Severe blowback - rope angle >30 degrees, traps walking, high tangle risk"
    else:
        score, risk = 0.05, "impossible"
        rec = f"IMPOSSIBLE: Current {current_kt:.1f} kts too strong for {depth} - gear loss risk"
    return CatenaryResult(score, round(max_safe, 2), risk, rec)


@dataclass(frozen=True)
class SlackWindowResult:
    score: float
    duration: str
    estimated_minutes: int
    multiplier: float
    recommendation: str


_SLACK_WINDOWS = (
    (2.0, 1.0, "long", 70, 1.2, "NEAP TIDE: Long slack window (60+ min) - relaxed retrieval, perfect for 4+ traps"),
    (2.5, 0.85, "moderate", 45, 1.1, "Moderate slack window (45 min) - manageable for 3-4 traps"),
    (3.5, 0.6, "short", 30, 1.0, "Short slack window (30 min) - tight timing, 2-3 traps max"),
    (4.5, 0.4, "very_short", 20, 0.8, "Very short slack window (<20 min) - spring tide rush, risky for deep work"),
)


def slack_window(tidal_range_m: float) -> SlackWindowResult:
    """Estimated retrieval window from the tidal range; neap tides give long windows."""
    for upper, score, duration, minutes, mult, rec in _SLACK_WINDOWS:
        if tidal_range_m < upper:
            return SlackWindowResult(score, duration, minutes, mult, rec)
    return SlackWindowResult(0.2, "very_short", 15, 0.7, "Extreme spring tide - window too short for safe deep retrieval")


# ---- Swell quality (period / height comfort) ----

@dataclass(frozen=True)
class SwellQualityResult:
    score: float
    ratio: float
    comfort: str
    warning: Optional[str] = None


_SWELL_RATIO = (
    (8.0, 1.0, "comfortable", None),
    (5.0, 0.85, "comfortable", None),
    (4.0, 0.7, "moderate", None),
    (3.5, 0.5, "uncomfortable", "Short period swell. Expect choppy conditions."),
    (3.0, 0.3, "uncomfortable", "Very short period swell. Uncomfortable and potentially dangerous."),
)


def swell_quality(height_m: float, period_s: float) -> SwellQualityResult:
    """Long low swell rolls under the boat; short steep swell breaks."""
    if height_m <= 0.3:
        return SwellQualityResult(1.0, math.inf, "flat")

    ratio = period_s / height_m
    score, comfort, warning = 0.1, "dangerous", "DANGEROUS: Steep breaking waves. Not recommended for small craft."
    for lower, s, c, w in _SWELL_RATIO:
        if ratio >= lower:
            score, comfort, warning = s, c, w
            break

    if height_m > 3.0:
        score = min(score, 0.3)
        comfort = "dangerous"
        warning = f"DANGEROUS: Swell height {height_m:.1f}m exceeds safe threshold."
    elif height_m > 2.0 and ratio < 5.0:
        score = min(score, 0.4)
        if comfort != "dangerous":
            comfort = "uncomfortable"
        warning = warning or "Large swell with short period. Exercise caution."
    return SwellQualityResult(score, ratio, comfort, warning)


# ---- Freshet (river blowout) ----

@dataclass(frozen=True)
class FreshetResult:
    is_blown_out: bool
    severity: str
    turbidity_score: float
    cause: Optional[str] = None
    warning: Optional[str] = None


def freshet_status(precipitation_24h: float, max_temp_24h: float, month: int) -> FreshetResult:
    """River turbidity from a day of rain and, April to July, snowmelt heat.

    ``month`` is 1-12.
    """
    heavy_rain = precipitation_24h > 40
    freshet_season = 4 <= month <= 7
    snowmelt = freshet_season and max_temp_24h > 28

    if heavy_rain and snowmelt:
        return FreshetResult(True, "blown_out", 0.0, "both",
                             "BLOWN OUT: Heavy rain + snowmelt. Rivers unfishable. Try offshore or wait 2-3 days.")
    if heavy_rain:
        return FreshetResult(True, "blown_out", 0.1, "heavy_rain",
                             "BLOWN OUT: Heavy rain. River mouths and estuaries muddy. Wait 24-48 hours.")
    if snowmelt:
        return FreshetResult(True, "blown_out", 0.15, "snowmelt",
                             "FRESHET: Hot weather causing snowmelt runoff. Rivers glacial and turbid.")
    if precipitation_24h > 25:
        return FreshetResult(False, "muddy", 0.4, warning="Moderate rain may cause stained water near river mouths.")
    if precipitation_24h > 15:
        return FreshetResult(False, "stained", 0.7, warning="Light rain may stain water slightly.")
    if freshet_season and max_temp_24h > 20:
        return FreshetResult(False, "stained", 0.6, warning="Warm temps during freshet season. Some glacial runoff possible.")
    return FreshetResult(False, "clear", 1.0)


# ---- Trollability (blowback on deep trolling gear) ----

@dataclass(frozen=True)
class TrollabilityResult:
    score: float
    blowback: str
    depth_penalty: int  # percent of target depth lost
    warning: Optional[str] = None
    recommendation: Optional[str] = None


LARGE_EXCHANGE_M = 3.5
SLACK_WINDOW_MIN = 90


def trollability(tidal_range_m: float, minutes_to_slack: float, current_kt: Optional[float] = None) -> TrollabilityResult:
    """Large exchanges blow gear off depth except inside the slack window."""
    near_slack = minutes_to_slack <= SLACK_WINDOW_MIN
    current = current_kt or 0.0
    if tidal_range_m > LARGE_EXCHANGE_M and not near_slack:
        hours = minutes_to_slack / 60.0
        if hours > 4 or current > 3.5:
            return TrollabilityResult(0.2, "untrollable", 70,
                                      "BLOWBACK: Peak tidal exchange. Cannot maintain depth. Wait for slack.",
                                      "Wait 2-3 hours until slack tide window.")
        if hours > 3 or current > 2.5:
            return TrollabilityResult(0.35, "heavy", 50, "Heavy blowback conditions. Difficult to reach depth.",
                                      "Add weight or wait for current to ease.")
        if hours > 2 or current > 1.5:
            return TrollabilityResult(0.55, "moderate", 30, "Moderate blowback. May struggle to reach target depth.",
                                      "Use heavier gear or shorten lines.")
        return TrollabilityResult(0.75, "light", 15, recommendation="Some blowback - adjust gear accordingly.")
    if tidal_range_m > LARGE_EXCHANGE_M:
        return TrollabilityResult(1.0, "none", 0,
                                  recommendation="Slack window during large exchange - PRIME TIME for deep trolling!")
    if tidal_range_m > 2.5 and minutes_to_slack > 150:
        return TrollabilityResult(0.8, "light", 10)
    return TrollabilityResult(1.0, "none", 0)


# ---- Pressure trend over 3 h and 6 h ----

READINGS_PER_3H = 12  # 15-minute samples


def pressure_trend_score(pressure: Optional[float], history: Sequence[float]):
    """(score, trend) rewarding a falling barometer; absolute bands without history."""
    if pressure is None:
        return 0.5, "stable"
    if len(history) < 2:
        if pressure < 1008:
            return 0.9, "stable"
        if pressure < 1013:
            return 0.7, "stable"
        if pressure <= 1017:
            return 0.5, "stable"
        if pressure <= 1022:
            return 0.4, "stable"
        return 0.2, "stable"

    three_h_ago = history[-READINGS_PER_3H] if len(history) >= READINGS_PER_3H else history[0]
    delta_3h = float(pressure) - float(three_h_ago)
    delta_6h = float(pressure) - float(history[0])
    if delta_6h < -2.5 or delta_3h < -1.5:
        return 1.0, "rapidly_falling"
    if delta_6h < -1.0 or delta_3h < -0.5:
        return 0.85, "falling"
    if -1.0 <= delta_6h <= 1.0 and -0.5 <= delta_3h <= 0.5:
        return 0.5, "stable"
    return 0.25, "rising"
