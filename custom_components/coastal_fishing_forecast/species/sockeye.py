"""
Sockeye salmon: a regulated fishery where angler reports beat the calendar.

A closed DFO fishery short-circuits to zero. Report text is scanned for
commercial openings and school sightings; a confirmed run multiplies the
total by up to 1.5x and lifts the off-calendar cap that otherwise holds the
score at 2.0 when run timing is poor.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..bio_intel import detect_sockeye_intel
from ..contexts import SockeyeContext
from ..models import Sample, ScoreResult, TideState
from ..physics import cloud_cover, current_knots, wind_knots
from ..scoring import Band, BandTable, LinearSegments, ScoreBuilder, day_of_year, gated_result, local_datetime, validate_weights
from ..unit_helpers import estimate_wave_height

SPECIES = "sockeye"
VERSION = "sockeye-v2.0"

WEIGHTS = validate_weights({
    "bioIntel": 0.35,
    "thermalBlockade": 0.25,
    "tidalTreadmill": 0.20,
    "runTiming": 0.15,
    "corridorLight": 0.05,
})

OFF_CALENDAR_CAP = 2.0
RUN_CONFIRMED = ("massive_run", "confirmed_schools")
DEFAULT_RIVER_TEMP = 15.0
DEFAULT_SUN_ELEVATION = 30.0


@dataclass(frozen=True)
class RiverRun:
    river: str
    peak_start: int  # day of year
    peak_end: int


MAJOR_RUNS = (
    RiverRun("Fraser River (Early Stuart)", 182, 196),
    RiverRun("Fraser River (Early Summer)", 196, 213),
    RiverRun("Fraser River (Summer)", 213, 244),
    RiverRun("Fraser River (Late Summer)", 244, 274),
    RiverRun("Skeena River", 196, 227),
    RiverRun("Nass River", 182, 213),
)

RUN_WINDOW_DAYS = 14

THERMAL_BLOCKADE = BandTable(
    [
        Band(15.0, 0.3, "highway", inclusive=False),
        Band(17.0, 0.6, "passable", inclusive=False),
        Band(19.0, 0.85, "holding", inclusive=False),
    ],
    above=(1.0, "blocked"),
)

THERMAL_ADVICE = {
    "blocked": "THERMAL BLOCKADE: River too hot - massive Sockeye stacking in saltwater!",
    "holding": "Warm river - Sockeye hesitating at river mouth, good saltwater fishing",
    "passable": "Moderate temps - fish moving through, some holding",
    "highway": "Cold river - fish shooting straight through to spawn, minimal saltwater holding",
}


def fishery_status(month: int, doy: int, fishery_open: Optional[bool]) -> Tuple[str, str]:
    if fishery_open is not None:
        if fishery_open:
            return "open", "DFO fishery is open for Sockeye"
        return "closed", "DFO Sockeye fishery is currently closed"
    if 7 <= month <= 8 and 196 <= doy <= 244:
        return "unknown", "Sockeye season possible - check DFO announcements for current openings"
    return "closed", "Sockeye fishery typically closed. Check DFO for any special openings."


def run_timing(doy: int, target_river: Optional[str] = None) -> Tuple[float, str, Optional[str]]:
    """Best score across the major runs (optionally filtered by river name)."""
    best, label, matched = 0.0, "off_season", None
    for run in MAJOR_RUNS:
        if target_river and target_river.lower() not in run.river.lower():
            continue
        early = run.peak_start - RUN_WINDOW_DAYS
        late = run.peak_end + RUN_WINDOW_DAYS
        if run.peak_start <= doy <= run.peak_end:
            score, desc = 1.0, "peak_run"
        elif early <= doy < run.peak_start:
            score, desc = LinearSegments([(early, 0.5), (run.peak_start, 1.0)])(doy), "early_run"
        elif run.peak_end < doy <= late:
            score, desc = LinearSegments([(run.peak_end, 1.0), (late, 0.5)])(doy), "late_run"
        elif early - RUN_WINDOW_DAYS <= doy < early:
            score, desc = 0.3, "early_scouts"
        else:
            continue
        if score > best:
            best, label, matched = score, desc, run.river
    return max(best, 0.1), label, matched


def tidal_treadmill(is_ebb: bool, current_kt: float) -> Tuple[float, str, str]:
    if is_ebb:
        if current_kt > 1.5:
            return 1.0, "excellent", "EBB TREADMILL: Fish holding against current - near-zero ground speed, perfect flossing!"
        if current_kt > 0.8:
            return 0.85, "good", "Good ebb - fish moving slowly, manageable interception"
        return 0.6, "fair", "Light ebb - some resistance but fish still mobile"
    if current_kt > 2.0:
        return 0.3, "poor", "Strong flood - fish running fast, very difficult interception"
    if current_kt > 1.0:
        return 0.5, "fair", "Moderate flood - fish moving with tide, challenging interception"
    return 0.7, "good", "Light flood - fish assisted but still slow, workable"


def depth_corridor(sun_elevation: float, cloud_pct: float) -> Tuple[str, str]:
    if sun_elevation < 10 or cloud_pct > 80:
        return "25-45ft", "Low light - fish comfortable shallow"
    if sun_elevation < 30 or cloud_pct > 50:
        return "40-60ft", "Moderate light - mid-depth corridor"
    if sun_elevation > 40 and cloud_pct < 30:
        return "65-90ft", "High sun - fish pushed deep for light avoidance"
    return "50-70ft", "Standard corridor depth"


def score(sample: Sample, context: SockeyeContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    doy = day_of_year(when)
    status, status_message = fishery_status(when.month, doy, context.fishery_open)
    if status == "closed":
        return gated_result(
            SPECIES,
            VERSION,
            status_message,
            advice=("Check DFO for emergency openings or test fishery announcements",),
        )

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)
    if status == "unknown":
        b.warn(status_message)

    intel = detect_sockeye_intel(context.report_text)
    b.add_factor(
        "bioIntel",
        ", ".join(intel.keywords) if intel.keywords else "no reports",
        1.0 if intel.detected else 0.5,
        intel.confidence,
    )
    if intel.confidence == "massive_run":
        b.advise("COMMERCIAL OPENING or MASSIVE RUN confirmed - get on the water NOW!")
    elif intel.confidence == "confirmed_schools":
        b.advise("Schools confirmed - fish are present")

    river_temp = context.river_temperature if context.river_temperature is not None else DEFAULT_RIVER_TEMP
    blockade_score, river_status = THERMAL_BLOCKADE.lookup(river_temp)
    b.add_factor("thermalBlockade", f"River {river_temp:.1f}°C", blockade_score, river_status)
    b.advise(THERMAL_ADVICE[river_status])

    current = current_knots(sample, tide)
    is_ebb = tide is not None and not tide.is_rising
    treadmill_score, quality, treadmill_advice = tidal_treadmill(is_ebb, current)
    b.add_factor("tidalTreadmill", f"{'Ebb' if is_ebb else 'Flood'} {current:.1f} kts", treadmill_score, quality)
    b.advise(treadmill_advice)

    run_score, run_label, matched = run_timing(doy, context.target_river)
    b.add_factor("runTiming", doy, run_score, run_label + (f" ({matched})" if matched else ""))

    sun = context.sun_elevation if context.sun_elevation is not None else DEFAULT_SUN_ELEVATION
    clouds = cloud_cover(context.cloud_cover, sample)
    depth, rationale = depth_corridor(sun, clouds)
    if sun < 10 or clouds > 80:
        light_score = 1.0
    elif sun > 40 and clouds < 30:
        light_score = 0.7
    else:
        light_score = 0.85
    b.add_factor("corridorLight", f"Sun {round(sun)}°, {clouds:g}% cloud", light_score, rationale)
    b.advise(f"Target Depth: {depth} ({rationale})")
    b.advise("Use short leaders (18-24in) and slow troll (1.5-2.5 kts) for flossing")

    if context.precipitation_24h is not None:
        rain_24h = context.precipitation_24h
    else:
        rain_24h = (sample.precipitation or 0.0) * 24
    if rain_24h > 20:
        b.advise("Heavy river outflow - target outer plume edges (further offshore)")

    wind = wind_knots(sample)
    wave = sample.wave_height if sample.wave_height is not None else estimate_wave_height(sample.wind_speed, 5.0)
    if wind > 25:
        b.unsafe(f"Unsafe: Wind {round(wind)} knots")
    elif wave > 2.0:
        b.unsafe(f"Unsafe: Wave height {wave:.1f}m")

    if intel.multiplier > 1.0:
        b.bonus(intel.multiplier, intel.confidence)
        b.advise(f"Run confirmed bonus: {(intel.multiplier - 1) * 100:.0f}%")

    run_confirmed = intel.confidence in RUN_CONFIRMED
    if run_score < 0.3 and not run_confirmed:
        b.cap(OFF_CALENDAR_CAP, "outside_run_timing")

    return b.build(
        is_in_season=(run_score >= 0.3 or run_confirmed),
        debug={"fishery_status": status, "matched_run": matched, "river_status": river_status},
    )
