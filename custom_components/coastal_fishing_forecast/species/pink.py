"""
Pink salmon: odd-year chaos feeders.

Southern BC pinks only run in odd years, so an even year returns zero.
Schools stack on ebb rip lines off the estuaries and need a light "salmon
chop" to hide the leader. Runs are all-or-nothing, so report intel boosts
or penalizes the total whatever the weather.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from ..bio_intel import detect_pink_schooling
from ..contexts import PinkContext
from ..models import Sample, ScoreResult, TideState
from ..physics import cloud_cover, wind_knots
from ..scoring import Band, BandTable, ScoreBuilder, day_of_year, gated_result, local_datetime, validate_weights

SPECIES = "pink"
VERSION = "pink-v2.0"

WEIGHTS = validate_weights({
    "estuaryFlush": 0.30,
    "surfaceTexture": 0.20,
    "schoolingIntel": 0.20,
    "seasonality": 0.15,
    "lightConditions": 0.10,
    "waterClarity": 0.05,
})

PEAK_DAY = 227  # Aug 15
SEASON_START = 201
SEASON_END = 273
SEASON_WIDTH = 25.0

SURFACE_TEXTURE = BandTable(
    [
        Band(3.0, 0.5, "glass_calm", inclusive=False),
        Band(12.0, 1.0, "pink_ripple"),
        Band(18.0, 0.8, "choppy"),
    ],
    above=(0.4, "rough"),
)

TEXTURE_ADVICE = {
    "glass_calm": "Glass calm - Pinks are line-shy and skittish, switch to lighter leaders",
    "pink_ripple": "Perfect salmon chop - surface disturbance hides leader, fish feel safe",
    "choppy": "Choppy but fishable - schools may go slightly deeper for stability",
    "rough": "Too rough - schools dispersing deep, surface fishing difficult",
}

_EBB_FLUSH = BandTable(
    [
        Band(1.0, 0.5, "weak"),
        Band(2.0, 0.65, "moderate"),
        Band(3.0, 0.85, "strong"),
    ],
    above=(1.0, "massive"),
)

_FLUSH_ADVICE = {
    "weak": "Weak ebb - minimal rip line definition",
    "moderate": "Moderate ebb - some rip line formation",
    "strong": "Strong ebb - defined rip lines, target color/temp breaks",
    "massive": "MASSIVE EBB: Hard rip lines trapping krill - fish the seams!",
}


@dataclass(frozen=True)
class EstuaryFlush:
    score: float
    rip_strength: str
    tide_drop: float
    recommendation: str


def estuary_flush(tidal_range_m: float, is_ebb: bool) -> EstuaryFlush:
    if not is_ebb:
        return EstuaryFlush(0.4, "weak", 0.0, "Flood tide - Pinks running up-river, harder to catch in salt")
    score, strength = _EBB_FLUSH.lookup(tidal_range_m)
    return EstuaryFlush(score, strength, round(tidal_range_m, 2), _FLUSH_ADVICE[strength])


def seasonality(year: int, doy: int):
    """Gaussian around mid-August, zero outside the window or in even years."""
    if year % 2 == 0:
        return 0.0, "even_year_no_run"
    if doy < SEASON_START or doy > SEASON_END:
        return 0.0, "outside_season"
    score = math.exp(-((abs(doy - PEAK_DAY) / SEASON_WIDTH) ** 2))
    if 213 <= doy <= 243:
        label = "peak_run"
    elif doy < 213:
        label = "early_run"
    elif doy <= 258:
        label = "late_run"
    else:
        label = "tail_end"
    return max(0.1, score), label


def light_conditions(hour: int, cloud_pct: float):
    golden = 5 <= hour <= 8 or 18 <= hour <= 21
    if golden:
        return 1.0, "golden_hour"
    if 12 <= hour <= 15 and cloud_pct > 60:
        return 0.7, "overcast"
    if 9 <= hour <= 11 or 16 <= hour <= 17:
        return 0.7, "overcast" if cloud_pct > 60 else "bright"
    return 0.6, "overcast" if cloud_pct > 60 else "bright"


def water_clarity(rain_24h: float):
    if rain_24h > 30:
        return 0.3, "murky"
    if rain_24h > 15:
        return 0.5, "turbid"
    if rain_24h > 5:
        return 1.0, "slightly_colored"
    return 1.0, "clear"


def score(sample: Sample, context: PinkContext, tide: Optional[TideState] = None) -> ScoreResult:
    when = local_datetime(sample.timestamp, context.utc_offset_seconds)
    if when.year % 2 == 0:
        return gated_result(
            SPECIES,
            VERSION,
            f"Even year ({when.year}) - Pink Salmon runs are negligible in Southern BC",
            advice=(f"Wait for next odd year ({when.year + 1}) for Pink runs",),
        )

    b = ScoreBuilder(SPECIES, VERSION, WEIGHTS)

    tidal_range = abs(tide.tidal_range) if tide is not None else 0.0
    flush = estuary_flush(tidal_range, tide is not None and not tide.is_rising)
    b.add_factor("estuaryFlush", f"{flush.tide_drop}m drop", flush.score, f"{flush.rip_strength} rip")
    b.advise(flush.recommendation)

    wind = wind_knots(sample)
    texture_score, texture = SURFACE_TEXTURE.lookup(wind)
    b.add_factor("surfaceTexture", f"{round(wind)} kts", texture_score, texture)
    b.advise(TEXTURE_ADVICE[texture])
    if wind > 20:
        b.unsafe(f"Unsafe: Wind {round(wind)} knots")

    intel = detect_pink_schooling(context.report_text)
    b.add_factor(
        "schoolingIntel",
        ", ".join(intel.keywords) if intel.keywords else "no reports",
        1.0 if intel.detected else 0.5,
        intel.confidence,
    )
    if intel.confidence == "strong_run":
        b.advise("STRONG RUN REPORTED: Schools are in - get on the water!")
    elif intel.confidence == "slow":
        b.advise("Reports indicate slow fishing - be prepared for tough conditions")

    season_score, season_label = seasonality(when.year, day_of_year(when))
    b.add_factor("seasonality", when.month, season_score, season_label)

    clouds = cloud_cover(context.cloud_cover, sample)
    light_score, light_label = light_conditions(when.hour, clouds)
    b.add_factor("lightConditions", f"{when.hour}:00, {clouds:g}% cloud", light_score, light_label)
    if 12 <= when.hour <= 15 and clouds > 60:
        b.advise("Overcast conditions help midday bite")

    if context.precipitation_24h is not None:
        rain_24h = context.precipitation_24h
    else:
        rain_24h = (sample.precipitation or 0.0) * 24
    clarity_score, clarity = water_clarity(rain_24h)
    b.add_factor("waterClarity", f"{rain_24h:.1f}mm/24h", clarity_score, clarity)
    if clarity == "murky":
        b.advise("Very murky - consider waiting for water to clear")
    elif clarity == "turbid":
        b.advise("Turbid water from rain - Pinks struggle to see lures")

    if (sample.precipitation or 0.0) > 20:
        b.unsafe("Unsafe: Heavy precipitation/potential thunderstorm")

    if intel.multiplier != 1.0:
        b.bonus(intel.multiplier, intel.confidence)
        if intel.multiplier > 1.0:
            b.advise(f"Run confirmed bonus: {(intel.multiplier - 1) * 100:.0f}%")
        else:
            b.advise(f"Slow reports penalty: {(1 - intel.multiplier) * 100:.0f}%")

    return b.build(
        is_in_season=season_score > 0.1,
        debug={"day_of_year": day_of_year(when), "rip_strength": flush.rip_strength, "texture": texture},
    )
