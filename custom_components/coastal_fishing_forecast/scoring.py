"""
Scoring contract shared by every species model.

A model turns (Sample, context, tide) into a ScoreResult:

- factor scores are in [0, 1] and weighted; weights must sum to 1.0
- total = sum(score * weight) * 10, then bonus multipliers in the order they
  were declared, then any floors, then the safety cap (3.0) when any safety
  gate tripped, then any other caps, then a clamp into [0, 10], rounded to
  2 decimals
- closed seasonal or regulatory gates short-circuit to total 0 with no
  factors and is_in_season False

Breakpoint tables and piecewise-linear curves are validated when the model
module is imported, so a malformed table fails at load rather than at scoring.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .const import SAFETY_CAP
from .models import FactorScore, ScoreResult
from .unit_helpers import clamp

_LOGGER = logging.getLogger(__name__)


def validate_weights(weights: Mapping[str, float]) -> Mapping[str, float]:
    """Raise ValueError unless the weights are non-negative and sum to 1.0."""
    if any(w < 0 for w in weights.values()):
        raise ValueError(f"Negative factor weight in {dict(weights)}")
    total = sum(weights.values())
    if not math.isclose(total, 1.0, abs_tol=1e-9):
        raise ValueError(f"Factor weights must sum to 1.0, got {total}")
    return weights


@dataclass(frozen=True)
class Band:
    upper: float
    score: float
    label: str
    inclusive: bool = True


class BandTable:
    """Sorted breakpoint table mapping a value to (score, label).

    The first band whose upper bound admits the value wins; values above the
    last band map to ``above``.
    """

    def __init__(self, bands: Sequence[Band], above: Tuple[float, str]) -> None:
        uppers = [b.upper for b in bands]
        if uppers != sorted(uppers):
            raise ValueError(f"Band breakpoints must be ascending: {uppers}")
        self._bands = tuple(bands)
        self._above = above

    def lookup(self, value: float) -> Tuple[float, str]:
        for band in self._bands:
            if value < band.upper or (band.inclusive and value == band.upper):
                return band.score, band.label
        return self._above


class LinearSegments:
    """Piecewise-linear curve through sorted (x, y) points; flat outside the range."""

    def __init__(self, points: Sequence[Tuple[float, float]]) -> None:
        xs = [p[0] for p in points]
        if len(xs) < 2 or xs != sorted(xs):
            raise ValueError(f"Segment x values must be ascending with at least two points: {xs}")
        self._xs = np.asarray(xs, dtype=float)
        self._ys = np.asarray([p[1] for p in points], dtype=float)

    def __call__(self, x: float) -> float:
        return float(np.interp(x, self._xs, self._ys))


class ScoreBuilder:
    """Accumulates factors, bonuses, safety trips and caps for one evaluation."""

    def __init__(self, species: str, version: str, weights: Mapping[str, float]) -> None:
        self.species = species
        self.version = version
        self._weights = validate_weights(weights)
        self._factors: Dict[str, FactorScore] = {}
        self._bonuses: List[Tuple[float, str]] = []
        self._caps: List[Tuple[float, str]] = []
        self._floors: List[Tuple[float, str]] = []
        self._warnings: List[str] = []
        self._advice: List[str] = []
        self.is_safe = True

    def add_factor(self, name: str, value: Any, score: float, description: str = "") -> float:
        weight = self._weights[name]
        score = clamp(float(score))
        self._factors[name] = FactorScore(value=value, weight=weight, score=score, description=description)
        return score

    def bonus(self, multiplier: float, reason: str) -> None:
        self._bonuses.append((float(multiplier), reason))

    def unsafe(self, warning: str) -> None:
        self.is_safe = False
        self._warnings.append(warning)

    def warn(self, text: str) -> None:
        self._warnings.append(text)

    def advise(self, text: str) -> None:
        self._advice.append(text)

    def cap(self, limit: float, reason: str) -> None:
        self._caps.append((float(limit), reason))

    def floor(self, minimum: float, reason: str) -> None:
        """Raise the post-bonus total to ``minimum``; safety still caps it."""
        self._floors.append((float(minimum), reason))

    def build(self, is_in_season: bool = True, debug: Optional[Dict[str, Any]] = None) -> ScoreResult:
        total = sum(f.score * f.weight for f in self._factors.values()) * 10.0
        for multiplier, _reason in self._bonuses:
            total *= multiplier
        for minimum, _reason in self._floors:
            total = max(total, minimum)
        if not self.is_safe:
            total = min(total, SAFETY_CAP)
        for limit, _reason in self._caps:
            total = min(total, limit)
        total = round(clamp(total, 0.0, 10.0), 2)

        info = dict(debug or {})
        info["bonuses"] = [{"multiplier": m, "reason": r} for m, r in self._bonuses]
        info["caps"] = [{"limit": c, "reason": r} for c, r in self._caps]
        info["floors"] = [{"minimum": m, "reason": r} for m, r in self._floors]
        return ScoreResult(
            species=self.species,
            total=total,
            factors=dict(self._factors),
            is_safe=self.is_safe,
            is_in_season=is_in_season,
            algorithm_version=self.version,
            warnings=tuple(self._warnings),
            advice=tuple(self._advice),
            debug=info,
        )


def gated_result(
    species: str,
    version: str,
    message: str,
    *,
    is_safe: bool = True,
    is_in_season: bool = False,
    advice: Sequence[str] = (),
) -> ScoreResult:
    """Short-circuit result for a closed gate: total 0 and no factors."""
    return ScoreResult(
        species=species,
        total=0.0,
        factors={},
        is_safe=is_safe,
        is_in_season=is_in_season,
        algorithm_version=version,
        warnings=(message,),
        advice=tuple(advice),
        debug={"gate": message},
    )


def local_datetime(timestamp: int, utc_offset_seconds: int = 0) -> datetime:
    return datetime.fromtimestamp(int(timestamp), tz=timezone(timedelta(seconds=int(utc_offset_seconds))))


def day_of_year(dt: datetime) -> int:
    return dt.timetuple().tm_yday
