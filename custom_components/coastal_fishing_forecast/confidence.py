"""
Data confidence from source availability and tide-station proximity.

Low confidence pulls a fishing score toward the neutral 5.0.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from .const import CONFIDENCE_NEUTRAL, TIDE_FALLBACK
from .models import DataSourceMetadata
from .scoring import Band, BandTable
from .unit_helpers import clamp

_LOGGER = logging.getLogger(__name__)

FALLBACK_TIDE_CONFIDENCE = 0.30
CONFIDENCE_WEIGHTS = {"weather": 0.40, "marine": 0.20, "tide": 0.40}

_TIDE_DISTANCE = BandTable(
    [
        Band(5.0, 0.95, "very_close"),
        Band(10.0, 0.85, "close"),
        Band(15.0, 0.70, "nearby"),
        Band(20.0, 0.50, "distant"),
    ],
    above=(0.30, "far"),
)


@dataclass(frozen=True)
class ConfidenceScores:
    overall: float
    weather: float
    marine: float
    tide: float
    tide_station_distance_km: Optional[float] = None
    tide_station_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def tide_confidence_by_distance(distance_km: Optional[float], provenance: Optional[str] = None) -> float:
    if provenance == TIDE_FALLBACK:
        return FALLBACK_TIDE_CONFIDENCE
    if distance_km is None:
        return 0.0
    return _TIDE_DISTANCE.lookup(float(distance_km))[0]


def compute_confidence(metadata: DataSourceMetadata) -> ConfidenceScores:
    """Score each source and blend them with ``CONFIDENCE_WEIGHTS``.

    Weather and tide tie for the largest weight (0.40 each); marine carries 0.20.
    """
    weather = 0.90 if metadata.enrichment_available else 0.80
    marine = 0.80 if metadata.marine else 0.0
    tide = tide_confidence_by_distance(metadata.tide_station_distance_km, metadata.tide) if metadata.tide else 0.0
    overall = round(
        weather * CONFIDENCE_WEIGHTS["weather"]
        + marine * CONFIDENCE_WEIGHTS["marine"]
        + tide * CONFIDENCE_WEIGHTS["tide"],
        2,
    )
    _LOGGER.debug("Confidence weather=%s marine=%s tide=%s overall=%s", weather, marine, tide, overall)
    return ConfidenceScores(
        overall=overall,
        weather=weather,
        marine=marine,
        tide=tide,
        tide_station_distance_km=metadata.tide_station_distance_km,
        tide_station_name=metadata.tide_station_name,
    )


def apply_confidence_to_score(raw_score: float, confidence: float, neutral: float = CONFIDENCE_NEUTRAL) -> float:
    """Regress ``raw_score`` toward ``neutral`` by (1 - confidence)."""
    confidence = clamp(float(confidence))
    adjusted = neutral + (float(raw_score) - neutral) * confidence
    return clamp(round(adjusted, 2), 0.0, 10.0)
