"""Species scoring models keyed by species id."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from ..contexts import AlgorithmContext, CONTEXT_TYPES
from ..models import Sample, ScoreResult, TideState
from . import chinook, chum, coho, halibut, lingcod, pink, rockfish, sockeye, spot_prawn

ScoreFn = Callable[[Sample, AlgorithmContext, Optional[TideState]], ScoreResult]


@dataclass(frozen=True)
class SpeciesModel:
    score: ScoreFn
    context_cls: Type[AlgorithmContext]
    version: str


SPECIES_MODELS: Dict[str, SpeciesModel] = {
    module.SPECIES: SpeciesModel(module.score, CONTEXT_TYPES[module.SPECIES], module.VERSION)
    for module in (chum, rockfish, spot_prawn, sockeye, pink, lingcod, chinook, coho, halibut)
}


def score_species(
    species: str,
    sample: Sample,
    context: AlgorithmContext,
    tide: Optional[TideState] = None,
) -> ScoreResult:
    """Score one sample for ``species``; unknown ids raise KeyError."""
    return SPECIES_MODELS[species].score(sample, context, tide)
