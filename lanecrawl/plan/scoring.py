from __future__ import annotations
from typing import AbstractSet, List, Optional

import numpy as np

from .config import ScoringWeights
from .models import CandidateCity


def _side_multiplier(c: CandidateCity, used_markets: AbstractSet[str], weights: ScoringWeights,
                     equipment: str) -> float:
    m = 1.0
    if c.market not in used_markets:
        m *= 1.0 + weights.market_bonus
    if c.verified is True:
        m *= 1.0 + weights.verified_bonus
    if equipment and equipment in {str(e).strip().upper() for e in c.equipment_bias}:
        m *= 1.0 + weights.equipment_bonus
    return m


def pair_score(
    origin: CandidateCity,
    destination: CandidateCity,
    weights: Optional[ScoringWeights] = None,
    used_origin_markets: AbstractSet[str] = frozenset(),
    used_dest_markets: AbstractSet[str] = frozenset(),
    equipment: str = "",
) -> float:
    """
    1 / (1 + combined miles / distance_scale), boosted per side for a market
    not yet used in this crawl, a verified record and an equipment match.
    """
    w = weights or ScoringWeights()
    eq = equipment.strip().upper()
    base = 1.0 / (1.0 + (origin.distance_miles + destination.distance_miles) / w.distance_scale)
    return (
        base
        * _side_multiplier(origin, used_origin_markets, w, eq)
        * _side_multiplier(destination, used_dest_markets, w, eq)
    )


def build_score_matrix(
    origins: List[CandidateCity],
    destinations: List[CandidateCity],
    weights: Optional[ScoringWeights] = None,
    used_origin_markets: AbstractSet[str] = frozenset(),
    used_dest_markets: AbstractSet[str] = frozenset(),
    equipment: str = "",
) -> np.ndarray:
    w = weights or ScoringWeights()
    eq = equipment.strip().upper()
    o_dist = np.array([c.distance_miles for c in origins], dtype=float)
    d_dist = np.array([c.distance_miles for c in destinations], dtype=float)
    o_mult = np.array([_side_multiplier(c, used_origin_markets, w, eq) for c in origins], dtype=float)
    d_mult = np.array([_side_multiplier(c, used_dest_markets, w, eq) for c in destinations], dtype=float)

    base = 1.0 / (1.0 + (o_dist[:, None] + d_dist[None, :]) / w.distance_scale)
    return base * o_mult[:, None] * d_mult[None, :]
