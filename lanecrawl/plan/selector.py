from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, List, Optional

from .geo import haversine_miles
from .models import CandidateCity, CityRecord, UNKNOWN_MARKET
from .names import city_key

log = logging.getLogger(__name__)

DEFAULT_PER_GROUP_CAP = 20
RADIUS_TOLERANCE_MILES = 1e-9


@dataclass(frozen=True)
class Center:
    name: str
    state: str
    lat: float
    lon: float

    @classmethod
    def from_record(cls, rec: CityRecord) -> "Center":
        return cls(name=rec.name, state=rec.state_or_province, lat=rec.latitude, lon=rec.longitude)

    @property
    def key(self) -> str:
        return city_key(self.name, self.state)


@dataclass(frozen=True)
class SelectionOptions:
    per_group_cap: int = DEFAULT_PER_GROUP_CAP
    total_cap: Optional[int] = None
    exclude: AbstractSet[str] = frozenset()


@dataclass
class DiverseSelection:
    """Alternate cities around one center, contiguous per market, anchor city first."""
    cities: List[CandidateCity] = field(default_factory=list)
    radius_miles: float = 0.0

    def __len__(self) -> int:
        return len(self.cities)

    def by_market(self) -> Dict[str, List[CandidateCity]]:
        groups: Dict[str, List[CandidateCity]] = {}
        for c in self.cities:
            groups.setdefault(c.market, []).append(c)
        return groups

    def market_codes(self) -> List[str]:
        return list(self.by_market())

    @property
    def unique_markets(self) -> int:
        return sum(1 for m in self.by_market() if m != UNKNOWN_MARKET)


def _rank_key(c: CandidateCity):
    # distance first, verified wins exact ties, name keeps it deterministic
    return (c.distance_miles, c.verified is not True, c.key)


def _order_group(group: List[CandidateCity]) -> List[CandidateCity]:
    ordered = sorted(group, key=_rank_key)
    for i, c in enumerate(ordered):
        if c.is_market_anchor:
            if i > 0:
                ordered.insert(0, ordered.pop(i))
            break
    return ordered


def _allowances(sizes: List[int], total_cap: Optional[int]) -> List[int]:
    """Per-group slot counts: round-robin so every market gets one before any gets two."""
    if total_cap is None or sum(sizes) <= total_cap:
        return list(sizes)
    taken = [0] * len(sizes)
    left = total_cap
    depth = 0
    while left > 0:
        progressed = False
        for i, n in enumerate(sizes):
            if left == 0:
                break
            if n > depth:
                taken[i] += 1
                left -= 1
                progressed = True
        if not progressed:
            break
        depth += 1
    return taken


def _candidates_within(center: Center, candidates: Iterable[CityRecord], radius_miles: float,
                       exclude: AbstractSet[str]) -> Dict[str, CandidateCity]:
    kept: Dict[str, CandidateCity] = {}
    self_key = center.key
    for rec in candidates:
        if not rec.has_coordinates:
            continue
        key = rec.key
        if key == self_key or key in exclude:
            continue
        dist = haversine_miles(center.lat, center.lon, rec.latitude, rec.longitude)
        if dist > radius_miles + RADIUS_TOLERANCE_MILES:
            continue
        cand = CandidateCity(**rec.model_dump(), distance_miles=dist)
        prev = kept.get(key)
        # spelling variants of one city collapse to the better-ranked record
        if prev is None or _rank_key(cand) < _rank_key(prev):
            kept[key] = cand
    return kept


def select_diverse(
    center: Center,
    candidates: Iterable[CityRecord],
    radius_miles: float,
    opts: Optional[SelectionOptions] = None,
) -> DiverseSelection:
    opts = opts or SelectionOptions()
    kept = _candidates_within(center, candidates, float(radius_miles), opts.exclude)
    if not kept:
        return DiverseSelection(cities=[], radius_miles=float(radius_miles))

    groups: Dict[str, List[CandidateCity]] = {}
    for c in kept.values():
        groups.setdefault(c.market, []).append(c)

    ordered = [_order_group(g)[: opts.per_group_cap] for g in groups.values()]
    ordered.sort(key=lambda g: (g[0].distance_miles, g[0].market))

    allowances = _allowances([len(g) for g in ordered], opts.total_cap)
    cities: List[CandidateCity] = []
    for g, n in zip(ordered, allowances):
        cities.extend(g[:n])

    log.debug(
        "select_diverse %s, %s r=%.0f: %d kept, %d markets, %d returned",
        center.name, center.state, radius_miles, len(kept), len(groups), len(cities),
    )
    return DiverseSelection(cities=cities, radius_miles=float(radius_miles))
