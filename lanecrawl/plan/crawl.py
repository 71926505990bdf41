from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, MutableSet, Optional, Set, Tuple

from lanecrawl.directory import CityDirectory

from .assignment import assign_max_weight
from .config import CrawlSettings
from .errors import CityNotFound
from .models import (
    CandidateCity, CityRecord, CityRef, CrawlMetadata, CrawlRequest, CrawlResult, PairCandidate,
)
from .scoring import build_score_matrix
from .selector import Center, DiverseSelection, SelectionOptions, select_diverse

log = logging.getLogger(__name__)


@dataclass
class EndpointSearch:
    selection: DiverseSelection
    radius_miles: Optional[float] = None
    radii_tried: List[float] = field(default_factory=list)
    raw_candidates: int = 0

    @property
    def met_target(self) -> bool:
        return self.radius_miles is not None


def _resolve_base(directory: CityDirectory, ref: CityRef, side: str) -> CityRecord:
    rec = directory.find_by_name_state(ref.city, ref.state)
    if rec is None:
        raise CityNotFound(side, ref.city, ref.state)
    if not rec.has_coordinates:
        raise CityNotFound(side, ref.city, ref.state, reason="has no coordinates")
    return rec


def expanding_radius_search(
    directory: CityDirectory,
    base: CityRecord,
    settings: CrawlSettings,
    target_markets: int,
    exclude: frozenset = frozenset(),
) -> EndpointSearch:
    """
    Query the directory at each configured radius (smallest first) and stop at
    the first selection with at least target_markets distinct markets. If none
    gets there, the last (widest) selection is returned.
    """
    center = Center.from_record(base)
    opts = SelectionOptions(per_group_cap=settings.per_group_cap, total_cap=settings.total_cap, exclude=exclude)
    search = EndpointSearch(selection=DiverseSelection())
    for radius in settings.radii_miles:
        found = directory.find_within_radius(center.lat, center.lon, radius)
        selection = select_diverse(center, found, radius, opts)
        search.radii_tried.append(radius)
        search.selection = selection
        search.raw_candidates = len(found)
        log.info(
            "crawl %s, %s r=%.0fmi: %d raw, %d selected, %d markets (target %d)",
            base.name, base.state_or_province, radius, len(found), len(selection),
            selection.unique_markets, target_markets,
        )
        if selection.unique_markets >= target_markets:
            search.radius_miles = radius
            break
    return search


def _pair_rounds(
    origin_sel: DiverseSelection,
    dest_sel: DiverseSelection,
    target_pairs: int,
    settings: CrawlSettings,
    equipment: str,
) -> List[PairCandidate]:
    """
    Round k offers the k-th ranked city of every market on each side, plus
    whatever went unmatched last round, and solves one assignment per round.
    Markets accepted in earlier rounds lose their diversity bonus. A round that
    needs fewer pairs than it could match solves for exactly that many.
    """
    o_groups = list(origin_sel.by_market().values())
    d_groups = list(dest_sel.by_market().values())
    used_o: Set[str] = set()
    used_d: Set[str] = set()
    carry_o: List[CandidateCity] = []
    carry_d: List[CandidateCity] = []
    pairs: List[PairCandidate] = []
    depth = 0

    while len(pairs) < target_pairs:
        rows = carry_o + [g[depth] for g in o_groups if len(g) > depth]
        cols = carry_d + [g[depth] for g in d_groups if len(g) > depth]
        if not rows or not cols:
            break
        scores = build_score_matrix(rows, cols, settings.scoring, used_o, used_d, equipment)
        matches = assign_max_weight(scores, limit=target_pairs - len(pairs))
        if not matches:
            break
        taken_r: Set[int] = set()
        taken_c: Set[int] = set()
        for r, c in matches:
            pairs.append(PairCandidate(origin=rows[r], destination=cols[c], score=float(scores[r, c])))
            used_o.add(rows[r].market)
            used_d.add(cols[c].market)
            taken_r.add(r)
            taken_c.add(c)
        carry_o = [x for i, x in enumerate(rows) if i not in taken_r]
        carry_d = [x for i, x in enumerate(cols) if i not in taken_c]
        depth += 1
    return pairs


def _search_both(
    directory: CityDirectory,
    base_origin: CityRecord,
    base_dest: CityRecord,
    settings: CrawlSettings,
    target_markets: int,
    exclude: frozenset,
) -> Tuple[EndpointSearch, EndpointSearch]:
    if settings.parallel_endpoints:
        with ThreadPoolExecutor(max_workers=2) as pool:
            fo = pool.submit(expanding_radius_search, directory, base_origin, settings, target_markets, exclude)
            fd = pool.submit(expanding_radius_search, directory, base_dest, settings, target_markets, exclude)
            return fo.result(), fd.result()
    return (
        expanding_radius_search(directory, base_origin, settings, target_markets, exclude),
        expanding_radius_search(directory, base_dest, settings, target_markets, exclude),
    )


def generate_diverse_pairs(
    req: CrawlRequest,
    directory: CityDirectory,
    settings: Optional[CrawlSettings] = None,
    used_cities: Optional[MutableSet[str]] = None,
) -> CrawlResult:
    """
    Alternate origin/destination city pairs for one lane.

    used_cities is owned by the caller: city keys in it are never offered, and
    every city returned here is added to it. Callers sharing one set across
    concurrent crawls must serialize those crawls.
    """
    settings = settings or CrawlSettings()
    base_origin = _resolve_base(directory, req.origin, "origin")
    base_dest = _resolve_base(directory, req.destination, "destination")

    target_markets = settings.target_markets(req.prefer_fill_to_10)
    target_pairs = settings.target_pairs(req.prefer_fill_to_10)
    exclude = frozenset(used_cities) if used_cities is not None else frozenset()

    o_search, d_search = _search_both(directory, base_origin, base_dest, settings, target_markets, exclude)
    pairs = _pair_rounds(o_search.selection, d_search.selection, target_pairs, settings, req.equipment)

    if used_cities is not None:
        for p in pairs:
            used_cities.add(p.origin.key)
            used_cities.add(p.destination.key)

    uniq_o = len({p.origin.market for p in pairs if p.origin.market_area_code})
    uniq_d = len({p.destination.market for p in pairs if p.destination.market_area_code})
    insufficient = not (o_search.met_target and d_search.met_target)
    if insufficient:
        log.warning(
            "crawl %s, %s -> %s, %s: diversity target %d not met (origin %d, destination %d markets)",
            base_origin.name, base_origin.state_or_province, base_dest.name, base_dest.state_or_province,
            target_markets, o_search.selection.unique_markets, d_search.selection.unique_markets,
        )

    metadata = CrawlMetadata(
        pair_count=len(pairs),
        unique_origin_markets=uniq_o,
        unique_dest_markets=uniq_d,
        target_pairs=target_pairs,
        target_markets=target_markets,
        origin_candidates=len(o_search.selection),
        dest_candidates=len(d_search.selection),
        origin_radius_miles=o_search.selection.radius_miles if o_search.radii_tried else None,
        dest_radius_miles=d_search.selection.radius_miles if d_search.radii_tried else None,
        origin_radii_tried=o_search.radii_tried,
        dest_radii_tried=d_search.radii_tried,
        insufficient_diversity=insufficient,
        shortfall=max(0, target_pairs - len(pairs)),
        equipment=req.equipment.strip().upper(),
    )
    log.info(
        "crawl %s, %s -> %s, %s: %d pairs (%d/%d markets)",
        base_origin.name, base_origin.state_or_province, base_dest.name, base_dest.state_or_province,
        len(pairs), uniq_o, uniq_d,
    )
    return CrawlResult(pairs=pairs, base_origin=base_origin, base_destination=base_dest, metadata=metadata)
