from __future__ import annotations

import math
from typing import List, Optional

from pydantic import BaseModel, Field

from .names import city_key, normalize_city_name

UNKNOWN_MARKET = "UNKNOWN"


# -----------------------------
# Directory records
# -----------------------------

class CityRecord(BaseModel):
    name: str
    state_or_province: str = Field(..., min_length=2, max_length=2)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    market_area_code: Optional[str] = None
    market_area_name: Optional[str] = None
    verified: Optional[bool] = None
    equipment_bias: List[str] = []

    @property
    def has_coordinates(self) -> bool:
        return (
            self.latitude is not None and self.longitude is not None
            and math.isfinite(self.latitude) and math.isfinite(self.longitude)
        )

    @property
    def key(self) -> str:
        return city_key(self.name, self.state_or_province)

    @property
    def market(self) -> str:
        return self.market_area_code or UNKNOWN_MARKET

    @property
    def is_market_anchor(self) -> bool:
        """True when the city is the namesake of its market (e.g. Chicago in "Chicago Mkt")."""
        if not self.market_area_name:
            return False
        anchor = normalize_city_name(self.market_area_name)
        return bool(anchor) and anchor == normalize_city_name(self.name)


class CandidateCity(CityRecord):
    distance_miles: float


class PairCandidate(BaseModel):
    origin: CandidateCity
    destination: CandidateCity
    score: float


# -----------------------------
# Crawl request/response models
# -----------------------------

class CityRef(BaseModel):
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=2, max_length=2)


class CrawlRequest(BaseModel):
    origin: CityRef
    destination: CityRef
    equipment: str = ""
    prefer_fill_to_10: bool = False


class CrawlMetadata(BaseModel):
    pair_count: int
    unique_origin_markets: int
    unique_dest_markets: int
    target_pairs: int
    target_markets: int
    origin_candidates: int = 0
    dest_candidates: int = 0
    origin_radius_miles: Optional[float] = None
    dest_radius_miles: Optional[float] = None
    origin_radii_tried: List[float] = []
    dest_radii_tried: List[float] = []
    insufficient_diversity: bool = False
    shortfall: int = 0
    equipment: str = ""


class CrawlResult(BaseModel):
    pairs: List[PairCandidate]
    base_origin: CityRecord
    base_destination: CityRecord
    metadata: CrawlMetadata
