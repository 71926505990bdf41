from __future__ import annotations
import os, json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

log = logging.getLogger(__name__)

DEFAULT_RADII_MILES = [75.0, 100.0, 125.0]

def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name, str(default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")

def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except Exception:
        return float(default)

def _env_int(name: str, default: int) -> int:
    try:
        return int(float(os.getenv(name, str(default))))
    except Exception:
        return int(default)

def _env_list(name: str, default: List[float]) -> List[float]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    try:
        return [float(p) for p in raw.split(",") if p.strip()]
    except ValueError:
        return list(default)


class ScoringWeights(BaseModel):
    distance_scale: float = Field(1.0, gt=0)
    market_bonus: float = Field(0.5, ge=0)
    verified_bonus: float = Field(0.05, ge=0)
    equipment_bonus: float = Field(0.05, ge=0)


class CrawlSettings(BaseModel):
    radii_miles: List[float] = Field(default_factory=lambda: list(DEFAULT_RADII_MILES))
    per_group_cap: int = Field(20, ge=1)
    total_cap: Optional[int] = Field(None, ge=1)
    min_markets: int = Field(5, ge=1)
    min_markets_fill: int = Field(6, ge=1)
    max_pairs: int = Field(6, ge=1)
    max_pairs_fill: int = Field(10, ge=1)
    parallel_endpoints: bool = False
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)

    @field_validator("radii_miles")
    @classmethod
    def _sorted_positive_radii(cls, v: List[float]) -> List[float]:
        radii = sorted({float(r) for r in v if float(r) > 0})
        return radii or list(DEFAULT_RADII_MILES)

    def target_markets(self, prefer_fill_to_10: bool) -> int:
        return self.min_markets_fill if prefer_fill_to_10 else self.min_markets

    def target_pairs(self, prefer_fill_to_10: bool) -> int:
        return self.max_pairs_fill if prefer_fill_to_10 else self.max_pairs


def dataset_dir() -> Path:
    base = Path(os.getenv("PRIVATE_DATA_DIR", "./data/private")).resolve()
    d = base / "active"
    return d if d.exists() else base

def _load_json(path: Path, default: Any) -> Any:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except Exception as e:
        log.warning("Ignoring unreadable %s: %s", path.name, e)
    return default

def _env_overrides() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    scoring: Dict[str, Any] = {}
    if os.getenv("CRAWL_RADII_MILES"):
        out["radii_miles"] = _env_list("CRAWL_RADII_MILES", DEFAULT_RADII_MILES)
    for field, env in (
        ("per_group_cap", "CRAWL_PER_GROUP_CAP"),
        ("min_markets", "CRAWL_MIN_MARKETS"),
        ("min_markets_fill", "CRAWL_MIN_MARKETS_FILL"),
        ("max_pairs", "CRAWL_MAX_PAIRS"),
        ("max_pairs_fill", "CRAWL_MAX_PAIRS_FILL"),
    ):
        if os.getenv(env):
            out[field] = _env_int(env, CrawlSettings.model_fields[field].default)
    if os.getenv("CRAWL_TOTAL_CAP"):
        cap = _env_int("CRAWL_TOTAL_CAP", 0)
        out["total_cap"] = cap if cap > 0 else None
    if os.getenv("CRAWL_PARALLEL_ENDPOINTS"):
        out["parallel_endpoints"] = _env_bool("CRAWL_PARALLEL_ENDPOINTS", False)
    for field, env in (
        ("distance_scale", "CRAWL_DISTANCE_SCALE"),
        ("market_bonus", "CRAWL_MARKET_BONUS"),
        ("verified_bonus", "CRAWL_VERIFIED_BONUS"),
        ("equipment_bonus", "CRAWL_EQUIPMENT_BONUS"),
    ):
        if os.getenv(env):
            scoring[field] = _env_float(env, ScoringWeights.model_fields[field].default)
    if scoring:
        out["scoring"] = scoring
    return out

def load_crawl_settings() -> CrawlSettings:
    """crawl_settings.json from the dataset dir, then CRAWL_* env vars on top."""
    raw = _load_json(dataset_dir() / "crawl_settings.json", {})
    if not isinstance(raw, dict):
        raw = {}
    env = _env_overrides()
    merged = {**raw, **{k: v for k, v in env.items() if k != "scoring"}}
    if "scoring" in env:
        merged["scoring"] = {**(raw.get("scoring") or {}), **env["scoring"]}
    try:
        return CrawlSettings(**merged)
    except ValidationError as e:
        log.warning("Invalid crawl settings, using defaults: %s", e)
        return CrawlSettings()
