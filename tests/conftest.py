# tests/conftest.py
import math
from importlib import reload
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import pytest
from fastapi.testclient import TestClient

from lanecrawl.directory import city_record_from_row
from lanecrawl.plan.geo import haversine_miles
from lanecrawl.plan.models import CityRecord
from lanecrawl.plan.names import city_key

CHICAGO = {"city": "Chicago", "state_or_province": "IL", "latitude": 41.8781, "longitude": -87.6298,
           "kma_code": "IL_CHI", "kma_name": "Chicago Mkt"}
ATLANTA = {"city": "Atlanta", "state_or_province": "GA", "latitude": 33.7488, "longitude": -84.3877,
           "kma_code": "GA_ATL", "kma_name": "Atlanta Mkt"}


def ring_rows(prefix: str, state: str, lat: float, lon: float, markets: int = 6,
              miles: float = 40.0, per_market: int = 3, spacing: float = 5.0) -> List[dict]:
    """
    Synthetic cities around (lat, lon): one spoke per market, per_market towns
    along each spoke at miles, miles+spacing, ...  Town "a" is the market's namesake.
    """
    rows = []
    for k in range(markets):
        bearing = math.radians(360.0 * k / markets)
        for m in range(per_market):
            d = miles + spacing * m
            rows.append({
                "city": f"{prefix} {k}{chr(97 + m)}",
                "state_or_province": state,
                "latitude": lat + d * math.cos(bearing) / 69.0,
                "longitude": lon + d * math.sin(bearing) / (69.0 * math.cos(math.radians(lat))),
                "kma_code": f"{state}_{prefix.upper()}{k}",
                "kma_name": f"{prefix} {k}a Mkt",
                "here_verified": True,
            })
    return rows


def lane_rows() -> List[dict]:
    return (
        [dict(CHICAGO), dict(ATLANTA)]
        + ring_rows("Chi", "IL", CHICAGO["latitude"], CHICAGO["longitude"], markets=6, miles=40.0)
        + ring_rows("Atl", "GA", ATLANTA["latitude"], ATLANTA["longitude"], markets=6, miles=40.0)
    )


class RecordingDirectory:
    """
    Directory stub. Radius queries return the base's ring filtered by true
    distance, unless a per-radius schedule is given for that base.
    """

    def __init__(self, bases: List[dict], rings: Optional[Dict[str, List[dict]]] = None,
                 schedule: Optional[Dict[str, Dict[float, List[dict]]]] = None):
        self.bases = {r.key: r for r in (city_record_from_row(b) for b in bases)}
        self.rings = {k: [city_record_from_row(r) for r in rows] for k, rows in (rings or {}).items()}
        self.schedule = {
            k: {float(m): [city_record_from_row(r) for r in rows] for m, rows in by_r.items()}
            for k, by_r in (schedule or {}).items()
        }
        self.name_calls: List[tuple] = []
        self.radius_calls: List[tuple] = []

    def _base_at(self, lat: float, lon: float) -> Optional[CityRecord]:
        for rec in self.bases.values():
            if abs(rec.latitude - lat) < 1e-9 and abs(rec.longitude - lon) < 1e-9:
                return rec
        return None

    def find_by_name_state(self, name, state):
        self.name_calls.append((name, state))
        return self.bases.get(city_key(name, state))

    def find_within_radius(self, lat, lon, miles):
        base = self._base_at(lat, lon)
        key = base.key if base else None
        self.radius_calls.append((key, float(miles)))
        if key in self.schedule:
            return list(self.schedule[key].get(float(miles), []))
        return [r for r in self.rings.get(key, []) if haversine_miles(lat, lon, r.latitude, r.longitude) <= miles]

    def radii_for(self, key: str) -> List[float]:
        return [m for k, m in self.radius_calls if k == key]


@pytest.fixture
def ring():
    return ring_rows


@pytest.fixture
def lane_directory():
    """Chicago and Atlanta with six three-town markets around each."""
    return RecordingDirectory(
        bases=[CHICAGO, ATLANTA],
        rings={
            "chicago|IL": ring_rows("Chi", "IL", CHICAGO["latitude"], CHICAGO["longitude"]),
            "atlanta|GA": ring_rows("Atl", "GA", ATLANTA["latitude"], ATLANTA["longitude"]),
        },
    )


@pytest.fixture
def directory_factory():
    return RecordingDirectory


@pytest.fixture
def chicago():
    return dict(CHICAGO)


@pytest.fixture
def atlanta():
    return dict(ATLANTA)


@pytest.fixture(autouse=True)
def _env_test_data(monkeypatch, tmp_path: Path):
    """
    Tiny dataset under a temp PRIVATE_DATA_DIR: cities.csv with Chicago,
    Atlanta and six synthetic markets around each.
    """
    data_root = tmp_path / "data"
    data_root.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(lane_rows()).to_csv(data_root / "cities.csv", index=False)

    monkeypatch.setenv("PRIVATE_DATA_DIR", str(data_root))
    monkeypatch.delenv("CITY_DIRECTORY_URL", raising=False)
    for name in (
        "CRAWL_RADII_MILES", "CRAWL_PER_GROUP_CAP", "CRAWL_TOTAL_CAP", "CRAWL_MIN_MARKETS",
        "CRAWL_MIN_MARKETS_FILL", "CRAWL_MAX_PAIRS", "CRAWL_MAX_PAIRS_FILL", "CRAWL_PARALLEL_ENDPOINTS",
        "CRAWL_DISTANCE_SCALE", "CRAWL_MARKET_BONUS", "CRAWL_VERIFIED_BONUS", "CRAWL_EQUIPMENT_BONUS",
    ):
        monkeypatch.delenv(name, raising=False)

    yield data_root  # tmp_path is auto-cleaned


@pytest.fixture
def app(_env_test_data):
    # Import AFTER env vars/files so startup readers find our toy data
    import backend.main as bm
    bm = reload(bm)
    return bm.app


@pytest.fixture
def client(app):
    c = TestClient(app)
    r = c.post("/admin/reload")
    assert r.status_code == 200, f"/admin/reload failed: {r.status_code} {r.text}"
    return c
