"""
City directory gateways.

The crawl engine only needs two read queries (exact name/state lookup and a
radius query). Two implementations live here:

  * FrameCityDirectory - an in-memory pandas table, usually loaded from
    cities.csv in the dataset directory.
  * RestCityDirectory  - a PostgREST-style HTTP backend (cities table plus a
    find_cities_within_radius RPC).

Both return CityRecord; city_record_from_row() is the single place that
understands the various column spellings found in exported city tables.
"""
from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

import numpy as np
import pandas as pd
import requests
from pydantic import ValidationError

from lanecrawl.plan.geo import bounding_box_from_radius, haversine_miles_many
from lanecrawl.plan.models import CityRecord
from lanecrawl.plan.names import city_key, normalize_state

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class CityDirectory(Protocol):
    def find_by_name_state(self, name: str, state: str) -> Optional[CityRecord]: ...

    def find_within_radius(self, lat: float, lon: float, miles: float) -> List[CityRecord]: ...


# -----------------------------
# Row adapter
# -----------------------------

def _pick(row: Mapping[str, Any], *names: str) -> Any:
    for n in names:
        v = row.get(n)
        if v is None:
            continue
        if isinstance(v, float) and math.isnan(v):
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None

def _coord(v: Any) -> Optional[float]:
    if v is None:
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None

def _flag(v: Any) -> Optional[bool]:
    if v is None:
        return None
    if isinstance(v, (bool, np.bool_)):
        return bool(v)
    s = str(v).strip().lower()
    if s in ("1", "true", "t", "yes", "y"):
        return True
    if s in ("0", "false", "f", "no", "n"):
        return False
    return None

def _bias(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, (list, tuple, set)):
        items = list(v)
    else:
        items = str(v).replace(";", ",").split(",")
    return [str(e).strip().upper() for e in items if str(e).strip()]

def city_record_from_row(row: Mapping[str, Any]) -> Optional[CityRecord]:
    """Map a directory row in any of the known column spellings to a CityRecord."""
    name = _pick(row, "name", "city")
    state = _pick(row, "state_or_province", "state")
    if name is None or state is None:
        return None
    code = _pick(row, "market_area_code", "kma_code", "kma")
    try:
        return CityRecord(
            name=str(name).strip(),
            state_or_province=normalize_state(state),
            latitude=_coord(_pick(row, "latitude", "lat")),
            longitude=_coord(_pick(row, "longitude", "lng", "lon")),
            market_area_code=str(code).strip().upper() if code is not None else None,
            market_area_name=_pick(row, "market_area_name", "kma_name"),
            verified=_flag(_pick(row, "verified", "here_verified")),
            equipment_bias=_bias(_pick(row, "equipment_bias")),
        )
    except ValidationError as e:
        log.debug("Skipping malformed city row %r: %s", dict(row), e)
        return None


# -----------------------------
# pandas-backed directory
# -----------------------------

class FrameCityDirectory:
    def __init__(self, df: pd.DataFrame):
        records = [city_record_from_row(r) for r in df.to_dict(orient="records")] if df is not None else []
        self._records: List[CityRecord] = [r for r in records if r is not None]
        self._by_key: Dict[str, CityRecord] = {}
        for rec in self._records:
            self._by_key.setdefault(rec.key, rec)
        located = [r for r in self._records if r.has_coordinates]
        self._located = located
        self._lats = np.array([r.latitude for r in located], dtype=float)
        self._lons = np.array([r.longitude for r in located], dtype=float)
        skipped = (len(df) if df is not None else 0) - len(self._records)
        if skipped:
            log.warning("FrameCityDirectory skipped %d malformed rows", skipped)

    @classmethod
    def from_csv(cls, path: Path | str) -> "FrameCityDirectory":
        return cls(pd.read_csv(path))

    def __len__(self) -> int:
        return len(self._records)

    def find_by_name_state(self, name: str, state: str) -> Optional[CityRecord]:
        return self._by_key.get(city_key(name, state))

    def find_within_radius(self, lat: float, lon: float, miles: float) -> List[CityRecord]:
        if not self._located:
            return []
        box = bounding_box_from_radius(lat, lon, miles)
        in_box = (
            (self._lats >= box.min_lat) & (self._lats <= box.max_lat)
            & (self._lons >= box.min_lon) & (self._lons <= box.max_lon)
        )
        idx = np.flatnonzero(in_box)
        if idx.size == 0:
            return []
        dist = haversine_miles_many(lat, lon, self._lats[idx], self._lons[idx])
        return [self._located[int(i)] for i in idx[dist <= miles]]


# -----------------------------
# PostgREST-backed directory
# -----------------------------

class RestCityDirectory:
    """
    Reads the cities table over HTTP. HTTP errors and timeouts propagate
    untouched; retry policy belongs to whoever owns the session.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        radius_rpc: str = "find_cities_within_radius",
    ):
        self.base = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.session = session or requests.Session()
        self.radius_rpc = radius_rpc
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_key:
            self.headers["apikey"] = api_key
            self.headers["Authorization"] = f"Bearer {api_key}"

    def find_by_name_state(self, name: str, state: str) -> Optional[CityRecord]:
        resp = self.session.get(
            f"{self.base}/rest/v1/cities",
            params={
                "select": "*",
                "city": f"ilike.{name.strip()}",
                "state_or_province": f"eq.{normalize_state(state)}",
                "limit": "1",
            },
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        rows = resp.json() or []
        for row in rows:
            rec = city_record_from_row(row)
            if rec is not None:
                return rec
        return None

    def find_within_radius(self, lat: float, lon: float, miles: float) -> List[CityRecord]:
        resp = self.session.post(
            f"{self.base}/rest/v1/rpc/{self.radius_rpc}",
            json={"lat_input": lat, "lng_input": lon, "radius_miles": miles},
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        out: List[CityRecord] = []
        for row in resp.json() or []:
            rec = city_record_from_row(row)
            if rec is not None:
                out.append(rec)
        return out
