from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, ValidationError

from lanecrawl.directory import CityDirectory

from .config import CrawlSettings
from .crawl import generate_diverse_pairs
from .errors import CityNotFound, InvalidInput
from .models import CandidateCity, CityRef, CrawlRequest, CrawlResult
from .selector import Center, SelectionOptions, select_diverse

_ORIGIN_CITY = ("origin_city", "originCity")
_ORIGIN_STATE = ("origin_state", "originState")
_DEST_CITY = ("dest_city", "destination_city", "destinationCity", "destCity")
_DEST_STATE = ("dest_state", "destination_state", "destinationState", "destState")
_TRUE_WORDS = ("1", "true", "t", "yes", "y", "on")


def _first(payload: Mapping[str, Any], names) -> Optional[str]:
    for n in names:
        v = payload.get(n)
        if v not in (None, ""):
            return str(v).strip()
    return None


def _truthy(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if v is None:
        return False
    return str(v).strip().lower() in _TRUE_WORDS


def _text(v: Any) -> str:
    return "" if v is None else str(v).strip()


def lane_request_from_payload(payload: Mapping[str, Any]) -> CrawlRequest:
    """
    Accept the lane shapes the UI and older exports send (flat or under
    "lane", snake or camel case, dest_/destination_) and build a CrawlRequest.
    """
    body = dict(payload or {})
    lane = body.get("lane") if isinstance(body.get("lane"), Mapping) else {}
    merged = {**body, **lane}

    if isinstance(merged.get("origin"), Mapping) and isinstance(merged.get("destination"), Mapping):
        origin = dict(merged["origin"])
        dest = dict(merged["destination"])
    else:
        origin = {"city": _first(merged, _ORIGIN_CITY), "state": _first(merged, _ORIGIN_STATE)}
        dest = {"city": _first(merged, _DEST_CITY), "state": _first(merged, _DEST_STATE)}

    equipment = _first(merged, ("equipment", "equipment_code", "equipmentCode")) or ""
    fill = merged.get("prefer_fill_to_10", merged.get("preferFillTo10", False))
    return CrawlRequest(
        origin=CityRef(city=_text(origin.get("city")), state=_text(origin.get("state")).upper()),
        destination=CityRef(city=_text(dest.get("city")), state=_text(dest.get("state")).upper()),
        equipment=equipment,
        prefer_fill_to_10=_truthy(fill),
    )


class CrawlPairsResponse(CrawlResult):
    used_cities: List[str] = []


class NearbyResponse(BaseModel):
    city: str
    state: str
    radius_miles: float
    unique_markets: int
    cities: List[CandidateCity]
    groups: Dict[str, List[str]] = Field(default_factory=dict)


def create_router(
    get_directory: Callable[[], Optional[CityDirectory]],
    get_settings: Callable[[], CrawlSettings],
) -> APIRouter:
    """
    Factory for the /crawl router. Callables hand back the currently loaded
    city directory and crawl settings.
    """
    router = APIRouter(prefix="/crawl", tags=["Crawl"])

    def ensure_ready() -> CityDirectory:
        directory = get_directory()
        if directory is None:
            raise HTTPException(
                status_code=503,
                detail="City directory not loaded. Add cities.csv and POST /admin/reload.",
            )
        return directory

    @router.post("/pairs", response_model=CrawlPairsResponse)
    def crawl_pairs(payload: Dict[str, Any]):
        directory = ensure_ready()
        try:
            req = lane_request_from_payload(payload)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"Invalid lane: {e.errors(include_url=False)}")

        raw_used = payload.get("used_cities", payload.get("usedCities")) or []
        if not isinstance(raw_used, list):
            raise HTTPException(status_code=422, detail="used_cities must be a list of city keys")
        used = {str(k) for k in raw_used}
        try:
            result = generate_diverse_pairs(req, directory, get_settings(), used_cities=used)
        except CityNotFound as e:
            raise HTTPException(status_code=404, detail=str(e))
        except InvalidInput as e:
            raise HTTPException(status_code=422, detail=str(e))

        return CrawlPairsResponse(**result.model_dump(), used_cities=sorted(used))

    @router.get("/nearby", response_model=NearbyResponse)
    def nearby(
        city: str = Query(..., min_length=1),
        state: str = Query(..., min_length=2, max_length=2),
        radius: float = Query(100.0, gt=0, le=500),
    ):
        directory = ensure_ready()
        base = directory.find_by_name_state(city, state)
        if base is None or not base.has_coordinates:
            raise HTTPException(status_code=404, detail=f"city '{city}, {state}' not in directory")
        settings = get_settings()
        try:
            found = directory.find_within_radius(base.latitude, base.longitude, radius)
            selection = select_diverse(
                Center.from_record(base), found, radius,
                SelectionOptions(per_group_cap=settings.per_group_cap, total_cap=settings.total_cap),
            )
        except InvalidInput as e:
            raise HTTPException(status_code=422, detail=str(e))
        return NearbyResponse(
            city=base.name,
            state=base.state_or_province,
            radius_miles=radius,
            unique_markets=selection.unique_markets,
            cities=selection.cities,
            groups={m: [c.name for c in cs] for m, cs in selection.by_market().items()},
        )

    return router
