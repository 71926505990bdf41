#!/usr/bin/env python3

"""
Backend for the lane crawl service.

Run locally:
  uvicorn backend.main:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.routing import APIRouter

from lanecrawl.directory import CityDirectory, FrameCityDirectory, RestCityDirectory
from lanecrawl.plan.config import CrawlSettings, dataset_dir, load_crawl_settings
from lanecrawl.plan.router import create_router as create_crawl_router
from lanecrawl.runtime import configure_logging

log = configure_logging("backend")

# --------------------------------------------------------------------------------------------------
# Global Constants & Environment
# --------------------------------------------------------------------------------------------------
CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "*")
ALLOW_ORIGINS = [o.strip() for o in CORS_ALLOW_ORIGINS.split(",") if o.strip()] or ["*"]

CITY_DIRECTORY_URL = os.getenv("CITY_DIRECTORY_URL", "").strip()
CITY_DIRECTORY_KEY = os.getenv("CITY_DIRECTORY_KEY", "").strip() or None
CITY_DIRECTORY_TIMEOUT = float(os.getenv("CITY_DIRECTORY_TIMEOUT_SEC", "10"))

STATE: Dict[str, Any] = {"directory": None, "settings": None, "source": None}


def cities_csv_path() -> Path:
    return dataset_dir() / "cities.csv"


def load_directory() -> Optional[CityDirectory]:
    if CITY_DIRECTORY_URL:
        STATE["source"] = CITY_DIRECTORY_URL
        return RestCityDirectory(CITY_DIRECTORY_URL, api_key=CITY_DIRECTORY_KEY, timeout=CITY_DIRECTORY_TIMEOUT)
    path = cities_csv_path()
    if not path.exists():
        log.warning("No city directory at %s", path)
        STATE["source"] = None
        return None
    directory = FrameCityDirectory.from_csv(path)
    STATE["source"] = str(path)
    log.info("Loaded %d cities from %s", len(directory), path)
    return directory


def reload_state() -> None:
    STATE["directory"] = load_directory()
    STATE["settings"] = load_crawl_settings()


def get_directory() -> Optional[CityDirectory]:
    return STATE["directory"]


def get_settings() -> CrawlSettings:
    return STATE["settings"] or CrawlSettings()


# --------------------------------------------------------------------------------------------------
# Admin Router (reload)
# --------------------------------------------------------------------------------------------------
def admin_router() -> APIRouter:
    router = APIRouter(prefix="/admin", tags=["Admin"])

    @router.post("/reload")
    def reload():
        try:
            reload_state()
        except Exception as e:
            log.exception("Reload failed")
            raise HTTPException(status_code=500, detail=f"Reload failed: {e}")
        return {
            "ok": STATE["directory"] is not None,
            "source": STATE["source"],
            "settings": get_settings().model_dump(),
        }

    return router


# --------------------------------------------------------------------------------------------------
# FastAPI App (with lifespan)
# --------------------------------------------------------------------------------------------------
def create_app() -> FastAPI:
    async def lifespan(app: FastAPI):
        try:
            reload_state()
        except Exception as e:
            log.warning("City directory not loaded at startup: %s", e)
        yield

    app = FastAPI(title="Lane Crawl", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health():
        return {"ok": True, "directory_loaded": STATE["directory"] is not None, "source": STATE["source"]}

    app.include_router(admin_router())
    app.include_router(create_crawl_router(get_directory, get_settings))
    return app

app = create_app()


# --------------------------------------------------------------------------------------------------
# Entrypoint
# --------------------------------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("backend.main:app", host="0.0.0.0", port=port, reload=False)
