#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from lanecrawl.directory import FrameCityDirectory
from lanecrawl.plan.config import load_crawl_settings
from lanecrawl.plan.crawl import generate_diverse_pairs
from lanecrawl.plan.errors import CityNotFound
from lanecrawl.plan.models import CityRef, CrawlRequest
from lanecrawl.runtime import configure_logging, env_path


def parse_city(text: str) -> CityRef:
    city, sep, state = text.rpartition(",")
    if not sep or not city.strip() or not state.strip():
        raise argparse.ArgumentTypeError(f"expected 'City, ST', got {text!r}")
    return CityRef(city=city.strip(), state=state.strip().upper())


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate diverse alternate city pairs for one lane")
    parser.add_argument("--cities", default=str(env_path("CITIES_CSV", "./data/private/cities.csv")), help="City directory CSV")
    parser.add_argument("--origin", required=True, type=parse_city, help="Origin as 'City, ST'")
    parser.add_argument("--dest", required=True, type=parse_city, help="Destination as 'City, ST'")
    parser.add_argument("--equipment", default="", help="Equipment code, e.g. FD or V")
    parser.add_argument("--fill", action="store_true", help="Prefer filling to 10 postings")
    parser.add_argument(
        "--used",
        default=None,
        help="JSON file holding a list of already used city keys; updated in place",
    )
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logger = configure_logging("crawl_lane")

    cities = Path(args.cities).expanduser().resolve()
    if not cities.exists():
        raise SystemExit(f"City directory not found: {cities}")

    used_path = Path(args.used).expanduser().resolve() if args.used else None
    used = set(json.loads(used_path.read_text(encoding="utf-8"))) if used_path and used_path.exists() else set()

    directory = FrameCityDirectory.from_csv(cities)
    logger.info("Loaded %d cities from %s", len(directory), cities)

    req = CrawlRequest(origin=args.origin, destination=args.dest, equipment=args.equipment, prefer_fill_to_10=args.fill)
    try:
        result = generate_diverse_pairs(req, directory, load_crawl_settings(), used_cities=used)
    except CityNotFound as e:
        logger.error("%s", e)
        sys.exit(2)

    if used_path:
        used_path.write_text(json.dumps(sorted(used), indent=2), encoding="utf-8")

    print(json.dumps(result.model_dump(), indent=2))


if __name__ == "__main__":
    main()
