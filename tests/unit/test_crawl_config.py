import json

import pytest

from lanecrawl.plan.config import CrawlSettings, ScoringWeights, dataset_dir, load_crawl_settings


def test_defaults():
    s = load_crawl_settings()
    assert s == CrawlSettings()
    assert s.radii_miles == [75.0, 100.0, 125.0]
    assert s.per_group_cap == 20
    assert s.total_cap is None
    assert (s.min_markets, s.min_markets_fill) == (5, 6)
    assert (s.max_pairs, s.max_pairs_fill) == (6, 10)
    assert s.parallel_endpoints is False
    assert s.scoring == ScoringWeights()


def test_target_helpers():
    s = CrawlSettings()
    assert s.target_markets(False) == 5
    assert s.target_markets(True) == 6
    assert s.target_pairs(False) == 6
    assert s.target_pairs(True) == 10


def test_radii_are_sorted_deduplicated_and_positive():
    assert CrawlSettings(radii_miles=[125, 75, 100, 75]).radii_miles == [75.0, 100.0, 125.0]
    assert CrawlSettings(radii_miles=[-5, 0, 50]).radii_miles == [50.0]
    assert CrawlSettings(radii_miles=[]).radii_miles == [75.0, 100.0, 125.0]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CRAWL_RADII_MILES", "150, 50,100")
    monkeypatch.setenv("CRAWL_MIN_MARKETS", "4")
    monkeypatch.setenv("CRAWL_MAX_PAIRS_FILL", "12")
    monkeypatch.setenv("CRAWL_TOTAL_CAP", "30")
    monkeypatch.setenv("CRAWL_PARALLEL_ENDPOINTS", "yes")
    monkeypatch.setenv("CRAWL_MARKET_BONUS", "0.25")

    s = load_crawl_settings()

    assert s.radii_miles == [50.0, 100.0, 150.0]
    assert s.min_markets == 4
    assert s.max_pairs_fill == 12
    assert s.total_cap == 30
    assert s.parallel_endpoints is True
    assert s.scoring.market_bonus == pytest.approx(0.25)
    assert s.scoring.verified_bonus == pytest.approx(0.05)


def test_zero_total_cap_means_unbounded(monkeypatch):
    monkeypatch.setenv("CRAWL_TOTAL_CAP", "0")
    assert load_crawl_settings().total_cap is None


def test_unparsable_radii_fall_back(monkeypatch):
    monkeypatch.setenv("CRAWL_RADII_MILES", "far,farther")
    assert load_crawl_settings().radii_miles == [75.0, 100.0, 125.0]


def test_json_file_then_env(monkeypatch, _env_test_data):
    (_env_test_data / "crawl_settings.json").write_text(json.dumps({
        "per_group_cap": 8,
        "max_pairs": 4,
        "scoring": {"distance_scale": 50.0, "verified_bonus": 0.2},
    }))
    monkeypatch.setenv("CRAWL_MAX_PAIRS", "7")
    monkeypatch.setenv("CRAWL_VERIFIED_BONUS", "0.1")

    s = load_crawl_settings()

    assert s.per_group_cap == 8
    assert s.max_pairs == 7
    assert s.scoring.distance_scale == pytest.approx(50.0)
    assert s.scoring.verified_bonus == pytest.approx(0.1)


def test_invalid_settings_fall_back_to_defaults(monkeypatch, _env_test_data):
    (_env_test_data / "crawl_settings.json").write_text(json.dumps({"per_group_cap": 0}))
    assert load_crawl_settings() == CrawlSettings()

    monkeypatch.setenv("CRAWL_DISTANCE_SCALE", "-1")
    (_env_test_data / "crawl_settings.json").write_text("{}")
    assert load_crawl_settings() == CrawlSettings()


def test_unreadable_json_is_ignored(_env_test_data):
    (_env_test_data / "crawl_settings.json").write_text("{not json")
    assert load_crawl_settings() == CrawlSettings()


def test_dataset_dir_prefers_active(_env_test_data):
    assert dataset_dir() == _env_test_data.resolve()
    (_env_test_data / "active").mkdir()
    assert dataset_dir() == (_env_test_data / "active").resolve()
