import json
import sys

import pytest

from scripts import crawl_lane


def run(monkeypatch, *argv):
    monkeypatch.setattr(sys, "argv", ["crawl_lane.py", *argv])
    crawl_lane.main()


def test_parse_city():
    ref = crawl_lane.parse_city("St. Louis , mo")
    assert (ref.city, ref.state) == ("St. Louis", "MO")


def test_cli_prints_pairs_and_updates_used_file(monkeypatch, capsys, tmp_path, _env_test_data):
    used = tmp_path / "used.json"
    used.write_text(json.dumps(["atl0a|GA"]))
    cities = str(_env_test_data / "cities.csv")

    run(monkeypatch, "--cities", cities, "--origin", "Chicago, IL", "--dest", "Atlanta, GA",
        "--equipment", "fd", "--used", str(used))

    out = json.loads(capsys.readouterr().out)
    assert out["metadata"]["pair_count"] == 6
    assert out["metadata"]["equipment"] == "FD"
    saved = json.loads(used.read_text())
    assert saved == sorted(saved)
    assert "atl0a|GA" in saved
    assert len(saved) == 13
    assert "atl0a|GA" not in {p["destination"]["name"].lower().replace(" ", "") + "|GA" for p in out["pairs"]}


def test_cli_unknown_city_exits_2(monkeypatch, _env_test_data):
    with pytest.raises(SystemExit) as exc:
        run(monkeypatch, "--cities", str(_env_test_data / "cities.csv"),
            "--origin", "Atlantis, GA", "--dest", "Chicago, IL")
    assert exc.value.code == 2


def test_cli_missing_directory(monkeypatch, tmp_path):
    with pytest.raises(SystemExit, match="not found"):
        run(monkeypatch, "--cities", str(tmp_path / "nope.csv"), "--origin", "Chicago, IL", "--dest", "Atlanta, GA")
