from __future__ import annotations

import csv
import io
import json
from dataclasses import replace

import pytest

from svnl.output import CSV_FIELDNAMES, load_results_json, safe_filename, to_csv, to_json, write_results, write_results_per_competition
from svnl.parser import parse_competition_page


@pytest.fixture
def results(sbd_page, competition):
    return parse_competition_page(sbd_page, competition)


def test_csv_columns_and_values(results):
    rows = list(csv.DictReader(io.StringIO(to_csv(results))))

    assert list(rows[0].keys()) == CSV_FIELDNAMES
    assert CSV_FIELDNAMES[:3] == ["competition_id", "competition_name", "competition_date"]
    assert CSV_FIELDNAMES[15:17] == ["squat_1", "squat_1_success"]
    assert CSV_FIELDNAMES[-2:] == ["total", "points"]

    matti = rows[0]
    assert matti["competition_id"] == "svnl-testikisa"
    assert matti["competition_start_date"] == "14.6.2025"
    assert matti["event_type"] == "sbd"
    assert matti["name"] == "Matti Meikäläinen"
    assert matti["body_weight"] == "82.5"
    assert matti["squat_3"] == "215"
    assert matti["squat_3_success"] == "false"
    assert matti["bench_1_success"] == "true"
    assert matti["total"] == "630"
    assert matti["points"] == "410.12"
    assert matti["age_class"] == ""


def test_csv_quotes_commas(results):
    renamed = [replace(r, competition=replace(r.competition, name="Kisa, Pori")) for r in results]
    assert '"Kisa, Pori"' in to_csv(renamed)


def test_json_round_trips_through_loader(results, tmp_path):
    path = write_results(results, tmp_path / "out" / "kaikki.json", "json")
    data = json.loads(path.read_text(encoding="utf-8"))

    assert data[0]["competition"]["eventType"] == "sbd"
    assert data[0]["lifters"][0]["birthYear"] == 1995
    assert load_results_json(path)[0].lifters == results[0].lifters
    assert json.loads(to_json(results)) == data


def test_per_competition_files(equipment_page, competition, tmp_path):
    split = parse_competition_page(equipment_page, competition)
    paths = write_results_per_competition(split, tmp_path, "csv")

    assert [p.name for p in paths] == ["svnl-testikisa-raw.csv", "svnl-testikisa-equipped.csv"]
    with paths[1].open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert [r["equipment"] for r in rows] == ["equipped"]


def test_unknown_format(results, tmp_path):
    with pytest.raises(ValueError):
        write_results(results, tmp_path / "x.xml", "xml")


def test_safe_filename():
    assert safe_filename("svnl-sm/2025 (klassinen)") == "svnl-sm_2025_klassinen"
    assert safe_filename("") == "competition"
