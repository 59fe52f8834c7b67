"""Tests for exporting race data."""

import csv
import json

import pytest

from racesim.analysis import BatchRunner
from racesim.output import Exporter


@pytest.fixture
def finished_race(race):
    race.run()
    return race


def test_export_all(finished_race, tmp_path):
    files = Exporter(output_dir=tmp_path / "out").export_all(finished_race, prefix="test")

    assert set(files) == {"events_csv", "events_json", "results_csv", "snapshot_json", "statistics_json"}
    assert all(path.exists() and path.name.startswith("test_") for path in files.values())


def test_results_csv(finished_race, tmp_path):
    path = Exporter(tmp_path).export_results_csv(finished_race.results())

    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))

    assert [row["driver_id"] for row in rows] == ["CCC", "BBB", "AAA"]
    assert rows[0]["gap_to_leader_ms"] == "0"
    assert rows[0]["status"] == "finished"


def test_events_round_trip_counts(finished_race, tmp_path):
    exporter = Exporter(tmp_path)
    events = finished_race.events()

    with open(exporter.export_events_json(events)) as f:
        payload = json.load(f)
    with open(exporter.export_events_csv(events), newline="") as f:
        rows = list(csv.DictReader(f))

    assert len(payload) == len(rows) == len(events)
    assert payload[0]["type"] == "system"
    assert rows[-1]["type"] == "system"


def test_statistics_json(finished_race, tmp_path):
    with open(Exporter(tmp_path).export_statistics_json(finished_race.statistics())) as f:
        stats = json.load(f)

    assert stats["overtakes"] == 3
    assert stats["fastest_lap_driver"] == "CCC"


def test_batch_json(race_config, settings, tmp_path):
    batch = BatchRunner(race_config, settings=settings, seed=1).run_quick(num_races=2)

    with open(Exporter(tmp_path).export_batch_json(batch)) as f:
        payload = json.load(f)

    assert payload["metadata"]["num_races"] == 2
    assert set(payload["driver_statistics"]) == {"AAA", "BBB", "CCC"}
