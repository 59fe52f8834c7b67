"""Export race events and results to CSV and JSON."""

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from racesim.analysis.batch import BatchResults
from racesim.simulation.events import RaceEvent
from racesim.simulation.race import RaceResult, RaceSimulation, RaceStatistics
from racesim.simulation.snapshot import RaceSnapshot


class Exporter:
    """Exports race data to various formats."""

    def __init__(self, output_dir: str | Path = "output"):
        """Initialize exporter.

        Args:
            output_dir: Directory for output files
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_events_csv(
        self,
        events: list[RaceEvent],
        filename: str = "events.csv",
    ) -> Path:
        """Export an event log to CSV, oldest first.

        Args:
            events: Events in creation order
            filename: Output filename

        Returns:
            Path to created file
        """
        filepath = self.output_dir / filename

        with open(filepath, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([
                "sequence", "time_ms", "lap", "type", "drivers", "description", "data",
            ])

            for event in events:
                writer.writerow([
                    event.sequence if event.sequence is not None else "",
                    event.time_ms,
                    event.lap,
                    event.event_type.value,
                    " ".join(event.drivers_involved),
                    event.description,
                    json.dumps(event.plain_data(), sort_keys=True),
                ])

        return filepath

    def export_events_json(
        self,
        events: list[RaceEvent],
        filename: str = "events.json",
    ) -> Path:
        """Export an event log as a JSON array of dashboard payloads."""
        filepath = self.output_dir / filename

        with open(filepath, "w") as f:
            json.dump([event.to_dict() for event in events], f, indent=2)

        return filepath

    def export_results_csv(
        self,
        results: list[RaceResult],
        filename: str = "results.csv",
    ) -> Path:
        """Export a race classification to CSV."""
        filepath = self.output_dir / filename

        with open(filepath, "w", newline="") as f:
            writer = csv.writer(f)
            writer.writerow([
                "position", "driver_id", "driver_name", "team", "laps",
                "total_time_ms", "gap_to_leader_ms", "best_lap_ms",
                "pit_stops", "overtakes", "collisions", "status",
            ])

            for result in sorted(results, key=lambda r: r.position):
                writer.writerow([
                    result.position,
                    result.driver_id,
                    result.driver_name,
                    result.team,
                    result.laps,
                    result.total_time_ms,
                    "" if result.gap_to_leader_ms is None else result.gap_to_leader_ms,
                    "" if result.best_lap_ms is None else result.best_lap_ms,
                    result.pit_stops,
                    result.overtakes,
                    result.collisions,
                    result.status.value,
                ])

        return filepath

    def export_snapshot_json(
        self,
        snapshot: RaceSnapshot,
        filename: str = "snapshot.json",
    ) -> Path:
        """Export a race snapshot in dashboard form."""
        filepath = self.output_dir / filename

        with open(filepath, "w") as f:
            json.dump(snapshot.to_dict(), f, indent=2)

        return filepath

    def export_statistics_json(
        self,
        statistics: RaceStatistics,
        filename: str = "statistics.json",
    ) -> Path:
        """Export race statistics to JSON."""
        filepath = self.output_dir / filename

        stats_dict: dict[str, Any] = asdict(statistics)
        stats_dict["overtakes"] = statistics.overtakes
        stats_dict["collisions"] = statistics.collisions
        stats_dict["pit_stops"] = statistics.pit_stops

        with open(filepath, "w") as f:
            json.dump(stats_dict, f, indent=2)

        return filepath

    def export_batch_json(
        self,
        batch: BatchResults,
        filename: str = "batch.json",
    ) -> Path:
        """Export aggregated batch statistics to JSON.

        Args:
            batch: Batch results
            filename: Output filename

        Returns:
            Path to created file
        """
        filepath = self.output_dir / filename

        stats_dict: dict[str, Any] = {
            "metadata": {
                "num_races": batch.num_races,
                "track_name": batch.track_name,
            },
            "win_probabilities": batch.get_win_probabilities(),
            "points_projection": batch.get_points_projection(),
            "event_totals": batch.event_totals,
            "driver_statistics": {},
        }

        for driver_id, stats in batch.driver_stats.items():
            stats_dict["driver_statistics"][driver_id] = {
                "driver_name": stats.driver_name,
                "team": stats.team,
                "wins": stats.wins,
                "win_rate": stats.win_rate,
                "podiums": stats.podiums,
                "podium_rate": stats.podium_rate,
                "points_finishes": stats.points_finishes,
                "retirements": stats.retirements,
                "total_points": stats.total_points,
                "total_overtakes": stats.total_overtakes,
                "avg_position": stats.avg_position,
                "best_position": stats.best_position,
                "worst_position": stats.worst_position,
                "position_distribution": batch.get_position_distribution(driver_id),
            }

        with open(filepath, "w") as f:
            json.dump(stats_dict, f, indent=2)

        return filepath

    def export_all(
        self,
        race: RaceSimulation,
        prefix: str = "",
    ) -> dict[str, Path]:
        """Export all formats for a race.

        Args:
            race: Race to export
            prefix: Optional prefix for filenames

        Returns:
            Dictionary of format -> filepath
        """
        prefix = f"{prefix}_" if prefix else ""
        events = race.events()

        return {
            "events_csv": self.export_events_csv(events, f"{prefix}events.csv"),
            "events_json": self.export_events_json(events, f"{prefix}events.json"),
            "results_csv": self.export_results_csv(race.results(), f"{prefix}results.csv"),
            "snapshot_json": self.export_snapshot_json(race.snapshot(), f"{prefix}snapshot.json"),
            "statistics_json": self.export_statistics_json(race.statistics(), f"{prefix}statistics.json"),
        }
