#!/usr/bin/env python3
"""Batch example: many seeded races on one track.

Runs independent races with the default roster and reports win
probabilities, average finishing positions and event rates.

Usage:
    python examples/batch_races.py [--track TRACK] [--laps N] [--races N]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from racesim import RaceConfig, configure_logging, get_settings
from racesim.analysis import BatchRunner
from racesim.output import Exporter


def main():
    parser = argparse.ArgumentParser(description="Run a batch of seeded races")
    parser.add_argument("--track", default="monaco", help="Catalog track id (default: monaco)")
    parser.add_argument("--laps", type=int, default=3, help="Laps per race (default: 3)")
    parser.add_argument("--races", "-n", type=int, default=20, help="Number of races (default: 20)")
    parser.add_argument("--seed", type=int, default=123, help="Base seed (default: 123)")
    parser.add_argument("--no-parallel", action="store_false", dest="parallel")
    parser.add_argument("--export", action="store_true", help="Export statistics to JSON")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging("WARNING", settings.log_format)

    config = RaceConfig.from_track_id(args.track, total_laps=args.laps)
    runner = BatchRunner(config, settings=settings, seed=args.seed)

    print(f"{config.track.name}: {args.races} races of {config.laps} laps")
    print("=" * 50)

    batch = runner.run(num_races=args.races, parallel=args.parallel)

    print(f"\n{'Driver':<22}{'Win %':>8}{'Podium %':>10}{'Avg pos':>9}")
    for driver_id, win_rate in list(batch.get_win_probabilities().items())[:10]:
        stats = batch.driver_stats[driver_id]
        print(f"{stats.driver_name:<22}{win_rate:>8.1f}{stats.podium_rate:>10.1f}{stats.avg_position:>9.2f}")

    print("\nEvents per race:")
    for event_type in sorted(batch.event_totals):
        print(f"  {event_type}: {batch.average_events(event_type):.1f}")

    if args.export:
        path = Exporter().export_batch_json(batch, f"{config.track.id}_batch.json")
        print(f"\nExported: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
