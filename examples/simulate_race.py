#!/usr/bin/env python3
"""Example: Run a single race and follow it through a subscription.

This script demonstrates the full workflow:
1. Build a race from a catalog track (or a YAML race config)
2. Subscribe a consumer that prints notable events as they happen
3. Run the race headless (or paced in real time)
4. Print the classification and optionally export everything

Usage:
    python examples/simulate_race.py [--track TRACK] [--laps N] [--seed S]

Examples:
    python examples/simulate_race.py --track monza --laps 5 --seed 42
    python examples/simulate_race.py --config race.yaml --export
"""

import argparse
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import numpy as np

from racesim import RaceConfig, RaceSimulation, configure_logging, get_settings, load_race_config
from racesim.exceptions import RaceSimError
from racesim.output import Exporter
from racesim.simulation import EventType, TickUpdate

# Lap completions are too frequent to be worth printing
_QUIET = {EventType.LAP_COMPLETE}


def print_update(update: TickUpdate) -> None:
    """Consumer callback: print the tick's notable events."""
    for event in update.events:
        if event.event_type in _QUIET and not event.data.get("best_lap"):
            continue
        seconds = event.time_ms / 1000
        print(f"[{seconds:8.1f}s L{event.lap:>2}] {event.description}")


def main():
    parser = argparse.ArgumentParser(description="Simulate a single race")
    parser.add_argument(
        "--track",
        default="monza",
        help="Catalog track id (default: monza)",
    )
    parser.add_argument(
        "--laps",
        type=int,
        default=5,
        help="Race length in laps (default: 5)",
    )
    parser.add_argument(
        "--config",
        help="YAML race config (overrides --track and --laps)",
    )
    parser.add_argument(
        "--weather",
        default="clear",
        help="Starting weather (default: clear)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed (default: 42)",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Pace ticks with the wall clock instead of running headless",
    )
    parser.add_argument(
        "--export",
        action="store_true",
        help="Export events and results to CSV/JSON",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Output directory for exports (default: output)",
    )
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    try:
        if args.config:
            config = load_race_config(args.config)
        else:
            config = RaceConfig.from_track_id(args.track, total_laps=args.laps, weather=args.weather)
    except RaceSimError as e:
        print(f"Error: {e}")
        return 1

    race = RaceSimulation(config, settings=settings, rng=np.random.default_rng(args.seed))

    print(f"{config.track.name} - {config.laps} laps, {len(config.roster)} drivers")
    print(f"{'=' * 60}")

    subscription = race.subscribe("console")
    listener = subscription.listen(print_update)

    if args.realtime:
        race.run_realtime()
    else:
        race.run()
    subscription.close()
    # Let the listener print what is still buffered before the results table
    listener.join(timeout=5.0)

    print(f"\n{'Pos':<5}{'Driver':<22}{'Laps':>5}{'Time':>12}{'Gap':>10}{'Best':>10}")
    for result in race.results():
        total = f"{result.total_time_ms / 1000:.3f}"
        gap = "" if result.gap_to_leader_ms is None else f"+{result.gap_to_leader_ms / 1000:.3f}"
        best = "" if result.best_lap_ms is None else f"{result.best_lap_ms / 1000:.3f}"
        print(f"{result.position:<5}{result.driver_name:<22}{result.laps:>5}{total:>12}{gap:>10}{best:>10}")

    stats = race.statistics()
    print(f"\nEvents: {stats.total_events} (overtakes {stats.overtakes}, "
          f"collisions {stats.collisions}, pit stops {stats.pit_stops})")

    if args.export:
        exporter = Exporter(output_dir=args.output_dir)
        files = exporter.export_all(race, prefix=f"{config.track.id}_{args.seed}")

        print("Exported files:")
        for fmt, path in files.items():
            print(f"  {fmt}: {path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
