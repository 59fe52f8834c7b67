"""Batch runner: many independent seeded races and aggregated statistics."""

from collections import Counter, defaultdict
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field

import numpy as np
import structlog

from racesim.config import RaceConfig, SimulationSettings, get_settings
from racesim.simulation.drivers import DriverStatus
from racesim.simulation.race import RaceResult, RaceSimulation

logger = structlog.get_logger(__name__)


@dataclass
class DriverStatistics:
    """Aggregated statistics for a driver across races."""

    driver_id: str
    driver_name: str
    team: str
    wins: int = 0
    podiums: int = 0
    points_finishes: int = 0
    retirements: int = 0
    total_points: float = 0.0
    total_overtakes: int = 0
    avg_position: float = 0.0
    best_position: int = 0
    worst_position: int = 0
    positions: list[int] = field(default_factory=list)

    @property
    def win_rate(self) -> float:
        """Win percentage."""
        return self.wins / len(self.positions) * 100 if self.positions else 0

    @property
    def podium_rate(self) -> float:
        """Podium percentage."""
        return self.podiums / len(self.positions) * 100 if self.positions else 0

    @property
    def retirement_rate(self) -> float:
        """Retirement percentage."""
        return self.retirements / len(self.positions) * 100 if self.positions else 0


@dataclass
class BatchResults:
    """Results from a batch of races."""

    num_races: int
    track_name: str
    driver_stats: dict[str, DriverStatistics]
    race_results: list[list[RaceResult]]
    event_totals: dict[str, int] = field(default_factory=dict)

    def get_win_probabilities(self) -> dict[str, float]:
        """Get win probability for each driver."""
        return {
            driver_id: stats.win_rate
            for driver_id, stats in sorted(
                self.driver_stats.items(),
                key=lambda x: x[1].wins,
                reverse=True,
            )
        }

    def get_points_projection(self) -> dict[str, float]:
        """Get average points per race for each driver."""
        return {
            driver_id: stats.total_points / self.num_races
            for driver_id, stats in sorted(
                self.driver_stats.items(),
                key=lambda x: x[1].total_points,
                reverse=True,
            )
        }

    def get_position_distribution(self, driver_id: str) -> dict[int, float]:
        """Get position probability distribution for a driver."""
        if driver_id not in self.driver_stats:
            return {}

        positions = self.driver_stats[driver_id].positions
        counts: dict[int, int] = defaultdict(int)
        for pos in positions:
            counts[pos] += 1

        return {
            pos: count / len(positions) * 100
            for pos, count in sorted(counts.items())
        }

    def average_events(self, event_type: str) -> float:
        """Mean number of events of a type per race."""
        return self.event_totals.get(event_type, 0) / self.num_races if self.num_races else 0.0


# F1 points system
POINTS_SYSTEM = {
    1: 25, 2: 18, 3: 15, 4: 12, 5: 10,
    6: 8, 7: 6, 8: 4, 9: 2, 10: 1,
}


def _run_single_race(args: tuple) -> tuple[list[RaceResult], dict[str, int]]:
    """Run one race to completion (for multiprocessing).

    Args:
        args: Tuple of (config_data, settings_data, seed, max_ticks)

    Returns:
        Tuple of (classification, event_counts)
    """
    config_data, settings_data, seed, max_ticks = args

    config = RaceConfig.model_validate(config_data)
    settings = SimulationSettings(**settings_data)

    race = RaceSimulation(
        config,
        settings=settings,
        rng=np.random.default_rng(seed),
        race_id=f"batch-{seed}",
    )
    race.run(max_ticks=max_ticks)
    race.stop()

    return race.results(), race.statistics().event_counts


class BatchRunner:
    """Runs many independent races with the same configuration."""

    def __init__(
        self,
        config: RaceConfig,
        settings: SimulationSettings | None = None,
        seed: int | None = None,
    ):
        """Initialize the batch runner.

        Args:
            config: Race configuration shared by every run
            settings: Simulation constants
            seed: Base random seed for reproducibility
        """
        self.config = config
        self.settings = settings if settings is not None else get_settings()
        self.base_seed = seed if seed is not None else int(np.random.default_rng().integers(0, 2**31))

    def run(
        self,
        num_races: int = 100,
        parallel: bool = True,
        max_workers: int | None = None,
        max_ticks: int | None = None,
    ) -> BatchResults:
        """Run a batch of races.

        Args:
            num_races: Number of races to run
            parallel: Whether to use parallel processing
            max_workers: Maximum parallel workers (None = CPU count)
            max_ticks: Optional cap on ticks per race

        Returns:
            BatchResults with aggregated statistics
        """
        config_data = self.config.model_dump()
        settings_data = self.settings.model_dump()

        seeds = [self.base_seed + i for i in range(num_races)]
        args_list = [(config_data, settings_data, seed, max_ticks) for seed in seeds]

        logger.info("batch_started", races=num_races, parallel=parallel, base_seed=self.base_seed)

        if parallel and num_races > 1:
            with ProcessPoolExecutor(max_workers=max_workers) as executor:
                outcomes = list(executor.map(_run_single_race, args_list))
        else:
            outcomes = [_run_single_race(args) for args in args_list]

        all_results = [results for results, _ in outcomes]
        event_totals: Counter[str] = Counter()
        for _, counts in outcomes:
            event_totals.update(counts)

        logger.info("batch_finished", races=num_races, events=sum(event_totals.values()))

        return BatchResults(
            num_races=num_races,
            track_name=self.config.track.name,
            driver_stats=self._aggregate_statistics(all_results),
            race_results=all_results,
            event_totals=dict(event_totals),
        )

    def _aggregate_statistics(self, race_results: list[list[RaceResult]]) -> dict[str, DriverStatistics]:
        """Aggregate statistics from all races."""
        stats: dict[str, DriverStatistics] = {
            driver.id: DriverStatistics(
                driver_id=driver.id,
                driver_name=driver.name,
                team=driver.team,
            )
            for driver in self.config.roster
        }

        for race_results_single in race_results:
            for result in race_results_single:
                driver_stat = stats.get(result.driver_id)
                if driver_stat is None:
                    continue

                driver_stat.positions.append(result.position)
                driver_stat.total_overtakes += result.overtakes

                if result.status == DriverStatus.CRASHED:
                    driver_stat.retirements += 1
                    continue

                if result.position == 1:
                    driver_stat.wins += 1
                if result.position <= 3:
                    driver_stat.podiums += 1
                if result.position <= 10:
                    driver_stat.points_finishes += 1
                    driver_stat.total_points += POINTS_SYSTEM.get(result.position, 0)

        for driver_stat in stats.values():
            if driver_stat.positions:
                driver_stat.avg_position = float(np.mean(driver_stat.positions))
                driver_stat.best_position = min(driver_stat.positions)
                driver_stat.worst_position = max(driver_stat.positions)

        return stats

    def run_quick(self, num_races: int = 10) -> BatchResults:
        """Run a batch without parallelization.

        Useful for testing or when running in environments
        where multiprocessing is problematic.
        """
        return self.run(num_races=num_races, parallel=False)
