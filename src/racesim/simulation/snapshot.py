"""Immutable race snapshots and the aggregator that produces them."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from racesim.exceptions import InvariantViolation
from racesim.models import Track, Weather, WeatherCondition
from racesim.simulation.clock import RaceClock
from racesim.simulation.drivers import DriverState, DriverStatus, DriverTable
from racesim.simulation.speed import Environment

logger = structlog.get_logger(__name__)


class RaceStatus(str, Enum):
    """Race lifecycle status."""

    WAITING = "waiting"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"
    STOPPED = "stopped"


@dataclass(frozen=True)
class RaceState:
    """Race-wide state at one instant."""

    track_id: str
    track_name: str
    lap: int
    total_laps: int
    time_ms: int
    weather: WeatherCondition
    temperature: float
    safety_car: bool
    status: RaceStatus

    @property
    def percent_complete(self) -> float:
        return self.lap / self.total_laps * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "trackId": self.track_id,
            "trackName": self.track_name,
            "lap": self.lap,
            "totalLaps": self.total_laps,
            "time": self.time_ms,
            "weather": self.weather.value,
            "temperature": self.temperature,
            "safetyCar": self.safety_car,
            "status": self.status.value,
            "percentComplete": round(self.percent_complete, 2),
        }


@dataclass(frozen=True)
class DriverSnapshot:
    """Read-only view of one driver."""

    id: str
    name: str
    team: str
    color: str
    position: int
    laps_completed: int
    progress: float
    fuel: float
    speed_kmh: float
    status: DriverStatus
    last_lap_ms: int | None = None
    best_lap_ms: int | None = None
    total_time_ms: int = 0
    finish_time_ms: int | None = None
    pit_stops: int = 0
    boosts_used: int = 0
    overtakes: int = 0
    collisions: int = 0

    @property
    def distance(self) -> float:
        """Total distance covered, in laps."""
        return self.laps_completed + self.progress / 100.0

    @property
    def is_active(self) -> bool:
        return self.status in (DriverStatus.RACING, DriverStatus.PITTING)

    @classmethod
    def from_state(cls, state: DriverState) -> "DriverSnapshot":
        return cls(
            id=state.id,
            name=state.driver.name,
            team=state.driver.team,
            color=state.driver.color,
            position=state.position,
            laps_completed=state.laps_completed,
            progress=state.progress,
            fuel=state.fuel,
            speed_kmh=state.speed_kmh,
            status=state.status,
            last_lap_ms=state.last_lap_ms,
            best_lap_ms=state.best_lap_ms,
            total_time_ms=state.total_time_ms,
            finish_time_ms=state.finish_time_ms,
            pit_stops=state.pit_stops,
            boosts_used=state.boosts_used,
            overtakes=state.overtakes,
            collisions=state.collisions,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "team": self.team,
            "color": self.color,
            "position": self.position,
            "lap": self.laps_completed,
            "progress": round(self.progress, 2),
            "fuel": round(self.fuel, 1),
            "speed": round(self.speed_kmh, 1),
            "status": self.status.value,
            "lastLapTime": self.last_lap_ms,
            "bestLapTime": self.best_lap_ms,
            "totalTime": self.total_time_ms,
            "pitStops": self.pit_stops,
            "boostsUsed": self.boosts_used,
            "overtakes": self.overtakes,
            "collisions": self.collisions,
        }


@dataclass(frozen=True)
class RaceSnapshot:
    """Race state plus every driver, ordered by position."""

    race: RaceState
    drivers: tuple[DriverSnapshot, ...]

    def driver(self, driver_id: str) -> DriverSnapshot | None:
        for snap in self.drivers:
            if snap.id == driver_id:
                return snap
        return None

    @property
    def leader(self) -> DriverSnapshot | None:
        return self.drivers[0] if self.drivers else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "race": self.race.to_dict(),
            "drivers": [d.to_dict() for d in self.drivers],
        }


class RaceStateAggregator:
    """Merges clock, driver table and environment into snapshots.

    Weather and safety-car flags are toggled from outside; everything else
    is read from the clock and the driver table.
    """

    def __init__(
        self,
        track: Track,
        clock: RaceClock,
        table: DriverTable,
        weather: Weather,
        strict_invariants: bool = True,
    ):
        self.track = track
        self.clock = clock
        self.table = table
        self.weather = weather
        self.safety_car = False
        self.strict_invariants = strict_invariants

    @property
    def environment(self) -> Environment:
        return Environment(weather=self.weather, safety_car=self.safety_car)

    def snapshot(self, status: RaceStatus) -> RaceSnapshot:
        """Build an immutable snapshot of the current race.

        Raises:
            InvariantViolation: If positions are inconsistent and strict
                invariants are enabled.
        """
        if not self.table.positions_consistent():
            positions = {s.id: s.position for s in self.table}
            if self.strict_invariants:
                raise InvariantViolation(f"Driver positions are not a permutation of 1..N: {positions}")
            logger.error("positions_inconsistent", positions=positions)
            self.table.update_positions()

        race = RaceState(
            track_id=self.track.id,
            track_name=self.track.name,
            lap=self.clock.lap,
            total_laps=self.clock.total_laps,
            time_ms=self.clock.time_ms,
            weather=self.weather.condition,
            temperature=self.weather.temperature,
            safety_car=self.safety_car,
            status=status,
        )
        drivers = tuple(DriverSnapshot.from_state(s) for s in self.table.ordered())
        return RaceSnapshot(race=race, drivers=drivers)
