"""Driver state table: per-driver progress, fuel, laps and positions."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum

import structlog

from racesim.config import SimulationSettings
from racesim.exceptions import UnknownDriverError
from racesim.models import Driver, Track
from racesim.simulation.speed import Environment, SpeedModel

logger = structlog.get_logger(__name__)


class DriverStatus(str, Enum):
    """Driver race status."""

    RACING = "racing"
    PITTING = "pitting"
    FINISHED = "finished"
    CRASHED = "crashed"


@dataclass
class DriverState:
    """Tracks a driver's state during the race."""

    driver: Driver
    position: int
    laps_completed: int = 0
    progress: float = 0.0  # percent of the current lap, [0, 100)
    fuel: float = 100.0
    speed_kmh: float = 0.0
    status: DriverStatus = DriverStatus.RACING
    current_lap_ms: int = 0
    total_time_ms: int = 0
    lap_times: list[int] = field(default_factory=list)
    finish_time_ms: int | None = None
    finish_overshoot: float = 0.0  # percent of a lap past the line at the finishing tick
    pit_remaining_ms: int = 0
    pit_stops: int = 0
    boost_remaining_ms: int = 0
    boosts_used: int = 0
    penalty_remaining_ms: int = 0
    overtakes: int = 0
    collisions: int = 0
    retire_reason: str | None = None

    @property
    def id(self) -> str:
        return self.driver.id

    @property
    def distance(self) -> float:
        """Total distance covered, in laps."""
        return self.laps_completed + self.progress / 100.0

    @property
    def last_lap_ms(self) -> int | None:
        return self.lap_times[-1] if self.lap_times else None

    @property
    def best_lap_ms(self) -> int | None:
        return min(self.lap_times) if self.lap_times else None

    @property
    def is_active(self) -> bool:
        """Still circulating (racing or in the pit lane)."""
        return self.status in (DriverStatus.RACING, DriverStatus.PITTING)


def ranking_key(state: DriverState) -> tuple:
    """Sort key for classification.

    Finished drivers rank by finishing time, then by how far past the
    line they were when the race ended for them; everyone else by distance
    covered. Remaining ties are broken by driver id ascending.
    """
    if state.status == DriverStatus.FINISHED and state.finish_time_ms is not None:
        return (0, state.finish_time_ms, -state.finish_overshoot, state.id)
    return (1, -state.distance, state.id)


class DriverTable:
    """Owns every driver's mutable race state."""

    def __init__(
        self,
        roster: list[Driver],
        track: Track,
        total_laps: int,
        speed_model: SpeedModel,
        settings: SimulationSettings,
    ):
        """Initialize the table.

        Args:
            roster: Drivers entered into the race
            track: Circuit being raced
            total_laps: Race length in laps
            speed_model: Strategy producing each driver's speed per tick
            settings: Fuel, pit and boost constants
        """
        self.track = track
        self.total_laps = total_laps
        self.speed_model = speed_model
        self.settings = settings
        self._states: dict[str, DriverState] = {
            driver.id: DriverState(driver=driver, position=0) for driver in roster
        }
        self.update_positions()

    def __getitem__(self, driver_id: str) -> DriverState:
        try:
            return self._states[driver_id]
        except KeyError:
            raise UnknownDriverError(driver_id) from None

    def __contains__(self, driver_id: object) -> bool:
        return driver_id in self._states

    def __iter__(self) -> Iterator[DriverState]:
        return iter(self._states.values())

    def __len__(self) -> int:
        return len(self._states)

    @property
    def states(self) -> dict[str, DriverState]:
        """Mapping of driver id to state (roster order)."""
        return self._states

    def ordered(self) -> list[DriverState]:
        """States sorted by current position."""
        return sorted(self._states.values(), key=lambda s: s.position)

    def leader(self) -> DriverState:
        return self.ordered()[0]

    def active_count(self) -> int:
        return sum(1 for s in self._states.values() if s.is_active)

    def tick(self, delta_ms: int, environment: Environment, race_time_ms: int) -> None:
        """Advance every driver by ``delta_ms`` and re-rank the field.

        Args:
            delta_ms: Step length in milliseconds
            environment: Weather and safety-car state for this tick
            race_time_ms: Race time at the end of this tick
        """
        for state in self._states.values():
            if state.status == DriverStatus.PITTING:
                self._advance_pitting(state, delta_ms)
            elif state.status == DriverStatus.RACING:
                self._advance_racing(state, delta_ms, environment, race_time_ms)

        self.update_positions()

    def _advance_pitting(self, state: DriverState, delta_ms: int) -> None:
        state.speed_kmh = 0.0
        state.current_lap_ms += delta_ms
        state.total_time_ms += delta_ms
        state.pit_remaining_ms -= delta_ms

        if state.pit_remaining_ms <= 0:
            state.pit_remaining_ms = 0
            state.fuel = 100.0
            state.status = DriverStatus.RACING
            logger.debug("pit_exit", driver_id=state.id, lap=state.laps_completed)

    def _advance_racing(
        self,
        state: DriverState,
        delta_ms: int,
        environment: Environment,
        race_time_ms: int,
    ) -> None:
        speed = max(0.0, self.speed_model.speed_kmh(state, environment))
        if state.penalty_remaining_ms > 0:
            speed *= self.settings.collision_speed_factor
            state.penalty_remaining_ms = max(0, state.penalty_remaining_ms - delta_ms)
        fraction = self.track.lap_fraction(speed, delta_ms)
        gained = fraction * 100.0

        state.speed_kmh = speed
        state.fuel = max(0.0, state.fuel - fraction * self.settings.fuel_per_lap)
        state.boost_remaining_ms = max(0, state.boost_remaining_ms - delta_ms)
        state.total_time_ms += delta_ms

        # Line crossings are interpolated inside the tick at constant speed
        tick_start_ms = race_time_ms - delta_ms
        lap_started_ms = float(tick_start_ms - state.current_lap_ms)
        start_progress = state.progress
        state.progress += gained

        crossings = 0
        while state.progress >= 100.0:
            crossings += 1
            crossed_at_ms = tick_start_ms + delta_ms * (100.0 * crossings - start_progress) / gained
            state.progress -= 100.0
            self._complete_lap(state, crossed_at_ms - lap_started_ms, crossed_at_ms)
            if state.status == DriverStatus.FINISHED:
                return
            lap_started_ms = crossed_at_ms

        state.current_lap_ms = int(round(race_time_ms - lap_started_ms))

        if state.fuel < self.settings.pit_fuel_threshold:
            self._enter_pit(state)

    def _complete_lap(self, state: DriverState, lap_ms: float, crossed_at_ms: float) -> None:
        state.laps_completed += 1
        state.lap_times.append(int(round(lap_ms)))
        state.current_lap_ms = 0

        if state.laps_completed >= self.total_laps:
            state.status = DriverStatus.FINISHED
            state.finish_overshoot = state.progress
            state.progress = 0.0
            state.speed_kmh = 0.0
            state.boost_remaining_ms = 0
            state.penalty_remaining_ms = 0
            state.finish_time_ms = int(round(crossed_at_ms))
            state.total_time_ms = state.finish_time_ms
            logger.info("driver_finished", driver_id=state.id, race_time_ms=state.finish_time_ms)

    def _enter_pit(self, state: DriverState) -> None:
        state.status = DriverStatus.PITTING
        state.pit_remaining_ms = self.settings.pit_duration_ms
        state.pit_stops += 1
        state.speed_kmh = 0.0
        state.boost_remaining_ms = 0
        logger.debug("pit_entry", driver_id=state.id, fuel=round(state.fuel, 1))

    def request_pit(self, driver_id: str) -> bool:
        """Send a racing driver into the pit lane."""
        state = self[driver_id]
        if state.status != DriverStatus.RACING:
            return False
        self._enter_pit(state)
        return True

    def boost(self, driver_id: str) -> bool:
        """Spend fuel for a short speed boost."""
        state = self[driver_id]
        if state.status != DriverStatus.RACING or state.fuel <= self.settings.boost_min_fuel:
            return False
        state.fuel = max(0.0, state.fuel - self.settings.boost_fuel_cost)
        state.boost_remaining_ms = self.settings.boost_duration_ms
        state.boosts_used += 1
        return True

    def slow_after_collision(self, driver_id: str) -> None:
        """Damage from contact: slowed for the configured penalty window."""
        state = self[driver_id]
        if state.status == DriverStatus.RACING:
            state.penalty_remaining_ms = self.settings.collision_penalty_ms

    def crash(self, driver_id: str, reason: str = "crash") -> bool:
        """Retire a driver that is still circulating."""
        state = self[driver_id]
        if not state.is_active:
            return False
        state.status = DriverStatus.CRASHED
        state.retire_reason = reason
        state.speed_kmh = 0.0
        state.pit_remaining_ms = 0
        state.boost_remaining_ms = 0
        state.penalty_remaining_ms = 0
        return True

    def update_positions(self) -> None:
        """Re-rank all drivers (stable sort on distance, ties by id)."""
        ranked = sorted(self._states.values(), key=ranking_key)
        for pos, state in enumerate(ranked, 1):
            state.position = pos

    def positions_consistent(self) -> bool:
        """Check positions form a permutation of 1..N."""
        positions = sorted(s.position for s in self._states.values())
        return positions == list(range(1, len(self._states) + 1))
