"""Race simulation context: tick loop, runtime controls and results."""

import threading
import time
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field, replace

import numpy as np
import structlog

from racesim.config import RaceConfig, SimulationSettings, get_settings
from racesim.exceptions import ConfigurationError, RaceStateError
from racesim.models import WeatherCondition
from racesim.models.weather import TEMPERATURE_RANGES
from racesim.simulation.clock import RaceClock
from racesim.simulation.drivers import DriverStatus, DriverTable
from racesim.simulation.events import EventType, RaceEvent, observe
from racesim.simulation.feed import EventFeed, Subscription, TickUpdate
from racesim.simulation.snapshot import RaceSnapshot, RaceStateAggregator, RaceStatus
from racesim.simulation.speed import DefaultSpeedModel, SpeedModel

logger = structlog.get_logger(__name__)


@dataclass
class RaceResult:
    """Final classification entry for a driver."""

    position: int
    driver_id: str
    driver_name: str
    team: str
    laps: int
    total_time_ms: int
    gap_to_leader_ms: int | None
    best_lap_ms: int | None
    pit_stops: int
    overtakes: int
    collisions: int
    status: DriverStatus


@dataclass
class RaceStatistics:
    """Event and timing totals for a race."""

    total_events: int
    race_time_ms: int
    laps: int
    event_counts: dict[str, int] = field(default_factory=dict)
    fastest_lap_ms: int | None = None
    fastest_lap_driver: str | None = None

    @property
    def overtakes(self) -> int:
        return self.event_counts.get(EventType.OVERTAKE.value, 0)

    @property
    def collisions(self) -> int:
        return self.event_counts.get(EventType.COLLISION.value, 0)

    @property
    def pit_stops(self) -> int:
        return self.event_counts.get(EventType.PIT_STOP.value, 0)


class RaceSimulation:
    """One independent race.

    All state lives on the instance; there are no module-level singletons,
    so several races can run side by side. Every mutation happens inside
    ``tick`` or a control method while holding the race lock, and consumers
    only ever see the immutable snapshot and events published afterwards.
    """

    def __init__(
        self,
        config: RaceConfig,
        settings: SimulationSettings | None = None,
        speed_model: SpeedModel | None = None,
        rng: np.random.Generator | None = None,
        race_id: str | None = None,
    ):
        """Initialize the race.

        Args:
            config: Track, laps, weather and roster
            settings: Simulation constants (defaults to environment settings)
            speed_model: Speed strategy (defaults to DefaultSpeedModel)
            rng: Random number generator (seeded from settings if None)
            race_id: Identifier used in logs

        Raises:
            ConfigurationError: If the roster is empty, has duplicate ids,
                or the race has no laps.
        """
        self.settings = settings if settings is not None else get_settings()
        self._validate(config)

        self.config = config
        self.race_id = race_id or uuid.uuid4().hex[:8]
        self.track = config.track.model_copy(deep=True)
        self.rng = rng if rng is not None else np.random.default_rng(self.settings.seed)
        self.speed_model = speed_model if speed_model is not None else DefaultSpeedModel(
            rng=self.rng,
            safety_car_factor=self.settings.safety_car_speed_factor,
            boost_multiplier=self.settings.boost_multiplier,
        )

        self.clock = RaceClock(config.laps, max_tick_ms=self.settings.max_tick_ms)
        self.table = DriverTable(
            roster=[d.model_copy(deep=True) for d in config.roster],
            track=self.track,
            total_laps=config.laps,
            speed_model=self.speed_model,
            settings=self.settings,
        )
        self.aggregator = RaceStateAggregator(
            track=self.track,
            clock=self.clock,
            table=self.table,
            weather=config.weather.model_copy(deep=True),
            strict_invariants=self.settings.invariants_strict,
        )
        self.feed = EventFeed(
            capacity=self.settings.feed_capacity,
            subscriber_queue_size=self.settings.subscriber_queue_size,
        )

        self._status = RaceStatus.WAITING
        self._lock = threading.RLock()
        self._sequence = 0
        self._event_counts: Counter[str] = Counter()
        self._last = self.aggregator.snapshot(self._status)
        self.log = logger.bind(race_id=self.race_id, track=self.track.id)
        self.log.info("race_initialized", drivers=len(self.table), laps=config.laps)

    @classmethod
    def from_track(cls, track_id: str, **kwargs) -> "RaceSimulation":
        """Create a race on a catalog track with the default roster."""
        config_keys = ("roster", "total_laps", "weather", "temperature")
        config_kwargs = {k: kwargs.pop(k) for k in config_keys if k in kwargs}
        return cls(RaceConfig.from_track_id(track_id, **config_kwargs), **kwargs)

    @staticmethod
    def _validate(config: RaceConfig) -> None:
        roster = list(config.roster or [])
        if not roster:
            raise ConfigurationError("A race needs at least one driver")
        if config.laps <= 0:
            raise ConfigurationError(f"total_laps must be positive, got {config.laps}")
        ids = [d.id for d in roster]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate driver ids: {', '.join(duplicates)}")

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def status(self) -> RaceStatus:
        return self._status

    @property
    def is_over(self) -> bool:
        return self._status in (RaceStatus.FINISHED, RaceStatus.STOPPED)

    def snapshot(self) -> RaceSnapshot:
        """Snapshot published after the most recent tick."""
        return self._last

    def events(self) -> list[RaceEvent]:
        """Retained events, oldest first."""
        return self.feed.events()

    def recent_events(self, limit: int = 50) -> list[RaceEvent]:
        """Retained events, newest tick first."""
        return self.feed.recent(limit)

    def subscribe(self, name: str = "consumer", maxsize: int | None = None) -> Subscription:
        """Open a bounded subscription to per-tick updates."""
        return self.feed.subscribe(name, maxsize)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> list[RaceEvent]:
        """Start the race.

        Raises:
            RaceStateError: If the race was already started.
        """
        with self._lock:
            if self._status != RaceStatus.WAITING:
                raise RaceStateError(f"Race cannot start from status '{self._status.value}'")
            self._status = RaceStatus.RUNNING
            self.log.info("race_started")
            return self._publish()

    def pause(self) -> bool:
        with self._lock:
            if self._status != RaceStatus.RUNNING:
                return False
            self._status = RaceStatus.PAUSED
            self._last = self._with_status(self._last, self._status)
            self.log.info("race_paused", time_ms=self.clock.time_ms)
            return True

    def resume(self) -> bool:
        with self._lock:
            if self._status != RaceStatus.PAUSED:
                return False
            self._status = RaceStatus.RUNNING
            self._last = self._with_status(self._last, self._status)
            self.log.info("race_resumed", time_ms=self.clock.time_ms)
            return True

    def stop(self) -> bool:
        """Stop the race immediately.

        Waits for an in-flight tick to complete, so no tick is ever half
        applied. Idempotent: returns False and changes nothing if the race
        is already over.
        """
        with self._lock:
            if self.is_over:
                return False
            self._status = RaceStatus.STOPPED
            self._last = self._with_status(self._last, self._status)
            self.log.info("race_stopped", time_ms=self.clock.time_ms, lap=self.clock.lap)
        self.feed.close()
        return True

    @staticmethod
    def _with_status(snapshot: RaceSnapshot, status: RaceStatus) -> RaceSnapshot:
        return replace(snapshot, race=replace(snapshot.race, status=status))

    # ------------------------------------------------------------------
    # Tick loop
    # ------------------------------------------------------------------

    def tick(self, delta_ms: int | None = None) -> list[RaceEvent]:
        """Advance the race by one step.

        Does nothing unless the race is running.

        Args:
            delta_ms: Step length (defaults to ``settings.tick_ms``)

        Returns:
            Events produced by this tick, in display priority order

        Raises:
            ValueError: If ``delta_ms`` is not positive or exceeds ``max_tick_ms``
        """
        with self._lock:
            if self._status != RaceStatus.RUNNING:
                return []

            delta = self.settings.tick_ms if delta_ms is None else delta_ms
            self.clock.advance(delta)
            self.table.tick(delta, self.aggregator.environment, self.clock.time_ms)

            leader_laps = max(state.laps_completed for state in self.table)
            if self.clock.record_leader_lap(leader_laps):
                self._on_leader_lap()

            finished = self.table.active_count() == 0
            if finished:
                self._status = RaceStatus.FINISHED

            events = self._publish()

        if finished:
            self.log.info("race_finished", time_ms=self.clock.time_ms, events=sum(self._event_counts.values()))
            self.feed.close()
        return events

    def _on_leader_lap(self) -> None:
        weather = self.aggregator.weather
        evolved = weather.evolve(self.rng)
        if evolved.condition != weather.condition:
            self.aggregator.weather = evolved
            self.log.info("weather_changed", condition=evolved.condition.value, lap=self.clock.lap)
        self.log.debug("leader_lap", lap=self.clock.lap, total_laps=self.clock.total_laps)

    def _publish(self) -> list[RaceEvent]:
        current = self.aggregator.snapshot(self._status)
        events = observe(self._last, current, self.settings.collision_threshold_pct)

        stamped = []
        for event in events:
            stamped.append(replace(event, sequence=self._sequence))
            self._sequence += 1
            self._event_counts[event.event_type.value] += 1

            if event.event_type == EventType.OVERTAKE:
                self.table[event.drivers_involved[0]].overtakes += 1
            elif event.event_type == EventType.COLLISION:
                for driver_id in event.drivers_involved:
                    self.table[driver_id].collisions += 1
                    self.table.slow_after_collision(driver_id)

        if stamped:
            # Counters changed; republish so the snapshot matches the events
            current = self.aggregator.snapshot(self._status)

        self._last = current
        self.feed.publish(TickUpdate(snapshot=current, events=tuple(stamped)))
        return stamped

    def run(self, max_ticks: int | None = None, delta_ms: int | None = None) -> RaceSnapshot:
        """Run fixed-step ticks until the race ends (or ``max_ticks``).

        Starts the race if it is still waiting.
        """
        if self._status == RaceStatus.WAITING:
            self.start()

        ticks = 0
        while self._status == RaceStatus.RUNNING:
            if max_ticks is not None and ticks >= max_ticks:
                break
            self.tick(delta_ms)
            ticks += 1

        return self._last

    def run_realtime(
        self,
        time_source: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        interval_ms: int | None = None,
    ) -> RaceSnapshot:
        """Tick with wall-clock deltas until the race is finished or stopped.

        Args:
            time_source: Returns seconds from a monotonic clock
            sleep: Called with the pause between ticks, in seconds
            interval_ms: Target tick period (defaults to ``settings.tick_ms``)
        """
        if self._status == RaceStatus.WAITING:
            self.start()

        interval = (interval_ms or self.settings.tick_ms) / 1000.0
        last = time_source()

        while not self.is_over:
            sleep(interval)
            now = time_source()
            delta = int(round((now - last) * 1000))
            if delta <= 0:
                continue
            last = now
            self.tick(min(delta, self.settings.max_tick_ms))

        return self._last

    # ------------------------------------------------------------------
    # Runtime toggles and driver controls
    # ------------------------------------------------------------------

    def deploy_safety_car(self) -> bool:
        with self._lock:
            if self.is_over or self.aggregator.safety_car:
                return False
            self.aggregator.safety_car = True
            self.log.info("safety_car_deployed", lap=self.clock.lap)
            return True

    def clear_safety_car(self) -> bool:
        with self._lock:
            if self.is_over or not self.aggregator.safety_car:
                return False
            self.aggregator.safety_car = False
            self.log.info("safety_car_cleared", lap=self.clock.lap)
            return True

    def set_weather(self, condition: WeatherCondition | str, temperature: float | None = None) -> bool:
        """Change the weather; applies from the next tick."""
        condition = WeatherCondition(condition)
        with self._lock:
            if self.is_over:
                return False
            if temperature is None:
                low, high = TEMPERATURE_RANGES[condition]
                temperature = round((low + high) / 2, 1)
            self.aggregator.weather = self.aggregator.weather.model_copy(
                update={"condition": condition, "temperature": temperature},
            )
            self.log.info("weather_set", condition=condition.value, temperature=temperature)
            return True

    def _control(self, action: str, driver_id: str) -> bool:
        with self._lock:
            self.table[driver_id]  # raises UnknownDriverError
            if self._status not in (RaceStatus.RUNNING, RaceStatus.PAUSED):
                return False
            if action == "boost":
                applied = self.table.boost(driver_id)
            elif action == "pit":
                applied = self.table.request_pit(driver_id)
            else:
                applied = self.table.crash(driver_id)
            self.log.info("driver_control", action=action, driver_id=driver_id, applied=applied)
            return applied

    def boost(self, driver_id: str) -> bool:
        return self._control("boost", driver_id)

    def pit(self, driver_id: str) -> bool:
        return self._control("pit", driver_id)

    def crash(self, driver_id: str) -> bool:
        return self._control("crash", driver_id)

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def results(self) -> list[RaceResult]:
        """Classification in current position order."""
        snapshot = self._last
        winner_time = None
        if snapshot.leader is not None and snapshot.leader.status == DriverStatus.FINISHED:
            winner_time = snapshot.leader.finish_time_ms

        results = []
        for driver in snapshot.drivers:
            gap = None
            if winner_time is not None and driver.finish_time_ms is not None:
                gap = driver.finish_time_ms - winner_time
            results.append(RaceResult(
                position=driver.position,
                driver_id=driver.id,
                driver_name=driver.name,
                team=driver.team,
                laps=driver.laps_completed,
                total_time_ms=driver.total_time_ms,
                gap_to_leader_ms=gap,
                best_lap_ms=driver.best_lap_ms,
                pit_stops=driver.pit_stops,
                overtakes=driver.overtakes,
                collisions=driver.collisions,
                status=driver.status,
            ))
        return results

    def statistics(self) -> RaceStatistics:
        """Totals over every event emitted, not only the retained ones."""
        snapshot = self._last
        timed = [d for d in snapshot.drivers if d.best_lap_ms is not None]
        fastest = min(timed, key=lambda d: (d.best_lap_ms, d.id)) if timed else None

        return RaceStatistics(
            total_events=sum(self._event_counts.values()),
            race_time_ms=snapshot.race.time_ms,
            laps=snapshot.race.lap,
            event_counts=dict(self._event_counts),
            fastest_lap_ms=fastest.best_lap_ms if fastest else None,
            fastest_lap_driver=fastest.id if fastest else None,
        )
