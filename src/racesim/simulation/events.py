"""Race events and the generator that derives them from consecutive snapshots."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from racesim.simulation.drivers import DriverStatus
from racesim.simulation.snapshot import DriverSnapshot, RaceSnapshot, RaceStatus


class EventType(str, Enum):
    """Types of race events."""

    OVERTAKE = "overtake"
    COLLISION = "collision"
    PIT_STOP = "pit_stop"
    PIT_COMPLETE = "pit_complete"
    LAP_COMPLETE = "lap_complete"
    BOOST_USED = "boost_used"
    AGENT_FINISHED = "agent_finished"
    CRASH = "crash"
    SYSTEM = "system"


# Lower value = shown first within a tick
_PRIORITY = {
    EventType.AGENT_FINISHED: 0,
    EventType.COLLISION: 1,
    EventType.CRASH: 1,
    EventType.OVERTAKE: 2,
    EventType.BOOST_USED: 4,
    EventType.PIT_STOP: 4,
    EventType.PIT_COMPLETE: 4,
    EventType.LAP_COMPLETE: 5,
    EventType.SYSTEM: 6,
}
_BEST_LAP_PRIORITY = 3

_TERMINAL = (DriverStatus.FINISHED, DriverStatus.CRASHED)


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_thaw(v) for v in value]
    return value


def _wire(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {_camel(k): _wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_wire(v) for v in value]
    return value


@dataclass(frozen=True)
class RaceEvent:
    """Immutable record of something that happened during a tick."""

    event_type: EventType
    time_ms: int
    lap: int
    drivers_involved: tuple[str, ...] = ()
    data: Mapping[str, Any] = field(default_factory=dict)
    description: str = ""
    sequence: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "drivers_involved", tuple(self.drivers_involved))
        object.__setattr__(self, "data", _freeze(self.data))

    @property
    def priority(self) -> int:
        if self.event_type == EventType.LAP_COMPLETE and self.data.get("best_lap"):
            return _BEST_LAP_PRIORITY
        return _PRIORITY[self.event_type]

    def to_dict(self) -> dict[str, Any]:
        """Flat camelCase form for dashboards."""
        payload = {
            "type": self.event_type.value,
            "timestamp": self.time_ms,
            "sequenceNumber": self.sequence,
            "lap": self.lap,
            "description": self.description,
        }
        payload.update(_wire(dict(self.data)))
        return payload

    def plain_data(self) -> dict[str, Any]:
        """Mutable copy of the payload with plain dicts and lists."""
        return _thaw(self.data)


def order_events(events: Iterable[RaceEvent]) -> list[RaceEvent]:
    """Sort one tick's events by display priority (stable within a priority)."""
    return sorted(events, key=lambda e: e.priority)


def _ref(driver: DriverSnapshot) -> Mapping[str, str]:
    return MappingProxyType({"id": driver.id, "name": driver.name})


def _driver_events(
    prev: DriverSnapshot,
    cur: DriverSnapshot,
    time_ms: int,
    lap: int,
) -> list[RaceEvent]:
    events: list[RaceEvent] = []

    if cur.status == DriverStatus.FINISHED:
        total_time = cur.finish_time_ms if cur.finish_time_ms is not None else cur.total_time_ms
        events.append(RaceEvent(
            event_type=EventType.AGENT_FINISHED,
            time_ms=time_ms,
            lap=lap,
            drivers_involved=(cur.id,),
            data={"agent_id": cur.id, "final_position": cur.position, "total_time": total_time},
            description=f"{cur.name} takes the chequered flag in P{cur.position}",
        ))

    if cur.status == DriverStatus.CRASHED:
        events.append(RaceEvent(
            event_type=EventType.CRASH,
            time_ms=time_ms,
            lap=lap,
            drivers_involved=(cur.id,),
            data={"agent_id": cur.id, "lap": cur.laps_completed},
            description=f"{cur.name} crashed out",
        ))

    if cur.laps_completed > prev.laps_completed and cur.last_lap_ms is not None:
        lap_time = cur.last_lap_ms
        best_lap = prev.best_lap_ms is None or lap_time < prev.best_lap_ms
        events.append(RaceEvent(
            event_type=EventType.LAP_COMPLETE,
            time_ms=time_ms,
            lap=lap,
            drivers_involved=(cur.id,),
            data={
                "agent_id": cur.id,
                "lap": cur.laps_completed,
                "lap_time": lap_time,
                "best_lap": best_lap,
            },
            description=f"{cur.name} completes lap {cur.laps_completed} in {lap_time / 1000:.3f}s"
            + (" (personal best)" if best_lap else ""),
        ))

    if cur.boosts_used > prev.boosts_used:
        for _ in range(cur.boosts_used - prev.boosts_used):
            events.append(RaceEvent(
                event_type=EventType.BOOST_USED,
                time_ms=time_ms,
                lap=lap,
                drivers_involved=(cur.id,),
                data={"agent_id": cur.id, "fuel_remaining": round(cur.fuel, 1)},
                description=f"{cur.name} uses a boost",
            ))

    if prev.status == DriverStatus.RACING and cur.status == DriverStatus.PITTING:
        events.append(RaceEvent(
            event_type=EventType.PIT_STOP,
            time_ms=time_ms,
            lap=lap,
            drivers_involved=(cur.id,),
            data={"agent_id": cur.id, "fuel": round(cur.fuel, 1), "pit_stops": cur.pit_stops},
            description=f"{cur.name} dives into the pit lane",
        ))
    elif prev.status == DriverStatus.PITTING and cur.status == DriverStatus.RACING:
        events.append(RaceEvent(
            event_type=EventType.PIT_COMPLETE,
            time_ms=time_ms,
            lap=lap,
            drivers_involved=(cur.id,),
            data={"agent_id": cur.id, "fuel": round(cur.fuel, 1)},
            description=f"{cur.name} rejoins from the pits",
        ))

    return events


def _overtakes(
    current: RaceSnapshot,
    prev_by_id: dict[str, DriverSnapshot],
    time_ms: int,
    lap: int,
) -> list[RaceEvent]:
    events: list[RaceEvent] = []
    drivers = [
        d for d in current.drivers
        if d.id in prev_by_id
        and d.status != DriverStatus.CRASHED
        and prev_by_id[d.id].status != DriverStatus.CRASHED
    ]

    # current.drivers is in position order, so ``ahead`` is ahead of ``behind``
    for i, ahead in enumerate(drivers):
        for behind in drivers[i + 1:]:
            if prev_by_id[ahead.id].position > prev_by_id[behind.id].position:
                events.append(RaceEvent(
                    event_type=EventType.OVERTAKE,
                    time_ms=time_ms,
                    lap=lap,
                    drivers_involved=(ahead.id, behind.id),
                    data={
                        "overtaker": _ref(ahead),
                        "overtaken": _ref(behind),
                        "position": ahead.position,
                    },
                    description=f"{ahead.name} overtakes {behind.name} for P{ahead.position}",
                ))
    return events


def _overlapping(a: DriverSnapshot, b: DriverSnapshot, threshold_pct: float) -> bool:
    return abs(a.distance - b.distance) * 100.0 <= threshold_pct


def _collisions(
    current: RaceSnapshot,
    prev_by_id: dict[str, DriverSnapshot],
    threshold_pct: float,
    time_ms: int,
    lap: int,
) -> list[RaceEvent]:
    events: list[RaceEvent] = []
    racing = [d for d in current.drivers if d.status == DriverStatus.RACING]

    for i, a in enumerate(racing):
        for b in racing[i + 1:]:
            if not _overlapping(a, b, threshold_pct):
                continue

            # Only the first tick of an overlap episode counts
            prev_a, prev_b = prev_by_id.get(a.id), prev_by_id.get(b.id)
            if (
                prev_a is not None
                and prev_b is not None
                and prev_a.status == DriverStatus.RACING
                and prev_b.status == DriverStatus.RACING
                and _overlapping(prev_a, prev_b, threshold_pct)
            ):
                continue

            events.append(RaceEvent(
                event_type=EventType.COLLISION,
                time_ms=time_ms,
                lap=lap,
                drivers_involved=(a.id, b.id),
                data={
                    "agents": (_ref(a), _ref(b)),
                    "lap": a.laps_completed,
                    "location": round((a.progress + b.progress) / 2, 2),
                },
                description=f"Contact between {a.name} and {b.name}",
            ))
    return events


def _system(kind: str, message: str, time_ms: int, lap: int) -> RaceEvent:
    return RaceEvent(
        event_type=EventType.SYSTEM,
        time_ms=time_ms,
        lap=lap,
        data={"kind": kind, "message": message},
        description=message,
    )


def _system_events(previous: RaceSnapshot, current: RaceSnapshot) -> list[RaceEvent]:
    prev_race, race = previous.race, current.race
    time_ms, lap = race.time_ms, race.lap
    events: list[RaceEvent] = []

    if prev_race.status == RaceStatus.WAITING and race.status == RaceStatus.RUNNING:
        events.append(_system("race_started", f"Lights out at the {race.track_name}", time_ms, lap))
    if race.safety_car and not prev_race.safety_car:
        events.append(_system("safety_car_deployed", "Safety Car deployed", time_ms, lap))
    elif prev_race.safety_car and not race.safety_car:
        events.append(_system("safety_car_cleared", "Safety Car in this lap, racing resumes", time_ms, lap))
    if race.weather != prev_race.weather:
        events.append(_system(
            "weather_change",
            f"Weather changed to {race.weather.value} ({race.temperature:.1f}C)",
            time_ms,
            lap,
        ))
    if race.status == RaceStatus.FINISHED and prev_race.status != RaceStatus.FINISHED:
        events.append(_system("race_finished", "The race is over", time_ms, lap))

    return events


def observe(
    previous: RaceSnapshot,
    current: RaceSnapshot,
    collision_threshold_pct: float = 0.5,
) -> list[RaceEvent]:
    """Derive the events that happened between two consecutive snapshots.

    Pure function: the result depends only on the arguments. Drivers that
    had already finished or crashed in ``previous`` produce no events.

    Args:
        previous: Snapshot taken after the prior tick
        current: Snapshot taken after this tick
        collision_threshold_pct: Overlap, in percent of a lap, counted as contact

    Returns:
        Events ordered by display priority
    """
    time_ms, lap = current.race.time_ms, current.race.lap
    prev_by_id = {d.id: d for d in previous.drivers}
    events: list[RaceEvent] = []

    for cur in current.drivers:
        prev = prev_by_id.get(cur.id)
        if prev is None or prev.status in _TERMINAL:
            continue
        events.extend(_driver_events(prev, cur, time_ms, lap))

    events.extend(_collisions(current, prev_by_id, collision_threshold_pct, time_ms, lap))
    events.extend(_overtakes(current, prev_by_id, time_ms, lap))
    events.extend(_system_events(previous, current))

    return order_events(events)
