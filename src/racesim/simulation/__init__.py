"""Simulation engine components."""

from .clock import RaceClock
from .drivers import DriverState, DriverStatus, DriverTable
from .events import EventType, RaceEvent, observe, order_events
from .feed import EventFeed, Subscription, TickUpdate
from .race import RaceResult, RaceSimulation, RaceStatistics
from .snapshot import DriverSnapshot, RaceSnapshot, RaceState, RaceStateAggregator, RaceStatus
from .speed import DefaultSpeedModel, Environment, SpeedModel

__all__ = [
    "DefaultSpeedModel",
    "DriverSnapshot",
    "DriverState",
    "DriverStatus",
    "DriverTable",
    "Environment",
    "EventFeed",
    "EventType",
    "RaceClock",
    "RaceEvent",
    "RaceResult",
    "RaceSimulation",
    "RaceSnapshot",
    "RaceState",
    "RaceStateAggregator",
    "RaceStatistics",
    "RaceStatus",
    "SpeedModel",
    "Subscription",
    "TickUpdate",
    "observe",
    "order_events",
]
