"""Race event simulation core: ticks, driver state, events and snapshots."""

from .config import RaceConfig, SimulationSettings, get_settings, load_race_config
from .exceptions import (
    ConfigurationError,
    InvariantViolation,
    RaceSimError,
    RaceStateError,
    UnknownDriverError,
)
from .logging_config import configure_logging
from .simulation import RaceSimulation

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "InvariantViolation",
    "RaceConfig",
    "RaceSimError",
    "RaceSimulation",
    "RaceStateError",
    "SimulationSettings",
    "UnknownDriverError",
    "configure_logging",
    "get_settings",
    "load_race_config",
]
