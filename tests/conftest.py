"""Shared fixtures for the racesim test suite."""

import logging

import numpy as np
import pytest
import structlog

from racesim.config import AppEnvironment, RaceConfig, SimulationSettings
from racesim.models import Driver, Track, Weather, WeatherCondition
from racesim.simulation import DriverStatus, RaceSimulation
from racesim.simulation.snapshot import DriverSnapshot, RaceSnapshot, RaceState, RaceStatus


def pytest_configure(config):
    """Register markers and configure structlog for tests."""
    config.addinivalue_line("markers", "slow: mark test as slow running")

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        logger_factory=structlog.PrintLoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=False,  # capture_logs needs fresh loggers
    )


class FixedSpeedModel:
    """Deterministic speed model: every driver holds a constant speed."""

    def __init__(self, speeds: dict[str, float], default: float = 300.0):
        self.speeds = speeds
        self.default = default

    def speed_kmh(self, state, environment) -> float:
        speed = self.speeds.get(state.id, self.default)
        if environment.safety_car:
            speed *= 0.5
        return speed


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@pytest.fixture
def track() -> Track:
    """1 km test circuit: at 360 km/h one 200 ms tick covers 2% of a lap."""
    return Track(id="test", name="Test Circuit", length_km=1.0, total_laps=2)


@pytest.fixture
def roster() -> list[Driver]:
    return [
        Driver(id="AAA", name="Alice Able", team="Alpha", max_speed_kmh=300.0),
        Driver(id="BBB", name="Bob Baker", team="Beta", max_speed_kmh=300.0),
        Driver(id="CCC", name="Cara Cole", team="Gamma", max_speed_kmh=300.0),
    ]


@pytest.fixture
def race_config(track, roster) -> RaceConfig:
    return RaceConfig(track=track, roster=roster, weather=Weather())


@pytest.fixture
def settings() -> SimulationSettings:
    return SimulationSettings(environment=AppEnvironment.TEST, strict_invariants=True, seed=1)


@pytest.fixture
def speed_model() -> FixedSpeedModel:
    # Per 200 ms tick on the test circuit: AAA 1.8%, BBB 1.9%, CCC 2.0% of a lap
    return FixedSpeedModel({"AAA": 324.0, "BBB": 342.0, "CCC": 360.0})


@pytest.fixture
def race(race_config, settings, speed_model) -> RaceSimulation:
    return RaceSimulation(
        race_config,
        settings=settings,
        speed_model=speed_model,
        rng=np.random.default_rng(0),
        race_id="test",
    )


# ---------------------------------------------------------------------------
# Snapshot builders for pure event tests
# ---------------------------------------------------------------------------


def make_driver(
    driver_id: str,
    position: int,
    laps: int = 0,
    progress: float = 0.0,
    status: DriverStatus = DriverStatus.RACING,
    **kwargs,
) -> DriverSnapshot:
    fields = dict(
        id=driver_id,
        name=f"Driver {driver_id}",
        team="Team",
        color="#ffffff",
        position=position,
        laps_completed=laps,
        progress=progress,
        fuel=80.0,
        speed_kmh=300.0,
        status=status,
    )
    fields.update(kwargs)
    return DriverSnapshot(**fields)


def make_snapshot(
    *drivers: DriverSnapshot,
    time_ms: int = 10_000,
    lap: int = 1,
    total_laps: int = 10,
    status: RaceStatus = RaceStatus.RUNNING,
    weather: WeatherCondition = WeatherCondition.CLEAR,
    safety_car: bool = False,
) -> RaceSnapshot:
    race = RaceState(
        track_id="test",
        track_name="Test Circuit",
        lap=lap,
        total_laps=total_laps,
        time_ms=time_ms,
        weather=weather,
        temperature=25.0,
        safety_car=safety_car,
        status=status,
    )
    return RaceSnapshot(race=race, drivers=tuple(sorted(drivers, key=lambda d: d.position)))
