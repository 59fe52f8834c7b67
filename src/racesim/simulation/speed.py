"""Per-driver speed models."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from racesim.models import Weather

if TYPE_CHECKING:
    from racesim.simulation.drivers import DriverState


@dataclass(frozen=True)
class Environment:
    """Track conditions shared by every driver during one tick."""

    weather: Weather
    safety_car: bool = False


class SpeedModel(Protocol):
    """Strategy deciding how fast a racing driver goes this tick.

    Implementations must be monotonic: more fuel or a faster weather
    multiplier never produces a lower speed, all else being equal.
    """

    def speed_kmh(self, state: "DriverState", environment: Environment) -> float:
        """Return the driver's speed in km/h for the current tick."""
        ...


class DefaultSpeedModel:
    """Top speed scaled by weather, safety car, fuel and boost, with small noise."""

    LOW_FUEL_LEVEL = 20.0
    LOW_FUEL_FACTOR = 0.9
    EMPTY_FUEL_FACTOR = 0.5
    MAX_NOISE = 0.03

    def __init__(
        self,
        rng: np.random.Generator | None = None,
        safety_car_factor: float = 0.5,
        boost_multiplier: float = 1.2,
    ):
        """Initialize the speed model.

        Args:
            rng: Random number generator (creates new if None)
            safety_car_factor: Speed multiplier while the safety car is out
            boost_multiplier: Speed multiplier while a boost is active
        """
        self.rng = rng if rng is not None else np.random.default_rng()
        self.safety_car_factor = safety_car_factor
        self.boost_multiplier = boost_multiplier

    def fuel_factor(self, fuel: float) -> float:
        """Speed penalty for running low on fuel (non-decreasing in fuel)."""
        if fuel <= 0.0:
            return self.EMPTY_FUEL_FACTOR
        if fuel < self.LOW_FUEL_LEVEL:
            return self.LOW_FUEL_FACTOR
        return 1.0

    def speed_kmh(self, state: "DriverState", environment: Environment) -> float:
        speed = state.driver.max_speed_kmh
        speed *= environment.weather.speed_multiplier()
        speed *= self.fuel_factor(state.fuel)

        if environment.safety_car:
            speed *= self.safety_car_factor
        if state.boost_remaining_ms > 0:
            speed *= self.boost_multiplier

        std = state.driver.speed_variation_std()
        noise = float(np.clip(self.rng.normal(0.0, std), -self.MAX_NOISE, self.MAX_NOISE))
        return speed * (1.0 + noise)
