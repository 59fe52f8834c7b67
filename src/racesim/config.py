"""Simulation settings and race configuration."""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from racesim.data import default_roster, get_track
from racesim.exceptions import ConfigurationError
from racesim.models import Driver, Track, Weather, WeatherCondition


class AppEnvironment(str, Enum):
    """Working modes."""

    DEV = "development"
    PROD = "production"
    TEST = "testing"


class SimulationSettings(BaseSettings):
    """Tunable constants of the simulation core.

    Reads ``RACESIM_*`` environment variables or a ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="RACESIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: AppEnvironment = Field(default=AppEnvironment.DEV)

    # Tick loop
    tick_ms: int = Field(default=200, gt=0, description="Fixed step used by headless runs")
    max_tick_ms: int = Field(default=5000, gt=0, description="Largest accepted single step")

    # Event thresholds
    collision_threshold_pct: float = Field(
        default=0.5,
        ge=0.0,
        lt=100.0,
        description="Track overlap (percent of a lap) that counts as contact",
    )
    collision_speed_factor: float = Field(
        default=0.3,
        gt=0.0,
        le=1.0,
        description="Speed multiplier applied to both cars after contact",
    )
    collision_penalty_ms: int = Field(default=200, ge=0, description="How long the contact slowdown lasts")

    # Fuel and pit lane
    fuel_per_lap: float = Field(default=2.5, ge=0.0, le=100.0, description="Fuel burned per lap at full speed")
    pit_fuel_threshold: float = Field(default=10.0, ge=0.0, le=100.0, description="Fuel level that forces a pit stop")
    pit_duration_ms: int = Field(default=3000, gt=0, description="Time spent stationary in the pit lane")

    # Boost
    boost_multiplier: float = Field(default=1.2, ge=1.0, le=2.0)
    boost_duration_ms: int = Field(default=2000, gt=0)
    boost_fuel_cost: float = Field(default=10.0, ge=0.0, le=100.0)
    boost_min_fuel: float = Field(default=10.0, ge=0.0, le=100.0, description="Fuel required to use a boost")

    safety_car_speed_factor: float = Field(default=0.5, gt=0.0, le=1.0)

    # Consumer-facing buffers
    feed_capacity: int = Field(default=1000, gt=0, description="Events kept in the consumer-visible log")
    subscriber_queue_size: int = Field(default=256, gt=0, description="Per-subscriber buffered updates")

    strict_invariants: bool | None = Field(
        default=None,
        description="Fail loudly on inconsistent state (defaults to on outside production)",
    )
    seed: int | None = Field(default=None, description="Seed for the simulation RNG")

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @property
    def invariants_strict(self) -> bool:
        """Whether internal inconsistencies raise instead of self-correcting."""
        if self.strict_invariants is not None:
            return self.strict_invariants
        return self.environment != AppEnvironment.PROD


@lru_cache
def get_settings() -> SimulationSettings:
    """Create and return a (cached) settings instance."""
    return SimulationSettings()


class RaceConfig(BaseModel):
    """Everything needed to initialize one race."""

    track: Track
    total_laps: int | None = Field(default=None, gt=0, description="Override of the track's race laps")
    weather: Weather = Field(default_factory=Weather)
    roster: list[Driver] = Field(..., min_length=1)

    @field_validator("roster")
    @classmethod
    def _unique_driver_ids(cls, roster: list[Driver]) -> list[Driver]:
        seen: set[str] = set()
        for driver in roster:
            if driver.id in seen:
                raise ValueError(f"duplicate driver id '{driver.id}'")
            seen.add(driver.id)
        return roster

    @property
    def laps(self) -> int:
        """Effective race length in laps."""
        return self.total_laps if self.total_laps is not None else self.track.total_laps

    @classmethod
    def from_track_id(
        cls,
        track_id: str,
        roster: list[Driver] | None = None,
        total_laps: int | None = None,
        weather: WeatherCondition | str = WeatherCondition.CLEAR,
        temperature: float = 25.0,
    ) -> "RaceConfig":
        """Build a config from a catalog track id.

        Raises:
            ConfigurationError: If the track is unknown or any value is invalid.
        """
        return parse_race_config({
            "track": get_track(track_id),
            "total_laps": total_laps,
            "weather": {"condition": weather, "temperature": temperature},
            "roster": roster if roster is not None else default_roster(),
        })


def parse_race_config(data: dict[str, Any]) -> RaceConfig:
    """Validate a raw mapping into a RaceConfig.

    Raises:
        ConfigurationError: If validation fails.
    """
    try:
        return RaceConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid race configuration: {e}") from e


def load_race_config(path: str | Path) -> RaceConfig:
    """Load a race configuration from a YAML file.

    Expected keys: ``track`` (catalog id or full mapping), optional
    ``total_laps``, ``weather``, ``temperature``, ``change_probability``
    and ``drivers`` (defaults to the built-in roster).

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Race config not found: {config_path}")

    with open(config_path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}

    if not isinstance(data, dict):
        raise ConfigurationError(f"Race config must be a mapping: {config_path}")

    track = data.get("track")
    if track is None:
        raise ConfigurationError("Race config is missing 'track'")
    if isinstance(track, str):
        track = get_track(track)

    weather = {
        "condition": data.get("weather", WeatherCondition.CLEAR),
        "temperature": data.get("temperature", 25.0),
        "change_probability": data.get("change_probability", 0.0),
    }

    return parse_race_config({
        "track": track,
        "total_laps": data.get("total_laps"),
        "weather": weather,
        "roster": data.get("drivers", default_roster()),
    })
