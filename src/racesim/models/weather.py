"""Weather model and conditions."""

from enum import Enum

import numpy as np
from pydantic import BaseModel, Field


class WeatherCondition(str, Enum):
    """Weather condition types."""

    CLEAR = "clear"
    CLOUDY = "cloudy"
    RAIN = "rain"
    STORM = "storm"
    FOG = "fog"


# Temperature band (min, max) in Celsius drawn when the weather changes
TEMPERATURE_RANGES: dict[WeatherCondition, tuple[float, float]] = {
    WeatherCondition.CLEAR: (20.0, 35.0),
    WeatherCondition.CLOUDY: (18.0, 28.0),
    WeatherCondition.RAIN: (15.0, 25.0),
    WeatherCondition.STORM: (10.0, 18.0),
    WeatherCondition.FOG: (8.0, 16.0),
}


class Weather(BaseModel):
    """Represents current weather conditions."""

    condition: WeatherCondition = Field(
        default=WeatherCondition.CLEAR,
        description="Current weather condition",
    )
    temperature: float = Field(
        default=25.0,
        ge=-20.0,
        le=60.0,
        description="Air temperature in Celsius",
    )
    change_probability: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Probability of a weather change per leader lap",
    )

    def speed_multiplier(self) -> float:
        """Calculate speed multiplier based on conditions.

        Returns:
            Multiplier <= 1.0 for slower conditions
        """
        if self.condition == WeatherCondition.CLEAR:
            return 1.0
        elif self.condition == WeatherCondition.CLOUDY:
            return 0.95
        elif self.condition == WeatherCondition.FOG:
            return 0.85
        elif self.condition == WeatherCondition.RAIN:
            return 0.8
        else:  # STORM
            return 0.6

    def is_wet(self) -> bool:
        """Check if the track is wet."""
        return self.condition in (WeatherCondition.RAIN, WeatherCondition.STORM)

    def evolve(self, rng: np.random.Generator) -> "Weather":
        """Generate next lap's weather based on current conditions.

        Args:
            rng: Random number generator

        Returns:
            New Weather instance (unchanged copy if no change happened)
        """
        new_weather = self.model_copy(deep=True)

        if rng.random() >= self.change_probability:
            return new_weather

        # Conditions drift to a neighbouring state
        if self.condition == WeatherCondition.CLEAR:
            options = [WeatherCondition.CLOUDY]
        elif self.condition == WeatherCondition.CLOUDY:
            options = [WeatherCondition.CLEAR, WeatherCondition.RAIN, WeatherCondition.FOG]
        elif self.condition == WeatherCondition.RAIN:
            options = [WeatherCondition.CLOUDY, WeatherCondition.STORM]
        elif self.condition == WeatherCondition.STORM:
            options = [WeatherCondition.RAIN]
        else:  # FOG
            options = [WeatherCondition.CLOUDY, WeatherCondition.CLEAR]

        new_weather.condition = options[int(rng.integers(0, len(options)))]
        low, high = TEMPERATURE_RANGES[new_weather.condition]
        new_weather.temperature = round(float(rng.uniform(low, high)), 1)

        return new_weather
