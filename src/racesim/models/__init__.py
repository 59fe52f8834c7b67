"""Data models for race simulation."""

from .driver import Driver
from .track import Track
from .weather import Weather, WeatherCondition

__all__ = [
    "Driver",
    "Track",
    "Weather",
    "WeatherCondition",
]
