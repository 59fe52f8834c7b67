"""Track model."""

from pydantic import BaseModel, Field


class Track(BaseModel):
    """Represents a circuit."""

    id: str = Field(..., min_length=1, description="Track identifier (e.g., 'monza')")
    name: str = Field(..., description="Official event name")
    location: str = Field(default="", description="City and country")
    length_km: float = Field(..., gt=0, description="Lap length in kilometres")
    total_laps: int = Field(..., gt=0, description="Number of laps in race")

    def lap_fraction(self, speed_kmh: float, delta_ms: float) -> float:
        """Fraction of a lap covered at ``speed_kmh`` over ``delta_ms``."""
        distance_km = speed_kmh * delta_ms / 3_600_000.0
        return distance_km / self.length_km
