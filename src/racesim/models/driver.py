"""Driver roster entry with pace attributes."""

from pydantic import BaseModel, Field


class Driver(BaseModel):
    """Represents a driver entered into a race."""

    id: str = Field(..., min_length=1, description="Unique driver identifier (e.g., 'VER')")
    name: str = Field(..., description="Full name")
    team: str = Field(default="", description="Team name")
    number: int | None = Field(default=None, ge=0, description="Car number")
    color: str = Field(default="#ffffff", description="Team color tag used by renderers")

    # Performance attributes
    max_speed_kmh: float = Field(
        default=300.0,
        gt=0.0,
        le=400.0,
        description="Top racing speed on a dry track",
    )
    consistency: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Higher = less speed variation tick to tick",
    )

    def speed_variation_std(self, base_std: float = 0.01) -> float:
        """Relative speed standard deviation based on consistency."""
        # Higher consistency = lower variation
        return base_std * (2.0 - self.consistency)
