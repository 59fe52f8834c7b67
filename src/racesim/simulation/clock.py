"""Race clock and lap tracker."""


class RaceClock:
    """Accumulates simulated race time and the leader's lap count."""

    def __init__(self, total_laps: int, max_tick_ms: int = 5000):
        """Initialize the clock.

        Args:
            total_laps: Race length in laps
            max_tick_ms: Largest accepted single advance
        """
        if total_laps <= 0:
            raise ValueError(f"total_laps must be positive, got {total_laps}")
        self.total_laps = total_laps
        self.max_tick_ms = max_tick_ms
        self.time_ms = 0
        self.lap = 0

    def advance(self, delta_ms: int) -> int:
        """Move race time forward.

        Args:
            delta_ms: Elapsed milliseconds since the previous tick

        Returns:
            New race time in milliseconds

        Raises:
            ValueError: If the delta is not positive or exceeds ``max_tick_ms``
        """
        if delta_ms <= 0:
            raise ValueError(f"Clock must advance by a positive delta, got {delta_ms}")
        if delta_ms > self.max_tick_ms:
            raise ValueError(f"Tick of {delta_ms} ms exceeds max_tick_ms={self.max_tick_ms}")
        self.time_ms += int(delta_ms)
        return self.time_ms

    def record_leader_lap(self, laps_completed: int) -> bool:
        """Update the race lap from the leader's completed laps.

        Returns:
            True if the race lap counter moved forward
        """
        new_lap = min(laps_completed, self.total_laps)
        if new_lap > self.lap:
            self.lap = new_lap
            return True
        return False

    @property
    def chequered_flag(self) -> bool:
        """True once the leader has completed the race distance."""
        return self.lap >= self.total_laps

    @property
    def percent_complete(self) -> float:
        """Race completion as a percentage of laps."""
        return self.lap / self.total_laps * 100
