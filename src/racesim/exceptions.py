"""Exception hierarchy for the race simulation core."""


class RaceSimError(Exception):
    """Base class for all racesim errors."""


class ConfigurationError(RaceSimError, ValueError):
    """Raised when a race cannot be initialized from the given configuration."""


class InvariantViolation(RaceSimError, AssertionError):
    """Raised when internal race state is inconsistent (e.g. duplicate positions)."""


class RaceStateError(RaceSimError, RuntimeError):
    """Raised when a lifecycle operation is not valid for the current race status."""


class UnknownDriverError(RaceSimError, KeyError):
    """Raised when a command references a driver that is not on the roster."""
