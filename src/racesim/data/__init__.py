"""Built-in tracks and driver roster."""

from .catalog import DEFAULT_ROSTER, TRACKS, default_roster, get_track

__all__ = ["DEFAULT_ROSTER", "TRACKS", "default_roster", "get_track"]
