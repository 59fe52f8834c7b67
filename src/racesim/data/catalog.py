"""Track catalog and default driver roster (2024 grid)."""

from racesim.exceptions import ConfigurationError
from racesim.models import Driver, Track

TRACKS: dict[str, Track] = {
    "monaco": Track(
        id="monaco",
        name="Monaco Grand Prix",
        location="Monte Carlo, Monaco",
        length_km=3.337,
        total_laps=78,
    ),
    "silverstone": Track(
        id="silverstone",
        name="British Grand Prix",
        location="Silverstone, UK",
        length_km=5.891,
        total_laps=52,
    ),
    "spa": Track(
        id="spa",
        name="Belgian Grand Prix",
        location="Spa-Francorchamps, Belgium",
        length_km=7.004,
        total_laps=44,
    ),
    "monza": Track(
        id="monza",
        name="Italian Grand Prix",
        location="Monza, Italy",
        length_km=5.793,
        total_laps=53,
    ),
    "interlagos": Track(
        id="interlagos",
        name="Brazilian Grand Prix",
        location="Sao Paulo, Brazil",
        length_km=4.309,
        total_laps=71,
    ),
}

# team -> (color, top speed km/h, consistency)
_TEAMS = {
    "Red Bull Racing": ("#3671C6", 318.0, 0.96),
    "Ferrari": ("#E8002D", 316.0, 0.93),
    "McLaren": ("#FF8000", 315.0, 0.94),
    "Mercedes": ("#27F4D2", 314.0, 0.95),
    "Aston Martin": ("#229971", 308.0, 0.94),
    "Alpine": ("#FF87BC", 304.0, 0.92),
    "Williams": ("#64C4FF", 306.0, 0.91),
    "AlphaTauri": ("#6692FF", 303.0, 0.92),
    "Alfa Romeo": ("#52E252", 301.0, 0.92),
    "Haas": ("#B6BABD", 300.0, 0.90),
}

_DRIVERS = [
    ("VER", "Max Verstappen", "Red Bull Racing", 1),
    ("PER", "Sergio Perez", "Red Bull Racing", 11),
    ("LEC", "Charles Leclerc", "Ferrari", 16),
    ("SAI", "Carlos Sainz", "Ferrari", 55),
    ("NOR", "Lando Norris", "McLaren", 4),
    ("PIA", "Oscar Piastri", "McLaren", 81),
    ("HAM", "Lewis Hamilton", "Mercedes", 44),
    ("RUS", "George Russell", "Mercedes", 63),
    ("ALO", "Fernando Alonso", "Aston Martin", 14),
    ("STR", "Lance Stroll", "Aston Martin", 18),
    ("GAS", "Pierre Gasly", "Alpine", 10),
    ("OCO", "Esteban Ocon", "Alpine", 31),
    ("ALB", "Alexander Albon", "Williams", 23),
    ("SAR", "Logan Sargeant", "Williams", 2),
    ("TSU", "Yuki Tsunoda", "AlphaTauri", 22),
    ("RIC", "Daniel Ricciardo", "AlphaTauri", 3),
    ("BOT", "Valtteri Bottas", "Alfa Romeo", 77),
    ("ZHO", "Zhou Guanyu", "Alfa Romeo", 24),
    ("MAG", "Kevin Magnussen", "Haas", 20),
    ("HUL", "Nico Hulkenberg", "Haas", 27),
]


def _build_roster() -> list[Driver]:
    roster = []
    for driver_id, name, team, number in _DRIVERS:
        color, top_speed, consistency = _TEAMS[team]
        roster.append(Driver(
            id=driver_id,
            name=name,
            team=team,
            number=number,
            color=color,
            max_speed_kmh=top_speed,
            consistency=consistency,
        ))
    return roster


DEFAULT_ROSTER: tuple[Driver, ...] = tuple(_build_roster())


def default_roster() -> list[Driver]:
    """Return a fresh copy of the default roster."""
    return [driver.model_copy(deep=True) for driver in DEFAULT_ROSTER]


def get_track(track_id: str) -> Track:
    """Look up a catalog track by id.

    Raises:
        ConfigurationError: If the track id is unknown.
    """
    track = TRACKS.get(track_id.lower())
    if track is None:
        known = ", ".join(sorted(TRACKS))
        raise ConfigurationError(f"Unknown track '{track_id}' (known tracks: {known})")
    return track.model_copy(deep=True)
