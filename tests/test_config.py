"""Tests for settings, race configuration and the built-in catalog."""

import numpy as np
import pytest

from racesim.config import (
    AppEnvironment,
    RaceConfig,
    SimulationSettings,
    get_settings,
    load_race_config,
    parse_race_config,
)
from racesim.data import DEFAULT_ROSTER, TRACKS, default_roster, get_track
from racesim.exceptions import ConfigurationError
from racesim.models import Driver, Weather, WeatherCondition
from racesim.models.weather import TEMPERATURE_RANGES


class TestSimulationSettings:
    """Tests for SimulationSettings."""

    def test_defaults(self):
        settings = SimulationSettings()
        assert settings.tick_ms == 200
        assert settings.collision_threshold_pct == 0.5
        assert settings.pit_duration_ms == 3000
        assert settings.feed_capacity == 1000

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("RACESIM_TICK_MS", "100")
        monkeypatch.setenv("RACESIM_ENVIRONMENT", "production")

        settings = SimulationSettings()

        assert settings.tick_ms == 100
        assert settings.environment == AppEnvironment.PROD

    def test_strict_invariants_follow_environment(self):
        assert SimulationSettings(environment=AppEnvironment.DEV).invariants_strict is True
        assert SimulationSettings(environment=AppEnvironment.PROD).invariants_strict is False
        assert SimulationSettings(
            environment=AppEnvironment.PROD, strict_invariants=True,
        ).invariants_strict is True

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestRaceConfig:
    """Tests for RaceConfig."""

    def test_laps_override(self, track, roster):
        assert RaceConfig(track=track, roster=roster).laps == 2
        assert RaceConfig(track=track, roster=roster, total_laps=7).laps == 7

    def test_duplicate_driver_ids(self, track):
        with pytest.raises(ConfigurationError, match="duplicate"):
            parse_race_config({
                "track": track,
                "roster": [Driver(id="A", name="One"), Driver(id="A", name="Two")],
            })

    def test_empty_roster(self, track):
        with pytest.raises(ConfigurationError):
            parse_race_config({"track": track, "roster": []})

    def test_non_positive_laps(self, track, roster):
        with pytest.raises(ConfigurationError):
            parse_race_config({"track": track, "roster": roster, "total_laps": 0})

    def test_from_track_id(self):
        config = RaceConfig.from_track_id("spa", weather="rain", temperature=16.0)
        assert config.track.length_km == 7.004
        assert config.laps == 44
        assert config.weather.condition == WeatherCondition.RAIN
        assert len(config.roster) == 20


class TestLoadRaceConfig:
    """Tests for YAML race configs."""

    def test_catalog_track_and_custom_drivers(self, tmp_path):
        path = tmp_path / "race.yaml"
        path.write_text(
            "track: silverstone\n"
            "total_laps: 3\n"
            "weather: cloudy\n"
            "temperature: 19.5\n"
            "drivers:\n"
            "  - {id: AAA, name: Alice Able, max_speed_kmh: 310}\n"
            "  - {id: BBB, name: Bob Baker}\n"
        )

        config = load_race_config(path)

        assert config.track.id == "silverstone"
        assert config.laps == 3
        assert config.weather.condition == WeatherCondition.CLOUDY
        assert config.weather.temperature == 19.5
        assert [d.id for d in config.roster] == ["AAA", "BBB"]
        assert config.roster[0].max_speed_kmh == 310

    def test_inline_track_and_default_roster(self, tmp_path):
        path = tmp_path / "race.yaml"
        path.write_text(
            "track:\n"
            "  id: oval\n"
            "  name: Test Oval\n"
            "  length_km: 2.5\n"
            "  total_laps: 10\n"
        )

        config = load_race_config(path)

        assert config.track.name == "Test Oval"
        assert len(config.roster) == len(DEFAULT_ROSTER)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_race_config(tmp_path / "nope.yaml")

    def test_missing_track(self, tmp_path):
        path = tmp_path / "race.yaml"
        path.write_text("total_laps: 3\n")
        with pytest.raises(ConfigurationError, match="track"):
            load_race_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "race.yaml"
        path.write_text("- monza\n- spa\n")
        with pytest.raises(ConfigurationError):
            load_race_config(path)

    def test_unknown_track(self, tmp_path):
        path = tmp_path / "race.yaml"
        path.write_text("track: nurburgring\n")
        with pytest.raises(ConfigurationError, match="Unknown track"):
            load_race_config(path)


class TestCatalog:
    """Tests for the built-in tracks and roster."""

    def test_tracks(self):
        assert set(TRACKS) == {"monaco", "silverstone", "spa", "monza", "interlagos"}
        assert get_track("MONACO").total_laps == 78

    def test_get_track_returns_copy(self):
        track = get_track("monza")
        track.total_laps = 1
        assert TRACKS["monza"].total_laps == 53

    def test_default_roster(self):
        roster = default_roster()
        assert len(roster) == 20
        assert len({d.id for d in roster}) == 20
        assert all(d.team and d.number is not None for d in roster)
        roster[0].name = "Changed"
        assert DEFAULT_ROSTER[0].name != "Changed"


class TestWeather:
    """Tests for weather effects and evolution."""

    def test_speed_multipliers(self):
        assert Weather(condition=WeatherCondition.CLEAR).speed_multiplier() == 1.0
        assert Weather(condition=WeatherCondition.RAIN).speed_multiplier() == 0.8
        assert Weather(condition=WeatherCondition.STORM).speed_multiplier() == 0.6
        assert Weather(condition=WeatherCondition.STORM).is_wet()

    def test_no_change_without_probability(self):
        weather = Weather(condition=WeatherCondition.CLOUDY, change_probability=0.0)
        rng = np.random.default_rng(3)
        for _ in range(20):
            assert weather.evolve(rng).condition == WeatherCondition.CLOUDY

    def test_change_moves_to_neighbour(self):
        weather = Weather(condition=WeatherCondition.CLEAR, change_probability=1.0)

        evolved = weather.evolve(np.random.default_rng(3))

        assert evolved.condition == WeatherCondition.CLOUDY
        low, high = TEMPERATURE_RANGES[WeatherCondition.CLOUDY]
        assert low <= evolved.temperature <= high
        assert weather.condition == WeatherCondition.CLEAR
