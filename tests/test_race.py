"""Tests for the race simulation context."""

import itertools

import numpy as np
import pytest

from racesim.config import RaceConfig
from racesim.exceptions import ConfigurationError, RaceStateError, UnknownDriverError
from racesim.models import Weather, WeatherCondition
from racesim.simulation import DriverStatus, EventType, RaceSimulation, RaceStatus


def _system_kinds(events):
    return [e.data["kind"] for e in events if e.event_type == EventType.SYSTEM]


class TestLifecycle:
    """Tests for start, pause, resume and stop."""

    def test_initial_state(self, race):
        snapshot = race.snapshot()
        assert race.status == RaceStatus.WAITING
        assert snapshot.race.time_ms == 0
        assert snapshot.race.lap == 0
        assert [d.position for d in snapshot.drivers] == [1, 2, 3]
        assert race.events() == []

    def test_tick_before_start_does_nothing(self, race):
        assert race.tick() == []
        assert race.clock.time_ms == 0

    def test_start_emits_race_started(self, race):
        events = race.start()

        assert race.status == RaceStatus.RUNNING
        assert _system_kinds(events) == ["race_started"]
        assert events[0].sequence == 0

    def test_start_twice_raises(self, race):
        race.start()
        with pytest.raises(RaceStateError):
            race.start()

    def test_pause_and_resume(self, race):
        race.start()
        race.tick()
        assert race.pause() is True
        assert race.pause() is False
        assert race.snapshot().race.status == RaceStatus.PAUSED

        assert race.tick() == []
        assert race.clock.time_ms == 200

        assert race.resume() is True
        race.tick()
        assert race.clock.time_ms == 400

    def test_stop_is_idempotent(self, race):
        race.start()
        race.tick()
        published = len(race.events())

        assert race.stop() is True
        stopped = race.snapshot()
        assert race.stop() is False
        assert race.snapshot() == stopped
        assert race.status == RaceStatus.STOPPED
        assert race.snapshot().race.status == RaceStatus.STOPPED
        assert len(race.events()) == published

        assert race.tick() == []
        assert race.clock.time_ms == 200

    def test_stop_closes_subscriptions(self, race):
        sub = race.subscribe()
        race.start()
        race.stop()
        assert sub.closed
        assert [u.events[0].data["kind"] for u in sub] == ["race_started"]

    def test_stop_after_finish(self, race):
        race.run()
        assert race.status == RaceStatus.FINISHED
        assert race.stop() is False
        assert race.status == RaceStatus.FINISHED


class TestFullRace:
    """Tests for a race run to the chequered flag."""

    def test_everyone_finishes(self, race):
        final = race.run()

        assert race.status == RaceStatus.FINISHED
        assert final.race.lap == 2
        assert all(d.status == DriverStatus.FINISHED for d in final.drivers)
        assert [d.id for d in final.drivers] == ["CCC", "BBB", "AAA"]

    def test_event_sequence_and_content(self, race):
        race.run()
        events = race.events()

        sequences = [e.sequence for e in events]
        assert sequences == list(range(len(events)))

        finished = [e for e in events if e.event_type == EventType.AGENT_FINISHED]
        assert [e.drivers_involved[0] for e in finished] == ["CCC", "BBB", "AAA"]
        assert [e.data["final_position"] for e in finished] == [1, 2, 3]

        laps = [e for e in events if e.event_type == EventType.LAP_COMPLETE]
        assert len(laps) == 6

        # The fast car passes both at the start, BBB passes AAA
        overtakes = [e for e in events if e.event_type == EventType.OVERTAKE]
        assert sorted(e.drivers_involved for e in overtakes) == [
            ("BBB", "AAA"), ("CCC", "AAA"), ("CCC", "BBB"),
        ]

        assert _system_kinds(events) == ["race_started", "race_finished"]

    def test_invariants_hold_every_tick(self, race):
        sub = race.subscribe(maxsize=1000)
        race.run()

        updates = sub.drain()
        assert updates

        previous_lap = 0
        for update in updates:
            snapshot = update.snapshot
            positions = sorted(d.position for d in snapshot.drivers)
            assert positions == [1, 2, 3]
            assert previous_lap <= snapshot.race.lap <= snapshot.race.total_laps
            previous_lap = snapshot.race.lap
            for driver in snapshot.drivers:
                assert 0.0 <= driver.progress < 100.0
                assert 0.0 <= driver.fuel <= 100.0

    def test_results_and_statistics(self, race):
        race.run()
        results = race.results()

        assert [r.position for r in results] == [1, 2, 3]
        assert results[0].driver_id == "CCC"
        assert results[0].gap_to_leader_ms == 0
        assert results[1].gap_to_leader_ms > 0
        assert all(r.laps == 2 for r in results)
        assert results[0].overtakes == 2

        stats = race.statistics()
        assert stats.overtakes == 3
        assert stats.collisions == 0
        assert stats.total_events == len(race.events())
        assert stats.fastest_lap_driver == "CCC"
        assert stats.laps == 2

    def test_run_with_max_ticks(self, race):
        race.run(max_ticks=10)
        assert race.status == RaceStatus.RUNNING
        assert race.clock.time_ms == 2000

    def test_run_realtime_with_injected_clock(self, race):
        ticks = itertools.count()
        sleeps = []

        final = race.run_realtime(
            time_source=lambda: next(ticks) * 0.2,
            sleep=sleeps.append,
        )

        assert final.race.status == RaceStatus.FINISHED
        assert sleeps and all(s == pytest.approx(0.2) for s in sleeps)


class TestControls:
    """Tests for driver controls and runtime toggles."""

    def test_controls_before_start(self, race):
        assert race.boost("AAA") is False
        assert race.pit("AAA") is False

    def test_unknown_driver(self, race):
        race.start()
        with pytest.raises(UnknownDriverError):
            race.boost("ZZZ")

    def test_boost_surfaces_on_next_tick(self, race):
        race.start()
        assert race.boost("AAA") is True

        events = race.tick()

        boosts = [e for e in events if e.event_type == EventType.BOOST_USED]
        assert [e.drivers_involved for e in boosts] == [("AAA",)]
        assert race.snapshot().driver("AAA").boosts_used == 1

    def test_manual_pit(self, race):
        race.start()
        race.tick()
        assert race.pit("BBB") is True

        events = race.tick()
        assert EventType.PIT_STOP in [e.event_type for e in events]
        assert race.snapshot().driver("BBB").status == DriverStatus.PITTING

        completed = []
        for _ in range(20):
            completed.extend(e for e in race.tick() if e.event_type == EventType.PIT_COMPLETE)
        assert [e.drivers_involved for e in completed] == [("BBB",)]

    def test_crash_retires_driver(self, race):
        race.start()
        race.tick()
        assert race.crash("CCC") is True

        events = race.tick()
        assert EventType.CRASH in [e.event_type for e in events]

        race.run()
        assert race.status == RaceStatus.FINISHED
        assert race.snapshot().driver("CCC").status == DriverStatus.CRASHED
        assert race.results()[-1].driver_id == "CCC"

    def test_safety_car_toggle(self, race):
        race.start()
        assert race.deploy_safety_car() is True
        assert race.deploy_safety_car() is False
        assert _system_kinds(race.tick()) == ["safety_car_deployed"]

        assert race.clear_safety_car() is True
        assert _system_kinds(race.tick()) == ["safety_car_cleared"]

    def test_set_weather(self, race):
        race.start()
        assert race.set_weather("rain") is True

        events = race.tick()

        assert _system_kinds(events) == ["weather_change"]
        assert race.snapshot().race.weather == WeatherCondition.RAIN
        assert 15.0 <= race.snapshot().race.temperature <= 25.0

    def test_collision_slows_both_cars_for_a_tick(self, race, settings):
        race.start()
        # CCC closes on AAA by 0.2% of a lap every tick
        race.table["AAA"].progress = 10.0

        collision = None
        for _ in range(60):
            collision = next((e for e in race.tick() if e.event_type == EventType.COLLISION), None)
            if collision is not None:
                break
        assert collision is not None
        assert set(collision.drivers_involved) == {"AAA", "CCC"}

        before = {d.id: d.distance for d in race.snapshot().drivers}
        race.tick()
        after = {d.id: d.distance for d in race.snapshot().drivers}

        factor = settings.collision_speed_factor
        assert after["AAA"] - before["AAA"] == pytest.approx(0.018 * factor)
        assert after["CCC"] - before["CCC"] == pytest.approx(0.020 * factor)
        assert after["BBB"] - before["BBB"] == pytest.approx(0.019)
        assert race.snapshot().driver("AAA").collisions == 1

        # Full pace again once the penalty has been served
        race.tick()
        assert race.snapshot().driver("CCC").distance - after["CCC"] == pytest.approx(0.020)

    def test_recent_events_keep_priority_within_the_final_tick(self, race):
        race.run()
        last_time = race.recent_events(1)[0].time_ms

        final_tick = [e for e in race.recent_events(100) if e.time_ms == last_time]

        assert final_tick[0].event_type == EventType.AGENT_FINISHED
        assert final_tick[-1].data["kind"] == "race_finished"
        priorities = [e.priority for e in final_tick]
        assert priorities == sorted(priorities)


class TestConstruction:
    """Tests for race initialization."""

    def test_empty_roster_rejected(self, track, settings):
        config = RaceConfig.model_construct(track=track, total_laps=None, weather=Weather(), roster=[])
        with pytest.raises(ConfigurationError):
            RaceSimulation(config, settings=settings)

    def test_from_track(self, settings):
        race = RaceSimulation.from_track("Monza", total_laps=1, settings=settings)
        assert race.track.id == "monza"
        assert race.clock.total_laps == 1
        assert len(race.table) == 20

    def test_unknown_track(self, settings):
        with pytest.raises(ConfigurationError):
            RaceSimulation.from_track("nurburgring", settings=settings)

    def test_races_are_independent(self, race_config, settings, speed_model):
        first = RaceSimulation(race_config, settings=settings, speed_model=speed_model)
        second = RaceSimulation(race_config, settings=settings, speed_model=speed_model)

        first.run()

        assert second.status == RaceStatus.WAITING
        assert second.snapshot().race.time_ms == 0
        assert second.events() == []

    def test_seeded_races_are_reproducible(self, race_config, settings):
        def finish_times(seed):
            race = RaceSimulation(race_config, settings=settings, rng=np.random.default_rng(seed))
            race.run()
            return [(r.driver_id, r.total_time_ms) for r in race.results()]

        assert finish_times(7) == finish_times(7)
