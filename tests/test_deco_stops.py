"""Tests for the live deco stop ladder."""

from divecomputer.constants import GradientFactors
from divecomputer.deco_stops import DecoStops
from divecomputer.dive import Dive
from divecomputer.events import EventType
from divecomputer.gas import AIR, Tank


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def deep_dive(events=None) -> Dive:
    """40 m for 27 minutes on a large air tank: mandatory deco."""
    dive = Dive(
        tanks=[Tank(AIR, 24, 300)],
        gf=GradientFactors(0.4, 1.0),
        listener=events.append if events is not None else None,
        clock=FakeClock(),
    )
    dive.start()
    dive.add_sample(40, 120)
    dive.add_sample(40, 25 * 60)
    return dive


class TestNoDeco:
    def test_shallow_dive_has_no_stops(self):
        dive = Dive(clock=FakeClock()).start()
        dive.add_sample(10, 30)
        dive.add_sample(10, 600)
        stops = dive.deco_stops
        assert stops.current is None
        assert stops.next is None
        assert stops.no_deco
        assert not stops.has_required()
        assert not stops.missing
        assert len(stops) == 0
        assert stops.asc_time == 0

    def test_fresh_ladder(self):
        stops = DecoStops()
        assert stops.current is None
        assert stops.no_deco
        assert not stops.has_missed()


class TestMandatoryStops:
    def test_stops_added(self):
        events = []
        dive = deep_dive(events)
        stops = dive.deco_stops
        assert not stops.no_deco
        assert stops.has_required()
        assert stops.current is not None
        assert stops.current.required
        added = [e for e in events if e.type is EventType.DECO_STOP_ADDED]
        assert added
        assert {e.data["stop"].depth for e in added} >= {s.depth for s in stops}

    def test_deepest_stop_first(self):
        dive = deep_dive()
        depths = [s.depth for s in dive.deco_stops]
        assert depths == sorted(depths, reverse=True)
        assert dive.deco_stops.current.depth == depths[0]
        if len(depths) > 1:
            assert dive.deco_stops.next.depth == depths[1]

    def test_asc_time_sums_remaining_stops(self):
        dive = deep_dive()
        stops = dive.deco_stops
        assert stops.asc_time == sum(s.seconds for s in stops)
        assert dive.asc_time() >= 4 + stops.asc_time / 60

    def test_iteration_yields_copies(self):
        dive = deep_dive()
        first = next(iter(dive.deco_stops))
        first.seconds = 0
        assert dive.deco_stops.current.seconds > 0


class TestHysteresis:
    """Small depth oscillations at a stop neither rebuild the ladder nor reset its clock."""

    def test_oscillation_keeps_stop(self):
        dive = deep_dive()
        depth = dive.deco_stops.current.depth
        dive.add_sample(depth)
        before = dive.deco_stops.current.seconds
        dive.add_sample(depth + 0.5, 10)
        dive.add_sample(depth - 0.5, 10)
        stop = dive.deco_stops.current
        assert stop.depth == depth
        assert stop.seconds == before - 20
        assert not stop.missed

    def test_travel_not_counted_as_stop_time(self):
        dive = deep_dive()
        depth = dive.deco_stops.current.depth
        planned = dive.deco_stops.current.seconds
        dive.add_sample(depth)
        assert dive.deco_stops.current.seconds == planned

    def test_stop_completes_and_advances(self):
        dive = deep_dive()
        stop = dive.deco_stops.current
        dive.add_sample(stop.depth)
        dive.add_sample(stop.depth, stop.seconds)
        current = dive.deco_stops.current
        assert current is None or current.depth < stop.depth

    def test_tick_only_counts_at_stop(self):
        dive = deep_dive()
        stop = dive.deco_stops.current
        dive.deco_stops.tick(dive, 60)
        assert dive.deco_stops.current.seconds == stop.seconds


class TestSafetyStop:
    """An optional stop, once held, is not issued again."""

    def test_issued_once(self):
        events = []
        dive = Dive(
            tanks=[Tank(AIR, 24, 300)],
            gf=GradientFactors(0.4, 1.0),
            listener=events.append,
            clock=FakeClock(),
        ).start()
        dive.add_sample(18, 60)
        dive.add_sample(18, 40 * 60)
        dive.add_sample(5)
        for _ in range(30):
            dive.add_sample(5, 60)

        added = [
            e.data["stop"] for e in events
            if e.type is EventType.DECO_STOP_ADDED and e.data["stop"].depth == 5
        ]
        assert len(added) == 1
        assert added[0].optional
        assert dive.deco_stops.current is None
        assert dive.deco_stops.asc_time == 0
        assert not dive.deco_stops.has_required()


class TestMissedStops:
    def test_skipping_stops_is_flagged(self):
        events = []
        dive = deep_dive(events)
        dive.add_sample(1.5, 1)
        stops = dive.deco_stops
        assert stops.missing
        assert stops.has_missed()
        assert stops.current.missed
        alerts = [e for e in events if e.type is EventType.ALERT and e.data["alert"].value == "stop"]
        assert alerts and alerts[-1].data["active"]

    def test_missed_flag_persists(self):
        """has_missed stays true even after the diver returns to the stop."""
        dive = deep_dive()
        dive.add_sample(1.5, 1)
        depth = dive.deco_stops.current.depth
        dive.add_sample(depth, 30)
        assert not dive.deco_stops.missing
        assert dive.deco_stops.has_missed()

    def test_ladder_frozen_after_end(self):
        dive = deep_dive()
        stop = dive.deco_stops.current
        dive.end()
        assert dive.deco_stops.update(dive) == []
        dive.deco_stops.tick(dive, 600)
        assert dive.deco_stops.current.seconds == stop.seconds
