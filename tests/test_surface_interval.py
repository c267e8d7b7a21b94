"""Tests for surface interval persistence and no-fly/no-dive times."""

import json
import logging
import math
import os

import numpy as np
import pytest

from divecomputer.constants import GradientFactors
from divecomputer.dive import Dive
from divecomputer.environment import SEAWATER_ENV
from divecomputer.gas import AIR, Tank
from divecomputer.surface_interval import (
    NO_DIVE_AFTER_DECO,
    NO_FLY_REPETITIVE,
    NO_FLY_SINGLE,
    STORAGE_KEY,
    FileStore,
    MemoryStore,
    SurfaceInterval,
)

GF = GradientFactors(0.4, 1.0)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FailingStore(MemoryStore):
    def set(self, key, value):
        raise OSError("read-only filesystem")


def recreational_dive(clock) -> Dive:
    """18 m for 40 minutes with a normal ascent."""
    dive = Dive(tanks=[Tank(AIR, 24, 300)], gf=GF, clock=clock).start()
    dive.add_sample(18, 60)
    dive.add_sample(18, 40 * 60)
    dive.add_sample(5)
    dive.add_sample(5, 180)
    dive.add_sample(0)
    return dive.end()


def missed_deco_dive(clock) -> Dive:
    """40 m for 27 minutes, then straight to the surface."""
    dive = Dive(tanks=[Tank(AIR, 24, 300)], gf=GF, clock=clock).start()
    dive.add_sample(40, 120)
    dive.add_sample(40, 25 * 60)
    dive.add_sample(1.5, 1)
    return dive.end()


class TestStores:
    def test_memory_store(self):
        store = MemoryStore()
        assert store.get("a") is None
        store.set("a", b"1")
        assert store.get("a") == b"1"
        store.remove("a")
        store.remove("a")
        assert store.get("a") is None

    def test_file_store(self, tmp_path):
        store = FileStore(str(tmp_path / "state"))
        assert store.get("a") is None
        store.set("a", b"{}")
        assert os.path.exists(tmp_path / "state" / "a.json")
        assert store.get("a") == b"{}"
        store.remove("a")
        assert store.get("a") is None


class TestNoPreviousDive:
    def test_empty(self):
        si = SurfaceInterval(MemoryStore(), FakeClock())
        assert not si.has()
        assert math.isinf(si.si)
        assert si.no_fly == 0
        assert si.no_dive == 0

    def test_fresh_body_state(self):
        si = SurfaceInterval(MemoryStore(), FakeClock())
        body = si.body_state(SEAWATER_ENV, GF)
        assert body.deco_model.saturation() == pytest.approx(0.0, abs=1e-9)
        assert body.cns.value == 0

    def test_unstarted_dive_not_saved(self):
        store = MemoryStore()
        si = SurfaceInterval(store, FakeClock())
        si.save(Dive(clock=FakeClock()))
        assert store.get(STORAGE_KEY) is None
        assert not si.has()


class TestSaveAndRestore:
    def test_restored_body_matches_dive(self):
        """Right after the dive the restored tissues equal the live ones."""
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        dive = recreational_dive(clock)
        si.save(dive)

        body = si.body_state(SEAWATER_ENV, GF)
        live = dive.body_state
        np.testing.assert_allclose(body.deco_model.n2, live.deco_model.n2)
        assert body.cns.value == pytest.approx(live.cns.value)
        p18 = SEAWATER_ENV.pressure_at(18)
        assert body.deco_model.test(p18, AIR).time_left() == live.deco_model.test(p18, AIR).time_left()

    def test_reload_from_store(self):
        clock = FakeClock()
        store = MemoryStore()
        SurfaceInterval(store, clock).save(recreational_dive(clock))
        reloaded = SurfaceInterval(store, clock)
        assert reloaded.has()
        assert reloaded.si == 0

    def test_file_store_roundtrip(self, tmp_path):
        clock = FakeClock()
        directory = str(tmp_path / "data")
        SurfaceInterval(FileStore(directory), clock).save(recreational_dive(clock))
        assert os.path.exists(os.path.join(directory, f"{STORAGE_KEY}.json"))
        clock.now += 600
        reloaded = SurfaceInterval(FileStore(directory), clock)
        assert reloaded.si == pytest.approx(10)

    def test_surface_interval_decays_cns(self):
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        dive = recreational_dive(clock)
        si.save(dive)
        clock.now += 90 * 60
        body = si.body_state(SEAWATER_ENV, GF)
        assert body.cns.value == pytest.approx(dive.body_state.cns.value / 2)
        assert body.deco_model.saturation() < dive.body_state.deco_model.saturation()

    def test_expires_after_a_day(self):
        clock = FakeClock()
        store = MemoryStore()
        si = SurfaceInterval(store, clock)
        si.save(recreational_dive(clock))
        clock.now += 1440 * 60
        assert math.isinf(si.si)
        assert not si.has()
        assert store.get(STORAGE_KEY) is None
        assert si.no_fly == 0


class TestNoFlyNoDive:
    def test_single_dive(self):
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        si.save(recreational_dive(clock))
        assert si.no_fly == NO_FLY_SINGLE
        assert si.no_dive == 0
        clock.now += 60 * 60
        assert si.no_fly == pytest.approx(NO_FLY_SINGLE - 60)

    def test_repetitive_dive(self):
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        si.save(recreational_dive(clock))
        clock.now += 60 * 60
        si.save(recreational_dive(clock))
        assert si.no_fly == NO_FLY_REPETITIVE

    def test_required_deco_blocks_diving(self):
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        dive = Dive(tanks=[Tank(AIR, 24, 300)], gf=GF, clock=clock).start()
        dive.add_sample(40, 120)
        dive.add_sample(40, 25 * 60)
        for stop in list(dive.deco_stops):
            dive.add_sample(stop.depth)
            dive.add_sample(stop.depth, stop.seconds)
        dive.add_sample(0)
        dive.end()
        assert dive.deco_stops.has_required()
        assert not dive.deco_stops.has_missed()
        si.save(dive)
        assert si.no_dive == NO_DIVE_AFTER_DECO

    def test_missed_deco(self):
        clock = FakeClock()
        si = SurfaceInterval(MemoryStore(), clock)
        dive = missed_deco_dive(clock)
        assert dive.deco_stops.has_missed()
        si.save(dive)
        assert si.no_dive >= 1440
        assert si.no_fly >= NO_FLY_SINGLE


class TestDegradedStorage:
    def test_corrupt_snapshot_discarded(self, caplog):
        store = MemoryStore()
        store.set(STORAGE_KEY, b"{not json")
        with caplog.at_level(logging.WARNING):
            si = SurfaceInterval(store, FakeClock())
        assert not si.has()
        assert math.isinf(si.si)
        assert "corrupt" in caplog.text

    def test_missing_fields_discarded(self):
        store = MemoryStore()
        store.set(STORAGE_KEY, json.dumps({"end": 0}).encode())
        si = SurfaceInterval(store, FakeClock())
        assert not si.has()
        assert si.body_state().cns.value == 0

    def test_unreadable_body_gives_fresh_state(self, caplog):
        store = MemoryStore()
        data = {"end": 0, "no_fly": 720, "no_dive": 0, "body": {"deco": {}}}
        store.set(STORAGE_KEY, json.dumps(data).encode())
        si = SurfaceInterval(store, FakeClock())
        with caplog.at_level(logging.WARNING):
            body = si.body_state()
        assert body.deco_model.saturation() == pytest.approx(0.0, abs=1e-9)
        assert "unreadable" in caplog.text

    def test_write_failure_logged(self, caplog):
        clock = FakeClock()
        si = SurfaceInterval(FailingStore(), clock)
        with caplog.at_level(logging.ERROR):
            si.save(recreational_dive(clock))
        assert "Could not persist" in caplog.text
