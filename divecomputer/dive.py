"""
Dive lifecycle: not started -> active -> ended.

A Dive consumes (depth, dt) samples, keeps depth statistics, breathes from its
tank stack and advances the diver's BodyState. All lookahead (time left,
planning) runs on clones made with `clone()`, which never emit events.
"""

import enum
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, NamedTuple, Optional, Set

from .body_state import BodyState
from .constants import (
    ASC_SPEED,
    DESC_SPEED,
    GF_DEFAULT,
    MAX_ASC_SPEED,
    MAX_DESC_SPEED,
    GradientFactors,
)
from .deco_model import DecoStop
from .deco_stops import DecoStops
from .environment import SEAWATER_ENV, DiveSiteEnv
from .events import AlertType, EventType, Listener, emit
from .gas import AIR, GasMix, Tank

logger = logging.getLogger(__name__)

# Alert when time left drops to this many minutes outside of deco
LOW_TIME_LEFT = 3


class DiveState(enum.Enum):
    NOT_STARTED = "not-started"
    ACTIVE = "active"
    ENDED = "ended"


class TimeLeft(NamedTuple):
    """Verified minutes left and the constraint that binds (gas, deco, cns, otu)."""
    time: float
    source: str


@dataclass(frozen=True)
class DiveSnapshot:
    """Read-only view of a dive for displays."""
    state: DiveState
    depth: float
    avg_depth: float
    max_depth: float
    speed: float
    duration: float
    tank: Optional[str]
    tank_pressure: Optional[float]
    time_left: TimeLeft
    asc_time: int
    alerts: FrozenSet[AlertType]
    stop: Optional[DecoStop]
    next_stop: Optional[DecoStop]


class Dive:
    """A single dive session.

    Args:
        env: dive site environment
        tanks: configured tanks, first one breathed at start
        gf: gradient factors for the deco model
        listener: optional callable receiving DiveEvent objects
        clock: wall clock in seconds, injectable for tests
        simulating: lookahead copy; emits no events and keeps no live ladder
    """

    def __init__(
        self,
        env: DiveSiteEnv = SEAWATER_ENV,
        tanks: Optional[List[Tank]] = None,
        gf: GradientFactors = GF_DEFAULT,
        listener: Optional[Listener] = None,
        clock: Callable[[], float] = time.time,
        simulating: bool = False,
    ):
        self.env = env
        self.gf = gf
        self.tanks: List[Tank] = list(tanks) if tanks else [Tank(AIR, 12.0, 200.0)]
        self.listener = listener
        self.clock = clock

        self.state = DiveState.NOT_STARTED
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.duration = 0.0
        self.depth = 0.0
        self.avg_depth = 0.0
        self.max_depth = 0.0
        self.speed = 0.0

        self.body_state = BodyState(env, gf)
        self.deco_stops = DecoStops()
        self._used: List[Tank] = []
        self._alerts: Set[AlertType] = set()
        self._last_wall: Optional[float] = None
        self._simulating = simulating

    # --- state ---

    @property
    def active(self) -> bool:
        return self.state is DiveState.ACTIVE

    @property
    def started(self) -> bool:
        return self.state is not DiveState.NOT_STARTED

    @property
    def ended(self) -> bool:
        return self.state is DiveState.ENDED

    @property
    def pressure(self) -> float:
        return self.env.pressure_at(self.depth)

    @property
    def tank(self) -> Optional[Tank]:
        return self._used[-1] if self._used else None

    @property
    def mix(self) -> GasMix:
        tank = self.tank
        return tank.mix if tank is not None else self.tanks[0].mix

    @property
    def used_tanks(self) -> List[Tank]:
        return list(self._used)

    # --- lifecycle ---

    def start(self, tank: Optional[Tank] = None, surface_interval=None) -> "Dive":
        """Start the dive, seeding the body state from the last surface interval."""
        if self.state is not DiveState.NOT_STARTED:
            return self
        self.start_time = self.clock()
        self._last_wall = self.start_time
        if surface_interval is not None:
            self.body_state = surface_interval.body_state(self.env, self.gf)
        self.state = DiveState.ACTIVE
        if not self._simulating:
            logger.info(f"Dive started ({self.env.water} water, sp={self.env.surface_pressure:.3f} bar)")
        self._emit(EventType.START)
        self._open_tank(tank if tank is not None else self.tanks[0])
        return self

    def end(self) -> "Dive":
        if not self.active:
            return self
        self.end_time = self.clock()
        self._close_tank()
        self.state = DiveState.ENDED
        if not self._simulating:
            logger.info(
                f"Dive ended after {self.duration / 60:.1f} min, max depth {self.max_depth:.1f}m"
            )
        self._emit(EventType.END, duration=self.duration, max_depth=self.max_depth)
        return self

    def change_tank(self, tank: Tank) -> "Dive":
        if not self.active or tank is self.tank:
            return self
        self._close_tank()
        self._open_tank(tank)
        return self

    def _open_tank(self, tank: Tank) -> None:
        if not any(t is tank for t in self.tanks):
            self.tanks.append(tank)
        self._used.append(tank)
        if not self._simulating:
            logger.info(f"Breathing {tank.name} ({tank.end:.0f} bar) at {self.depth:.1f}m")
        self._emit(EventType.TANK_BEGIN, tank=tank.name, pressure=tank.end, depth=self.depth)

    def _close_tank(self) -> None:
        tank = self.tank
        if tank is not None:
            self._emit(EventType.TANK_END, tank=tank.name, pressure=tank.end, depth=self.depth)

    def next_tank(self) -> Optional[Tank]:
        """Next configured tank not breathed yet in this dive."""
        for tank in self.tanks:
            if not any(t is tank for t in self._used):
                return tank
        return None

    def is_usable(self, tank: Tank) -> bool:
        return tank.is_usable_at(self.pressure)

    def deco_mixes(self) -> List[GasMix]:
        return [t.mix for t in self.tanks if not t.empty]

    # --- samples ---

    def add_sample(self, depth: float, dt: Optional[float] = None) -> "Dive":
        """Feed a depth sample.

        Args:
            depth: depth in meters, negatives clamp to 0
            dt: seconds since the previous sample. When omitted it is the
                travel time at the ideal ascent/descent speed, or the wall
                clock delta if the depth did not change.
        """
        if not self.active:
            return self
        depth = max(depth, 0.0)
        prev = self.depth
        now = self.clock()
        if dt is None:
            dd = depth - prev
            if dd > 0:
                dt = dd / DESC_SPEED * 60
            elif dd < 0:
                dt = -dd / ASC_SPEED * 60
            else:
                dt = now - self._last_wall
        dt = max(dt, 0.0)
        self._last_wall = now

        p0 = self.pressure
        if dt > 0:
            total = self.duration + dt
            self.avg_depth = (self.avg_depth * self.duration + (prev + depth) / 2 * dt) / total
            self.speed = (depth - prev) / (dt / 60)
            self.duration = total
        self.depth = depth
        self.max_depth = max(self.max_depth, depth)
        p1 = self.pressure

        self.body_state.add_change(p1, dt, self.mix)
        if self.tank is not None:
            self.tank.consume((p0 + p1) / 2, dt)

        if self._simulating:
            return self
        for stop in self.deco_stops.update(self):
            logger.info(
                f"Deco stop added: {stop.depth:.0f}m for {stop.seconds:.0f}s on {stop.mix.name}"
                f"{' (optional)' if stop.optional else ''}"
            )
            self._emit(EventType.DECO_STOP_ADDED, stop=stop)
        self.deco_stops.tick(self, dt)
        self._emit(EventType.SAMPLE, depth=depth, dt=dt)
        self._update_alerts()
        return self

    # --- derived values ---

    def _naive_time_left(self) -> TimeLeft:
        tank = self.tank
        gas = tank.time_left(self.pressure) if tank is not None else math.inf
        nearest = self.body_state.nearest_effect()
        if gas < nearest.time:
            return TimeLeft(gas, "gas")
        return TimeLeft(nearest.time, nearest.name)

    def time_left(self) -> TimeLeft:
        """Minutes the diver can stay at the current depth and still surface.

        The naive minimum of gas and body limits is checked by simulating the
        stay plus a full ascent with stops on a clone; each failed check lowers
        the candidate by one minute.
        """
        naive = self._naive_time_left()
        if math.isinf(naive.time) or naive.time <= 0:
            return naive
        candidate = int(naive.time)
        while candidate > 0 and not self._verify(candidate):
            candidate -= 1
        return TimeLeft(candidate, naive.source)

    def _verify(self, minutes: int) -> bool:
        sim = self.clone()
        sim.add_sample(self.depth, minutes * 60)
        return sim._simulate_ascent()

    def _can_continue(self) -> bool:
        tank = self.tank
        if tank is not None and tank.empty:
            return False
        return all(
            effect.time_left() >= 0
            for effect in (self.body_state.cns, self.body_state.otu)
        )

    def _switch_tank(self) -> None:
        """Move to the richest usable tank when the current one is worse."""
        p = self.pressure
        current = self.tank
        best = current if current is not None and current.is_usable_at(p) else None
        for tank in self.tanks:
            if tank.is_usable_at(p) and (best is None or tank.mix.o2 > best.mix.o2):
                best = tank
        if best is not None and best is not current:
            self.change_tank(best)

    def _ascend_to(self, depth: float) -> bool:
        while self.depth > depth:
            target = max(depth, self.depth - ASC_SPEED)
            self.add_sample(target, (self.depth - target) / ASC_SPEED * 60)
            self._switch_tank()
            if not self._can_continue():
                return False
        return True

    def _simulate_ascent(self) -> bool:
        if not self._can_continue():
            return False
        for stop in self.body_state.deco_model.stops(*self.deco_mixes()):
            if stop.depth < self.depth and not self._ascend_to(stop.depth):
                return False
            self._switch_tank()
            self.add_sample(self.depth, stop.seconds)
            if not self._can_continue():
                return False
        return self._ascend_to(0.0)

    def alerts(self) -> Set[AlertType]:
        alerts = set()
        if not self.active:
            return alerts
        p = self.pressure
        mix = self.mix
        if self.deco_stops.missing:
            alerts.add(AlertType.STOP)
        if not mix.is_breathable(p):
            alerts.add(AlertType.PO2)
        if mix.is_narcotic(p):
            alerts.add(AlertType.NARCOTIC)
        if self.speed < -MAX_ASC_SPEED:
            alerts.add(AlertType.ASCENT)
        if self.speed > MAX_DESC_SPEED:
            alerts.add(AlertType.DESCENT)
        if self.body_state.deco_model.can_ascend():
            if self._naive_time_left().time <= LOW_TIME_LEFT:
                alerts.add(AlertType.TIME_LEFT)
        return alerts

    def _update_alerts(self) -> None:
        alerts = self.alerts()
        for alert in AlertType:
            active = alert in alerts
            if active != (alert in self._alerts):
                if active:
                    logger.warning(f"Alert {alert.value} raised at {self.depth:.1f}m")
                self._emit(EventType.ALERT, alert=alert, active=active)
        self._alerts = alerts

    def asc_time(self) -> int:
        """Minutes to the surface: travel at the ideal speed plus remaining stops."""
        return math.ceil(self.depth / ASC_SPEED) + math.ceil(self.deco_stops.asc_time / 60)

    def snapshot(self) -> DiveSnapshot:
        tank = self.tank
        return DiveSnapshot(
            state=self.state,
            depth=self.depth,
            avg_depth=self.avg_depth,
            max_depth=self.max_depth,
            speed=self.speed,
            duration=self.duration,
            tank=tank.name if tank is not None else None,
            tank_pressure=tank.end if tank is not None else None,
            time_left=self.time_left(),
            asc_time=self.asc_time(),
            alerts=frozenset(self.alerts()),
            stop=self.deco_stops.current,
            next_stop=self.deco_stops.next,
        )

    def clone(self) -> "Dive":
        """Event-free deep copy for lookahead."""
        tanks = [t.clone() for t in self.tanks]
        dive = Dive(self.env, tanks, self.gf, clock=self.clock, simulating=True)
        dive.state = self.state
        dive.start_time = self.start_time
        dive.end_time = self.end_time
        dive.duration = self.duration
        dive.depth = self.depth
        dive.avg_depth = self.avg_depth
        dive.max_depth = self.max_depth
        dive.speed = self.speed
        dive._last_wall = self._last_wall
        index = {id(t): i for i, t in enumerate(self.tanks)}
        dive._used = [tanks[index[id(t)]] for t in self._used]
        dive.body_state = self.body_state.clone()
        dive.deco_stops = DecoStops()
        dive.deco_stops.update(dive)
        return dive

    def _emit(self, type: EventType, **data) -> None:
        if not self._simulating:
            emit(self.listener, type, self.duration, **data)
