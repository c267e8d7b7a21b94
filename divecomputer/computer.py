"""
Dive computer orchestrator.

Turns an external (depth, dt) stream into dive lifecycle events: a dive starts
when the diver goes below 1 m and ends once they stay above it for 3 minutes.
Also runs the planning sweep over candidate depths on simulated dives.
"""

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, List, NamedTuple, Optional, Tuple

from .body_state import BodyState
from .config import DiveConfig
from .constants import ASC_SPEED, MAX_OTU, PHASE
from .dive import Dive
from .environment import DiveSiteEnv, Site
from .events import EventType, Listener, emit
from .gas import GasMix, Tank
from .surface_interval import MemoryStore, SurfaceInterval

logger = logging.getLogger(__name__)

START_DEPTH = 1.0  # m
END_SURFACE_SECONDS = 180
PLAN_START_DEPTH = 10.0
PLAN_MAX_DIVES = 20

# TimeLeft sources as reported by the planner
LIMIT_NAMES = {"deco": "ndt", "gas": "gas", "cns": "cns", "otu": "otu"}


@dataclass
class PlannedDive:
    """One row of the planning sweep. Times are in minutes."""
    depth: float
    duration: float
    limiting_factor: str
    ascent_time: int
    recommended_mix: str


@dataclass
class DivePlan:
    mix: str
    tank_count: int
    mod: float
    mnd: float
    po2: float
    rmv: float
    water: str
    surface_pressure: float
    cns: int  # percent
    otu: int  # percent of the daily limit
    saturation: int  # percent
    gf: str
    dives: List[PlannedDive] = field(default_factory=list)
    break_reason: str = ""


class DesatState(NamedTuple):
    """Post-dive panel values, all in minutes."""
    si: float
    no_fly: float
    no_dive: float
    desat: float


class DiveComputer:
    """Owns the current dive and the surface interval store.

    Args:
        config: dive settings; defaults to DiveConfig()
        surface_interval: persisted last dive; defaults to an in-memory one
        env: site environment; defaults to sea level with config.salt
        listener: optional callable receiving DiveEvent objects
        clock: wall clock in seconds
    """

    def __init__(
        self,
        config: Optional[DiveConfig] = None,
        surface_interval: Optional[SurfaceInterval] = None,
        env: Optional[DiveSiteEnv] = None,
        listener: Optional[Listener] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config or DiveConfig()
        self.clock = clock
        self.si = surface_interval or SurfaceInterval(MemoryStore(), clock)
        self.env = env or DiveSiteEnv(salt=self.config.salt)
        self.listener = listener
        self.dive: Optional[Dive] = None
        self.depth = 0.0
        self._surface_time = 0.0

    @property
    def in_dive(self) -> bool:
        return self.dive is not None and self.dive.active

    def set_site(self, site: Site) -> None:
        """Switch environment for a new site. Ignored during a dive."""
        if self.in_dive:
            return
        self.env = DiveSiteEnv.for_site(site, self.config.salt)
        logger.info(f"Site set: alt={site.alt:.0f}m, sp={self.env.surface_pressure:.3f} bar")

    def _new_dive(self) -> Dive:
        dive = Dive(
            self.env,
            self.config.build_tanks(),
            self.config.gf,
            listener=self.listener,
            clock=self.clock,
        )
        emit(self.listener, EventType.DIVE_CREATED, 0.0)
        return dive

    def update(self, depth: float, dt: Optional[float] = None) -> Optional[Dive]:
        """Feed one depth sample; starts and ends dives as thresholds are crossed."""
        depth = max(depth, 0.0)
        self.depth = depth
        if not self.in_dive:
            if depth < START_DEPTH:
                return self.dive
            self.dive = self._new_dive()
            self.dive.start(surface_interval=self.si)
            self._surface_time = 0.0

        dive = self.dive
        before = dive.duration
        dive.add_sample(depth, dt)
        if depth < START_DEPTH:
            self._surface_time += dive.duration - before
            if self._surface_time >= END_SURFACE_SECONDS:
                self.end_dive()
        else:
            self._surface_time = 0.0
        return dive

    def tick(self, seconds: float) -> None:
        """Advance time at the last known depth."""
        if self.in_dive and seconds > 0:
            self.update(self.depth, seconds)

    def end_dive(self) -> None:
        if not self.in_dive:
            return
        self.dive.end()
        self.si.save(self.dive)

    def desat_state(self) -> DesatState:
        if self.in_dive:
            body = self.dive.body_state
        else:
            body = self.si.body_state(self.env, self.config.gf)
        return DesatState(
            si=self.si.si,
            no_fly=self.si.no_fly,
            no_dive=self.si.no_dive,
            desat=body.deco_model.reset_after(),
        )

    # --- planning ---

    def plan(self) -> DivePlan:
        """Sweep target depths from 10 m down in 3 m steps.

        Never raises for infeasible conditions: the reason the sweep stopped
        is reported in `break_reason`.
        """
        config = self.config
        env = self.env
        tanks = config.build_tanks()
        first = tanks[0].mix
        if self.in_dive:
            body = self.dive.body_state.clone()
        else:
            body = self.si.body_state(env, config.gf)

        plan = DivePlan(
            mix=first.name,
            tank_count=len(tanks),
            mod=round(env.depth_at(first.mod), 1),
            mnd=round(env.depth_at(first.mnd), 1) if math.isfinite(first.mnd) else math.inf,
            po2=config.max_ppo2,
            rmv=config.rmv,
            water=env.water,
            surface_pressure=env.surface_pressure,
            cns=round(body.cns.value * 100),
            otu=round(body.otu.value / MAX_OTU * 100),
            saturation=round(body.deco_model.saturation() * 100),
            gf=config.gf_description,
        )

        no_dive = self.si.no_dive
        if no_dive > 0:
            plan.break_reason = f"No-dive restriction active for {math.ceil(no_dive)} min"
            return plan
        if first.mbd > env.surface_pressure:
            plan.break_reason = f"{first.name} is hypoxic at the surface"
            return plan

        depth = PLAN_START_DEPTH
        while len(plan.dives) < PLAN_MAX_DIVES:
            entry, reason = self._plan_depth(depth, tanks, body)
            if entry is None:
                plan.break_reason = reason
                break
            plan.dives.append(entry)
            depth += PHASE
        else:
            plan.break_reason = f"Reached {PLAN_MAX_DIVES} planned depths"

        logger.debug(f"Plan: {len(plan.dives)} depth(s), stopped: {plan.break_reason}")
        return plan

    def _plan_depth(
        self, depth: float, tanks: List[Tank], body: BodyState
    ) -> Tuple[Optional[PlannedDive], str]:
        config = self.config
        env = self.env
        sim = Dive(
            env, [t.clone() for t in tanks], config.gf, clock=self.clock, simulating=True
        )
        sim.body_state = body.clone()
        sim.start()

        while sim.depth < depth:
            tank = sim.tank
            mod_depth = env.depth_at(tank.mix.mod)
            if mod_depth >= depth:
                sim.add_sample(depth)
                break
            if mod_depth > sim.depth:
                sim.add_sample(mod_depth)
            nxt = sim.next_tank()
            if nxt is None or nxt.mix.mod <= sim.pressure or nxt.mix.mbd > sim.pressure:
                return None, f"MOD exceeded at {depth:.0f}m"
            sim.change_tank(nxt)

        if sim.tank.empty:
            return None, f"Gas exhausted at {depth:.0f}m"

        left = sim.time_left()
        limit = LIMIT_NAMES.get(left.source, left.source)
        if left.time <= 0:
            return None, f"{limit.upper()} exceeded at {depth:.0f}m"

        duration = left.time
        if math.isfinite(duration):
            sim.add_sample(depth, duration * 60)
        stop_seconds = sum(s.seconds for s in sim.body_state.deco_model.stops(*sim.deco_mixes()))
        ascent = math.ceil(depth / ASC_SPEED) + math.ceil(stop_seconds / 60)
        best = GasMix.best_for(env.pressure_at(depth), config.max_ppo2, config.o2_narcotic)
        return (
            PlannedDive(
                depth=depth,
                duration=duration,
                limiting_factor=limit,
                ascent_time=ascent,
                recommended_mix=best.name,
            ),
            "",
        )
