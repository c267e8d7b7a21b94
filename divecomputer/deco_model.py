"""
Bühlmann ZH-L16C tissue model with gradient factors.

Tissue math is vectorized across the 16 compartments with numpy. Every
pressure change goes through the Schreiner equation so continuous descents and
ascents load correctly, not just square steps.

Lookahead (no-deco time, desaturation, stop ladder) always runs on a clone,
never on the live model.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .constants import (
    AIR_N2,
    ASC_SPEED,
    DESAT_HORIZON_MINUTES,
    DESAT_THRESHOLD,
    GF_DEFAULT,
    MAX_STOP_MINUTES,
    NDL_HORIZON_MINUTES,
    NUM_COMPARTMENTS,
    PHASE,
    SAFETY_STOP_DEPTH,
    SAFETY_STOP_SECONDS,
    SIM_STEP_MINUTES,
    ZH_L16C_HE_HALFTIMES,
    ZH_L16C_N2_HALFTIMES,
    GradientFactors,
    alveolar_pressure,
    ceiling_pressure_gf,
    combined_coefficients,
    schreiner_vec,
)
from .environment import SEAWATER_ENV, DiveSiteEnv
from .gas import AIR, GasMix
from .physio import PhysioEffect

logger = logging.getLogger(__name__)

N2_K = np.log(2) / np.array(ZH_L16C_N2_HALFTIMES)
HE_K = np.log(2) / np.array(ZH_L16C_HE_HALFTIMES)


@dataclass
class DecoStop:
    """One step of the ascent ladder.

    `seconds` is the remaining hold time; the ladder manager counts it down.
    """
    pressure: float
    depth: float
    seconds: float
    mix: GasMix
    gf: float
    optional: bool = False
    missed: bool = False

    @property
    def required(self) -> bool:
        return not self.optional

    def to_dict(self) -> dict:
        return {
            "pressure": self.pressure,
            "depth": self.depth,
            "seconds": self.seconds,
            "mix": self.mix.name,
            "gf": self.gf,
            "optional": self.optional,
            "missed": self.missed,
        }


def _deco_mix(mixes, p_abs: float, current: GasMix) -> GasMix:
    """Richest mix breathable at p_abs, or the current one if none is richer."""
    best = current
    for mix in mixes:
        if mix.is_breathable(p_abs) and mix.o2 > best.o2:
            best = mix
    return best


class DecoModel(PhysioEffect):
    """16-compartment inert gas model (N2 + He)."""

    name = "deco"

    def __init__(self, env: DiveSiteEnv = SEAWATER_ENV, gf: GradientFactors = GF_DEFAULT):
        super().__init__(env.surface_pressure)
        self.env = env
        self.gf = gf
        self.n2 = np.full(NUM_COMPARTMENTS, alveolar_pressure(self.sp, AIR_N2))
        self.he = np.zeros(NUM_COMPARTMENTS)
        self.mix = AIR

    def add_change(self, p_abs: float, dt: float, mix: GasMix) -> None:
        p_abs = max(p_abs, self.sp)
        dt_min = max(dt, 0.0) / 60
        if dt_min > 0:
            rate = (p_abs - self.pressure) / dt_min
            palv_n2 = alveolar_pressure(self.pressure, mix.n2)
            palv_he = alveolar_pressure(self.pressure, mix.he)
            self.n2 = np.maximum(schreiner_vec(self.n2, palv_n2, rate * mix.n2, dt_min, N2_K), 0.0)
            self.he = np.maximum(schreiner_vec(self.he, palv_he, rate * mix.he, dt_min, HE_K), 0.0)
        self.pressure = p_abs
        self.mix = mix

    def apply_si(self, si: float) -> None:
        # Surface interval starts at the surface, not at the last logged pressure
        self.pressure = self.sp
        self.add_change(self.sp, si * 60, AIR)

    def ceiling(self, gf: Optional[float] = None) -> float:
        """Shallowest tolerated absolute pressure (bar) for a gradient factor.

        Defaults to gf_high. May drop below surface pressure when the diver
        could ascend further.
        """
        if gf is None:
            gf = self.gf.gf_high
        a, b = combined_coefficients(self.n2, self.he)
        return ceiling_pressure_gf(self.n2 + self.he, a, b, gf)

    def ceiling_depth(self, gf: Optional[float] = None) -> float:
        """Ceiling in meters, 0 when the surface is reachable."""
        return self.env.depth_at(self.ceiling(gf))

    def can_ascend(self) -> bool:
        return self.ceiling(self.gf.gf_high) <= self.sp

    def gf_at(self, depth: float, first_stop: float) -> float:
        """Gradient factor at depth for a ladder whose first stop is first_stop.

        Linear from gf_low at the first stop to gf_high at the surface.
        """
        gf = self.gf
        if first_stop <= 0:
            return gf.gf_high
        frac = min(max(depth / first_stop, 0.0), 1.0)
        return gf.gf_high - (gf.gf_high - gf.gf_low) * frac

    def saturation(self) -> float:
        """Highest compartment supersaturation relative to its surface M-value.

        0 is surface equilibrium, 1 is the M-value. Never negative.
        """
        equilibrium = alveolar_pressure(self.sp, AIR_N2)
        a, b = combined_coefficients(self.n2, self.he)
        surface_m = a + self.sp / b
        sat = (self.n2 + self.he - equilibrium) / (surface_m - equilibrium)
        return max(float(np.max(sat)), 0.0)

    def stops(self, *mixes: GasMix) -> List[DecoStop]:
        """Ascent ladder from the current state.

        Args:
            mixes: extra gases available for deco; the richest mix breathable at
                a stop replaces the current one

        Returns:
            Stops ordered deepest first. Empty when no stop is needed.
        """
        env = self.env
        gf = self.gf
        model = self.clone()
        mix = model.mix

        if model.can_ascend():
            safety_p = env.pressure_at(SAFETY_STOP_DEPTH)
            if model.ceiling(gf.gf_high * 0.5) > self.sp and model.pressure >= safety_p:
                return [
                    DecoStop(
                        pressure=safety_p,
                        depth=SAFETY_STOP_DEPTH,
                        seconds=SAFETY_STOP_SECONDS,
                        mix=mix,
                        gf=gf.gf_high,
                        optional=True,
                    )
                ]
            return []

        first_ceiling = env.depth_at(model.ceiling(gf.gf_low))
        first_stop = max(math.ceil(first_ceiling / PHASE - 1e-9) * PHASE, PHASE)
        current_depth = env.depth_at(model.pressure)
        travel = abs(current_depth - first_stop) / ASC_SPEED * 60
        model.add_change(env.pressure_at(first_stop), travel, mix)

        result = []
        depth = first_stop
        while depth > 0:
            stop_p = env.pressure_at(depth)
            mix = _deco_mix(mixes, stop_p, mix)
            next_depth = max(depth - PHASE, 0.0)
            next_p = env.pressure_at(next_depth)
            stop_gf = model.gf_at(next_depth, first_stop)

            seconds = 0
            while model.ceiling(stop_gf) > next_p and seconds < MAX_STOP_MINUTES * 60:
                model.add_time(60, mix)
                seconds += 60
            if seconds > 0:
                result.append(
                    DecoStop(pressure=stop_p, depth=depth, seconds=seconds, mix=mix, gf=stop_gf)
                )
            model.add_change(next_p, PHASE / ASC_SPEED * 60, mix)
            depth = next_depth

        logger.debug(
            f"Stop ladder from {current_depth:.1f}m: "
            f"{[(s.depth, s.seconds, s.mix.name) for s in result]}"
        )
        return result

    def time_left(self) -> float:
        """No-decompression time in minutes at the current pressure and mix.

        0 when a mandatory stop already exists, inf at the surface or when the
        limit is not reached within the simulation horizon.
        """
        if self.pressure <= self.sp:
            return math.inf
        if not self.can_ascend():
            return 0
        model = self.clone()
        step = SIM_STEP_MINUTES
        prev_margin = self.sp - model.ceiling()
        elapsed = 0.0
        while elapsed < NDL_HORIZON_MINUTES:
            model.add_time(step * 60, self.mix)
            elapsed += step
            margin = self.sp - model.ceiling()
            if margin < 0:
                t = elapsed - step + step * prev_margin / (prev_margin - margin)
                return int(math.floor(t))
            prev_margin = margin
        return math.inf

    def reset_after(self) -> float:
        """Minutes at the surface breathing air until the tissues desaturate."""
        model = self.clone()
        model.pressure = self.sp
        prev = model.saturation() - DESAT_THRESHOLD
        if prev <= 0:
            return 0
        step = SIM_STEP_MINUTES
        elapsed = 0.0
        while elapsed < DESAT_HORIZON_MINUTES:
            model.add_time(step * 60, AIR)
            elapsed += step
            excess = model.saturation() - DESAT_THRESHOLD
            if excess <= 0:
                t = elapsed - step + step * prev / (prev - excess)
                return int(math.ceil(t))
            prev = excess
        return int(DESAT_HORIZON_MINUTES)

    def state(self) -> Dict:
        return {
            "n2": self.n2.tolist(),
            "he": self.he.tolist(),
            "pressure": self.pressure,
            "mix": {
                "o2": self.mix.o2,
                "he": self.mix.he,
                "max_ppo2": self.mix.max_ppo2,
                "o2_narcotic": self.mix.o2_narcotic,
            },
        }

    def restore(self, state: Dict) -> None:
        self.n2 = np.array(state["n2"], dtype=float)
        self.he = np.array(state["he"], dtype=float)
        self.pressure = float(state["pressure"])
        mix = state.get("mix") or {}
        self.mix = GasMix.get(
            mix.get("o2", AIR.o2),
            mix.get("he", 0.0),
            mix.get("max_ppo2", AIR.max_ppo2),
            mix.get("o2_narcotic", True),
        )

    def clone(self) -> "DecoModel":
        model = DecoModel(self.env, self.gf)
        model.n2 = self.n2.copy()
        model.he = self.he.copy()
        model.pressure = self.pressure
        model.mix = self.mix
        return model
