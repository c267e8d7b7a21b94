"""
Breathing gas mixes and tanks.

GasMix is an immutable value type cached by its (o2, he, limits) key, with the
operating limits (MBD/MOD/MND) expressed as absolute pressures in bar. Tank
tracks the gas supply of one cylinder while it is breathed.
"""

import dataclasses
import math
from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional, Tuple

from .constants import (
    AIR_N2,
    DEFAULT_MAX_PO2,
    MAX_NARCOTIC_PRESSURE,
    MIN_PO2,
)


class InvalidMixError(ValueError):
    """Raised when gas fractions do not describe a breathable mix."""


def _percent(fraction: float) -> int:
    return int(round(fraction * 100))


def mix_name(o2: float, he: float) -> str:
    """Stable display name for a mix, a pure function of the O2/He percentages."""
    o2_pct = _percent(o2)
    he_pct = _percent(he)
    if he_pct == 0:
        if o2_pct == 100:
            return "O2"
        if o2_pct == 21:
            return "Air"
        return f"EAN{o2_pct}"
    if o2_pct + he_pct == 100:
        return f"Hx{o2_pct}/{he_pct}"
    return f"Tx{o2_pct}/{he_pct}"


@dataclass(frozen=True, eq=False)
class GasMix:
    """Gas fractions plus the ppO2/narcosis settings its limits depend on.

    Equality and hashing go through the derived name, so two mixes with the
    same O2/He percentages compare equal regardless of identity.
    """
    o2: float
    he: float = 0.0
    max_ppo2: float = DEFAULT_MAX_PO2
    o2_narcotic: bool = True

    _cache: ClassVar[Dict[Tuple[float, float, float, bool], "GasMix"]] = {}

    def __post_init__(self):
        if self.o2 <= 0 or self.o2 > 1.0:
            raise InvalidMixError(f"O2 fraction must be in (0, 1], got {self.o2}")
        if self.he < 0:
            raise InvalidMixError(f"He fraction must be >= 0, got {self.he}")
        if self.o2 + self.he > 1.0 + 1e-9:
            raise InvalidMixError(
                f"Fractions exceed 1: o2={self.o2} + he={self.he}"
            )

    @classmethod
    def get(
        cls,
        o2: float,
        he: float = 0.0,
        max_ppo2: float = DEFAULT_MAX_PO2,
        o2_narcotic: bool = True,
    ) -> "GasMix":
        """Return the cached mix for these fractions, creating it on demand."""
        key = (round(o2, 4), round(he, 4), max_ppo2, o2_narcotic)
        mix = cls._cache.get(key)
        if mix is None:
            mix = cls(o2, he, max_ppo2, o2_narcotic)
            cls._cache[key] = mix
        return mix

    @classmethod
    def best_for(
        cls,
        p_abs: float,
        max_ppo2: float = DEFAULT_MAX_PO2,
        o2_narcotic: bool = True,
    ) -> "GasMix":
        """Best mix for an absolute pressure.

        O2 is as rich as the ppO2 limit allows, and helium fills whatever the
        narcotic limit leaves over.
        """
        o2 = math.floor(min(max_ppo2 / p_abs, 1.0) * 100) / 100
        if o2_narcotic:
            he = 1.0 - MAX_NARCOTIC_PRESSURE / p_abs
        else:
            he = 1.0 - o2 - AIR_N2 * MAX_NARCOTIC_PRESSURE / p_abs
        he = math.ceil(max(he, 0.0) * 100 - 1e-9) / 100
        he = min(he, round(1.0 - o2, 2))
        return cls.get(o2, he, max_ppo2, o2_narcotic)

    def __eq__(self, other):
        if not isinstance(other, GasMix):
            return NotImplemented
        return self.name == other.name

    def __hash__(self):
        return hash(self.name)

    def __str__(self):
        return self.name

    @property
    def n2(self) -> float:
        return max(1.0 - self.o2 - self.he, 0.0)

    @property
    def name(self) -> str:
        return mix_name(self.o2, self.he)

    @property
    def id(self) -> int:
        """Numeric id: O2 percent * 1000 + He percent."""
        return _percent(self.o2) * 1000 + _percent(self.he)

    @property
    def mbd(self) -> float:
        """Minimum breathing pressure (bar) before the mix is hypoxic."""
        return MIN_PO2 / self.o2

    @property
    def mod(self) -> float:
        """Maximum operating pressure (bar) before the mix is hyperoxic."""
        return self.max_ppo2 / self.o2

    @property
    def ead_factor(self) -> float:
        return self.n2 / AIR_N2

    @property
    def end_factor(self) -> float:
        if self.o2_narcotic:
            return 1.0 - self.he
        return self.n2 / AIR_N2

    @property
    def mnd(self) -> float:
        """Maximum narcotic pressure (bar)."""
        factor = self.end_factor
        if factor <= 0:
            return math.inf
        return MAX_NARCOTIC_PRESSURE / factor

    def ead(self, p_abs: float) -> float:
        """Equivalent air pressure (bar) for nitrogen loading."""
        return p_abs * self.ead_factor

    def end(self, p_abs: float) -> float:
        """Equivalent narcotic pressure (bar)."""
        return p_abs * self.end_factor

    def po2(self, p_abs: float) -> float:
        return p_abs * self.o2

    def is_breathable(self, p_abs: float) -> bool:
        return self.mbd <= p_abs <= self.mod

    def is_narcotic(self, p_abs: float) -> bool:
        return p_abs > self.mnd

    def to_dict(self) -> dict:
        return {"o2": self.o2, "he": self.he}


AIR = GasMix.get(0.21, 0.0)


@dataclass
class Tank:
    """Gas supply of a single cylinder.

    Pressures are in bar, volume in liters and RMV in liters/minute at surface
    pressure. `end` only ever goes down while the tank is breathed.
    """
    mix: GasMix
    volume: float
    start: float
    rmv: float = 20.0
    end: Optional[float] = field(default=None)

    def __post_init__(self):
        if self.volume <= 0:
            raise ValueError(f"Tank volume must be > 0, got {self.volume}")
        if self.end is None:
            self.end = self.start
        self.end = min(self.end, self.start)

    @property
    def rate(self) -> float:
        """Pressure drop per minute at 1 bar ambient (bar/min)."""
        return self.rmv / self.volume

    @property
    def used(self) -> float:
        return self.start - self.end

    @property
    def empty(self) -> bool:
        return self.end <= 0

    @property
    def name(self) -> str:
        return self.mix.name

    def consume(self, avg_pressure: float, dt: float) -> float:
        """Breathe from the tank for dt seconds at an average ambient pressure.

        Returns the remaining pressure. Never drops below 0 and never raises.
        """
        dt = max(dt, 0.0)
        drop = self.rate * max(avg_pressure, 0.0) * (dt / 60)
        self.end = max(self.end - drop, 0.0)
        return self.end

    def time_left(self, p_abs: float) -> int:
        """Minutes of gas left at this pressure, or -1 if the tank is empty."""
        if self.empty:
            return -1
        return math.floor(self.end / (self.rate * max(p_abs, 1e-6)))

    def is_usable_at(self, p_abs: float) -> bool:
        return not self.empty and self.mix.is_breathable(p_abs)

    def clone(self) -> "Tank":
        return dataclasses.replace(self)
