"""
Physiological effects of breathing gas under pressure.

Every effect consumes the same (absolute pressure, seconds, mix) stream and
answers two questions: how many minutes are left before its limit is reached
(`time_left`) and how long a surface interval clears it (`reset_after`).

CNS uses the NOAA exposure rates; OTU uses the pulmonary toxicity integral as
computed by Subsurface (core/divelist.c).
"""

import math
from abc import ABC, abstractmethod
from typing import Dict

from .constants import CNS_HALF_LIFE, DAYMIN, MAX_OTU
from .gas import AIR, GasMix

OTU_THRESHOLD = 0.5  # bar, pO2 below this is not toxic
CNS_RESIDUAL = 0.004  # CNS fraction considered cleared


class PhysioEffect(ABC):
    """Base class for effects accumulated by the diver's body."""

    name = "effect"

    def __init__(self, sp: float):
        self.sp = sp
        self.pressure = sp

    @abstractmethod
    def add_change(self, p_abs: float, dt: float, mix: GasMix) -> None:
        """Add a pressure change.

        Args:
            p_abs: absolute pressure at the end of the interval (bar)
            dt: interval length (seconds)
            mix: gas breathed during the interval
        """

    def add_time(self, dt: float, mix: GasMix) -> None:
        """Stay at the last pressure for dt seconds."""
        self.add_change(self.pressure, dt, mix)

    def time_left(self) -> float:
        """Minutes until the effect limit is reached."""
        return math.inf

    def reset_after(self) -> float:
        """Minimum surface interval, in minutes, to clear the effect."""
        return 0

    def apply_si(self, si: float) -> None:
        """Apply a surface interval of si minutes breathing air."""
        self.add_change(self.sp, si * 60, AIR)

    @abstractmethod
    def state(self) -> Dict:
        """JSON-serializable snapshot."""

    @abstractmethod
    def restore(self, state: Dict) -> None:
        """Restore a snapshot taken by state()."""

    def clone(self) -> "PhysioEffect":
        effect = self.__class__(self.sp)
        effect.restore(self.state())
        return effect

    def test(self, p_abs: float, mix: GasMix) -> "PhysioEffect":
        """Clone of this effect moved to p_abs breathing mix."""
        effect = self.clone()
        effect.add_change(p_abs, 1, mix)
        return effect


def cns_rate(po2: float) -> float:
    """NOAA CNS accumulation per second at a given pO2 (bar)."""
    mbar = po2 * 1000
    if mbar <= 500:
        return 0.0
    if mbar <= 1500:
        return math.exp(-11.7853 + 0.00193873 * mbar)
    return math.exp(-23.6349 + 0.00980829 * mbar)


class CNS(PhysioEffect):
    """Central nervous system oxygen toxicity, as a fraction of the limit."""

    name = "cns"

    def __init__(self, sp: float):
        super().__init__(sp)
        self.po2 = AIR.po2(sp)
        self.value = 0.0

    def add_change(self, p_abs: float, dt: float, mix: GasMix) -> None:
        po2 = mix.po2(p_abs)
        if p_abs > self.sp:
            self.value += max(dt, 0) * cns_rate(po2)
        else:
            si = max(dt, 0) / 60
            self.value = max(0.0, self.value / math.pow(2, si / CNS_HALF_LIFE))
        self.pressure = p_abs
        self.po2 = po2

    def time_left(self) -> float:
        rate = cns_rate(self.po2)
        if rate <= 0:
            return math.inf
        return int(((1.0 - self.value) / rate) / 60)

    def reset_after(self) -> float:
        if self.value <= CNS_RESIDUAL:
            return 0
        return math.ceil(CNS_HALF_LIFE * math.log2(self.value / CNS_RESIDUAL))

    def state(self) -> Dict:
        return {"po2": self.po2, "pressure": self.pressure, "value": self.value}

    def restore(self, state: Dict) -> None:
        self.po2 = float(state["po2"])
        self.pressure = float(state["pressure"])
        self.value = float(state["value"])


def otu_dose(po2_i: float, po2_f: float, dt: float) -> float:
    """OTU accumulated over a linear pO2 segment of dt seconds.

    Segments crossing the 0.5 bar threshold only count the part above it.
    """
    dt /= 60
    if abs(po2_f - po2_i) < 1e-9:
        if po2_f <= OTU_THRESHOLD:
            return 0.0
        return dt * math.pow(0.5 / (po2_f - OTU_THRESHOLD), -5.0 / 6.0)
    if max(po2_f, po2_i) <= OTU_THRESHOLD:
        return 0.0
    if po2_i <= OTU_THRESHOLD:
        dt *= (po2_f - OTU_THRESHOLD) / (po2_f - po2_i)
        po2_i = OTU_THRESHOLD + 0.001
    elif po2_f <= OTU_THRESHOLD:
        dt *= (po2_i - OTU_THRESHOLD) / (po2_i - po2_f)
        po2_f = OTU_THRESHOLD + 0.001
    if abs(po2_f - po2_i) < 1e-9:
        return otu_dose(po2_f, po2_f, dt * 60)

    def f_o2(po2):
        return math.pow((po2 - OTU_THRESHOLD) / 0.5, 11.0 / 6.0)

    return ((3.0 / 11.0 * dt) / (po2_f - po2_i)) * (f_o2(po2_f) - f_o2(po2_i))


class OTU(PhysioEffect):
    """Pulmonary oxygen toxicity units accumulated in the dive day."""

    name = "otu"

    def __init__(self, sp: float):
        super().__init__(sp)
        self.po2 = AIR.po2(sp)
        self.value = 0.0

    def add_change(self, p_abs: float, dt: float, mix: GasMix) -> None:
        po2 = mix.po2(p_abs)
        if p_abs > self.sp:
            self.value += otu_dose(self.po2, po2, max(dt, 0))
        else:
            si = max(dt, 0) / 60
            self.value = max(0.0, self.value * (1 - si / DAYMIN))
        self.pressure = p_abs
        self.po2 = po2

    def time_left(self) -> float:
        if self.po2 <= OTU_THRESHOLD:
            return math.inf
        per_minute = otu_dose(self.po2, self.po2, 60)
        return int((MAX_OTU - self.value) / per_minute)

    def reset_after(self) -> float:
        return round(self.value * DAYMIN / MAX_OTU)

    def state(self) -> Dict:
        return {"po2": self.po2, "pressure": self.pressure, "value": self.value}

    def restore(self, state: Dict) -> None:
        self.po2 = float(state["po2"])
        self.pressure = float(state["pressure"])
        self.value = float(state["value"])
