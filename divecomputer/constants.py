"""
Bühlmann ZH-L16C constants, gradient factors and dive-computer physics constants.

Single source of truth for M-value parameters, environment constants and the
pure tissue-loading helpers shared by the deco model and its tests.
"""

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

# --- Environment ---

SEALEVEL_PRESSURE = 1.013  # bar
ALTITUDE_SCALE_HEIGHT = 7800.0  # m, barometric scale height
SALT_SPECIFIC_WEIGHT = 0.101043  # bar/m (1030 kg/m3 * g)
FRESH_SPECIFIC_WEIGHT = 0.0981  # bar/m (1000 kg/m3 * g)

# Water vapor pressure in the lungs (bar), subtracted from inspired pressure
WATER_VAPOR_PRESSURE = 0.0627

# --- Gas limits ---

AIR_O2 = 0.21
AIR_N2 = 0.79
MIN_PO2 = 0.18  # hypoxic limit (bar)
DEFAULT_MAX_PO2 = 1.4
NARCOTIC_DEPTH = 30.0  # m of sea water breathing air
MAX_NARCOTIC_PRESSURE = SEALEVEL_PRESSURE + NARCOTIC_DEPTH * SALT_SPECIFIC_WEIGHT

# --- Dive dynamics ---

ASC_SPEED = 10.0  # ideal ascent speed, m/min
DESC_SPEED = 20.0  # ideal descent speed, m/min
MAX_ASC_SPEED = 18.0  # alert threshold, m/min
MAX_DESC_SPEED = 30.0  # alert threshold, m/min

PHASE = 3.0  # stop spacing, m
SAFETY_STOP_DEPTH = 5.0
SAFETY_STOP_SECONDS = 180
MAX_STOP_MINUTES = 240

# --- Time ---

DAYMIN = 1440  # minutes in a day

# --- Toxicity ---

MAX_OTU = 300.0  # daily pulmonary toxicity cap
CNS_HALF_LIFE = 90.0  # minutes, surface washout

# --- Deco model search ---

SIM_STEP_MINUTES = 10.0
NDL_HORIZON_MINUTES = 360.0
DESAT_HORIZON_MINUTES = float(DAYMIN)
DESAT_THRESHOLD = 0.05

# ZH-L16C N2 compartment parameters (16 compartments)
# Half-times in minutes
ZH_L16C_N2_HALFTIMES: Tuple[float, ...] = (
    5.0, 8.0, 12.5, 18.5, 27.0, 38.3, 54.3, 77.0,
    109.0, 146.0, 187.0, 239.0, 305.0, 390.0, 498.0, 635.0,
)

# M-value coefficients: M(P) = a + P/b
ZH_L16C_N2_A: Tuple[float, ...] = (
    1.1696, 1.0000, 0.8618, 0.7562, 0.6200, 0.5043, 0.4410, 0.4000,
    0.3750, 0.3500, 0.3295, 0.3065, 0.2835, 0.2610, 0.2480, 0.2327,
)

ZH_L16C_N2_B: Tuple[float, ...] = (
    0.5578, 0.6514, 0.7222, 0.7825, 0.8126, 0.8434, 0.8693, 0.8910,
    0.9092, 0.9222, 0.9319, 0.9403, 0.9477, 0.9544, 0.9602, 0.9653,
)

ZH_L16C_HE_HALFTIMES: Tuple[float, ...] = (
    1.88, 3.02, 4.72, 6.99, 10.21, 14.48, 20.53, 29.11,
    41.20, 55.19, 70.69, 90.34, 115.29, 147.42, 188.24, 240.03,
)

ZH_L16C_HE_A: Tuple[float, ...] = (
    1.6189, 1.3830, 1.1919, 1.0458, 0.9220, 0.8205, 0.7305, 0.6502,
    0.5950, 0.5545, 0.5333, 0.5189, 0.5181, 0.5176, 0.5172, 0.5119,
)

ZH_L16C_HE_B: Tuple[float, ...] = (
    0.4770, 0.5747, 0.6527, 0.7223, 0.7582, 0.7957, 0.8279, 0.8553,
    0.8757, 0.8903, 0.8997, 0.9073, 0.9122, 0.9171, 0.9217, 0.9267,
)

NUM_COMPARTMENTS = 16


@dataclass(frozen=True)
class GradientFactors:
    """Gradient factor pair for Bühlmann decompression adjustments.

    gf_low:  applied at the deepest ceiling (first stop), controls first stop depth
    gf_high: applied at the surface, controls final ascent and NDL
    Values are fractions, where 1.0 = use full M-value (standard Bühlmann).
    """
    gf_low: float
    gf_high: float

    def __post_init__(self):
        if not (0.0 <= self.gf_low <= 0.9):
            raise ValueError(f"gf_low must be in [0, 0.9], got {self.gf_low}")
        if not (0.0 < self.gf_high <= 1.0):
            raise ValueError(f"gf_high must be in (0, 1.0], got {self.gf_high}")
        if self.gf_low > self.gf_high:
            raise ValueError(
                f"gf_low ({self.gf_low}) must be <= gf_high ({self.gf_high})"
            )

    @property
    def description(self) -> str:
        """Short label, e.g. 'GF 40/100'."""
        return f"GF {round(self.gf_low * 100)}/{round(self.gf_high * 100)}"


GF_DEFAULT = GradientFactors(gf_low=0.4, gf_high=1.0)


def surface_pressure_at(altitude: float) -> float:
    """Atmospheric pressure (bar) at the given altitude, clamped to sea level."""
    return SEALEVEL_PRESSURE * math.exp(-max(altitude, 0.0) / ALTITUDE_SCALE_HEIGHT)


def alveolar_pressure(ambient_pressure, fraction):
    """Inspired inert gas pressure: (P_amb - P_wvp) * F_gas."""
    return (ambient_pressure - WATER_VAPOR_PRESSURE) * fraction


def haldane_vec(pt0: np.ndarray, palv0: float, t: float, k: np.ndarray) -> np.ndarray:
    """Haldane equation for constant ambient pressure, all compartments at once.

    P = P_alv + (P_i - P_alv) * e^(-k*t)
    """
    return palv0 + (pt0 - palv0) * np.exp(-k * t)


def schreiner_vec(
    pt0: np.ndarray, palv0: float, rate: float, t: float, k: np.ndarray
) -> np.ndarray:
    """Schreiner equation for a linear pressure change, all compartments at once.

    P = P_alv + R * (t - 1/k) - (P_alv - P_i - R/k) * e^(-k*t)

    Args:
        pt0: initial tissue inert gas pressures (bar)
        palv0: inspired inert gas pressure at the start of the interval (bar)
        rate: rate of change of inspired inert gas pressure (bar/min)
        t: interval length (minutes)
        k: decay constants ln(2)/half-time

    Returns:
        Tissue pressures at the end of the interval.
    """
    return palv0 + rate * (t - 1.0 / k) - (palv0 - pt0 - rate / k) * np.exp(-k * t)


def combined_coefficients(
    n2: np.ndarray, he: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """Per-compartment a/b coefficients weighted by the N2 and He loads."""
    total = n2 + he
    safe = np.where(total > 0, total, 1.0)
    a = (np.array(ZH_L16C_N2_A) * n2 + np.array(ZH_L16C_HE_A) * he) / safe
    b = (np.array(ZH_L16C_N2_B) * n2 + np.array(ZH_L16C_HE_B) * he) / safe
    a = np.where(total > 0, a, np.array(ZH_L16C_N2_A))
    b = np.where(total > 0, b, np.array(ZH_L16C_N2_B))
    return a, b


def ceiling_pressure_gf(load: np.ndarray, a: np.ndarray, b: np.ndarray, gf: float) -> float:
    """GF-adjusted ceiling (bar) over all compartments.

    Solves for ambient pressure P where load = P + gf * (a + P/b - P):
        P_ceil = (load - a * gf) / (gf / b + 1 - gf)
    """
    return float(np.max((load - a * gf) / (gf / b + 1.0 - gf)))


def m_value_gf(a: np.ndarray, b: np.ndarray, ambient_pressure: float, gf: float) -> np.ndarray:
    """GF-adjusted M-values at a given ambient pressure.

    M_gf(P) = P + gf * (a + P/b - P). At gf=1.0, reduces to standard M(P).
    """
    m = a + ambient_pressure / b
    return ambient_pressure + gf * (m - ambient_pressure)
