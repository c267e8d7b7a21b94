"""
Dive computer settings loaded from config.yaml.

The file is optional: every setting has a default, and a CLI gradient factor
override wins over whatever the file says.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import yaml

from .constants import DEFAULT_MAX_PO2, GF_DEFAULT, GradientFactors
from .gas import GasMix, Tank

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "config.yaml")


@dataclass
class TankConfig:
    """One configured cylinder: volume (l), fill pressure (bar) and mix fractions."""
    volume: float = 12.0
    start_bar: float = 200.0
    o2: float = 0.21
    he: float = 0.0

    def __post_init__(self):
        if self.volume <= 0:
            raise ValueError(f"Tank volume must be > 0, got {self.volume}")
        if self.start_bar <= 0:
            raise ValueError(f"Tank start_bar must be > 0, got {self.start_bar}")


@dataclass
class DiveConfig:
    tanks: List[TankConfig] = field(default_factory=lambda: [TankConfig()])
    max_ppo2: float = DEFAULT_MAX_PO2
    salt: bool = True
    rmv: float = 20.0
    gf: GradientFactors = GF_DEFAULT
    o2_narcotic: bool = True
    gf_source: str = "default"

    def __post_init__(self):
        if not self.tanks:
            raise ValueError("At least one tank must be configured")
        if not (1.4 <= self.max_ppo2 <= 1.6):
            raise ValueError(f"max_ppo2 must be in [1.4, 1.6], got {self.max_ppo2}")
        if self.rmv <= 0:
            raise ValueError(f"rmv must be > 0, got {self.rmv}")

    @property
    def gf_description(self) -> str:
        return self.gf.description

    def build_tanks(self) -> List[Tank]:
        """Tanks in configured order. Raises InvalidMixError on a bad mix."""
        return [
            Tank(
                mix=GasMix.get(t.o2, t.he, self.max_ppo2, self.o2_narcotic),
                volume=t.volume,
                start=t.start_bar,
                rmv=self.rmv,
            )
            for t in self.tanks
        ]


def load_config(
    config_path: Optional[str] = None,
    gf_override: Optional[Tuple[float, float]] = None,
) -> DiveConfig:
    """Load settings from YAML.

    Args:
        config_path: YAML file; defaults to config.yaml at the repository root.
            A missing file yields the defaults.
        gf_override: (gf_low, gf_high) in percent, e.g. (30, 85)

    Returns:
        Validated DiveConfig
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    raw = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
    else:
        logger.debug(f"No config at {config_path}, using defaults")

    dc_cfg = raw.get("dc", {}) or {}
    tanks = [
        TankConfig(
            volume=float(t.get("volume", 12.0)),
            start_bar=float(t.get("start_bar", 200.0)),
            o2=float(t.get("o2", 0.21)),
            he=float(t.get("he", 0.0)),
        )
        for t in dc_cfg.get("tanks", [{}])
    ]

    gf = GF_DEFAULT
    gf_source = "default"
    buhlmann_cfg = raw.get("buhlmann", {})
    if buhlmann_cfg:
        gf = GradientFactors(
            gf_low=float(buhlmann_cfg.get("gf_low", GF_DEFAULT.gf_low)),
            gf_high=float(buhlmann_cfg.get("gf_high", GF_DEFAULT.gf_high)),
        )
        gf_source = "config"

    if gf_override:
        gf = GradientFactors(
            gf_low=gf_override[0] / 100.0,
            gf_high=gf_override[1] / 100.0,
        )
        gf_source = "cli"

    return DiveConfig(
        tanks=tanks,
        max_ppo2=float(dc_cfg.get("max_ppo2", DEFAULT_MAX_PO2)),
        salt=bool(dc_cfg.get("salt", True)),
        rmv=float(dc_cfg.get("rmv", 20.0)),
        gf=gf,
        o2_narcotic=bool(dc_cfg.get("o2_narcotic", True)),
        gf_source=gf_source,
    )
