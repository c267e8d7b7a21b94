"""
Dive computer core: gas logistics, decompression and oxygen toxicity tracking.

Modules:
    - constants: ZH-L16C tables, gradient factors and physical constants
    - gas: GasMix and Tank
    - environment: depth/pressure conversion for a dive site
    - physio: CNS and OTU oxygen toxicity trackers
    - deco_model: Bühlmann tissue model with gradient factor stop ladder
    - body_state: aggregate of the deco model, CNS and OTU
    - dive: dive lifecycle state machine
    - deco_stops: live stop ladder with hysteresis and countdown
    - surface_interval: last dive persistence and no-fly/no-dive times
    - computer: depth stream orchestrator and dive planner
    - config: YAML settings
    - profile: synthetic depth streams
"""

from .body_state import BodyState, NearestEffect
from .computer import DesatState, DiveComputer, DivePlan, PlannedDive
from .config import DiveConfig, TankConfig, load_config
from .constants import GF_DEFAULT, GradientFactors
from .deco_model import DecoModel, DecoStop
from .deco_stops import DecoStops
from .dive import Dive, DiveSnapshot, DiveState, TimeLeft
from .environment import SEAWATER_ENV, DiveSiteEnv, Site
from .events import AlertType, DiveEvent, EventType
from .gas import AIR, GasMix, InvalidMixError, Tank
from .physio import CNS, OTU, PhysioEffect
from .profile import DepthSample, DiveProfile, ProfileGenerator
from .surface_interval import FileStore, KeyValueStore, MemoryStore, SurfaceInterval

__all__ = [
    "AIR",
    "AlertType",
    "BodyState",
    "CNS",
    "DecoModel",
    "DecoStop",
    "DecoStops",
    "DepthSample",
    "DesatState",
    "Dive",
    "DiveComputer",
    "DiveConfig",
    "DiveEvent",
    "DivePlan",
    "DiveProfile",
    "DiveSiteEnv",
    "DiveSnapshot",
    "DiveState",
    "EventType",
    "FileStore",
    "GF_DEFAULT",
    "GasMix",
    "GradientFactors",
    "InvalidMixError",
    "KeyValueStore",
    "MemoryStore",
    "NearestEffect",
    "OTU",
    "PhysioEffect",
    "PlannedDive",
    "ProfileGenerator",
    "SEAWATER_ENV",
    "Site",
    "SurfaceInterval",
    "TankConfig",
    "Tank",
    "TimeLeft",
    "load_config",
]
