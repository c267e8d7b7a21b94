"""Aggregate of every physiological effect tracked for the diver."""

from typing import Dict, NamedTuple

from .constants import GF_DEFAULT, GradientFactors
from .deco_model import DecoModel
from .environment import SEAWATER_ENV, DiveSiteEnv
from .gas import GasMix
from .physio import CNS, OTU, PhysioEffect


class NearestEffect(NamedTuple):
    """Binding effect: minutes left and the effect name (deco, cns or otu)."""
    time: float
    name: str


class BodyState:
    """Fans every operation out to the deco model, CNS and OTU together."""

    def __init__(self, env: DiveSiteEnv = SEAWATER_ENV, gf: GradientFactors = GF_DEFAULT):
        self.env = env
        self.gf = gf
        sp = env.surface_pressure
        self._effects: Dict[str, PhysioEffect] = {
            "deco": DecoModel(env, gf),
            "cns": CNS(sp),
            "otu": OTU(sp),
        }

    @property
    def deco_model(self) -> DecoModel:
        return self._effects["deco"]

    @property
    def cns(self) -> CNS:
        return self._effects["cns"]

    @property
    def otu(self) -> OTU:
        return self._effects["otu"]

    def add_change(self, p_abs: float, dt: float, mix: GasMix) -> "BodyState":
        for effect in self._effects.values():
            effect.add_change(p_abs, dt, mix)
        return self

    def add_time(self, dt: float, mix: GasMix) -> "BodyState":
        for effect in self._effects.values():
            effect.add_time(dt, mix)
        return self

    def apply_si(self, si: float) -> "BodyState":
        for effect in self._effects.values():
            effect.apply_si(si)
        return self

    def nearest_effect(self) -> NearestEffect:
        """Smallest time_left across the effects, with the first one winning ties."""
        nearest = None
        for name, effect in self._effects.items():
            time = effect.time_left()
            if nearest is None or time < nearest.time:
                nearest = NearestEffect(time, name)
        return nearest

    def reset_after(self) -> float:
        """Surface interval (minutes) until the slowest effect clears."""
        return max(effect.reset_after() for effect in self._effects.values())

    def state(self) -> Dict:
        return {name: effect.state() for name, effect in self._effects.items()}

    def restore(self, state: Dict) -> "BodyState":
        for name, effect in self._effects.items():
            effect.restore(state[name])
        return self

    def test(self, p_abs: float, mix: GasMix) -> "BodyState":
        """Clone moved to p_abs breathing mix, leaving this instance untouched."""
        clone = self.clone()
        clone.add_change(p_abs, 1, mix)
        return clone

    def clone(self) -> "BodyState":
        clone = BodyState(self.env, self.gf)
        clone._effects = {name: effect.clone() for name, effect in self._effects.items()}
        return clone
