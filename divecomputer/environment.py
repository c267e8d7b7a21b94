"""Depth <-> pressure conversion for a dive site."""

from dataclasses import dataclass

from .constants import (
    FRESH_SPECIFIC_WEIGHT,
    SALT_SPECIFIC_WEIGHT,
    surface_pressure_at,
)


@dataclass(frozen=True)
class Site:
    """Site descriptor as reported by the position tracking subsystem."""
    lat: float = 0.0
    lon: float = 0.0
    alt: float = 0.0


@dataclass(frozen=True)
class DiveSiteEnv:
    """Water type and altitude of a dive site.

    The pressure/depth conversion is a fixed affine map:
        P(d) = sp + specific_weight * d
    """
    altitude: float = 0.0
    salt: bool = True

    @classmethod
    def for_site(cls, site: Site, salt: bool = True) -> "DiveSiteEnv":
        return cls(altitude=site.alt, salt=salt)

    @property
    def surface_pressure(self) -> float:
        return surface_pressure_at(self.altitude)

    sp = surface_pressure

    @property
    def specific_weight(self) -> float:
        return SALT_SPECIFIC_WEIGHT if self.salt else FRESH_SPECIFIC_WEIGHT

    @property
    def water(self) -> str:
        return "salt" if self.salt else "fresh"

    def pressure_at(self, depth: float) -> float:
        """Absolute pressure (bar) at depth (m). Negative depths clamp to 0."""
        return self.surface_pressure + self.specific_weight * max(depth, 0.0)

    def depth_at(self, pressure: float) -> float:
        """Depth (m) at absolute pressure (bar). Pressures above the surface clamp to 0."""
        return max((pressure - self.surface_pressure) / self.specific_weight, 0.0)


SEAWATER_ENV = DiveSiteEnv()
