"""
Depth stream generator for feeding the dive computer without sensors.

Generates the (depth, dt) samples a position tracking subsystem would deliver:
- Square profiles (constant depth)
- Sawtooth profiles (oscillating depth)
- Multi-level profiles (stepped depths)
- Random walk profiles (realistic diving patterns)

Every profile ends with a surface tail long enough for the dive computer to
close the dive.
"""

import random
from dataclasses import dataclass, field
from typing import Iterator, List, NamedTuple, Optional, Tuple

# Surface time appended after the final ascent, in minutes
SURFACE_TAIL = 4.0


class DepthSample(NamedTuple):
    """Depth in meters reached after dt seconds."""
    depth: float
    dt: float


@dataclass
class DiveProfile:
    """A dive profile as a sequence of depth samples."""

    samples: List[DepthSample] = field(default_factory=list)
    name: str = "unnamed"
    max_depth: float = 0.0
    bottom_time: float = 0.0

    def add_sample(self, depth: float, dt: float):
        """Add a sample. Depth in meters, dt in seconds."""
        self.samples.append(DepthSample(depth, dt))
        if depth > self.max_depth:
            self.max_depth = depth

    @property
    def total_time(self) -> float:
        """Profile duration in minutes."""
        return sum(s.dt for s in self.samples) / 60

    def __iter__(self) -> Iterator[DepthSample]:
        return iter(self.samples)

    def __len__(self) -> int:
        return len(self.samples)


class ProfileGenerator:
    """Generate depth streams at a fixed sampling interval."""

    def __init__(
        self,
        descent_rate: float = 20.0,  # m/min
        ascent_rate: float = 10.0,  # m/min (conservative)
        sampling_interval: float = 10.0,
    ):  # seconds
        self.descent_rate = descent_rate
        self.ascent_rate = ascent_rate
        self.sampling_interval = sampling_interval

    def _travel(self, profile: DiveProfile, current: float, target: float) -> float:
        """Append samples moving from current to target depth at the configured rates."""
        step_min = self.sampling_interval / 60
        while current < target:
            current = min(current + self.descent_rate * step_min, target)
            profile.add_sample(current, self.sampling_interval)
        while current > target:
            current = max(current - self.ascent_rate * step_min, target)
            profile.add_sample(current, self.sampling_interval)
        return current

    def _hold(self, profile: DiveProfile, depth: float, minutes: float):
        remaining = minutes * 60
        while remaining > 0:
            dt = min(self.sampling_interval, remaining)
            profile.add_sample(depth, dt)
            remaining -= dt

    def _finish(self, profile: DiveProfile, current: float):
        self._travel(profile, current, 0.0)
        self._hold(profile, 0.0, SURFACE_TAIL)

    def generate_square(self, depth: float, bottom_time: float) -> DiveProfile:
        """
        Generate a square profile (simple recreational dive).

        Args:
            depth: Maximum depth in meters
            bottom_time: Time at depth in minutes, descent excluded
        """
        profile = DiveProfile(name=f"square_{depth:g}m_{bottom_time:g}min")
        profile.bottom_time = bottom_time

        current = self._travel(profile, 0.0, depth)
        self._hold(profile, depth, bottom_time)
        self._finish(profile, current)
        return profile

    def generate_sawtooth(
        self,
        max_depth: float,
        min_depth: float,
        total_time: float,
        oscillations: int = 3,
    ) -> DiveProfile:
        """
        Generate a sawtooth profile (yo-yo diving pattern).

        Args:
            max_depth: Maximum depth in meters
            min_depth: Minimum depth during oscillations
            total_time: Total bottom time in minutes
            oscillations: Number of depth oscillations
        """
        profile = DiveProfile(name=f"sawtooth_{max_depth:g}m_{oscillations}osc")
        profile.bottom_time = total_time

        current = self._travel(profile, 0.0, max_depth)
        leg = total_time / (2 * oscillations)
        for _ in range(oscillations):
            current = self._travel(profile, current, min_depth)
            self._hold(profile, min_depth, leg)
            current = self._travel(profile, current, max_depth)
            self._hold(profile, max_depth, leg)

        self._finish(profile, current)
        return profile

    def generate_multilevel(self, levels: List[Tuple[float, float]]) -> DiveProfile:
        """
        Generate a multi-level profile.

        Args:
            levels: List of (depth, duration) tuples, deepest first
        """
        profile = DiveProfile(name=f"multilevel_{len(levels)}levels")
        profile.bottom_time = sum(d[1] for d in levels)

        current = 0.0
        for target_depth, duration in levels:
            current = self._travel(profile, current, target_depth)
            self._hold(profile, target_depth, duration)

        self._finish(profile, current)
        return profile

    def generate_random_walk(
        self,
        max_depth: float,
        total_time: float,
        volatility: float = 0.3,
        seed: Optional[int] = None,
    ) -> DiveProfile:
        """
        Generate a random walk profile (realistic diving pattern).

        Args:
            max_depth: Maximum allowed depth
            total_time: Bottom time in minutes
            volatility: Depth change volatility (0-1)
            seed: Random seed for reproducibility
        """
        rng = random.Random(seed)

        profile = DiveProfile(name=f"random_{max_depth:g}m_{total_time:g}min")
        profile.bottom_time = total_time

        current = self._travel(profile, 0.0, max_depth * rng.uniform(0.6, 1.0))

        step_min = self.sampling_interval / 60
        elapsed = 0.0
        while elapsed < total_time:
            change = rng.gauss(0, volatility * max_depth * step_min)
            current = max(5.0, min(max_depth, current + change))
            profile.add_sample(current, self.sampling_interval)
            elapsed += step_min

        self._finish(profile, current)
        return profile
