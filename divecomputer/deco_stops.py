"""
Deco stop ladder manager.

Keeps the ladder computed by the deco model for a live dive, recomputing it
only when the diver strays from the active stop, and counts the active stop
down through explicit `tick()` calls.
"""

import dataclasses
import logging
from typing import Iterator, List, Optional, Set

from .constants import PHASE
from .deco_model import DecoStop

logger = logging.getLogger(__name__)

# Depth tolerance (m) within which the diver is considered at a stop
STOP_TOLERANCE = 1.0
# Recompute when the diver is this far (m) from the active stop
RECOMPUTE_DISTANCE = PHASE - 1.0

__all__ = ["DecoStop", "DecoStops"]


class DecoStops:
    """Ordered stop stack (deepest first) with a cursor on the active stop."""

    def __init__(self):
        self._stops: List[DecoStop] = []
        self._index = 0
        self._initialized = False
        self._depth = 0.0
        self._tick_depth = 0.0
        self._ever_needed = False
        self._ever_required = False
        self._ever_missed = False
        # Optional stops already held; never issued again
        self._done_optional: Set[float] = set()

    def _active(self) -> Optional[DecoStop]:
        if self._index < len(self._stops):
            return self._stops[self._index]
        return None

    def _is_missed(self, stop: DecoStop) -> bool:
        return stop.required and stop.seconds > 0 and self._depth < stop.depth - STOP_TOLERANCE

    def update(self, dive) -> List[DecoStop]:
        """Refresh the ladder from the dive's deco model.

        Returns:
            Stops new to the ladder since the last recomputation.
        """
        if not dive.active:
            return []
        self._depth = dive.depth
        active = self._active()
        if (
            self._initialized
            and active is not None
            and abs(self._depth - active.depth) < RECOMPUTE_DISTANCE
        ):
            self._track_missed()
            return []

        known = {s.depth for s in self._stops[self._index:]}
        self._stops = [
            s
            for s in dive.body_state.deco_model.stops(*dive.deco_mixes())
            if s.required or s.depth not in self._done_optional
        ]
        self._index = 0
        self._initialized = True
        logger.debug(f"Ladder recomputed at {self._depth:.1f}m: {len(self._stops)} stop(s)")

        added = [dataclasses.replace(s) for s in self._stops if s.depth not in known]
        for stop in self._stops:
            self._ever_needed = True
            if stop.required:
                self._ever_required = True
        self._track_missed()
        return added

    def tick(self, dive, dt: float) -> None:
        """Count the active stop down while the diver holds at it.

        Only intervals that start and end at the stop count, so the travel
        to the stop is not credited as stop time.
        """
        if not dive.active:
            return
        prev, self._tick_depth = self._tick_depth, dive.depth
        self._depth = dive.depth
        stop = self._active()
        if stop is None or dt <= 0:
            return
        if (
            abs(self._depth - stop.depth) > STOP_TOLERANCE
            or abs(prev - stop.depth) > STOP_TOLERANCE
        ):
            return
        stop.seconds = max(stop.seconds - dt, 0)
        if stop.seconds <= 0:
            logger.info(f"Deco stop at {stop.depth:.0f}m completed")
            if stop.optional:
                self._done_optional.add(stop.depth)
            self._index += 1

    def _track_missed(self) -> None:
        if any(self._is_missed(s) for s in self._stops[self._index:]):
            self._ever_missed = True

    @property
    def current(self) -> Optional[DecoStop]:
        """Copy of the active stop, flagged when the diver is above it."""
        stop = self._active()
        if stop is None:
            return None
        return dataclasses.replace(stop, missed=self._is_missed(stop))

    @property
    def next(self) -> Optional[DecoStop]:
        i = self._index + 1
        if i < len(self._stops):
            return dataclasses.replace(self._stops[i])
        return None

    @property
    def no_deco(self) -> bool:
        """True while no stop, required or optional, has ever been needed."""
        return not self._ever_needed

    @property
    def missing(self) -> bool:
        """Diver is currently above a pending mandatory stop."""
        return any(self._is_missed(s) for s in self._stops[self._index:])

    def has_missed(self) -> bool:
        """A mandatory stop was skipped at some point in the dive."""
        return self._ever_missed

    def has_required(self) -> bool:
        return self._ever_required

    @property
    def asc_time(self) -> float:
        """Seconds left holding the remaining stops."""
        return sum(s.seconds for s in self._stops[self._index:])

    def __iter__(self) -> Iterator[DecoStop]:
        return iter([dataclasses.replace(s) for s in self._stops[self._index:]])

    def __len__(self) -> int:
        return len(self._stops) - self._index
