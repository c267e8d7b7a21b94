"""
Surface interval persistence.

The last dive's body state is stored as a JSON snapshot in an injected
key-value store. Loading it back applies the elapsed surface interval, so the
next dive starts with the residual tissue loading and oxygen toxicity.
"""

import json
import logging
import math
import os
import time
from typing import Callable, Dict, Optional, Protocol

from .body_state import BodyState
from .constants import DAYMIN, GF_DEFAULT, GradientFactors
from .environment import SEAWATER_ENV, DiveSiteEnv

logger = logging.getLogger(__name__)

STORAGE_KEY = "last_dive"

NO_FLY_SINGLE = 12 * 60  # minutes
NO_FLY_REPETITIVE = 18 * 60
NO_DIVE_AFTER_DECO = 6 * 60


class KeyValueStore(Protocol):
    """Byte store used for the surface interval snapshot."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store, lost on exit."""

    def __init__(self):
        self._data: Dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore:
    """One file per key under a state directory."""

    def __init__(self, directory: str):
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "rb") as f:
            return f.read()

    def set(self, key: str, value: bytes) -> None:
        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(key), "wb") as f:
            f.write(value)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if os.path.exists(path):
            os.remove(path)


class SurfaceInterval:
    """Last dive snapshot plus the no-fly/no-dive deadlines derived from it.

    Args:
        store: key-value store holding the snapshot
        clock: wall clock in seconds
        key: store key for the snapshot
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Callable[[], float] = time.time,
        key: str = STORAGE_KEY,
    ):
        self.store = store
        self.clock = clock
        self.key = key
        self._data: Optional[dict] = self._load()

    def _load(self) -> Optional[dict]:
        try:
            raw = self.store.get(self.key)
        except OSError as e:
            logger.warning(f"Could not read surface interval: {e}")
            return None
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            data["end"] = float(data["end"])
            data["no_fly"] = float(data["no_fly"])
            data["no_dive"] = float(data["no_dive"])
            if not isinstance(data["body"], dict):
                raise TypeError("body snapshot is not an object")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Discarding corrupt surface interval snapshot: {e}")
            return None
        return data

    def has(self) -> bool:
        return self._data is not None and not math.isinf(self.si)

    def save(self, dive) -> None:
        """Persist the dive's body state. Dives that never started are ignored."""
        if not dive.started:
            return
        deco = dive.body_state.deco_model
        stops = dive.deco_stops
        missed = stops.has_missed()

        previous = self._data if self.has() else None
        repetitive = previous is not None and (
            not previous.get("active") or previous.get("repetitive", False)
        )
        no_fly = NO_FLY_REPETITIVE if repetitive else NO_FLY_SINGLE
        if missed or not deco.can_ascend():
            no_fly = max(no_fly, deco.reset_after())
        if missed:
            no_dive = max(DAYMIN, deco.reset_after())
        elif stops.has_required():
            no_dive = NO_DIVE_AFTER_DECO
        else:
            no_dive = 0

        end = dive.end_time if dive.end_time is not None else self.clock()
        self._data = {
            "end": end,
            "body": dive.body_state.state(),
            "no_fly": no_fly,
            "no_dive": no_dive,
            "active": dive.active,
            "repetitive": repetitive,
        }
        try:
            self.store.set(self.key, json.dumps(self._data).encode("utf-8"))
        except OSError as e:
            logger.error(f"Could not persist surface interval: {e}")
            return
        logger.info(f"Surface interval saved: no-fly {no_fly:.0f} min, no-dive {no_dive:.0f} min")

    @property
    def si(self) -> float:
        """Minutes since the last dive ended, inf when there is none (or over a day)."""
        if self._data is None:
            return math.inf
        si = max((self.clock() - self._data["end"]) / 60, 0.0)
        if si >= DAYMIN:
            self._remove()
            return math.inf
        return si

    def _remove(self) -> None:
        self._data = None
        try:
            self.store.remove(self.key)
        except OSError as e:
            logger.warning(f"Could not remove surface interval: {e}")

    def body_state(
        self, env: DiveSiteEnv = SEAWATER_ENV, gf: GradientFactors = GF_DEFAULT
    ) -> BodyState:
        """Body state at the start of the next dive."""
        body = BodyState(env, gf)
        si = self.si
        if self._data is None:
            return body
        try:
            body.restore(self._data["body"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable body snapshot: {e}")
            return BodyState(env, gf)
        return body.apply_si(si)

    @property
    def no_fly(self) -> float:
        """Remaining no-fly minutes."""
        si = self.si
        if self._data is None:
            return 0
        return max(self._data["no_fly"] - si, 0.0)

    @property
    def no_dive(self) -> float:
        """Remaining no-dive minutes."""
        si = self.si
        if self._data is None:
            return 0
        return max(self._data["no_dive"] - si, 0.0)
