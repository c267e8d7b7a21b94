"""Typed events emitted by a Dive and the dive computer."""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional


class EventType(enum.Enum):
    START = "start"
    END = "end"
    SAMPLE = "sample"
    TANK_BEGIN = "tankbegin"
    TANK_END = "tankend"
    ALERT = "alert"
    DECO_STOP_ADDED = "decostopadded"
    DIVE_CREATED = "divecreated"


class AlertType(enum.Enum):
    STOP = "stop"  # mandatory stop missed
    PO2 = "po2"  # mix not breathable at depth
    NARCOTIC = "narcotic"
    ASCENT = "ascent"
    DESCENT = "descent"
    TIME_LEFT = "timeleft"


@dataclass(frozen=True)
class DiveEvent:
    """Event delivered to an injected listener.

    `time` is the dive duration in seconds when the event fired.
    """
    type: EventType
    time: float
    data: Dict[str, Any] = field(default_factory=dict)


Listener = Callable[[DiveEvent], None]


def emit(listener: Optional[Listener], type: EventType, time: float, **data) -> None:
    if listener is not None:
        listener(DiveEvent(type, time, data))
