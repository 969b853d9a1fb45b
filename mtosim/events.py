"""Game events and the bounded log that retains the most recent of them."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional

from .config import EVENT_LOG_SIZE

EVENT_TYPES = (
    "order-generated",
    "order-completed",
    "order-late",
    "equipment-failure",
    "rush-order",
    "delivery-delay",
    "efficiency-boost",
    "session-completed",
)
SEVERITIES = ("info", "warning", "error", "success")


@dataclass
class GameEvent:
    event_id:       str
    type:           str
    timestamp_ms:   float
    message:        str
    severity:       str           = "info"
    department_id:  Optional[int] = None
    order_id:       Optional[str] = None
    kpi_snapshot:   Optional[dict] = None

    def as_dict(self) -> dict:
        return {
            "id":            self.event_id,
            "type":          self.type,
            "timestamp_ms":  self.timestamp_ms,
            "message":       self.message,
            "severity":      self.severity,
            "department_id": self.department_id,
            "order_id":      self.order_id,
            "kpi_snapshot":  self.kpi_snapshot,
        }


class EventLog:
    """
    Ring buffer of the latest ``maxlen`` events.

    Ids are handed out from a running sequence that survives trimming, so a
    replay with the same seed produces the same ids in the same order.
    """

    def __init__(self, maxlen: int = EVENT_LOG_SIZE) -> None:
        self._events: deque = deque(maxlen=maxlen)
        self._seq = 0

    @property
    def maxlen(self) -> int:
        return self._events.maxlen

    @property
    def total_recorded(self) -> int:
        return self._seq

    def new_event(
        self,
        type: str,
        timestamp_ms: float,
        message: str,
        severity: str = "info",
        department_id: Optional[int] = None,
        order_id: Optional[str] = None,
        kpi_snapshot: Optional[dict] = None,
    ) -> GameEvent:
        """Create an event with the next id; it is not stored until ``extend``."""
        self._seq += 1
        return GameEvent(
            event_id      = f"EVT-{self._seq:05d}",
            type          = type,
            timestamp_ms  = timestamp_ms,
            message       = message,
            severity      = severity,
            department_id = department_id,
            order_id      = order_id,
            kpi_snapshot  = kpi_snapshot,
        )

    def append(self, event: GameEvent) -> None:
        self._events.append(event)

    def extend(self, events: Iterable[GameEvent]) -> None:
        self._events.extend(events)

    def latest(self, n: int) -> List[GameEvent]:
        if n <= 0:
            return []
        return list(self._events)[-n:]

    def __iter__(self) -> Iterator[GameEvent]:
        return iter(self._events)

    def __len__(self) -> int:
        return len(self._events)
