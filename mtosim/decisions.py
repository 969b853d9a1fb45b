"""
Decision log: user commands with the state versions needed to undo and redo them.

Every successful command stores two immutable versions of the order-flow part
of the game state: the one it started from and the one it produced.  Undo and
redo only move the cursor and put the matching version back, so both are
symmetrical and no command-specific reversal code is needed.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from .models import Department, GameState, Order

DECISION_TYPES = (
    "order-release",
    "schedule",
    "rebalance",
    "route-optimization",
    "settings-change",
    "game-pause",
    "game-resume",
)


@dataclass(frozen=True)
class FlowSnapshot:
    """The collections an order can live in, plus the generated-order counter."""

    departments:             Tuple["Department", ...]
    pending_orders:          Tuple["Order", ...]
    completed_orders:        Tuple["Order", ...]
    rejected_orders:         Tuple["Order", ...]
    total_orders_generated:  int

    @classmethod
    def capture(cls, state: "GameState") -> "FlowSnapshot":
        return cls(
            departments            = tuple(copy.deepcopy(state.departments)),
            pending_orders         = tuple(copy.deepcopy(state.pending_orders)),
            completed_orders       = tuple(copy.deepcopy(state.completed_orders)),
            rejected_orders        = tuple(copy.deepcopy(state.rejected_orders)),
            total_orders_generated = state.total_orders_generated,
        )

    def restore_into(self, state: "GameState") -> None:
        """Overwrite *state*'s order flow with copies, leaving the snapshot intact."""
        state.departments            = copy.deepcopy(list(self.departments))
        state.pending_orders         = copy.deepcopy(list(self.pending_orders))
        state.completed_orders       = copy.deepcopy(list(self.completed_orders))
        state.rejected_orders        = copy.deepcopy(list(self.rejected_orders))
        state.total_orders_generated = self.total_orders_generated


@dataclass(frozen=True)
class Decision:
    decision_id:     str
    timestamp_ms:    float
    type:            str
    description:     str
    order_id:        Optional[str]          = None
    previous_state:  Optional[FlowSnapshot] = None
    next_state:      Optional[FlowSnapshot] = None
    can_undo:        bool                   = True

    def as_dict(self) -> dict:
        return {
            "id":           self.decision_id,
            "timestamp_ms": self.timestamp_ms,
            "type":         self.type,
            "description":  self.description,
            "order_id":     self.order_id,
            "can_undo":     self.can_undo,
        }


@dataclass
class DecisionLog:
    decisions:  List[Decision] = field(default_factory=list)
    cursor:     int            = -1      # index of the latest applied decision
    _seq:       int            = 0

    def copy(self) -> "DecisionLog":
        return DecisionLog(list(self.decisions), self.cursor, self._seq)

    @property
    def can_undo(self) -> bool:
        return (
            self.cursor >= 0
            and self.decisions[self.cursor].can_undo
            and self.decisions[self.cursor].previous_state is not None
        )

    @property
    def can_redo(self) -> bool:
        return (
            self.cursor < len(self.decisions) - 1
            and self.decisions[self.cursor + 1].next_state is not None
        )

    def record(
        self,
        type: str,
        description: str,
        timestamp_ms: float,
        before: FlowSnapshot,
        after: FlowSnapshot,
        order_id: Optional[str] = None,
    ) -> Decision:
        """Append a decision, discarding any undone decisions past the cursor."""
        self._seq += 1
        decision = Decision(
            decision_id    = f"DEC-{self._seq:04d}",
            timestamp_ms   = timestamp_ms,
            type           = type,
            description    = description,
            order_id       = order_id,
            previous_state = before,
            next_state     = after,
        )
        del self.decisions[self.cursor + 1:]
        self.decisions.append(decision)
        self.cursor = len(self.decisions) - 1
        return decision

    def undo(self, state: "GameState") -> bool:
        if not self.can_undo:
            return False
        self.decisions[self.cursor].previous_state.restore_into(state)
        self.cursor -= 1
        return True

    def redo(self, state: "GameState") -> bool:
        if not self.can_redo:
            return False
        self.cursor += 1
        self.decisions[self.cursor].next_state.restore_into(state)
        return True

    def clear(self) -> None:
        self.decisions = []
        self.cursor = -1

    def __len__(self) -> int:
        return len(self.decisions)
