"""Data-model classes shared across the simulation."""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Dict, Iterator, List, NewType, Optional

from .config import (
    ARRIVAL_PROBABILITY, COST_PER_MINUTE, DEFAULT_SETTINGS,
    GAME_SPEEDS, MS_PER_MINUTE, ROUTE_LENGTH,
)
from .decisions import DecisionLog
from .events import EventLog

logger = logging.getLogger(__name__)

DepartmentId = NewType("DepartmentId", int)

ORDER_STATUSES = ("queued", "processing", "completed-on-time", "completed-late", "error")
SLA_STATUSES = ("on-track", "at-risk", "overdue")
DEPARTMENT_STATUSES = ("available", "busy", "overloaded", "maintenance")
SESSION_STATUSES = ("setup", "running", "paused", "completed")


def _short_id() -> str:
    return uuid.uuid4().hex[:8].upper()


@dataclass(frozen=True)
class Operation:
    """One sub-step of work performed inside a department."""

    operation_id:  str
    name:          str
    duration_min:  float
    description:   str = ""

    @property
    def duration_ms(self) -> float:
        return self.duration_min * MS_PER_MINUTE


@dataclass
class OperationProgress:
    operation_id:    str
    operation_name:  str
    start_ms:        float
    duration_min:    float
    end_ms:          Optional[float] = None
    completed:       bool            = False


@dataclass
class TimestampSpan:
    """Time an order spent at one department; ``end_ms`` is set on departure."""

    department_id:  DepartmentId
    start_ms:       float
    end_ms:         Optional[float] = None


@dataclass(frozen=True)
class Customer:
    customer_id:  str
    name:         str
    tier:         str = "standard"     # standard | premium | vip


@dataclass
class Order:
    """A make-to-order job travelling along its route of departments."""

    order_id:    str
    route:       List[DepartmentId]
    created_at:  float = 0.0           # simulation time (ms)
    due_at:      float = 0.0

    current_step_index:  int  = -1     # -1 → not yet released
    status:              str  = "queued"
    timestamps:          List[TimestampSpan] = field(default_factory=list)
    rework_count:        int  = 0

    # Operation tracking inside the current department
    current_operation_index:    Optional[int]   = None
    operation_progress:         List[OperationProgress] = field(default_factory=list)
    processing_time:            Optional[float] = None   # ms
    processing_time_remaining:  Optional[float] = None   # ms

    sla_status:        str             = "on-track"
    completed_at:      Optional[float] = None
    actual_lead_time:  Optional[float] = None            # minutes

    # Commercial attributes
    customer_id:      str   = ""
    customer_name:    str   = ""
    priority:         str   = "normal"    # low | normal | high | urgent
    order_value:      float = 0.0
    rush_order:       bool  = False
    scheduled_start:  Optional[float] = None

    @property
    def current_department(self) -> Optional[DepartmentId]:
        if 0 <= self.current_step_index < len(self.route):
            return self.route[self.current_step_index]
        return None

    @property
    def is_complete(self) -> bool:
        return self.status in ("completed-on-time", "completed-late")

    @property
    def open_span(self) -> Optional[TimestampSpan]:
        if self.timestamps and self.timestamps[-1].end_ms is None:
            return self.timestamps[-1]
        return None


@dataclass
class Department:
    """A work centre with its FIFO queue and at most one order in process."""

    department_id:             DepartmentId
    name:                      str
    operations:                List[Operation]
    standard_processing_time:  float              # minutes
    efficiency:                float = 1.0
    equipment_condition:       float = 1.0
    capacity:                  int   = 100

    queue:            List[Order]     = field(default_factory=list)
    in_process:       Optional[Order] = None
    utilization:      float = 0.0
    status:           str   = "available"
    total_processed:  int   = 0

    # Temporary processing-rate change from random events
    rate_modifier:          float = 1.0
    modifier_remaining_ms:  float = 0.0

    @property
    def load(self) -> int:
        return len(self.queue) + (1 if self.in_process is not None else 0)

    @property
    def operation_names(self) -> List[str]:
        return [op.name for op in self.operations]

    @property
    def cost(self) -> float:
        return self.standard_processing_time * COST_PER_MINUTE

    def orders(self) -> Iterator[Order]:
        if self.in_process is not None:
            yield self.in_process
        yield from self.queue


@dataclass(frozen=True)
class GameSettings:
    """Immutable per-session configuration."""

    session_duration:         int           = DEFAULT_SETTINGS["session_duration"]
    order_generation_rate:    str           = DEFAULT_SETTINGS["order_generation_rate"]
    complexity_level:         str           = DEFAULT_SETTINGS["complexity_level"]
    random_seed:              Optional[str] = DEFAULT_SETTINGS["random_seed"]
    game_speed:               int           = DEFAULT_SETTINGS["game_speed"]
    enable_events:            bool          = DEFAULT_SETTINGS["enable_events"]
    enable_advanced_routing:  bool          = DEFAULT_SETTINGS["enable_advanced_routing"]

    @classmethod
    def from_dict(cls, raw: dict) -> "GameSettings":
        """
        Build settings from loose input.

        Unknown keys are ignored and every out-of-range value falls back to
        its default from ``DEFAULT_SETTINGS`` with a warning, so a malformed
        configuration never aborts initialisation.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in raw.items() if k in known}

        def fallback(key: str, value) -> None:
            logger.warning("Invalid %s=%r, using default %r", key, value, DEFAULT_SETTINGS[key])
            values[key] = DEFAULT_SETTINGS[key]

        duration = values.get("session_duration", DEFAULT_SETTINGS["session_duration"])
        if not isinstance(duration, (int, float)) or isinstance(duration, bool) or duration <= 0:
            fallback("session_duration", duration)

        rate = values.get("order_generation_rate", DEFAULT_SETTINGS["order_generation_rate"])
        if rate not in ARRIVAL_PROBABILITY:
            fallback("order_generation_rate", rate)

        level = values.get("complexity_level", DEFAULT_SETTINGS["complexity_level"])
        if level not in ROUTE_LENGTH:
            fallback("complexity_level", level)

        speed = values.get("game_speed", DEFAULT_SETTINGS["game_speed"])
        if isinstance(speed, bool) or speed not in GAME_SPEEDS:
            fallback("game_speed", speed)

        seed = values.get("random_seed")
        if seed is not None and not isinstance(seed, str):
            values["random_seed"] = str(seed)

        for flag in ("enable_events", "enable_advanced_routing"):
            if flag in values and not isinstance(values[flag], bool):
                fallback(flag, values[flag])

        return cls(**values)


@dataclass
class GameSession:
    settings:     GameSettings
    session_id:   str   = field(default_factory=lambda: f"session-{_short_id()}")
    status:       str   = "setup"
    elapsed_ms:   float = 0.0
    started_at:   Optional[datetime] = None    # wall clock
    ended_at:     Optional[datetime] = None

    @property
    def duration_ms(self) -> float:
        return self.settings.session_duration * MS_PER_MINUTE


@dataclass
class Performance:
    on_time_delivery_rate:  float = 0.0        # percent of completed orders
    average_lead_time:      float = 0.0        # minutes
    total_throughput:       int   = 0
    utilization_rates:      Dict[DepartmentId, float] = field(default_factory=dict)
    bottleneck_department:  Optional[DepartmentId]    = None
    wip_count:              int   = 0
    average_utilization:    float = 0.0

    def as_dict(self) -> dict:
        return {
            "on_time_delivery_rate": self.on_time_delivery_rate,
            "average_lead_time":     self.average_lead_time,
            "total_throughput":      self.total_throughput,
            "utilization_rates":     {int(k): v for k, v in self.utilization_rates.items()},
            "bottleneck_department": self.bottleneck_department,
            "wip_count":             self.wip_count,
            "average_utilization":   self.average_utilization,
        }


@dataclass
class GameState:
    """Everything the engine advances from one tick to the next."""

    session:            GameSession
    departments:        List[Department]
    pending_orders:     List[Order]       = field(default_factory=list)
    completed_orders:   List[Order]       = field(default_factory=list)
    rejected_orders:    List[Order]       = field(default_factory=list)
    events:             EventLog          = field(default_factory=EventLog)
    performance:        Performance       = field(default_factory=Performance)
    decisions:          DecisionLog       = field(default_factory=DecisionLog)
    total_orders_generated: int           = 0

    @property
    def now(self) -> float:
        return self.session.elapsed_ms

    def department(self, department_id: int) -> Optional[Department]:
        for dept in self.departments:
            if dept.department_id == department_id:
                return dept
        return None

    def departments_by_id(self) -> Dict[DepartmentId, Department]:
        return {d.department_id: d for d in self.departments}

    def wip_orders(self) -> Iterator[Order]:
        for dept in self.departments:
            yield from dept.orders()

    def open_orders(self) -> Iterator[Order]:
        yield from self.pending_orders
        yield from self.wip_orders()

    def order_count(self) -> int:
        """Orders held across every collection; equals ``total_orders_generated``."""
        return (
            len(self.pending_orders)
            + sum(d.load for d in self.departments)
            + len(self.completed_orders)
            + len(self.rejected_orders)
        )

    def clone(self) -> "GameState":
        """
        Deep copy for the next state version.

        Recorded decisions are never mutated, so the decision log only gets a
        fresh list and cursor instead of copies of every snapshot.
        """
        memo = {id(self.decisions): self.decisions.copy()}
        return copy.deepcopy(self, memo)
