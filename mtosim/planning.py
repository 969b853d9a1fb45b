"""Capacity planning helpers: load per department, rebalance plans, delivery forecasts."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import (
    DEFAULT_CAPACITY_SLOTS, MS_PER_MINUTE, OPTIMAL_LOAD_FRACTION,
    REBALANCE_ORDERS_PER_SOURCE, REBALANCE_SOURCE_ABOVE, REBALANCE_TARGET_BELOW,
)
from .models import Department, DepartmentId, GameState


@dataclass(frozen=True)
class DepartmentCapacity:
    department_id:          DepartmentId
    name:                   str
    current_load:           int
    max_capacity:           int
    current_utilization:    float     # percent of capacity slots
    available_capacity:     int
    queue_processing_min:   float
    predicted_utilization:  float
    optimal_load:           int
    bottleneck_risk:        str       # low | medium | high


@dataclass(frozen=True)
class RebalancePlan:
    source_ids:  List[DepartmentId]
    target_ids:  List[DepartmentId]
    order_ids:   List[str]
    expected_utilization:  float


def capacity_slots(dept: Department) -> int:
    """Orders a department can hold; ``capacity`` is a percentage of the standard 5 slots."""
    return max(1, round(DEFAULT_CAPACITY_SLOTS * dept.capacity / 100))


def department_capacities(state: GameState) -> List[DepartmentCapacity]:
    out = []
    for dept in state.departments:
        slots = capacity_slots(dept)
        load  = dept.load
        util  = load / slots * 100
        queue_min = len(dept.queue) * dept.standard_processing_time
        predicted = min(100.0, util + queue_min / (slots * 60) * 100)

        if util > 85:
            risk = "high"
        elif util > 70:
            risk = "medium"
        else:
            risk = "low"

        out.append(DepartmentCapacity(
            department_id         = dept.department_id,
            name                  = dept.name,
            current_load          = load,
            max_capacity          = slots,
            current_utilization   = util,
            available_capacity    = max(0, slots - load),
            queue_processing_min  = queue_min,
            predicted_utilization = predicted,
            optimal_load          = math.ceil(slots * OPTIMAL_LOAD_FRACTION),
            bottleneck_risk       = risk,
        ))
    return out


def suggest_rebalance(state: GameState) -> Optional[RebalancePlan]:
    """
    Propose moving the newest queued orders off overloaded departments.

    The plan can be handed straight to ``rebalance_workload``.
    """
    caps = department_capacities(state)
    sources = [c for c in caps if c.current_utilization > REBALANCE_SOURCE_ABOVE]
    targets = [
        c for c in caps
        if c.current_utilization < REBALANCE_TARGET_BELOW and c.available_capacity > 0
    ]
    if not sources or not targets:
        return None

    order_ids: List[str] = []
    for cap in sources:
        dept = state.department(cap.department_id)
        order_ids.extend(o.order_id for o in dept.queue[-REBALANCE_ORDERS_PER_SOURCE:])
    if not order_ids:
        return None

    return RebalancePlan(
        source_ids = [c.department_id for c in sources],
        target_ids = [c.department_id for c in targets],
        order_ids  = order_ids,
        expected_utilization = sum(c.current_utilization for c in caps) / len(caps),
    )


def forecast_deliveries(state: GameState) -> Dict[str, float]:
    """
    Expected completion time (ms) for every pending order if released now:
    the wait at each department's current queue plus standard processing at
    every step of its route.
    """
    by_id = state.departments_by_id()
    out = {}
    for order in state.pending_orders:
        eta = state.now
        for dept_id in order.route:
            dept = by_id.get(dept_id)
            if dept is None:
                continue
            eta += (dept.load + 1) * dept.standard_processing_time * MS_PER_MINUTE
        out[order.order_id] = eta
    return out


def late_risk(state: GameState) -> List[str]:
    """Pending orders whose forecast completion falls after their due date."""
    forecast = forecast_deliveries(state)
    return [
        o.order_id for o in state.pending_orders
        if forecast.get(o.order_id, 0.0) > o.due_at
    ]
