"""
Per-department operation state machine.

    Idle ──queue non-empty──▶ Processing(op 0) ──▶ Processing(op 1) ──▶ … ──▶ done
      ▲                                                                   │
      └──────────── next order in queue, same tick ◀──────────────────────┘

A finished order is handed to the next department on its route or, at the
end of the route, closed as completed on time or late.  Hand-offs are
delivered after every department has stepped, so an order never advances
through two departments in the same tick.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .config import (
    BUSY_ABOVE, COMPLEX_ROUTE_ABOVE, COMPLEX_ROUTE_FACTOR, MS_PER_MINUTE,
    OVERLOADED_ABOVE, SIMPLE_ROUTE_BELOW, SIMPLE_ROUTE_FACTOR,
    UTILIZATION_PER_ORDER,
)
from .models import Department, DepartmentId, Order, OperationProgress, TimestampSpan

logger = logging.getLogger(__name__)


@dataclass
class TickResult:
    completed:  List[Order] = field(default_factory=list)
    rejected:   List[Order] = field(default_factory=list)


def complexity_factor(order: Order) -> float:
    if len(order.route) > COMPLEX_ROUTE_ABOVE:
        return COMPLEX_ROUTE_FACTOR
    if len(order.route) < SIMPLE_ROUTE_BELOW:
        return SIMPLE_ROUTE_FACTOR
    return 1.0


def processing_time_for(order: Order, dept: Department) -> float:
    """Expected time (ms) *order* needs at *dept*."""
    base = dept.standard_processing_time * MS_PER_MINUTE
    return float(int(base * dept.efficiency * dept.equipment_condition * complexity_factor(order)))


def compute_utilization(dept: Department) -> float:
    return float(min(100, dept.load * UTILIZATION_PER_ORDER))


def derive_status(dept: Department) -> str:
    if dept.modifier_remaining_ms > 0 and dept.rate_modifier < 1.0:
        return "maintenance"
    if dept.utilization > OVERLOADED_ABOVE:
        return "overloaded"
    if dept.utilization > BUSY_ABOVE:
        return "busy"
    return "available"


def refresh(dept: Department) -> None:
    dept.utilization = compute_utilization(dept)
    dept.status = derive_status(dept)


def enqueue(dept: Department, order: Order, now: float) -> None:
    """Put *order* at the back of *dept*'s queue and open its span there."""
    if any(span.department_id == dept.department_id for span in order.timestamps):
        order.rework_count += 1
    order.status = "queued"
    order.timestamps.append(TimestampSpan(dept.department_id, now))
    dept.queue.append(order)


def _begin_operation(order: Order, dept: Department, index: int, now: float) -> None:
    op = dept.operations[index]
    order.current_operation_index   = index
    order.processing_time           = op.duration_ms
    order.processing_time_remaining = op.duration_ms
    order.operation_progress.append(OperationProgress(
        operation_id   = op.operation_id,
        operation_name = op.name,
        start_ms       = now,
        duration_min   = op.duration_min,
    ))


def start_next(dept: Department, now: float) -> bool:
    """Dequeue the head of the queue into an idle department."""
    if dept.in_process is not None or not dept.queue:
        return False
    order = dept.queue.pop(0)
    order.status = "processing"
    order.operation_progress = []
    dept.in_process = order
    if dept.operations:
        _begin_operation(order, dept, 0, now)
    else:
        order.current_operation_index   = 0
        order.processing_time           = 0.0
        order.processing_time_remaining = 0.0
    return True


def _close_operation(order: Order, dept: Department, now: float) -> None:
    index = order.current_operation_index or 0
    if index >= len(dept.operations):
        return
    op_id = dept.operations[index].operation_id
    for entry in order.operation_progress:
        if entry.operation_id == op_id and not entry.completed:
            entry.completed = True
            entry.end_ms = now
            break


def advance(dept: Department, interval_ms: float, now: float) -> List[Order]:
    """
    Step one department by *interval_ms*.

    Returns orders that finished every operation here during this step.  Their
    span is closed and the department has already let go of them.
    """
    finished: List[Order] = []

    # Equipment failures and boosts wear off with simulated time
    if dept.modifier_remaining_ms > 0:
        dept.modifier_remaining_ms = max(0.0, dept.modifier_remaining_ms - interval_ms)
        if dept.modifier_remaining_ms == 0:
            dept.rate_modifier = 1.0

    # An order picked up here works through the whole interval
    start_next(dept, now - interval_ms)

    order = dept.in_process
    if order is not None:
        remaining = (order.processing_time_remaining or 0.0) - interval_ms * dept.rate_modifier
        order.processing_time_remaining = max(0.0, remaining)

        if remaining <= 0:
            _close_operation(order, dept, now)
            next_index = (order.current_operation_index or 0) + 1
            if next_index < len(dept.operations):
                _begin_operation(order, dept, next_index, now)
            else:
                span = order.open_span
                if span is not None:
                    span.end_ms = now
                dept.in_process = None
                dept.total_processed += 1
                finished.append(order)

    start_next(dept, now)
    return finished


def route_onward(
    order: Order,
    departments: Dict[DepartmentId, Department],
    now: float,
    result: TickResult,
) -> None:
    """Send a finished order to its next step or close it out."""
    next_index = order.current_step_index + 1

    if next_index >= len(order.route):
        order.status = "completed-late" if order.sla_status == "overdue" else "completed-on-time"
        order.completed_at = now
        order.actual_lead_time = (now - order.created_at) / MS_PER_MINUTE
        order.processing_time_remaining = 0.0
        result.completed.append(order)
        return

    nxt = departments.get(order.route[next_index])
    if nxt is None:
        logger.warning("Order %s routed to unknown department %s", order.order_id, order.route[next_index])
        order.status = "error"
        result.rejected.append(order)
        return

    order.current_step_index        = next_index
    order.processing_time           = processing_time_for(order, nxt)
    order.processing_time_remaining = order.processing_time
    order.current_operation_index   = 0
    order.operation_progress        = []
    enqueue(nxt, order, now)


def advance_all(departments: Sequence[Department], interval_ms: float, now: float) -> TickResult:
    """Run every department once, then deliver hand-offs and fill idle departments."""
    result = TickResult()
    by_id = {d.department_id: d for d in departments}

    finished: List[Order] = []
    for dept in departments:
        finished.extend(advance(dept, interval_ms, now))

    for order in finished:
        route_onward(order, by_id, now, result)

    for dept in departments:
        start_next(dept, now)
        refresh(dept)

    return result
