"""
Simulation engine: the tick function and the commands a player can issue.

Every function here takes a ``GameState`` and returns the next one.  The
previous state is never modified; a no-op returns the very same object.
Stochastic draws come from a ``SeededRandom`` owned by the caller, in a fixed
order per tick:

    arrival roll → order synthesis → equipment failure → rush order
    → delivery delay → efficiency boost
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union

from .config import (
    ARRIVAL_PROBABILITY, AT_RISK_PROGRESS, BOOST_RATE_FACTOR,
    FAILURE_RATE_FACTOR, MODIFIER_DURATION_MIN, MS_PER_MINUTE,
    RANDOM_EVENTS, TICK_MS,
)
from .decisions import FlowSnapshot
from .department import advance_all, enqueue, refresh
from .events import GameEvent
from .factory import generate_order, initialize_game_state
from .metrics import compute_performance
from .models import DepartmentId, GameSettings, GameState, Order
from .stream import SeededRandom

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# SLA
# ─────────────────────────────────────────────────────────────────────────────

def classify_sla(order: Order, now: float) -> str:
    """Overdue once the due date has passed, at risk beyond 80 % of the allowed time."""
    time_left = order.due_at - now
    total     = order.due_at - order.created_at
    progress  = (now - order.created_at) / total if total > 0 else float("inf")

    if time_left < 0:
        return "overdue"
    if progress > AT_RISK_PROGRESS:
        return "at-risk"
    return "on-track"


def refresh_sla(state: GameState, now: float) -> None:
    for order in state.open_orders():
        order.sla_status = classify_sla(order, now)


# ─────────────────────────────────────────────────────────────────────────────
# Tick
# ─────────────────────────────────────────────────────────────────────────────

def tick_interval(settings: GameSettings) -> float:
    return float(TICK_MS * settings.game_speed)


def generate_arrivals(state: GameState, rng: SeededRandom) -> List[Order]:
    rate = state.session.settings.order_generation_rate
    if rng.next() < ARRIVAL_PROBABILITY.get(rate, ARRIVAL_PROBABILITY["medium"]):
        return [generate_order(rng, state)]
    return []


def _modifier_targets(state: GameState):
    return [d for d in state.departments if d.status != "maintenance"]


def generate_random_events(state: GameState, rng: SeededRandom, now: float) -> List[GameEvent]:
    """Roll the four disruption dice; any of them may fire, usually none do."""
    log    = state.events
    events = []
    minutes = MODIFIER_DURATION_MIN * MS_PER_MINUTE

    if rng.next() < RANDOM_EVENTS["equipment-failure"]:
        targets = _modifier_targets(state)
        if targets:
            dept = rng.choice(targets)
            dept.rate_modifier = FAILURE_RATE_FACTOR
            dept.modifier_remaining_ms = minutes
            refresh(dept)
            events.append(log.new_event(
                "equipment-failure", now,
                f"Equipment failure in {dept.name}! Processing slowed by 50%",
                severity="error", department_id=dept.department_id,
            ))

    if rng.next() < RANDOM_EVENTS["rush-order"]:
        if state.pending_orders:
            order = rng.choice(state.pending_orders)
            order.rush_order = True
            order.priority = "urgent"
            events.append(log.new_event(
                "rush-order", now,
                f"Rush order! {order.order_id} now has a tight deadline and needs priority handling",
                severity="warning", order_id=order.order_id,
            ))
        else:
            events.append(log.new_event(
                "rush-order", now,
                "Rush order received! Tight deadline requires priority handling",
                severity="warning",
            ))

    if rng.next() < RANDOM_EVENTS["delivery-delay"]:
        events.append(log.new_event(
            "delivery-delay", now,
            "Material delivery delayed. Some departments may experience shortages",
            severity="warning",
        ))

    if rng.next() < RANDOM_EVENTS["efficiency-boost"]:
        targets = _modifier_targets(state)
        if targets:
            dept = rng.choice(targets)
            dept.rate_modifier = BOOST_RATE_FACTOR
            dept.modifier_remaining_ms = minutes
            events.append(log.new_event(
                "efficiency-boost", now,
                f"{dept.name} running at peak efficiency! 25% speed boost",
                severity="success", department_id=dept.department_id,
            ))

    for event in events:
        logger.info("%s: %s", event.type, event.message)
    return events


def _complete_session(state: GameState) -> GameState:
    nxt = state.clone()
    nxt.session.status = "completed"
    nxt.session.ended_at = datetime.now()
    nxt.events.append(nxt.events.new_event(
        "session-completed", nxt.now,
        f"Session complete: {nxt.performance.total_throughput} orders delivered, "
        f"{nxt.performance.on_time_delivery_rate:.1f}% on time",
        severity="info", kpi_snapshot=nxt.performance.as_dict(),
    ))
    logger.info("Session %s completed at %.0f ms", nxt.session.session_id, nxt.now)
    return nxt


def tick(state: GameState, rng: SeededRandom, interval_ms: Optional[float] = None) -> GameState:
    """
    Advance a running session by one step.

    The terminal transition happens on the first tick at or past the session
    duration and does no other work.
    """
    session = state.session
    if session.status != "running":
        return state
    if session.elapsed_ms >= session.duration_ms:
        return _complete_session(state)

    interval = tick_interval(session.settings) if interval_ms is None else float(interval_ms)
    nxt = state.clone()
    nxt.session.elapsed_ms += interval
    now = nxt.now
    log = nxt.events
    new_events: List[GameEvent] = []

    for order in generate_arrivals(nxt, rng):
        nxt.pending_orders.append(order)
        nxt.total_orders_generated += 1
        new_events.append(log.new_event(
            "order-generated", now,
            f"New order {order.order_id} from {order.customer_name or 'walk-in'} "
            f"({len(order.route)} steps, {order.priority})",
            order_id=order.order_id,
        ))

    refresh_sla(nxt, now)

    result = advance_all(nxt.departments, interval, now)
    for order in result.completed:
        on_time = order.status == "completed-on-time"
        nxt.completed_orders.append(order)
        new_events.append(log.new_event(
            "order-completed", now,
            f"Order {order.order_id} completed {'on time' if on_time else 'late'}",
            severity="success" if on_time else "warning",
            order_id=order.order_id,
            department_id=order.route[-1],
        ))
    nxt.rejected_orders.extend(result.rejected)

    if session.settings.enable_events:
        new_events.extend(generate_random_events(nxt, rng, now))

    nxt.performance = compute_performance(nxt)
    log.extend(new_events)
    return nxt


# ─────────────────────────────────────────────────────────────────────────────
# Session commands
# ─────────────────────────────────────────────────────────────────────────────

def start_session(state: GameState) -> GameState:
    status = state.session.status
    if status not in ("setup", "paused"):
        return state
    nxt = state.clone()
    nxt.session.status = "running"
    if status == "setup":
        nxt.session.started_at = datetime.now()
    logger.info("Session %s %s", nxt.session.session_id, "started" if status == "setup" else "resumed")
    return nxt


def pause_session(state: GameState) -> GameState:
    if state.session.status != "running":
        return state
    nxt = state.clone()
    nxt.session.status = "paused"
    logger.info("Session %s paused at %.0f ms", nxt.session.session_id, nxt.now)
    return nxt


# ─────────────────────────────────────────────────────────────────────────────
# Player decisions
# ─────────────────────────────────────────────────────────────────────────────

def _commit(
    prev: GameState,
    nxt: GameState,
    type: str,
    description: str,
    order_id: Optional[str] = None,
) -> GameState:
    for dept in nxt.departments:
        refresh(dept)
    nxt.performance = compute_performance(nxt)
    nxt.decisions.record(
        type, description, nxt.now,
        before   = FlowSnapshot.capture(prev),
        after    = FlowSnapshot.capture(nxt),
        order_id = order_id,
    )
    logger.info("Decision: %s", description)
    return nxt


def _pending_index(state: GameState, order_id: str) -> int:
    for i, order in enumerate(state.pending_orders):
        if order.order_id == order_id:
            return i
    return -1


def release_order(state: GameState, order_id: str) -> GameState:
    """Move a pending order into the queue of the first department on its route."""
    idx = _pending_index(state, order_id)
    if idx < 0:
        logger.debug("release: order %s is not pending", order_id)
        return state
    order = state.pending_orders[idx]
    if not order.route or state.department(order.route[0]) is None:
        logger.debug("release: order %s has no usable route", order_id)
        return state

    nxt = state.clone()
    order = nxt.pending_orders.pop(idx)
    dept = nxt.department(order.route[0])
    order.current_step_index = 0
    enqueue(dept, order, nxt.now)
    return _commit(state, nxt, "order-release",
                   f"Released order {order_id} to {dept.name}", order_id)


def schedule_order(
    state: GameState,
    order_id: str,
    department_id: int,
    scheduled_at: float,
) -> GameState:
    """
    Place a pending order directly at *department_id*.

    The order's step becomes the first visit to that department on its route;
    a department not on the route is prepended to it.
    """
    idx = _pending_index(state, order_id)
    if idx < 0 or state.department(department_id) is None:
        logger.debug("schedule: order %s / department %s not found", order_id, department_id)
        return state

    nxt = state.clone()
    order = nxt.pending_orders.pop(idx)
    dept = nxt.department(department_id)
    if department_id in order.route:
        order.current_step_index = order.route.index(department_id)
    else:
        order.route.insert(0, DepartmentId(department_id))
        order.current_step_index = 0
    order.scheduled_start = float(scheduled_at)
    enqueue(dept, order, nxt.now)
    return _commit(
        state, nxt, "schedule",
        f"Scheduled order {order_id} to {dept.name} at {scheduled_at / MS_PER_MINUTE:.1f} min",
        order_id,
    )


def rebalance_workload(
    state: GameState,
    source_ids: Sequence[int],
    target_ids: Sequence[int],
    order_ids: Sequence[str],
) -> GameState:
    """
    Move queued orders out of the source departments, dealing them round-robin
    onto the targets.  Each moved order's current route step is rewritten to
    the department it lands in.
    """
    if not source_ids or not target_ids or not order_ids:
        return state
    targets = [t for t in target_ids if state.department(t) is not None]
    wanted = set(order_ids)
    movable = any(
        o.order_id in wanted
        for d in state.departments if d.department_id in source_ids
        for o in d.queue
    )
    if not targets or not movable:
        logger.debug("rebalance: nothing to move from %s to %s", list(source_ids), list(target_ids))
        return state

    nxt = state.clone()
    now = nxt.now
    moved: List[Order] = []
    for dept in nxt.departments:
        if dept.department_id in source_ids:
            moved.extend(o for o in dept.queue if o.order_id in wanted)
            dept.queue = [o for o in dept.queue if o.order_id not in wanted]

    for i, order in enumerate(moved):
        dest = nxt.department(targets[i % len(targets)])
        span = order.open_span
        if span is not None:
            order.timestamps.pop()
        order.route[order.current_step_index] = dest.department_id
        enqueue(dest, order, now)

    return _commit(
        state, nxt, "rebalance",
        f"Rebalanced workload: moved {len(moved)} orders from departments "
        f"{list(source_ids)} to {targets}",
    )


def optimize_order_route(state: GameState, order_id: str, new_route: Sequence[int]) -> GameState:
    """
    Replace an order's route.

    Pending orders take any valid route.  An order already at a department
    keeps its step index, so the new route must point that step at the same
    department.
    """
    if not new_route or any(state.department(d) is None for d in new_route):
        logger.debug("optimize_route: invalid route %s", list(new_route))
        return state
    route = [DepartmentId(d) for d in new_route]

    idx = _pending_index(state, order_id)
    if idx >= 0:
        nxt = state.clone()
        nxt.pending_orders[idx].route = route
    else:
        located = None
        for d_index, dept in enumerate(state.departments):
            for order in dept.orders():
                if order.order_id == order_id:
                    located = (d_index, order)
        if located is None:
            logger.debug("optimize_route: order %s not found", order_id)
            return state
        d_index, order = located
        step = order.current_step_index
        if not 0 <= step < len(route) or route[step] != order.current_department:
            logger.debug("optimize_route: route %s would move %s off its department", route, order_id)
            return state
        nxt = state.clone()
        for o in nxt.departments[d_index].orders():
            if o.order_id == order_id:
                o.route = route

    return _commit(
        state, nxt, "route-optimization",
        f"Optimized route for order {order_id}: {' → '.join(str(d) for d in route)}",
        order_id,
    )


def undo_decision(state: GameState) -> GameState:
    if not state.decisions.can_undo:
        return state
    nxt = state.clone()
    nxt.decisions.undo(nxt)
    nxt.performance = compute_performance(nxt)
    return nxt


def redo_decision(state: GameState) -> GameState:
    if not state.decisions.can_redo:
        return state
    nxt = state.clone()
    nxt.decisions.redo(nxt)
    nxt.performance = compute_performance(nxt)
    return nxt


def clear_decision_history(state: GameState) -> GameState:
    nxt = state.clone()
    nxt.decisions.clear()
    return nxt


# ─────────────────────────────────────────────────────────────────────────────
# Engine instance
# ─────────────────────────────────────────────────────────────────────────────

class SimulationEngine:
    """
    Owns one session's state and its random stream.

    Usage::

        engine = SimulationEngine({"random_seed": "demo", "complexity_level": "beginner"})
        engine.start()
        while not engine.is_complete:
            engine.tick()
        print(engine.state.performance)
    """

    def __init__(
        self,
        settings: Union[GameSettings, dict, None] = None,
        state: Optional[GameState] = None,
    ) -> None:
        if not isinstance(settings, GameSettings):
            settings = GameSettings.from_dict(settings or {})
        self.settings = settings
        self.rng   = SeededRandom(settings.random_seed)
        self.state = state if state is not None else initialize_game_state(settings)

    @property
    def is_running(self) -> bool:
        return self.state.session.status == "running"

    @property
    def is_complete(self) -> bool:
        return self.state.session.status == "completed"

    def tick(self, interval_ms: Optional[float] = None) -> GameState:
        self.state = tick(self.state, self.rng, interval_ms)
        return self.state

    def start(self) -> GameState:
        self.state = start_session(self.state)
        return self.state

    def pause(self) -> GameState:
        self.state = pause_session(self.state)
        return self.state

    def reset(self) -> GameState:
        """Discard the session and its stream; rebuild both from the original settings."""
        self.rng   = SeededRandom(self.settings.random_seed)
        self.state = initialize_game_state(self.settings)
        return self.state

    def release(self, order_id: str) -> GameState:
        self.state = release_order(self.state, order_id)
        return self.state

    def schedule(self, order_id: str, department_id: int, scheduled_at: float) -> GameState:
        self.state = schedule_order(self.state, order_id, department_id, scheduled_at)
        return self.state

    def rebalance(self, source_ids, target_ids, order_ids) -> GameState:
        self.state = rebalance_workload(self.state, source_ids, target_ids, order_ids)
        return self.state

    def optimize_route(self, order_id: str, new_route: Sequence[int]) -> GameState:
        self.state = optimize_order_route(self.state, order_id, new_route)
        return self.state

    def undo(self) -> GameState:
        self.state = undo_decision(self.state)
        return self.state

    def redo(self) -> GameState:
        self.state = redo_decision(self.state)
        return self.state

    def clear_history(self) -> GameState:
        self.state = clear_decision_history(self.state)
        return self.state
