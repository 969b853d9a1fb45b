"""
Shop-floor construction: departments, customers, and the orders a session
starts with or receives while it runs.

Initial layout of a fresh session:

   pending orders ──release──▶ [Cutting & Prep] ─┐
                                                 ├─▶ [Assembly] ─▶ [Quality Control] ─▶ [Packaging & Ship]
                   WIP already on the floor ─────┘        (routes visit any order of these)
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .config import (
    CUSTOMERS, DEPARTMENTS, DEPARTMENT_TUNABLES, DUE_MIN_INITIAL, DUE_MIN_NEW,
    DUE_MIN_WIP, INITIAL_PENDING, INITIAL_WIP, MS_PER_MINUTE,
    ROUTING_PASS_PROBABILITY, RUSH_CHANCE_PCT, TIER_VALUE_MULTIPLIER,
    VALUE_PER_STEP, WIP_AGE_MIN, WIP_REMAINING_MIN,
)
from .department import enqueue, refresh, start_next
from .metrics import compute_performance
from .models import (
    Customer, Department, DepartmentId, GameSession, GameSettings, GameState,
    Operation, Order, TimestampSpan,
)
from .routing import RouteOptions, generate_optimized_route, generate_route
from .stream import SeededRandom

logger = logging.getLogger(__name__)


def build_customers() -> List[Customer]:
    return [Customer(cid, name, tier) for cid, name, tier in CUSTOMERS]


def build_departments(rng: SeededRandom) -> List[Department]:
    """Standard departments with per-session capacity, efficiency and equipment draws."""
    departments = []
    for dept_id, cfg in DEPARTMENTS.items():
        lo_cap, hi_cap = DEPARTMENT_TUNABLES["capacity"]
        capacity   = rng.int_between(lo_cap, hi_cap)
        efficiency = rng.between(*DEPARTMENT_TUNABLES["efficiency"])
        condition  = rng.between(*DEPARTMENT_TUNABLES["equipment_condition"])
        departments.append(Department(
            department_id            = DepartmentId(dept_id),
            name                     = cfg["name"],
            operations               = [Operation(*op) for op in cfg["operations"]],
            standard_processing_time = cfg["standard_min"],
            efficiency               = efficiency,
            equipment_condition      = condition,
            capacity                 = capacity,
        ))
    return departments


def _order_id(n: int, prefix: str = "ORD") -> str:
    return f"{prefix}-{n:03d}"


def generate_initial_orders(
    rng: SeededRandom,
    complexity_level: str,
    now: float = 0.0,
    department_ids: Sequence[int] = tuple(DEPARTMENTS),
) -> List[Order]:
    """Unreleased orders waiting when the session starts."""
    lo, hi = INITIAL_PENDING.get(complexity_level, INITIAL_PENDING["intermediate"])
    count = rng.int_between(lo, hi)

    orders = []
    for i in range(count):
        route = generate_route(rng, complexity_level, department_ids)
        due_min = rng.between(*DUE_MIN_INITIAL)
        orders.append(Order(
            order_id   = _order_id(i + 1),
            route      = route,
            created_at = now,
            due_at     = now + due_min * MS_PER_MINUTE,
        ))
    return orders


def generate_initial_wip(
    rng: SeededRandom,
    complexity_level: str,
    now: float = 0.0,
    department_ids: Sequence[int] = tuple(DEPARTMENTS),
) -> List[Order]:
    """Orders already part-way along their routes when the session starts."""
    lo, hi = INITIAL_WIP.get(complexity_level, INITIAL_WIP["intermediate"])
    count = rng.int_between(lo, hi)

    orders = []
    for i in range(count):
        route = generate_route(rng, complexity_level, department_ids)
        step  = rng.int_between(0, len(route))
        due   = now + rng.between(*DUE_MIN_WIP) * MS_PER_MINUTE
        born  = now - rng.between(*WIP_AGE_MIN) * MS_PER_MINUTE

        # Earlier departments are already behind it: one closed 20-minute span each
        spans = [
            TimestampSpan(
                department_id = dept_id,
                start_ms      = now - (step - k + 1) * 20 * MS_PER_MINUTE,
                end_ms        = now - (step - k) * 20 * MS_PER_MINUTE,
            )
            for k, dept_id in enumerate(route[:step])
        ]
        orders.append(Order(
            order_id           = _order_id(i + 1, prefix="WIP"),
            route              = route,
            created_at         = born,
            due_at             = due,
            current_step_index = step,
            timestamps         = spans,
        ))
    return orders


def place_wip(
    rng: SeededRandom,
    departments: Sequence[Department],
    wip: Sequence[Order],
    now: float = 0.0,
) -> None:
    """Queue WIP at its current department; idle departments start the first arrival part-done."""
    by_id = {d.department_id: d for d in departments}
    for order in wip:
        dept = by_id.get(order.current_department)
        if dept is None:
            continue
        enqueue(dept, order, now)
        if start_next(dept, now):
            remaining = rng.between(*WIP_REMAINING_MIN) * MS_PER_MINUTE
            order.processing_time_remaining = min(order.processing_time or remaining, remaining)
        refresh(dept)


def _pick_priority(rng: SeededRandom, tier: str) -> str:
    roll = rng.between(0, 100)
    if tier == "vip":
        return "urgent" if roll < 40 else "high"
    if tier == "premium":
        return "high" if roll < 30 else "normal"
    return "high" if roll < 10 else "normal"


def generate_order(
    rng: SeededRandom,
    state: GameState,
    customers: Optional[Sequence[Customer]] = None,
) -> Order:
    """
    Synthesise one newly arrived order.

    Draw order: customer, priority, routing passes, route, value, rush flag,
    due date.  Keep it fixed; replays depend on it.
    """
    settings  = state.session.settings
    customers = customers or build_customers()
    now       = state.now

    customer = rng.choice(customers)
    priority = _pick_priority(rng, customer.tier)

    if settings.enable_advanced_routing:
        options = RouteOptions(
            complexity_level       = settings.complexity_level,
            prioritize_speed       = rng.next() < ROUTING_PASS_PROBABILITY["speed"],
            prioritize_cost        = rng.next() < ROUTING_PASS_PROBABILITY["cost"],
            prioritize_reliability = rng.next() < ROUTING_PASS_PROBABILITY["reliability"],
            avoid_bottlenecks      = rng.next() < ROUTING_PASS_PROBABILITY["bottleneck"],
            customer_tier          = customer.tier,
            order_priority         = priority,
        )
        route = generate_optimized_route(rng, state.departments, options)
    else:
        route = generate_route(
            rng, settings.complexity_level, [d.department_id for d in state.departments],
        )

    multiplier = TIER_VALUE_MULTIPLIER.get(customer.tier, 1.0)
    value = round(len(route) * VALUE_PER_STEP * multiplier * rng.between(0.8, 1.4))
    rush  = rng.between(0, 100) < RUSH_CHANCE_PCT.get(customer.tier, 5)
    due   = now + rng.between(*DUE_MIN_NEW) * MS_PER_MINUTE

    return Order(
        order_id      = _order_id(state.total_orders_generated + 1),
        route         = route,
        created_at    = now,
        due_at        = due,
        customer_id   = customer.customer_id,
        customer_name = customer.name,
        priority      = priority,
        order_value   = value,
        rush_order    = rush,
    )


def new_game_state(
    settings: GameSettings,
    departments: List[Department],
    pending_orders: Sequence[Order] = (),
) -> GameState:
    """Assemble a state from explicit parts, counting every order already placed."""
    state = GameState(
        session        = GameSession(settings=settings),
        departments    = departments,
        pending_orders = list(pending_orders),
    )
    state.total_orders_generated = state.order_count()
    for dept in departments:
        refresh(dept)
    state.performance = compute_performance(state)
    return state


def initialize_game_state(settings: GameSettings) -> GameState:
    """Fresh session: seeded departments, pending orders and WIP on the floor."""
    rng = SeededRandom(settings.random_seed)

    departments = build_departments(rng)
    ids = [d.department_id for d in departments]
    pending = generate_initial_orders(rng, settings.complexity_level, department_ids=ids)
    wip     = generate_initial_wip(rng, settings.complexity_level, department_ids=ids)
    place_wip(rng, departments, wip)

    state = new_game_state(settings, departments, pending)
    state.events.append(state.events.new_event(
        "order-generated", 0.0,
        f"Game initialized with {len(pending)} pending orders and {len(wip)} WIP orders",
    ))
    logger.info(
        "Initialised %s: %d pending, %d WIP, seed=%r",
        state.session.session_id, len(pending), len(wip), settings.random_seed,
    )
    return state
