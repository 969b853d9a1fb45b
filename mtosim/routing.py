"""
Route generation and optimisation.

A route is the ordered list of department ids an order must visit.  New
routes come either from a plain random walk over the departments or from a
process-flow template (cutting → assembly → quality → …) mapped onto capable
departments and then re-weighted by independent optimisation passes.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Sequence

from .config import (
    BOTTLENECK_TARGET_BELOW, BOTTLENECK_TRIGGER_ABOVE, COST_PER_MINUTE,
    DEFAULT_PROCESS_FLOW, DEFAULT_ROUTE_LENGTH, DEPARTMENTS,
    PRIORITY_IMPROVEMENT, PRIORITY_WEIGHTS, PROCESS_FLOWS,
    REPEAT_REJECT_PROBABILITY, ROUTE_LENGTH,
)
from .models import Department, DepartmentId
from .stream import SeededRandom


@dataclass(frozen=True)
class RouteOptions:
    complexity_level:       str  = "intermediate"
    prioritize_speed:       bool = False
    prioritize_cost:        bool = False
    prioritize_reliability: bool = False
    avoid_bottlenecks:      bool = False
    customer_tier:          str  = "standard"
    order_priority:         str  = "normal"


@dataclass(frozen=True)
class DepartmentNode:
    """Read-only view of a department as the optimiser scores it."""

    department_id:        DepartmentId
    name:                 str
    operations:           tuple
    avg_processing_time:  float
    utilization:          float
    reliability:          float
    cost:                 float

    @classmethod
    def from_department(cls, dept: Department) -> "DepartmentNode":
        return cls(
            department_id       = dept.department_id,
            name                = dept.name,
            operations          = tuple(dept.operation_names),
            avg_processing_time = dept.standard_processing_time,
            utilization         = dept.utilization,
            reliability         = dept.equipment_condition,
            cost                = dept.standard_processing_time * COST_PER_MINUTE,
        )

    def shares_operation(self, other: "DepartmentNode") -> bool:
        return any(op in other.operations for op in self.operations)


@dataclass(frozen=True)
class RouteMetrics:
    total_time:        float
    total_cost:        float
    reliability:       float
    bottleneck_risk:   int
    flexibility_score: float


# ─────────────────────────────────────────────────────────────────────────────
# Random routes
# ─────────────────────────────────────────────────────────────────────────────

def generate_route(
    rng: SeededRandom,
    complexity_level: str,
    department_ids: Sequence[int] = tuple(DEPARTMENTS),
) -> List[DepartmentId]:
    """
    Random walk over *department_ids*.

    Length is drawn from the tier's range (upper bound exclusive).  An
    immediate repeat is redrawn 90 % of the time; the rest are kept as
    rework loops.
    """
    if complexity_level in ROUTE_LENGTH:
        lo, hi = ROUTE_LENGTH[complexity_level]
        length = rng.int_between(lo, hi)
    else:
        length = DEFAULT_ROUTE_LENGTH

    ids = list(department_ids)
    route: List[DepartmentId] = []
    for _ in range(length):
        while True:
            nxt = rng.choice(ids)
            if route and route[-1] == nxt and rng.next() < REPEAT_REJECT_PROBABILITY:
                continue
            break
        route.append(DepartmentId(nxt))
    return route


# ─────────────────────────────────────────────────────────────────────────────
# Template routes + optimisation passes
# ─────────────────────────────────────────────────────────────────────────────

def process_flow_templates(complexity_level: str) -> List[List[str]]:
    return PROCESS_FLOWS.get(complexity_level, [DEFAULT_PROCESS_FLOW])


def _is_capable(stage: str, node: DepartmentNode) -> bool:
    stage = stage.lower()
    for op in node.operations:
        op = op.lower()
        if stage in op or op.split(" ")[0] in stage:
            return True
    return False


def base_route(
    flow: Sequence[str],
    nodes: Sequence[DepartmentNode],
    rng: SeededRandom,
) -> List[DepartmentId]:
    """Map each stage of *flow* to a capable department, or any department if none is."""
    route = []
    for stage in flow:
        capable = [n for n in nodes if _is_capable(stage, n)]
        route.append(rng.choice(capable or list(nodes)).department_id)
    return route


def _substitute(
    route: Sequence[DepartmentId],
    nodes: Sequence[DepartmentNode],
    pick: Callable[[DepartmentNode, List[DepartmentNode]], Optional[DepartmentNode]],
) -> List[DepartmentId]:
    """Apply *pick* to each step's alternatives (other departments sharing an operation)."""
    by_id: Dict[int, DepartmentNode] = {n.department_id: n for n in nodes}
    out = []
    for dept_id in route:
        current = by_id.get(dept_id)
        if current is None:
            out.append(dept_id)
            continue
        alternatives = [
            n for n in nodes
            if n.department_id != dept_id and n.shares_operation(current)
        ]
        chosen = pick(current, alternatives) if alternatives else None
        out.append(chosen.department_id if chosen is not None else dept_id)
    return out


def _best(candidates: List[DepartmentNode], key, lowest: bool) -> Optional[DepartmentNode]:
    if not candidates:
        return None
    best = candidates[0]
    for c in candidates[1:]:
        if (key(c) < key(best)) if lowest else (key(c) > key(best)):
            best = c
    return best


def optimize_for_speed(route, nodes) -> List[DepartmentId]:
    return _substitute(route, nodes, lambda cur, alts: _best(
        [a for a in alts if a.avg_processing_time < cur.avg_processing_time],
        lambda n: n.avg_processing_time, lowest=True,
    ))


def optimize_for_cost(route, nodes) -> List[DepartmentId]:
    return _substitute(route, nodes, lambda cur, alts: _best(
        [a for a in alts if a.cost < cur.cost],
        lambda n: n.cost, lowest=True,
    ))


def optimize_for_reliability(route, nodes) -> List[DepartmentId]:
    return _substitute(route, nodes, lambda cur, alts: _best(
        [a for a in alts if a.reliability > cur.reliability],
        lambda n: n.reliability, lowest=False,
    ))


def avoid_bottlenecks(route, nodes) -> List[DepartmentId]:
    def pick(cur, alts):
        if cur.utilization <= BOTTLENECK_TRIGGER_ABOVE:
            return None
        return _best(
            [a for a in alts if a.utilization < BOTTLENECK_TARGET_BELOW],
            lambda n: n.utilization, lowest=True,
        )
    return _substitute(route, nodes, pick)


def priority_score(node: DepartmentNode) -> float:
    w_rel, w_free, w_cost = PRIORITY_WEIGHTS
    cost_term = (100 / node.cost) * w_cost if node.cost > 0 else 0.0
    return node.reliability * w_rel + (100 - node.utilization) * w_free + cost_term


def apply_priority_routing(route, nodes) -> List[DepartmentId]:
    """Swap a step only when the best alternative scores more than 10 % higher."""
    def pick(cur, alts):
        best = _best(alts, priority_score, lowest=False)
        if priority_score(best) > priority_score(cur) * PRIORITY_IMPROVEMENT:
            return best
        return None
    return _substitute(route, nodes, pick)


def generate_optimized_route(
    rng: SeededRandom,
    departments: Sequence[Department],
    options: RouteOptions,
) -> List[DepartmentId]:
    nodes = [DepartmentNode.from_department(d) for d in departments]

    flow  = rng.choice(process_flow_templates(options.complexity_level))
    route = base_route(flow, nodes, rng)

    if options.prioritize_speed:
        route = optimize_for_speed(route, nodes)
    if options.prioritize_cost:
        route = optimize_for_cost(route, nodes)
    if options.prioritize_reliability:
        route = optimize_for_reliability(route, nodes)
    if options.avoid_bottlenecks:
        route = avoid_bottlenecks(route, nodes)
    if options.customer_tier == "vip" or options.order_priority == "urgent":
        route = apply_priority_routing(route, nodes)

    return route


def generate_route_alternatives(
    rng: SeededRandom,
    departments: Sequence[Department],
    base_options: RouteOptions,
    count: int = 3,
) -> List[List[DepartmentId]]:
    """One optimised route per strategy (speed, cost, reliability, bottleneck), up to *count*."""
    strategies = [
        replace(base_options, prioritize_speed=True),
        replace(base_options, prioritize_cost=True),
        replace(base_options, prioritize_reliability=True),
        replace(base_options, avoid_bottlenecks=True),
    ]
    return [
        generate_optimized_route(rng, departments, opts)
        for opts in strategies[:max(0, count)]
    ]


# ─────────────────────────────────────────────────────────────────────────────
# Metrics
# ─────────────────────────────────────────────────────────────────────────────

def calculate_route_metrics(route: Sequence[int], departments: Sequence[Department]) -> RouteMetrics:
    by_id = {d.department_id: d for d in departments}

    total_time  = 0.0
    total_cost  = 0.0
    reliability = 1.0
    risk        = 0
    for dept_id in route:
        dept = by_id.get(dept_id)
        if dept is None:
            continue
        total_time  += dept.standard_processing_time
        total_cost  += dept.standard_processing_time * COST_PER_MINUTE
        reliability *= dept.equipment_condition
        if dept.utilization > 80:
            risk += 2
        elif dept.utilization > 60:
            risk += 1

    return RouteMetrics(
        total_time        = total_time,
        total_cost        = round(total_cost),
        reliability       = reliability,
        bottleneck_risk   = risk,
        flexibility_score = len(set(route)) / len(route) if route else 0.0,
    )
