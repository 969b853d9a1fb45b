"""Shared fixtures: small hand-built shop floors with exact timings."""

from typing import List, Sequence

import pytest

from mtosim.config import MS_PER_MINUTE
from mtosim.factory import new_game_state
from mtosim.models import Department, DepartmentId, GameSettings, Operation, Order


def make_department(dept_id: int, minutes: Sequence[float] = (10,), **kwargs) -> Department:
    ops = [Operation(f"op-{dept_id}-{i}", f"Step {dept_id}.{i}", m) for i, m in enumerate(minutes)]
    return Department(
        department_id            = DepartmentId(dept_id),
        name                     = f"Dept {dept_id}",
        operations               = ops,
        standard_processing_time = sum(minutes),
        **kwargs,
    )


def make_order(order_id: str, route: Sequence[int], due_min: float = 60.0, created_at: float = 0.0) -> Order:
    return Order(
        order_id   = order_id,
        route      = [DepartmentId(d) for d in route],
        created_at = created_at,
        due_at     = created_at + due_min * MS_PER_MINUTE,
    )


@pytest.fixture
def quiet_settings() -> GameSettings:
    """No disruptions, almost no arrivals, basic routing."""
    return GameSettings(
        session_duration        = 60,
        order_generation_rate   = "low",
        complexity_level        = "beginner",
        random_seed             = "fixture-seed",
        game_speed              = 1,
        enable_events           = False,
        enable_advanced_routing = False,
    )


@pytest.fixture
def four_departments() -> List[Department]:
    return [make_department(i) for i in (1, 2, 3, 4)]


@pytest.fixture
def quiet_state(quiet_settings, four_departments):
    """Four 10-minute departments and three pending orders."""
    pending = [
        make_order("T-1", [1, 4, 3, 2]),
        make_order("T-2", [2, 3]),
        make_order("T-3", [3]),
    ]
    return new_game_state(quiet_settings, four_departments, pending)
