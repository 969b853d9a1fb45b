from mtosim.config import MS_PER_MINUTE
from mtosim.department import (
    TickResult, advance, advance_all, complexity_factor, compute_utilization,
    derive_status, enqueue, processing_time_for, refresh, route_onward, start_next,
)

from conftest import make_department, make_order

TICK = 1_000.0


def run_ticks(departments, n, start=0.0):
    now = start
    result = TickResult()
    for _ in range(n):
        now += TICK
        step = advance_all(departments, TICK, now)
        result.completed.extend(step.completed)
        result.rejected.extend(step.rejected)
    return now, result


def test_operations_advance_in_order():
    dept = make_department(1, (8, 7))
    order = make_order("A", [1])
    order.current_step_index = 0
    enqueue(dept, order, 0.0)
    assert start_next(dept, 0.0)

    now, _ = run_ticks([dept], 480)
    assert order.current_operation_index == 1
    assert order.operation_progress[0].completed
    assert order.operation_progress[0].end_ms == now == 8 * MS_PER_MINUTE
    assert not order.operation_progress[1].completed

    _, result = run_ticks([dept], 420, start=now)
    assert [o.order_id for o in result.completed] == ["A"]
    assert dept.in_process is None
    assert dept.total_processed == 1


def test_queue_is_fifo():
    dept = make_department(1, (1,))
    orders = [make_order(name, [1]) for name in ("first", "second", "third")]
    for order in orders:
        order.current_step_index = 0
        enqueue(dept, order, 0.0)

    _, result = run_ticks([dept], 180)
    assert [o.order_id for o in result.completed] == ["first", "second", "third"]


def test_next_order_starts_in_the_same_tick():
    dept = make_department(1, (1,))
    for name in ("a", "b"):
        order = make_order(name, [1])
        order.current_step_index = 0
        enqueue(dept, order, 0.0)

    finished = []
    now = 0.0
    for _ in range(60):
        now += TICK
        finished.extend(advance(dept, TICK, now))
    assert [o.order_id for o in finished] == ["a"]
    assert dept.in_process.order_id == "b"


def test_utilization_is_monotone_in_load_and_capped():
    dept = make_department(1)
    seen = []
    for i in range(6):
        order = make_order(f"o{i}", [1])
        enqueue(dept, order, 0.0)
        seen.append(compute_utilization(dept))
    assert seen == sorted(seen)
    assert seen[:4] == [25.0, 50.0, 75.0, 100.0]
    assert max(seen) == 100.0


def test_status_thresholds():
    dept = make_department(1)
    dept.utilization = 50
    assert derive_status(dept) == "available"
    dept.utilization = 75
    assert derive_status(dept) == "busy"
    dept.utilization = 100
    assert derive_status(dept) == "overloaded"

    dept.rate_modifier = 0.5
    dept.modifier_remaining_ms = 1_000
    assert derive_status(dept) == "maintenance"


def test_rate_modifier_slows_processing_and_wears_off():
    dept = make_department(1, (1,))
    dept.rate_modifier = 0.5
    dept.modifier_remaining_ms = 30 * TICK
    order = make_order("slow", [1])
    order.current_step_index = 0
    enqueue(dept, order, 0.0)

    # 29 half-rate ticks (the modifier lapses on the 30th) leave 45.5 s of work
    _, result = run_ticks([dept], 74)
    assert not result.completed
    _, result = run_ticks([dept], 1, start=74 * TICK)
    assert [o.order_id for o in result.completed] == ["slow"]
    assert dept.rate_modifier == 1.0


def test_hand_off_waits_until_every_department_stepped():
    first, second = make_department(1, (1,)), make_department(2, (1,))
    order = make_order("flow", [1, 2])
    order.current_step_index = 0
    enqueue(first, order, 0.0)

    now, _ = run_ticks([first, second], 60)
    assert second.in_process is order
    assert order.current_step_index == 1
    assert order.processing_time_remaining == MS_PER_MINUTE
    assert order.timestamps[0].end_ms == now
    assert order.timestamps[1].start_ms == now


def test_route_end_closes_order():
    dept = make_department(1)
    order = make_order("done", [1], due_min=60)
    order.current_step_index = 0
    result = TickResult()
    route_onward(order, {1: dept}, 30 * MS_PER_MINUTE, result)
    assert result.completed == [order]
    assert order.status == "completed-on-time"
    assert order.actual_lead_time == 30.0

    late = make_order("late", [1])
    late.current_step_index = 0
    late.sla_status = "overdue"
    route_onward(late, {1: dept}, 90 * MS_PER_MINUTE, result)
    assert late.status == "completed-late"


def test_unknown_next_department_rejects_order():
    dept = make_department(1)
    order = make_order("lost", [1, 9])
    order.current_step_index = 0
    result = TickResult()
    route_onward(order, {1: dept}, 0.0, result)
    assert result.rejected == [order]
    assert order.status == "error"


def test_revisit_counts_as_rework():
    dept = make_department(1)
    order = make_order("loop", [1, 1])
    enqueue(dept, order, 0.0)
    enqueue(dept, order, 10.0)
    assert order.rework_count == 1


def test_processing_time_scales_with_route_complexity():
    dept = make_department(1, (10,))
    short = make_order("s", [1, 2])
    medium = make_order("m", [1, 2, 3, 4])
    long = make_order("l", [1, 2, 3, 4, 1, 2])
    assert complexity_factor(short) == 0.8
    assert complexity_factor(medium) == 1.0
    assert complexity_factor(long) == 1.2
    assert processing_time_for(medium, dept) == 10 * MS_PER_MINUTE


def test_refresh_sets_utilization_and_status():
    dept = make_department(1)
    for i in range(4):
        enqueue(dept, make_order(f"o{i}", [1]), 0.0)
    refresh(dept)
    assert dept.utilization == 100.0
    assert dept.status == "overloaded"


def test_order_picked_up_mid_tick_is_stamped_from_interval_start():
    dept = make_department(1, (8, 7))
    order = make_order("fresh", [1])
    order.current_step_index = 0
    enqueue(dept, order, 0.0)

    run_ticks([dept], 480)
    first = order.operation_progress[0]
    assert first.completed
    assert first.start_ms == 0.0
    assert first.end_ms - first.start_ms == 8 * MS_PER_MINUTE
