import pytest

from mtosim.config import MS_PER_MINUTE
from mtosim.department import enqueue, refresh
from mtosim.metrics import build_session_log, compute_kpis, compute_performance, utilization_history

from conftest import make_order


def finish(order, status, lead):
    order.status = status
    order.actual_lead_time = lead
    order.completed_at = lead * MS_PER_MINUTE
    return order


def test_empty_floor_performance(quiet_state):
    perf = compute_performance(quiet_state)
    assert perf.on_time_delivery_rate == 0.0
    assert perf.average_lead_time == 0.0
    assert perf.total_throughput == 0
    assert perf.wip_count == 0
    assert perf.bottleneck_department == 1


def test_rates_and_lead_times(quiet_state):
    quiet_state.completed_orders = [
        finish(make_order("a", [1]), "completed-on-time", 20),
        finish(make_order("b", [1]), "completed-on-time", 30),
        finish(make_order("c", [1]), "completed-late", 70),
        finish(make_order("d", [1]), "completed-on-time", 40),
    ]
    perf = compute_performance(quiet_state)
    assert perf.on_time_delivery_rate == pytest.approx(75.0)
    assert perf.average_lead_time == pytest.approx(40.0)
    assert perf.total_throughput == 4


def test_bottleneck_is_first_busiest_department(quiet_state):
    for dept_id, load in ((2, 2), (3, 2), (4, 1)):
        dept = quiet_state.department(dept_id)
        for i in range(load):
            enqueue(dept, make_order(f"{dept_id}-{i}", [dept_id]), 0.0)
        refresh(dept)

    perf = compute_performance(quiet_state)
    assert perf.bottleneck_department == 2
    assert perf.wip_count == 5
    assert perf.utilization_rates == {1: 0.0, 2: 50.0, 3: 50.0, 4: 25.0}
    assert perf.average_utilization == pytest.approx(31.25)


def test_kpis(quiet_state):
    quiet_state.completed_orders = [
        finish(make_order("a", [1, 2]), "completed-on-time", 10),
        finish(make_order("b", [1]), "completed-late", 30),
    ]
    quiet_state.completed_orders[0].order_value = 300
    quiet_state.completed_orders[1].rework_count = 2
    quiet_state.session.elapsed_ms = 60 * MS_PER_MINUTE
    quiet_state.pending_orders[0].sla_status = "overdue"
    quiet_state.performance = compute_performance(quiet_state)

    k = compute_kpis(quiet_state)
    assert k["orders_completed"] == 2
    assert k["orders_late"] == 1
    assert k["otd_rate_pct"] == pytest.approx(50.0)
    assert k["throughput_per_hr"] == pytest.approx(2.0)
    assert k["revenue"] == 300
    assert k["rework_loops"] == 2
    assert k["open_overdue"] == 1
    assert k["open_on_track"] == 2
    assert k["bottleneck"] == "Dept 1"
    assert k["max_lead_time_min"] == 30.0


def test_session_log_shape(quiet_state):
    log = build_session_log(quiet_state)
    assert set(log) == {
        "session_id", "start_time", "end_time", "elapsed_ms", "settings",
        "events", "final_performance", "decisions",
    }
    assert log["settings"]["random_seed"] == "fixture-seed"
    assert log["start_time"] is None
    assert log["final_performance"]["total_throughput"] == 0


def test_utilization_history_groups_by_department():
    snaps = [
        {"utilization": {1: 0.0, 2: 25.0}},
        {"utilization": {1: 50.0, 2: 25.0}},
    ]
    assert utilization_history(snaps) == {1: [0.0, 50.0], 2: [25.0, 25.0]}
