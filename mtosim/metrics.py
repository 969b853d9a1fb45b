"""Performance snapshot, KPI computation and the exportable session log."""

from __future__ import annotations

from typing import Dict, List

import numpy as np

from .config import MS_PER_MINUTE
from .models import GameState, Performance


def compute_performance(state: GameState) -> Performance:
    """
    Derive the performance snapshot from the state's current collections.

    On-time rate is a percentage of completed orders; the bottleneck is the
    first department holding the maximum utilization.
    """
    completed = state.completed_orders
    total     = len(completed)
    on_time   = sum(1 for o in completed if o.status == "completed-on-time")

    lead_times = np.array([o.actual_lead_time or 0.0 for o in completed], dtype=float)
    utils      = np.array([d.utilization for d in state.departments], dtype=float)

    return Performance(
        on_time_delivery_rate = (on_time / total * 100) if total else 0.0,
        average_lead_time     = float(lead_times.mean()) if total else 0.0,
        total_throughput      = total,
        utilization_rates     = {d.department_id: d.utilization for d in state.departments},
        bottleneck_department = (
            state.departments[int(np.argmax(utils))].department_id if utils.size else None
        ),
        wip_count             = sum(d.load for d in state.departments),
        average_utilization   = float(utils.mean()) if utils.size else 0.0,
    )


def compute_kpis(state: GameState) -> dict:
    """Flat KPI dictionary for tables and charts."""
    k: dict = {}
    perf = state.performance

    # ── Orders ────────────────────────────────────────────────────────────────
    completed = state.completed_orders
    late      = [o for o in completed if o.status == "completed-late"]
    k["orders_generated"]      = state.total_orders_generated
    k["orders_completed"]      = len(completed)
    k["orders_late"]           = len(late)
    k["orders_pending"]        = len(state.pending_orders)
    k["orders_rejected"]       = len(state.rejected_orders)
    k["wip"]                   = perf.wip_count
    k["otd_rate_pct"]          = perf.on_time_delivery_rate
    k["avg_lead_time_min"]     = perf.average_lead_time

    if completed:
        leads = np.array([o.actual_lead_time or 0.0 for o in completed], dtype=float)
        k["p90_lead_time_min"] = float(np.percentile(leads, 90))
        k["max_lead_time_min"] = float(leads.max())
    else:
        k["p90_lead_time_min"] = 0.0
        k["max_lead_time_min"] = 0.0

    elapsed_hr = state.session.elapsed_ms / MS_PER_MINUTE / 60
    k["throughput_per_hr"] = len(completed) / elapsed_hr if elapsed_hr > 0 else 0.0
    k["revenue"]           = sum(o.order_value for o in completed)
    k["rework_loops"]      = sum(o.rework_count for o in completed)

    # ── SLA of open orders ────────────────────────────────────────────────────
    open_orders = list(state.open_orders())
    for status in ("on-track", "at-risk", "overdue"):
        k[f"open_{status.replace('-', '_')}"] = sum(1 for o in open_orders if o.sla_status == status)

    # ── Departments ───────────────────────────────────────────────────────────
    k["utilization_by_department"] = {
        d.name: d.utilization for d in state.departments
    }
    k["processed_by_department"] = {
        d.name: d.total_processed for d in state.departments
    }
    k["avg_utilization_pct"] = perf.average_utilization
    bottleneck = None
    if perf.bottleneck_department is not None:
        bottleneck = state.department(perf.bottleneck_department)
    k["bottleneck"] = bottleneck.name if bottleneck else "n/a"

    # ── Events ────────────────────────────────────────────────────────────────
    k["events_recorded"] = state.events.total_recorded
    k["decisions"]       = len(state.decisions)

    return k


def build_session_log(state: GameState) -> dict:
    """
    The export shape handed to formatters: session identity and timing,
    settings, retained events, final performance and the decision list.
    """
    session = state.session
    return {
        "session_id":        session.session_id,
        "start_time":        session.started_at.isoformat() if session.started_at else None,
        "end_time":          session.ended_at.isoformat() if session.ended_at else None,
        "elapsed_ms":        session.elapsed_ms,
        "settings":          _settings_dict(state),
        "events":            [e.as_dict() for e in state.events],
        "final_performance": state.performance.as_dict(),
        "decisions":         [d.as_dict() for d in state.decisions.decisions],
    }


def _settings_dict(state: GameState) -> Dict[str, object]:
    s = state.session.settings
    return {
        "session_duration":        s.session_duration,
        "order_generation_rate":   s.order_generation_rate,
        "complexity_level":        s.complexity_level,
        "random_seed":             s.random_seed,
        "game_speed":              s.game_speed,
        "enable_events":           s.enable_events,
        "enable_advanced_routing": s.enable_advanced_routing,
    }


def utilization_history(snapshots: List[dict]) -> Dict[int, List[float]]:
    """Per-department utilization series from runner snapshots."""
    series: Dict[int, List[float]] = {}
    for snap in snapshots:
        for dept_id, util in snap["utilization"].items():
            series.setdefault(dept_id, []).append(util)
    return series
