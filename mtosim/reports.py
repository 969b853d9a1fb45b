"""
Rich console output, Matplotlib dashboards and session-log export.
"""

from __future__ import annotations

import csv
import json
import os
from typing import Dict, List, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import DEPARTMENTS, SCENARIOS, SHOP_NAME
from .metrics import build_session_log, utilization_history
from .models import GameState

console = Console()

DEPARTMENT_COLORS = {
    1: "#2E86AB",
    2: "#A23B72",
    3: "#F18F01",
    4: "#2EC4B6",
}
SCENARIO_COLORS = {
    "tutorial":  "#2E86AB",
    "balanced":  "#2EC4B6",
    "rush_mode": "#F4A261",
    "expert":    "#E63946",
}
SEVERITY_STYLES = {
    "info":    "cyan",
    "success": "green",
    "warning": "yellow",
    "error":   "red",
}


def _label(scenario_id: str) -> str:
    return SCENARIOS.get(scenario_id, {}).get("label", scenario_id)


# ─────────────────────────────────────────────────────────────────────────────
# Banner
# ─────────────────────────────────────────────────────────────────────────────

def print_banner() -> None:
    names = "  ·  ".join(cfg["name"] for cfg in DEPARTMENTS.values())
    lines = [
        f"[bold white]{SHOP_NAME}[/bold white]",
        f"[dim]{names}[/dim]",
        "",
        "[bold cyan]Make-to-Order Shop Floor Simulation[/bold cyan]",
        "[dim]SimPy-driven tick engine  ·  seeded, replayable runs[/dim]",
    ]
    console.print(Panel("\n".join(lines), style="bold blue", expand=False))
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Per-session KPI summary
# ─────────────────────────────────────────────────────────────────────────────

def _pct(v: float, good_above: float = 90) -> str:
    colour = "green" if v >= good_above else ("yellow" if v >= 75 else "red")
    return f"[{colour}]{v:.1f}%[/{colour}]"


def print_kpi_table(scenario_id: str, kpis: dict) -> None:
    scen = SCENARIOS.get(scenario_id, {"label": scenario_id, "description": ""})
    console.rule(f"[bold]{scen['label']}[/bold]  —  {scen['description']}")

    t = Table(box=box.SIMPLE_HEAD, show_header=True, header_style="bold magenta")
    t.add_column("KPI",        style="cyan",  min_width=32)
    t.add_column("Value",      style="white", justify="right", min_width=14)
    t.add_column("Assessment", style="dim",   min_width=20)

    def row(label, value, assessment=""):
        t.add_row(label, value, assessment)

    row("── Orders ──────────────────────", "", "")
    row("  Orders generated",   f"{kpis['orders_generated']:>10,d}")
    row("  Orders completed",   f"{kpis['orders_completed']:>10,d}",
        f"{kpis['throughput_per_hr']:.1f} / hour")
    row("  Completed late",     f"{kpis['orders_late']:>10,d}")
    row("  Still pending",      f"{kpis['orders_pending']:>10,d}")
    row("  Work in progress",   f"{kpis['wip']:>10,d}")
    row("  On-time delivery",   _pct(kpis["otd_rate_pct"]))
    row("  Avg lead time",      f"{kpis['avg_lead_time_min']:>8.1f} min",
        f"p90 {kpis['p90_lead_time_min']:.1f} min")
    row("  Rework loops",       f"{kpis['rework_loops']:>10,d}")
    row("  Order value delivered", f"{kpis['revenue']:>10,.0f}")

    row("── Open orders by SLA ──────────", "", "")
    row("  On track",  f"{kpis['open_on_track']:>10,d}")
    row("  At risk",   f"{kpis['open_at_risk']:>10,d}",
        "[yellow]watch[/yellow]" if kpis["open_at_risk"] else "")
    row("  Overdue",   f"{kpis['open_overdue']:>10,d}",
        "[red]late[/red]" if kpis["open_overdue"] else "")

    row("── Departments ─────────────────", "", "")
    for name, util in kpis["utilization_by_department"].items():
        row(f"  {name}", f"{util:>9.0f}%",
            f"{kpis['processed_by_department'][name]} processed")
    row("  Bottleneck", kpis["bottleneck"], "")

    row("── Session ─────────────────────", "", "")
    row("  Events recorded",  f"{kpis['events_recorded']:>10,d}")
    row("  Player decisions", f"{kpis['decisions']:>10,d}")

    console.print(t)
    console.print()


def print_event_log(state: GameState, limit: int = 15) -> None:
    t = Table(box=box.MINIMAL, show_header=True, header_style="bold")
    t.add_column("Min",      justify="right", style="dim")
    t.add_column("Type",     style="cyan")
    t.add_column("Message")

    for event in state.events.latest(limit):
        style = SEVERITY_STYLES.get(event.severity, "white")
        t.add_row(f"{event.timestamp_ms / 60_000:.1f}", event.type,
                  Text(event.message, style=style))
    console.print(t)
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Cross-scenario comparison table
# ─────────────────────────────────────────────────────────────────────────────

def print_comparison_table(results: Dict[str, Tuple]) -> None:
    console.rule("[bold yellow]Scenario Comparison[/bold yellow]")

    t = Table(box=box.DOUBLE_EDGE, show_header=True, header_style="bold yellow")
    t.add_column("Metric", style="cyan", min_width=26)

    scen_ids = list(results.keys())
    for sid in scen_ids:
        colour = SCENARIO_COLORS.get(sid, "white")
        t.add_column(Text(_label(sid), style=f"bold {colour}"), justify="right", min_width=14)

    rows = [
        ("Orders generated",     "orders_generated",   ","),
        ("Orders completed",     "orders_completed",   ","),
        ("On-time delivery",     "otd_rate_pct",       "pct"),
        ("Avg lead time (min)",  "avg_lead_time_min",  "f1"),
        ("Throughput / hour",    "throughput_per_hr",  "f1"),
        ("Avg utilization",      "avg_utilization_pct", "pct"),
        ("Events recorded",      "events_recorded",    ","),
    ]
    kpis_list = [results[s][1] for s in scen_ids]
    for label, key, fmt in rows:
        vals = []
        for k in kpis_list:
            v = k.get(key, 0)
            if fmt == "pct":
                vals.append(_pct(v))
            elif fmt == "f1":
                vals.append(f"{v:.1f}")
            else:
                vals.append(f"{v:,.0f}")
        t.add_row(label, *vals)

    console.print(t)
    console.print()


# ─────────────────────────────────────────────────────────────────────────────
# Matplotlib dashboard
# ─────────────────────────────────────────────────────────────────────────────

def _style_ax(ax, title):
    ax.set_title(title, fontsize=9, fontweight="bold", pad=6)
    ax.tick_params(labelsize=7)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.grid(axis="y", alpha=0.3)


def plot_session_dashboard(runner, kpis: dict, scenario_id: str, out_dir: str) -> str:
    """
    2×2 dashboard for one run: utilization, order flow, on-time rate and the
    lead-time distribution.  Returns the saved file path.
    """
    snaps = runner.snapshots
    if not snaps:
        return ""
    state   = runner.engine.state
    minutes = [s["minute"] for s in snaps]
    names   = {d.department_id: d.name for d in state.departments}

    fig, axes = plt.subplots(2, 2, figsize=(12, 8))
    fig.suptitle(f"{SHOP_NAME}  ·  {_label(scenario_id)}", fontsize=11, fontweight="bold")
    plt.subplots_adjust(hspace=0.4, wspace=0.3)

    # ── (0,0) Utilization per department ──────────────────────────────────
    ax = axes[0][0]
    for dept_id, series in utilization_history(snaps).items():
        ax.plot(minutes[:len(series)], series, linewidth=1.3,
                color=DEPARTMENT_COLORS.get(dept_id), label=names.get(dept_id, str(dept_id)))
    ax.axhline(85, color="red", linewidth=0.8, linestyle="--", alpha=0.6, label="Overloaded")
    ax.set_ylim(0, 105)
    ax.set_ylabel("Utilization (%)", fontsize=8)
    ax.set_xlabel("Minute", fontsize=8)
    ax.legend(fontsize=6, loc="upper right")
    _style_ax(ax, "Department Utilization")

    # ── (0,1) Order flow ──────────────────────────────────────────────────
    ax = axes[0][1]
    ax.stackplot(
        minutes,
        [s["pending"] for s in snaps],
        [s["wip"] for s in snaps],
        [s["completed"] for s in snaps],
        labels=["Pending", "WIP", "Completed"],
        colors=["#F4A261", "#2E86AB", "#2EC4B6"], alpha=0.8,
    )
    ax.set_ylabel("Orders", fontsize=8)
    ax.set_xlabel("Minute", fontsize=8)
    ax.legend(fontsize=6, loc="upper left")
    _style_ax(ax, "Order Flow")

    # ── (1,0) On-time delivery rate ───────────────────────────────────────
    ax = axes[1][0]
    ax.plot(minutes, [s["otd_rate"] for s in snaps],
            color=SCENARIO_COLORS.get(scenario_id, "#2E86AB"), linewidth=1.6)
    ax.axhline(95, color="green", linewidth=0.8, linestyle="--", alpha=0.6, label="95% target")
    ax.set_ylim(0, 105)
    ax.set_ylabel("On-time (%)", fontsize=8)
    ax.set_xlabel("Minute", fontsize=8)
    ax.legend(fontsize=6)
    _style_ax(ax, "Cumulative On-Time Delivery")

    # ── (1,1) Lead-time distribution ──────────────────────────────────────
    ax = axes[1][1]
    leads = np.array([o.actual_lead_time or 0.0 for o in state.completed_orders])
    if leads.size:
        ax.hist(leads, bins=min(20, max(5, leads.size // 2)), color="#A23B72", alpha=0.8)
        ax.axvline(kpis["avg_lead_time_min"], color="black", linewidth=1.0,
                   linestyle="--", label=f"mean {kpis['avg_lead_time_min']:.1f} min")
        ax.legend(fontsize=6)
    ax.set_xlabel("Lead time (min)", fontsize=8)
    ax.set_ylabel("Orders", fontsize=8)
    _style_ax(ax, "Lead-Time Distribution")

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, f"dashboard_{scenario_id}.png")
    fig.savefig(path, dpi=130, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_comparison_chart(results: Dict[str, Tuple], out_dir: str) -> str:
    """Side-by-side bars of four headline KPIs.  Returns the saved file path."""
    scen_ids = list(results.keys())
    labels   = [_label(s) for s in scen_ids]
    colors   = [SCENARIO_COLORS.get(s, "#888888") for s in scen_ids]

    metrics_to_compare = [
        ("orders_completed",    "Orders Completed",       None),
        ("otd_rate_pct",        "On-Time Delivery (%)",   95),
        ("avg_lead_time_min",   "Avg Lead Time (min)",    None),
        ("avg_utilization_pct", "Avg Utilization (%)",    None),
    ]

    fig, axes = plt.subplots(2, 2, figsize=(11, 7))
    fig.suptitle(f"{SHOP_NAME}  ·  Scenario Comparison", fontsize=12, fontweight="bold")
    plt.subplots_adjust(hspace=0.55, wspace=0.35)

    for idx, (key, title, target) in enumerate(metrics_to_compare):
        ax   = axes[idx // 2][idx % 2]
        vals = [results[s][1].get(key, 0) for s in scen_ids]
        bars = ax.bar(labels, vals, color=colors, alpha=0.85, edgecolor="white")

        if target is not None:
            ax.axhline(target, color="red", linewidth=1.0,
                       linestyle="--", alpha=0.7, label=f"Target {target}")
            ax.legend(fontsize=6)

        for bar, v in zip(bars, vals):
            ax.text(
                bar.get_x() + bar.get_width() / 2,
                bar.get_height() * 1.01,
                f"{v:,.0f}" if abs(v) >= 100 else f"{v:.1f}",
                ha="center", va="bottom", fontsize=7,
            )

        ax.set_xticks(range(len(labels)))
        ax.set_xticklabels(labels, fontsize=7, rotation=15, ha="right")
        _style_ax(ax, title)

    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, "scenario_comparison.png")
    fig.savefig(path, dpi=130, bbox_inches="tight")
    plt.close(fig)
    return path


# ─────────────────────────────────────────────────────────────────────────────
# Session-log export
# ─────────────────────────────────────────────────────────────────────────────

CSV_HEADERS = [
    "event_type", "timestamp_ms", "order_id", "department_id",
    "message", "severity", "lead_time", "on_time_rate", "throughput",
    "utilization_avg",
]


def _csv_rows(log: dict) -> List[list]:
    rows = []
    for event in log["events"]:
        kpi = event.get("kpi_snapshot") or {}
        utils = list((kpi.get("utilization_rates") or {}).values())
        rows.append([
            event["type"],
            event["timestamp_ms"],
            event["order_id"] or "",
            event["department_id"] or "",
            event["message"],
            event["severity"],
            kpi.get("average_lead_time", ""),
            kpi.get("on_time_delivery_rate", ""),
            kpi.get("total_throughput", ""),
            sum(utils) / len(utils) if utils else "",
        ])
    return rows


def export_session_log(state: GameState, out_dir: str, fmt: str = "json") -> str:
    """Write the session log as ``json`` or ``csv``.  Returns the file path."""
    log = build_session_log(state)
    os.makedirs(out_dir, exist_ok=True)
    path = os.path.join(out_dir, f"{log['session_id']}.{fmt}")

    if fmt == "json":
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(log, fh, indent=2)
    elif fmt == "csv":
        with open(path, "w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(CSV_HEADERS)
            writer.writerows(_csv_rows(log))
    else:
        raise ValueError(f"unsupported export format {fmt!r}")
    return path
