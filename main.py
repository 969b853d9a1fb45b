#!/usr/bin/env python3
"""
MTOSim — Make-to-Order Job Shop Simulator
=========================================

Run the quick-start scenarios (Tutorial / Balanced / Rush Mode / Expert),
print per-session KPI tables and a cross-scenario comparison, then save
Matplotlib dashboards to ./reports/.

Every pending order is released as soon as the session starts, and the
planner's rebalance suggestion is applied once per simulated minute, so the
runs exercise the same commands a player would issue.

Usage
-----
    python main.py                      # run all 4 scenarios
    python main.py --scenario balanced  # single scenario
    python main.py --seed demo-2        # override every scenario's seed
    python main.py --speed 8 --duration 60  # override pace and length
    python main.py --no-charts          # skip chart generation
    python main.py --export csv         # write session logs to ./reports/
"""

import argparse
import logging
import time
from typing import Dict, Optional, Tuple

from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from mtosim.config import MS_PER_MINUTE, SCENARIOS
from mtosim.engine import SimulationEngine
from mtosim.metrics import compute_kpis
from mtosim.models import GameSettings
from mtosim.planning import late_risk, suggest_rebalance
from mtosim.reports import (
    console,
    export_session_log,
    plot_comparison_chart,
    plot_session_dashboard,
    print_banner,
    print_comparison_table,
    print_event_log,
    print_kpi_table,
)
from mtosim.runner import SessionRunner

REPORT_DIR = "reports"

logger = logging.getLogger("mtosim")


# ─────────────────────────────────────────────────────────────────────────────
# Simulation runner
# ─────────────────────────────────────────────────────────────────────────────

def build_settings(scenario_id: str, overrides: Optional[dict] = None) -> GameSettings:
    """Scenario settings with any non-None CLI overrides applied on top."""
    raw = dict(SCENARIOS[scenario_id]["settings"])
    raw.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return GameSettings.from_dict(raw)


def _release_all(engine: SimulationEngine) -> None:
    for order in list(engine.state.pending_orders):
        engine.release(order.order_id)


def _apply_rebalance(engine: SimulationEngine) -> None:
    plan = suggest_rebalance(engine.state)
    if plan is not None:
        engine.rebalance(plan.source_ids, plan.target_ids, plan.order_ids)


def run_scenario(
    scenario_id: str,
    overrides: Optional[dict] = None,
    progress: Optional[Progress] = None,
    task_id=None,
) -> Tuple[SessionRunner, dict]:
    """
    Run one full session.

    The session is advanced one simulated minute at a time so we can update
    a progress bar and act as the player between chunks.
    """
    engine = SimulationEngine(build_settings(scenario_id, overrides))
    runner = SessionRunner(engine)

    step = runner.ticks_per_minute
    runner.run_for(0)
    _release_all(engine)

    while not engine.is_complete:
        runner.run_for(step)
        _release_all(engine)
        _apply_rebalance(engine)
        if progress and task_id is not None:
            progress.update(task_id, completed=min(
                engine.state.session.settings.session_duration,
                int(engine.state.now // MS_PER_MINUTE),
            ))

    if progress and task_id is not None:
        progress.update(task_id, completed=engine.state.session.settings.session_duration)

    kpis = compute_kpis(engine.state)
    kpis["late_risk_at_end"] = len(late_risk(engine.state))
    return runner, kpis


# ─────────────────────────────────────────────────────────────────────────────
# Main
# ─────────────────────────────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(description="Make-to-Order Job Shop Simulator")
    parser.add_argument("--scenario", choices=list(SCENARIOS.keys()),
                        default=None, help="Run a single scenario (default: all)")
    parser.add_argument("--seed",     default=None,
                        help="Seed string overriding each scenario's own seed")
    parser.add_argument("--speed",    type=int, choices=[1, 2, 4, 8], default=None,
                        help="Game speed overriding each scenario's own speed")
    parser.add_argument("--duration", type=int, default=None,
                        help="Session length in minutes overriding each scenario's own")
    parser.add_argument("--no-charts", action="store_true",
                        help="Skip Matplotlib chart generation")
    parser.add_argument("--export",   choices=["json", "csv"], default=None,
                        help="Write each session log to ./reports/ in this format")
    parser.add_argument("--events",   type=int, default=10,
                        help="Recent events to print per scenario (default: 10)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log engine activity")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
    )

    overrides = {
        "random_seed":      args.seed,
        "game_speed":       args.speed,
        "session_duration": args.duration,
    }

    print_banner()

    scenario_ids = [args.scenario] if args.scenario else list(SCENARIOS.keys())
    results: Dict[str, Tuple[SessionRunner, dict]] = {}

    # ── Run simulations with a progress bar ──────────────────────────────────
    console.print("[bold]Running simulations…[/bold]\n")
    wall_start = time.perf_counter()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=35),
        MofNCompleteColumn(),
        TextColumn("minutes"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    ) as progress:
        tasks = {}
        for sid in scenario_ids:
            label = SCENARIOS[sid]["label"]
            colour = {
                "tutorial":  "cyan",
                "balanced":  "green",
                "rush_mode": "yellow",
                "expert":    "red",
            }.get(sid, "white")
            tasks[sid] = progress.add_task(
                f"[{colour}]{label:<22}[/{colour}]",
                total=build_settings(sid, overrides).session_duration,
            )

        for sid in scenario_ids:
            runner, kpis = run_scenario(
                sid, overrides=overrides,
                progress=progress, task_id=tasks[sid],
            )
            results[sid] = (runner, kpis)
            logger.info("%s finished: %d orders delivered", sid, kpis["orders_completed"])

    wall_elapsed = time.perf_counter() - wall_start
    simulated = sum(r.engine.state.session.settings.session_duration for r, _ in results.values())
    console.print(
        f"\n[dim]All simulations finished in {wall_elapsed:.1f}s "
        f"(simulated {simulated} shop-floor minutes)[/dim]\n"
    )

    # ── Print per-scenario KPI tables ─────────────────────────────────────────
    for sid in scenario_ids:
        runner, kpis = results[sid]
        print_kpi_table(sid, kpis)
        if args.events > 0:
            print_event_log(runner.engine.state, args.events)

    # ── Print cross-scenario comparison ──────────────────────────────────────
    if len(results) > 1:
        print_comparison_table(results)

    # ── Generate Matplotlib dashboards ───────────────────────────────────────
    if not args.no_charts:
        console.print("[bold]Generating charts…[/bold]")
        for sid, (runner, kpis) in results.items():
            path = plot_session_dashboard(runner, kpis, sid, REPORT_DIR)
            if path:
                console.print(f"  [green]✓[/green]  {path}")

        if len(results) > 1:
            path = plot_comparison_chart(results, REPORT_DIR)
            if path:
                console.print(f"  [green]✓[/green]  {path}")

        console.print()

    # ── Session-log export ────────────────────────────────────────────────────
    if args.export:
        for sid, (runner, _) in results.items():
            path = export_session_log(runner.engine.state, REPORT_DIR, args.export)
            console.print(f"  [green]✓[/green]  {sid}: {path}")
        console.print()

    # ── Key insights ──────────────────────────────────────────────────────────
    _print_insights(results)


def _print_insights(results: Dict[str, Tuple]) -> None:
    """Print a short auto-generated insight block per run."""
    console.rule("[bold green]Key Insights[/bold green]")

    insights = []
    for sid, (_, kpis) in results.items():
        label = SCENARIOS[sid]["label"]
        otd = kpis["otd_rate_pct"]
        colour = "green" if otd >= 90 else ("yellow" if otd >= 75 else "red")
        insights.append(
            f"[bold]{label}[/bold]: [{colour}]{otd:.1f}%[/{colour}] on time across "
            f"{kpis['orders_completed']} deliveries.  "
            f"[bold]{kpis['bottleneck']}[/bold] is the busiest department."
        )
        if kpis["open_overdue"] or kpis["late_risk_at_end"]:
            insights.append(
                f"    {kpis['open_overdue']} open orders are overdue and "
                f"{kpis['late_risk_at_end']} pending orders are forecast to miss their due date."
            )

    if "tutorial" in results and "expert" in results:
        base = results["tutorial"][1]["avg_lead_time_min"]
        hard = results["expert"][1]["avg_lead_time_min"]
        if base > 0:
            insights.append(
                f"Long advanced routes stretch average lead time "
                f"{hard / base:.1f}× compared with the tutorial floor."
            )

    for ins in insights:
        console.print(f"  {ins}")
    console.print()


if __name__ == "__main__":
    main()
