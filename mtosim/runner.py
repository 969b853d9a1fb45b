"""
SimPy driver for a ``SimulationEngine``.

One unit of SimPy time is one tick.  A ticker process steps the engine every
unit while the session is running.  Scripted player commands run half a unit
later, so they always land between two ticks and never inside one.  A
recorder process snapshots the floor once per simulated minute for charts.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import simpy

from .config import MS_PER_MINUTE, TICK_MS
from .engine import SimulationEngine
from .models import GameState

logger = logging.getLogger(__name__)

COMMAND_OFFSET = 0.5
RUN_OFFSET     = 0.25


@dataclass(order=True)
class ScheduledCommand:
    """Engine method *name* called with *args* just after tick *at_tick*."""

    at_tick:  int
    name:     str   = field(compare=False)
    args:     tuple = field(default=(), compare=False)


class SessionRunner:
    """
    Usage::

        runner = SessionRunner(SimulationEngine(settings))
        runner.schedule(10, "release", "ORD-001")
        state = runner.run()
    """

    def __init__(self, engine: SimulationEngine, on_tick: Optional[Callable[[GameState], None]] = None) -> None:
        self.engine    = engine
        self.env       = simpy.Environment()
        self.on_tick   = on_tick
        self.commands: List[ScheduledCommand] = []
        self.snapshots: List[dict] = []
        self._registered = False

    @property
    def ticks_per_minute(self) -> int:
        speed = self.engine.state.session.settings.game_speed
        return max(1, MS_PER_MINUTE // (TICK_MS * speed))

    @property
    def total_ticks(self) -> int:
        """Ticks to cover the session plus the terminal tick."""
        session = self.engine.state.session
        interval = TICK_MS * session.settings.game_speed
        remaining = max(0.0, session.duration_ms - session.elapsed_ms)
        return math.ceil(remaining / interval) + 1

    def schedule(self, at_tick: int, name: str, *args) -> None:
        if not callable(getattr(self.engine, name, None)):
            raise ValueError(f"unknown engine command {name!r}")
        cmd = ScheduledCommand(at_tick, name, args)
        self.commands.append(cmd)
        if self._registered:
            self.env.process(self._command(cmd))

    # ── Processes ─────────────────────────────────────────────────────────────

    def _ticker(self):
        while not self.engine.is_complete:
            yield self.env.timeout(1)
            if self.engine.is_running:
                state = self.engine.tick()
                if self.on_tick is not None:
                    self.on_tick(state)

    def _command(self, cmd: ScheduledCommand):
        delay = max(0.0, cmd.at_tick + COMMAND_OFFSET - self.env.now)
        yield self.env.timeout(delay)
        logger.debug("t=%s command %s%s", cmd.at_tick, cmd.name, cmd.args)
        getattr(self.engine, cmd.name)(*cmd.args)

    def _recorder(self):
        every = self.ticks_per_minute
        while not self.engine.is_complete:
            yield self.env.timeout(every)
            state = self.engine.state
            self.snapshots.append({
                "minute":      state.now / MS_PER_MINUTE,
                "utilization": {d.department_id: d.utilization for d in state.departments},
                "pending":     len(state.pending_orders),
                "wip":         state.performance.wip_count,
                "completed":   len(state.completed_orders),
                "otd_rate":    state.performance.on_time_delivery_rate,
            })

    def register_processes(self) -> None:
        """Register every SimPy process.  Called automatically by ``run``."""
        if self._registered:
            return
        self._registered = True
        self.env.process(self._ticker())
        self.env.process(self._recorder())
        for cmd in sorted(self.commands):
            self.env.process(self._command(cmd))

    # ── Driving ───────────────────────────────────────────────────────────────

    def run_for(self, ticks: int) -> GameState:
        """Advance *ticks* units of SimPy time from wherever the run stands."""
        self.register_processes()
        if self.engine.state.session.status == "setup":
            self.engine.start()
        # Stop a quarter unit past the last tick so it is processed in this call
        self.env.run(until=math.floor(self.env.now) + ticks + RUN_OFFSET)
        return self.engine.state

    def run(self, until_tick: Optional[int] = None) -> GameState:
        """Run to *until_tick*, or until the session completes."""
        target = self.total_ticks if until_tick is None else until_tick
        return self.run_for(max(0, target - math.floor(self.env.now)))
