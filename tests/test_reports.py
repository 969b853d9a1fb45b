import csv
import json
import os

import pytest

from mtosim.engine import SimulationEngine
from mtosim.metrics import compute_kpis
from mtosim.models import GameSettings
from mtosim.reports import (
    CSV_HEADERS, export_session_log, plot_comparison_chart, plot_session_dashboard,
    print_kpi_table,
)
from mtosim.runner import SessionRunner


@pytest.fixture
def finished_runner():
    engine = SimulationEngine(GameSettings(session_duration=2, random_seed="report"))
    runner = SessionRunner(engine)
    for order in list(engine.state.pending_orders):
        runner.schedule(1, "release", order.order_id)
    runner.run()
    return runner


def test_json_export(finished_runner, tmp_path):
    path = export_session_log(finished_runner.engine.state, str(tmp_path), "json")
    with open(path, encoding="utf-8") as fh:
        log = json.load(fh)
    assert log["events"][-1]["type"] == "session-completed"
    assert log["end_time"] is not None
    assert len(log["decisions"]) == len(finished_runner.engine.state.decisions)


def test_csv_export(finished_runner, tmp_path):
    path = export_session_log(finished_runner.engine.state, str(tmp_path), "csv")
    with open(path, newline="", encoding="utf-8") as fh:
        rows = list(csv.reader(fh))
    assert rows[0] == CSV_HEADERS
    assert len(rows) - 1 == len(finished_runner.engine.state.events)


def test_unknown_export_format(finished_runner, tmp_path):
    with pytest.raises(ValueError):
        export_session_log(finished_runner.engine.state, str(tmp_path), "xml")


def test_charts_are_written(finished_runner, tmp_path):
    kpis = compute_kpis(finished_runner.engine.state)
    path = plot_session_dashboard(finished_runner, kpis, "balanced", str(tmp_path))
    assert os.path.isfile(path)

    path = plot_comparison_chart({"balanced": (finished_runner, kpis)}, str(tmp_path))
    assert os.path.isfile(path)


def test_kpi_table_renders(finished_runner):
    print_kpi_table("balanced", compute_kpis(finished_runner.engine.state))
