from mtosim.events import EventLog


def fill(log, n):
    for i in range(n):
        log.append(log.new_event("order-generated", float(i), f"event {i}"))


def test_log_keeps_latest_fifty():
    log = EventLog()
    fill(log, 80)
    assert len(log) == 50
    ids = [e.event_id for e in log]
    assert ids[0] == "EVT-00031"
    assert ids[-1] == "EVT-00080"
    assert log.total_recorded == 80


def test_ids_are_strictly_increasing_across_trimming():
    log = EventLog(maxlen=5)
    fill(log, 12)
    ids = [e.event_id for e in log]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5


def test_latest():
    log = EventLog()
    fill(log, 3)
    assert [e.message for e in log.latest(2)] == ["event 1", "event 2"]
    assert log.latest(0) == []
    assert len(log.latest(10)) == 3


def test_as_dict_carries_kpi_snapshot():
    log = EventLog()
    event = log.new_event("session-completed", 10.0, "done", kpi_snapshot={"total_throughput": 3})
    assert len(log) == 0
    assert event.as_dict()["kpi_snapshot"] == {"total_throughput": 3}
    assert event.as_dict()["id"] == "EVT-00001"
