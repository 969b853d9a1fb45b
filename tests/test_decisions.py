from mtosim.engine import (
    SimulationEngine, clear_decision_history, optimize_order_route, rebalance_workload,
    redo_decision, release_order, schedule_order, undo_decision,
)


def pending_ids(state):
    return [o.order_id for o in state.pending_orders]


def test_undo_restores_order_flow(quiet_state):
    released = release_order(quiet_state, "T-1")
    undone = undo_decision(released)

    assert pending_ids(undone) == ["T-1", "T-2", "T-3"]
    assert not undone.department(1).queue
    assert undone.order_count() == undone.total_orders_generated
    assert undone.decisions.cursor == -1
    assert len(undone.decisions) == 1


def test_redo_reapplies_decision(quiet_state):
    undone = undo_decision(release_order(quiet_state, "T-1"))
    redone = redo_decision(undone)

    assert pending_ids(redone) == ["T-2", "T-3"]
    assert redone.department(1).queue[0].order_id == "T-1"
    assert redone.decisions.cursor == 0


def test_undo_and_redo_are_noops_at_the_ends(quiet_state):
    assert undo_decision(quiet_state) is quiet_state
    released = release_order(quiet_state, "T-1")
    assert redo_decision(released) is released


def test_new_decision_discards_undone_branch(quiet_state):
    state = release_order(quiet_state, "T-1")
    state = release_order(state, "T-2")
    state = undo_decision(state)
    state = release_order(state, "T-3")

    assert [d.order_id for d in state.decisions.decisions] == ["T-1", "T-3"]
    assert not state.decisions.can_redo
    assert pending_ids(state) == ["T-2"]


def test_decision_ids_keep_counting(quiet_state):
    state = release_order(quiet_state, "T-1")
    state = undo_decision(state)
    state = release_order(state, "T-2")
    assert state.decisions.decisions[-1].decision_id == "DEC-0002"


def test_undo_does_not_touch_earlier_state_versions(quiet_state):
    released = release_order(quiet_state, "T-1")
    undo_decision(released)

    assert pending_ids(released) == ["T-2", "T-3"]
    assert released.decisions.cursor == 0


def test_undo_restores_completed_orders_too(quiet_settings, quiet_state):
    engine = SimulationEngine(quiet_settings, state=quiet_state)
    engine.start()
    engine.release("T-3")
    for _ in range(600):
        engine.tick()
    assert [o.order_id for o in engine.state.completed_orders] == ["T-3"]

    # Undo returns to the flow as it was before the release
    engine.undo()
    assert engine.state.completed_orders == []
    assert "T-3" in pending_ids(engine.state)
    assert engine.state.order_count() == engine.state.total_orders_generated


def test_clear_history(quiet_state):
    state = release_order(quiet_state, "T-1")
    cleared = clear_decision_history(state)
    assert len(cleared.decisions) == 0
    assert not cleared.decisions.can_undo
    assert len(state.decisions) == 1
    assert cleared.department(1).queue[0].order_id == "T-1"


def test_undo_and_redo_schedule(quiet_state):
    scheduled = schedule_order(quiet_state, "T-3", 2, 0)
    undone = undo_decision(scheduled)

    assert pending_ids(undone) == ["T-1", "T-2", "T-3"]
    restored = undone.pending_orders[2]
    assert restored.route == [3]
    assert restored.current_step_index == -1
    assert restored.timestamps == []
    assert not undone.department(2).queue

    redone = redo_decision(undone)
    order = redone.department(2).queue[0]
    assert order.route == [2, 3]
    assert order.current_step_index == 0


def test_undo_and_redo_rebalance(quiet_state):
    released = release_order(quiet_state, "T-1")
    moved = rebalance_workload(released, [1], [3], ["T-1"])
    undone = undo_decision(moved)

    order = undone.department(1).queue[0]
    assert order.route == [1, 4, 3, 2]
    assert order.current_step_index == 0
    assert [span.department_id for span in order.timestamps] == [1]
    assert not undone.department(3).queue

    redone = redo_decision(undone)
    assert not redone.department(1).queue
    assert redone.department(3).queue[0].route == [3, 4, 3, 2]


def test_undo_and_redo_route_optimization(quiet_state):
    changed = optimize_order_route(quiet_state, "T-2", [4, 1])
    undone = undo_decision(changed)
    assert undone.pending_orders[1].route == [2, 3]

    redone = redo_decision(undone)
    assert redone.pending_orders[1].route == [4, 1]


def test_undo_route_optimization_of_queued_order(quiet_state):
    released = release_order(quiet_state, "T-1")
    changed = optimize_order_route(released, "T-1", [1, 2])
    undone = undo_decision(changed)
    assert undone.department(1).queue[0].route == [1, 4, 3, 2]
