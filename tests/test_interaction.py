import pytest

from graph_explorer.interaction import DragController, HighlightEngine, PulseTask


@pytest.fixture
def graph(store, config):
    """A - B - C chain plus an isolated D, colours from kind."""
    colors = config["kind_colors"]
    for node_id, kind in (("A", "PERSON"), ("B", "EVENT"), ("C", "VEHICLE"), ("D", "ADDRESS")):
        store.add_node(node_id, label=node_id, kind=kind, color=colors[kind], base_color=colors[kind], size=20)
    store.add_edge("ab", "A", "B")
    store.add_edge("cb", "C", "B")
    return store


@pytest.fixture
def engine(graph, config, surface):
    return HighlightEngine(graph, config, surface)


def snapshot(store):
    nodes = {n: (d["color"], d["size"], d["highlighted"]) for n, d in store.iter_nodes()}
    edges = {e: (store.get_edge_attribute(e, "color"), store.get_edge_attribute(e, "size")) for e in store.edges()}
    return nodes, edges


def test_hover_sets_cluster_sizes(engine, graph, config):
    engine.enter_node("B")
    hover = config["animations"]["hover"]
    assert graph.get_node_attribute("B", "size") == hover["center_node_size"]
    assert graph.get_node_attribute("A", "size") == hover["neighbor_node_size"]
    assert graph.get_node_attribute("C", "size") == hover["neighbor_node_size"]
    assert graph.get_node_attribute("D", "size") == hover["dimmed_node_size"]
    assert graph.get_node_attribute("D", "color") == config["colors"]["dimmed"]
    assert graph.get_node_attribute("A", "highlighted") is True
    assert graph.get_node_attribute("D", "highlighted") is False


def test_hover_emphasises_incident_edges(engine, graph, config):
    graph.add_edge("cd", "C", "D")
    engine.enter_node("A")
    assert graph.get_edge_attribute("ab", "color") == config["colors"]["highlighted"]
    assert graph.get_edge_attribute("ab", "size") == 4
    assert graph.get_edge_attribute("cd", "color") == config["colors"]["dimmed_edge"]
    assert graph.get_edge_attribute("cd", "size") == 1


def test_leave_restores_base_state_exactly(engine, graph, surface):
    before = snapshot(graph)
    engine.enter_node("B")
    surface.scheduler.run_frame()
    surface.scheduler.run_frame()
    engine.leave_node("B")
    assert snapshot(graph) == before
    assert surface.scheduler.pending == {}


def test_pulse_animates_incident_edges(engine, graph, surface):
    engine.enter_node("A")
    assert engine.pulse.running
    assert surface.scheduler.run_frame() == 1

    # phase 0.1 -> intensity (sin(0.1) + 1) / 2
    color = graph.get_edge_attribute("ab", "color")
    width = graph.get_edge_attribute("ab", "size")
    assert color == "rgb(172, 161, 161)"
    assert width == pytest.approx(3 + 2 * 0.5499167)
    # non-incident edge keeps its dimmed style
    assert graph.get_edge_attribute("cb", "size") == 1
    # next frame was scheduled
    assert len(surface.scheduler.pending) == 1


def test_pulse_stops_when_hover_changes(engine, graph, surface):
    engine.enter_node("A")
    first = engine.pulse
    engine.enter_node("C")
    assert not first.running
    assert len(surface.scheduler.pending) == 1
    surface.scheduler.run_frame()
    assert graph.get_edge_attribute("ab", "size") == 1


def test_pulse_guard_stops_without_cancel(graph, config, surface):
    live = {"value": True}
    task = PulseTask(graph, ["ab"], surface.scheduler, config["animations"]["hover"], is_live=lambda: live["value"])
    task.start()
    surface.scheduler.run_frame()
    live["value"] = False
    surface.scheduler.run_frame()
    assert surface.scheduler.pending == {}
    assert not task.running


def test_pulse_skips_removed_edges(engine, graph, surface):
    engine.enter_node("B")
    graph.remove_edge("ab")
    surface.scheduler.run_frame()
    assert graph.get_edge_attribute("cb", "color").startswith("rgb(")


def test_simple_hover_mode_toggles_only_the_node(engine, graph, config, surface):
    engine.set_hover_mode(False)
    before = snapshot(graph)
    engine.enter_node("A")
    assert graph.get_node_attribute("A", "highlighted") is True
    assert graph.get_node_attribute("A", "size") == 25
    assert graph.get_node_attribute("B", "size") == 20
    assert surface.scheduler.pending == {}
    engine.leave_node("A")
    assert snapshot(graph) == before


def test_switching_hover_mode_cancels_pulse(engine, surface):
    engine.enter_node("A")
    engine.set_hover_mode(False)
    assert engine.pulse is None
    assert surface.scheduler.pending == {}


def test_forget_hovered_node_resets(engine, graph, surface):
    engine.enter_node("A")
    graph.remove_node("A")
    engine.forget_nodes(["A"])
    assert engine.hovered is None
    assert surface.scheduler.pending == {}
    assert graph.get_node_attribute("D", "size") == 20


def test_teardown_cancels_pulse(engine, surface):
    engine.enter_node("B")
    engine.teardown()
    assert surface.scheduler.run_frame() == 0


# --- Drag ---

def test_drag_moves_node_and_locks_camera(graph, surface):
    drag = DragController(graph, surface)
    assert drag.pointer_down("A")
    assert surface.camera.enabled is False
    drag.pointer_move(42, -7)
    assert graph.position("A") == (42.0, -7.0)
    drag.pointer_up()
    assert surface.camera.enabled is True
    drag.pointer_move(0, 0)
    assert graph.position("A") == (42.0, -7.0)


def test_second_pointer_down_ignored_while_dragging(graph, surface):
    drag = DragController(graph, surface)
    drag.pointer_down("A")
    assert drag.pointer_down("B") is False
    assert drag.dragged == "A"


def test_only_primary_button_drags(graph, surface):
    drag = DragController(graph, surface)
    assert drag.pointer_down("A", button=2) is False
    assert drag.dragged is None
    assert surface.camera.enabled is True


@pytest.mark.parametrize("end", ["pointer_up", "pointer_leave", "stage_click"])
def test_drag_ends(graph, surface, end):
    drag = DragController(graph, surface)
    drag.pointer_down("A")
    getattr(drag, end)()
    assert drag.dragged is None
    assert surface.camera.enabled is True


def test_drag_of_removed_node_ends(graph, surface):
    drag = DragController(graph, surface)
    drag.pointer_down("D")
    graph.remove_node("D")
    drag.forget_nodes(["D"])
    assert not drag.dragging
    assert surface.camera.enabled is True
