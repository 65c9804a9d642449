import pytest

from graph_explorer.chart_builder import (
    build_echart_options,
    camera_to_view,
    normalize_click_payload,
    resolve_node_id_from_payload,
)
from graph_explorer.surface import CameraState


@pytest.fixture
def graph(store):
    store.add_node("a", label="Alice", color="#8e44ad", x=-100, y=0, size=20)
    store.add_node("b", label="Bob", color="#27ae60", x=100, y=50, size=30, highlighted=True, image="bob.png")
    store.add_edge("r1", "a", "b", label="friends", color="#ff6b6b", size=4)
    return store


def test_options_structure(graph, config):
    options = build_echart_options(graph, config, roam=False)
    series = options["series"][0]
    assert series["type"] == "graph"
    assert series["layout"] == "none"
    assert series["roam"] is False

    nodes = {n["id"]: n for n in series["data"]}
    assert nodes["a"]["value"] == "Alice"
    assert (nodes["a"]["x"], nodes["a"]["y"]) == (-100, 0)
    assert nodes["a"]["itemStyle"]["color"] == "#8e44ad"
    assert nodes["a"]["symbol"] == "circle"
    assert nodes["b"]["symbol"] == "image://bob.png"
    assert nodes["b"]["symbolSize"] == 60
    assert nodes["b"]["itemStyle"]["borderColor"] == config["colors"]["highlighted"]

    (link,) = series["links"]
    assert (link["source"], link["target"]) == ("a", "b")
    assert link["lineStyle"] == {"color": "#ff6b6b", "width": 4, "curveness": 0, "opacity": 1.0}
    assert link["symbol"] == ["none", "arrow"]


def test_options_include_camera_view(graph, config):
    view = {"center": [1, 2], "zoom": 1.5}
    series = build_echart_options(graph, config, view=view)["series"][0]
    assert series["center"] == [1, 2]
    assert series["zoom"] == 1.5


def test_camera_to_view():
    extent = (-500, -250, 500, 250)
    view = camera_to_view(CameraState(10, 20, 1.0), extent, (1000, 500))
    assert view["center"] == [10, 20]
    assert view["zoom"] == pytest.approx(1.0)
    zoomed_out = camera_to_view(CameraState(0, 0, 2.0), extent, (1000, 500))
    assert zoomed_out["zoom"] == pytest.approx(0.5)


def test_normalize_click_payload():
    assert normalize_click_payload({"name": "a"}) == {"name": "a"}
    assert normalize_click_payload(["series", "node", "a"]) == {
        "componentType": "series", "dataType": "node", "name": "a"
    }
    assert normalize_click_payload("a") == {"name": "a"}
    assert normalize_click_payload(None) == {}


def test_resolve_node_id_from_payload(graph):
    assert resolve_node_id_from_payload({"componentType": "series", "dataType": "node", "name": "a"}, graph) == "a"
    # label match
    assert resolve_node_id_from_payload({"componentType": "series", "name": "Bob"}, graph) == "b"
    # edges and background are not nodes
    assert resolve_node_id_from_payload({"componentType": "series", "dataType": "edge", "name": "a"}, graph) is None
    assert resolve_node_id_from_payload({"name": "a"}, graph) is None
    assert resolve_node_id_from_payload({"componentType": "series", "name": "ghost"}, graph) is None
