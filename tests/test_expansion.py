import asyncio
import random

import pytest

from graph_explorer.datasets import DatasetEdge, DatasetNode, multi_value
from graph_explorer.expansion import ChildBatch, DeleteMode, ExpansionController, RandomChildSource
from graph_explorer.layout import LayoutPipeline, NodeBox


class FixedChildSource:
    """Always produces `count` children linked from the anchor."""

    def __init__(self, count=3):
        self.count = count
        self.calls = 0
        self.forgotten = []

    async def fetch(self, node_id, store):
        self.calls += 1
        await asyncio.sleep(0)
        batch = ChildBatch()
        for i in range(1, self.count + 1):
            child_id = f"{node_id}.{i}"
            batch.nodes.append(DatasetNode(child_id, "EVENT", {"displayName": multi_value(f"Child {i}")}))
            batch.relations.append(DatasetEdge(f"{node_id}->{child_id}", node_id, child_id))
        return batch

    def forget(self, node_id):
        self.forgotten.append(node_id)

    def reset(self):
        pass


@pytest.fixture
def abc(store):
    store.add_node("A", label="A", kind="PERSON", x=-300, y=0)
    store.add_node("B", label="B", kind="PERSON", x=300, y=0)
    store.add_node("C", label="C", kind="EVENT", x=0, y=400)
    store.add_edge("e1", "A", "B", label="knows")
    return store


@pytest.fixture
def pipeline(abc, config, surface, failing_layered):
    return LayoutPipeline(abc, config, layered=failing_layered, surface=surface)


@pytest.fixture
def removed_log():
    return []


@pytest.fixture
def controller(abc, pipeline, config, removed_log):
    return ExpansionController(abc, pipeline, config, source=FixedChildSource(3), on_removed=removed_log.extend)


def assert_maps_clean(controller, node_id):
    assert node_id not in controller.records
    assert node_id not in controller.owner
    assert node_id not in controller.snapshots
    for children in controller.records.values():
        assert node_id not in children
    for snapshot in controller.snapshots.values():
        assert node_id not in snapshot


def test_expand_then_collapse_round_trip(abc, config, pipeline):
    controller = ExpansionController(abc, pipeline, config, source=RandomChildSource(config, random.Random(7)))
    before = abc.positions()

    children = asyncio.run(controller.expand("C"))
    k = len(children)
    assert 3 <= k <= 6
    assert abc.order == 3 + k
    assert abc.size >= 1 + k
    assert abc.edge_endpoints("e1") == ("A", "B")
    assert abc.get_edge_attribute("e1", "label") == "knows"
    for child in children:
        assert controller.owner_of(child) == "C"
        assert abc.edge_between("C", child) is not None

    removed = controller.collapse("C")
    assert sorted(removed) == sorted(children)
    assert sorted(abc.nodes()) == ["A", "B", "C"]
    assert abc.edges() == ["e1"]
    assert abc.positions() == before
    assert not controller.is_expanded("C")
    assert controller.snapshots == {}


def test_expand_is_idempotent(controller, abc):
    first = asyncio.run(controller.expand("A"))
    second = asyncio.run(controller.expand("A"))
    assert first == second
    assert abc.order == 6
    assert controller.source.calls == 1


def test_overlapping_expands_add_children_once(controller, abc):
    async def scenario():
        return await asyncio.gather(controller.expand("A"), controller.expand("A"))

    first, second = asyncio.run(scenario())
    assert first == second == ["A.1", "A.2", "A.3"]
    assert abc.order == 6
    assert controller.source.calls == 1
    assert controller.pending == {}


def test_collapse_is_noop_when_collapsed(controller, abc):
    assert controller.collapse("A") == []
    assert abc.order == 3


def test_collapse_tears_down_nested_expansions(controller, abc):
    asyncio.run(controller.expand("A"))
    asyncio.run(controller.expand("A.1"))
    assert abc.order == 9
    assert controller.descendants("A") == ["A.1", "A.1.1", "A.1.2", "A.1.3", "A.2", "A.3"]

    removed = controller.collapse("A")
    assert set(removed) == {"A.1", "A.2", "A.3", "A.1.1", "A.1.2", "A.1.3"}
    assert sorted(abc.nodes()) == ["A", "B", "C"]
    assert controller.records == {}
    assert controller.owner == {}


def test_collapse_restores_only_surviving_nodes(controller, abc):
    before = abc.positions()
    asyncio.run(controller.expand("A"))
    abc.remove_node("B")
    controller.collapse("A")
    assert abc.position("A") == before["A"]
    assert abc.position("C") == before["C"]
    assert not abc.has_node("B")


def test_delete_cascade_removes_descendants(controller, abc, removed_log):
    asyncio.run(controller.expand("A"))
    asyncio.run(controller.expand("A.2"))

    removed = controller.delete_node("A", DeleteMode.CASCADE)
    assert set(removed) == {"A", "A.1", "A.2", "A.3", "A.2.1", "A.2.2", "A.2.3"}
    assert sorted(abc.nodes()) == ["B", "C"]
    assert set(removed_log) == set(removed)
    for node_id in removed:
        assert_maps_clean(controller, node_id)
    assert controller.records == {}


def test_delete_keep_children_detaches_descendants(controller, abc):
    asyncio.run(controller.expand("A"))
    asyncio.run(controller.expand("A.1"))

    removed = controller.delete_node("A", "keep-children")
    assert removed == ["A"]
    for child in ("A.1", "A.2", "A.3", "A.1.1"):
        assert abc.has_node(child)
    assert controller.owner_of("A.1") is None
    assert_maps_clean(controller, "A")
    # A.1 still owns its own expansion
    assert controller.children_of("A.1") == ["A.1.1", "A.1.2", "A.1.3"]


def test_delete_child_updates_anchor_record(controller, abc):
    asyncio.run(controller.expand("A"))
    controller.delete_node("A.2", DeleteMode.KEEP_CHILDREN)
    assert controller.children_of("A") == ["A.1", "A.3"]
    assert_maps_clean(controller, "A.2")
    assert "A.2" in controller.source.forgotten

    controller.collapse("A")
    assert sorted(abc.nodes()) == ["A", "B", "C"]


def test_batch_discarded_after_reset(controller, abc):
    async def scenario():
        task = asyncio.create_task(controller.expand("A"))
        await asyncio.sleep(0)
        controller.reset()
        return await task

    assert asyncio.run(scenario()) == []
    assert abc.order == 3
    assert controller.records == {}


def test_batch_discarded_when_anchor_deleted(controller, abc):
    async def scenario():
        task = asyncio.create_task(controller.expand("A"))
        await asyncio.sleep(0)
        controller.delete_node("A")
        return await task

    assert asyncio.run(scenario()) == []
    assert sorted(abc.nodes()) == ["B", "C"]


def test_reset_cancels_in_flight_fetch(abc, pipeline, config):
    started = []
    cancelled = []

    class SlowSource(FixedChildSource):
        async def fetch(self, node_id, store):
            started.append(node_id)
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(node_id)
                raise
            return ChildBatch()

    controller = ExpansionController(abc, pipeline, config, source=SlowSource())

    async def scenario():
        task = asyncio.create_task(controller.expand("A"))
        await asyncio.sleep(0.01)
        controller.reset()
        return await task

    assert asyncio.run(scenario()) == []
    assert started == cancelled == ["A"]
    assert controller.pending == {}
    assert abc.order == 3


def test_expand_unknown_node(controller):
    assert asyncio.run(controller.expand("nope")) == []


def test_expansion_refines_layout(controller, abc, surface, config):
    asyncio.run(controller.expand("C"))
    assert surface.camera.animations
    margin = config["layout"]["overlap"]["margin"]
    nodes = list(abc.iter_nodes())
    for i, (a, da) in enumerate(nodes):
        for b, db in nodes[i + 1:]:
            dx, dy = da["x"] - db["x"], da["y"] - db["y"]
            assert (dx * dx + dy * dy) ** 0.5 >= da["size"] + db["size"] + margin - 1e-6


# --- RandomChildSource ---

def test_random_source_memoizes_counts(abc, config):
    source = RandomChildSource(config, random.Random(3))
    count = source.child_count("A")
    assert 3 <= count <= 6
    for _ in range(10):
        assert source.child_count("A") == count
    source.forget("A")
    assert "A" not in source.counts


def test_random_source_batch_shape(abc, config):
    source = RandomChildSource(config, random.Random(11))
    batch = asyncio.run(source.fetch("A", abc))
    child_ids = [n.id for n in batch.nodes]
    assert len(child_ids) == source.child_count("A")
    assert all(c.startswith("A_child_") for c in child_ids)

    generated = [e for e in batch.relations if e.properties["RELATION_ID"] == "expands to"]
    assert [(e.start_id, e.end_id) for e in generated] == [("A", c) for c in child_ids]

    extra = [e for e in batch.relations if e.properties["RELATION_ID"] == "related"]
    assert len(extra) <= 2 * len(child_ids)
    for edge in extra:
        ends = {edge.start_id, edge.end_id}
        assert len(ends & set(child_ids)) == 1
        assert "A" not in ends

    ids = [e.id for e in batch.relations]
    assert len(ids) == len(set(ids))
    assert all(i.startswith("rel_") for i in ids)


def test_random_source_avoids_existing_ids(abc, config):
    abc.add_node("A_child_1")
    abc.add_node("X")
    abc.add_edge("rel_2", "X", "A_child_1")
    source = RandomChildSource(config, random.Random(5))
    batch = asyncio.run(source.fetch("A", abc))
    assert "A_child_1" not in [n.id for n in batch.nodes]
    assert "rel_2" not in [e.id for e in batch.relations]


def test_layered_run_in_flight_is_superseded_by_expand_and_collapse(abc, config, surface):
    before = abc.positions()

    async def scenario():
        gate = asyncio.Event()

        async def layered(request):
            await gate.wait()
            return {n.id: NodeBox(i * 500, 0, 80, 36) for i, n in enumerate(request.nodes)}

        pipeline = LayoutPipeline(abc, config, layered=layered, surface=surface)
        controller = ExpansionController(abc, pipeline, config, source=FixedChildSource(3))
        run = asyncio.create_task(pipeline.run())
        await asyncio.sleep(0)
        await controller.expand("C")
        controller.collapse("C")
        gate.set()
        return await run

    assert asyncio.run(scenario()) is False
    assert abc.positions() == before


def test_delete_supersedes_in_flight_layered_run(controller, pipeline):
    generation = pipeline.generation
    controller.delete_node("B")
    assert pipeline.generation > generation


def test_failing_source_leaves_graph_untouched(abc, pipeline, config):
    class BrokenSource(FixedChildSource):
        async def fetch(self, node_id, store):
            raise ConnectionError("subgraph fetch failed")

    controller = ExpansionController(abc, pipeline, config, source=BrokenSource())
    assert asyncio.run(controller.expand("A")) == []
    assert abc.order == 3
    assert not controller.is_expanded("A")
    assert controller.pending == {}
    assert controller._fetches == {}
