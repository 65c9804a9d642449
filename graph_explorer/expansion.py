"""
Expansion controller: expand a node into generated children, collapse it
back, delete nodes with or without their expansion subtree.

Ownership is kept in flat maps rather than a tree of objects:

    records    anchor id -> ordered child ids it introduced
    owner      child id  -> anchor id
    snapshots  anchor id -> {node id: (x, y)} captured before the expansion

A node is the generated child of at most one anchor, so records form a
forest over the live graph.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Set, Tuple

from graph_explorer.datasets import DatasetEdge, DatasetNode, display_name, image_ref, multi_value
from graph_explorer.graph_store import GraphStore
from graph_explorer.layout import LayoutPipeline
from graph_explorer.loader import add_edges, kind_color

logger = logging.getLogger(__name__)


CHILD_KINDS = ('EVENT', 'VEHICLE', 'ADDRESS', 'PERSON')
GENERATED_RELATION = 'expands to'
EXTRA_RELATION = 'related'


class DeleteMode(str, Enum):
    CASCADE = 'cascade'
    KEEP_CHILDREN = 'keep-children'


@dataclass
class ChildBatch:
    """Nodes and relations produced for one expansion."""
    nodes: List[DatasetNode] = field(default_factory=list)
    relations: List[DatasetEdge] = field(default_factory=list)


class ChildSource(Protocol):
    """Given a node id, produce the batch of children to attach to it."""

    async def fetch(self, node_id: str, store: GraphStore) -> ChildBatch:
        ...

    def forget(self, node_id: str) -> None:
        """Drop anything memoized for node_id."""
        ...

    def reset(self) -> None:
        ...


class RandomChildSource:
    """
    Stand-in for an external subgraph fetch.

    The child count is drawn once per node id from [min_children,
    max_children] and memoized. Each child gets an edge from the anchor
    and 0..max_extra_links extra edges to other existing nodes, direction
    decided by a coin flip.
    """

    def __init__(self, config: Dict, rng: Optional[random.Random] = None):
        self.expansion = config['expansion']
        self.rng = rng or random.Random()
        self.counts: Dict[str, int] = {}
        self._next_id = 1

    def child_count(self, node_id: str) -> int:
        if node_id not in self.counts:
            self.counts[node_id] = self.rng.randint(
                self.expansion['min_children'], self.expansion['max_children']
            )
        return self.counts[node_id]

    def forget(self, node_id: str) -> None:
        self.counts.pop(node_id, None)

    def reset(self) -> None:
        self.counts.clear()

    def _take_id(self, pattern: str, taken: Callable[[str], bool]) -> str:
        while True:
            candidate = pattern.format(self._next_id)
            self._next_id += 1
            if not taken(candidate):
                return candidate

    async def fetch(self, node_id: str, store: GraphStore) -> ChildBatch:
        count = self.child_count(node_id)
        batch = ChildBatch()
        existing = [n for n in store.nodes() if n != node_id]
        used_edge_ids: Set[str] = set()

        def edge_taken(edge_id):
            return store.has_edge(edge_id) or edge_id in used_edge_ids

        for i in range(count):
            child_id = self._take_id(f"{node_id}_child_{{}}", store.has_node)
            batch.nodes.append(DatasetNode(child_id, self.rng.choice(CHILD_KINDS), {
                'is_deleted': False,
                'NODE_ID': child_id,
                'displayName': multi_value(f"Child {i + 1}", system='demo'),
            }))

            edge_id = self._take_id("rel_{}", edge_taken)
            used_edge_ids.add(edge_id)
            batch.relations.append(DatasetEdge(edge_id, node_id, child_id, {
                'is_deleted': False,
                'RELATION_ID': GENERATED_RELATION,
            }))

            for _ in range(self.rng.randint(0, self.expansion['max_extra_links'])):
                if not existing:
                    break
                other = self.rng.choice(existing)
                start, end = (child_id, other) if self.rng.random() < 0.5 else (other, child_id)
                edge_id = self._take_id("rel_{}", edge_taken)
                used_edge_ids.add(edge_id)
                batch.relations.append(DatasetEdge(edge_id, start, end, {
                    'is_deleted': False,
                    'RELATION_ID': EXTRA_RELATION,
                }))
        return batch


class ExpansionController:
    """
    Expand/collapse state machine per node, plus node deletion that keeps
    the ownership maps free of dangling ids.

    on_removed, if given, is called with the list of node ids removed by
    any collapse or delete so transient interaction state can be cleared.
    """

    def __init__(
        self,
        store: GraphStore,
        pipeline: LayoutPipeline,
        config: Dict,
        source: Optional[ChildSource] = None,
        on_removed: Optional[Callable[[List[str]], None]] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.config = config
        self.source = source if source is not None else RandomChildSource(config)
        self.on_removed = on_removed

        self.records: Dict[str, List[str]] = {}
        self.owner: Dict[str, str] = {}
        self.snapshots: Dict[str, Dict[str, Tuple[float, float]]] = {}
        self.pending: Dict[str, asyncio.Future] = {}
        self._fetches: Dict[str, asyncio.Future] = {}
        self._epoch = 0

    # --- Queries ---

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self.records

    def children_of(self, node_id: str) -> List[str]:
        return list(self.records.get(node_id, []))

    def owner_of(self, node_id: str) -> Optional[str]:
        return self.owner.get(node_id)

    def descendants(self, node_id: str) -> List[str]:
        """Every node transitively introduced by node_id's expansion, depth-first."""
        result = []
        for child in self.records.get(node_id, []):
            result.append(child)
            result.extend(self.descendants(child))
        return result

    # --- Expand ---

    async def expand(self, node_id: str) -> List[str]:
        """
        Expand node_id and return its child ids.

        No-op (returns the existing children) when already expanded. A call
        that overlaps an in-flight expansion of the same node waits for it
        instead of adding a second batch.
        """
        if not self.store.has_node(node_id):
            return []
        if node_id in self.records:
            return self.children_of(node_id)
        if node_id in self.pending:
            await asyncio.shield(self.pending[node_id])
            return self.children_of(node_id)

        future = asyncio.get_running_loop().create_future()
        self.pending[node_id] = future
        epoch = self._epoch
        fetch = asyncio.ensure_future(self.source.fetch(node_id, self.store))
        self._fetches[node_id] = fetch
        try:
            try:
                batch = await fetch
            except asyncio.CancelledError:
                # cancelled by reset() or delete_node(), not by our caller
                if fetch.cancelled() and (epoch != self._epoch or not self.store.has_node(node_id)):
                    logger.debug(f"Expansion fetch for {node_id} cancelled")
                    return []
                raise
            except Exception as e:
                logger.warning(f"Expansion fetch for {node_id} failed: {e}")
                return []
            if epoch != self._epoch or not self.store.has_node(node_id):
                logger.debug(f"Discarding expansion batch for {node_id}")
                return []
            children = self._apply_batch(node_id, batch)
        finally:
            if self._fetches.get(node_id) is fetch:
                del self._fetches[node_id]
            if self.pending.get(node_id) is future:
                del self.pending[node_id]
            if not future.done():
                future.set_result(None)

        self.pipeline.refine()
        logger.info(f"Expanded {node_id}: {len(children)} children")
        return children

    def _apply_batch(self, node_id: str, batch: ChildBatch) -> List[str]:
        # in-flight layered runs were computed for the graph before this batch
        self.pipeline.invalidate()
        self.snapshots[node_id] = self.store.positions()

        new_nodes = [n for n in batch.nodes if not self.store.has_node(n.id)]
        child_ids = [n.id for n in new_nodes]
        positions = self.pipeline.child_positions(node_id, child_ids)
        size = self.config['defaults']['node']['size']
        for record in new_nodes:
            color = kind_color(record.kind, self.config)
            x, y = positions[record.id]
            self.store.add_node(
                record.id,
                label=display_name(record),
                image=image_ref(record),
                color=color,
                base_color=color,
                size=size,
                x=x,
                y=y,
                kind=record.kind,
            )
        add_edges(self.store, batch.relations, self.config)

        self.records[node_id] = child_ids
        for child_id in child_ids:
            self.owner[child_id] = node_id
        return child_ids

    # --- Collapse ---

    def collapse(self, node_id: str) -> List[str]:
        """
        Tear down node_id's expansion depth-first and restore the positions
        captured when it was expanded. Returns the removed node ids.
        """
        if node_id not in self.records:
            return []
        self.pipeline.invalidate()
        snapshot = self.snapshots.pop(node_id, {})
        removed: List[str] = []
        for child_id in list(self.records[node_id]):
            removed.extend(self._drop_subtree(child_id))
        self._drop_record(node_id)

        for other, (x, y) in snapshot.items():
            if self.store.has_node(other):
                self.store.set_position(other, x, y)

        self._notify(removed)
        logger.info(f"Collapsed {node_id}: removed {len(removed)} nodes")
        return removed

    # --- Delete ---

    def delete_node(self, node_id: str, mode: DeleteMode = DeleteMode.CASCADE) -> List[str]:
        """
        Delete node_id. CASCADE also removes everything it transitively
        expanded; KEEP_CHILDREN leaves descendants in place, detached.
        """
        if not self.store.has_node(node_id):
            return []
        self.pipeline.invalidate()
        mode = DeleteMode(mode)
        if mode is DeleteMode.CASCADE:
            removed = self._drop_subtree(node_id)
        else:
            for child_id in self.records.get(node_id, []):
                self.owner.pop(child_id, None)
            self._drop_record(node_id)
            removed = self._drop_single(node_id)

        self._notify(removed)
        self.pipeline.refine()
        return removed

    def _drop_subtree(self, node_id: str) -> List[str]:
        removed: List[str] = []
        for child_id in list(self.records.get(node_id, [])):
            removed.extend(self._drop_subtree(child_id))
        self._drop_record(node_id)
        removed.extend(self._drop_single(node_id))
        return removed

    def _drop_record(self, node_id: str) -> None:
        for child_id in self.records.pop(node_id, []):
            if self.owner.get(child_id) == node_id:
                del self.owner[child_id]
        self.snapshots.pop(node_id, None)

    def _drop_single(self, node_id: str) -> List[str]:
        """Remove one node and every reference to it in the ownership maps."""
        anchor = self.owner.pop(node_id, None)
        if anchor is not None and anchor in self.records:
            self.records[anchor] = [c for c in self.records[anchor] if c != node_id]
        for snapshot in self.snapshots.values():
            snapshot.pop(node_id, None)
        self.source.forget(node_id)
        fetch = self._fetches.get(node_id)
        if fetch is not None:
            fetch.cancel()
        if not self.store.has_node(node_id):
            return []
        self.store.remove_node(node_id)
        return [node_id]

    # --- Reset ---

    def reset(self) -> None:
        """Forget all expansion state. Batches still in flight are discarded."""
        self._epoch += 1
        for fetch in list(self._fetches.values()):
            fetch.cancel()
        self.records.clear()
        self.owner.clear()
        self.snapshots.clear()
        self.source.reset()

    def _notify(self, removed: List[str]) -> None:
        if removed and self.on_removed is not None:
            self.on_removed(removed)
