"""
Layout pipeline for graph-explorer.

Positions every node after a structural change. Stages, in order:

1. Initial seed: a fresh batch on an empty store goes on a circle.
2. Layered layout: the graph is handed to an external layered layout
   (Graphviz dot by default). Best effort: it may fail or time out.
3. Fallback: nodes grouped by kind into columns, centred at the origin.
4. Overlap resolution: bounded pairwise push-apart of circular footprints.
5. Viewport fit: the camera is animated onto the bounding box.

Newly expanded children are placed around their anchor with golden-angle
spacing before any of the later stages refine them.

Every run carries a generation number; invalidate() or a newer run makes
an older run's layered result stale, and a stale result is discarded.
"""

import asyncio
import json
import logging
import math
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import graphviz

from graph_explorer.datasets import NODE_KINDS, OTHER_KIND
from graph_explorer.errors import EmptyGraph, LayoutUnavailable
from graph_explorer.graph_store import GraphStore
from graph_explorer.surface import CameraState, RenderSurface

logger = logging.getLogger(__name__)


GOLDEN_ANGLE = 2.399963229728653

Position = Tuple[float, float]

# Graphviz works in inches, the view model in points
POINTS_PER_INCH = 72.0

RANKDIR = {'DOWN': 'TB', 'UP': 'BT', 'RIGHT': 'LR', 'LEFT': 'RL'}


@dataclass
class Bounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Position:
        return (self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2


@dataclass
class LayoutOptions:
    """Named options understood by a layered layout collaborator."""
    direction: str = 'DOWN'
    placement: str = 'SIMPLE'
    cycle_breaking: str = 'GREEDY'
    layer_spacing: float = 80
    node_spacing: float = 60


@dataclass
class LayoutNode:
    id: str
    width: float
    height: float


@dataclass
class LayoutRequest:
    nodes: List[LayoutNode]
    edges: List[Tuple[str, str, str]]  # (edge_id, source, target)
    options: LayoutOptions = field(default_factory=LayoutOptions)


@dataclass
class NodeBox:
    """Absolute box returned by a layered layout; x, y is the top-left corner."""
    x: float
    y: float
    width: float
    height: float


LayeredLayout = Callable[[LayoutRequest], Awaitable[Dict[str, NodeBox]]]


# --- Pure placement helpers ---

def circle_positions(node_ids: List[str], radius: float) -> Dict[str, Position]:
    """Evenly spaced on a circle, index order, first node at angle 0."""
    total = len(node_ids)
    step = (2 * math.pi) / total if total else 0.0
    return {
        node_id: (math.cos(i * step) * radius, math.sin(i * step) * radius)
        for i, node_id in enumerate(node_ids)
    }


def child_position(anchor: Position, index: int, order: int, layout_config: Dict) -> Position:
    """
    Position of the index-th new child around its anchor.

    Golden-angle spacing; the radius grows with log(graph order) and steps
    outwards over a few rings so consecutive children rarely collide.
    """
    order = max(order, 1)
    base = layout_config['child_base_radius'] + math.log1p(order) * layout_config['child_radius_log_factor']
    angle = index * GOLDEN_ANGLE
    radius = base + (index % layout_config['child_rings']) * layout_config['child_ring_step']
    return anchor[0] + math.cos(angle) * radius, anchor[1] + math.sin(angle) * radius


def estimate_width(label: str, layout_config: Dict) -> float:
    width = 14 * min(len(label or ''), 18) + 40
    return max(layout_config['min_node_width'], min(layout_config['max_node_width'], width))


def kind_columns(store: GraphStore, layout_config: Dict) -> Dict[str, Position]:
    """
    Deterministic fallback: one column per kind (fixed kind order, OTHER
    last), ids sorted lexically inside a column, whole grid centred at 0.
    """
    order = list(NODE_KINDS) + [OTHER_KIND]
    groups: Dict[str, List[str]] = {k: [] for k in order}
    for node_id, data in store.iter_nodes():
        kind = data.get('kind')
        groups[kind if kind in groups else OTHER_KIND].append(node_id)

    columns = [sorted(groups[k]) for k in order if groups[k]]
    col_gap = layout_config['column_gap']
    row_gap = layout_config['row_gap']
    x_start = -((len(columns) - 1) / 2) * col_gap

    positions: Dict[str, Position] = {}
    for col, ids in enumerate(columns):
        x = x_start + col * col_gap
        y_start = -((len(ids) - 1) / 2) * row_gap
        for i, node_id in enumerate(ids):
            positions[node_id] = (x, y_start + i * row_gap)
    return positions


def center_boxes(boxes: Dict[str, NodeBox]) -> Dict[str, Position]:
    """Box centres, translated so the union of all boxes is centred at 0."""
    if not boxes:
        return {}
    min_x = min(b.x for b in boxes.values())
    min_y = min(b.y for b in boxes.values())
    max_x = max(b.x + b.width for b in boxes.values())
    max_y = max(b.y + b.height for b in boxes.values())
    cx, cy = (min_x + max_x) / 2, (min_y + max_y) / 2
    return {
        node_id: (b.x + b.width / 2 - cx, b.y + b.height / 2 - cy)
        for node_id, b in boxes.items()
    }


def resolve_overlaps(
    positions: Dict[str, Position],
    radii: Dict[str, float],
    margin: float = 6,
    max_iterations: int = 400,
) -> Tuple[Dict[str, Position], int]:
    """
    Push apart circles (position, radius) until no two intersect beyond
    margin, or until max_iterations passes have run.

    Returns the new positions and the number of passes used.
    """
    ids = list(positions)
    pos = {n: [float(positions[n][0]), float(positions[n][1])] for n in ids}

    for iteration in range(max_iterations):
        moved = False
        for i, a in enumerate(ids):
            for j in range(i + 1, len(ids)):
                b = ids[j]
                min_dist = radii.get(a, 0) + radii.get(b, 0) + margin
                dx = pos[b][0] - pos[a][0]
                dy = pos[b][1] - pos[a][1]
                dist = math.hypot(dx, dy)
                if dist >= min_dist:
                    continue
                if dist == 0:
                    # coincident: separate along a deterministic direction
                    angle = (i + j) * GOLDEN_ANGLE
                    ux, uy = math.cos(angle), math.sin(angle)
                else:
                    ux, uy = dx / dist, dy / dist
                push = (min_dist - dist) / 2 + 1e-6
                pos[a][0] -= ux * push
                pos[a][1] -= uy * push
                pos[b][0] += ux * push
                pos[b][1] += uy * push
                moved = True
        if not moved:
            return {n: (p[0], p[1]) for n, p in pos.items()}, iteration
    return {n: (p[0], p[1]) for n, p in pos.items()}, max_iterations


def compute_bounds(store: GraphStore, default_size: float = 20) -> Bounds:
    """Axis-aligned box of every node footprint (position +/- size)."""
    if store.order == 0:
        raise EmptyGraph()
    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for _, data in store.iter_nodes():
        x = data.get('x') or 0.0
        y = data.get('y') or 0.0
        size = data.get('size') or default_size
        min_x = min(min_x, x - size)
        max_x = max(max_x, x + size)
        min_y = min(min_y, y - size)
        max_y = max(max_y, y + size)
    return Bounds(min_x, max_x, min_y, max_y)


def fit_camera(bounds: Bounds, width: float, height: float, margin: float) -> CameraState:
    """
    Camera state that fits bounds into a width x height viewport minus a
    margin fraction. One uniform ratio (the larger of the two axes) so the
    aspect ratio is preserved.
    """
    graph_w = max(bounds.width, 1)
    graph_h = max(bounds.height, 1)
    inner_w = max(width * (1 - margin), 1)
    inner_h = max(height * (1 - margin), 1)
    ratio = max(graph_w / inner_w, graph_h / inner_h)
    cx, cy = bounds.center
    return CameraState(x=cx, y=cy, ratio=ratio)


# --- Layered layout collaborator ---

class GraphvizLayeredLayout:
    """
    Layered layout computed by Graphviz dot.

    dot ranks nodes top-down and reverses edges internally to break
    cycles, so cyclic graphs are fine. The render runs on a worker thread;
    any failure is reported as LayoutUnavailable.
    """

    def __init__(self, engine: str = 'dot'):
        self.engine = engine

    async def __call__(self, request: LayoutRequest) -> Dict[str, NodeBox]:
        return await asyncio.to_thread(self.layout, request)

    def build_digraph(self, request: LayoutRequest) -> Tuple[graphviz.Digraph, Dict[str, str]]:
        """Return the Digraph and a gv-name -> node id map (ids are not used as gv names)."""
        opts = request.options
        dot = graphviz.Digraph(name='layered', engine=self.engine)
        dot.attr(
            rankdir=RANKDIR.get(opts.direction, 'TB'),
            nodesep=f"{opts.node_spacing / POINTS_PER_INCH:.3f}",
            ranksep=f"{opts.layer_spacing / POINTS_PER_INCH:.3f}",
        )
        dot.attr('node', shape='box', fixedsize='true', label='')

        names: Dict[str, str] = {}
        gv_of: Dict[str, str] = {}
        for i, node in enumerate(request.nodes):
            gv_name = f"n{i}"
            names[gv_name] = node.id
            gv_of[node.id] = gv_name
            dot.node(
                gv_name,
                width=f"{node.width / POINTS_PER_INCH:.3f}",
                height=f"{node.height / POINTS_PER_INCH:.3f}",
            )
        for _, source, target in request.edges:
            if source in gv_of and target in gv_of:
                dot.edge(gv_of[source], gv_of[target])
        return dot, names

    def layout(self, request: LayoutRequest) -> Dict[str, NodeBox]:
        dot, names = self.build_digraph(request)
        try:
            raw = dot.pipe(format='json', encoding='utf-8')
        except graphviz.ExecutableNotFound as e:
            raise LayoutUnavailable("graphviz executable not found") from e
        except graphviz.CalledProcessError as e:
            raise LayoutUnavailable(f"dot exited with {e.returncode}") from e
        return self.parse(raw, names)

    @staticmethod
    def parse(raw: str, names: Dict[str, str]) -> Dict[str, NodeBox]:
        """Convert dot json output into top-left boxes in screen orientation (y down)."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise LayoutUnavailable("malformed dot output") from e

        boxes: Dict[str, NodeBox] = {}
        for obj in data.get('objects', []):
            node_id = names.get(obj.get('name'))
            if node_id is None or 'pos' not in obj:
                continue
            try:
                cx, cy = (float(v) for v in obj['pos'].split(','))
                width = float(obj.get('width', 0)) * POINTS_PER_INCH
                height = float(obj.get('height', 0)) * POINTS_PER_INCH
            except (TypeError, ValueError) as e:
                raise LayoutUnavailable(f"bad position for {node_id}") from e
            boxes[node_id] = NodeBox(x=cx - width / 2, y=-cy - height / 2, width=width, height=height)

        if not boxes:
            raise LayoutUnavailable("layout produced no children")
        return boxes


# --- Pipeline ---

class LayoutPipeline:
    """
    Runs the layout stages against a GraphStore and moves the surface camera.

    Usage:
        pipeline = LayoutPipeline(store, config)
        pipeline.attach_surface(surface)
        await pipeline.run()          # full layered/fallback layout
        pipeline.refine()             # overlap resolution + fit only
    """

    def __init__(
        self,
        store: GraphStore,
        config: Dict,
        layered: Optional[LayeredLayout] = None,
        surface: Optional[RenderSurface] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.config = config
        self.layered = layered if layered is not None else GraphvizLayeredLayout()
        self.surface = surface
        self.rng = rng or random.Random()
        self._generation = 0

    @property
    def layout_config(self) -> Dict:
        return self.config['layout']

    @property
    def generation(self) -> int:
        return self._generation

    def attach_surface(self, surface: Optional[RenderSurface]) -> None:
        self.surface = surface

    def invalidate(self) -> None:
        """Make every in-flight run stale (dataset switch, reset, teardown)."""
        self._generation += 1

    # --- Placement of new nodes ---

    def initial_positions(self, node_ids: List[str]) -> Dict[str, Position]:
        return circle_positions(node_ids, self.layout_config['circle_radius'])

    def child_positions(self, anchor_id: str, child_ids: List[str]) -> Dict[str, Position]:
        anchor = self.store.position(anchor_id)
        order = self.store.order
        return {
            child_id: child_position(anchor, i, order, self.layout_config)
            for i, child_id in enumerate(child_ids)
        }

    def jitter_position(self) -> Position:
        """Somewhere near the middle of the current graph."""
        try:
            cx, cy = compute_bounds(self.store).center
        except EmptyGraph:
            cx, cy = 0.0, 0.0
        jitter = self.layout_config['placement_jitter']
        return (
            cx + (self.rng.random() - 0.5) * jitter,
            cy + (self.rng.random() - 0.5) * jitter,
        )

    # --- Stages ---

    def build_request(self) -> LayoutRequest:
        lc = self.layout_config
        nodes = [
            LayoutNode(
                id=node_id,
                width=estimate_width(self.store.get_node_attribute(node_id, 'label', ''), lc),
                height=lc['node_height'],
            )
            for node_id in sorted(self.store.nodes())
        ]
        edges = []
        for edge_id in self.store.edges():
            source, target = self.store.edge_endpoints(edge_id)
            edges.append((edge_id, source, target))
        options = LayoutOptions(layer_spacing=lc['layer_spacing'], node_spacing=lc['node_spacing'])
        return LayoutRequest(nodes=nodes, edges=edges, options=options)

    async def _layered_positions(self, generation: int) -> Optional[Dict[str, Position]]:
        """Layered positions, or None when the layered stage is unavailable."""
        request = self.build_request()
        try:
            boxes = await asyncio.wait_for(self.layered(request), timeout=self.layout_config['timeout'])
        except asyncio.TimeoutError:
            logger.info("Layered layout timed out, using column layout")
            return None
        except LayoutUnavailable as e:
            logger.info(f"{e}; using column layout")
            return None
        except Exception as e:
            logger.warning(f"Layered layout failed ({e!r}), using column layout")
            return None
        if generation != self._generation:
            return None
        if not boxes:
            logger.info("Layered layout returned no nodes, using column layout")
            return None
        return center_boxes(boxes)

    def apply_positions(self, positions: Dict[str, Position]) -> None:
        for node_id, (x, y) in positions.items():
            if self.store.has_node(node_id):
                self.store.set_position(node_id, x, y)

    def resolve_overlaps(self) -> int:
        """Run the overlap pass on the store; returns passes used."""
        if self.store.order < 2:
            return 0
        overlap = self.layout_config['overlap']
        default_size = self.config['defaults']['node']['size']
        radii = {
            node_id: data.get('size') or default_size
            for node_id, data in self.store.iter_nodes()
        }
        positions, passes = resolve_overlaps(
            self.store.positions(),
            radii,
            margin=overlap['margin'],
            max_iterations=overlap['max_iterations'],
        )
        self.apply_positions(positions)
        return passes

    def fit_view(self) -> Optional[CameraState]:
        """Animate the camera onto the graph bounds. Skipped for an empty graph."""
        try:
            bounds = compute_bounds(self.store, self.config['defaults']['node']['size'])
        except EmptyGraph:
            return None
        if self.surface is None:
            return None
        width, height = self.surface.dimensions()
        reset = self.config['animations']['reset_position']
        state = fit_camera(bounds, width, height, reset['margin'])
        self.surface.camera.animate(state, reset['duration'])
        return state

    def _refresh(self) -> None:
        if self.surface is not None:
            self.surface.refresh()

    async def run(self, use_layered: Optional[bool] = None) -> bool:
        """
        Full pipeline: layered (or columns) -> overlaps -> fit.

        Returns False when the run was superseded while waiting on the
        layered layout; nothing is applied in that case.
        """
        self._generation += 1
        generation = self._generation
        if self.store.order == 0:
            self._refresh()
            return True

        if use_layered is None:
            use_layered = self.layout_config.get('mode', 'hierarchy') == 'hierarchy'

        positions = None
        if use_layered and self.layered is not None:
            positions = await self._layered_positions(generation)
            if generation != self._generation:
                logger.debug(f"Discarding stale layout run {generation} (current {self._generation})")
                return False
        if positions is None:
            positions = kind_columns(self.store, self.layout_config)

        self.apply_positions(positions)
        self.resolve_overlaps()
        self._refresh()
        self.fit_view()
        return True

    def refine(self) -> None:
        """Incremental refinement after placing new nodes: overlaps + fit."""
        self.resolve_overlaps()
        self._refresh()
        self.fit_view()
