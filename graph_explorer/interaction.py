"""
Highlight/interaction engine: hover cluster highlight with an animated
edge pulse, simple hover toggling, and drag-to-reposition.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from graph_explorer.graph_store import GraphStore
from graph_explorer.surface import FrameScheduler, RenderSurface
from graph_explorer.utils import lerp_rgb_string, pulse_intensity

logger = logging.getLogger(__name__)


class PulseTask:
    """
    Cancellable per-frame animation of a fixed set of edges.

    Every tick advances the phase, checks is_live() and, while it holds,
    recolours the edges along the pulse ramp and schedules the next frame.
    A tick after cancel() or after is_live() turns false does nothing and
    schedules nothing.
    """

    def __init__(
        self,
        store: GraphStore,
        edge_ids: Iterable[str],
        scheduler: FrameScheduler,
        hover_config: Dict,
        is_live: Callable[[], bool],
        on_frame: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.edge_ids = list(edge_ids)
        self.scheduler = scheduler
        self.hover_config = hover_config
        self.is_live = is_live
        self.on_frame = on_frame
        self.phase = 0.0
        self._handle: Any = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._handle is not None and not self._cancelled

    def start(self) -> None:
        self._handle = self.scheduler.request_frame(self.tick)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self.scheduler.cancel_frame(self._handle)
            self._handle = None

    def tick(self) -> None:
        self._handle = None
        if self._cancelled or not self.is_live():
            return

        hc = self.hover_config
        self.phase += hc['pulse_speed']
        intensity = pulse_intensity(self.phase)
        color = lerp_rgb_string(hc['pulse_color_from'], hc['pulse_color_to'], intensity)
        width = hc['pulse_width_from'] + (hc['pulse_width_to'] - hc['pulse_width_from']) * intensity
        for edge_id in self.edge_ids:
            # edges deleted mid-hover are skipped
            if self.store.has_edge(edge_id):
                self.store.update_edge(edge_id, color=color, size=width)

        if self.on_frame is not None:
            self.on_frame()
        self._handle = self.scheduler.request_frame(self.tick)


class HighlightEngine:
    """
    Hover highlighting.

    With hover_mode on, entering a node enlarges it and its neighbours,
    dims everything else and pulses the incident edges. With hover_mode
    off, entering/leaving only toggles the node's highlighted flag and size.
    """

    def __init__(self, store: GraphStore, config: Dict, surface: Optional[RenderSurface] = None):
        self.store = store
        self.config = config
        self.surface = surface
        self.hover_mode: bool = config.get('hover_mode', True)
        self.hovered: Optional[str] = None
        self.pulse: Optional[PulseTask] = None

    @property
    def hover_config(self) -> Dict:
        return self.config['animations']['hover']

    def attach_surface(self, surface: Optional[RenderSurface]) -> None:
        self.stop_pulse()
        self.surface = surface

    def _refresh(self) -> None:
        if self.surface is not None:
            self.surface.refresh()

    def enter_node(self, node_id: str) -> None:
        if not self.store.has_node(node_id):
            return
        if not self.hover_mode:
            self.store.update_node(node_id, highlighted=True, size=self.hover_config['simple_node_size'])
            self._refresh()
            return
        self.hovered = node_id
        self.highlight_cluster(node_id)

    def leave_node(self, node_id: str) -> None:
        if not self.hover_mode:
            if self.store.has_node(node_id):
                self.store.update_node(
                    node_id, highlighted=False, size=self.config['defaults']['node']['size']
                )
                self._refresh()
            return
        self.hovered = None
        self.reset_highlights()

    def highlight_cluster(self, center: str) -> None:
        hc = self.hover_config
        colors = self.config['colors']
        neighbors = set(self.store.neighbors(center))
        incident = self.store.incident_edges(center)
        incident_set = set(incident)

        fallback = self.config['renderer']['default_node_color']
        for node_id in self.store.nodes():
            base = self.store.get_node_attribute(node_id, 'base_color') or fallback
            if node_id == center:
                self.store.update_node(node_id, size=hc['center_node_size'], color=base, highlighted=True)
            elif node_id in neighbors:
                self.store.update_node(node_id, size=hc['neighbor_node_size'], color=base, highlighted=True)
            else:
                self.store.update_node(node_id, size=hc['dimmed_node_size'], color=colors['dimmed'], highlighted=False)

        for edge_id in self.store.edges():
            if edge_id in incident_set:
                self.store.update_edge(edge_id, color=colors['highlighted'], size=hc['highlighted_edge_size'])
            else:
                self.store.update_edge(edge_id, color=colors['dimmed_edge'], size=hc['dimmed_edge_size'])

        self.start_pulse(center, incident)
        self._refresh()

    def refresh_cluster(self) -> None:
        """Re-apply the hover cluster after nodes or edges were added or removed."""
        if self.hover_mode and self.hovered is not None and self.store.has_node(self.hovered):
            self.highlight_cluster(self.hovered)

    def start_pulse(self, center: str, edge_ids: List[str]) -> None:
        self.stop_pulse()
        if self.surface is None:
            return
        self.pulse = PulseTask(
            self.store,
            edge_ids,
            self.surface.scheduler,
            self.hover_config,
            is_live=lambda: self.hovered == center,
            on_frame=self._refresh,
        )
        self.pulse.start()

    def stop_pulse(self) -> None:
        if self.pulse is not None:
            self.pulse.cancel()
            self.pulse = None

    def reset_highlights(self) -> None:
        """Every node back to its base colour and default size; edges to defaults."""
        self.stop_pulse()
        node_size = self.config['defaults']['node']['size']
        fallback = self.config['renderer']['default_node_color']
        edge_defaults = self.config['defaults']['edge']
        for node_id in self.store.nodes():
            self.store.update_node(
                node_id,
                size=node_size,
                color=self.store.get_node_attribute(node_id, 'base_color') or fallback,
                highlighted=False,
            )
        for edge_id in self.store.edges():
            self.store.update_edge(edge_id, color=edge_defaults['color'], size=edge_defaults['size'])
        self._refresh()

    def set_hover_mode(self, enabled: bool) -> None:
        self.hover_mode = bool(enabled)
        self.hovered = None
        self.reset_highlights()

    def forget_nodes(self, node_ids: Iterable[str]) -> None:
        """Clear hover state referring to removed nodes."""
        if self.hovered is not None and self.hovered in set(node_ids):
            self.hovered = None
            self.reset_highlights()

    def teardown(self) -> None:
        self.hovered = None
        self.stop_pulse()


class DragController:
    """
    Pointer-driven repositioning of a single node.

    While a drag is active the camera is disabled so the stage does not
    pan under the pointer.
    """

    PRIMARY_BUTTON = 0

    def __init__(self, store: GraphStore, surface: Optional[RenderSurface] = None):
        self.store = store
        self.surface = surface
        self.dragged: Optional[str] = None

    @property
    def dragging(self) -> bool:
        return self.dragged is not None

    def attach_surface(self, surface: Optional[RenderSurface]) -> None:
        self.surface = surface

    def pointer_down(self, node_id: str, button: int = PRIMARY_BUTTON) -> bool:
        """Start dragging node_id. Returns False when the press is ignored."""
        if button != self.PRIMARY_BUTTON or self.dragged is not None:
            return False
        if not self.store.has_node(node_id):
            return False
        self.dragged = node_id
        if self.surface is not None:
            self.surface.camera.disable()
        return True

    def pointer_move(self, x: float, y: float) -> None:
        """x, y in graph coordinates."""
        if self.dragged is None:
            return
        if not self.store.has_node(self.dragged):
            self.end_drag()
            return
        self.store.set_position(self.dragged, x, y)
        if self.surface is not None:
            self.surface.refresh()

    def end_drag(self) -> None:
        if self.dragged is None:
            return
        self.dragged = None
        if self.surface is not None:
            self.surface.camera.enable()

    pointer_up = end_drag
    pointer_leave = end_drag
    stage_click = end_drag

    def forget_nodes(self, node_ids: Iterable[str]) -> None:
        if self.dragged is not None and self.dragged in set(node_ids):
            logger.debug(f"Dragged node {self.dragged} removed, ending drag")
            self.end_drag()
