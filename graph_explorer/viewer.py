"""
GraphViewer - wires the store, layout pipeline, expansion controller,
interaction engine and relation editor into one component.

The UI layer forwards pointer events here; everything else (mutation,
layout, highlighting) happens inside the viewer on the event loop thread.
"""

import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence

from graph_explorer.config import get_graph_config
from graph_explorer.datasets import Dataset, default_datasets
from graph_explorer.edit.controller import RelationEditor
from graph_explorer.expansion import ChildSource, DeleteMode, ExpansionController, RandomChildSource
from graph_explorer.graph_store import GraphStore
from graph_explorer.interaction import DragController, HighlightEngine
from graph_explorer.layout import LayeredLayout, LayoutPipeline
from graph_explorer.loader import load_dataset
from graph_explorer.surface import RenderSurface

logger = logging.getLogger(__name__)


LAYOUT_MODES = ('hierarchy', 'columns')


class GraphViewer:
    """
    Interactive graph view model.

    Usage:
        viewer = GraphViewer()
        viewer.attach_surface(surface)
        await viewer.load()
        await viewer.expand('p_001')
        viewer.collapse('p_001')
    """

    def __init__(
        self,
        config: Optional[Dict] = None,
        datasets: Optional[Sequence[Dataset]] = None,
        layered: Optional[LayeredLayout] = None,
        source: Optional[ChildSource] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config if config is not None else get_graph_config()
        self.datasets: List[Dataset] = list(datasets) if datasets is not None else default_datasets()
        self.current_index = 0
        self.surface: Optional[RenderSurface] = None

        rng = rng or random.Random()
        self.store = GraphStore()
        self.pipeline = LayoutPipeline(self.store, self.config, layered=layered, rng=rng)
        self.highlight = HighlightEngine(self.store, self.config)
        self.drag = DragController(self.store)
        self.expansion = ExpansionController(
            self.store,
            self.pipeline,
            self.config,
            source=source if source is not None else RandomChildSource(self.config, rng),
            on_removed=self._forget_nodes,
        )
        self.relations = RelationEditor(
            self.store,
            self.config,
            on_relayout=self.request_layout,
            on_refresh=self.refresh,
        )
        self._layout_task: Optional[asyncio.Task] = None

    # --- Surface ---

    def attach_surface(self, surface: Optional[RenderSurface]) -> None:
        self.surface = surface
        self.pipeline.attach_surface(surface)
        self.highlight.attach_surface(surface)
        self.drag.attach_surface(surface)

    def refresh(self) -> None:
        if self.surface is not None:
            self.surface.refresh()

    # --- Datasets and layout ---

    @property
    def dataset(self) -> Dataset:
        return self.datasets[self.current_index]

    async def load(self, index: Optional[int] = None) -> bool:
        """Clear everything and load dataset `index` (default: current one)."""
        if index is not None:
            if not 0 <= index < len(self.datasets):
                raise IndexError(f"No dataset at index {index}")
            self.current_index = index
        self._reset_state()
        load_dataset(self.store, self.dataset, self.config, self.pipeline)
        self.refresh()
        return await self.pipeline.run()

    async def switch_dataset(self, index: int) -> bool:
        logger.info(f"Switching to dataset {index}")
        return await self.load(index)

    async def reset_layout(self) -> bool:
        """Drop expansions and edits, reload the current dataset and lay it out."""
        return await self.load()

    async def relayout(self) -> bool:
        return await self.pipeline.run()

    def request_layout(self) -> None:
        """Schedule a pipeline run from synchronous code (event handlers)."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; layout request skipped")
            return
        self._layout_task = loop.create_task(self.pipeline.run())
        self._layout_task.add_done_callback(self._log_layout_failure)

    @staticmethod
    def _log_layout_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Layout run failed: {error!r}", exc_info=error)

    def fit_view(self) -> None:
        self.pipeline.fit_view()

    async def set_layout_mode(self, mode: str) -> bool:
        if mode not in LAYOUT_MODES:
            raise ValueError(f"Unknown layout mode: {mode}")
        self.config['layout']['mode'] = mode
        return await self.pipeline.run()

    def set_hover_mode(self, enabled: bool) -> None:
        self.highlight.set_hover_mode(enabled)

    def _reset_state(self) -> None:
        self.pipeline.invalidate()
        self.highlight.teardown()
        self.drag.end_drag()
        self.expansion.reset()
        self.relations.reset()
        self.store.clear()

    # --- Expansion ---

    def is_expanded(self, node_id: str) -> bool:
        return self.expansion.is_expanded(node_id)

    async def expand(self, node_id: str) -> List[str]:
        self.relations.hide_context_menu()
        children = await self.expansion.expand(node_id)
        if children:
            self.highlight.refresh_cluster()
        return children

    def collapse(self, node_id: str) -> List[str]:
        removed = self.expansion.collapse(node_id)
        self.relations.hide_context_menu()
        self.highlight.refresh_cluster()
        self.refresh()
        return removed

    def delete_node(self, node_id: str, mode: DeleteMode = DeleteMode.CASCADE) -> List[str]:
        removed = self.expansion.delete_node(node_id, mode)
        self.relations.hide_context_menu()
        self.highlight.refresh_cluster()
        return removed

    def _forget_nodes(self, node_ids: List[str]) -> None:
        self.highlight.forget_nodes(node_ids)
        self.drag.forget_nodes(node_ids)
        self.relations.forget_nodes(node_ids)

    # --- Pointer events ---

    def on_node_enter(self, node_id: str) -> None:
        self.highlight.enter_node(node_id)

    def on_node_leave(self, node_id: str) -> None:
        self.highlight.leave_node(node_id)

    def on_node_down(self, node_id: str, button: int = DragController.PRIMARY_BUTTON) -> bool:
        return self.drag.pointer_down(node_id, button)

    def on_pointer_move(self, x: float, y: float) -> None:
        """x, y in graph coordinates."""
        self.drag.pointer_move(x, y)

    def on_pointer_up(self) -> None:
        self.drag.pointer_up()

    def on_pointer_leave(self) -> None:
        self.drag.pointer_leave()

    def on_node_click(self, node_id: str) -> None:
        self.relations.hide_context_menu()

    def on_stage_click(self) -> None:
        self.drag.stage_click()
        self.relations.hide_context_menu()

    def on_node_right_click(self, node_id: str, x: float, y: float) -> None:
        self.relations.open_context_menu(node_id, x, y)

    def on_wheel(self) -> None:
        self.relations.hide_context_menu()

    # --- Teardown ---

    def teardown(self) -> None:
        self.highlight.teardown()
        self.drag.end_drag()
        self.pipeline.invalidate()
        if self._layout_task is not None and not self._layout_task.done():
            self._layout_task.cancel()
        self._layout_task = None
