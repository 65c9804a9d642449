"""
Relation Editor - context-menu driven creation and deletion of edges.

Flow for creating a relation:
1. Secondary-click node A -> context menu for A
2. start_relation() -> A becomes the pending draft source, menu closes
3. Secondary-click node B -> context menu for B
4. connect_relation() -> label input panel opens (or the draft is
   silently cancelled when B is A)
5. confirm_create_relation() with a non-empty label -> edge A -> B

Creation goes through the GraphStore, so a duplicate pair or a missing
endpoint is rejected without touching the graph.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from graph_explorer.edit.constants import DEFAULT_RELATION_LABEL, RELATION_ARROW, RELATION_ID_PREFIX
from graph_explorer.errors import DuplicateEdge, UnknownEndpoint
from graph_explorer.graph_store import GraphStore

logger = logging.getLogger(__name__)


@dataclass
class RelationEntry:
    id: str
    text: str


@dataclass
class ContextMenuState:
    """Snapshot of the context menu and relation-draft state."""
    visible: bool = False
    x: float = 0
    y: float = 0
    node_id: Optional[str] = None
    relations: List[RelationEntry] = field(default_factory=list)
    selected_edge_id: Optional[str] = None
    show_delete_panel: bool = False
    show_create_panel: bool = False
    draft_source: Optional[str] = None
    label_input: str = ''


class RelationEditor:
    """Owns the context-menu state and applies relation edits to the store."""

    def __init__(
        self,
        store: GraphStore,
        config: dict,
        on_relayout: Optional[Callable[[], None]] = None,
        on_refresh: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.config = config
        self.on_relayout = on_relayout
        self.on_refresh = on_refresh
        self._state = ContextMenuState()
        self._next_id = 1
        self._on_state_change: Optional[Callable[[ContextMenuState], None]] = None

    @property
    def state(self) -> ContextMenuState:
        return self._state

    def set_on_state_change(self, callback: Callable[[ContextMenuState], None]):
        self._on_state_change = callback

    # --- Relation list ---

    def node_display(self, node_id: str) -> str:
        label = self.store.get_node_attribute(node_id, 'label') if self.store.has_node(node_id) else None
        return label if label else node_id

    def relation_text(self, edge_id: str) -> str:
        source, target = self.store.edge_endpoints(edge_id)
        label = self.store.get_edge_attribute(edge_id, 'label') or DEFAULT_RELATION_LABEL
        return f"{label}: {self.node_display(source)} {RELATION_ARROW} {self.node_display(target)}"

    def relations_of(self, node_id: str) -> List[RelationEntry]:
        if not self.store.has_node(node_id):
            return []
        return [RelationEntry(edge_id, self.relation_text(edge_id)) for edge_id in self.store.incident_edges(node_id)]

    # --- Context menu ---

    def open_context_menu(self, node_id: str, x: float, y: float) -> ContextMenuState:
        if not self.store.has_node(node_id):
            return self._state
        relations = self.relations_of(node_id)
        s = self._state
        s.visible = True
        s.x, s.y = x, y
        s.node_id = node_id
        s.relations = relations
        s.selected_edge_id = relations[0].id if relations else None
        s.show_delete_panel = False
        s.show_create_panel = False
        self._notify_change()
        return s

    def hide_context_menu(self) -> ContextMenuState:
        """Close the menu and its panels. A pending draft source survives."""
        s = self._state
        s.visible = False
        s.node_id = None
        s.show_create_panel = False
        s.show_delete_panel = False
        s.label_input = ''
        self._notify_change()
        return s

    def open_delete_panel(self) -> ContextMenuState:
        s = self._state
        if s.node_id is None:
            return s
        s.relations = self.relations_of(s.node_id)
        s.selected_edge_id = s.relations[0].id if s.relations else None
        s.show_delete_panel = True
        self._notify_change()
        return s

    def select_relation(self, edge_id: Optional[str]) -> None:
        self._state.selected_edge_id = edge_id

    # --- Relation draft ---

    def start_relation(self) -> ContextMenuState:
        if self._state.node_id is None:
            return self._state
        self._state.draft_source = self._state.node_id
        return self.hide_context_menu()

    def connect_relation(self) -> ContextMenuState:
        s = self._state
        if s.draft_source is None or s.node_id is None:
            return s
        if s.draft_source == s.node_id:
            s.draft_source = None
            return self.hide_context_menu()
        s.label_input = ''
        s.show_create_panel = True
        self._notify_change()
        return s

    def set_label_input(self, text: str) -> None:
        self._state.label_input = text or ''

    def confirm_create_relation(self) -> Optional[str]:
        """
        Create the drafted relation. Returns the new edge id, or None when
        nothing was created (blank label, duplicate pair, missing endpoint).
        """
        s = self._state
        if s.draft_source is None or s.node_id is None:
            return None
        label = s.label_input.strip()
        if not label:
            return None

        edge_id = self.create_relation(s.draft_source, s.node_id, label)
        s.draft_source = None
        s.label_input = ''
        s.show_create_panel = False
        self.hide_context_menu()
        if self.on_relayout is not None:
            self.on_relayout()
        return edge_id

    def create_relation(self, source: str, target: str, label: str) -> Optional[str]:
        edge_id = self._new_edge_id()
        defaults = self.config['defaults']['edge']
        try:
            self.store.add_edge(edge_id, source, target, label=label, color=defaults['color'], size=defaults['size'])
        except (DuplicateEdge, UnknownEndpoint) as e:
            logger.info(f"Relation not created: {e}")
            self._refresh()
            return None
        logger.info(f"Created relation {edge_id}: {source} -> {target} ({label})")
        self._refresh()
        return edge_id

    def cancel_relation_create(self) -> None:
        self._state.label_input = ''
        self._state.show_create_panel = False
        self._notify_change()

    def cancel_relation_draft(self) -> None:
        self._state.draft_source = None
        self.hide_context_menu()

    # --- Relation deletion ---

    def delete_selected_relation(self) -> bool:
        edge_id = self._state.selected_edge_id
        removed = self._remove_edge(edge_id)
        self._state.show_delete_panel = False
        self.hide_context_menu()
        return removed

    def cancel_relation_delete(self) -> None:
        self._state.show_delete_panel = False
        self._notify_change()

    def delete_relation(self, edge_id: str) -> bool:
        """Delete straight from the relation list. Edge-only; no relayout."""
        if not self._remove_edge(edge_id):
            return False
        self.hide_context_menu()
        return True

    def _remove_edge(self, edge_id: Optional[str]) -> bool:
        if not edge_id or not self.store.has_edge(edge_id):
            return False
        self.store.remove_edge(edge_id)
        self._refresh()
        return True

    # --- Bookkeeping ---

    def forget_nodes(self, node_ids: List[str]) -> None:
        """Drop menu/draft state that refers to removed nodes."""
        removed = set(node_ids)
        s = self._state
        if s.draft_source in removed:
            s.draft_source = None
        if s.node_id in removed:
            self.hide_context_menu()
        elif s.relations:
            s.relations = [r for r in s.relations if self.store.has_edge(r.id)]
            if s.selected_edge_id is not None and not self.store.has_edge(s.selected_edge_id):
                s.selected_edge_id = s.relations[0].id if s.relations else None
            self._notify_change()

    def reset(self) -> None:
        self._state = ContextMenuState()
        self._notify_change()

    def _new_edge_id(self) -> str:
        while True:
            edge_id = f"{RELATION_ID_PREFIX}{self._next_id}"
            self._next_id += 1
            if not self.store.has_edge(edge_id):
                return edge_id

    def _refresh(self) -> None:
        if self.on_refresh is not None:
            self.on_refresh()

    def _notify_change(self):
        if self._on_state_change:
            self._on_state_change(self._state)
