"""
Relation editing (context menu, relation drafts, relation deletion).
"""

from graph_explorer.edit.controller import ContextMenuState, RelationEditor, RelationEntry

__all__ = ['ContextMenuState', 'RelationEditor', 'RelationEntry']
