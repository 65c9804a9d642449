"""
Loads dataset records into a GraphStore.
"""

import logging
from typing import Dict, Iterable, List, Optional

from graph_explorer.datasets import Dataset, DatasetEdge, DatasetNode, display_name, edge_label, image_ref
from graph_explorer.errors import DuplicateEdge, UnknownEndpoint
from graph_explorer.graph_store import GraphStore
from graph_explorer.layout import LayoutPipeline

logger = logging.getLogger(__name__)


def kind_color(kind: Optional[str], config: Dict) -> str:
    return config['kind_colors'].get(kind, config['renderer']['default_node_color'])


def add_nodes(
    store: GraphStore,
    nodes: Iterable[DatasetNode],
    config: Dict,
    pipeline: Optional[LayoutPipeline] = None,
) -> List[str]:
    """
    Add node records; returns the ids that were newly created.

    A record whose id already exists is merged instead: a blank label gets
    the display name and an image reference is attached.

    Placement: a batch on an empty store goes on the seed circle; later
    additions land near the centre of the existing graph.
    """
    nodes = list(nodes)
    was_empty = store.order == 0
    size = config['defaults']['node']['size']
    created: List[str] = []

    for record in nodes:
        label = display_name(record)
        image = image_ref(record)
        if store.has_node(record.id):
            if not store.get_node_attribute(record.id, 'label'):
                store.set_node_attribute(record.id, 'label', label)
            if image:
                store.set_node_attribute(record.id, 'image', image)
            continue

        color = kind_color(record.kind, config)
        x, y = (0.0, 0.0)
        if pipeline is not None and not was_empty:
            x, y = pipeline.jitter_position()
        store.add_node(
            record.id,
            label=label,
            color=color,
            base_color=color,
            size=size,
            x=x,
            y=y,
            highlighted=False,
            image=image,
            kind=record.kind,
        )
        created.append(record.id)

    if pipeline is not None and was_empty and created:
        pipeline.apply_positions(pipeline.initial_positions(created))
    return created


def add_edges(store: GraphStore, edges: Iterable[DatasetEdge], config: Dict) -> List[str]:
    """Add edge records, skipping any the store rejects. Returns added ids."""
    edge_defaults = config['defaults']['edge']
    added: List[str] = []
    for record in edges:
        try:
            store.add_edge(
                record.id,
                record.start_id,
                record.end_id,
                label=edge_label(record),
                color=edge_defaults['color'],
                size=edge_defaults['size'],
            )
        except UnknownEndpoint as e:
            logger.warning(f"Skipping edge {record.id}: {e}")
            continue
        except DuplicateEdge as e:
            logger.info(f"Skipping edge {record.id}: {e}")
            continue
        added.append(record.id)
    return added


def load_dataset(
    store: GraphStore,
    dataset: Dataset,
    config: Dict,
    pipeline: Optional[LayoutPipeline] = None,
) -> None:
    """Populate the store from a dataset (nodes first, then relations)."""
    add_nodes(store, dataset.nodes, config, pipeline)
    add_edges(store, dataset.relations, config)
    logger.info(f"Loaded dataset '{dataset.name}': {store.order} nodes, {store.size} edges")
