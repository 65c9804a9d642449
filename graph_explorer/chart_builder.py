"""
ECharts options builder for graph-explorer.

Converts the live GraphStore into a single ECharts `graph` series with
fixed positions (layout 'none'), and translates NiceGUI chart event
payloads back into node ids.
"""

from typing import Any, Dict, List, Optional, Tuple

from graph_explorer.graph_store import GraphStore
from graph_explorer.surface import CameraState


# Event keys we request from ECharts node events
REQUESTED_EVENT_KEYS = ['componentType', 'dataType', 'name', 'value']

BACKGROUND_COLOR = '#ffffff'


def data_extent(store: GraphStore) -> Tuple[float, float, float, float]:
    """(min_x, min_y, max_x, max_y) of node centres; zeros for an empty store."""
    positions = list(store.positions().values())
    if not positions:
        return 0.0, 0.0, 0.0, 0.0
    xs = [p[0] for p in positions]
    ys = [p[1] for p in positions]
    return min(xs), min(ys), max(xs), max(ys)


def camera_to_view(
    camera: CameraState,
    extent: Tuple[float, float, float, float],
    dimensions: Tuple[float, float],
) -> Dict[str, Any]:
    """
    Map a camera state onto the graph series 'center'/'zoom' pair.

    ECharts first scales the data extent to fit the chart box, then
    applies zoom around center. The camera ratio is graph units per pixel,
    so zoom = (1 / ratio) / fit_scale. Approximate for degenerate extents.
    """
    width, height = dimensions
    min_x, min_y, max_x, max_y = extent
    extent_w = max(max_x - min_x, 1.0)
    extent_h = max(max_y - min_y, 1.0)
    fit_scale = min(width / extent_w, height / extent_h)
    zoom = (1.0 / max(camera.ratio, 1e-6)) / max(fit_scale, 1e-6)
    return {'center': [camera.x, camera.y], 'zoom': zoom}


def build_node(node_id: str, data: Dict[str, Any], config: Dict) -> Dict[str, Any]:
    label = data.get('label') or node_id
    color = data.get('color') or config['renderer']['default_node_color']
    size = data.get('size') or config['defaults']['node']['size']
    image = data.get('image')
    e_node = {
        'id': node_id,
        'name': node_id,
        'value': label,
        'x': data.get('x') or 0.0,
        'y': data.get('y') or 0.0,
        'symbol': f"image://{image}" if image else 'circle',
        # ECharts sizes are diameters, store sizes are radii
        'symbolSize': size * 2,
        'itemStyle': {'color': color},
        'label': {
            'show': config['renderer'].get('render_labels', True),
            'formatter': label,
            'position': 'bottom',
            'fontWeight': 'bold' if data.get('highlighted') else 'normal',
        },
    }
    if data.get('highlighted'):
        e_node['itemStyle']['borderColor'] = config['colors']['highlighted']
        e_node['itemStyle']['borderWidth'] = 2
    return e_node


def build_link(edge_id: str, source: str, target: str, data: Dict[str, Any], config: Dict) -> Dict[str, Any]:
    label = data.get('label') or ''
    return {
        'id': edge_id,
        'source': source,
        'target': target,
        'value': label,
        'symbol': ['none', 'arrow'],
        'symbolSize': 8,
        'lineStyle': {
            'color': data.get('color') or config['renderer']['default_edge_color'],
            'width': data.get('size') or config['defaults']['edge']['size'],
            'curveness': 0,
            'opacity': 1.0,
        },
        'label': {
            'show': bool(label) and config['renderer'].get('render_edge_labels', True),
            'formatter': label,
            'fontSize': 10,
        },
    }


def build_echart_options(
    store: GraphStore,
    config: Dict,
    roam: bool = True,
    view: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build ECharts options from the live store.

    Args:
        store: graph to draw
        config: style configuration
        roam: whether interactive pan/zoom is enabled (camera enabled)
        view: optional {'center': [x, y], 'zoom': z} from camera_to_view

    Returns:
        ECharts options dict ready for ui.echart()
    """
    e_nodes: List[Dict[str, Any]] = [
        build_node(node_id, data, config) for node_id, data in store.iter_nodes()
    ]
    e_links: List[Dict[str, Any]] = []
    for edge_id in store.edges():
        source, target = store.edge_endpoints(edge_id)
        e_links.append(build_link(edge_id, source, target, store.edge_attributes(edge_id), config))

    series = {
        'type': 'graph',
        'layout': 'none',
        'roam': roam,
        'draggable': False,
        'edgeLabel': {'show': config['renderer'].get('render_edge_labels', True)},
        'emphasis': {'disabled': True},
        'data': e_nodes,
        'links': e_links,
    }
    if view:
        series.update(view)

    return {
        'backgroundColor': BACKGROUND_COLOR,
        'tooltip': {'show': False},
        'animation': True,
        'animationDurationUpdate': 0,  # positions come from the layout pipeline
        'series': [series],
    }


def normalize_click_payload(raw_payload: Any) -> Dict[str, Any]:
    """Normalize NiceGUI chart event payloads into a dictionary for easier parsing."""
    if isinstance(raw_payload, dict):
        return raw_payload
    if isinstance(raw_payload, (list, tuple)):
        return {
            REQUESTED_EVENT_KEYS[i]: raw_payload[i]
            for i in range(min(len(raw_payload), len(REQUESTED_EVENT_KEYS)))
        }
    if isinstance(raw_payload, str):
        return {'name': raw_payload}
    return {}


def resolve_node_id_from_payload(payload: Dict[str, Any], store: GraphStore) -> Optional[str]:
    """Return a node id from a normalized payload, validated against the store."""
    if not isinstance(payload, dict):
        return None
    if payload.get('componentType') != 'series':
        return None
    if payload.get('dataType') not in (None, 'node'):
        return None

    node_id = payload.get('name')
    if not node_id:
        return None
    if store.has_node(node_id):
        return node_id

    # fall back to a label match
    for candidate, data in store.iter_nodes():
        if data.get('label') == node_id:
            return candidate
    return None
