"""
Configuration management for graph-explorer.

Handles the style configuration handed to the render surface and the
layout pipeline:
- Built-in defaults (colours, sizes, animation timings, layout spacing)
- Overrides from the "graph" section of config.json
- Environment overrides (optionally loaded from .env)

Config is stored in config.json next to the executable/project root.
"""

import copy
import json
import logging
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from graph_explorer.paths import get_config_path, get_env_path

logger = logging.getLogger(__name__)


DEFAULT_GRAPH_CONFIG: Dict[str, Any] = {
    'renderer': {
        'render_labels': True,
        'render_edge_labels': True,
        'default_node_color': '#999999',
        'default_edge_color': '#cccccc',
    },
    'defaults': {
        'node': {'size': 20, 'highlighted': False},
        'edge': {'color': '#cccccc', 'size': 2},
    },
    'animations': {
        'reset_position': {'duration': 500, 'margin': 0.15},
        'hover': {
            'center_node_size': 30,
            'neighbor_node_size': 25,
            'dimmed_node_size': 15,
            'highlighted_edge_size': 4,
            'dimmed_edge_size': 1,
            'simple_node_size': 25,
            'pulse_speed': 0.1,
            'pulse_color_from': '#ff6b6b',
            'pulse_color_to': '#69cfcf',
            'pulse_width_from': 3,
            'pulse_width_to': 5,
        },
        'frame_interval': 1 / 60,
    },
    'colors': {
        'highlighted': '#ff6b6b',
        'dimmed': '#cccccc',
        'dimmed_edge': '#e0e0e0',
    },
    'kind_colors': {
        'EVENT': '#e67e22',
        'VEHICLE': '#27ae60',
        'ADDRESS': '#45b7d1',
        'PERSON': '#8e44ad',
    },
    'layout': {
        'mode': 'hierarchy',
        'circle_radius': 700,
        'column_gap': 260,
        'row_gap': 160,
        'layer_spacing': 80,
        'node_spacing': 60,
        'node_height': 36,
        'min_node_width': 80,
        'max_node_width': 260,
        'placement_jitter': 300,
        'child_base_radius': 260,
        'child_radius_log_factor': 60,
        'child_ring_step': 30,
        'child_rings': 8,
        'overlap': {'margin': 6, 'max_iterations': 400},
        'timeout': 5.0,
    },
    'expansion': {
        'min_children': 3,
        'max_children': 6,
        'max_extra_links': 2,
    },
    'hover_mode': True,
}


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError):
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def _deep_merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_graph_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the effective graph configuration.

    Priority (highest first):
    1. Explicit overrides passed by the caller
    2. Environment variables GRAPH_EXPLORER_LAYOUT_TIMEOUT / GRAPH_EXPLORER_HOVER_MODE
    3. The "graph" section of config.json
    4. DEFAULT_GRAPH_CONFIG
    """
    load_dotenv(get_env_path())
    config = copy.deepcopy(DEFAULT_GRAPH_CONFIG)

    stored = load_config().get('graph')
    if isinstance(stored, dict):
        _deep_merge(config, stored)

    timeout = os.environ.get('GRAPH_EXPLORER_LAYOUT_TIMEOUT')
    if timeout:
        try:
            config['layout']['timeout'] = float(timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid GRAPH_EXPLORER_LAYOUT_TIMEOUT: {timeout!r}")

    hover_mode = os.environ.get('GRAPH_EXPLORER_HOVER_MODE')
    if hover_mode:
        config['hover_mode'] = _env_flag(hover_mode)

    if overrides:
        _deep_merge(config, copy.deepcopy(overrides))
    return config
