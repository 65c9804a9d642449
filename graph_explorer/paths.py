"""
Path utilities for graph-explorer.

config.json and .env are looked up in the application directory:
- GRAPH_EXPLORER_HOME when set
- the executable's directory when frozen (PyInstaller)
- the project root otherwise
"""

import os
import sys
from pathlib import Path

APP_DIR_ENV = 'GRAPH_EXPLORER_HOME'


def get_app_dir() -> Path:
    override = os.environ.get(APP_DIR_ENV)
    if override:
        return Path(override).expanduser()
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    # parent of graph_explorer/
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    """Style and layout overrides, under the 'graph' key."""
    return get_app_dir() / "config.json"


def get_env_path() -> Path:
    return get_app_dir() / ".env"
