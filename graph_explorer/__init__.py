"""
graph-explorer: incremental node-link graph view model.

The store, layout pipeline, expansion controller, interaction engine and
relation editor live in this package; app.py binds them to a NiceGUI page.
"""

__version__ = "0.1.0"
