"""CLI commands for coursegraph."""

from . import config_cmd, expr, graph, key

__all__ = ["config_cmd", "expr", "graph", "key"]
