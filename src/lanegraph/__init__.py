from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "NavigationState",
    "TaskGraph",
    "TaskGraphNode",
    "compute_layout",
    "compute_draft_issue_line",
    "load_graph",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .graph import TaskGraph, TaskGraphNode, load_graph
    from .layout import compute_draft_issue_line, compute_layout
    from .navigation import NavigationState


def __getattr__(name: str):
    if name in {"TaskGraph", "TaskGraphNode", "load_graph"}:
        from .graph import TaskGraph, TaskGraphNode, load_graph

        return {
            "TaskGraph": TaskGraph,
            "TaskGraphNode": TaskGraphNode,
            "load_graph": load_graph,
        }[name]
    if name in {"compute_layout", "compute_draft_issue_line"}:
        from .layout import compute_draft_issue_line, compute_layout

        return {
            "compute_layout": compute_layout,
            "compute_draft_issue_line": compute_draft_issue_line,
        }[name]
    if name == "NavigationState":
        from .navigation import NavigationState

        return NavigationState
    raise AttributeError(f"module 'lanegraph' has no attribute {name!r}")
