"""Render lines: the flattened, display-ready form of a task graph.

A layout is an ordered sequence of exactly three kinds of line. Renderers
switch over them exhaustively and never re-derive graph topology.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, Union

from .graph import IssueStatus, IssueType


Marker = Literal["actionable", "open", "complete", "closed"]

DRAFT_ISSUE_ID = "DRAFT"


@dataclass(frozen=True)
class IssueRenderLine:
    issue_id: str
    title: str
    lane: int
    marker: Marker
    parent_lane: int | None = None
    is_first_child: bool = False
    is_series_child: bool = False
    # Set on a series-mode parent: lane the L-shaped connector arrives from.
    series_connector_from_lane: int | None = None
    issue_type: IssueType = "task"
    status: IssueStatus = "open"
    has_description: bool = False
    agent_status: str | None = None
    linked_pr: int | None = None
    has_hidden_parent: bool = False
    hidden_parent_is_series: bool = False

    kind: Literal["issue"] = "issue"


@dataclass(frozen=True)
class ConnectorRenderLine:
    # Lanes carrying a vertical segment through the gap between two issue rows.
    lanes: tuple[int, ...]

    kind: Literal["connector"] = "connector"


@dataclass(frozen=True)
class SeparatorRenderLine:
    kind: Literal["separator"] = "separator"


RenderLine = Union[IssueRenderLine, ConnectorRenderLine, SeparatorRenderLine]


def line_to_dict(line: RenderLine) -> dict[str, Any]:
    payload = asdict(line)
    if isinstance(line, ConnectorRenderLine):
        payload["lanes"] = list(line.lanes)
    return payload
