"""Graph layout: TaskGraph -> ordered render lines.

Lane and row placement is computed upstream; this module only decides
grouping, ordering and connector topology. It holds no state between calls.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Sequence
from dataclasses import dataclass

from .graph import TaskGraph, TaskGraphNode, id_key
from .lines import (
    DRAFT_ISSUE_ID,
    ConnectorRenderLine,
    IssueRenderLine,
    Marker,
    RenderLine,
    SeparatorRenderLine,
)


@dataclass(frozen=True)
class DraftIssueContext:
    reference_issue_id: str | None
    is_above: bool
    pending_parent_id: str | None = None
    inherited_parent_id: str | None = None


def compute_layout(graph: TaskGraph | None, *, max_depth: int | None = None) -> list[RenderLine]:
    """Flatten ``graph`` into issue, connector and separator lines.

    ``max_depth`` hides nodes whose lane, relative to the leftmost lane of
    their group, exceeds it. Surviving children of a hidden parent are
    flagged with ``has_hidden_parent``.
    """
    if graph is None or not graph.nodes:
        return []

    result: list[RenderLine] = []
    for idx, group in enumerate(_group_nodes(graph.nodes)):
        if idx > 0:
            result.append(SeparatorRenderLine())
        min_lane = min(node.lane for node in group)
        visible = [
            node
            for node in group
            if max_depth is None or node.lane - min_lane <= max_depth
        ]
        _render_group(result, visible, group, min_lane)
    return result


def issue_lines(lines: Sequence[RenderLine]) -> list[IssueRenderLine]:
    return [line for line in lines if isinstance(line, IssueRenderLine)]


def marker_for(node: TaskGraphNode) -> Marker:
    if node.status == "complete":
        return "complete"
    if node.status in ("closed", "archived"):
        return "closed"
    return "actionable" if node.is_actionable else "open"


def _group_nodes(nodes: Sequence[TaskGraphNode]) -> list[list[TaskGraphNode]]:
    """Split nodes into connected components over parent edges (undirected)."""
    by_key = {id_key(node.issue_id): node for node in nodes}

    adjacency: dict[str, set[str]] = {key: set() for key in by_key}
    for node in nodes:
        key = id_key(node.issue_id)
        for parent_id in node.parent_issue_ids:
            parent_key = id_key(parent_id)
            if parent_key not in by_key or parent_key == key:
                continue
            adjacency[key].add(parent_key)
            adjacency[parent_key].add(key)

    visited: set[str] = set()
    groups: list[list[TaskGraphNode]] = []
    for node in nodes:
        start = id_key(node.issue_id)
        if start in visited:
            continue
        component: set[str] = set()
        q: deque[str] = deque([start])
        visited.add(start)
        while q:
            current = q.popleft()
            component.add(current)
            for neighbor in sorted(adjacency[current]):
                if neighbor not in visited:
                    visited.add(neighbor)
                    q.append(neighbor)

        members = [n for n in nodes if id_key(n.issue_id) in component]
        # Duplicate ids in the input collapse onto the last occurrence.
        seen: set[str] = set()
        group: list[TaskGraphNode] = []
        for member in members:
            member_key = id_key(member.issue_id)
            if member_key in seen:
                continue
            seen.add(member_key)
            group.append(by_key[member_key])
        group.sort(key=lambda n: n.row)
        groups.append(group)

    groups.sort(key=lambda g: g[0].row)
    return groups


def _effective_parent(
    node: TaskGraphNode,
    visible_by_key: dict[str, TaskGraphNode],
) -> TaskGraphNode | None:
    """The visible parent with the highest lane; the first listed wins ties."""
    chosen: TaskGraphNode | None = None
    for parent_id in node.parent_issue_ids:
        candidate = visible_by_key.get(id_key(parent_id))
        if candidate is None or candidate is node:
            continue
        if chosen is None or candidate.lane > chosen.lane:
            chosen = candidate
    return chosen


def _render_group(
    result: list[RenderLine],
    visible: list[TaskGraphNode],
    group: list[TaskGraphNode],
    min_lane: int,
) -> None:
    if not visible:
        return

    visible_by_key = {id_key(node.issue_id): node for node in visible}
    group_by_key = {id_key(node.issue_id): node for node in group}
    position = {id_key(node.issue_id): idx for idx, node in enumerate(visible)}

    parent_by_node: dict[str, TaskGraphNode] = {}
    series_lane_by_parent: dict[str, int] = {}
    for node in visible:
        parent = _effective_parent(node, visible_by_key)
        if parent is None:
            continue
        parent_by_node[id_key(node.issue_id)] = parent
        if parent.is_series:
            series_lane_by_parent[id_key(parent.issue_id)] = node.lane - min_lane

    # gap i sits between visible[i] and visible[i + 1]
    gap_lanes: list[set[int]] = [set() for _ in range(len(visible) - 1)]
    for child_key, parent in parent_by_node.items():
        child = visible_by_key[child_key]
        lo, hi = sorted((position[child_key], position[id_key(parent.issue_id)]))
        lane = (child.lane if parent.is_series else parent.lane) - min_lane
        for gap in range(lo, hi):
            gap_lanes[gap].add(lane)

    children_rendered: dict[str, int] = {}
    for idx, node in enumerate(visible):
        key = id_key(node.issue_id)
        parent = parent_by_node.get(key)

        is_first_child = False
        if parent is not None:
            parent_key = id_key(parent.issue_id)
            children_rendered[parent_key] = children_rendered.get(parent_key, 0) + 1
            is_first_child = children_rendered[parent_key] == 1

        has_hidden_parent = False
        hidden_parent_is_series = False
        for parent_id in node.parent_issue_ids:
            parent_key = id_key(parent_id)
            hidden = group_by_key.get(parent_key)
            if hidden is not None and parent_key not in visible_by_key:
                has_hidden_parent = True
                hidden_parent_is_series = hidden.is_series

        result.append(
            IssueRenderLine(
                issue_id=node.issue_id,
                title=node.title,
                lane=node.lane - min_lane,
                marker=marker_for(node),
                parent_lane=parent.lane - min_lane if parent is not None else None,
                is_first_child=is_first_child,
                is_series_child=parent is not None and parent.is_series,
                series_connector_from_lane=series_lane_by_parent.get(key),
                issue_type=node.type,
                status=node.status,
                has_description=bool(node.description and node.description.strip()),
                agent_status=node.agent_status,
                linked_pr=node.linked_pr,
                has_hidden_parent=has_hidden_parent,
                hidden_parent_is_series=hidden_parent_is_series,
            )
        )

        if idx < len(gap_lanes) and gap_lanes[idx]:
            result.append(ConnectorRenderLine(lanes=tuple(sorted(gap_lanes[idx]))))


def compute_draft_issue_line(
    graph: TaskGraph | None,
    draft: DraftIssueContext,
    lines: Sequence[RenderLine],
) -> IssueRenderLine | None:
    """Render line for an issue that is being created but not yet persisted."""
    if graph is None:
        return None

    existing = issue_lines(lines)
    ref_line = _find_line(existing, draft.reference_issue_id)
    ref_lane = ref_line.lane if ref_line is not None else 0
    lane = ref_lane
    parent_lane: int | None = None
    is_series_child = False

    if draft.pending_parent_id is not None:
        parent_line = _find_line(existing, draft.pending_parent_id)
        # The parent conceptually shifts one lane right to make room.
        lane = parent_line.lane if parent_line is not None else ref_lane
        parent_lane = lane + 1
        parent_node = graph.find(draft.pending_parent_id)
        is_series_child = parent_node is not None and parent_node.is_series
    elif draft.inherited_parent_id is not None:
        parent_lane = ref_line.parent_lane if ref_line is not None else None
        parent_node = graph.find(draft.inherited_parent_id)
        is_series_child = parent_node is not None and parent_node.is_series

    return IssueRenderLine(
        issue_id=DRAFT_ISSUE_ID,
        title="",
        lane=lane,
        marker="open",
        parent_lane=parent_lane,
        is_series_child=is_series_child,
    )


def _find_line(lines: Sequence[IssueRenderLine], issue_id: str | None) -> IssueRenderLine | None:
    if not issue_id:
        return None
    key = id_key(issue_id)
    for line in lines:
        if id_key(line.issue_id) == key:
            return line
    return None
