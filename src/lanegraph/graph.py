"""Task graph snapshot: nodes with pre-computed lane/row placement."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

import yaml


IssueStatus = Literal["open", "progress", "review", "complete", "archived", "closed"]
IssueType = Literal["task", "bug", "feature", "chore"]
ExecutionMode = Literal["series", "parallel"]

ISSUE_STATUSES: tuple[str, ...] = ("open", "progress", "review", "complete", "archived", "closed")
ISSUE_TYPES: tuple[str, ...] = ("task", "bug", "feature", "chore")
EXECUTION_MODES: tuple[str, ...] = ("series", "parallel")


class GraphFormatError(ValueError):
    pass


def id_key(issue_id: str) -> str:
    return issue_id.casefold()


@dataclass(frozen=True)
class TaskGraphNode:
    issue_id: str
    title: str
    lane: int
    row: int
    parent_issue_ids: tuple[str, ...] = ()
    execution_mode: ExecutionMode = "parallel"
    is_actionable: bool = False
    status: IssueStatus = "open"
    type: IssueType = "task"
    description: str | None = None
    agent_status: str | None = None
    linked_pr: int | None = None
    priority: int | None = None
    parent_sort_orders: Mapping[str, str] = field(default_factory=dict)

    @property
    def is_series(self) -> bool:
        return self.execution_mode == "series"


@dataclass(frozen=True)
class TaskGraph:
    nodes: tuple[TaskGraphNode, ...] = ()

    def find(self, issue_id: str | None) -> TaskGraphNode | None:
        if not issue_id:
            return None
        key = id_key(issue_id)
        for node in self.nodes:
            if id_key(node.issue_id) == key:
                return node
        return None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> TaskGraph:
        raw_nodes = payload.get("nodes")
        if raw_nodes is None:
            return cls()
        if not isinstance(raw_nodes, list):
            raise GraphFormatError("nodes must be a list")
        return cls(nodes=tuple(_parse_node(raw, idx) for idx, raw in enumerate(raw_nodes)))


def _choice(raw: Mapping[str, Any], key: str, choices: tuple[str, ...], default: str, *, idx: int) -> str:
    value = raw.get(key)
    if value is None:
        return default
    text = str(value).strip().lower()
    if text not in choices:
        expected = ", ".join(choices)
        raise GraphFormatError(
            f"nodes[{idx}].{key}: invalid value {value!r}; expected one of: {expected}"
        )
    return text


def _int(raw: Mapping[str, Any], key: str, *, idx: int) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise GraphFormatError(f"nodes[{idx}].{key} must be an integer")
    if value < 0:
        raise GraphFormatError(f"nodes[{idx}].{key} must be non-negative")
    return value


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_node(raw: object, idx: int) -> TaskGraphNode:
    if not isinstance(raw, Mapping):
        raise GraphFormatError(f"nodes[{idx}] must be a mapping")

    issue_id = _optional_text(raw.get("issue_id", raw.get("id")))
    if issue_id is None:
        raise GraphFormatError(f"nodes[{idx}].issue_id is required")

    parents_raw = raw.get("parent_issue_ids", raw.get("parents")) or []
    if not isinstance(parents_raw, list):
        raise GraphFormatError(f"nodes[{idx}].parent_issue_ids must be a list")
    parents = tuple(str(p).strip() for p in parents_raw if str(p).strip())

    sort_orders_raw = raw.get("parent_sort_orders") or {}
    if not isinstance(sort_orders_raw, Mapping):
        raise GraphFormatError(f"nodes[{idx}].parent_sort_orders must be a mapping")

    linked_pr = raw.get("linked_pr")
    if linked_pr is not None and (isinstance(linked_pr, bool) or not isinstance(linked_pr, int)):
        raise GraphFormatError(f"nodes[{idx}].linked_pr must be an integer")
    priority = raw.get("priority")
    if priority is not None and (isinstance(priority, bool) or not isinstance(priority, int)):
        raise GraphFormatError(f"nodes[{idx}].priority must be an integer")

    return TaskGraphNode(
        issue_id=issue_id,
        title=str(raw.get("title") or ""),
        lane=_int(raw, "lane", idx=idx),
        row=_int(raw, "row", idx=idx),
        parent_issue_ids=parents,
        execution_mode=_choice(raw, "execution_mode", EXECUTION_MODES, "parallel", idx=idx),
        is_actionable=bool(raw.get("is_actionable", False)),
        status=_choice(raw, "status", ISSUE_STATUSES, "open", idx=idx),
        type=_choice(raw, "type", ISSUE_TYPES, "task", idx=idx),
        description=_optional_text(raw.get("description")),
        agent_status=_optional_text(raw.get("agent_status")),
        linked_pr=linked_pr,
        priority=priority,
        parent_sort_orders={str(k): str(v) for k, v in sort_orders_raw.items()},
    )


def load_graph(path: str | Path) -> TaskGraph:
    """Load a graph snapshot from a JSON or YAML file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix in (".yaml", ".yml"):
            payload = yaml.safe_load(text)
        else:
            payload = json.loads(text) if text.strip() else {}
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise GraphFormatError(f"{path}: {exc}") from exc

    if payload is None:
        return TaskGraph()
    if isinstance(payload, list):
        payload = {"nodes": payload}
    if not isinstance(payload, Mapping):
        raise GraphFormatError(f"{path}: expected a mapping with a 'nodes' list")
    return TaskGraph.from_dict(payload)
