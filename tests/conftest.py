from __future__ import annotations

import asyncio
from typing import Any

import pytest

from lanegraph.api import InsertionHint
from lanegraph.graph import TaskGraph, TaskGraphNode
from lanegraph.layout import compute_layout, issue_lines
from lanegraph.navigation import NavigationState


def node(issue_id: str, lane: int, row: int, *parents: str, **kwargs: Any) -> TaskGraphNode:
    return TaskGraphNode(
        issue_id=issue_id,
        title=kwargs.pop("title", f"Title {issue_id}"),
        lane=lane,
        row=row,
        parent_issue_ids=tuple(parents),
        **kwargs,
    )


def graph(*nodes: TaskGraphNode) -> TaskGraph:
    return TaskGraph(nodes=tuple(nodes))


class RecordingIssueApi:
    """In-memory IssueApi that records calls and can fail on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.fail_with: Exception | None = None
        self.created = 0
        # Runs inside the awaited call; lets a test mutate state mid-flight.
        self.during_call: Any = None
        # When set, calls block until the event is set.
        self.gate: asyncio.Event | None = None

    async def _record(self, *call: Any) -> None:
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.during_call is not None:
            hook, self.during_call = self.during_call, None
            hook()
        if self.fail_with is not None:
            raise self.fail_with

    async def create_issue(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        insertion: InsertionHint | None = None,
    ) -> str:
        await self._record("create_issue", title, parent_id, insertion)
        self.created += 1
        return f"NEW-{self.created}"

    async def update_title(self, issue_id: str, title: str) -> None:
        await self._record("update_title", issue_id, title)

    async def reparent(
        self,
        issue_id: str,
        new_parent_id: str | None,
        *,
        add_to_existing: bool = False,
    ) -> None:
        await self._record("reparent", issue_id, new_parent_id, add_to_existing)

    async def update_type(self, issue_id: str, issue_type: str) -> None:
        await self._record("update_type", issue_id, issue_type)

    async def update_status(self, issue_id: str, status: str) -> None:
        await self._record("update_status", issue_id, status)


class ManualClock:
    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def api() -> RecordingIssueApi:
    return RecordingIssueApi()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def three_level_graph() -> TaskGraph:
    """ISSUE-001 -> ISSUE-002 -> ISSUE-003 (leaf first, root last)."""
    return graph(
        node("ISSUE-003", 0, 0, "ISSUE-002", is_actionable=True, title="Leaf work"),
        node("ISSUE-002", 1, 1, "ISSUE-001", title="Middle step"),
        node("ISSUE-001", 2, 2, title="Root epic"),
    )


@pytest.fixture
def nav_factory(api: RecordingIssueApi, clock: ManualClock):
    def make(task_graph: TaskGraph | None = None) -> NavigationState:
        nav = NavigationState(api, clock=clock)
        if task_graph is not None:
            nav.initialize(issue_lines(compute_layout(task_graph)))
            nav.set_task_graph(task_graph)
        return nav

    return make
