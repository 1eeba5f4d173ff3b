"""Persistence boundary used by the navigation state machine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .graph import IssueStatus, IssueType
from .store import IssueStore


@dataclass(frozen=True)
class InsertionHint:
    reference_issue_id: str | None
    is_above: bool
    sort_order: str | None = None


class IssueApi(Protocol):
    async def create_issue(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        insertion: InsertionHint | None = None,
    ) -> str: ...

    async def update_title(self, issue_id: str, title: str) -> None: ...

    async def reparent(
        self,
        issue_id: str,
        new_parent_id: str | None,
        *,
        add_to_existing: bool = False,
    ) -> None: ...

    async def update_type(self, issue_id: str, issue_type: IssueType) -> None: ...

    async def update_status(self, issue_id: str, status: IssueStatus) -> None: ...


class JsonlIssueApi:
    """IssueApi over a local IssueStore."""

    def __init__(self, store: IssueStore) -> None:
        self.store = store

    async def create_issue(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        insertion: InsertionHint | None = None,
    ) -> str:
        issue = self.store.create(
            title,
            parent_id=parent_id,
            sort_order=insertion.sort_order if insertion else None,
        )
        return issue["id"]

    async def update_title(self, issue_id: str, title: str) -> None:
        self.store.update(issue_id, title=title)

    async def reparent(
        self,
        issue_id: str,
        new_parent_id: str | None,
        *,
        add_to_existing: bool = False,
    ) -> None:
        self.store.set_parent(issue_id, new_parent_id, add_to_existing=add_to_existing)

    async def update_type(self, issue_id: str, issue_type: IssueType) -> None:
        self.store.set_type(issue_id, issue_type)

    async def update_status(self, issue_id: str, status: IssueStatus) -> None:
        self.store.set_status(issue_id, status)
