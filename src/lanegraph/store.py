"""JSONL-backed issue store."""

from __future__ import annotations

import json
import os
import time
import uuid
from pathlib import Path
from typing import Any

from .graph import ISSUE_STATUSES, ISSUE_TYPES, id_key


def _now() -> int:
    return int(time.time())


class IssueNotFoundError(KeyError):
    pass


class IssueStoreError(ValueError):
    """A row in issues.jsonl is not an issue record."""


# ---------------------------------------------------------------------------
# IssueStore
# ---------------------------------------------------------------------------


class IssueStore:
    """Issue records stored one per line in .lanegraph/issues.jsonl."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def from_workdir(cls, root: Path | None = None) -> IssueStore:
        root = root or Path.cwd()
        return cls(root / ".lanegraph" / "issues.jsonl")

    # -- read helpers -------------------------------------------------------

    def _load(self) -> list[dict]:
        if not self.path.exists():
            return []
        rows: list[dict] = []
        for lineno, line in enumerate(self.path.read_text(encoding="utf-8").splitlines(), start=1):
            if not line.strip():
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as exc:
                raise IssueStoreError(f"{self.path}:{lineno}: {exc.msg}") from exc
            if not isinstance(row, dict) or not isinstance(row.get("id"), str):
                raise IssueStoreError(f"{self.path}:{lineno}: expected an issue object with a string id")
            rows.append(row)
        return rows

    def _save(self, rows: list[dict]) -> None:
        # Write to a sibling temp file, then swap it in.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(
            "".join(json.dumps(row, separators=(",", ":"), ensure_ascii=False) + "\n" for row in rows),
            encoding="utf-8",
        )
        os.replace(tmp, self.path)

    def _find(self, rows: list[dict], issue_id: str) -> dict | None:
        key = id_key(issue_id)
        for r in rows:
            if id_key(r["id"]) == key:
                return r
        return None

    def _require(self, rows: list[dict], issue_id: str) -> dict:
        issue = self._find(rows, issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    # -- public API ---------------------------------------------------------

    def create(
        self,
        title: str,
        *,
        parent_id: str | None = None,
        sort_order: str | None = None,
        issue_type: str = "task",
    ) -> dict:
        if issue_type not in ISSUE_TYPES:
            raise ValueError(f"unknown issue type {issue_type!r}")
        rows = self._load()
        parents: list[dict[str, Any]] = []
        if parent_id is not None:
            parent = self._require(rows, parent_id)
            parents.append({"id": parent["id"], "sort_order": sort_order})

        now = _now()
        issue = {
            "id": f"lg-{uuid.uuid4().hex[:8]}",
            "title": title,
            "type": issue_type,
            "status": "open",
            "parents": parents,
            "created_at": now,
            "updated_at": now,
        }
        rows.append(issue)
        self._save(rows)
        return issue

    def get(self, issue_id: str) -> dict | None:
        return self._find(self._load(), issue_id)

    def list(
        self,
        *,
        status: str | None = None,
        parent_id: str | None = None,
    ) -> list[dict]:
        rows = self._load()
        if status:
            rows = [r for r in rows if r["status"] == status]
        if parent_id:
            key = id_key(parent_id)
            rows = [
                r for r in rows
                if any(id_key(p["id"]) == key for p in r.get("parents", []))
            ]
        return rows

    def update(self, issue_id: str, **fields: Any) -> dict:
        rows = self._load()
        issue = self._require(rows, issue_id)
        for k, v in fields.items():
            if k == "id":
                continue
            issue[k] = v
        issue["updated_at"] = _now()
        self._save(rows)
        return issue

    def set_type(self, issue_id: str, issue_type: str) -> dict:
        if issue_type not in ISSUE_TYPES:
            raise ValueError(f"unknown issue type {issue_type!r}")
        return self.update(issue_id, type=issue_type)

    def set_status(self, issue_id: str, status: str) -> dict:
        if status not in ISSUE_STATUSES:
            raise ValueError(f"unknown issue status {status!r}")
        return self.update(issue_id, status=status)

    # -- hierarchy ----------------------------------------------------------

    def set_parent(
        self,
        issue_id: str,
        parent_id: str | None,
        *,
        add_to_existing: bool = False,
        sort_order: str | None = None,
    ) -> dict:
        """Point ``issue_id`` at ``parent_id``; ``None`` detaches it from all parents."""
        rows = self._load()
        issue = self._require(rows, issue_id)

        if parent_id is None:
            issue["parents"] = []
        else:
            parent = self._require(rows, parent_id)
            if parent["id"] in self._descendant_ids(rows, issue["id"]):
                raise ValueError(
                    f"cannot parent {issue['id']} under its own descendant {parent['id']}"
                )
            entry = {"id": parent["id"], "sort_order": sort_order}
            existing = [
                p for p in issue.get("parents", [])
                if id_key(p["id"]) != id_key(parent["id"])
            ]
            issue["parents"] = existing + [entry] if add_to_existing else [entry]

        issue["updated_at"] = _now()
        self._save(rows)
        return issue

    def children(self, parent_id: str) -> list[dict]:
        return self.list(parent_id=parent_id)

    def _descendant_ids(self, rows: list[dict], root_id: str) -> set[str]:
        children_of: dict[str, list[str]] = {}
        for r in rows:
            for p in r.get("parents", []):
                children_of.setdefault(id_key(p["id"]), []).append(r["id"])

        seen: set[str] = set()
        stack = [root_id]
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(children_of.get(id_key(current), []))
        return seen
