"""Modal keyboard navigation over a flattened task graph.

``NavigationState`` keeps a single selection over the issue lines of a
layout, plus exactly one edit mode and an optional search. Commands that
are not allowed in the current mode are ignored rather than raised, and
state-change observers fire once for every command that changed something
visible.

Persistence calls (accepting an edit, completing a move, cycling a type or
status) capture everything they send into an immutable snapshot before the
first ``await``. Once the call returns, pending state is cleared only if
the same pending value is still active, so a cancel or re-initialisation
that happened in the meantime is never overwritten by a late response.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, replace
from typing import Callable, Literal, Union

from .api import InsertionHint, IssueApi
from .graph import ISSUE_TYPES, IssueStatus, IssueType, TaskGraph, id_key
from .layout import DraftIssueContext
from .lexorder import lexical_midpoint
from .lines import IssueRenderLine


EditModeName = Literal["viewing", "editing_existing", "creating_new", "selecting_move_target"]
CursorPosition = Literal["start", "end", "replace"]
MoveOperation = Literal["as_child_of", "as_parent_of"]

DEFAULT_CYCLE_DEBOUNCE_SECONDS = 3.0

TYPE_CYCLE: tuple[IssueType, ...] = ("task", "bug", "feature", "chore")
STATUS_CYCLE: tuple[IssueStatus, ...] = ("open", "progress", "review", "complete")

StateChangedFn = Callable[[], None]
IssueChangedFn = Callable[[], Awaitable[None]]
OpenEditRequestedFn = Callable[[str], None]


@dataclass(frozen=True)
class PendingEdit:
    issue_id: str
    title: str
    original_title: str
    cursor_position: CursorPosition


@dataclass(frozen=True)
class PendingNewIssue:
    insert_at_index: int
    is_above: bool
    reference_issue_id: str | None
    title: str = ""
    pending_parent_id: str | None = None
    inherited_parent_id: str | None = None
    inherited_sort_order: str | None = None

    @property
    def parent_id(self) -> str | None:
        if self.pending_parent_id is not None:
            return self.pending_parent_id
        return self.inherited_parent_id


@dataclass(frozen=True)
class Viewing:
    name: Literal["viewing"] = "viewing"


@dataclass(frozen=True)
class EditingExisting:
    edit: PendingEdit
    name: Literal["editing_existing"] = "editing_existing"


@dataclass(frozen=True)
class CreatingNew:
    new_issue: PendingNewIssue
    name: Literal["creating_new"] = "creating_new"


@dataclass(frozen=True)
class SelectingMoveTarget:
    operation: MoveOperation
    source_issue_id: str
    name: Literal["selecting_move_target"] = "selecting_move_target"


EditState = Union[Viewing, EditingExisting, CreatingNew, SelectingMoveTarget]

VIEWING = Viewing()


@dataclass(frozen=True)
class SearchState:
    is_searching: bool = False
    is_embedded: bool = False
    term: str = ""
    matching_indices: tuple[int, ...] = ()
    current_match_index: int = -1

    @property
    def is_active(self) -> bool:
        return self.is_searching or self.is_embedded


NO_SEARCH = SearchState()


@dataclass(frozen=True)
class TitleUpdate:
    """A title change for an existing issue, fixed before the await."""

    issue_id: str
    title: str


@dataclass(frozen=True)
class IssueCreation:
    """A new issue with its parent and placement, fixed before the await."""

    title: str
    parent_id: str | None
    insertion: InsertionHint


AcceptSnapshot = Union[TitleUpdate, IssueCreation]


_UNSET = object()


class NavigationState:
    def __init__(
        self,
        api: IssueApi,
        *,
        cycle_debounce_seconds: float = DEFAULT_CYCLE_DEBOUNCE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api = api
        self.cycle_debounce_seconds = cycle_debounce_seconds
        self._clock = clock

        self._lines: tuple[IssueRenderLine, ...] = ()
        self._graph: TaskGraph | None = None
        self._selected_index = -1
        self._mode: EditState = VIEWING
        self._search: SearchState = NO_SEARCH
        self._in_flight: EditState | None = None
        self._last_cycle: dict[str, float] = {}

        self._state_changed: list[StateChangedFn] = []
        self._issue_changed: list[IssueChangedFn] = []
        self._open_edit_requested: list[OpenEditRequestedFn] = []

    # -- observers -----------------------------------------------------------

    def subscribe(self, callback: StateChangedFn) -> Callable[[], None]:
        self._state_changed.append(callback)
        return lambda: self._remove(self._state_changed, callback)

    def subscribe_issue_changed(self, callback: IssueChangedFn) -> Callable[[], None]:
        self._issue_changed.append(callback)
        return lambda: self._remove(self._issue_changed, callback)

    def subscribe_open_edit_requested(self, callback: OpenEditRequestedFn) -> Callable[[], None]:
        self._open_edit_requested.append(callback)
        return lambda: self._remove(self._open_edit_requested, callback)

    @staticmethod
    def _remove(callbacks: list, callback: object) -> None:
        if callback in callbacks:
            callbacks.remove(callback)

    def _notify_state_changed(self) -> None:
        for callback in list(self._state_changed):
            callback()

    async def _notify_issue_changed(self) -> None:
        for callback in list(self._issue_changed):
            await callback()

    def _commit(self, *, selected_index: object = _UNSET, mode: object = _UNSET, search: object = _UNSET) -> bool:
        changed = False
        # Equal values keep the current objects; in-flight checks compare by identity.
        if selected_index is not _UNSET and selected_index != self._selected_index:
            self._selected_index = selected_index  # type: ignore[assignment]
            changed = True
        if mode is not _UNSET and mode != self._mode:
            self._mode = mode  # type: ignore[assignment]
            changed = True
        if search is not _UNSET and search != self._search:
            self._search = search  # type: ignore[assignment]
            changed = True
        if changed:
            self._notify_state_changed()
        return changed

    # -- read-only view ------------------------------------------------------

    @property
    def lines(self) -> tuple[IssueRenderLine, ...]:
        return self._lines

    @property
    def selected_index(self) -> int:
        return self._selected_index

    @property
    def selected_line(self) -> IssueRenderLine | None:
        if 0 <= self._selected_index < len(self._lines):
            return self._lines[self._selected_index]
        return None

    @property
    def selected_issue_id(self) -> str | None:
        line = self.selected_line
        return line.issue_id if line is not None else None

    @property
    def mode(self) -> EditState:
        return self._mode

    @property
    def edit_mode(self) -> EditModeName:
        return self._mode.name

    @property
    def pending_edit(self) -> PendingEdit | None:
        return self._mode.edit if isinstance(self._mode, EditingExisting) else None

    @property
    def pending_new_issue(self) -> PendingNewIssue | None:
        return self._mode.new_issue if isinstance(self._mode, CreatingNew) else None

    @property
    def current_move_operation(self) -> MoveOperation | None:
        return self._mode.operation if isinstance(self._mode, SelectingMoveTarget) else None

    @property
    def move_source_issue_id(self) -> str | None:
        return self._mode.source_issue_id if isinstance(self._mode, SelectingMoveTarget) else None

    @property
    def search(self) -> SearchState:
        return self._search

    @property
    def is_searching(self) -> bool:
        return self._search.is_searching

    @property
    def is_search_embedded(self) -> bool:
        return self._search.is_embedded

    @property
    def search_term(self) -> str:
        return self._search.term

    @property
    def matching_indices(self) -> tuple[int, ...]:
        return self._search.matching_indices

    @property
    def current_match_index(self) -> int:
        return self._search.current_match_index

    def draft_context(self) -> DraftIssueContext | None:
        new_issue = self.pending_new_issue
        if new_issue is None:
            return None
        return DraftIssueContext(
            reference_issue_id=new_issue.reference_issue_id,
            is_above=new_issue.is_above,
            pending_parent_id=new_issue.pending_parent_id,
            inherited_parent_id=new_issue.inherited_parent_id,
        )

    # -- initialisation ------------------------------------------------------

    def initialize(self, lines: Sequence[IssueRenderLine]) -> None:
        self._lines = tuple(lines)
        self._selected_index = -1
        self._mode = VIEWING
        self._search = NO_SEARCH
        self._in_flight = None
        self._notify_state_changed()

    def set_task_graph(self, graph: TaskGraph | None) -> None:
        self._graph = graph

    def select_first_actionable(self) -> None:
        if not self._lines:
            return
        for idx, line in enumerate(self._lines):
            if line.marker == "actionable":
                self._commit(selected_index=idx)
                return
        self._commit(selected_index=0)

    def select_issue(self, issue_id: str) -> None:
        idx = self._index_of(issue_id)
        if idx >= 0:
            self._commit(selected_index=idx)

    def _index_of(self, issue_id: str | None) -> int:
        if not issue_id:
            return -1
        key = id_key(issue_id)
        for idx, line in enumerate(self._lines):
            if id_key(line.issue_id) == key:
                return idx
        return -1

    # -- navigation ----------------------------------------------------------

    def _can_move(self) -> bool:
        # Typing a search query must not move the cursor; an embedded search may.
        return isinstance(self._mode, Viewing) and not self._search.is_searching and bool(self._lines)

    def move_up(self) -> None:
        if self._can_move() and self._selected_index > 0:
            self._commit(selected_index=self._selected_index - 1)

    def move_down(self) -> None:
        if self._can_move() and self._selected_index < len(self._lines) - 1:
            self._commit(selected_index=self._selected_index + 1)

    def move_to_first(self) -> None:
        if self._can_move():
            self._commit(selected_index=0)

    def move_to_last(self) -> None:
        if self._can_move():
            self._commit(selected_index=len(self._lines) - 1)

    def move_to_parent(self) -> None:
        current = self.selected_line
        if not self._can_move() or current is None or current.parent_lane is None:
            return
        lane = current.parent_lane
        idx = self._nearest(lambda line: line.lane == lane, forward_first=True)
        if idx >= 0:
            self._commit(selected_index=idx)

    def move_to_child(self) -> None:
        current = self.selected_line
        if not self._can_move() or current is None:
            return
        lane = current.lane
        idx = self._nearest(lambda line: line.parent_lane == lane, forward_first=False)
        if idx >= 0:
            self._commit(selected_index=idx)

    def _nearest(self, predicate: Callable[[IssueRenderLine], bool], *, forward_first: bool) -> int:
        """Closest matching line after (or before) the selection, then the other way."""
        start = self._selected_index
        after = range(start + 1, len(self._lines))
        before = range(start - 1, -1, -1)
        for candidates in ((after, before) if forward_first else (before, after)):
            for idx in candidates:
                if predicate(self._lines[idx]):
                    return idx
        return -1

    # -- editing existing issues ---------------------------------------------

    def _can_enter_mode(self) -> bool:
        return isinstance(self._mode, Viewing) and not self._search.is_searching

    def _start_editing(self, cursor: CursorPosition) -> None:
        current = self.selected_line
        if not self._can_enter_mode() or current is None:
            return
        edit = PendingEdit(
            issue_id=current.issue_id,
            title="" if cursor == "replace" else current.title,
            original_title=current.title,
            cursor_position=cursor,
        )
        self._commit(mode=EditingExisting(edit))

    def start_editing_at_start(self) -> None:
        self._start_editing("start")

    def start_editing_at_end(self) -> None:
        self._start_editing("end")

    def start_replacing_title(self) -> None:
        self._start_editing("replace")

    def update_edit_title(self, title: str) -> None:
        mode = self._mode
        if isinstance(mode, EditingExisting):
            self._commit(mode=EditingExisting(replace(mode.edit, title=title)))
        elif isinstance(mode, CreatingNew):
            self._commit(mode=CreatingNew(replace(mode.new_issue, title=title)))

    def cancel_edit(self) -> None:
        # Search and edit share this exit path.
        self._commit(mode=VIEWING, search=NO_SEARCH)

    def open_selected_issue_for_edit(self) -> None:
        issue_id = self.selected_issue_id
        if not isinstance(self._mode, Viewing) or issue_id is None:
            return
        for callback in list(self._open_edit_requested):
            callback(issue_id)

    def _snapshot_accept(self, mode: EditState) -> AcceptSnapshot | None:
        if isinstance(mode, EditingExisting):
            title = mode.edit.title.strip()
            if not title:
                return None
            return TitleUpdate(issue_id=mode.edit.issue_id, title=title)
        if isinstance(mode, CreatingNew):
            new_issue = mode.new_issue
            title = new_issue.title.strip()
            if not title:
                return None
            sort_order = None if new_issue.pending_parent_id is not None else new_issue.inherited_sort_order
            return IssueCreation(
                title=title,
                parent_id=new_issue.parent_id,
                insertion=InsertionHint(
                    reference_issue_id=new_issue.reference_issue_id,
                    is_above=new_issue.is_above,
                    sort_order=sort_order,
                ),
            )
        return None

    async def accept_edit(self) -> str | None:
        """Persist the pending edit or new issue.

        Returns the id of a newly created issue, otherwise ``None``. Blank
        titles keep the current mode so the user can correct them; API
        errors propagate and leave the pending text in place.
        """
        mode = self._mode
        if self._in_flight is mode:
            return None
        snapshot = self._snapshot_accept(mode)
        if snapshot is None:
            return None

        self._in_flight = mode
        try:
            if isinstance(snapshot, TitleUpdate):
                await self.api.update_title(snapshot.issue_id, snapshot.title)
                created_id = None
            else:
                created_id = await self.api.create_issue(
                    snapshot.title,
                    parent_id=snapshot.parent_id,
                    insertion=snapshot.insertion,
                )
        finally:
            if self._in_flight is mode:
                self._in_flight = None

        if self._mode is mode:
            self._commit(mode=VIEWING)
        await self._notify_issue_changed()
        return created_id

    # -- creating new issues -------------------------------------------------

    def _start_creating(self, *, above: bool) -> None:
        if not self._can_enter_mode():
            return
        current = self.selected_line
        if current is None:
            # Only an empty graph may get an issue without a reference.
            if self._lines:
                return
            self._commit(mode=CreatingNew(PendingNewIssue(insert_at_index=0, is_above=above, reference_issue_id=None)))
            return

        parent_id, sort_order = self._inherited_parent(current.issue_id, above=above)
        new_issue = PendingNewIssue(
            insert_at_index=self._selected_index if above else self._selected_index + 1,
            is_above=above,
            reference_issue_id=current.issue_id,
            inherited_parent_id=parent_id,
            inherited_sort_order=sort_order,
        )
        self._commit(mode=CreatingNew(new_issue))

    def create_issue_below(self) -> None:
        self._start_creating(above=False)

    def create_issue_above(self) -> None:
        self._start_creating(above=True)

    def _inherited_parent(self, issue_id: str, *, above: bool) -> tuple[str | None, str | None]:
        """Parent a new sibling of ``issue_id`` inherits, and its sort order there."""
        graph = self._graph
        node = graph.find(issue_id) if graph is not None else None
        if graph is None or node is None or not node.parent_issue_ids:
            return None, None

        parent_id = node.parent_issue_ids[0]
        parent_key = id_key(parent_id)

        def order_under_parent(orders: dict[str, str]) -> str:
            for key, value in orders.items():
                if id_key(key) == parent_key:
                    return value
            return "0"

        siblings = sorted(
            (
                (order_under_parent(dict(n.parent_sort_orders)), n.issue_id)
                for n in graph.nodes
                if any(id_key(p) == parent_key for p in n.parent_issue_ids)
            ),
        )
        ids = [id_key(sibling_id) for _, sibling_id in siblings]
        ref = ids.index(id_key(node.issue_id))
        current_order = siblings[ref][0]
        if above:
            bounds = (siblings[ref - 1][0] if ref > 0 else None, current_order)
        else:
            bounds = (current_order, siblings[ref + 1][0] if ref + 1 < len(siblings) else None)
        try:
            return parent_id, lexical_midpoint(*bounds)
        except ValueError:
            # No key fits between the neighbours; placement falls back to the reference issue.
            return parent_id, None

    def indent_as_child(self) -> None:
        mode = self._mode
        if not isinstance(mode, CreatingNew):
            return
        preceding = mode.new_issue.insert_at_index - 1
        if not 0 <= preceding < len(self._lines):
            return
        parent_id = self._lines[preceding].issue_id
        self._commit(mode=CreatingNew(replace(mode.new_issue, pending_parent_id=parent_id)))

    def unindent_as_sibling(self) -> None:
        mode = self._mode
        if isinstance(mode, CreatingNew):
            self._commit(mode=CreatingNew(replace(mode.new_issue, pending_parent_id=None)))

    # -- move target selection -----------------------------------------------

    def _start_move(self, operation: MoveOperation) -> None:
        issue_id = self.selected_issue_id
        if self._can_enter_mode() and issue_id is not None:
            self._commit(mode=SelectingMoveTarget(operation=operation, source_issue_id=issue_id))

    def start_make_child_of(self) -> None:
        self._start_move("as_child_of")

    def start_make_parent_of(self) -> None:
        self._start_move("as_parent_of")

    def cancel_move_operation(self) -> None:
        if isinstance(self._mode, SelectingMoveTarget):
            self._commit(mode=VIEWING)

    async def complete_move_operation(self, target_issue_id: str, *, add_to_existing: bool = False) -> None:
        mode = self._mode
        if not isinstance(mode, SelectingMoveTarget) or self._in_flight is mode:
            return
        if id_key(target_issue_id) == id_key(mode.source_issue_id):
            self._commit(mode=VIEWING)
            return

        if mode.operation == "as_child_of":
            child_id, parent_id = mode.source_issue_id, target_issue_id
        else:
            child_id, parent_id = target_issue_id, mode.source_issue_id

        self._in_flight = mode
        try:
            await self.api.reparent(child_id, parent_id, add_to_existing=add_to_existing)
        finally:
            if self._in_flight is mode:
                self._in_flight = None

        if self._mode is mode:
            self._commit(mode=VIEWING)
        await self._notify_issue_changed()

    # -- type / status cycling -----------------------------------------------

    def _debounced(self, key: str) -> bool:
        last = self._last_cycle.get(key)
        return last is not None and self._clock() - last < self.cycle_debounce_seconds

    async def cycle_issue_type(self) -> None:
        line = self.selected_line
        if not isinstance(self._mode, Viewing) or line is None:
            return
        key = f"type:{id_key(line.issue_id)}"
        if self._debounced(key):
            return
        current = TYPE_CYCLE.index(line.issue_type) if line.issue_type in ISSUE_TYPES else -1
        next_type = TYPE_CYCLE[(current + 1) % len(TYPE_CYCLE)]
        await self._cycle(key, self.api.update_type(line.issue_id, next_type))

    async def cycle_issue_status(self) -> None:
        line = self.selected_line
        if not isinstance(self._mode, Viewing) or line is None:
            return
        key = f"status:{id_key(line.issue_id)}"
        if self._debounced(key):
            return
        # Archived and closed issues restart the cycle at open.
        if line.status in STATUS_CYCLE:
            next_status = STATUS_CYCLE[(STATUS_CYCLE.index(line.status) + 1) % len(STATUS_CYCLE)]
        else:
            next_status = STATUS_CYCLE[0]
        await self._cycle(key, self.api.update_status(line.issue_id, next_status))

    async def _cycle(self, key: str, call: Awaitable[None]) -> None:
        self._last_cycle[key] = self._clock()
        try:
            await call
        except BaseException:
            self._last_cycle.pop(key, None)
            raise
        await self._notify_issue_changed()

    # -- search --------------------------------------------------------------

    def start_search(self) -> None:
        if isinstance(self._mode, Viewing):
            self._commit(search=SearchState(is_searching=True))

    def update_search_term(self, term: str) -> None:
        if not self._search.is_searching:
            return
        self._commit(search=SearchState(
            is_searching=True,
            term=term,
            matching_indices=self._match(term),
        ))

    def _match(self, term: str) -> tuple[int, ...]:
        if not term:
            return ()
        needle = term.casefold()
        return tuple(idx for idx, line in enumerate(self._lines) if needle in line.title.casefold())

    def embed_search(self) -> None:
        search = self._search
        if not search.is_searching:
            return
        if search.matching_indices:
            self._commit(
                selected_index=search.matching_indices[0],
                search=replace(search, is_searching=False, is_embedded=True, current_match_index=0),
            )
        else:
            self._commit(search=replace(search, is_searching=False, is_embedded=True, current_match_index=-1))

    def _step_match(self, step: int) -> None:
        search = self._search
        if not search.is_embedded or not search.matching_indices:
            return
        count = len(search.matching_indices)
        current = (search.current_match_index + step) % count
        self._commit(
            selected_index=search.matching_indices[current],
            search=replace(search, current_match_index=current),
        )

    def move_to_next_match(self) -> None:
        self._step_match(1)

    def move_to_previous_match(self) -> None:
        self._step_match(-1)

    def clear_search(self) -> None:
        self._commit(search=NO_SEARCH)
