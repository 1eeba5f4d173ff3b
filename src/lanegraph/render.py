"""git-log style text rendering of render lines."""

from __future__ import annotations

from collections.abc import Sequence

from rich.text import Text

from .graph import id_key
from .lines import DRAFT_ISSUE_ID, ConnectorRenderLine, IssueRenderLine, RenderLine

MARKERS = {"actionable": "○", "open": "◌", "complete": "●", "closed": "⊘"}

MARKER_STYLES = {
    "actionable": "bold green",
    "open": "yellow",
    "complete": "green",
    "closed": "dim",
}

TYPE_STYLES = {"bug": "red", "feature": "magenta", "chore": "dim"}
STATUS_STYLES = {"progress": "cyan", "review": "blue", "archived": "dim", "closed": "dim"}

EDGE_STYLE = "dim"
MATCH_STYLE = "black on yellow"
SELECTED_STYLE = "reverse"

# Each lane is two columns wide: a glyph and the run towards the next lane.
_EMPTY = "  "


def _lane_count(lines: Sequence[RenderLine]) -> int:
    widest = -1
    for line in lines:
        if isinstance(line, IssueRenderLine):
            widest = max(
                widest,
                line.lane,
                line.parent_lane if line.parent_lane is not None else -1,
                line.series_connector_from_lane if line.series_connector_from_lane is not None else -1,
            )
        elif isinstance(line, ConnectorRenderLine) and line.lanes:
            widest = max(widest, max(line.lanes))
    return widest + 1


def _connector_lanes(lines: Sequence[RenderLine], idx: int) -> frozenset[int]:
    if 0 <= idx < len(lines):
        line = lines[idx]
        if isinstance(line, ConnectorRenderLine):
            return frozenset(line.lanes)
    return frozenset()


def _issue_gutter(
    line: IssueRenderLine,
    width: int,
    passing: frozenset[int],
) -> tuple[list[str], int]:
    """Cells for an issue row and the index of the cell holding the marker."""
    cells = [_EMPTY] * width
    for lane in passing:
        cells[lane] = "│ "

    lane = line.lane
    marker = MARKERS[line.marker]
    parent = line.parent_lane
    if parent is not None and parent > lane and not line.is_series_child:
        for col in range(lane + 1, parent):
            cells[col] = "──"
        cells[parent] = "┐ " if line.is_first_child else "┤ "
        cells[lane] = marker + "─"
    else:
        cells[lane] = marker + " "

    start = line.series_connector_from_lane
    if start is not None and start < lane:
        cells[start] = "└─"
        for col in range(start + 1, lane):
            cells[col] = "──"

    return cells, lane


def _append_title(row: Text, line: IssueRenderLine, highlight: str) -> None:
    if line.issue_id == DRAFT_ISSUE_ID and not line.title:
        row.append("(new issue)", style="dim italic")
        return

    start = len(row)
    row.append(line.title)
    if highlight:
        needle = highlight.casefold()
        haystack = line.title.casefold()
        pos = haystack.find(needle)
        while pos >= 0 and needle:
            row.stylize(MATCH_STYLE, start + pos, start + pos + len(needle))
            pos = haystack.find(needle, pos + len(needle))

    if line.issue_type != "task":
        row.append(f" [{line.issue_type}]", style=TYPE_STYLES.get(line.issue_type, ""))
    if line.status in STATUS_STYLES:
        row.append(f" ({line.status})", style=STATUS_STYLES[line.status])
    if line.agent_status:
        row.append(f" ⚙ {line.agent_status}", style="cyan")
    if line.linked_pr is not None:
        row.append(f" #{line.linked_pr}", style="magenta")
    if line.has_description:
        row.append(" ≡", style="dim")
    if line.has_hidden_parent:
        row.append(" ⇡" if not line.hidden_parent_is_series else " ⇡s", style="dim")


def render_lines(
    lines: Sequence[RenderLine],
    *,
    selected_issue_id: str | None = None,
    highlight: str = "",
) -> Text:
    """Render ``lines`` as one text row each.

    Separators become blank rows. ``selected_issue_id`` is shown reversed
    and occurrences of ``highlight`` in titles are marked.
    """
    width = _lane_count(lines)
    selected_key = id_key(selected_issue_id) if selected_issue_id else None

    rows: list[Text] = []
    for idx, line in enumerate(lines):
        if isinstance(line, ConnectorRenderLine):
            cells = [_EMPTY] * width
            for lane in line.lanes:
                cells[lane] = "│ "
            rows.append(Text("".join(cells).rstrip(), style=EDGE_STYLE))
            continue

        if not isinstance(line, IssueRenderLine):
            rows.append(Text(""))
            continue

        passing = _connector_lanes(lines, idx - 1) & _connector_lanes(lines, idx + 1)
        cells, marker_col = _issue_gutter(line, width, passing)

        row = Text()
        for col, cell in enumerate(cells):
            if col == marker_col:
                row.append(cell[0], style=MARKER_STYLES[line.marker])
                row.append(cell[1], style=EDGE_STYLE)
            else:
                row.append(cell, style=EDGE_STYLE)
        _append_title(row, line, highlight)

        if selected_key is not None and id_key(line.issue_id) == selected_key:
            row.stylize(SELECTED_STYLE)
        rows.append(row)

    return Text("\n").join(rows)
