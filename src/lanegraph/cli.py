"""CLI entry point for lanegraph."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .api import JsonlIssueApi
from .config import CONFIG_RELPATH, DEFAULT_CONFIG_TOML, LanegraphConfig, load_config
from .graph import GraphFormatError, TaskGraph, load_graph
from .layout import compute_layout, issue_lines
from .lines import RenderLine, line_to_dict
from .navigation import NavigationState
from .render import render_lines
from .store import IssueStore
from .ui import (
    CommandHelp,
    OutputMode,
    add_output_mode_argument,
    make_console,
    render_command_help,
    resolve_output_mode,
)


INIT_HELP = CommandHelp(
    command="lanegraph init",
    summary="Scaffold .lanegraph/ with a default config and an empty issue store.",
    usage="lanegraph init [--force] [--output MODE]",
    options=(("--force", "Overwrite an existing lanegraph.toml"),),
)

SHOW_HELP = CommandHelp(
    command="lanegraph show",
    summary="Render a task graph snapshot as a lane timeline.",
    usage="lanegraph show SNAPSHOT [--max-depth N] [--select ID] [--json]",
    options=(
        ("--max-depth N", "Hide issues more than N lanes right of their group"),
        ("--select ID", "Highlight one issue"),
        ("--json", "Print render lines as JSON"),
        ("--output MODE", "auto, plain, or rich"),
    ),
    example=("lanegraph show graph.yaml --select ISSUE-1", "Timeline with ISSUE-1 selected"),
)

SEARCH_HELP = CommandHelp(
    command="lanegraph search",
    summary="List issues whose title contains TERM (case-insensitive).",
    usage="lanegraph search SNAPSHOT TERM [--max-depth N] [--json]",
    options=(("--json", "Print matching render lines as JSON"),),
    example=("lanegraph search graph.yaml auth", "Exit 0 on a match, 1 otherwise"),
)


def _find_repo_root() -> Path:
    """Walk up to find a .lanegraph or .git directory."""
    p = Path.cwd()
    while p != p.parent:
        if (p / ".lanegraph").exists() or (p / ".git").exists():
            return p
        p = p.parent
    return Path.cwd()


def _error(mode: OutputMode, message: str) -> int:
    make_console(mode, stderr=True).print(Text(message, style="red"))
    return 1


def _navigation_for(root: Path, cfg: LanegraphConfig, lines: list[RenderLine], graph: TaskGraph) -> NavigationState:
    nav = NavigationState(
        JsonlIssueApi(IssueStore.from_workdir(root)),
        cycle_debounce_seconds=cfg.navigation.cycle_debounce_seconds,
    )
    nav.initialize(issue_lines(lines))
    nav.set_task_graph(graph)
    return nav


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def _init_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="lanegraph init", add_help=False)
    p.add_argument("-h", "--help", action="store_true", default=False)
    p.add_argument("--force", action="store_true", default=False)
    add_output_mode_argument(p)
    return p


def cmd_init(argv: list[str]) -> int:
    args = _init_parser().parse_args(argv)
    mode = resolve_output_mode(args.output)
    if args.help:
        render_command_help(INIT_HELP, mode=mode)
        return 0

    root = _find_repo_root()
    config_path = root / CONFIG_RELPATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    if args.force or not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TOML, encoding="utf-8")
    IssueStore.from_workdir(root).path.touch()

    make_console(mode).print(Panel(
        f"Initialized [bold].lanegraph/[/bold] in {root}",
        style="green",
        expand=False,
    ))
    return 0


# ---------------------------------------------------------------------------
# show / search
# ---------------------------------------------------------------------------


def _snapshot_parser(prog: str) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=prog, add_help=False)
    p.add_argument("-h", "--help", action="store_true", default=False)
    p.add_argument("snapshot", nargs="?")
    p.add_argument("--max-depth", type=int, default=None)
    p.add_argument("--json", action="store_true")
    add_output_mode_argument(p)
    return p


def _show_parser() -> argparse.ArgumentParser:
    p = _snapshot_parser("lanegraph show")
    p.add_argument("--select", default=None)
    return p


def _search_parser() -> argparse.ArgumentParser:
    p = _snapshot_parser("lanegraph search")
    p.add_argument("term", nargs="?")
    return p


def _load_layout(
    args: argparse.Namespace,
    mode: OutputMode,
) -> tuple[Path, LanegraphConfig, TaskGraph, list[RenderLine]] | int:
    root = _find_repo_root()
    cfg = load_config(root)
    if cfg.error:
        return _error(mode, f"config error: {cfg.error}")
    if args.max_depth is not None and args.max_depth < 0:
        return _error(mode, "--max-depth must be a non-negative integer")

    try:
        graph = load_graph(Path(args.snapshot))
    except (GraphFormatError, OSError) as exc:
        return _error(mode, f"cannot load {args.snapshot}: {exc}")

    max_depth = args.max_depth if args.max_depth is not None else cfg.layout.max_depth
    return root, cfg, graph, compute_layout(graph, max_depth=max_depth)


def cmd_show(argv: list[str]) -> int:
    args = _show_parser().parse_args(argv)
    mode = resolve_output_mode(args.output, configured=load_config(_find_repo_root()).output.mode)
    if args.help or not args.snapshot:
        render_command_help(SHOW_HELP, mode=mode)
        return 0 if args.help else 1

    loaded = _load_layout(args, mode)
    if isinstance(loaded, int):
        return loaded
    root, cfg, graph, lines = loaded

    if args.json:
        json.dump({"lines": [line_to_dict(line) for line in lines]}, sys.stdout, indent=2, ensure_ascii=False)
        print()
        return 0

    nav = _navigation_for(root, cfg, lines, graph)
    if args.select:
        nav.select_issue(args.select)
        if nav.selected_issue_id is None:
            return _error(mode, f"Issue not found: {args.select}")

    make_console(mode).print(render_lines(lines, selected_issue_id=nav.selected_issue_id))
    return 0


def cmd_search(argv: list[str]) -> int:
    args = _search_parser().parse_args(argv)
    mode = resolve_output_mode(args.output, configured=load_config(_find_repo_root()).output.mode)
    if args.help or not args.snapshot or args.term is None:
        render_command_help(SEARCH_HELP, mode=mode)
        return 0 if args.help else 1

    loaded = _load_layout(args, mode)
    if isinstance(loaded, int):
        return loaded
    root, cfg, graph, lines = loaded

    nav = _navigation_for(root, cfg, lines, graph)
    nav.start_search()
    nav.update_search_term(args.term)
    nav.embed_search()
    matches = [nav.lines[idx] for idx in nav.matching_indices]

    if args.json:
        json.dump([line_to_dict(line) for line in matches], sys.stdout, indent=2, ensure_ascii=False)
        print()
    elif matches:
        make_console(mode).print(render_lines(matches, highlight=args.term))
    else:
        make_console(mode, stderr=True).print(Text(f"No issues match {args.term!r}", style="yellow"))
    return 0 if matches else 1


# ---------------------------------------------------------------------------
# dispatch
# ---------------------------------------------------------------------------


def _print_help(console: Console) -> None:
    help_text = Text()
    help_text.append("lanegraph", style="bold")
    help_text.append(f" {__version__}", style="dim")
    help_text.append(": lane timeline for issue graphs")
    console.print(help_text)
    console.print()
    console.print("  lanegraph init                      Scaffold .lanegraph/", markup=False)
    console.print("  lanegraph show SNAPSHOT [options]   Render a graph snapshot", markup=False)
    console.print("  lanegraph search SNAPSHOT TERM      Find issues by title", markup=False)
    console.print()
    console.print("  --version                           Show version", markup=False)
    console.print("  -h, --help                          Show this help", markup=False)


COMMANDS = {
    "init": cmd_init,
    "show": cmd_show,
    "search": cmd_search,
}


def main(argv: list[str] | None = None) -> None:
    raw = argv if argv is not None else sys.argv[1:]
    console = make_console(resolve_output_mode())

    if "--version" in raw:
        console.print(Text(f"lanegraph {__version__}", style="bold"))
        sys.exit(0)
    if not raw or raw[0] in ("-h", "--help"):
        _print_help(console)
        sys.exit(0)

    command = COMMANDS.get(raw[0])
    if command is None:
        make_console(resolve_output_mode(), stderr=True).print(
            Text(f"Unknown command: {raw[0]}", style="red")
        )
        _print_help(console)
        sys.exit(2)
    sys.exit(command(raw[1:]))


if __name__ == "__main__":
    main()
