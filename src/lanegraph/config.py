from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from .navigation import DEFAULT_CYCLE_DEBOUNCE_SECONDS


CONFIG_RELPATH = Path(".lanegraph") / "lanegraph.toml"
OUTPUT_MODES = ("auto", "plain", "rich")


@dataclass(frozen=True)
class LayoutConfig:
    max_depth: int | None = None


@dataclass(frozen=True)
class NavigationConfig:
    cycle_debounce_seconds: float = DEFAULT_CYCLE_DEBOUNCE_SECONDS


@dataclass(frozen=True)
class OutputConfig:
    mode: str = "auto"


@dataclass(frozen=True)
class LanegraphConfig:
    repo_root: Path
    path: Path
    layout: LayoutConfig = LayoutConfig()
    navigation: NavigationConfig = NavigationConfig()
    output: OutputConfig = OutputConfig()
    error: str | None = None


class ConfigValidationError(ValueError):
    pass


def _as_table(raw: object, *, name: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigValidationError(f"[{name}] must be a table")
    return raw


def _reject_unknown(table: dict[str, Any], *, name: str, known: tuple[str, ...]) -> None:
    for key in table:
        if key not in known:
            expected = ", ".join(known)
            where = f"[{name}].{key}" if name else key
            raise ConfigValidationError(f"unknown key {where}; expected one of: {expected}")


def _parse_layout(raw: object) -> LayoutConfig:
    table = _as_table(raw, name="layout")
    _reject_unknown(table, name="layout", known=("max_depth",))
    value = table.get("max_depth")
    if value is None:
        return LayoutConfig()
    # isinstance(True, int) holds; booleans are rejected explicitly.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigValidationError("[layout].max_depth must be a non-negative integer")
    return LayoutConfig(max_depth=value)


def _parse_navigation(raw: object) -> NavigationConfig:
    table = _as_table(raw, name="navigation")
    _reject_unknown(table, name="navigation", known=("cycle_debounce_seconds",))
    value = table.get("cycle_debounce_seconds")
    if value is None:
        return NavigationConfig()
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ConfigValidationError(
            "[navigation].cycle_debounce_seconds must be a non-negative number"
        )
    return NavigationConfig(cycle_debounce_seconds=float(value))


def _parse_output(raw: object) -> OutputConfig:
    table = _as_table(raw, name="output")
    _reject_unknown(table, name="output", known=("mode",))
    value = table.get("mode")
    if value is None:
        return OutputConfig()
    if not isinstance(value, str) or value.strip().lower() not in OUTPUT_MODES:
        expected = ", ".join(OUTPUT_MODES)
        raise ConfigValidationError(f"[output].mode must be one of: {expected}")
    return OutputConfig(mode=value.strip().lower())


def _format_path(path: Path, repo_root: Path) -> str:
    try:
        return str(path.resolve().relative_to(repo_root.resolve()))
    except ValueError:
        return str(path)


def load_config(repo_root: Path) -> LanegraphConfig:
    """Read ``.lanegraph/lanegraph.toml``; a missing file means defaults.

    Problems are reported through ``LanegraphConfig.error`` instead of
    being raised.
    """
    path = repo_root / CONFIG_RELPATH
    if not path.is_file():
        return LanegraphConfig(repo_root=repo_root, path=path)

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        return LanegraphConfig(
            repo_root=repo_root,
            path=path,
            error=f"invalid TOML in {_format_path(path, repo_root)}: {exc}",
        )

    try:
        _reject_unknown(raw, name="", known=("layout", "navigation", "output"))
        return LanegraphConfig(
            repo_root=repo_root,
            path=path,
            layout=_parse_layout(raw.get("layout")),
            navigation=_parse_navigation(raw.get("navigation")),
            output=_parse_output(raw.get("output")),
        )
    except ConfigValidationError as exc:
        return LanegraphConfig(
            repo_root=repo_root,
            path=path,
            error=f"{_format_path(path, repo_root)}: {exc}",
        )


DEFAULT_CONFIG_TOML = """\
[layout]
# max_depth = 3

[navigation]
cycle_debounce_seconds = 3.0

[output]
mode = "auto"
"""
