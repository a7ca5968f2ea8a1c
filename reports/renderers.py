"""Report renderers.

One renderer per output format, selected with :func:`get_renderer`:

- ``tabular``: human-oriented tables (``tabulate``), centered titles,
  program banner and footer.
- ``json``: one stable JSON document (sorted keys), suitable for piping.

Renderers return strings; printing is the caller's job.
"""

from __future__ import annotations

import getpass
import json
import shutil
import socket
from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any

from tabulate import tabulate

from reports.matrix import Matrix, MatrixOutput
from version import ENGINE_NAME, ENGINE_VERSION

_DEFAULT_TERMINAL_SIZE = (120, 30)


def _terminal_width() -> int:
    # No tty inside a pipeline: fall back to a fixed width.
    return shutil.get_terminal_size(_DEFAULT_TERMINAL_SIZE).columns


def _center(text: str, width: int) -> str:
    return "\n".join(line.center(width).rstrip() for line in str(text).splitlines())


def _user_at_host() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"
    return f"{user}@{socket.gethostname()}"


def _utc_stamp(now: datetime | None = None) -> str:
    at = now or datetime.now(timezone.utc)
    return at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).strftime("%Y-%m-%d")
    return str(value)


def _jsonable(value: Any) -> Any:
    """Convert report values into JSON-compatible primitives deterministically."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


class ReportRenderer(ABC):
    """Turns a :class:`MatrixOutput` into text."""

    format_name: str = ""

    @abstractmethod
    def render(self, report: MatrixOutput) -> str:
        raise NotImplementedError


class TabularRenderer(ReportRenderer):
    """Human-readable tables sized to the terminal."""

    format_name = "tabular"

    def __init__(self, *, width: int | None = None, now: datetime | None = None) -> None:
        self._width = width
        self._now = now

    def render(self, report: MatrixOutput) -> str:
        width = self._width or _terminal_width()
        parts: list[str] = []

        if report.program_header:
            banner = f"{ENGINE_NAME}  v{ENGINE_VERSION}"
            parts.append(_center(banner, width))
            parts.append("-" * width)
        if report.title:
            parts.append(_center(report.title, width))
            parts.append("")

        for matrix in report.matrices:
            parts.append(self._render_matrix(matrix, width))
            parts.append("")

        if report.footer:
            parts.append(_center(report.footer, width))
        if report.program_footer:
            parts.append("-" * width)
            parts.append(_center(f"{_utc_stamp(self._now)}  *****  {_user_at_host()}", width))

        return "\n".join(parts).rstrip() + "\n"

    def _render_matrix(self, matrix: Matrix, width: int) -> str:
        lines: list[str] = []
        if matrix.title:
            lines.append(_center(matrix.title, width))
            lines.append("")

        if matrix.rows:
            lines.append(
                tabulate(
                    [[_cell(c) for c in row] for row in matrix.rows],
                    headers=matrix.headers,
                    tablefmt="rounded_outline",
                    disable_numparse=True,
                )
            )
        else:
            lines.append("(none)")

        if matrix.aggregates:
            lines.append(
                tabulate(
                    [[name, _cell(value)] for name, value in matrix.aggregates],
                    tablefmt="plain",
                    colalign=("right", "left"),
                    disable_numparse=True,
                )
            )

        if matrix.notes:
            lines.append("")
            lines.append("Notes:")
            for i, note in enumerate(matrix.notes, start=1):
                lines.append(f"{i}: {note}")

        return "\n".join(lines)


class JsonRenderer(ReportRenderer):
    """One JSON document per report."""

    format_name = "json"

    def __init__(self, *, indent: int | None = 2) -> None:
        self._indent = indent

    def render(self, report: MatrixOutput) -> str:
        payload = {
            "engine": {"name": ENGINE_NAME, "version": ENGINE_VERSION},
            "title": report.title,
            "footer": report.footer,
            "matrices": [
                {
                    "title": m.title,
                    "headers": list(m.headers),
                    "rows": m.records(),
                    "aggregates": {name: value for name, value in m.aggregates},
                    "notes": list(m.notes),
                }
                for m in report.matrices
            ],
        }
        return json.dumps(_jsonable(payload), indent=self._indent, sort_keys=True, ensure_ascii=False) + "\n"


_RENDERERS: dict[str, type[ReportRenderer]] = {
    TabularRenderer.format_name: TabularRenderer,
    JsonRenderer.format_name: JsonRenderer,
}


def output_formats() -> list[str]:
    return sorted(_RENDERERS)


def get_renderer(fmt: str) -> ReportRenderer:
    """Return a renderer for `fmt` (``tabular`` or ``json``)."""
    klass = _RENDERERS.get(str(fmt or "").strip().lower())
    if klass is None:
        raise ValueError(f"unknown output format {fmt!r}; expected one of {output_formats()}")
    return klass()


def render(report: MatrixOutput, fmt: str) -> str:
    return get_renderer(fmt).render(report)
