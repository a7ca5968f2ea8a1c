"""Output-format-neutral report model.

A report (:class:`MatrixOutput`) is a header, any number of matrices and a
footer. Renderers in :mod:`reports.renderers` turn it into text; commands only
ever build these objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class Matrix:
    """A coherent set of rows for output.

    Rows must not be jagged; a missing cell is ``None``. Aggregate rows are
    ``(name, value)`` pairs computed from the matrix (totals and the like).
    """

    headers: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    title: str | None = None
    aggregates: list[tuple[str, Any]] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        width = len(self.headers)
        for row in self.rows:
            if len(row) != width:
                raise ValueError(f"row has {len(row)} cells, expected {width}: {row!r}")

    def add_row(self, row: list[Any]) -> None:
        if len(row) != len(self.headers):
            raise ValueError(f"row has {len(row)} cells, expected {len(self.headers)}: {row!r}")
        self.rows.append(row)

    def records(self) -> list[dict[str, Any]]:
        """Rows as header-keyed dicts."""
        return [dict(zip(self.headers, row)) for row in self.rows]


@dataclass
class MatrixOutput:
    """A full report: header, matrices, footer."""

    title: str | None = None
    matrices: list[Matrix] = field(default_factory=list)
    footer: str | None = None
    program_header: bool = True
    program_footer: bool = True
