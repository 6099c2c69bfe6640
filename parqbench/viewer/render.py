"""Output rendering helpers for the parqbench CLI."""

from __future__ import annotations

import json
import math
import sys
from decimal import Decimal
from typing import IO, Any, Sequence

import numpy as np
import pandas as pd
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from parqbench.frames.executor import EXAMPLE_QUERIES
from parqbench.frames.types import SortDirection, SortKey, TabularFrame
from parqbench.session.types import ViewState, sort_direction_for
from parqbench.shared.config import DisplaySettings
from parqbench.shared.logging import Logger

OUTPUT_FORMAT_CHOICES = ("table", "csv", "tsv", "json")
SCHEMA_FORMAT_CHOICES = ("table", "json")

SORT_MARKERS = {
    SortDirection.DESCENDING: "⏷",
    SortDirection.ASCENDING: "⏶",
    None: "↕",
}


def format_sort_label(column: str, spec: Sequence[SortKey]) -> str:
    """Header label with the column's sort marker (descending, ascending or unsorted)."""
    return f"{SORT_MARKERS[sort_direction_for(tuple(spec), column)]} {column}"


def render_view(
    view: ViewState,
    *,
    output_format: str,
    display: DisplaySettings,
    logger: Logger,
    limit: int | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Render the committed frame of ``view`` in the requested format."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()
    if view.frame is None:
        logger.info("No data loaded.")
        return

    frame = view.frame
    row_limit = display.row_limit if limit is None else limit
    shown = frame.row_count if row_limit <= 0 else min(row_limit, frame.row_count)
    head = frame.to_pandas().head(shown) if fmt != "table" else None

    if fmt == "table":
        _render_table(view, frame, shown=shown, display=display, logger=logger, stream=output_stream)
    elif fmt == "csv":
        head.to_csv(output_stream, index=False)
    elif fmt == "tsv":
        head.to_csv(output_stream, index=False, sep="\t")
    elif fmt == "json":
        records = json.loads(head.to_json(orient="records", date_format="iso"))
        json.dump(records, output_stream, indent=2, ensure_ascii=False)
        output_stream.write("\n")
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    if shown < frame.row_count:
        logger.warning(f"Showing {shown} of {frame.row_count} rows. Re-run with --limit 0 for full output.")


def render_schema(
    frame: TabularFrame,
    *,
    output_format: str,
    stream: IO[str] | None = None,
) -> None:
    """Render column names, types and null statistics plus file metadata."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "json":
        payload = {
            "source": frame.source.name,
            "format": frame.source.format.value,
            "rows": frame.row_count,
            "bytes": frame.byte_size,
            "columns": [
                {
                    "name": column.name,
                    "type": column.dtype,
                    "nullable": column.nullable,
                    "null_count": column.null_count,
                }
                for column in frame.schema
            ],
        }
        json.dump(payload, output_stream, indent=2, ensure_ascii=False)
        output_stream.write("\n")
        return

    console = Console(file=output_stream, highlight=False, force_terminal=False)
    console.print(f"[bold]{escape(frame.source.name)}[/bold] ({frame.source.format.value})")
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Nullable")
    table.add_column("Nulls", justify="right")
    for column in frame.schema:
        table.add_row(escape(column.name), column.dtype, "yes" if column.nullable else "", str(column.null_count))
    console.print(table)
    console.print(f"{frame.row_count} rows, {frame.width} columns, {format_bytes(frame.byte_size)}")


def render_examples(*, default_query: str | None = None, stream: IO[str] | None = None) -> None:
    output_stream = stream or sys.stdout
    queries = list(EXAMPLE_QUERIES)
    if default_query and default_query not in queries:
        queries.insert(0, default_query)
    for query in queries:
        print(query, file=output_stream)
        print("", file=output_stream)


def format_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"  # pragma: no cover


def format_cell(value: Any, float_decimals: int) -> str:
    """Display text for one cell: blank for nulls, non-integral numbers rounded."""
    if value is None or value is pd.NaT or value is pd.NA:
        return ""
    if isinstance(value, Decimal):
        return "" if value.is_nan() else f"{value:.{float_decimals}f}"
    if isinstance(value, (float, np.floating)):
        if math.isnan(value):
            return ""
        return f"{float(value):.{float_decimals}f}"
    return str(value)


def _render_table(
    view: ViewState,
    frame: TabularFrame,
    *,
    shown: int,
    display: DisplaySettings,
    logger: Logger,
    stream: IO[str],
) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    if view.active_query_text:
        console.print(view.active_query_text, style="bold", markup=False)

    table = Table(box=box.SIMPLE_HEAVY, show_header=True, header_style="bold")
    for column in frame.column_names:
        label = format_sort_label(column, view.active_sort_spec) if view.active_sort_spec else column
        table.add_column(escape(label))

    rows = frame.rows(0, shown)
    if rows:
        for row in rows:
            table.add_row(*[escape(format_cell(cell, display.float_decimals)) for cell in row])
    else:
        logger.info("Query returned zero rows.")
    console.print(table)
