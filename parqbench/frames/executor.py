"""Query execution: run SQL against a TabularFrame through DuckDB."""

from __future__ import annotations

from typing import Callable

import duckdb

from parqbench.shared.cancel import CancelToken
from parqbench.shared.exceptions import CancelledError, EmptyQueryError, QueryFailedError

from .types import FileFormat, SourceDescriptor, TabularFrame

DEFAULT_TABLE_NAME = "AllData"
DEFAULT_QUERY = f"SELECT * FROM {DEFAULT_TABLE_NAME};"

EXAMPLE_QUERIES: tuple[str, ...] = (
    DEFAULT_QUERY,
    f"SELECT COUNT(*) AS row_count FROM {DEFAULT_TABLE_NAME};",
    f'SELECT * FROM {DEFAULT_TABLE_NAME} WHERE "year" = 2020;',
    f'SELECT * FROM {DEFAULT_TABLE_NAME} WHERE "month" IS NULL;',
    f'SELECT * FROM {DEFAULT_TABLE_NAME} WHERE "name" LIKE \'Saldo%\' AND "month" IS NOT NULL;',
    f'SELECT "category", COUNT(*) AS frequency FROM {DEFAULT_TABLE_NAME} '
    'GROUP BY "category" ORDER BY frequency DESC;',
    f'SELECT "year", "month", SUM("amount") AS total FROM {DEFAULT_TABLE_NAME} '
    'GROUP BY "year", "month" ORDER BY "year", "month";',
)


def execute(
    frame: TabularFrame,
    sql_text: str,
    table_alias: str = DEFAULT_TABLE_NAME,
    cancel: CancelToken | None = None,
) -> TabularFrame:
    """Run ``sql_text`` with ``frame`` registered as ``table_alias``.

    Engine errors are surfaced verbatim as QueryFailedError. Cancellation is checked
    before and after execution and forwarded to DuckDB's interrupt hook while the
    statement runs.
    """

    if not sql_text or not sql_text.strip():
        raise EmptyQueryError("Query text must not be empty.")
    alias = (table_alias or "").strip() or DEFAULT_TABLE_NAME

    cancel = cancel or CancelToken()
    cancel.raise_if_cancelled()

    connection = duckdb.connect(database=":memory:")
    unregister = cancel.on_cancel(_interrupter(connection))
    try:
        connection.register(alias, frame.readonly_pandas())
        cancel.raise_if_cancelled()
        result = connection.execute(sql_text).fetchdf()
    except duckdb.Error as exc:
        if cancel.cancelled:
            raise CancelledError("Query cancelled.") from exc
        raise QueryFailedError(str(exc)) from exc
    finally:
        unregister()
        connection.close()

    cancel.raise_if_cancelled()
    descriptor = SourceDescriptor(
        name=f"{frame.source.name} [query]",
        format=FileFormat.DERIVED,
        path=frame.source.path,
    )
    return TabularFrame.from_pandas(result, descriptor)


def _interrupter(connection: duckdb.DuckDBPyConnection) -> Callable[[], None]:
    """Cancel callback for ``connection``; a no-op once the connection is closed."""

    def _interrupt() -> None:
        try:
            connection.interrupt()
        except duckdb.ConnectionException:
            # The statement finished and the connection closed before the cancel landed.
            return

    return _interrupt
