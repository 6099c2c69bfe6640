from __future__ import annotations

import threading
import time

import duckdb
import pytest

from parqbench.frames import executor
from parqbench.frames.types import FileFormat
from parqbench.shared.cancel import CancelToken
from parqbench.shared.exceptions import CancelledError, EmptyQueryError, QueryFailedError


def test_count_star_on_thousand_rows(frame_factory) -> None:
    frame = frame_factory({"id": list(range(1000))})

    result = executor.execute(frame, "SELECT COUNT(*) FROM AllData;")

    assert result.row_count == 1
    assert result.width == 1
    assert result.rows()[0][0] == 1000


def test_filter_and_project(people_frame) -> None:
    result = executor.execute(
        people_frame,
        "SELECT name FROM AllData WHERE age = 25 ORDER BY name;",
    )

    assert result.column_names == ("name",)
    assert result.rows() == [("Ana",), ("Bruno",)]
    assert result.source.format is FileFormat.DERIVED
    assert result.source.name == "people [query]"


def test_custom_alias(people_frame) -> None:
    result = executor.execute(people_frame, "SELECT COUNT(*) AS n FROM People", table_alias="People")

    assert result.rows() == [(4,)]


def test_query_sees_sorted_view(people_frame) -> None:
    import numpy as np

    reversed_frame = people_frame.reordered(np.array([3, 2, 1, 0]))

    result = executor.execute(reversed_frame, "SELECT name FROM AllData LIMIT 1")

    assert result.rows() == [("Dora",)]


@pytest.mark.parametrize("sql", ["", "   ", "\n\t"])
def test_empty_query_rejected(people_frame, sql: str, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail_connect(*args, **kwargs):  # pragma: no cover - must not be reached
        raise AssertionError("engine should not be invoked")

    monkeypatch.setattr(executor.duckdb, "connect", fail_connect)

    with pytest.raises(EmptyQueryError):
        executor.execute(people_frame, sql)


def test_engine_errors_are_passed_through(people_frame) -> None:
    with pytest.raises(QueryFailedError) as excinfo:
        executor.execute(people_frame, "SELECT * FROM AllData WHERE nonexistent_column > 1;")

    assert "nonexistent_column" in str(excinfo.value)


def test_syntax_error(people_frame) -> None:
    with pytest.raises(QueryFailedError):
        executor.execute(people_frame, "SELEC * FROM AllData")


def test_cancelled_before_execution(people_frame) -> None:
    token = CancelToken()
    token.cancel()

    with pytest.raises(CancelledError):
        executor.execute(people_frame, "SELECT * FROM AllData", cancel=token)


def test_input_frame_is_not_modified(people_frame) -> None:
    executor.execute(people_frame, "SELECT * FROM AllData WHERE age > 30")

    assert people_frame.row_count == 4
    assert people_frame.rows(0, 1) == [("Carla", 31, "Lisboa")]


def test_example_queries_start_with_default() -> None:
    assert executor.EXAMPLE_QUERIES[0] == executor.DEFAULT_QUERY == "SELECT * FROM AllData;"


def test_cancel_interrupts_running_statement(people_frame) -> None:
    token = CancelToken()
    raised: list[BaseException] = []

    def run() -> None:
        try:
            executor.execute(
                people_frame,
                "SELECT SUM(a.range * b.range) FROM range(1000000000) a, range(1000) b",
                cancel=token,
            )
        except BaseException as exc:
            raised.append(exc)

    worker = threading.Thread(target=run, daemon=True)
    worker.start()
    time.sleep(0.5)
    token.cancel()
    worker.join(timeout=60)

    assert not worker.is_alive()
    assert len(raised) == 1
    assert isinstance(raised[0], CancelledError)


def test_cancel_after_statement_finished_is_harmless(people_frame) -> None:
    token = CancelToken()

    executor.execute(people_frame, "SELECT COUNT(*) FROM AllData", cancel=token)
    token.cancel()

    assert token.cancelled is True


def test_interrupt_on_closed_connection_is_ignored() -> None:
    connection = duckdb.connect(database=":memory:")
    interrupt = executor._interrupter(connection)
    connection.close()

    interrupt()
