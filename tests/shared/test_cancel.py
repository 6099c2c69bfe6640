from __future__ import annotations

import io

import pytest
from rich.console import Console

from parqbench.shared.cancel import CancelToken
from parqbench.shared.exceptions import CancelledError, ErrorKind
from parqbench.shared.logging import Logger


def test_token_starts_clear() -> None:
    token = CancelToken()
    assert token.cancelled is False
    token.raise_if_cancelled()


def test_cancel_sets_flag_and_raises() -> None:
    token = CancelToken()
    token.cancel()
    assert token.cancelled is True
    with pytest.raises(CancelledError) as excinfo:
        token.raise_if_cancelled()
    assert excinfo.value.kind is ErrorKind.CANCELLED


def test_callbacks_run_once() -> None:
    token = CancelToken()
    calls: list[str] = []
    token.on_cancel(lambda: calls.append("first"))

    token.cancel()
    token.cancel()

    assert calls == ["first"]


def test_callback_registered_after_cancel_runs_immediately() -> None:
    token = CancelToken()
    token.cancel()
    calls: list[int] = []

    token.on_cancel(lambda: calls.append(1))

    assert calls == [1]


def test_unregistered_callback_is_not_run() -> None:
    token = CancelToken()
    calls: list[int] = []
    unregister = token.on_cancel(lambda: calls.append(1))

    unregister()
    token.cancel()

    assert calls == []


def test_failing_callback_is_logged_not_raised() -> None:
    stream = io.StringIO()
    token = CancelToken(Logger(console=Console(file=stream, width=200)))
    calls: list[str] = []

    def closed_connection() -> None:
        raise RuntimeError("Connection already closed!")

    token.on_cancel(closed_connection)
    token.on_cancel(lambda: calls.append("after"))

    token.cancel()

    assert token.cancelled is True
    assert calls == ["after"]
    assert "Connection already closed!" in stream.getvalue()


def test_failing_callback_after_cancel_is_logged_not_raised() -> None:
    stream = io.StringIO()
    token = CancelToken(Logger(console=Console(file=stream, width=200)))
    token.cancel()

    token.on_cancel(lambda: 1 / 0)

    assert "ZeroDivisionError" in stream.getvalue()
