"""Shared pytest fixtures for all test layers."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Callable

import pandas as pd
import pytest

from parqbench.frames.types import FileFormat, SourceDescriptor, TabularFrame


class ManualExecutor(Executor):
    """Executor double that runs submitted work only when a test says so."""

    def __init__(self) -> None:
        self.pending: list[tuple[Callable[..., Any], tuple[Any, ...], Future]] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        self.pending.append((lambda: fn(*args, **kwargs), args, future))
        return future

    def run(self, index: int) -> None:
        """Run the ``index``-th submitted job (in submission order)."""
        call, _args, future = self.pending[index]
        if future.done():
            raise AssertionError(f"job {index} already ran")
        future.set_running_or_notify_cancel()
        try:
            future.set_result(call())
        except BaseException as exc:  # pragma: no cover - surfaced through the future
            future.set_exception(exc)

    def run_all(self) -> None:
        for index, (_call, _args, future) in enumerate(self.pending):
            if not future.done():
                self.run(index)


@pytest.fixture
def manual_executor() -> ManualExecutor:
    return ManualExecutor()


def make_frame(data: dict[str, list[Any]], name: str = "memory") -> TabularFrame:
    return TabularFrame.from_pandas(
        pd.DataFrame(data),
        SourceDescriptor(name=name, format=FileFormat.DERIVED),
    )


@pytest.fixture
def people_frame() -> TabularFrame:
    return make_frame(
        {
            "name": ["Carla", "Ana", "Bruno", "Dora"],
            "age": [31, 25, 25, 40],
            "city": ["Lisboa", "Porto", None, "Porto"],
        },
        name="people",
    )


@pytest.fixture
def people_csv(tmp_path: Path) -> Path:
    path = tmp_path / "people.csv"
    path.write_text(
        "name;age;city\nCarla;31;Lisboa\nAna;25;Porto\nBruno;25;<N/D>\nDora;40;Porto\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def numbers_parquet(tmp_path: Path) -> Path:
    path = tmp_path / "numbers.parquet"
    pd.DataFrame(
        {
            "id": list(range(1000)),
            "group": [f"g{i % 7}" for i in range(1000)],
            "value": [float(i) / 3 for i in range(1000)],
        }
    ).to_parquet(path, index=False)
    return path


@pytest.fixture
def frame_factory() -> Callable[..., TabularFrame]:
    return make_frame
