"""Requests, statuses and published snapshots for the session engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Union

from parqbench.frames.executor import DEFAULT_TABLE_NAME
from parqbench.frames.types import SortDirection, SortKey, TabularFrame
from parqbench.shared.cancel import CancelToken
from parqbench.shared.exceptions import ErrorKind, FrameError


class Status(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    QUERYING = "querying"
    SORTING = "sorting"
    READY = "ready"
    FAILED = "failed"

    @property
    def busy(self) -> bool:
        return self in (Status.LOADING, Status.QUERYING, Status.SORTING)


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """A failure as reported to the presentation layer."""

    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, exc: FrameError) -> ErrorInfo:
        return cls(kind=exc.kind, message=str(exc) or exc.kind.value)


# ----- Requests -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LoadFile:
    """Open a file path, or a dropped file's bytes (``name`` hints the format)."""

    source: str | Path | bytes
    name: str | None = None
    csv_delimiter: str | None = None

    status = Status.LOADING

    def __repr__(self) -> str:
        if isinstance(self.source, bytes):
            label = f"<{len(self.source)} bytes>"
        else:
            label = repr(str(self.source))
        return f"LoadFile(source={label}, name={self.name!r})"


@dataclass(frozen=True)
class ApplyQuery:
    """Run SQL against the committed frame (or the loaded source frame)."""

    sql_text: str
    table_alias: str = DEFAULT_TABLE_NAME
    against_source: bool = False

    status = Status.QUERYING


@dataclass(frozen=True)
class SortBy:
    """Reorder the committed frame; ``columns`` are listed primary key first."""

    columns: tuple[SortKey, ...]

    status = Status.SORTING

    @classmethod
    def single(cls, column: str, direction: SortDirection = SortDirection.ASCENDING) -> SortBy:
        return cls(columns=(SortKey(column=column, direction=direction),))


Request = Union[LoadFile, ApplyQuery, SortBy]


# ----- State --------------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class InFlight:
    generation: int
    token: CancelToken
    request: Request


@dataclass(slots=True)
class SessionState:
    """Authoritative controller state; only the controller mutates it."""

    committed: TabularFrame | None = None
    source: TabularFrame | None = None
    current_generation: int = 0
    committed_generation: int = 0
    in_flight: InFlight | None = None
    last_error: ErrorInfo | None = None
    active_query: str | None = None
    active_sort: tuple[SortKey, ...] = ()
    status: Status = Status.IDLE


@dataclass(frozen=True, slots=True)
class ViewState:
    """Read-only snapshot consumed by the presentation layer each render tick."""

    frame: TabularFrame | None = None
    status: Status = Status.IDLE
    error: ErrorInfo | None = None
    active_query_text: str | None = None
    active_sort_spec: tuple[SortKey, ...] = field(default_factory=tuple)
    generation: int = 0
    pending_generation: int | None = None

    @classmethod
    def from_state(cls, state: SessionState) -> ViewState:
        return cls(
            frame=state.committed,
            status=state.status,
            error=state.last_error if state.status is Status.FAILED else None,
            active_query_text=state.active_query,
            active_sort_spec=state.active_sort,
            generation=state.committed_generation,
            pending_generation=state.in_flight.generation if state.in_flight else None,
        )


# ----- Header-click sort cycling ------------------------------------------------------------


def sort_direction_for(spec: tuple[SortKey, ...], column: str) -> SortDirection | None:
    for key in spec:
        if key.column == column:
            return key.direction
    return None


def cycle_sort(spec: tuple[SortKey, ...], column: str) -> SortBy:
    """Return the SortBy produced by clicking ``column``'s header.

    An unsorted column sorts descending first, then toggles between ascending and
    descending. Clicking a different column drops the previous sort.
    """

    current = sort_direction_for(spec, column)
    if current is SortDirection.DESCENDING:
        direction = SortDirection.ASCENDING
    else:
        direction = SortDirection.DESCENDING
    return SortBy.single(column, direction)
