"""Data structures shared by the load, query and sort layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Sequence

import numpy as np
import pandas as pd


class FileFormat(str, Enum):
    """Formats a frame can be decoded from."""

    PARQUET = "parquet"
    CSV = "csv"
    DERIVED = "derived"


class SortDirection(str, Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"

    @property
    def ascending(self) -> bool:
        return self is SortDirection.ASCENDING


@dataclass(frozen=True, slots=True)
class SortKey:
    """One column of a multi-key sort, in priority order."""

    column: str
    direction: SortDirection = SortDirection.ASCENDING

    @classmethod
    def parse(cls, raw: str) -> SortKey:
        """Parse ``column`` or ``column:asc|desc`` into a key."""
        name, sep, direction = raw.rpartition(":")
        if not sep:
            return cls(column=raw)
        try:
            return cls(column=name, direction=SortDirection(direction.strip().lower()))
        except ValueError:
            # A colon that is part of the column name.
            return cls(column=raw)


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """Schema entry for a single column."""

    name: str
    dtype: str
    nullable: bool = True
    null_count: int = 0


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    """Where a frame came from: a file path or an in-memory buffer."""

    name: str
    format: FileFormat
    path: Path | None = None
    size: int | None = None

    @property
    def is_buffer(self) -> bool:
        return self.path is None


@dataclass(frozen=True, eq=False)
class TabularFrame:
    """Immutable table handle: shared column storage, schema and summary stats.

    ``_data`` is never mutated after construction. Reordered frames reuse the same
    ``_data`` and carry a positional ``_order`` permutation instead of a copy.
    """

    _data: pd.DataFrame = field(repr=False)
    schema: tuple[ColumnSchema, ...]
    source: SourceDescriptor
    row_count: int
    byte_size: int
    _order: np.ndarray | None = field(default=None, repr=False)

    @classmethod
    def from_pandas(
        cls,
        frame: pd.DataFrame,
        source: SourceDescriptor,
        *,
        nullability: Mapping[str, bool] | None = None,
    ) -> TabularFrame:
        """Wrap a decoded DataFrame, computing schema and summary statistics."""

        data = frame.reset_index(drop=True)
        declared = nullability or {}
        null_counts = data.isna().sum()
        schema = tuple(
            ColumnSchema(
                name=str(name),
                dtype=str(dtype),
                nullable=declared.get(str(name), True),
                null_count=int(null_counts.iloc[position]),
            )
            for position, (name, dtype) in enumerate(data.dtypes.items())
        )
        if source.size is not None:
            byte_size = source.size
        else:
            byte_size = int(data.memory_usage(index=False, deep=False).sum())
        return cls(
            _data=data,
            schema=schema,
            source=source,
            row_count=len(data),
            byte_size=byte_size,
        )

    # ----- Schema helpers -----------------------------------------------------------------

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.schema)

    @property
    def width(self) -> int:
        return len(self.schema)

    def has_column(self, name: str) -> bool:
        return any(column.name == name for column in self.schema)

    def column_schema(self, name: str) -> ColumnSchema:
        for column in self.schema:
            if column.name == name:
                return column
        raise KeyError(name)

    # ----- Row and column access ----------------------------------------------------------

    def column(self, key: int | str) -> pd.Series:
        """Return one column in view order, by position or name."""

        position = key if isinstance(key, int) else self.column_names.index(key)
        series = self._data.iloc[:, position]
        if self._order is not None:
            series = series.take(self._order)
        return series.reset_index(drop=True)

    def rows(self, start: int = 0, stop: int | None = None) -> list[tuple[Any, ...]]:
        """Return rows ``[start, stop)`` in view order as tuples."""

        window = self._positions(start, stop)
        sliced = self._data.take(window)
        return list(sliced.itertuples(index=False, name=None))

    def to_pandas(self) -> pd.DataFrame:
        """Return the view as a DataFrame; callers own the returned object."""

        if self._order is None:
            return self._data.copy()
        return self._data.take(self._order).reset_index(drop=True)

    def readonly_pandas(self) -> pd.DataFrame:
        """Return the view without copying when possible. Callers must not mutate it."""

        if self._order is None:
            return self._data
        return self._data.take(self._order).reset_index(drop=True)

    # ----- Derivation ---------------------------------------------------------------------

    @property
    def order(self) -> np.ndarray:
        """Positional permutation of the shared storage that produces this view."""

        if self._order is None:
            return np.arange(self.row_count, dtype=np.int64)
        return self._order

    def key_frame(self, columns: Sequence[str]) -> pd.DataFrame:
        """Return only ``columns`` in view order with a fresh 0..n-1 index."""

        names = self.column_names
        keys = self._data.iloc[:, [names.index(column) for column in columns]]
        if self._order is not None:
            keys = keys.take(self._order)
        return keys.reset_index(drop=True)

    def reordered(self, order: np.ndarray) -> TabularFrame:
        """Return a frame sharing this storage, viewed through ``order``.

        ``order`` holds positions into the current view, not into the storage.
        """

        if len(order) != self.row_count:
            raise ValueError("Permutation length must equal row_count.")
        base_order = np.asarray(order, dtype=np.int64)
        if self._order is not None:
            base_order = self._order[base_order]
        return TabularFrame(
            _data=self._data,
            schema=self.schema,
            source=self.source,
            row_count=self.row_count,
            byte_size=self.byte_size,
            _order=base_order,
        )

    def shares_storage_with(self, other: TabularFrame) -> bool:
        return self._data is other._data

    def _positions(self, start: int, stop: int | None) -> np.ndarray:
        start = max(0, start)
        stop = self.row_count if stop is None else min(stop, self.row_count)
        if stop <= start:
            return np.empty(0, dtype=np.int64)
        if self._order is None:
            return np.arange(start, stop, dtype=np.int64)
        return self._order[start:stop]
