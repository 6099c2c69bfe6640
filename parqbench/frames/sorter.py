"""Sort engine: stable multi-key reordering by index permutation."""

from __future__ import annotations

from typing import Sequence

import pandas as pd

from parqbench.shared.cancel import CancelToken
from parqbench.shared.exceptions import UnknownColumnError

from .types import SortKey, TabularFrame


def sort(
    frame: TabularFrame,
    columns: Sequence[SortKey],
    cancel: CancelToken | None = None,
) -> TabularFrame:
    """Return ``frame`` reordered by ``columns`` (primary key first).

    The sort is stable and places nulls first. Only the key columns are read; the
    result shares ``frame``'s storage and differs only in its row permutation.
    """

    cancel = cancel or CancelToken()
    for key in columns:
        if not frame.has_column(key.column):
            raise UnknownColumnError(key.column)
    cancel.raise_if_cancelled()

    if not columns or frame.row_count < 2:
        return frame

    keys = frame.key_frame([key.column for key in columns])
    # Positional labels so repeated names among the keys stay addressable.
    keys.columns = [f"k{position}" for position in range(len(columns))]
    ascending = [key.direction.ascending for key in columns]
    try:
        ordered = _stable_sort(keys, ascending)
    except TypeError:
        # Object columns mixing e.g. numbers and strings: compare their text instead.
        ordered = _stable_sort(keys.apply(_as_text), ascending)
    cancel.raise_if_cancelled()
    return frame.reordered(ordered.index.to_numpy())


def _stable_sort(keys: pd.DataFrame, ascending: list[bool]) -> pd.DataFrame:
    return keys.sort_values(
        by=list(keys.columns),
        ascending=ascending,
        kind="stable",
        na_position="first",
    )


def _as_text(series: pd.Series) -> pd.Series:
    if series.dtype != object:
        return series
    return series.astype(str).where(series.notna())
