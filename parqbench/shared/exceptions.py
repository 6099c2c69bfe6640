"""Project-wide custom exceptions."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Failure categories reported by load, query and sort operations."""

    FILE_NOT_FOUND = "file_not_found"
    UNSUPPORTED_FORMAT = "unsupported_format"
    DECODE_ERROR = "decode_error"
    EMPTY_QUERY = "empty_query"
    QUERY_FAILED = "query_failed"
    UNKNOWN_COLUMN = "unknown_column"
    NO_DATA_LOADED = "no_data_loaded"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


class ParqBenchError(Exception):
    """Base exception for the parqbench suite."""


class ConfigurationError(ParqBenchError):
    """Raised when configuration loading or validation fails."""


class FrameError(ParqBenchError):
    """Raised when loading, querying or sorting a frame fails."""

    kind: ErrorKind = ErrorKind.INTERNAL


class DataFileNotFoundError(FrameError):
    """Raised when the requested data file does not exist."""

    kind = ErrorKind.FILE_NOT_FOUND


class UnsupportedFormatError(FrameError):
    """Raised when a source is neither Parquet nor CSV."""

    kind = ErrorKind.UNSUPPORTED_FORMAT


class DecodeError(FrameError):
    """Raised when the decoder rejects the file contents."""

    kind = ErrorKind.DECODE_ERROR


class EmptyQueryError(FrameError):
    """Raised when the SQL text is blank."""

    kind = ErrorKind.EMPTY_QUERY


class QueryFailedError(FrameError):
    """Raised when the SQL engine reports an error; carries the engine message."""

    kind = ErrorKind.QUERY_FAILED


class UnknownColumnError(FrameError):
    """Raised when a sort key names a column that is not in the schema."""

    kind = ErrorKind.UNKNOWN_COLUMN

    def __init__(self, column: str) -> None:
        super().__init__(f"Unknown column: {column!r}")
        self.column = column


class NoDataLoadedError(FrameError):
    """Raised when a query or sort is requested before any data was loaded."""

    kind = ErrorKind.NO_DATA_LOADED


class CancelledError(FrameError):
    """Raised when a task observes its cancellation token at a safe point."""

    kind = ErrorKind.CANCELLED
