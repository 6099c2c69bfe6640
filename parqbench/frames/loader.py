"""Load pipeline: decode Parquet or CSV sources into TabularFrames."""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from parqbench.shared import paths
from parqbench.shared.cancel import CancelToken
from parqbench.shared.config import LoaderSettings
from parqbench.shared.exceptions import (
    DataFileNotFoundError,
    DecodeError,
    UnsupportedFormatError,
)
from parqbench.shared.logging import Logger, get_logger

from .types import FileFormat, SourceDescriptor, TabularFrame

PARQUET_MAGIC = b"PAR1"
EXTENSION_FORMATS: dict[str, FileFormat] = {
    "parquet": FileFormat.PARQUET,
    "parq": FileFormat.PARQUET,
    "pq": FileFormat.PARQUET,
    "csv": FileFormat.CSV,
    "tsv": FileFormat.CSV,
    "txt": FileFormat.CSV,
}
SNIFF_BYTES = 4096

# Text columns are converted to dates only when every value matches one layout.
DATE_PATTERN = r"\d{1,4}[-/.]\d{1,2}[-/.]\d{1,4}(?:[ T]\d{1,2}:\d{2}(?::\d{2}(?:\.\d+)?)?)?"
DATE_FORMATS = (
    "ISO8601",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
)
DEFAULT_BUFFER_NAME = "<dropped file>"

DEFAULT_LOADER_SETTINGS = LoaderSettings(
    csv_delimiters=(",", ";", "|", "\t"),
    null_values=("", " ", "<N/D>", "*DIVERSOS*"),
    infer_schema_rows=200,
    chunk_rows=100_000,
    encoding_errors="replace",
)


@dataclass(frozen=True, slots=True)
class LoadSource:
    """Resolved input: either a file on disk or an in-memory buffer."""

    name: str
    path: Path | None = None
    payload: bytes | None = None

    def open(self) -> IO[bytes]:
        if self.payload is not None:
            return io.BytesIO(self.payload)
        return self._require_path().open("rb")

    @property
    def size(self) -> int:
        if self.payload is not None:
            return len(self.payload)
        return self._require_path().stat().st_size

    def head(self, length: int = SNIFF_BYTES) -> bytes:
        with self.open() as handle:
            return handle.read(length)

    def _require_path(self) -> Path:
        if self.path is None:
            raise DataFileNotFoundError(f"No file or buffer behind {self.name!r}.")
        return self.path


def resolve_source(source: str | Path | bytes, name: str | None = None) -> LoadSource:
    """Turn a path or dropped-file buffer into a LoadSource, checking existence."""

    if isinstance(source, (bytes, bytearray, memoryview)):
        return LoadSource(name=name or DEFAULT_BUFFER_NAME, payload=bytes(source))

    raw = str(source).strip()
    if not raw:
        raise DataFileNotFoundError("No filename provided.")
    path = paths.resolve_path(raw)
    if not path.is_file():
        raise DataFileNotFoundError(f"File not found: {path}")
    return LoadSource(name=name or path.name, path=path)


def detect_format(source: LoadSource) -> FileFormat:
    """Pick a decoder from the extension, falling back to content sniffing."""

    extension = paths.get_extension(source.name)
    if extension in EXTENSION_FORMATS:
        return EXTENSION_FORMATS[extension]

    head = source.head()
    if head.startswith(PARQUET_MAGIC):
        return FileFormat.PARQUET
    if head and _looks_like_text(head):
        return FileFormat.CSV
    raise UnsupportedFormatError(f"Unknown file type: {source.name!r}")


def load(
    source: str | Path | bytes | LoadSource,
    cancel: CancelToken | None = None,
    *,
    name: str | None = None,
    csv_delimiter: str | None = None,
    settings: LoaderSettings = DEFAULT_LOADER_SETTINGS,
    logger: Logger | None = None,
) -> TabularFrame:
    """Decode ``source`` into a TabularFrame.

    ``cancel`` is checked before decoding and between record batches or CSV chunks,
    so a superseded load stops at the next chunk boundary.
    """

    cancel = cancel or CancelToken()
    log = logger or get_logger()
    cancel.raise_if_cancelled()

    resolved = source if isinstance(source, LoadSource) else resolve_source(source, name)
    file_format = detect_format(resolved)
    descriptor = SourceDescriptor(
        name=resolved.name,
        format=file_format,
        path=resolved.path,
        size=resolved.size,
    )
    log.debug(f"Loading {descriptor.name} as {file_format.value} ({descriptor.size} bytes)")

    if file_format is FileFormat.PARQUET:
        frame, nullability = _read_parquet(resolved, cancel, settings)
    else:
        frame = _read_csv(resolved, cancel, settings, csv_delimiter, log)
        nullability = None

    cancel.raise_if_cancelled()
    result = TabularFrame.from_pandas(frame, descriptor, nullability=nullability)
    log.debug(f"Loaded {result.row_count} row(s) x {result.width} column(s) from {descriptor.name}")
    return result


# ---------------------------------------------------------------------------
# Parquet


def _read_parquet(
    source: LoadSource,
    cancel: CancelToken,
    settings: LoaderSettings,
) -> tuple[pd.DataFrame, dict[str, bool]]:
    try:
        with source.open() as handle:
            parquet_file = pq.ParquetFile(handle)
            schema = parquet_file.schema_arrow
            batches: list[pa.RecordBatch] = []
            for batch in parquet_file.iter_batches(batch_size=settings.chunk_rows):
                cancel.raise_if_cancelled()
                batches.append(batch)
            table = pa.Table.from_batches(batches, schema=schema)
            frame = table.to_pandas()
    except (pa.ArrowException, OSError, ValueError) as exc:
        raise DecodeError(f"Error reading parquet: {exc}") from exc

    nullability = {field.name: field.nullable for field in schema}
    return frame, nullability


# ---------------------------------------------------------------------------
# CSV


def _read_csv(
    source: LoadSource,
    cancel: CancelToken,
    settings: LoaderSettings,
    csv_delimiter: str | None,
    logger: Logger,
) -> pd.DataFrame:
    if b"\x00" in source.head():
        raise DecodeError(f"CSV source {source.name!r} contains binary data.")
    if csv_delimiter is not None:
        if len(csv_delimiter) != 1:
            raise DecodeError("The CSV delimiter must be a single character.")
        delimiter = csv_delimiter
    else:
        delimiter = _detect_delimiter(source, settings, logger)

    chunks: list[pd.DataFrame] = []
    try:
        with source.open() as handle:
            for chunk in _csv_chunks(handle, delimiter, settings):
                cancel.raise_if_cancelled()
                chunks.append(chunk)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeError, ValueError) as exc:
        raise DecodeError(f"Error reading CSV with delimiter {delimiter!r}: {exc}") from exc

    if not chunks:
        raise DecodeError(f"CSV source {source.name!r} contains no rows or header.")
    frame = chunks[0] if len(chunks) == 1 else pd.concat(chunks, ignore_index=True)
    cancel.raise_if_cancelled()
    return _parse_dates(frame, logger)


def _detect_delimiter(source: LoadSource, settings: LoaderSettings, logger: Logger) -> str:
    """Return the first candidate delimiter that splits the sample into several columns."""

    for delimiter in settings.csv_delimiters:
        try:
            with source.open() as handle:
                sample = pd.read_csv(
                    handle,
                    sep=delimiter,
                    nrows=settings.infer_schema_rows,
                    **_csv_options(settings),
                )
        except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeError, ValueError) as exc:
            logger.debug(f"Delimiter {delimiter!r} rejected for {source.name}: {exc}")
            continue
        if sample.shape[1] > 1:
            logger.debug(f"Detected delimiter {delimiter!r} for {source.name}")
            return delimiter
        logger.debug(f"Delimiter {delimiter!r} yields a single column for {source.name}")

    raise DecodeError("Failed to read CSV with common delimiters or inconsistent data.")


def _parse_dates(frame: pd.DataFrame, logger: Logger) -> pd.DataFrame:
    """Convert text columns whose every value parses as a date to datetime64."""

    for position, name in enumerate(frame.columns):
        parsed = _as_dates(frame.iloc[:, position])
        if parsed is not None:
            frame.isetitem(position, parsed)
            logger.debug(f"Column {name!r} parsed as dates")
    return frame


def _as_dates(series: pd.Series) -> pd.Series | None:
    if not pd.api.types.is_string_dtype(series.dtype):
        return None
    values = series.dropna()
    if values.empty or pd.api.types.infer_dtype(values, skipna=True) != "string":
        return None
    text = series.str.strip()
    if not text.dropna().str.fullmatch(DATE_PATTERN).all():
        return None
    for date_format in DATE_FORMATS:
        parsed = pd.to_datetime(text, format=date_format, errors="coerce")
        if int(parsed.notna().sum()) == len(values):
            return parsed
    return None


def _csv_chunks(handle: IO[bytes], delimiter: str, settings: LoaderSettings) -> Iterator[pd.DataFrame]:
    with pd.read_csv(
        handle,
        sep=delimiter,
        chunksize=settings.chunk_rows,
        **_csv_options(settings),
    ) as reader:
        yield from reader


def _csv_options(settings: LoaderSettings) -> dict[str, object]:
    return {
        "header": 0,
        "na_values": list(settings.null_values),
        "keep_default_na": True,
        "encoding_errors": settings.encoding_errors,
        "on_bad_lines": "skip",
        "skipinitialspace": False,
    }


def _looks_like_text(head: bytes) -> bool:
    if b"\x00" in head:
        return False
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as exc:
        # A multi-byte character cut at the sniff boundary is still text.
        return exc.start >= len(head) - 3
    return True
