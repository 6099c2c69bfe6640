"""Configuration loading utilities for parqbench."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping

import yaml

from . import paths
from .exceptions import ConfigurationError


@dataclass(frozen=True, slots=True)
class LoaderSettings:
    """File decoding configuration."""

    csv_delimiters: tuple[str, ...]
    null_values: tuple[str, ...]
    infer_schema_rows: int
    chunk_rows: int
    encoding_errors: str


@dataclass(frozen=True, slots=True)
class QuerySettings:
    """SQL defaults applied when the user does not supply them."""

    table_name: str
    default_query: str


@dataclass(frozen=True, slots=True)
class SessionSettings:
    """Background worker configuration."""

    max_workers: int


@dataclass(frozen=True, slots=True)
class DisplaySettings:
    """Rendering configuration."""

    row_limit: int = 50
    float_decimals: int = 2


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Top-level application configuration."""

    source_path: Path
    loader: LoaderSettings
    query: QuerySettings
    session: SessionSettings
    display: DisplaySettings

    def with_table_name(self, table_name: str) -> AppConfig:
        """Return a copy with an updated SQL table alias."""
        return replace(self, query=replace(self.query, table_name=table_name))


def _default_config() -> dict[str, Any]:
    return {
        "loader": {
            "csv_delimiters": [",", ";", "|", "\t"],
            "null_values": ["", " ", "<N/D>", "*DIVERSOS*"],
            "infer_schema_rows": 200,
            "chunk_rows": 100_000,
            "encoding_errors": "replace",
        },
        "query": {
            "table_name": "AllData",
            "default_query": "SELECT * FROM AllData;",
        },
        "session": {
            "max_workers": 1,
        },
        "display": {
            "row_limit": 50,
            "float_decimals": 2,
        },
    }


ENV_OVERRIDE_SPEC: dict[str, tuple[str, type]] = {
    "loader.csv_delimiters": ("PARQBENCH_CSV_DELIMITERS", list),
    "loader.null_values": ("PARQBENCH_NULL_VALUES", list),
    "loader.infer_schema_rows": ("PARQBENCH_INFER_SCHEMA_ROWS", int),
    "loader.chunk_rows": ("PARQBENCH_CHUNK_ROWS", int),
    "loader.encoding_errors": ("PARQBENCH_ENCODING_ERRORS", str),
    "query.table_name": ("PARQBENCH_TABLE_NAME", str),
    "query.default_query": ("PARQBENCH_DEFAULT_QUERY", str),
    "session.max_workers": ("PARQBENCH_MAX_WORKERS", int),
    "display.row_limit": ("PARQBENCH_ROW_LIMIT", int),
    "display.float_decimals": ("PARQBENCH_FLOAT_DECIMALS", int),
}


def load_config(
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> AppConfig:
    """Load configuration from defaults, YAML file, and env overrides."""
    env = dict(os.environ if env is None else env)
    resolved_config_path = _resolve_config_path(config_path, env)
    file_data = _load_yaml(resolved_config_path)
    merged: dict[str, Any] = _deep_merge(_default_config(), file_data)
    merged = _apply_env_overrides(merged, env)
    return _build_config(merged, resolved_config_path)


def _resolve_config_path(
    config_path: str | Path | None, env: Mapping[str, str]
) -> Path:
    if config_path:
        return paths.resolve_path(config_path)
    return paths.default_config_path(env=env)


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Config file at {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigurationError(f"Config file at {path} must define a mapping root object.")
        return dict(data)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _apply_env_overrides(config: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    config_copy = _deep_merge(config, {})
    for dotted_key, (env_key, expected_type) in ENV_OVERRIDE_SPEC.items():
        if env_key not in env:
            continue
        raw_value = env[env_key]
        try:
            value = _coerce_env_value(raw_value, expected_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Environment override {env_key} has invalid value '{raw_value}': {exc}"
            ) from exc
        _assign_nested(config_copy, dotted_key.split("."), value)
    return config_copy


def _coerce_env_value(raw: str, expected_type: type) -> Any:
    if expected_type is list:
        # Items may legitimately be whitespace (a tab delimiter, a blank null marker).
        if not raw:
            return ()
        return tuple(part.replace("\\t", "\t") for part in raw.split(","))
    cleaned = raw.strip()
    if expected_type is int:
        return int(cleaned)
    return cleaned


def _assign_nested(target: MutableMapping[str, Any], keys: list[str], value: Any) -> None:
    current = target
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], MutableMapping):
            current[key] = {}
        current = current[key]  # type: ignore[assignment]
    current[keys[-1]] = value


def _build_config(data: Mapping[str, Any], source_path: Path) -> AppConfig:
    try:
        loader_cfg = data["loader"]
        loader = LoaderSettings(
            csv_delimiters=tuple(str(item) for item in loader_cfg["csv_delimiters"]),
            null_values=tuple(str(item) for item in loader_cfg["null_values"]),
            infer_schema_rows=int(loader_cfg["infer_schema_rows"]),
            chunk_rows=int(loader_cfg["chunk_rows"]),
            encoding_errors=str(loader_cfg["encoding_errors"]),
        )
        query = QuerySettings(
            table_name=str(data["query"]["table_name"]),
            default_query=str(data["query"]["default_query"]),
        )
        session = SessionSettings(max_workers=int(data["session"]["max_workers"]))
        display = DisplaySettings(
            row_limit=int(data["display"]["row_limit"]),
            float_decimals=int(data["display"]["float_decimals"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid configuration structure: {exc}") from exc

    if not loader.csv_delimiters:
        raise ConfigurationError("loader.csv_delimiters must list at least one delimiter.")
    if any(len(delimiter) != 1 for delimiter in loader.csv_delimiters):
        raise ConfigurationError("loader.csv_delimiters entries must be single characters.")
    if loader.chunk_rows <= 0 or loader.infer_schema_rows <= 0:
        raise ConfigurationError("loader.chunk_rows and loader.infer_schema_rows must be positive.")
    if session.max_workers < 1:
        raise ConfigurationError("session.max_workers must be at least 1.")
    if not query.table_name.strip():
        raise ConfigurationError("query.table_name must not be empty.")

    return AppConfig(
        source_path=source_path,
        loader=loader,
        query=query,
        session=session,
        display=display,
    )
