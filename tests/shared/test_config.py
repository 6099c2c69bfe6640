from __future__ import annotations

from pathlib import Path

import pytest

from parqbench.shared import paths
from parqbench.shared.config import AppConfig, DisplaySettings, load_config
from parqbench.shared.exceptions import ConfigurationError


def _isolated_env(tmp_path: Path) -> dict[str, str]:
    return {paths.CONFIG_DIR_ENV: str(tmp_path / "config")}


def test_load_config_defaults(tmp_path: Path) -> None:
    cfg = load_config(env=_isolated_env(tmp_path))
    assert isinstance(cfg, AppConfig)
    assert cfg.source_path == tmp_path / "config" / "config.yaml"
    assert cfg.loader.csv_delimiters == (",", ";", "|", "\t")
    assert "<N/D>" in cfg.loader.null_values
    assert cfg.loader.infer_schema_rows == 200
    assert cfg.query.table_name == "AllData"
    assert cfg.query.default_query == "SELECT * FROM AllData;"
    assert cfg.session.max_workers == 1
    assert cfg.display.float_decimals == 2


def test_load_config_from_yaml(tmp_path: Path) -> None:
    cfg_file = tmp_path / "parqbench.yaml"
    cfg_file.write_text(
        """
        loader:
          csv_delimiters: [";", ","]
          chunk_rows: 500
        query:
          table_name: Sales
        display:
          row_limit: 10
        """,
        encoding="utf-8",
    )
    cfg = load_config(config_path=cfg_file, env=_isolated_env(tmp_path))
    assert cfg.source_path == cfg_file
    assert cfg.loader.csv_delimiters == (";", ",")
    assert cfg.loader.chunk_rows == 500
    assert cfg.loader.infer_schema_rows == 200
    assert cfg.query.table_name == "Sales"
    assert cfg.display.row_limit == 10


def test_load_config_env_overrides(tmp_path: Path) -> None:
    env = _isolated_env(tmp_path) | {
        "PARQBENCH_TABLE_NAME": "Facts",
        "PARQBENCH_CSV_DELIMITERS": ";,\\t",
        "PARQBENCH_MAX_WORKERS": "2",
    }
    cfg = load_config(env=env)
    assert cfg.query.table_name == "Facts"
    assert cfg.loader.csv_delimiters == (";", "\t")
    assert cfg.session.max_workers == 2


def test_with_table_name_returns_copy(tmp_path: Path) -> None:
    cfg = load_config(env=_isolated_env(tmp_path))
    renamed = cfg.with_table_name("Other")
    assert renamed.query.table_name == "Other"
    assert cfg.query.table_name == "AllData"


def test_invalid_env_override_raises(tmp_path: Path) -> None:
    env = _isolated_env(tmp_path) | {"PARQBENCH_CHUNK_ROWS": "many"}
    with pytest.raises(ConfigurationError, match="PARQBENCH_CHUNK_ROWS"):
        load_config(env=env)


def test_multi_character_delimiter_rejected(tmp_path: Path) -> None:
    cfg_file = tmp_path / "bad.yaml"
    cfg_file.write_text("loader:\n  csv_delimiters: [';;']\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="single characters"):
        load_config(config_path=cfg_file, env=_isolated_env(tmp_path))


def test_non_mapping_root_rejected(tmp_path: Path) -> None:
    cfg_file = tmp_path / "list.yaml"
    cfg_file.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="mapping root"):
        load_config(config_path=cfg_file, env=_isolated_env(tmp_path))


def test_display_settings_defaults_match_loaded_defaults(tmp_path: Path) -> None:
    cfg = load_config(env=_isolated_env(tmp_path))
    assert DisplaySettings() == cfg.display
