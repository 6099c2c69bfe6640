"""Smoke tests verifying CLI entry points load and print help."""

from __future__ import annotations

import importlib
from typing import Callable

import pytest
from click.testing import CliRunner


@pytest.mark.parametrize(
    "module_path, attr_name, args",
    [
        ("parqbench.viewer.main", "cli", ["--help"]),
        ("parqbench.viewer.main", "cli", ["view", "--help"]),
        ("parqbench.viewer.main", "cli", ["schema", "--help"]),
    ],
)
def test_cli_entrypoint_help(module_path: str, attr_name: str, args: list[str]) -> None:
    module = importlib.import_module(module_path)
    cli: Callable[..., object] = getattr(module, attr_name)

    runner = CliRunner()
    result = runner.invoke(cli, args, prog_name="parqbench")

    assert result.exit_code == 0, result.output
    assert "Usage" in result.output
