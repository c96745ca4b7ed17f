"""End-to-end CLI coverage for the commands exposed by lib-config-binder.

These tests run the documented workflows (flatten a file, bind a section to an
importable class, print package info) through Click's runner and through
:func:`lib_config_binder.cli.main`, which funnels failures into
``lib_cli_exit_tools``.
"""

from __future__ import annotations

import json
import runpy
import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

import lib_cli_exit_tools

from lib_config_binder import BindError, cli

SETTINGS = """
name = "svc"
retries = 3
color = "green"
timeout = "00:00:30"

[[endpoints]]
host = "a"
port = 8080

[[endpoints]]
host = "b"
secure = true

[labels]
env = "prod"

[services.cache]
host = "redis"
"""


def _runner() -> CliRunner:
    """Return a fresh CLI runner so each test starts from a clean state."""

    return CliRunner()


def _write(tmp_path: Path, name: str = "settings.toml", body: str = SETTINGS) -> Path:
    path = tmp_path / name
    path.write_text(body, encoding="utf-8")
    return path


def test_cli_flatten_lists_every_leaf(tmp_path: Path) -> None:
    """`cli flatten` prints one ``path=value`` line per leaf."""

    result = _runner().invoke(cli.cli, ["flatten", "--file", str(_write(tmp_path))])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert "endpoints:0:port=8080" in lines
    assert "endpoints:1:secure=true" in lines
    assert "services:cache:host=redis" in lines


def test_cli_flatten_section(tmp_path: Path) -> None:
    """`cli flatten --section` keeps paths absolute but limits output to the section."""

    result = _runner().invoke(cli.cli, ["flatten", "--file", str(_write(tmp_path)), "--section", "services"])
    assert result.exit_code == 0
    assert result.output.splitlines() == ["services:cache:host=redis"]


def test_cli_bind_outputs_json(tmp_path: Path) -> None:
    """`cli bind` renders the bound object graph as JSON."""

    result = _runner().invoke(
        cli.cli,
        ["bind", "--file", str(_write(tmp_path)), "--type", "binder_models:Settings", "--indent", "2"],
    )
    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["name"] == "svc"
    assert payload["retries"] == 3
    assert payload["color"] == "GREEN"
    assert payload["timeout"] == "0:00:30"
    assert payload["endpoints"] == [
        {"host": "a", "port": 8080, "secure": False},
        {"host": "b", "port": 80, "secure": True},
    ]
    assert payload["labels"] == {"env": "prod"}
    assert payload["primary"] is None


def test_cli_bind_section(tmp_path: Path) -> None:
    """`cli bind --section` binds only the selected subtree."""

    result = _runner().invoke(
        cli.cli,
        ["bind", "--file", str(_write(tmp_path)), "--type", "binder_models:Endpoint", "--section", "services:cache"],
    )
    assert result.exit_code == 0
    assert json.loads(result.output) == {"host": "redis", "port": 80, "secure": False}


def test_cli_bind_rejects_unknown_type(tmp_path: Path) -> None:
    """An unimportable ``--type`` is a usage error, not a crash."""

    result = _runner().invoke(cli.cli, ["bind", "--file", str(_write(tmp_path)), "--type", "nowhere:Nothing"])
    assert result.exit_code == 2
    assert "--type" in result.output


def test_cli_bind_failure_carries_the_path(tmp_path: Path) -> None:
    """Binding errors surface with the offending configuration path."""

    path = _write(tmp_path, "broken.json", '{"endpoints": [{"host": "a", "port": "eighty"}]}')
    result = _runner().invoke(cli.cli, ["bind", "--file", str(path), "--type", "binder_models:Settings"])
    assert result.exit_code != 0
    assert isinstance(result.exception, BindError)
    assert result.exception.path == "endpoints:0:port"


def test_cli_info_handles_missing_metadata(monkeypatch) -> None:
    """`cli info` must degrade gracefully when package metadata is unavailable."""

    def _raise_pkg_not_found(*_args, **_kwargs):
        raise cli.metadata.PackageNotFoundError()

    monkeypatch.setattr(cli.metadata, "metadata", _raise_pkg_not_found)
    result = _runner().invoke(cli.cli, ["info"])
    assert result.exit_code == 0
    assert "metadata unavailable" in result.output


def test_cli_main_restores_traceback_flag(tmp_path: Path) -> None:
    """`cli main` should restore lib_cli_exit_tools tracebacks after execution."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    exit_code = cli.main(
        ["--traceback", "flatten", "--file", str(_write(tmp_path))],
        restore_traceback=True,
    )
    assert exit_code == 0
    assert getattr(lib_cli_exit_tools.config, "traceback", False) == previous_traceback


def test_cli_main_reports_bind_failures_as_exit_codes(tmp_path: Path) -> None:
    """`cli main` turns a failed bind into a non-zero exit code."""

    path = _write(tmp_path, "broken.json", '{"host": {"nested": "x"}}')
    assert cli.main(["bind", "--file", str(path), "--type", "binder_models:Endpoint"]) != 0


def test_module_entry_point_runs_the_cli(tmp_path: Path, monkeypatch, capsys) -> None:
    """`python -m lib_config_binder` dispatches to the same commands."""

    monkeypatch.setattr(sys, "argv", ["lib_config_binder", "flatten", "--file", str(_write(tmp_path))])
    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("lib_config_binder", run_name="__main__")
    assert excinfo.value.code == 0
    assert "services:cache:host=redis" in capsys.readouterr().out
