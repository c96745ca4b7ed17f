"""CLI adapter for ``lib_config_binder`` built on ``lib_cli_exit_tools``.

Purpose
-------
Let operators check how a configuration file is seen by the binder without
writing Python: print the flattened tree, or bind a section to an importable
class and print the resulting object graph as JSON.

Contents
--------
* :data:`CLICK_CONTEXT_SETTINGS` – shared Click settings ensuring ``-h`` works.
* :func:`cli` – root command wiring traceback handling into
  ``lib_cli_exit_tools``.
* :func:`cli_info` – prints distribution metadata.
* :func:`cli_flatten` – prints ``path=value`` lines for a file or section.
* :func:`cli_bind` – binds a section to ``module:Class`` and prints JSON.
* :func:`to_jsonable` – renders bound object graphs for JSON output.
* :func:`main` – entry point used by ``console_scripts`` registration.

System Role
-----------
The CLI lives in the outermost layer. It calls the composition root
(:mod:`lib_config_binder.core`) and leaves exit codes to
``lib_cli_exit_tools``.
"""

from __future__ import annotations

import base64
import dataclasses
import datetime
import decimal
import enum
import json
import sys
import uuid
from importlib import metadata
from pathlib import Path, PurePath
from typing import Any, Final, Optional, Sequence

import lib_cli_exit_tools
import rich_click as click

from .application.ports import ConfigurationSection
from .application.sections import walk
from .application.typeinfo import load_type
from .core import bind, load_configuration

CLICK_CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
_TRACEBACK_SUMMARY_LIMIT: Final[int] = 500
_TRACEBACK_VERBOSE_LIMIT: Final[int] = 10_000
_DISTRIBUTION: Final[str] = "lib_config_binder"


def _resolve_version() -> str:
    """Return the installed package version, ``"0.0.0"`` when not installed."""

    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "0.0.0"


@click.group(
    help="Bind configuration trees into typed object graphs",
    context_settings=CLICK_CONTEXT_SETTINGS,
    invoke_without_command=False,
)
@click.version_option(
    version=_resolve_version(),
    prog_name=_DISTRIBUTION,
    message="lib_config_binder version %(version)s",
)
@click.option(
    "--traceback/--no-traceback",
    is_flag=True,
    default=False,
    help="Show full Python traceback on errors",
)
@click.pass_context
def cli(ctx: click.Context, traceback: bool) -> None:
    """Root command configuring traceback handling for all subcommands.

    Side Effects
        Mutates ``lib_cli_exit_tools.config.traceback`` and
        ``lib_cli_exit_tools.config.traceback_force_color``.
    """

    ctx.ensure_object(dict)
    ctx.obj["traceback"] = traceback
    lib_cli_exit_tools.config.traceback = traceback
    lib_cli_exit_tools.config.traceback_force_color = traceback


@cli.command("info", context_settings=CLICK_CONTEXT_SETTINGS)
def cli_info() -> None:
    """Print basic distribution metadata so users can confirm installation."""

    try:
        meta = metadata.metadata(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        click.echo(f"{_DISTRIBUTION} (metadata unavailable)")
        return
    click.echo(f"Info for {meta.get('Name', _DISTRIBUTION)}:")
    click.echo(f"  Version         : {meta.get('Version', _resolve_version())}")
    click.echo(f"  Requires-Python : {meta.get('Requires-Python', '>=3.11')}")
    summary = meta.get("Summary")
    if summary:
        click.echo(f"  Summary         : {summary}")


_FILE_OPTION = click.option(
    "--file",
    "file",
    type=click.Path(path_type=Path, exists=True, file_okay=True, dir_okay=False, readable=True),
    required=True,
    help="TOML, JSON or YAML configuration file",
)
_SECTION_OPTION = click.option(
    "--section",
    default=None,
    help="Colon separated path of the section to use (e.g. 'services:db')",
)


def _section(file: Path, section: Optional[str]) -> ConfigurationSection:
    config = load_configuration(file)
    return config.get_section(section) if section else config


@cli.command("flatten", context_settings=CLICK_CONTEXT_SETTINGS)
@_FILE_OPTION
@_SECTION_OPTION
def cli_flatten(file: Path, section: Optional[str]) -> None:
    """Print every leaf of the file (or section) as ``path=value``.

    Examples
    --------
    >>> from click.testing import CliRunner
    >>> from tempfile import TemporaryDirectory
    >>> tmp = TemporaryDirectory()
    >>> path = Path(tmp.name) / "app.json"
    >>> _ = path.write_text('{"db": {"port": 5432}}', encoding="utf-8")
    >>> CliRunner().invoke(cli, ["flatten", "--file", str(path)]).output
    'db:port=5432\\n'
    >>> tmp.cleanup()
    """

    for path, value in walk(_section(file, section)):
        if value is not None:
            click.echo(f"{path}={value}")


@cli.command("bind", context_settings=CLICK_CONTEXT_SETTINGS)
@_FILE_OPTION
@click.option("--type", "type_name", required=True, help="Importable target type, e.g. 'myapp.settings:Settings'")
@_SECTION_OPTION
@click.option("--indent", type=int, default=None, help="Pretty-print JSON output with the provided indent size")
def cli_bind(file: Path, type_name: str, section: Optional[str], indent: Optional[int]) -> None:
    """Bind the file (or section) to ``--type`` and print the object graph as JSON."""

    try:
        target = load_type(type_name)
    except (ImportError, AttributeError, ValueError) as exc:
        raise click.BadParameter(f"cannot import '{type_name}': {exc}", param_hint="--type") from exc
    result = bind(_section(file, section), target)
    click.echo(json.dumps(to_jsonable(result), indent=indent, ensure_ascii=False))


def to_jsonable(value: Any) -> Any:
    """Return a JSON-compatible rendering of a bound object graph.

    Examples
    --------
    >>> import datetime
    >>> to_jsonable({"timeout": datetime.timedelta(seconds=90), "hosts": ("a", "b")})
    {'timeout': '0:01:30', 'hosts': ['a', 'b']}
    """

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, enum.Enum):
        return value.name
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (datetime.timedelta, decimal.Decimal, uuid.UUID, PurePath, complex)):
        return str(value)
    if isinstance(value, type):
        return f"{value.__module__}:{value.__qualname__}"
    if isinstance(value, dict):
        return {str(to_jsonable(key)): to_jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(item) for item in value]
    if dataclasses.is_dataclass(value):
        return {field.name: to_jsonable(getattr(value, field.name)) for field in dataclasses.fields(value)}
    if hasattr(value, "__dict__"):
        return {key: to_jsonable(item) for key, item in vars(value).items() if not key.startswith("_")}
    return str(value)


def main(argv: Optional[Sequence[str]] = None, *, restore_traceback: bool = True) -> int:
    """Execute the CLI with shared exit handling and return the exit code."""

    previous_traceback = getattr(lib_cli_exit_tools.config, "traceback", False)
    previous_force_color = getattr(lib_cli_exit_tools.config, "traceback_force_color", False)
    try:
        try:
            return lib_cli_exit_tools.run_cli(
                cli,
                argv=list(argv) if argv is not None else None,
                prog_name=_DISTRIBUTION,
            )
        except BaseException as exc:  # noqa: BLE001 - funnel through shared printers
            lib_cli_exit_tools.print_exception_message(
                trace_back=lib_cli_exit_tools.config.traceback,
                length_limit=(
                    _TRACEBACK_VERBOSE_LIMIT if lib_cli_exit_tools.config.traceback else _TRACEBACK_SUMMARY_LIMIT
                ),
            )
            return lib_cli_exit_tools.get_system_exit_code(exc)
    finally:
        if restore_traceback:
            lib_cli_exit_tools.config.traceback = previous_traceback
            lib_cli_exit_tools.config.traceback_force_color = previous_force_color


__all__ = ["cli", "main", "to_jsonable"]


if __name__ == "__main__":  # pragma: no cover - exercised via console entry point
    raise SystemExit(main(sys.argv[1:]))
