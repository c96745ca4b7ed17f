"""Structured logging for bind and reload diagnostics.

Purpose
    Every record the package emits carries a ``context`` dict: the event
    fields (configuration path, target type, generation, error text ...) plus
    the trace id bound by the host application. Applications decide where the
    records go; the package itself only installs a ``NullHandler``.

Contents
    - ``TRACE_ID``: context variable holding the trace id for the current task.
    - ``get_logger``: the ``lib_config_binder`` logger.
    - ``bind_trace_id``: set or clear ``TRACE_ID``.
    - ``log_debug`` / ``log_info`` / ``log_error``: emit one event.
    - ``make_event``: ``path``/``target`` payload shared by bind-time events.

System Integration
    The graph builder logs ``object_bound``, ``constructor_selected`` and
    ``unmatched_keys``; the reloading proxy logs its lifecycle
    (``proxy_created``, ``proxy_reloaded``, ``proxy_reload_failed`` ...);
    change tokens log ``change_callback_failed`` when a subscriber raises; the
    file loaders log reads and parse failures.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Final, Mapping

TRACE_ID: ContextVar[str | None] = ContextVar("lib_config_binder_trace_id", default=None)
"""Trace id attached to every record emitted from the current context."""

_LOGGER: Final[logging.Logger] = logging.getLogger("lib_config_binder")
_LOGGER.addHandler(logging.NullHandler())


def get_logger() -> logging.Logger:
    """Return the package logger so applications can attach handlers or filters."""

    return _LOGGER


def bind_trace_id(trace_id: str | None) -> None:
    """Correlate subsequent records with *trace_id*; ``None`` clears it.

    The value lives in a :class:`~contextvars.ContextVar`, so threads and
    asyncio tasks each see their own binding.

    Examples
    --------
    >>> bind_trace_id('req-7')
    >>> TRACE_ID.get()
    'req-7'
    >>> bind_trace_id(None)
    >>> TRACE_ID.get() is None
    True
    """

    TRACE_ID.set(trace_id)


def log_debug(message: str, **fields: Any) -> None:
    _emit(logging.DEBUG, message, fields)


def log_info(message: str, **fields: Any) -> None:
    _emit(logging.INFO, message, fields)


def log_error(message: str, **fields: Any) -> None:
    _emit(logging.ERROR, message, fields)


def make_event(
    path: str | None,
    target: str | None,
    payload: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """Return the fields of a bind or reload event.

    *path* is the configuration path of the node involved and *target* the
    readable name of the type being built; *payload* adds event specific
    detail and is merged last.

    Examples
    --------
    >>> make_event('db:port', 'int', {'value': '5432'})
    {'path': 'db:port', 'target': 'int', 'value': '5432'}
    >>> make_event(None, 'Settings')
    {'path': None, 'target': 'Settings'}
    """

    event: dict[str, Any] = {"path": path, "target": target}
    if payload:
        event |= dict(payload)
    return event


def _emit(level: int, message: str, fields: Mapping[str, Any]) -> None:
    # building the context is skipped entirely for disabled levels
    if not _LOGGER.isEnabledFor(level):
        return
    context = {"trace_id": TRACE_ID.get(), **fields}
    _LOGGER.log(level, message, extra={"context": context})
