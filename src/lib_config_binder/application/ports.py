"""Application-layer ports describing the collaborators the engine consumes.

Purpose
-------
Define the structural contracts a configuration store must satisfy so the
binding engine and the reloading proxy never depend on a concrete store.

Contents
--------
* :class:`ChangeRegistration` – handle returned by a change-token registration.
* :class:`ChangeToken` – one-shot change notification.
* :class:`ConfigurationSection` – one node of a hierarchical configuration tree.
* :class:`FileLoader` – parses a structured configuration file into a mapping.

System Role
-----------
These protocols enforce Dependency Inversion. The in-memory tree in
:mod:`lib_config_binder.domain.tree` implements them, and so can any adapter
around another configuration store.
"""

from __future__ import annotations

from typing import Callable, Mapping, Protocol, Sequence, runtime_checkable


class ChangeRegistration(Protocol):
    def close(self) -> None:
        """Stop delivering notifications to the registered callback."""


class ChangeToken(Protocol):
    """Fires at most once; consumers fetch a fresh token after each firing."""

    @property
    def has_changed(self) -> bool: ...

    def register_callback(self, callback: Callable[[], None]) -> ChangeRegistration:
        """Invoke *callback* when the token fires."""


@runtime_checkable
class ConfigurationSection(Protocol):
    """A node of a hierarchical, string-keyed configuration tree.

    Why
    ----
    The engine walks the tree purely through this surface: leaf values are
    strings (or ``None``), branches expose their children in order, and the
    reload token signals changes anywhere in the store.

    Attributes
    ----------
    key:
        Last path segment (``"port"``).
    path:
        Full ``:`` separated path (``"db:port"``).
    value:
        Leaf value or ``None``.
    """

    @property
    def key(self) -> str: ...

    @property
    def path(self) -> str: ...

    @property
    def value(self) -> str | None: ...

    def get(self, key: str) -> str | None:
        """Return the value stored under the relative *key*."""

    def get_section(self, key: str) -> ConfigurationSection:
        """Return the (possibly empty) child section at the relative *key*."""

    def get_children(self) -> Sequence[ConfigurationSection]:
        """Return the immediate children in order."""

    def get_reload_token(self) -> ChangeToken:
        """Return the current change token of the underlying store."""


@runtime_checkable
class FileLoader(Protocol):
    """Parse a structured configuration file into a mapping."""

    def load(self, path: str) -> Mapping[str, object]:
        """Read *path* and return a mapping representation or raise ``InvalidFormat``."""
