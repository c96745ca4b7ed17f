"""In-memory hierarchical configuration tree.

Purpose
-------
Provide the reference implementation of the configuration store the binding
engine consumes: a string-keyed tree addressed by ``:`` separated paths with
case-insensitive lookups and one-shot change tokens. The module is pure domain
code (no I/O) and mirrors the contract described by
:class:`lib_config_binder.application.ports.ConfigurationSection`.

Contents
--------
* :data:`KEY_DELIMITER` – path separator (``":"``).
* :func:`flatten` – turn nested mappings and sequences into ``(path, value)``
  pairs with string leaves.
* :class:`ChangeToken` – fires at most once; callers re-register on the next
  token.
* :func:`on_change` – re-registering subscription helper.
* :class:`MemoryConfiguration` – mutable root of the tree.
* :class:`ConfigSection` – lightweight view of one node of the tree.

System Role
-----------
The CLI loads structured files into a :class:`MemoryConfiguration`; tests and
applications construct it directly from dictionaries. Any other store can be
bound as long as it satisfies the port protocols.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Iterator, Protocol

from ..observability import log_error

KEY_DELIMITER = ":"


def combine_path(*segments: str) -> str:
    """Join path segments with :data:`KEY_DELIMITER`, skipping empty ones.

    Examples
    --------
    >>> combine_path("", "db", "port")
    'db:port'
    """

    return KEY_DELIMITER.join(segment for segment in segments if segment)


def last_segment(path: str) -> str:
    """Return the last segment of *path*.

    >>> last_segment("db:hosts:0")
    '0'
    """

    return path.rsplit(KEY_DELIMITER, 1)[-1]


def flatten(data: Any, prefix: str = "") -> Iterator[tuple[str, str | None]]:
    """Yield ``(path, value)`` pairs for every leaf of a nested structure.

    Why
    ----
    The tree stores leaves as strings only, exactly like key/value configuration
    providers do, so every structured input is normalised once on entry.

    What
    ----
    Mappings contribute their keys, sequences contribute ``0..n-1`` indices.
    Booleans become ``"true"``/``"false"``; ``None`` stays a null leaf; empty
    containers become present-but-null nodes.

    Examples
    --------
    >>> list(flatten({"db": {"port": 5432, "hosts": ["a", "b"]}, "debug": True}))
    [('db:port', '5432'), ('db:hosts:0', 'a'), ('db:hosts:1', 'b'), ('debug', 'true')]
    >>> list(flatten({"empty": {}, "missing": None}))
    [('empty', None), ('missing', None)]
    """

    if isinstance(data, Mapping):
        if not data and prefix:
            yield prefix, None
        for key, value in data.items():
            yield from flatten(value, combine_path(prefix, str(key)))
    elif isinstance(data, (list, tuple)):
        if not data and prefix:
            yield prefix, None
        for index, value in enumerate(data):
            yield from flatten(value, combine_path(prefix, str(index)))
    elif prefix:
        yield prefix, _scalar_to_text(data)


def _scalar_to_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Registration(Protocol):
    def close(self) -> None: ...


class _CallbackRegistration:
    __slots__ = ("_token", "_callback")

    def __init__(self, token: ChangeToken, callback: Callable[[], None]) -> None:
        self._token = token
        self._callback = callback

    def close(self) -> None:
        self._token._unregister(self._callback)


class ChangeToken:
    """One-shot change notification.

    A token fires at most once. Consumers register callbacks and must fetch the
    next token from the store to observe subsequent changes (see
    :func:`on_change`).

    Examples
    --------
    >>> token = ChangeToken()
    >>> seen = []
    >>> _ = token.register_callback(lambda: seen.append("fired"))
    >>> token.fire(); token.fire()
    >>> seen, token.has_changed
    (['fired'], True)
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []
        self._fired = False

    @property
    def has_changed(self) -> bool:
        return self._fired

    def register_callback(self, callback: Callable[[], None]) -> Registration:
        with self._lock:
            if not self._fired:
                self._callbacks.append(callback)
                return _CallbackRegistration(self, callback)
        callback()
        return _CallbackRegistration(self, callback)

    def fire(self) -> None:
        with self._lock:
            if self._fired:
                return
            self._fired = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as exc:  # noqa: BLE001 - one subscriber must not starve the others
                log_error("change_callback_failed", callback=repr(callback), error=str(exc))

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass


class ChangeSubscription:
    """Keep *callback* registered across successive one-shot tokens."""

    def __init__(self, token_producer: Callable[[], Any], callback: Callable[[], None]) -> None:
        self._producer = token_producer
        self._callback = callback
        self._lock = threading.Lock()
        self._registration: Registration | None = None
        self._closed = False
        self._register()

    @property
    def closed(self) -> bool:
        return self._closed

    def _register(self) -> None:
        token = self._producer()
        registration = token.register_callback(self._on_fire)
        with self._lock:
            if self._closed:
                registration.close()
                return
            self._registration = registration

    def _on_fire(self) -> None:
        if self._closed:
            return
        # the next token must be watched before the callback runs: a change
        # made while it runs fires that token, not this one
        self._register()
        self._callback()

    def close(self) -> None:
        with self._lock:
            self._closed = True
            registration, self._registration = self._registration, None
        if registration is not None:
            registration.close()


def on_change(token_producer: Callable[[], Any], callback: Callable[[], None]) -> ChangeSubscription:
    """Invoke *callback* on every change signalled by tokens from *token_producer*.

    Returns a subscription whose ``close()`` stops further notifications.
    """

    return ChangeSubscription(token_producer, callback)


class MemoryConfiguration:
    """Mutable in-memory configuration root.

    Why
    ----
    Give the binder a concrete store for tests, the CLI, and applications that
    assemble configuration in code.

    What
    ----
    Stores flattened ``path -> value`` pairs keyed case-insensitively while
    preserving the first spelling seen. Every mutation installs a fresh
    :class:`ChangeToken` and fires the previous one.

    Parameters
    ----------
    data:
        Optional nested mapping (or flat ``"a:b"`` keyed mapping) to load.

    Examples
    --------
    >>> cfg = MemoryConfiguration({"Db": {"Port": 5432, "Hosts": ["a", "b"]}})
    >>> cfg.get("db:port")
    '5432'
    >>> [child.key for child in cfg.get_section("DB").get_children()]
    ['Port', 'Hosts']
    >>> [child.value for child in cfg.get_section("db:hosts").get_children()]
    ['a', 'b']
    """

    key = ""
    path = ""
    value: str | None = None

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, tuple[str, str | None]] = {}
        self._token = ChangeToken()
        if data:
            self._store(flatten(data))

    def get(self, key: str) -> str | None:
        entry = self._data.get(key.casefold())
        return entry[1] if entry is not None else None

    def __getitem__(self, key: str) -> str | None:
        return self.get(key)

    def get_section(self, key: str) -> ConfigSection:
        return ConfigSection(self, key)

    def get_children(self) -> list[ConfigSection]:
        return self._children_of("")

    def get_reload_token(self) -> ChangeToken:
        return self._token

    def exists(self) -> bool:
        return bool(self._data)

    def set(self, key: str, value: Any) -> None:
        """Assign *value* (nested structures allowed) under *key* and signal a change."""

        with self._lock:
            spellings = self._remove_subtree(key)
            pairs = list(flatten(value, key))
            self._store(pairs or [(key, None)], spellings)
        self._signal()

    def remove(self, key: str) -> None:
        """Remove *key* and all of its descendants and signal a change."""

        with self._lock:
            self._remove_subtree(key)
        self._signal()

    def load(self, data: Mapping[str, Any]) -> None:
        """Replace the whole tree with *data* and signal a change."""

        with self._lock:
            self._data = {}
            self._store(flatten(data))
        self._signal()

    def reload(self) -> None:
        """Signal a change without modifying the stored values."""

        self._signal()

    def pairs(self) -> list[tuple[str, str | None]]:
        """Return every stored ``(path, value)`` pair in insertion order."""

        with self._lock:
            return list(self._data.values())

    def _store(
        self,
        pairs: Iterable[tuple[str, str | None]],
        spellings: Mapping[str, tuple[str, str | None]] | None = None,
    ) -> None:
        for path, value in pairs:
            folded = path.casefold()
            existing = self._data.get(folded) or (spellings or {}).get(folded)
            self._data[folded] = (existing[0] if existing else path, value)

    def _remove_subtree(self, key: str) -> dict[str, tuple[str, str | None]]:
        folded = key.casefold()
        prefix = folded + KEY_DELIMITER
        removed = {item: entry for item, entry in self._data.items() if item == folded or item.startswith(prefix)}
        for stored in removed:
            del self._data[stored]
        return removed

    def _signal(self) -> None:
        with self._lock:
            previous, self._token = self._token, ChangeToken()
        previous.fire()

    def _lookup(self, path: str) -> str | None:
        entry = self._data.get(path.casefold())
        return entry[1] if entry is not None else None

    def _has_node(self, path: str) -> bool:
        folded = path.casefold()
        prefix = folded + KEY_DELIMITER
        return any(item == folded or item.startswith(prefix) for item in self._data)

    def _children_of(self, path: str) -> list[ConfigSection]:
        with self._lock:
            entries = list(self._data.values())
        prefix = path.casefold() + KEY_DELIMITER if path else ""
        # casefolding may change lengths ("ß" -> "ss"), so index by segment
        depth = path.count(KEY_DELIMITER) + 1 if path else 0
        seen: dict[str, str] = {}
        for stored_path, _ in entries:
            if not stored_path.casefold().startswith(prefix):
                continue
            segment = stored_path.split(KEY_DELIMITER)[depth]
            seen.setdefault(segment.casefold(), segment)
        keys = list(seen.values())
        if keys and all(_is_index(key) for key in keys):
            keys.sort(key=int)
        parent = path + KEY_DELIMITER if path else ""
        return [ConfigSection(self, parent + key) for key in keys]

    def __repr__(self) -> str:
        return f"MemoryConfiguration({len(self._data)} entries)"


def _is_index(key: str) -> bool:
    return key.isdigit() and (key == "0" or not key.startswith("0"))


class ConfigSection:
    """View of a single node inside a :class:`MemoryConfiguration`.

    Sections are cheap, stateless views: they always reflect the current
    content of the root, and ``get_section`` never fails (missing sections
    simply have no value and no children).
    """

    __slots__ = ("_root", "_path")

    def __init__(self, root: MemoryConfiguration, path: str) -> None:
        self._root = root
        self._path = path

    @property
    def key(self) -> str:
        return last_segment(self._path)

    @property
    def path(self) -> str:
        return self._path

    @property
    def value(self) -> str | None:
        return self._root._lookup(self._path)

    def get(self, key: str) -> str | None:
        return self._root._lookup(combine_path(self._path, key))

    def __getitem__(self, key: str) -> str | None:
        return self.get(key)

    def get_section(self, key: str) -> ConfigSection:
        return ConfigSection(self._root, combine_path(self._path, key))

    def get_children(self) -> list[ConfigSection]:
        return self._root._children_of(self._path)

    def get_reload_token(self) -> ChangeToken:
        return self._root.get_reload_token()

    def exists(self) -> bool:
        return self._root._has_node(self._path)

    def __repr__(self) -> str:
        return f"ConfigSection(path={self._path!r}, value={self.value!r})"
