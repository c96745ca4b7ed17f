"""Write-once holder for an application's configuration root.

Purpose
-------
Applications usually want exactly one configuration root. Instead of an ambient
global, the root is kept in an explicitly constructed :class:`ConfigurationHolder`
that is passed to whoever needs it.

Semantics
---------
* ``set`` may be called any number of times until the value is first read.
* The first ``get`` locks the holder; later ``set`` calls raise
  :class:`HolderLockedError`.
* When nothing was set, ``get`` evaluates the optional default factory once and
  locks that result in.

Examples
--------
>>> holder = ConfigurationHolder(default_factory=lambda: "defaults")
>>> holder.set("custom")
>>> holder.get()
'custom'
>>> holder.is_locked
True
>>> holder.set("other")
Traceback (most recent call last):
...
lib_config_binder.domain.errors.HolderLockedError: Configuration root is locked: it has already been read
"""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from .errors import HolderLockedError

T = TypeVar("T")

_UNSET = object()


class ConfigurationHolder(Generic[T]):
    def __init__(self, default_factory: Callable[[], T] | None = None) -> None:
        self._default_factory = default_factory
        self._value: object = _UNSET
        self._locked = False
        self._lock = threading.Lock()

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def has_value(self) -> bool:
        return self._value is not _UNSET

    def set(self, value: T) -> None:
        with self._lock:
            if self._locked:
                raise HolderLockedError("Configuration root is locked: it has already been read")
            self._value = value

    def get(self) -> T:
        with self._lock:
            if self._value is _UNSET:
                if self._default_factory is None:
                    raise LookupError("No configuration root has been set and no default factory was given")
                self._value = self._default_factory()
            self._locked = True
            return self._value  # type: ignore[return-value]
