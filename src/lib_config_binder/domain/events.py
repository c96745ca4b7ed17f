"""Multicast event primitive used by capability contracts and reloading proxies.

An :class:`Event` keeps an ordered list of handlers. Handlers are added with
``subscribe``/``+=`` and removed with ``unsubscribe``/``-=``; ``fire`` calls
every handler with the given arguments. Contracts declare events as class
attributes annotated with :class:`Event`; implementations create one per
instance.

Examples
--------
>>> changed = Event()
>>> seen = []
>>> changed += seen.append
>>> changed.fire("a")
>>> changed -= seen.append
>>> changed.fire("b")
>>> seen
['a']
"""

from __future__ import annotations

import threading
from typing import Any, Callable

Handler = Callable[..., Any]


class Event:
    __slots__ = ("_handlers", "_lock")

    def __init__(self) -> None:
        self._handlers: list[Handler] = []
        self._lock = threading.Lock()

    def subscribe(self, handler: Handler) -> Handler:
        with self._lock:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> None:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                pass

    def __iadd__(self, handler: Handler) -> Event:
        self.subscribe(handler)
        return self

    def __isub__(self, handler: Handler) -> Event:
        self.unsubscribe(handler)
        return self

    @property
    def handlers(self) -> tuple[Handler, ...]:
        with self._lock:
            return tuple(self._handlers)

    def fire(self, *args: Any, **kwargs: Any) -> None:
        for handler in self.handlers:
            handler(*args, **kwargs)

    __call__ = fire

    def __len__(self) -> int:
        return len(self._handlers)

    def __bool__(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Event(handlers={len(self._handlers)})"
