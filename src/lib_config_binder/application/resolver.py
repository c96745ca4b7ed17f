"""Fallback supplier for constructor parameters without a configuration key.

A :class:`Resolver` lets an application inject collaborators (loggers, HTTP
sessions, clocks) into objects built from configuration. It is consulted only
for parameters that no configuration child matches.

Examples
--------
>>> import logging
>>> resolver = Resolver(lambda annotation: logging.getLogger("app") if annotation is logging.Logger else None)
>>> resolver.try_resolve(logging.Logger, "logger")[0]
True
>>> Resolver.EMPTY.can_resolve(logging.Logger, "logger")
False
"""

from __future__ import annotations

from typing import Any, Callable, ClassVar

from ..domain.errors import null_argument

Resolve = Callable[[Any], Any]
CanResolve = Callable[[Any], bool]
ResolveNamed = Callable[[Any, str], Any]
CanResolveNamed = Callable[[Any, str], bool]


class Resolver:
    """Resolve constructor parameters by annotation and, optionally, by name.

    Parameters
    ----------
    resolve:
        ``resolve(annotation) -> value``; returning ``None`` means "cannot".
    can_resolve:
        Optional ``can_resolve(annotation) -> bool``. Without it a parameter is
        resolvable when ``resolve`` returns something other than ``None``.
    resolve_named / can_resolve_named:
        Optional name-aware variants tried before the annotation-only ones.
    """

    EMPTY: ClassVar[Resolver]

    def __init__(
        self,
        resolve: Resolve,
        can_resolve: CanResolve | None = None,
        *,
        resolve_named: ResolveNamed | None = None,
        can_resolve_named: CanResolveNamed | None = None,
    ) -> None:
        if resolve is None:
            raise null_argument("resolve")
        if can_resolve_named is not None and resolve_named is None:
            raise null_argument("resolve_named")
        self._resolve = resolve
        self._can_resolve = can_resolve
        self._resolve_named = resolve_named
        self._can_resolve_named = can_resolve_named

    def can_resolve(self, annotation: Any, name: str) -> bool:
        if self._resolve_named is not None:
            if self._can_resolve_named is not None:
                if self._can_resolve_named(annotation, name):
                    return True
            elif self._resolve_named(annotation, name) is not None:
                return True
        if self._can_resolve is not None:
            return bool(self._can_resolve(annotation))
        return self._resolve(annotation) is not None

    def resolve(self, annotation: Any, name: str) -> Any:
        if self._resolve_named is not None:
            value = self._resolve_named(annotation, name)
            if value is not None:
                return value
        return self._resolve(annotation)

    def try_resolve(self, annotation: Any, name: str) -> tuple[bool, Any]:
        if self.can_resolve(annotation, name):
            value = self.resolve(annotation, name)
            return value is not None, value
        return False, None

    def __repr__(self) -> str:
        return "Resolver.EMPTY" if self is Resolver.EMPTY else f"Resolver({self._resolve!r})"


Resolver.EMPTY = Resolver(lambda annotation: object(), lambda annotation: False)
