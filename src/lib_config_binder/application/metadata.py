"""Declarative binding metadata kept in an explicit registry.

Purpose
-------
Classes describe how they want to be bound (default concrete types, string
conversion methods, alternate configuration names, factory constructors)
through small decorators. Each decorator records a frozen *hint* in a
:class:`MetadataRegistry` instead of stashing attributes on the class, so the
binder asks one table for every declarative rule.

Contents
--------
* Hint variants: :class:`DefaultTypeHint`, :class:`ConvertMethodHint`,
  :class:`AlternateNameHint`, :class:`ConstructorHint`, :class:`HiddenInitHint`.
* :class:`MetadataRegistry` and the process-wide default :data:`METADATA`.
* Decorators and helpers: :func:`default_type`, :func:`member_default_type`,
  :func:`member_default_types`, :func:`convert_method`,
  :func:`member_convert_method`, :func:`alternate_name`,
  :func:`alternate_names`, :func:`config_constructor`, :func:`hide_init`.

Examples
--------
>>> registry = MetadataRegistry()
>>> class Shape: ...
>>> @default_type(Shape, registry=registry)
... class Base: ...
>>> registry.default_type_for(Base) is Shape
True
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, TypeVar, Union

from ..domain.errors import conversion_failed, inconsistent_default_types, type_not_importable
from ..domain.identifiers import identifiers_match
from .typeinfo import load_type

C = TypeVar("C", bound=type)


@dataclass(frozen=True)
class DefaultTypeHint:
    """Concrete type to use for ``owner`` (``member is None``) or one of its members."""

    owner: type
    member: str | None
    default: type | str


@dataclass(frozen=True)
class ConvertMethodHint:
    """Name of a static/class method of ``owner`` that turns a string into a value."""

    owner: type
    member: str | None
    method_name: str


@dataclass(frozen=True)
class AlternateNameHint:
    owner: type
    member: str
    alternate: str


@dataclass(frozen=True)
class ConstructorHint:
    owner: type
    method_name: str


@dataclass(frozen=True)
class HiddenInitHint:
    owner: type


Hint = Union[DefaultTypeHint, ConvertMethodHint, AlternateNameHint, ConstructorHint, HiddenInitHint]


class MetadataRegistry:
    """Table of binding hints keyed by owning class.

    Why
    ----
    A single statically populated table makes the declarative rules explicit
    and testable, and lets applications keep isolated registries.

    What
    ----
    Stores hints in registration order. ``version`` increases with every
    registration so cached schemas can detect stale entries.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hints: dict[type, list[Hint]] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def register(self, hint: Hint) -> Hint:
        with self._lock:
            self._hints.setdefault(hint.owner, []).append(hint)
            self._version += 1
        return hint

    def hints(self, owner: type) -> list[Hint]:
        """Return hints registered for *owner* and its base classes, nearest first."""

        mro = getattr(owner, "__mro__", (owner,))
        with self._lock:
            return [hint for klass in mro for hint in self._hints.get(klass, ())]

    def default_type_for(self, target: Any) -> type | None:
        """Default concrete type declared on *target* itself (not inherited)."""

        for hint in self._own(target, DefaultTypeHint):
            if hint.member is None:
                return _resolve(hint.default, target)
        return None

    def default_type_for_member(self, owner: Any, member: str | None, path: str | None = None) -> type | None:
        """Default type declared for *member* of *owner*.

        Raises :class:`~lib_config_binder.domain.errors.InconsistentMetadata`
        when matching members declare different defaults.
        """

        if not isinstance(owner, type) or member is None:
            return None
        found: list[type] = []
        for hint in self.hints(owner):
            if isinstance(hint, DefaultTypeHint) and hint.member is not None and identifiers_match(hint.member, member):
                resolved = _resolve(hint.default, owner, path)
                if resolved not in found:
                    found.append(resolved)
        if len(found) > 1:
            raise inconsistent_default_types(owner, member, path)
        return found[0] if found else None

    def convert_method_for(self, target: Any) -> Callable[[str], Any] | None:
        for hint in self._own(target, ConvertMethodHint):
            if hint.member is None:
                return _convert_function(target, hint.method_name)
        return None

    def convert_method_for_member(self, owner: Any, member: str | None) -> Callable[[str], Any] | None:
        if not isinstance(owner, type) or member is None:
            return None
        for hint in self.hints(owner):
            if isinstance(hint, ConvertMethodHint) and hint.member is not None and identifiers_match(hint.member, member):
                return _convert_function(hint.owner, hint.method_name)
        return None

    def alternate_names(self, owner: type, member: str) -> tuple[str, ...]:
        return tuple(
            hint.alternate
            for hint in self.hints(owner)
            if isinstance(hint, AlternateNameHint) and identifiers_match(hint.member, member)
        )

    def constructor_names(self, owner: type) -> list[str]:
        return [hint.method_name for hint in self._own(owner, ConstructorHint)]

    def hides_init(self, owner: type) -> bool:
        return any(True for _ in self._own(owner, HiddenInitHint))

    def _own(self, owner: Any, kind: type) -> list[Any]:
        with self._lock:
            return [hint for hint in self._hints.get(owner, ()) if isinstance(hint, kind)]

    def __repr__(self) -> str:
        return f"MetadataRegistry(owners={len(self._hints)}, version={self._version})"


def _resolve(default: type | str, owner: Any, path: str | None = None) -> type:
    if isinstance(default, type):
        return default
    try:
        return load_type(default)
    except (ImportError, AttributeError) as exc:
        raise type_not_importable(default, owner, path, str(exc)) from exc


def _convert_function(owner: type, method_name: str) -> Callable[[str], Any]:
    method = getattr(owner, method_name, None)
    if method is None or not callable(method):
        raise conversion_failed(owner, None, None, f"no conversion method named '{method_name}'")
    return method


METADATA = MetadataRegistry()
"""Process-wide registry used when a bind call does not pass its own."""


def default_type(default: type | str, *, registry: MetadataRegistry = METADATA) -> Callable[[C], C]:
    """Class decorator declaring the concrete type to build for an abstract class.

    *default* may be a class or a lazy ``"module:Name"`` string, which allows a
    base class to name a subclass defined later in the same module.
    """

    def decorate(cls: C) -> C:
        registry.register(DefaultTypeHint(cls, None, default))
        return cls

    return decorate


def member_default_type(
    owner: type, member: str, default: type | str, *, registry: MetadataRegistry = METADATA
) -> None:
    registry.register(DefaultTypeHint(owner, member, default))


def member_default_types(*, registry: MetadataRegistry = METADATA, **defaults: type | str) -> Callable[[C], C]:
    """Class decorator declaring default types per member: ``@member_default_types(engine=V8)``."""

    def decorate(cls: C) -> C:
        for member, default in defaults.items():
            registry.register(DefaultTypeHint(cls, member, default))
        return cls

    return decorate


def convert_method(method_name: str, *, registry: MetadataRegistry = METADATA) -> Callable[[C], C]:
    """Class decorator naming the static method that parses the class from a string."""

    def decorate(cls: C) -> C:
        registry.register(ConvertMethodHint(cls, None, method_name))
        return cls

    return decorate


def member_convert_method(
    owner: type, member: str, method_name: str, *, registry: MetadataRegistry = METADATA
) -> None:
    """Declare that *member* of *owner* is parsed by ``owner.<method_name>(value)``."""

    registry.register(ConvertMethodHint(owner, member, method_name))


def member_convert_methods(*, registry: MetadataRegistry = METADATA, **methods: str) -> Callable[[C], C]:
    def decorate(cls: C) -> C:
        for member, method_name in methods.items():
            registry.register(ConvertMethodHint(cls, member, method_name))
        return cls

    return decorate


def alternate_names(owner: type, member: str, *names: str, registry: MetadataRegistry = METADATA) -> None:
    for name in names:
        registry.register(AlternateNameHint(owner, member, name))


def alternate_name(member: str, *names: str, registry: MetadataRegistry = METADATA) -> Callable[[C], C]:
    """Class decorator: ``@alternate_name("timeout", "timeout_seconds")``."""

    def decorate(cls: C) -> C:
        alternate_names(cls, member, *names, registry=registry)
        return cls

    return decorate


def hide_init(cls: C | None = None, *, registry: MetadataRegistry = METADATA) -> Any:
    """Class decorator removing ``__init__`` from the candidate constructors."""

    def decorate(klass: C) -> C:
        registry.register(HiddenInitHint(klass))
        return klass

    if cls is not None:
        return decorate(cls)
    return decorate


class config_constructor:  # noqa: N801 - used as a decorator
    """Mark a classmethod or staticmethod as an additional constructor.

    Plain functions are treated as static methods.

    Examples
    --------
    >>> registry = MetadataRegistry()
    >>> class Point:
    ...     def __init__(self, x: int, y: int) -> None:
    ...         self.x, self.y = x, y
    ...     @config_constructor(registry=registry)
    ...     @classmethod
    ...     def origin(cls) -> "Point":
    ...         return cls(0, 0)
    >>> registry.constructor_names(Point)
    ['origin']
    """

    def __init__(self, wrapped: Any = None, *, registry: MetadataRegistry = METADATA) -> None:
        self._wrapped = wrapped
        self._registry = registry

    def __call__(self, wrapped: Any) -> config_constructor:
        if self._wrapped is not None:
            raise TypeError("config_constructor instance is not callable")
        return config_constructor(wrapped, registry=self._registry)

    def __set_name__(self, owner: type, name: str) -> None:
        wrapped = self._wrapped
        if not isinstance(wrapped, (classmethod, staticmethod)):
            wrapped = staticmethod(wrapped)
        setattr(owner, name, wrapped)
        self._registry.register(ConstructorHint(owner, name))
