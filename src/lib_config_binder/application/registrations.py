"""Explicit default-type and value-converter registrations.

Purpose
-------
Let callers steer binding without touching the bound classes: register the
concrete type to build for an abstract member or target, or the function that
parses a leaf string for a member or target type.

Contents
--------
* :class:`DefaultTypes` – ``(declaring type, member) -> type`` and
  ``target -> type``.
* :class:`ValueConverters` – ``(declaring type, member) -> convert`` and
  ``target -> convert``.
* :class:`FrozenDefaultTypes` / :class:`FrozenValueConverters` – read-only
  snapshots handed to the binder.

Invariants
----------
Every entry is validated when it is added: default types must be concrete and
assignable, converter return types must be assignable, and member names must
exist on the declaring type. Violations raise at registration time, never at
bind time. Member names compare with
:func:`~lib_config_binder.domain.identifiers.identifiers_match`.
"""

from __future__ import annotations

import inspect
import threading
import typing
from typing import Any, Callable, Generic, Iterator, TypeVar

from ..domain.errors import (
    InvalidTargetShape,
    TypeMismatch,
    null_argument,
    type_name,
    unknown_member,
)
from ..domain.identifiers import identifiers_match
from .metadata import METADATA, MetadataRegistry
from .schema import schema_for
from .typeinfo import CollectionShapeError, collection_shape, factory_result, is_abstract, is_assignable, unwrap_optional

V = TypeVar("V")
Converter = Callable[[str], Any]


class _Entries(Generic[V]):
    """Member-keyed and type-keyed entries with identifier-aware member lookup."""

    def __init__(self) -> None:
        self._members: list[tuple[type, str, V]] = []
        self._types: dict[Any, V] = {}

    def add_member(self, owner: type, member: str, value: V) -> None:
        for index, (existing_owner, existing_member, _) in enumerate(self._members):
            if existing_owner is owner and identifiers_match(existing_member, member):
                self._members[index] = (owner, member, value)
                return
        self._members.append((owner, member, value))

    def add_type(self, target: Any, value: V) -> None:
        self._types[target] = value

    def for_member(self, owner: Any, member: str | None) -> V | None:
        if owner is None or member is None:
            return None
        for existing_owner, existing_member, value in self._members:
            if existing_owner is owner and identifiers_match(existing_member, member):
                return value
        return None

    def for_type(self, target: Any) -> V | None:
        try:
            return self._types.get(target)
        except TypeError:
            return None

    def copy(self) -> _Entries[V]:
        clone: _Entries[V] = _Entries()
        clone._members = list(self._members)
        clone._types = dict(self._types)
        return clone

    def keys(self) -> Iterator[str]:
        for owner, member, _ in self._members:
            yield f"{type_name(owner)}::{member}"
        for target in self._types:
            yield type_name(target)

    def __len__(self) -> int:
        return len(self._members) + len(self._types)


def _member_annotations(owner: type, member: str, metadata: MetadataRegistry) -> list[Any]:
    found = [annotation for _, annotation in schema_for(owner, metadata).find_members(member)]
    if not found:
        raise unknown_member(owner, member)
    return found


def _accepts(candidate: Any, annotation: Any) -> bool:
    """``candidate`` fits *annotation* directly, as its element, or as a factory result."""

    if is_assignable(candidate, annotation):
        return True
    inner, _ = unwrap_optional(annotation)
    produced = factory_result(inner)
    if produced is not None:
        return _accepts(candidate, produced)
    try:
        shape = collection_shape(inner)
    except CollectionShapeError:
        return False
    return shape is not None and is_assignable(candidate, shape.element)


class FrozenDefaultTypes:
    """Read-only view of a :class:`DefaultTypes` snapshot."""

    def __init__(self, entries: _Entries[type]) -> None:
        self._entries = entries

    def for_member(self, owner: Any, member: str | None) -> type | None:
        return self._entries.for_member(owner, member)

    def for_type(self, target: Any) -> type | None:
        return self._entries.for_type(target)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return self._entries.keys()


class DefaultTypes:
    """Fluent registry of default concrete types.

    Examples
    --------
    >>> import abc
    >>> class Engine(abc.ABC):
    ...     @abc.abstractmethod
    ...     def start(self) -> str: ...
    >>> class V8(Engine):
    ...     def start(self) -> str:
    ...         return "vroom"
    >>> defaults = DefaultTypes().add(Engine, V8)
    >>> defaults.freeze().for_type(Engine) is V8
    True
    """

    def __init__(self, *, metadata: MetadataRegistry = METADATA) -> None:
        self._entries: _Entries[type] = _Entries()
        self._metadata = metadata
        self._lock = threading.Lock()

    @typing.overload
    def add(self, target: Any, default: type, /) -> DefaultTypes: ...

    @typing.overload
    def add(self, declaring_type: type, member: str, default: type, /) -> DefaultTypes: ...

    def add(self, *args: Any) -> DefaultTypes:
        if len(args) == 2:
            target, default = args
            self._add_type(target, default)
        elif len(args) == 3:
            owner, member, default = args
            self._add_member(owner, member, default)
        else:
            raise TypeError("add() expects (target, default) or (declaring_type, member, default)")
        return self

    def _add_type(self, target: Any, default: type) -> None:
        if target is None:
            raise null_argument("target")
        _require_concrete(default)
        if not is_assignable(default, target):
            raise TypeMismatch(
                f"Default type {type_name(default)} is not assignable to target type {type_name(target)}",
                target_type=target,
                attempted_type=default,
                code="default_type_not_assignable",
            )
        with self._lock:
            self._entries.add_type(target, default)

    def _add_member(self, owner: type, member: str, default: type) -> None:
        if owner is None:
            raise null_argument("declaring_type")
        if member is None:
            raise null_argument("member")
        _require_concrete(default)
        annotations = _member_annotations(owner, member, self._metadata)
        rejected = [annotation for annotation in annotations if not _accepts(default, annotation)]
        if rejected:
            raise TypeMismatch(
                f"Default type {type_name(default)} is not assignable to member '{member}' of "
                f"{type_name(owner)} ({', '.join(type_name(a) for a in rejected)})",
                target_type=rejected[0],
                attempted_type=default,
                code="default_type_not_assignable_to_member",
            )
        with self._lock:
            self._entries.add_member(owner, member, default)

    def freeze(self) -> FrozenDefaultTypes:
        with self._lock:
            return FrozenDefaultTypes(self._entries.copy())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return self._entries.keys()


def _require_concrete(default: Any) -> None:
    if default is None:
        raise null_argument("default")
    if not isinstance(default, type) or is_abstract(default):
        raise InvalidTargetShape(
            f"Default type {type_name(default)} must be a concrete class",
            target_type=default,
            code="default_type_cannot_be_abstract",
        )


def converter_return_type(convert: Converter) -> Any:
    """Return the declared return annotation of *convert*, or ``Any``."""

    try:
        hints = typing.get_type_hints(convert)
    except Exception:  # noqa: BLE001 - callables without resolvable hints
        hints = {}
    if "return" in hints:
        return hints["return"]
    if isinstance(convert, type):
        return convert
    try:
        annotation = inspect.signature(convert).return_annotation
    except (TypeError, ValueError):
        return Any
    if annotation is inspect.Signature.empty or isinstance(annotation, str):
        return Any
    return annotation


class FrozenValueConverters:
    """Read-only view of a :class:`ValueConverters` snapshot."""

    def __init__(self, entries: _Entries[Converter]) -> None:
        self._entries = entries

    def for_member(self, owner: Any, member: str | None) -> Converter | None:
        return self._entries.for_member(owner, member)

    def for_type(self, target: Any) -> Converter | None:
        return self._entries.for_type(target)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return self._entries.keys()


class ValueConverters:
    """Fluent registry of string conversion functions.

    The return type is taken from ``returns=`` or from the function's return
    annotation; un-annotated functions are accepted for any target.

    Examples
    --------
    >>> from datetime import timedelta
    >>> def minutes(value: str) -> timedelta:
    ...     return timedelta(minutes=int(value))
    >>> converters = ValueConverters().add(timedelta, minutes)
    >>> converters.freeze().for_type(timedelta)("5")
    datetime.timedelta(seconds=300)
    """

    def __init__(self, *, metadata: MetadataRegistry = METADATA) -> None:
        self._entries: _Entries[Converter] = _Entries()
        self._metadata = metadata
        self._lock = threading.Lock()

    @typing.overload
    def add(self, target: Any, convert: Converter, /, *, returns: Any = None) -> ValueConverters: ...

    @typing.overload
    def add(
        self, declaring_type: type, member: str, convert: Converter, /, *, returns: Any = None
    ) -> ValueConverters: ...

    def add(self, *args: Any, returns: Any = None) -> ValueConverters:
        if len(args) == 2:
            target, convert = args
            self._add_type(target, convert, returns)
        elif len(args) == 3:
            owner, member, convert = args
            self._add_member(owner, member, convert, returns)
        else:
            raise TypeError("add() expects (target, convert) or (declaring_type, member, convert)")
        return self

    def _add_type(self, target: Any, convert: Converter, returns: Any) -> None:
        if target is None:
            raise null_argument("target")
        if convert is None:
            raise null_argument("convert")
        produced = returns if returns is not None else converter_return_type(convert)
        if not _returns_assignable(produced, target):
            raise TypeMismatch(
                f"Return type {type_name(produced)} of converter is not assignable to target type {type_name(target)}",
                target_type=target,
                attempted_type=produced,
                code="converter_return_type_not_assignable",
            )
        with self._lock:
            self._entries.add_type(target, convert)

    def _add_member(self, owner: type, member: str, convert: Converter, returns: Any) -> None:
        if owner is None:
            raise null_argument("declaring_type")
        if member is None:
            raise null_argument("member")
        if convert is None:
            raise null_argument("convert")
        produced = returns if returns is not None else converter_return_type(convert)
        annotations = _member_annotations(owner, member, self._metadata)
        rejected = [a for a in annotations if not _accepts_converted(produced, a)]
        if rejected:
            raise TypeMismatch(
                f"Return type {type_name(produced)} of converter is not assignable to member '{member}' of "
                f"{type_name(owner)} ({', '.join(type_name(a) for a in rejected)})",
                target_type=rejected[0],
                attempted_type=produced,
                code="converter_return_type_not_assignable_to_member",
            )
        with self._lock:
            self._entries.add_member(owner, member, convert)

    def freeze(self) -> FrozenValueConverters:
        with self._lock:
            return FrozenValueConverters(self._entries.copy())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return self._entries.keys()


def _returns_assignable(produced: Any, target: Any) -> bool:
    if produced is Any:
        return True
    inner, _ = unwrap_optional(produced)
    return is_assignable(inner, target)


def _accepts_converted(produced: Any, annotation: Any) -> bool:
    if produced is Any:
        return True
    inner, _ = unwrap_optional(produced)
    return _accepts(inner, annotation)


EMPTY_DEFAULT_TYPES = FrozenDefaultTypes(_Entries())
EMPTY_VALUE_CONVERTERS = FrozenValueConverters(_Entries())
