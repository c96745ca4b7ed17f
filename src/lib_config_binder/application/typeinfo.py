"""Structural questions about Python classes and typing annotations.

Purpose
-------
Collect every ``typing`` introspection detail the binder depends on in one
place: unwrapping ``Optional``/``Annotated``, deciding abstractness and
assignability, recognising collection and factory annotations, and importing
types named in configuration.

Contents
--------
* :func:`load_type` – import ``"pkg.mod:Qual.Name"`` / ``"pkg.mod.Name"``.
* :func:`unwrap_optional` / :func:`strip_annotated` – peel wrappers.
* :func:`is_abstract` / :func:`is_universal` / :func:`is_assignable`.
* :func:`collection_shape` – classify list/tuple/set/dict annotations.
* :func:`factory_result` – element type of ``Callable[[], T]``.
* :func:`default_value` – the "zero" value of a leaf type.
"""

from __future__ import annotations

import builtins
import collections.abc as cabc
import datetime
import decimal
import enum
import importlib
import inspect
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable

NoneType = type(None)

_LIST_ORIGINS = (
    list,
    cabc.Sequence,
    cabc.MutableSequence,
    cabc.Collection,
    cabc.Iterable,
    cabc.Reversible,
    cabc.Container,
)
_SET_ORIGINS = (set, cabc.Set, cabc.MutableSet)
_DICT_ORIGINS = (dict, cabc.Mapping, cabc.MutableMapping)
_BARE_CONTAINERS = (list, tuple, set, frozenset, dict)


def load_type(name: str) -> type:
    """Import the type named by *name*.

    Accepts ``"package.module:Qualified.Name"``, ``"package.module.Name"`` and
    builtin names such as ``"int"``.

    Examples
    --------
    >>> load_type("collections:OrderedDict").__name__
    'OrderedDict'
    >>> load_type("decimal.Decimal").__name__
    'Decimal'
    >>> load_type("int")
    <class 'int'>
    """

    text = name.strip()
    if not text:
        raise ImportError("empty type name")
    if ":" in text:
        module_name, _, qualname = text.partition(":")
        target: Any = importlib.import_module(module_name.strip())
        for part in qualname.strip().split("."):
            target = getattr(target, part)
    elif "." not in text:
        try:
            target = getattr(builtins, text)
        except AttributeError as exc:
            raise ImportError(f"no builtin type named '{text}'") from exc
    else:
        target = _import_dotted(text)
    if not isinstance(target, type):
        raise ImportError(f"'{text}' does not name a class")
    return target


def _import_dotted(text: str) -> Any:
    parts = text.split(".")
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            target: Any = importlib.import_module(module_name)
        except ModuleNotFoundError:
            continue
        try:
            for part in parts[split:]:
                target = getattr(target, part)
        except AttributeError as exc:
            raise ImportError(f"module '{module_name}' has no attribute path '{'.'.join(parts[split:])}'") from exc
        return target
    raise ImportError(f"no importable module in '{text}'")


def strip_annotated(tp: Any) -> Any:
    """Peel ``Annotated[...]`` wrappers off *tp*.

    >>> strip_annotated(typing.Annotated[int, "port"])
    <class 'int'>
    """

    while typing.get_origin(tp) is typing.Annotated:
        tp = typing.get_args(tp)[0]
    return tp


def _is_union(tp: Any) -> bool:
    origin = typing.get_origin(tp)
    return origin is typing.Union or (hasattr(types, "UnionType") and origin is types.UnionType)


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Return ``(inner, optional)`` for ``X | None`` style annotations.

    >>> unwrap_optional(int | None)
    (<class 'int'>, True)
    >>> unwrap_optional(str)
    (<class 'str'>, False)
    """

    tp = strip_annotated(tp)
    if _is_union(tp):
        args = [arg for arg in typing.get_args(tp) if arg is not NoneType]
        optional = len(args) != len(typing.get_args(tp))
        if len(args) == 1:
            return strip_annotated(args[0]), optional
        if optional:
            return typing.Union[tuple(args)], True
    return tp, False


def is_union(tp: Any) -> bool:
    """``Union[...]`` and ``X | Y``, including optionals."""

    return _is_union(strip_annotated(tp))


def is_universal(tp: Any) -> bool:
    """``object`` and ``typing.Any`` accept anything and construct nothing."""

    return tp is object or tp is Any


def is_protocol(tp: Any) -> bool:
    """Return ``True`` for ``typing.Protocol`` subclasses declared as protocols.

    Concrete classes that merely inherit from a protocol are not protocols.
    """

    return isinstance(tp, type) and bool(getattr(tp, "_is_protocol", False))


def is_abstract(tp: Any) -> bool:
    """Return ``True`` for ABCs with abstract members, protocols, and unions."""

    tp = strip_annotated(tp)
    if _is_union(tp):
        return True
    if not isinstance(tp, type):
        return False
    return inspect.isabstract(tp) or is_protocol(tp)


def runtime_class(tp: Any) -> type | None:
    """Return the class an annotation is checked against at runtime."""

    tp = strip_annotated(tp)
    if isinstance(tp, type) and not typing.get_args(tp):
        return tp
    origin = typing.get_origin(tp)
    if isinstance(origin, type):
        return origin
    return None


def is_assignable(candidate: Any, target: Any) -> bool:
    """Return ``True`` when instances of *candidate* satisfy *target*.

    >>> is_assignable(bool, int)
    True
    >>> is_assignable(str, int | None)
    False
    >>> is_assignable(dict, typing.Mapping[str, int])
    True
    """

    target = strip_annotated(target)
    if is_universal(target) or candidate is target:
        return True
    if _is_union(target):
        return any(is_assignable(candidate, arg) for arg in typing.get_args(target))
    candidate_class = runtime_class(candidate)
    if candidate_class is None:
        return False
    target_class = runtime_class(target)
    if target_class is None:
        return False
    if is_protocol(target_class):
        return _satisfies_protocol(candidate_class, target_class)
    try:
        return issubclass(candidate_class, target_class)
    except TypeError:
        return False


def _satisfies_protocol(candidate: type, protocol: type) -> bool:
    if protocol in candidate.__mro__:
        return True
    try:
        return issubclass(candidate, protocol)
    except TypeError:
        pass
    declared = {name for klass in candidate.__mro__ for name in getattr(klass, "__annotations__", {})}
    return all(hasattr(candidate, name) or name in declared for name in protocol_members(protocol))


def protocol_members(protocol: type) -> list[str]:
    """Names a protocol requires: its own annotations, methods, and properties."""

    names: list[str] = []
    for klass in protocol.__mro__:
        if klass in (object, typing.Protocol, typing.Generic) or not getattr(klass, "_is_protocol", False):
            continue
        for name in list(getattr(klass, "__annotations__", {})) + list(vars(klass)):
            if name.startswith("_") or name in names:
                continue
            names.append(name)
    return names


def is_value_instance(value: Any, target: Any) -> bool:
    """Runtime ``isinstance`` check tolerant of typing constructs."""

    target, optional = unwrap_optional(target)
    if value is None:
        return optional or is_universal(target) or target is NoneType
    if is_universal(target):
        return True
    if _is_union(target):
        return any(is_value_instance(value, arg) for arg in typing.get_args(target))
    runtime = runtime_class(target)
    if runtime is None:
        return True
    if is_protocol(runtime):
        return _satisfies_protocol(type(value), runtime)
    if runtime is float and isinstance(value, int) and not isinstance(value, bool):
        return True
    return isinstance(value, runtime)


@dataclass(frozen=True)
class CollectionShape:
    """How to materialise a collection annotation.

    Attributes
    ----------
    kind:
        ``"sequence"``, ``"set"`` or ``"mapping"``.
    element:
        Element annotation (value annotation for mappings).
    key:
        Key annotation for mappings, otherwise ``None``.
    factory:
        Callable turning a list of elements (or of ``(key, value)`` pairs)
        into the final container.
    container:
        Runtime class of the finished container. Setter-less members whose
        container is immutable (``tuple``, ``frozenset``) cannot be merged into.
    """

    kind: str
    element: Any
    factory: Callable[[list[Any]], Any]
    container: type
    key: Any = None


class CollectionShapeError(Exception):
    """Raised by :func:`collection_shape` for unsupported container annotations."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def collection_shape(tp: Any) -> CollectionShape | None:
    """Classify *tp* as a bindable collection.

    Returns ``None`` when *tp* is not a collection at all and raises
    :class:`CollectionShapeError` (``reason`` ``"rank"`` or ``"unsupported"``)
    for container annotations the binder cannot materialise.

    Examples
    --------
    >>> collection_shape(list[int]).kind
    'sequence'
    >>> collection_shape(tuple[int, ...]).factory([1, 2])
    (1, 2)
    >>> collection_shape(dict[str, float]).key
    <class 'str'>
    >>> collection_shape(int) is None
    True
    """

    tp = strip_annotated(tp)
    if isinstance(tp, type) and tp in _BARE_CONTAINERS:
        raise CollectionShapeError("unsupported")
    if tp is str or tp is bytes:
        return None

    origin = typing.get_origin(tp)
    args = typing.get_args(tp)

    if origin is tuple:
        if len(args) == 2 and args[1] is Ellipsis:
            return CollectionShape("sequence", args[0], tuple, tuple)
        raise CollectionShapeError("rank")

    if origin in _DICT_ORIGINS or (isinstance(origin, type) and issubclass(origin, dict)):
        if len(args) != 2:
            raise CollectionShapeError("unsupported")
        container = dict if origin in _DICT_ORIGINS else origin
        return CollectionShape("mapping", args[1], _dict_factory(container), container, key=args[0])

    if origin in _SET_ORIGINS:
        return CollectionShape("set", args[0] if args else Any, set, set)
    if origin is frozenset:
        return CollectionShape("set", args[0] if args else Any, frozenset, frozenset)
    if origin in _LIST_ORIGINS:
        return CollectionShape("sequence", args[0] if args else Any, list, list)
    if isinstance(origin, type) and args and not inspect.isabstract(origin) and issubclass(origin, cabc.Collection):
        if issubclass(origin, cabc.Set):
            return CollectionShape("set", args[0], origin, origin)
        if issubclass(origin, (cabc.Sequence, cabc.MutableSequence)) or hasattr(origin, "append"):
            return CollectionShape("sequence", args[0], origin, origin)

    if isinstance(tp, type) and not args:
        return _subclass_shape(tp)
    return None


def _dict_factory(container: type) -> Callable[[list[Any]], Any]:
    def build(pairs: list[Any]) -> Any:
        result = container()
        result.update(pairs)
        return result

    return build


def _subclass_shape(cls: type) -> CollectionShape | None:
    """Handle ``class Ports(list[int])`` style subclasses of builtin containers."""

    if not issubclass(cls, (list, set, dict)):
        return None
    for base in getattr(cls, "__orig_bases__", ()):
        origin = typing.get_origin(base)
        args = typing.get_args(base)
        if origin is None or not args:
            continue
        if issubclass(origin, dict) and len(args) == 2:
            return CollectionShape("mapping", args[1], _subclass_factory(cls, "update"), cls, key=args[0])
        if issubclass(origin, list):
            return CollectionShape("sequence", args[0], _subclass_factory(cls, "extend"), cls)
        if issubclass(origin, set):
            return CollectionShape("set", args[0], _subclass_factory(cls, "update"), cls)
    raise CollectionShapeError("unsupported")


def _subclass_factory(cls: type, method: str) -> Callable[[list[Any]], Any]:
    def build(items: list[Any]) -> Any:
        instance = cls()
        getattr(instance, method)(items)
        return instance

    return build


def factory_result(tp: Any) -> Any | None:
    """Return ``T`` for ``Callable[[], T]``, otherwise ``None``.

    >>> factory_result(typing.Callable[[], int])
    <class 'int'>
    >>> factory_result(typing.Callable[[str], int]) is None
    True
    """

    tp = strip_annotated(tp)
    if typing.get_origin(tp) is not cabc.Callable:
        return None
    args = typing.get_args(tp)
    if len(args) != 2 or args[0] != []:
        return None
    return args[1]


def default_value(tp: Any) -> Any:
    """Return the value an absent leaf binds to.

    >>> default_value(int), default_value(bool), default_value(str), default_value(int | None)
    (0, False, '', None)
    """

    inner, optional = unwrap_optional(tp)
    if optional or not isinstance(inner, type):
        return None
    if issubclass(inner, enum.Flag):
        return inner(0)
    if issubclass(inner, enum.Enum):
        return None
    if inner in (str, bytes, int, float, complex, bool):
        return inner()
    if inner is decimal.Decimal:
        return decimal.Decimal(0)
    if inner is datetime.timedelta:
        return datetime.timedelta(0)
    return None
