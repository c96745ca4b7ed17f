"""Cached structural description of bindable classes.

Purpose
-------
Reflection happens once per class: constructors and their parameters, the
writable members, and the read-only collection members are captured in a
frozen :class:`TypeSchema` that the binder reuses for every bind.

Contents
--------
* :class:`ParameterSchema`, :class:`ConstructorSchema`, :class:`MemberSchema`
* :class:`TypeSchema` – the per-class description.
* :func:`schema_for` – thread-safe cached accessor.

Rules
-----
* ``__init__`` contributes a constructor unless the class is marked with
  :func:`~lib_config_binder.application.metadata.hide_init`; methods marked with
  :func:`~lib_config_binder.application.metadata.config_constructor` add more.
  ``*args``/``**kwargs`` are ignored.
* Writable members are public annotated attributes (not ``ClassVar``, not on a
  frozen dataclass or named tuple) and properties with a setter.
* Read-only collection members are setter-less properties annotated with a
  list, set or dict type; binding merges into them.
"""

from __future__ import annotations

import dataclasses
import inspect
import threading
import types
import typing
from dataclasses import dataclass
from typing import Any, Callable

from ..domain.events import Event
from ..domain.identifiers import identifiers_match
from .metadata import MetadataRegistry
from .typeinfo import CollectionShapeError, collection_shape, strip_annotated

MISSING: Any = inspect.Parameter.empty


@dataclass(frozen=True)
class ParameterSchema:
    """A constructor parameter the binder can fill from a configuration key.

    ``names`` lists the parameter name followed by its registered alternate
    names; a key matching any of them binds to this parameter.
    """

    name: str
    annotation: Any
    default: Any = MISSING
    alternate_names: tuple[str, ...] = ()
    positional_only: bool = False

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.alternate_names)


@dataclass(frozen=True)
class ConstructorSchema:
    """One way of creating an instance: ``__init__`` or a marked factory method."""

    name: str
    factory: Callable[..., Any]
    parameters: tuple[ParameterSchema, ...]
    index: int

    def invoke(self, arguments: dict[str, Any]) -> Any:
        """Call the factory, passing positional-only parameters positionally.

        Parameters missing from *arguments* are left to their defaults.
        """

        args = [arguments[p.name] for p in self.parameters if p.positional_only and p.name in arguments]
        kwargs = {p.name: arguments[p.name] for p in self.parameters if not p.positional_only and p.name in arguments}
        return self.factory(*args, **kwargs)


@dataclass(frozen=True)
class MemberSchema:
    """A settable attribute (or a setter-less mergeable collection) of a type."""

    name: str
    annotation: Any
    alternate_names: tuple[str, ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        return (self.name, *self.alternate_names)


@dataclass(frozen=True)
class TypeSchema:
    """Everything the graph builder needs to know about binding one class.

    ``constructors`` are in declaration order; ``writable`` members are assigned
    after construction; ``readonly_collections`` are merged into in place.
    """

    target: type
    constructors: tuple[ConstructorSchema, ...]
    writable: tuple[MemberSchema, ...]
    readonly_collections: tuple[MemberSchema, ...]

    def find_members(self, name: str) -> list[tuple[str, Any]]:
        """Return ``(kind, annotation)`` for every parameter or member named *name*.

        ``kind`` is ``"parameter"``, ``"member"`` or ``"collection"``.
        """

        found: list[tuple[str, Any]] = []
        for constructor in self.constructors:
            for parameter in constructor.parameters:
                if identifiers_match(parameter.name, name):
                    found.append(("parameter", parameter.annotation))
        for member in self.writable:
            if identifiers_match(member.name, name):
                found.append(("member", member.annotation))
        for member in self.readonly_collections:
            if identifiers_match(member.name, name):
                found.append(("collection", member.annotation))
        return found

    def declares(self, name: str) -> bool:
        """Return ``True`` when *name* matches any parameter or member."""

        return bool(self.find_members(name))


_CACHE: dict[tuple[type, int, int], TypeSchema] = {}
_CACHE_LOCK = threading.Lock()


def schema_for(cls: type, metadata: MetadataRegistry) -> TypeSchema:
    """Return the cached :class:`TypeSchema` for *cls* under *metadata*."""

    key = (cls, id(metadata), metadata.version)
    with _CACHE_LOCK:
        cached = _CACHE.get(key)
    if cached is not None:
        return cached
    schema = _build_schema(cls, metadata)
    with _CACHE_LOCK:
        _CACHE[key] = schema
    return schema


def _build_schema(cls: type, metadata: MetadataRegistry) -> TypeSchema:
    class_hints = _type_hints(cls)
    constructors = _constructors(cls, metadata, class_hints)
    writable, readonly = _members(cls, metadata, class_hints)
    return TypeSchema(cls, tuple(constructors), tuple(writable), tuple(readonly))


def _type_hints(obj: Any) -> dict[str, Any]:
    """Resolved annotations of *obj*; sources that fail to resolve bind their string annotations as ``Any``.

    ``typing.get_type_hints`` resolves the whole MRO at once, so one bad
    forward reference would lose every hint. The fallback resolves each class
    of the MRO on its own.
    """

    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception:  # noqa: BLE001 - unresolved forward references fall back below
        pass
    hints: dict[str, Any] = {}
    for source in reversed(obj.__mro__) if isinstance(obj, type) else (obj,):
        try:
            annotations = inspect.get_annotations(source, eval_str=True)
        except Exception:  # noqa: BLE001 - unresolvable annotations bind as Any
            annotations = {
                name: Any if isinstance(annotation, str) else annotation
                for name, annotation in inspect.get_annotations(source).items()
            }
        hints.update(annotations)
    return hints


def _constructors(cls: type, metadata: MetadataRegistry, class_hints: dict[str, Any]) -> list[ConstructorSchema]:
    constructors: list[ConstructorSchema] = []
    if not metadata.hides_init(cls):
        init_hints = _type_hints(cls.__init__) if cls.__init__ is not object.__init__ else {}
        signature: inspect.Signature | None
        if cls.__init__ is object.__init__ and cls.__new__ is object.__new__:
            signature = inspect.Signature()
        else:
            try:
                signature = inspect.signature(cls)
            except (TypeError, ValueError):
                signature = None
        if signature is not None:
            parameters = _parameters(cls, signature, {**class_hints, **init_hints}, metadata)
            constructors.append(ConstructorSchema("__init__", cls, parameters, 0))
    for name in metadata.constructor_names(cls):
        factory = getattr(cls, name)
        hints = _type_hints(factory)
        parameters = _parameters(cls, inspect.signature(factory), hints, metadata)
        constructors.append(ConstructorSchema(name, factory, parameters, len(constructors)))
    return constructors


def _parameters(
    cls: type, signature: inspect.Signature, hints: dict[str, Any], metadata: MetadataRegistry
) -> tuple[ParameterSchema, ...]:
    result: list[ParameterSchema] = []
    for parameter in signature.parameters.values():
        if parameter.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation = hints.get(parameter.name, parameter.annotation)
        if annotation is inspect.Parameter.empty or isinstance(annotation, str):
            annotation = Any
        result.append(
            ParameterSchema(
                name=parameter.name,
                annotation=annotation,
                default=parameter.default,
                alternate_names=metadata.alternate_names(cls, parameter.name),
                positional_only=parameter.kind is inspect.Parameter.POSITIONAL_ONLY,
            )
        )
    return tuple(result)


def _members(
    cls: type, metadata: MetadataRegistry, class_hints: dict[str, Any]
) -> tuple[list[MemberSchema], list[MemberSchema]]:
    writable: list[MemberSchema] = []
    readonly: list[MemberSchema] = []
    frozen = _is_frozen(cls)
    properties = _properties(cls)

    for name, annotation in class_hints.items():
        if name.startswith("_") or name in properties:
            continue
        bare = strip_annotated(annotation)
        if bare is Event:
            continue
        if typing.get_origin(bare) is typing.ClassVar or bare is typing.ClassVar or frozen:
            continue
        if isinstance(bare, dataclasses.InitVar):
            continue
        if isinstance(inspect.getattr_static(cls, name, None), (staticmethod, classmethod, types.FunctionType)):
            continue
        writable.append(MemberSchema(name, annotation, metadata.alternate_names(cls, name)))

    for name, prop in properties.items():
        annotation = _type_hints(prop.fget).get("return", Any) if prop.fget is not None else Any
        if strip_annotated(annotation) is Event:
            continue
        if prop.fset is not None:
            writable.append(MemberSchema(name, annotation, metadata.alternate_names(cls, name)))
        elif _is_mergeable(annotation):
            readonly.append(MemberSchema(name, annotation, metadata.alternate_names(cls, name)))
    return writable, readonly


def _properties(cls: type) -> dict[str, property]:
    found: dict[str, property] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, property) and not name.startswith("_"):
                found[name] = value
            elif name in found:
                del found[name]
    return found


def _is_frozen(cls: type) -> bool:
    params = getattr(cls, "__dataclass_params__", None)
    if params is not None and params.frozen:
        return True
    return issubclass(cls, tuple)


def _is_mergeable(annotation: Any) -> bool:
    try:
        shape = collection_shape(annotation)
    except CollectionShapeError:
        return False
    return shape is not None and shape.container not in (tuple, frozenset)
