"""Recursive materialisation of configuration nodes into object graphs.

Purpose
-------
Turn a :class:`~lib_config_binder.application.ports.ConfigurationSection` and a
target annotation into a fully constructed value: scalars, collections,
dictionaries, lazy factories, reloading proxies, and plain objects built
through their constructors and writable members.

Dispatch per node
-----------------
1. ``Callable[[], T]`` targets get a closure that binds ``T`` on every call.
2. Sequence and set targets bind list nodes item by item; a leaf or a keyed
   branch becomes a single-item collection.
3. Nodes without children are converted by
   :class:`~lib_config_binder.application.converters.LeafConverter`; an empty
   value bound to a class builds it from an empty section.
4. Nodes carrying only ``type``/``value``/``reloadOnChange`` with
   ``reloadOnChange: true`` become nested reloading proxies.
5. Nodes with a ``type`` hint bind their ``value`` child (or remaining
   siblings) against the hinted type.
6. Mapping targets bind each child under its converted key.
7. Everything else is an object: resolve the concrete type, select a
   constructor, then assign writable members and merge read-only collections.

Errors raised here are :class:`~lib_config_binder.domain.errors.BindError`
kinds carrying the path of the failing node.
"""

from __future__ import annotations

import collections.abc as cabc
from dataclasses import dataclass
from typing import Any, Callable

from ..domain.errors import (
    BindError,
    ConstructorResolutionFailure,
    ConversionFailure,
    array_rank_not_supported,
    cannot_create_abstract_type,
    cannot_create_object_type,
    configuration_is_a_list,
    configuration_is_not_a_list,
    conversion_failed,
    dictionary_key_not_convertible,
    target_type_requires_configuration_value,
    type_name,
    type_not_specified_for_reloading_proxy,
    unsupported_collection_type,
)
from ..domain.identifiers import identifiers_match
from ..observability import log_debug, make_event
from .constructors import ConstructorCandidate, select_constructor
from .converters import LeafConverter
from .metadata import METADATA, MetadataRegistry
from .ports import ConfigurationSection
from .proxy import create_proxy
from .registrations import (
    EMPTY_DEFAULT_TYPES,
    EMPTY_VALUE_CONVERTERS,
    FrozenDefaultTypes,
    FrozenValueConverters,
)
from .resolver import Resolver
from .schema import MemberSchema, schema_for
from .sections import RELOAD_ON_CHANGE_KEY, RESERVED_KEYS, find_child, has_only_reserved_keys, is_list_node
from .type_resolver import TypeResolver
from .typeinfo import (
    CollectionShape,
    CollectionShapeError,
    collection_shape,
    factory_result,
    is_abstract,
    is_universal,
    runtime_class,
    unwrap_optional,
)

_PLAIN_CONTAINER_MODULES = ("builtins", "collections", "collections.abc")


@dataclass(frozen=True)
class Target:
    """What a node is bound to, and the member that declared it.

    ``owner``/``member`` stay attached when descending into collection
    elements so member-level default types and converters reach the items.
    """

    annotation: Any
    owner: Any = None
    member: str | None = None

    def retarget(self, annotation: Any) -> Target:
        return Target(annotation, self.owner, self.member)


class GraphBuilder:
    """Bind configuration nodes to annotations for one set of registrations.

    Parameters
    ----------
    default_types / value_converters:
        Frozen registry snapshots; empty when omitted.
    resolver:
        Fallback supplier for constructor parameters; :attr:`Resolver.EMPTY`
        when omitted.
    metadata:
        Declarative hint registry; the process-wide one when omitted.

    Examples
    --------
    >>> from dataclasses import dataclass
    >>> from lib_config_binder.domain.tree import MemoryConfiguration
    >>> @dataclass
    ... class Server:
    ...     host: str
    ...     port: int = 80
    >>> GraphBuilder().bind(MemoryConfiguration({"host": "example.org", "port": "8080"}), Server)
    Server(host='example.org', port=8080)
    """

    def __init__(
        self,
        default_types: FrozenDefaultTypes | None = None,
        value_converters: FrozenValueConverters | None = None,
        resolver: Resolver | None = None,
        metadata: MetadataRegistry | None = None,
    ) -> None:
        self._metadata = metadata if metadata is not None else METADATA
        self._resolver = resolver if resolver is not None else Resolver.EMPTY
        self._converter = LeafConverter(value_converters or EMPTY_VALUE_CONVERTERS, self._metadata)
        self._types = TypeResolver(default_types or EMPTY_DEFAULT_TYPES, self._metadata)

    @property
    def metadata(self) -> MetadataRegistry:
        return self._metadata

    def bind(self, node: ConfigurationSection, annotation: Any) -> Any:
        """Materialise *node* as *annotation*."""

        return self._create_value(node, Target(annotation))

    def build_reloadable(
        self, node: ConfigurationSection, contract: Any, owner: Any = None, member: str | None = None
    ) -> tuple[Any, ConfigurationSection]:
        """Build the concrete instance behind a reloading proxy.

        Returns the instance and the section it was bound from. The concrete
        type comes from a ``type`` child or from the default-type ladder.
        """

        path = node.path
        hint = self._types.type_hint(node, contract)
        source = self._types.hinted_source(node)
        if hint is not None:
            concrete = self._types.hinted(hint, contract, path)
        else:
            concrete = self._types.resolve(contract, owner, member, path)
            if concrete is contract or is_universal(concrete) or is_abstract(concrete):
                raise type_not_specified_for_reloading_proxy(contract, path)
        return self._create_value(source, Target(concrete, owner, member), use_defaults=False), source

    def _create_value(self, node: ConfigurationSection, target: Target, *, use_defaults: bool = True) -> Any:
        inner, optional = unwrap_optional(target.annotation)
        path = node.path

        produced = factory_result(inner)
        if produced is not None:
            return self._factory(node, target.retarget(produced))

        shape = self._shape(inner, path)
        if shape is not None and shape.kind != "mapping":
            return self._build_sequence(node, shape, inner, target)

        if not node.get_children():
            if node.value is None and optional:
                return None
            resolved = self._resolve(inner, target, path) if use_defaults else inner
            if self._converter.is_leaf(resolved, target.owner, target.member):
                leaf_target = target.annotation if resolved is inner else resolved
                return self._converter.convert(node.value, leaf_target, target.owner, target.member, path)
            if node.value:
                raise conversion_failed(resolved, node.value, path, "the type has no conversion from a string")
            return self._build_composite(node, resolved, target)

        if self._is_reloading(node):
            return create_proxy(
                inner, lambda: self.build_reloadable(node, inner, target.owner, target.member), node, self._metadata
            )

        hint = self._types.type_hint(node, inner)
        if hint is not None:
            hinted = self._types.hinted(hint, inner, path)
            return self._create_value(self._types.hinted_source(node), target.retarget(hinted), use_defaults=False)

        resolved = self._resolve(inner, target, path) if use_defaults else inner
        if self._converter.is_leaf(resolved, target.owner, target.member):
            raise target_type_requires_configuration_value(resolved, path)
        return self._build_composite(node, resolved, target)

    def _resolve(self, inner: Any, target: Target, path: str) -> Any:
        return self._types.resolve(inner, target.owner, target.member, path)

    def _factory(self, node: ConfigurationSection, target: Target) -> Callable[[], Any]:
        def create() -> Any:
            return self._create_value(node, target)

        return create

    def _is_reloading(self, node: ConfigurationSection) -> bool:
        if not has_only_reserved_keys(node, RESERVED_KEYS):
            return False
        flag = find_child(node, RELOAD_ON_CHANGE_KEY)
        return flag is not None and (flag.value or "").strip().casefold() == "true"

    def _shape(self, annotation: Any, path: str) -> CollectionShape | None:
        try:
            return collection_shape(annotation)
        except CollectionShapeError as exc:
            if exc.reason == "rank":
                raise array_rank_not_supported(annotation, path) from None
            raise unsupported_collection_type(annotation, path) from None

    def _build_composite(self, node: ConfigurationSection, resolved: Any, target: Target) -> Any:
        shape = self._shape(resolved, node.path)
        if shape is None:
            return self._build_object(node, resolved)
        if shape.kind == "mapping":
            return self._build_mapping(node, shape, resolved, target)
        return self._build_sequence(node, shape, resolved, target)

    def _build_sequence(
        self, node: ConfigurationSection, shape: CollectionShape, container: Any, target: Target
    ) -> Any:
        element = target.retarget(shape.element)
        kids = node.get_children()
        if not kids:
            items = [] if not node.value else [self._create_value(node, element)]
        elif is_list_node(node):
            items = [self._create_value(child, element) for child in kids]
        else:
            element_type, _ = unwrap_optional(shape.element)
            if self._converter.is_leaf(element_type, target.owner, target.member):
                raise configuration_is_not_a_list(container, node.path)
            items = [self._create_value(node, element)]
        return self._materialize(shape, items, container, node.path)

    def _build_mapping(self, node: ConfigurationSection, shape: CollectionShape, container: Any, target: Target) -> Any:
        kids = node.get_children()
        key_type, _ = unwrap_optional(shape.key)
        if kids and key_type is not int and is_list_node(node):
            raise configuration_is_a_list(container, node.path)
        value_target = target.retarget(shape.element)
        pairs = [(self._convert_key(child, key_type), self._create_value(child, value_target)) for child in kids]
        return self._materialize(shape, pairs, container, node.path)

    def _convert_key(self, child: ConfigurationSection, key_type: Any) -> Any:
        if key_type is str or is_universal(key_type):
            return child.key
        if not self._converter.is_leaf(key_type):
            raise dictionary_key_not_convertible(key_type, child.key, child.path, "keys must be scalar types")
        try:
            return self._converter.convert(child.key, key_type, path=child.path)
        except ConversionFailure as exc:
            raise dictionary_key_not_convertible(key_type, child.key, child.path, exc.message) from exc

    def _materialize(self, shape: CollectionShape, items: list[Any], container: Any, path: str) -> Any:
        try:
            return shape.factory(items)
        except TypeError as exc:
            raise unsupported_collection_type(container, path) from exc

    def _build_object(self, node: ConfigurationSection, resolved: Any) -> Any:
        path = node.path
        inner, _ = unwrap_optional(resolved)
        if is_universal(inner):
            raise cannot_create_object_type(path)
        cls = runtime_class(inner)
        if cls is None or is_abstract(inner) or is_abstract(cls):
            raise cannot_create_abstract_type(inner, path)
        if cls.__module__ in _PLAIN_CONTAINER_MODULES and issubclass(cls, cabc.Iterable):
            raise unsupported_collection_type(inner, path)
        if is_list_node(node):
            raise configuration_is_a_list(inner, path)

        schema = schema_for(cls, self._metadata)
        pending = {child.key: child for child in node.get_children()}
        candidate = select_constructor(schema, list(pending), self._resolver, path)
        instance = self._construct(candidate, pending, cls, path)

        for member in schema.writable:
            child = _take(pending, member)
            if child is not None:
                setattr(instance, member.name, self._create_value(child, Target(member.annotation, cls, member.name)))
        for member in schema.readonly_collections:
            child = _take(pending, member)
            if child is not None:
                self._merge(instance, member, child, cls)

        if pending:
            log_debug("unmatched_keys", **make_event(path, type_name(cls), {"keys": sorted(pending)}))
        log_debug("object_bound", **make_event(path, type_name(cls), {"constructor": candidate.constructor.name}))
        return instance

    def _construct(
        self, candidate: ConstructorCandidate, pending: dict[str, ConfigurationSection], cls: type, path: str
    ) -> Any:
        arguments: dict[str, Any] = {}
        constructor = candidate.constructor
        for parameter, key, resolvable in zip(constructor.parameters, candidate.matched_keys, candidate.resolvable):
            if key is not None and key in pending:
                child = pending.pop(key)
                arguments[parameter.name] = self._create_value(child, Target(parameter.annotation, cls, parameter.name))
            elif resolvable:
                found, value = self._resolver.try_resolve(parameter.annotation, parameter.name)
                if found:
                    arguments[parameter.name] = value
        try:
            return constructor.invoke(arguments)
        except BindError:
            raise
        except Exception as exc:
            raise ConstructorResolutionFailure(
                f"Constructor {constructor.name} of {type_name(cls)} raised {type(exc).__name__}: {exc}",
                path=path,
                target_type=cls,
                code="constructor_invocation_failed",
            ) from exc

    def _merge(self, instance: Any, member: MemberSchema, child: ConfigurationSection, cls: type) -> None:
        existing = getattr(instance, member.name, None)
        if existing is None:
            return
        value = self._create_value(child, Target(member.annotation, cls, member.name))
        existing.clear()
        if isinstance(existing, cabc.MutableMapping):
            existing.update(value)
        elif isinstance(existing, cabc.MutableSet):
            for item in value:
                existing.add(item)
        else:
            existing.extend(value)


def _take(pending: dict[str, ConfigurationSection], member: MemberSchema) -> ConfigurationSection | None:
    for key in list(pending):
        if any(identifiers_match(name, key) for name in member.names):
            return pending.pop(key)
    return None
