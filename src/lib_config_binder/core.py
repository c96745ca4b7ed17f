"""Composition root for ``lib_config_binder``.

Purpose
-------
Provide the entry points that wire registrations, the graph builder, the
reloading proxy and the structured file loaders together.

Contents
--------
* :func:`bind` – materialise a configuration node as a typed object graph.
* :func:`create_reloading_proxy` – hand out a hot-reloading proxy for an
  abstract contract.
* :func:`load_configuration` – read a TOML/JSON/YAML file into a
  :class:`MemoryConfiguration` (or refresh an existing one).

System Role
-----------
Callers only ever need this module (re-exported from the package root); the
application layer stays free from adapter imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar, overload

from .adapters.file_loaders.structured import FILE_LOADERS
from .application.builder import GraphBuilder
from .application.metadata import MetadataRegistry
from .application.ports import ConfigurationSection
from .application.proxy import create_proxy
from .application.registrations import (
    DefaultTypes,
    FrozenDefaultTypes,
    FrozenValueConverters,
    ValueConverters,
)
from .application.resolver import Resolver
from .domain.errors import NotFound, null_argument, type_name
from .domain.tree import MemoryConfiguration
from .observability import log_debug, log_info, make_event

T = TypeVar("T")


def _frozen(registrations: Any) -> Any:
    if registrations is None:
        return None
    if isinstance(registrations, (DefaultTypes, ValueConverters)):
        return registrations.freeze()
    return registrations


def _builder(
    default_types: DefaultTypes | FrozenDefaultTypes | None,
    value_converters: ValueConverters | FrozenValueConverters | None,
    resolver: Resolver | None,
    metadata: MetadataRegistry | None,
) -> GraphBuilder:
    return GraphBuilder(_frozen(default_types), _frozen(value_converters), resolver, metadata)


@overload
def bind(
    node: ConfigurationSection,
    target: type[T],
    *,
    default_types: DefaultTypes | FrozenDefaultTypes | None = None,
    value_converters: ValueConverters | FrozenValueConverters | None = None,
    resolver: Resolver | None = None,
    metadata: MetadataRegistry | None = None,
) -> T: ...


@overload
def bind(
    node: ConfigurationSection,
    target: Any,
    *,
    default_types: DefaultTypes | FrozenDefaultTypes | None = None,
    value_converters: ValueConverters | FrozenValueConverters | None = None,
    resolver: Resolver | None = None,
    metadata: MetadataRegistry | None = None,
) -> Any: ...


def bind(
    node: ConfigurationSection,
    target: Any,
    *,
    default_types: DefaultTypes | FrozenDefaultTypes | None = None,
    value_converters: ValueConverters | FrozenValueConverters | None = None,
    resolver: Resolver | None = None,
    metadata: MetadataRegistry | None = None,
) -> Any:
    """Return *node* materialised as *target*.

    Why
    ----
    Applications describe their settings as plain classes and annotations;
    this is the single call that turns a configuration tree into them.

    Parameters
    ----------
    node:
        Configuration root or section.
    target:
        Class or annotation to build (``Server``, ``list[Endpoint]``,
        ``dict[str, int]``, ``Callable[[], Client]`` ...).
    default_types / value_converters:
        Registrations; mutable registries are snapshotted for the call.
    resolver:
        Supplier for constructor parameters no configuration key matches.
    metadata:
        Declarative hint registry; the process-wide one by default.

    Raises
    ------
    BindError
        Any irreconcilable mismatch, carrying the failing path and a ``code``.

    Examples
    --------
    >>> from dataclasses import dataclass, field
    >>> @dataclass
    ... class Pool:
    ...     size: int = 1
    ...     hosts: list[str] = field(default_factory=list)
    >>> config = MemoryConfiguration({"pool": {"Size": "4", "hosts": ["a", "b"]}})
    >>> bind(config.get_section("pool"), Pool)
    Pool(size=4, hosts=['a', 'b'])
    """

    if node is None:
        raise null_argument("node")
    if target is None:
        raise null_argument("target")
    builder = _builder(default_types, value_converters, resolver, metadata)
    result = builder.bind(node, target)
    log_debug("configuration_bound", **make_event(node.path, type_name(target)))
    return result


def create_reloading_proxy(
    node: ConfigurationSection,
    contract: type[T],
    *,
    default_types: DefaultTypes | FrozenDefaultTypes | None = None,
    value_converters: ValueConverters | FrozenValueConverters | None = None,
    resolver: Resolver | None = None,
    metadata: MetadataRegistry | None = None,
) -> T:
    """Return a proxy implementing *contract* that rebuilds on configuration change.

    The concrete type comes from a ``type`` child of *node* or from a default
    type (declared or registered) for *contract*. The first build happens now
    and its errors propagate; later failures keep the previous instance.

    Examples
    --------
    >>> import abc
    >>> class Greeter(abc.ABC):
    ...     @abc.abstractmethod
    ...     def greet(self) -> str: ...
    >>> class Plain(Greeter):
    ...     def __init__(self, name: str = "world"):
    ...         self.name = name
    ...     def greet(self) -> str:
    ...         return f"hello {self.name}"
    >>> config = MemoryConfiguration({"name": "ada"})
    >>> proxy = create_reloading_proxy(config, Greeter, default_types=DefaultTypes().add(Greeter, Plain))
    >>> proxy.greet()
    'hello ada'
    >>> config.set("name", "grace")
    >>> proxy.greet(), proxy.generation
    ('hello grace', 1)
    >>> proxy.close()
    """

    if node is None:
        raise null_argument("node")
    if contract is None:
        raise null_argument("contract")
    builder = _builder(default_types, value_converters, resolver, metadata)
    return create_proxy(contract, lambda: builder.build_reloadable(node, contract), node, builder.metadata)


def load_configuration(path: str | Path, into: MemoryConfiguration | None = None) -> MemoryConfiguration:
    """Read a TOML, JSON or YAML file into a :class:`MemoryConfiguration`.

    Passing an existing configuration as *into* replaces its content, which
    signals its change token and lets reloading proxies pick up the edit.

    Raises
    ------
    NotFound
        The file is missing or its suffix has no loader.
    InvalidFormat
        The file cannot be parsed or is not a mapping at the top level.
    """

    file_path = Path(path)
    loader = FILE_LOADERS.get(file_path.suffix.lower())
    if loader is None:
        raise NotFound(f"No loader for configuration file {file_path} (supported: {', '.join(sorted(FILE_LOADERS))})")
    data = loader.load(str(file_path))
    if into is None:
        into = MemoryConfiguration(data)
    else:
        into.load(data)
    log_info("configuration_loaded", path=str(file_path), keys=len(into.pairs()))
    return into


__all__ = ["bind", "create_reloading_proxy", "load_configuration"]
