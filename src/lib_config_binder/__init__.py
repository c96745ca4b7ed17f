"""Public package surface for ``lib_config_binder``.

Bind hierarchical configuration trees (TOML, JSON, YAML or in-memory) into
typed object graphs, and hand out hot-reloading proxies for abstract
contracts. Everything an application needs is re-exported here; the
submodules follow a domain / application / adapters layering.
"""

from __future__ import annotations

from .application.builder import GraphBuilder
from .application.constructors import ConstructorCandidate
from .application.metadata import (
    METADATA,
    MetadataRegistry,
    alternate_name,
    alternate_names,
    config_constructor,
    convert_method,
    default_type,
    hide_init,
    member_convert_method,
    member_convert_methods,
    member_default_type,
    member_default_types,
)
from .application.ports import ConfigurationSection
from .application.proxy import ReloadingProxy
from .application.registrations import DefaultTypes, ValueConverters
from .application.resolver import Resolver
from .core import bind, create_reloading_proxy, load_configuration
from .domain.errors import (
    BindError,
    ConfigError,
    ConstructorResolutionFailure,
    ConversionFailure,
    HolderLockedError,
    InconsistentMetadata,
    InvalidFormat,
    InvalidTargetShape,
    NotFound,
    NullArgument,
    ReloadBuildFailure,
    ShapeMismatch,
    TypeMismatch,
    UnknownMember,
)
from .domain.events import Event
from .domain.holder import ConfigurationHolder
from .domain.identifiers import identifiers_match
from .domain.tree import ConfigSection, MemoryConfiguration, on_change
from .observability import bind_trace_id, get_logger

__all__ = [
    "BindError",
    "ConfigError",
    "ConfigSection",
    "ConfigurationHolder",
    "ConfigurationSection",
    "ConstructorCandidate",
    "ConstructorResolutionFailure",
    "ConversionFailure",
    "DefaultTypes",
    "Event",
    "GraphBuilder",
    "HolderLockedError",
    "InconsistentMetadata",
    "InvalidFormat",
    "InvalidTargetShape",
    "METADATA",
    "MemoryConfiguration",
    "MetadataRegistry",
    "NotFound",
    "NullArgument",
    "ReloadBuildFailure",
    "ReloadingProxy",
    "Resolver",
    "ShapeMismatch",
    "TypeMismatch",
    "UnknownMember",
    "ValueConverters",
    "alternate_name",
    "alternate_names",
    "bind",
    "bind_trace_id",
    "config_constructor",
    "convert_method",
    "create_reloading_proxy",
    "default_type",
    "get_logger",
    "hide_init",
    "identifiers_match",
    "load_configuration",
    "member_convert_method",
    "member_convert_methods",
    "member_default_type",
    "member_default_types",
    "on_change",
]
