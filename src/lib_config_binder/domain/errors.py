"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by the binding engine, the reloading
proxy, the file adapters, and consuming applications. The hierarchy lives in
the domain layer so outer layers may raise and catch it without importing
application code.

Contents
--------
* :class:`ConfigError` – umbrella base class for all library failures.
* :class:`InvalidFormat` / :class:`NotFound` – structured file problems.
* :class:`BindError` – base class for every bind-time failure. Carries the
  offending configuration path, the expected type, the attempted type, and a
  stable ``code`` string.
* Kind subclasses (:class:`NullArgument`, :class:`InvalidTargetShape`,
  :class:`TypeMismatch`, :class:`ShapeMismatch`, :class:`ConversionFailure`,
  :class:`ConstructorResolutionFailure`, :class:`InconsistentMetadata`,
  :class:`UnknownMember`, :class:`ReloadBuildFailure`).
* Factory helpers (``cannot_create_abstract_type`` ...) producing the precise
  message and code for each failure site.
* :class:`HolderLockedError` – write-once configuration holder was already read.

System Role
-----------
Callers catch :class:`ConfigError` to handle every library failure uniformly,
or a specific :class:`BindError` kind when they care about the reason. The
``code`` attribute is stable across releases and suited for assertions.
"""

from __future__ import annotations

from typing import Any


class ConfigError(Exception):
    """Base type for all exceptions emitted by ``lib_config_binder``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.
    """


class InvalidFormat(ConfigError):
    """Raised when a structured configuration file cannot be parsed.

    Typical Sources
    ---------------
    Structured file loaders (:mod:`tomllib`, :mod:`json`, :mod:`yaml`).
    """


class NotFound(ConfigError):
    """Represents a missing configuration resource (file, optional parser)."""


class HolderLockedError(ConfigError):
    """Raised when a write-once configuration holder is assigned after it was read."""


def type_name(target: Any) -> str:
    """Return a readable name for classes and typing annotations alike.

    Examples
    --------
    >>> type_name(int)
    'int'
    >>> type_name(list[int])
    'list[int]'
    >>> type_name(None)
    'None'
    """

    if target is None:
        return "None"
    if isinstance(target, type) and not getattr(target, "__args__", None):
        module = target.__module__
        if module == "builtins":
            return target.__qualname__
        return f"{module}.{target.__qualname__}"
    return repr(target).replace("typing.", "")


class BindError(ConfigError):
    """Base class for failures raised while binding a configuration tree.

    Parameters
    ----------
    message:
        Human readable description.
    path:
        Configuration path of the offending node (``"a:b:0"``) or ``None``.
    target_type:
        Type the caller asked for at that node.
    attempted_type:
        Type the engine tried to use (type hint, default type, converter
        return type) when it differs from ``target_type``.
    code:
        Stable machine-readable reason, e.g. ``"configuration_is_a_list"``.
    """

    default_code = "bind_error"

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        target_type: Any = None,
        attempted_type: Any = None,
        code: str | None = None,
    ) -> None:
        self.path = path
        self.target_type = target_type
        self.attempted_type = attempted_type
        self.code = code or self.default_code
        self.message = message
        super().__init__(self._render())

    def _render(self) -> str:
        if self.path:
            return f"{self.message} (path: '{self.path}')"
        return self.message


class NullArgument(BindError, ValueError):
    """A required input (configuration node, target type) was ``None``."""

    default_code = "null_argument"


class InvalidTargetShape(BindError):
    """Target is abstract, is ``object``/``Any``, or an unsupported collection."""

    default_code = "invalid_target_shape"


class TypeMismatch(BindError):
    """A type hint, default type or converter is not assignable to the target."""

    default_code = "type_mismatch"


class ShapeMismatch(BindError):
    """Branch found where a leaf/list/dictionary was required, or vice versa."""

    default_code = "shape_mismatch"


class ConversionFailure(BindError):
    """A converter raised, returned ``None`` for a non-optional target, or parsing failed."""

    default_code = "conversion_failure"


class ConstructorResolutionFailure(BindError):
    """No public constructor, or none is invokable with the available keys."""

    default_code = "constructor_resolution_failure"


class InconsistentMetadata(BindError):
    """Conflicting declarative default-type metadata for the same configuration key."""

    default_code = "inconsistent_metadata"


class UnknownMember(BindError):
    """A registration names a member the declaring type does not have."""

    default_code = "unknown_member"


class ReloadBuildFailure(BindError):
    """A reloading proxy could not rebuild its backing instance."""

    default_code = "reload_build_failure"


def null_argument(name: str) -> NullArgument:
    return NullArgument(f"Argument '{name}' must not be None", code="null_argument")


def cannot_create_abstract_type(target: Any, path: str | None) -> InvalidTargetShape:
    return InvalidTargetShape(
        f"Cannot create instance of abstract type {type_name(target)}; specify a 'type' "
        "in configuration or register a default type",
        path=path,
        target_type=target,
        code="cannot_create_abstract_type",
    )


def cannot_create_object_type(path: str | None) -> InvalidTargetShape:
    return InvalidTargetShape(
        "Cannot create a value for target type 'object'; specify a 'type' in configuration",
        path=path,
        target_type=object,
        code="cannot_create_object_type",
    )


def unsupported_collection_type(target: Any, path: str | None) -> InvalidTargetShape:
    return InvalidTargetShape(
        f"Unsupported collection type {type_name(target)}; declare the element type "
        "(for example list[int] or dict[str, int])",
        path=path,
        target_type=target,
        code="unsupported_collection_type",
    )


def type_not_assignable(target: Any, attempted: Any, path: str | None, *, source: str) -> TypeMismatch:
    return TypeMismatch(
        f"The {source} {type_name(attempted)} is not assignable to {type_name(target)}",
        path=path,
        target_type=target,
        attempted_type=attempted,
        code="type_not_assignable",
    )


def type_not_importable(name: str, target: Any, path: str | None, reason: str) -> TypeMismatch:
    return TypeMismatch(
        f"Cannot import type '{name}': {reason}",
        path=path,
        target_type=target,
        attempted_type=name,
        code="type_not_importable",
    )


def configuration_is_a_list(target: Any, path: str | None) -> ShapeMismatch:
    return ShapeMismatch(
        f"Configuration is a list but target type {type_name(target)} is not a collection",
        path=path,
        target_type=target,
        code="configuration_is_a_list",
    )


def configuration_is_not_a_list(target: Any, path: str | None) -> ShapeMismatch:
    return ShapeMismatch(
        f"Configuration is a keyed section but target type {type_name(target)} requires a list",
        path=path,
        target_type=target,
        code="configuration_is_not_a_list",
    )


def array_rank_not_supported(target: Any, path: str | None) -> ShapeMismatch:
    return ShapeMismatch(
        f"Fixed-shape tuple {type_name(target)} is not supported; use tuple[T, ...]",
        path=path,
        target_type=target,
        code="array_rank_greater_than_one_is_not_supported",
    )


def target_type_requires_configuration_value(target: Any, path: str | None) -> ShapeMismatch:
    return ShapeMismatch(
        f"Target type {type_name(target)} requires a configuration value, not a section",
        path=path,
        target_type=target,
        code="target_type_requires_configuration_value",
    )


def dictionary_key_not_convertible(target: Any, key: str, path: str | None, reason: str) -> ConversionFailure:
    return ConversionFailure(
        f"Cannot convert key '{key}' to {type_name(target)}: {reason}",
        path=path,
        target_type=target,
        code="dictionary_key_not_convertible",
    )


def conversion_failed(target: Any, value: str | None, path: str | None, reason: str) -> ConversionFailure:
    return ConversionFailure(
        f"Cannot convert value {value!r} to {type_name(target)}: {reason}",
        path=path,
        target_type=target,
        code="conversion_failed",
    )


def result_cannot_be_null(target: Any, path: str | None) -> ConversionFailure:
    return ConversionFailure(
        f"Converter returned None for non-optional target type {type_name(target)}",
        path=path,
        target_type=target,
        code="result_cannot_be_null",
    )


def no_public_constructors_found(target: Any, path: str | None) -> ConstructorResolutionFailure:
    return ConstructorResolutionFailure(
        f"Type {type_name(target)} has no public constructors",
        path=path,
        target_type=target,
        code="no_public_constructors_found",
    )


def missing_required_constructor_parameters(
    target: Any, missing: list[str], path: str | None
) -> ConstructorResolutionFailure:
    names = ", ".join(repr(name) for name in missing)
    return ConstructorResolutionFailure(
        f"No constructor of {type_name(target)} can be invoked; missing required parameters: {names}",
        path=path,
        target_type=target,
        code="missing_required_constructor_parameters",
    )


def inconsistent_default_types(owner: Any, member: str, path: str | None) -> InconsistentMetadata:
    return InconsistentMetadata(
        f"Members of {type_name(owner)} matching '{member}' declare conflicting default types",
        path=path,
        target_type=owner,
        code="inconsistent_default_type_attributes",
    )


def unknown_member(owner: Any, member: str) -> UnknownMember:
    return UnknownMember(
        f"Type {type_name(owner)} has no constructor parameter or writable member matching '{member}'",
        target_type=owner,
        code="unknown_member",
    )


def type_not_specified_for_reloading_proxy(contract: Any, path: str | None) -> InvalidTargetShape:
    return InvalidTargetShape(
        f"No concrete type for reloading proxy of {type_name(contract)}; specify a 'type' or register a default type",
        path=path,
        target_type=contract,
        code="type_not_specified_for_reloading_proxy",
    )


def cannot_create_reloading_proxy(contract: Any, reason: str) -> InvalidTargetShape:
    return InvalidTargetShape(
        f"Cannot create reloading proxy for {type_name(contract)}: {reason}",
        target_type=contract,
        code="cannot_create_reloading_proxy",
    )


def reload_failed(contract: Any, path: str | None, cause: BaseException) -> ReloadBuildFailure:
    return ReloadBuildFailure(
        f"Reloading {type_name(contract)} failed: {cause}",
        path=path,
        target_type=contract,
        code="reload_build_failure",
    )
