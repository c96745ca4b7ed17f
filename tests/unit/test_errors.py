from __future__ import annotations

import pytest

from lib_config_binder.domain import errors
from lib_config_binder.domain.errors import (
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
    type_name,
)


def test_error_hierarchy() -> None:
    for kind in (InvalidFormat, NotFound, HolderLockedError, BindError):
        assert issubclass(kind, ConfigError)
    for kind in (
        NullArgument,
        InvalidTargetShape,
        TypeMismatch,
        ShapeMismatch,
        ConversionFailure,
        ConstructorResolutionFailure,
        InconsistentMetadata,
        UnknownMember,
        ReloadBuildFailure,
    ):
        assert issubclass(kind, BindError)


def test_null_argument_is_also_a_value_error() -> None:
    with pytest.raises(ValueError):
        raise errors.null_argument("node")


def test_bind_error_message_includes_path() -> None:
    error = errors.configuration_is_a_list(int, "servers:0")
    assert error.path == "servers:0"
    assert error.target_type is int
    assert error.code == "configuration_is_a_list"
    assert str(error).endswith("(path: 'servers:0')")


def test_bind_error_without_path_renders_plain_message() -> None:
    error = errors.unknown_member(int, "nope")
    assert "(path:" not in str(error)
    assert error.code == "unknown_member"


@pytest.mark.parametrize(
    ("factory", "kind", "code"),
    [
        (lambda: errors.cannot_create_abstract_type(int, "a"), InvalidTargetShape, "cannot_create_abstract_type"),
        (lambda: errors.cannot_create_object_type("a"), InvalidTargetShape, "cannot_create_object_type"),
        (lambda: errors.array_rank_not_supported(tuple[int, int], "a"), ShapeMismatch, "array_rank_greater_than_one_is_not_supported"),
        (lambda: errors.result_cannot_be_null(int, "a"), ConversionFailure, "result_cannot_be_null"),
        (lambda: errors.no_public_constructors_found(int, "a"), ConstructorResolutionFailure, "no_public_constructors_found"),
        (lambda: errors.inconsistent_default_types(int, "m", "a"), InconsistentMetadata, "inconsistent_default_type_attributes"),
        (lambda: errors.reload_failed(int, "a", RuntimeError("x")), ReloadBuildFailure, "reload_build_failure"),
    ],
)
def test_factories_carry_stable_codes(factory, kind, code) -> None:
    error = factory()
    assert isinstance(error, kind)
    assert error.code == code


def test_type_not_assignable_reports_both_types() -> None:
    error = errors.type_not_assignable(int, str, "x", source="type specified in configuration")
    assert error.target_type is int
    assert error.attempted_type is str
    assert "str" in str(error) and "int" in str(error)


def test_missing_required_parameters_lists_names() -> None:
    error = errors.missing_required_constructor_parameters(int, ["host", "port"], None)
    assert "'host', 'port'" in str(error)


def test_type_name_renders_classes_and_annotations() -> None:
    assert type_name(int) == "int"
    assert type_name(list[int]) == "list[int]"
    assert type_name(NotFound) == "lib_config_binder.domain.errors.NotFound"
