from __future__ import annotations

import datetime

import pytest

from binder_models import Animal, Cat, Dog, Endpoint, Settings, Zoo
from lib_config_binder import DefaultTypes, InvalidTargetShape, TypeMismatch, UnknownMember, ValueConverters


def test_type_default_is_returned_by_the_snapshot() -> None:
    frozen = DefaultTypes().add(Animal, Dog).freeze()
    assert frozen.for_type(Animal) is Dog
    assert frozen.for_type(Cat) is None


def test_abstract_default_is_rejected_when_added() -> None:
    with pytest.raises(InvalidTargetShape) as excinfo:
        DefaultTypes().add(Animal, Animal)
    assert excinfo.value.code == "default_type_cannot_be_abstract"


def test_unrelated_default_is_rejected_when_added() -> None:
    with pytest.raises(TypeMismatch) as excinfo:
        DefaultTypes().add(Dog, Cat)
    assert excinfo.value.code == "default_type_not_assignable"


def test_member_default_accepts_optional_and_element_annotations() -> None:
    frozen = DefaultTypes().add(Zoo, "keeper", Cat).add(Zoo, "animals", Dog).freeze()
    assert frozen.for_member(Zoo, "keeper") is Cat
    assert frozen.for_member(Zoo, "Animals") is Dog


def test_member_default_must_fit_the_member() -> None:
    with pytest.raises(TypeMismatch) as excinfo:
        DefaultTypes().add(Zoo, "keeper", Endpoint)
    assert excinfo.value.code == "default_type_not_assignable_to_member"


def test_unknown_member_is_rejected() -> None:
    with pytest.raises(UnknownMember):
        DefaultTypes().add(Zoo, "visitors", Dog)


def test_wrong_number_of_arguments_is_a_type_error() -> None:
    with pytest.raises(TypeError):
        DefaultTypes().add(Animal)  # type: ignore[call-overload]


def test_snapshot_does_not_see_later_additions() -> None:
    defaults = DefaultTypes().add(Animal, Dog)
    frozen = defaults.freeze()
    defaults.add(Zoo, "keeper", Cat)
    assert len(frozen) == 1
    assert len(defaults) == 2
    assert sorted(defaults) == ["binder_models.Animal", "binder_models.Zoo::keeper"]


def test_converter_return_type_comes_from_annotation() -> None:
    def minutes(value: str) -> datetime.timedelta:
        return datetime.timedelta(minutes=int(value))

    frozen = ValueConverters().add(datetime.timedelta, minutes).freeze()
    assert frozen.for_type(datetime.timedelta)("2") == datetime.timedelta(minutes=2)


def test_converter_with_wrong_return_type_is_rejected() -> None:
    def text(value: str) -> str:
        return value

    with pytest.raises(TypeMismatch) as excinfo:
        ValueConverters().add(int, text)
    assert excinfo.value.code == "converter_return_type_not_assignable"


def test_unannotated_converter_is_accepted_and_returns_overrides() -> None:
    converters = ValueConverters().add(int, lambda value: int(value, 16))
    with pytest.raises(TypeMismatch):
        converters.add(float, lambda value: value, returns=str)
    assert len(converters) == 1


def test_member_converter_is_checked_against_the_member() -> None:
    def doubled(value: str) -> int:
        return int(value) * 2

    frozen = ValueConverters().add(Settings, "retries", doubled).freeze()
    assert frozen.for_member(Settings, "RETRIES") is doubled
    with pytest.raises(TypeMismatch) as excinfo:
        ValueConverters().add(Settings, "name", doubled)
    assert excinfo.value.code == "converter_return_type_not_assignable_to_member"
