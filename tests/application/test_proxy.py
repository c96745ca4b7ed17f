from __future__ import annotations

import abc
import collections.abc as cabc
import logging
import threading

import pytest

from binder_models import Clock, Endpoint, Greeter, PlainGreeter, Service
from lib_config_binder import (
    DefaultTypes,
    InvalidTargetShape,
    MemoryConfiguration,
    MetadataRegistry,
    ReloadBuildFailure,
    ReloadingProxy,
    alternate_names,
    bind,
    create_reloading_proxy,
)


def make_proxy(**greeter: str) -> tuple[MemoryConfiguration, Greeter]:
    data = {"type": "binder_models:PlainGreeter", "name": "ann"} | greeter
    config = MemoryConfiguration({"greeter": data, "other": "x"})
    return config, create_reloading_proxy(config.get_section("greeter"), Greeter)


def test_proxy_implements_the_contract() -> None:
    _, proxy = make_proxy()
    assert isinstance(proxy, Greeter)
    assert isinstance(proxy, ReloadingProxy)
    assert proxy.greet() == "hello ann!"
    assert proxy.name == "ann"
    assert type(proxy).__name__ == "GreeterReloadingProxy"
    proxy.close()


def test_change_swaps_the_instance() -> None:
    config, proxy = make_proxy()
    first = proxy.current()
    config.set("greeter:name", "bob")
    assert proxy.greet() == "hello bob!"
    assert proxy.current() is not first
    assert proxy.generation == 1
    proxy.close()


def test_unrelated_change_keeps_the_instance() -> None:
    config, proxy = make_proxy()
    first = proxy.current()
    config.set("other", "y")
    assert proxy.current() is first
    assert proxy.generation == 0
    proxy.close()


def test_force_reload_rebuilds_an_unchanged_tree() -> None:
    _, proxy = make_proxy()
    first = proxy.current()
    proxy.force_reload()
    assert proxy.current() is not first
    assert proxy.generation == 1
    proxy.close()


def test_state_the_new_configuration_does_not_set_is_carried_forward() -> None:
    config, proxy = make_proxy()
    proxy.prefix = "Dr."
    config.set("greeter:name", "bob")
    assert proxy.greet() == "Dr. hello bob!"
    config.set("greeter:prefix", "Ms.")
    assert proxy.greet() == "Ms. hello bob!"
    proxy.close()


def test_events_fire_in_order_and_the_old_instance_is_disposed_last() -> None:
    config, proxy = make_proxy()
    old = proxy.current()
    log: list[tuple[str, str, bool]] = []
    proxy.reloading += lambda instance: log.append(("reloading", instance.name, instance.disposed))
    proxy.reloaded += lambda instance: log.append(("reloaded", instance.name, old.disposed))
    config.set("greeter:name", "bob")
    assert log == [("reloading", "ann", False), ("reloaded", "bob", False)]
    assert old.disposed
    proxy.close()


def test_contract_events_follow_the_active_instance() -> None:
    config, proxy = make_proxy()
    received: list[str] = []
    proxy.changed += received.append
    old = proxy.current()
    old.changed.fire("first")
    config.set("greeter:name", "bob")
    old.changed.fire("stale")
    proxy.current().changed.fire("second")
    assert received == ["first", "second"]
    proxy.changed -= received.append
    proxy.current().changed.fire("third")
    assert received == ["first", "second"]
    proxy.close()


def test_failed_reload_keeps_the_previous_instance(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_config_binder")
    config, proxy = make_proxy()
    first = proxy.current()
    failures: list[ReloadBuildFailure] = []
    proxy.reload_failed += failures.append

    config.set("greeter:type", "binder_models:Endpoint")
    assert proxy.current() is first
    assert proxy.generation == 0
    assert failures and failures[0].code == "reload_build_failure"
    assert "proxy_reload_failed" in [record.getMessage() for record in caplog.records]

    with pytest.raises(ReloadBuildFailure):
        proxy.force_reload()

    config.set("greeter", {"type": "binder_models:PlainGreeter", "name": "cy"})
    assert proxy.generation == 1
    assert proxy.name == "cy"
    proxy.close()


def test_reload_on_change_false_suppresses_automatic_reloads() -> None:
    config, proxy = make_proxy(reloadOnChange="false")
    first = proxy.current()
    config.set("greeter:name", "bob")
    assert proxy.current() is first
    proxy.force_reload()
    assert proxy.name == "bob"
    proxy.close()


def test_dispose_failure_is_logged_and_does_not_break_the_swap(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_config_binder")
    config, proxy = make_proxy(type="binder_models:BrittleGreeter")
    config.set("greeter:name", "bob")
    assert proxy.name == "bob"
    proxy.close()
    assert "proxy_dispose_failed" in [record.getMessage() for record in caplog.records]


def test_change_made_by_a_reloaded_handler_is_rebuilt() -> None:
    config, proxy = make_proxy()

    def rename(instance: PlainGreeter) -> None:
        if instance.name == "bob":
            config.set("greeter:name", "cy")

    proxy.reloaded += rename
    config.set("greeter:name", "bob")
    assert proxy.name == "cy"
    assert proxy.generation == 2
    proxy.close()


def test_change_made_by_a_handler_during_force_reload_is_rebuilt() -> None:
    config, proxy = make_proxy()
    proxy.reloaded += lambda _: config.set("greeter:name", "dee") if proxy.generation == 1 else None
    proxy.force_reload()
    assert proxy.name == "dee"
    proxy.close()


def test_raising_handler_neither_aborts_the_swap_nor_reaches_the_writer(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_config_binder")
    config = MemoryConfiguration(
        {
            "a": {"type": "binder_models:PlainGreeter", "name": "ann"},
            "b": {"type": "binder_models:PlainGreeter", "name": "ann"},
        }
    )
    first = create_reloading_proxy(config.get_section("a"), Greeter)
    second = create_reloading_proxy(config.get_section("b"), Greeter)
    old = first.current()
    seen: list[str] = []

    def explode(_: PlainGreeter) -> None:
        raise RuntimeError("handler failed")

    first.reloaded += explode
    first.reloaded += lambda instance: seen.append(instance.name)

    config.set("a:name", "bob")
    config.set("b:name", "bob")
    assert first.name == "bob"
    assert old.disposed
    assert seen == ["bob"]
    assert second.name == "bob"
    assert "proxy_handler_failed" in [record.getMessage() for record in caplog.records]
    first.close()
    second.close()


def test_raising_handler_on_one_proxy_does_not_starve_another(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="lib_config_binder")
    config = MemoryConfiguration({"greeter": {"type": "binder_models:PlainGreeter", "name": "ann"}})
    section = config.get_section("greeter")
    first = create_reloading_proxy(section, Greeter)
    second = create_reloading_proxy(section, Greeter)

    def explode(_: PlainGreeter) -> None:
        raise RuntimeError("handler failed")

    first.reloading += explode
    config.set("greeter:name", "bob")
    assert (first.name, second.name) == ("bob", "bob")
    first.close()
    second.close()


def test_copy_forward_honours_the_registry_the_proxy_binds_with() -> None:
    registry = MetadataRegistry()
    alternate_names(PlainGreeter, "prefix", "title", registry=registry)
    config = MemoryConfiguration({"greeter": {"type": "binder_models:PlainGreeter", "name": "ann"}})
    proxy = create_reloading_proxy(config.get_section("greeter"), Greeter, metadata=registry)
    proxy.prefix = "Dr."
    config.set("greeter:title", "Ms.")
    assert proxy.prefix == "Ms."
    assert proxy.greet() == "Ms. hello ann!"
    proxy.close()


def test_close_is_idempotent_and_stops_reloads() -> None:
    config, proxy = make_proxy()
    instance = proxy.current()
    with proxy:
        pass
    proxy.close()
    assert proxy.closed and instance.disposed
    config.set("greeter:name", "bob")
    assert proxy.current() is instance


def test_default_type_supplies_the_implementation() -> None:
    config = MemoryConfiguration({"name": "ann"})
    with create_reloading_proxy(config, Greeter, default_types=DefaultTypes().add(Greeter, PlainGreeter)) as proxy:
        assert proxy.greet() == "hello ann!"


def test_protocol_contracts_are_supported() -> None:
    config = MemoryConfiguration({"type": "binder_models:FixedClock", "value": {"value": "dawn"}})
    with create_reloading_proxy(config, Clock) as proxy:
        assert proxy.now() == "dawn"
        config.set("value:value", "dusk")
        assert proxy.now() == "dusk"


def test_missing_concrete_type_is_reported() -> None:
    with pytest.raises(InvalidTargetShape) as excinfo:
        create_reloading_proxy(MemoryConfiguration({"name": "ann"}), Greeter)
    assert excinfo.value.code == "type_not_specified_for_reloading_proxy"


class Bag(cabc.Iterable):
    pass


class Colliding(abc.ABC):
    @abc.abstractmethod
    def current(self) -> str: ...


@pytest.mark.parametrize("contract", [Endpoint, Bag, Colliding])
def test_unsuitable_contracts_are_rejected(contract: type) -> None:
    config = MemoryConfiguration({"type": "binder_models:PlainGreeter"})
    with pytest.raises(InvalidTargetShape) as excinfo:
        create_reloading_proxy(config, contract)
    assert excinfo.value.code == "cannot_create_reloading_proxy"


def test_nested_reloading_member_becomes_a_proxy() -> None:
    config = MemoryConfiguration(
        {
            "service": {
                "retries": "2",
                "greeter": {
                    "type": "binder_models:PlainGreeter",
                    "value": {"name": "ann"},
                    "reloadOnChange": "true",
                },
            }
        }
    )
    service = bind(config.get_section("service"), Service)
    assert isinstance(service.greeter, ReloadingProxy)
    assert service.greeter.greet() == "hello ann!"
    config.set("service:greeter:value:name", "bob")
    assert service.greeter.greet() == "hello bob!"
    assert service.retries == 2
    service.greeter.close()


def test_readers_only_ever_see_complete_instances() -> None:
    config, proxy = make_proxy()
    seen: set[str] = set()
    stop = threading.Event()

    def read() -> None:
        while not stop.is_set():
            seen.add(proxy.greet())

    reader = threading.Thread(target=read)
    reader.start()
    try:
        for index in range(20):
            config.set("greeter:name", f"n{index}")
    finally:
        stop.set()
        reader.join()
    assert seen <= {"hello ann!"} | {f"hello n{index}!" for index in range(20)}
    assert proxy.generation == 20
    proxy.close()
