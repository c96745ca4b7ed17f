from __future__ import annotations

from lib_config_binder import Event


def test_handlers_run_in_subscription_order() -> None:
    event = Event()
    seen: list[str] = []
    event += lambda value: seen.append(f"first:{value}")
    event.subscribe(lambda value: seen.append(f"second:{value}"))
    event.fire("x")
    assert seen == ["first:x", "second:x"]
    assert len(event) == 2


def test_unsubscribing_an_unknown_handler_is_ignored() -> None:
    event = Event()
    event.unsubscribe(print)
    event -= print
    assert len(event) == 0
    assert event


def test_handler_may_unsubscribe_itself_while_firing() -> None:
    event = Event()
    seen: list[int] = []

    def once(value: int) -> None:
        seen.append(value)
        event.unsubscribe(once)

    event += once
    event(1)
    event(2)
    assert seen == [1]
