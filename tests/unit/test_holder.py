from __future__ import annotations

import pytest

from lib_config_binder import ConfigurationHolder, HolderLockedError, MemoryConfiguration


def test_set_is_allowed_until_first_read() -> None:
    holder: ConfigurationHolder[MemoryConfiguration] = ConfigurationHolder()
    first = MemoryConfiguration({"a": "1"})
    second = MemoryConfiguration({"a": "2"})
    holder.set(first)
    holder.set(second)
    assert not holder.is_locked
    assert holder.get() is second
    assert holder.is_locked


def test_set_after_read_raises() -> None:
    holder = ConfigurationHolder(default_factory=MemoryConfiguration)
    holder.get()
    with pytest.raises(HolderLockedError):
        holder.set(MemoryConfiguration())


def test_default_factory_runs_once() -> None:
    calls: list[int] = []

    def factory() -> MemoryConfiguration:
        calls.append(1)
        return MemoryConfiguration()

    holder = ConfigurationHolder(default_factory=factory)
    assert not holder.has_value
    assert holder.get() is holder.get()
    assert calls == [1]


def test_get_without_value_or_factory_raises_lookup_error() -> None:
    with pytest.raises(LookupError):
        ConfigurationHolder().get()
