"""Hot-reloading proxies over capability contracts.

Purpose
-------
Hand out a stable object implementing an abstract contract (an ABC or a
``typing.Protocol``) whose behaviour follows the configuration: whenever the
watched subtree changes, a fresh instance is built and swapped in behind the
proxy.

Reload sequence
---------------
1. compare a SHA-256 fingerprint of the watched subtree; unchanged trees and
   subtrees marked ``reloadOnChange: false`` are skipped;
2. fire ``reloading(old)``;
3. build the new instance (a failure fires ``reload_failed`` and keeps the old
   instance active);
4. copy forward writable members the new configuration does not mention;
5. move contract event subscriptions to the new instance and swap;
6. fire ``reloaded(new)``, then close the old instance if it has ``close()``.

Reloads are serialised by a re-entrant lock; every forwarded call reads the
current instance exactly once. A change signalled while a rebuild runs on the
same thread (from a ``reloading`` or ``reloaded`` handler, say) is queued and
rebuilt as soon as the running reload finishes. Handlers of the proxy events
are isolated: one that raises is logged as ``proxy_handler_failed`` and neither
the swap nor the writer that changed the configuration sees the error.
"""

from __future__ import annotations

import abc
import collections.abc as cabc
import inspect
import threading
import typing
from typing import Any, Callable, Iterator

from ..domain.errors import (
    BindError,
    cannot_create_reloading_proxy,
    reload_failed,
    type_name,
    type_not_assignable,
)
from ..domain.events import Event
from ..domain.identifiers import identifiers_match
from ..domain.tree import ChangeSubscription, on_change
from ..observability import log_debug, log_error, log_info, make_event
from .metadata import METADATA, MetadataRegistry
from .ports import ConfigurationSection
from .schema import schema_for
from .sections import RELOAD_ON_CHANGE_KEY, find_child, fingerprint
from .typeinfo import is_abstract, is_value_instance, strip_annotated

Build = Callable[[], tuple[Any, ConfigurationSection]]

RESERVED_NAMES = frozenset({"current", "force_reload", "reloading", "reloaded", "reload_failed", "generation", "closed"})
_SKIPPED_BASES = (object, abc.ABC, typing.Protocol, typing.Generic)


class ReloadingProxy:
    """Base class of every generated proxy.

    Generated subclasses add one forwarder per contract member. The proxy's
    own surface is ``current()``, ``force_reload()``, ``generation``,
    ``closed``, ``close()`` and the ``reloading``/``reloaded``/``reload_failed``
    events; it is also a context manager that closes on exit.
    """

    _proxy_contract: Any = None
    _proxy_events: tuple[str, ...] = ()

    def __init__(self, build: Build, watch: ConfigurationSection, metadata: MetadataRegistry = METADATA) -> None:
        self._proxy_build = build
        self._proxy_watch = watch
        self._proxy_metadata = metadata
        self._proxy_lock = threading.RLock()
        self._proxy_closed = False
        self._proxy_reloading = False
        self._proxy_pending = False
        self._proxy_generation = 0
        self.reloading = Event()
        self.reloaded = Event()
        self.reload_failed = Event()
        self._proxy_relays = {name: Event() for name in self._proxy_events}
        instance, source = self._proxy_create()
        self._proxy_instance = instance
        self._proxy_source = source
        self._proxy_fingerprint = fingerprint(watch)
        self._proxy_attach(instance)
        self._proxy_subscription: ChangeSubscription = on_change(watch.get_reload_token, self._proxy_on_change)
        log_info(
            "proxy_created",
            **make_event(watch.path, type_name(self._proxy_contract), {"instance": type_name(type(instance))}),
        )

    def current(self) -> Any:
        """Return the instance currently behind the proxy."""

        return self._proxy_instance

    @property
    def generation(self) -> int:
        """Number of successful reloads so far."""

        return self._proxy_generation

    @property
    def closed(self) -> bool:
        return self._proxy_closed

    def force_reload(self) -> None:
        """Rebuild now, even if the watched subtree is unchanged.

        Raises :class:`~lib_config_binder.domain.errors.ReloadBuildFailure` when
        the build fails; the previous instance stays active.
        """

        with self._proxy_lock:
            self._proxy_pending = False
            self._proxy_reload(force=True)
            if self._proxy_pending:
                self._proxy_on_change()

    def close(self) -> None:
        """Stop watching and close the active instance; idempotent."""

        with self._proxy_lock:
            if self._proxy_closed:
                return
            self._proxy_closed = True
            self._proxy_subscription.close()
            instance = self._proxy_instance
            self._proxy_detach(instance)
        _dispose(instance, self._proxy_watch.path)
        log_info("proxy_closed", **make_event(self._proxy_watch.path, type_name(self._proxy_contract)))

    def __enter__(self) -> ReloadingProxy:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} current={type_name(type(self._proxy_instance))} "
            f"generation={self._proxy_generation} closed={self._proxy_closed}>"
        )

    def _proxy_on_change(self) -> None:
        with self._proxy_lock:
            if self._proxy_reloading:
                # signalled from inside a rebuild on this thread; rerun once it ends
                self._proxy_pending = True
                return
            while True:
                self._proxy_pending = False
                try:
                    self._proxy_reload(force=False)
                except BindError:
                    # already reported through reload_failed and the log
                    pass
                if not self._proxy_pending or self._proxy_closed:
                    return

    def _proxy_reload(self, *, force: bool) -> None:
        path = self._proxy_watch.path
        contract = type_name(self._proxy_contract)
        with self._proxy_lock:
            if self._proxy_closed:
                return
            digest = fingerprint(self._proxy_watch)
            if not force and (digest == self._proxy_fingerprint or not self._proxy_reload_enabled()):
                log_debug("proxy_reload_skipped", **make_event(path, contract))
                return
            old = self._proxy_instance
            self._proxy_reloading = True
            try:
                self._proxy_notify(self.reloading, "reloading", old)
                try:
                    new, source = self._proxy_create()
                except Exception as exc:
                    failure = reload_failed(self._proxy_contract, path, exc)
                    log_error("proxy_reload_failed", **make_event(path, contract, {"error": str(exc)}))
                    self._proxy_notify(self.reload_failed, "reload_failed", failure)
                    raise failure from exc
                _copy_forward(old, new, source, self._proxy_metadata)
                self._proxy_detach(old)
                self._proxy_attach(new)
                self._proxy_instance = new
                self._proxy_source = source
                self._proxy_fingerprint = digest
                self._proxy_generation += 1
                self._proxy_notify(self.reloaded, "reloaded", new)
                _dispose(old, path)
            finally:
                self._proxy_reloading = False
        log_info("proxy_reloaded", **make_event(path, contract, {"generation": self._proxy_generation}))

    def _proxy_notify(self, event: Event, name: str, *args: Any) -> None:
        # each handler runs on its own; a raising one never aborts the swap
        for handler in event.handlers:
            try:
                handler(*args)
            except Exception as exc:  # noqa: BLE001 - logged, the writer never sees it
                log_error(
                    "proxy_handler_failed",
                    **make_event(self._proxy_watch.path, type_name(self._proxy_contract), {"event": name, "error": str(exc)}),
                )

    def _proxy_create(self) -> tuple[Any, ConfigurationSection]:
        instance, source = self._proxy_build()
        if not is_value_instance(instance, self._proxy_contract):
            raise type_not_assignable(
                self._proxy_contract, type(instance), self._proxy_watch.path, source="reloaded instance"
            )
        return instance, source

    def _proxy_reload_enabled(self) -> bool:
        flag = find_child(self._proxy_watch, RELOAD_ON_CHANGE_KEY)
        return flag is None or (flag.value or "").strip().casefold() != "false"

    def _proxy_attach(self, instance: Any) -> None:
        for name, relay in self._proxy_relays.items():
            event = getattr(instance, name, None)
            if isinstance(event, Event):
                event.subscribe(relay.fire)

    def _proxy_detach(self, instance: Any) -> None:
        for name, relay in self._proxy_relays.items():
            event = getattr(instance, name, None)
            if isinstance(event, Event):
                event.unsubscribe(relay.fire)


def _copy_forward(old: Any, new: Any, source: ConfigurationSection, metadata: MetadataRegistry) -> None:
    """Carry writable members the new configuration does not set over to *new*."""

    if type(old) is not type(new):
        return
    keys = [child.key for child in source.get_children()]
    for member in schema_for(type(new), metadata).writable:
        if any(identifiers_match(name, key) for name in member.names for key in keys):
            continue
        value = getattr(old, member.name, None)
        if value is not None:
            setattr(new, member.name, value)


def _dispose(instance: Any, path: str) -> None:
    close = getattr(instance, "close", None)
    if not callable(close):
        return
    try:
        close()
    except Exception as exc:  # noqa: BLE001 - a failing close must not break the swap
        log_error("proxy_dispose_failed", **make_event(path, type_name(type(instance)), {"error": str(exc)}))


def _contract_members(contract: type) -> Iterator[tuple[str, str, Any]]:
    """Yield ``(name, kind, attribute)``; kind is method, property, event or data."""

    seen: set[str] = set()
    for klass in contract.__mro__:
        if klass in _SKIPPED_BASES:
            continue
        annotations = _annotations(klass)
        for name, attribute in vars(klass).items():
            if name.startswith("_") or name in seen:
                continue
            seen.add(name)
            if isinstance(attribute, property):
                yield name, "property", attribute
            elif isinstance(attribute, type):
                continue
            elif callable(attribute) or isinstance(attribute, (staticmethod, classmethod)):
                yield name, "method", attribute
        for name, annotation in annotations.items():
            if name.startswith("_") or name in seen:
                continue
            seen.add(name)
            yield name, "event" if _is_event(annotation) else "data", annotation


def _annotations(klass: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(klass, eval_str=True)
    except Exception:  # noqa: BLE001 - unresolvable names stay as strings
        return inspect.get_annotations(klass)


def _is_event(annotation: Any) -> bool:
    bare = strip_annotated(annotation)
    if isinstance(bare, str):
        return bare == "Event" or bare.endswith(".Event")
    return bare is Event


def _forward_method(name: str) -> Callable[..., Any]:
    def forward(self: ReloadingProxy, *args: Any, **kwargs: Any) -> Any:
        return getattr(self._proxy_instance, name)(*args, **kwargs)

    forward.__name__ = name
    return forward


def _forward_property(name: str, writable: bool) -> property:
    def fget(self: ReloadingProxy) -> Any:
        return getattr(self._proxy_instance, name)

    def fset(self: ReloadingProxy, value: Any) -> None:
        setattr(self._proxy_instance, name, value)

    return property(fget, fset if writable else None)


def _event_property(name: str) -> property:
    def fget(self: ReloadingProxy) -> Event:
        return self._proxy_relays[name]

    def fset(self: ReloadingProxy, value: Any) -> None:
        # ``proxy.changed += handler`` assigns the same relay back
        if value is not self._proxy_relays[name]:
            raise AttributeError(f"event '{name}' cannot be replaced; use += and -=")

    return property(fget, fset)


_CLASS_CACHE: dict[type, type] = {}
_CLASS_LOCK = threading.Lock()


def proxy_class(contract: type) -> type:
    """Return the generated proxy class for *contract*, creating it once."""

    with _CLASS_LOCK:
        cached = _CLASS_CACHE.get(contract)
        if cached is not None:
            return cached
        generated = _generate(contract)
        _CLASS_CACHE[contract] = generated
        return generated


def _generate(contract: type) -> type:
    namespace: dict[str, Any] = {"_proxy_contract": contract, "__module__": contract.__module__}
    events: list[str] = []
    for name, kind, attribute in _contract_members(contract):
        if name == "close":
            continue
        if name in RESERVED_NAMES:
            raise cannot_create_reloading_proxy(contract, f"member '{name}' collides with the proxy surface")
        if kind == "method":
            namespace[name] = _forward_method(name)
        elif kind == "property":
            namespace[name] = _forward_property(name, attribute.fset is not None)
        elif kind == "event":
            namespace[name] = _event_property(name)
            events.append(name)
        else:
            namespace[name] = _forward_property(name, writable=True)
    namespace["_proxy_events"] = tuple(events)
    metaclass = type(contract)
    return metaclass(f"{contract.__name__}ReloadingProxy", (ReloadingProxy, contract), namespace)


def _check_contract(contract: Any) -> type:
    if contract is None or not isinstance(contract, type):
        raise cannot_create_reloading_proxy(contract, "the contract must be a class")
    if not (is_abstract(contract) or isinstance(contract, abc.ABCMeta)):
        raise cannot_create_reloading_proxy(contract, "the contract must be an abstract base class or a protocol")
    if issubclass(contract, cabc.Iterable):
        raise cannot_create_reloading_proxy(contract, "iterable contracts cannot be proxied")
    return contract


def create_proxy(
    contract: Any,
    build: Build,
    watch: ConfigurationSection,
    metadata: MetadataRegistry = METADATA,
) -> Any:
    """Build the first instance and wrap it in a proxy implementing *contract*.

    Parameters
    ----------
    contract:
        Abstract class or protocol the proxy implements.
    build:
        Returns ``(instance, source section)``; called for the first instance
        and for every reload.
    watch:
        Section whose change token triggers reloads.
    metadata:
        Registry the build binds with; copy-forward honours its alternate
        names and ignored members.
    """

    cls = proxy_class(_check_contract(contract))
    return cls(build, watch, metadata)
