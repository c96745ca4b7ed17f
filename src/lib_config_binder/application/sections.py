"""Shape helpers over :class:`~lib_config_binder.application.ports.ConfigurationSection`.

The binder needs a few structural questions answered about a node (is it a
list, does it carry only reserved keys) plus a filtered view
that hides the reserved ``type`` key when siblings are bound directly.
"""

from __future__ import annotations

import hashlib
from typing import Iterator, Sequence

from .ports import ChangeToken, ConfigurationSection

TYPE_KEY = "type"
VALUE_KEY = "value"
RELOAD_ON_CHANGE_KEY = "reloadOnChange"

RESERVED_KEYS = (TYPE_KEY, VALUE_KEY, RELOAD_ON_CHANGE_KEY)


def is_list_node(section: ConfigurationSection) -> bool:
    """Return ``True`` when the children are keyed ``0..n-1``."""

    kids = section.get_children()
    if not kids:
        return False
    return all(child.key == str(index) for index, child in enumerate(kids))


def find_child(section: ConfigurationSection, name: str) -> ConfigurationSection | None:
    """Return the child whose key equals *name* case-insensitively."""

    folded = name.casefold()
    for child in section.get_children():
        if child.key.casefold() == folded:
            return child
    return None


def has_only_reserved_keys(section: ConfigurationSection, allowed: Sequence[str]) -> bool:
    """Return ``True`` when *section* has children and every key is in *allowed*.

    Keys compare case-insensitively; a leaf or empty section never qualifies.
    """

    folded = {name.casefold() for name in allowed}
    kids = section.get_children()
    return bool(kids) and all(child.key.casefold() in folded for child in kids)


def walk(section: ConfigurationSection) -> Iterator[tuple[str, str | None]]:
    """Yield ``(path, value)`` for *section* and every descendant, depth first."""

    yield section.path, section.value
    for child in section.get_children():
        yield from walk(child)


def fingerprint(section: ConfigurationSection) -> str:
    """Return a SHA-256 digest over every path and value below *section*."""

    digest = hashlib.sha256()
    for path, value in walk(section):
        digest.update(path.casefold().encode("utf-8"))
        digest.update(b"\x00")
        digest.update(b"\x01" if value is None else b"\x02" + value.encode("utf-8"))
        digest.update(b"\x00")
    return digest.hexdigest()


class FilteredSection:
    """View of *inner* that hides the children named in *excluded*.

    Used when a node carries a ``type`` hint but no ``value`` child: the
    remaining siblings are bound against the hinted type.
    """

    def __init__(self, inner: ConfigurationSection, excluded: Sequence[str]) -> None:
        self._inner = inner
        self._excluded = {name.casefold() for name in excluded}

    @property
    def key(self) -> str:
        return self._inner.key

    @property
    def path(self) -> str:
        return self._inner.path

    @property
    def value(self) -> str | None:
        return self._inner.value

    def get(self, key: str) -> str | None:
        return self._inner.get(key)

    def get_section(self, key: str) -> ConfigurationSection:
        return self._inner.get_section(key)

    def get_children(self) -> list[ConfigurationSection]:
        return [child for child in self._inner.get_children() if child.key.casefold() not in self._excluded]

    def get_reload_token(self) -> ChangeToken:
        return self._inner.get_reload_token()

    def __repr__(self) -> str:
        return f"FilteredSection({self._inner!r}, excluded={sorted(self._excluded)})"
