"""Decide which concrete type a configuration node materialises as.

Resolution order (first hit wins)
---------------------------------
a. a ``type`` child of the node naming an importable type (``pkg.mod:Name`` or
   ``pkg.mod.Name``), unless the target itself declares a member ``type``;
b. a default type declared for the member (``member_default_type``);
c. a default type registered for ``(declaring type, member)`` in
   :class:`~lib_config_binder.application.registrations.DefaultTypes`;
d. a default type declared on the target (``@default_type``);
e. a default type registered for the target in ``DefaultTypes``;
f. the target itself.

Member-level defaults (b, c) also reach the elements of a collection member;
they only apply where they are assignable to the type being resolved. Type
level defaults (d) are checked strictly.
"""

from __future__ import annotations

from typing import Any

from ..domain.errors import cannot_create_abstract_type, type_not_assignable, type_not_importable
from .metadata import MetadataRegistry
from .ports import ConfigurationSection
from .registrations import FrozenDefaultTypes
from .schema import schema_for
from .sections import RELOAD_ON_CHANGE_KEY, TYPE_KEY, VALUE_KEY, FilteredSection, find_child
from .typeinfo import is_abstract, is_assignable, load_type, runtime_class, unwrap_optional


class TypeResolver:
    def __init__(self, default_types: FrozenDefaultTypes, metadata: MetadataRegistry) -> None:
        self._default_types = default_types
        self._metadata = metadata

    def type_hint(self, node: ConfigurationSection, target: Any) -> str | None:
        """Return the non-empty ``type`` child value when it counts as a hint."""

        child = find_child(node, TYPE_KEY)
        if child is None or not child.value or child.get_children():
            return None
        if self._declares_type_member(target):
            return None
        return child.value

    def hinted(self, name: str, target: Any, path: str | None) -> Any:
        """Import *name* and check it can stand in for *target*."""

        try:
            hinted = load_type(name)
        except (ImportError, AttributeError, ValueError) as exc:
            raise type_not_importable(name, target, path, str(exc)) from exc
        inner, _ = unwrap_optional(target)
        if not is_assignable(hinted, inner):
            raise type_not_assignable(inner, hinted, path, source="type specified in configuration")
        if is_abstract(hinted):
            raise cannot_create_abstract_type(hinted, path)
        return hinted

    def hinted_source(self, node: ConfigurationSection) -> ConfigurationSection:
        """The part of a hinted node that describes the instance itself."""

        value = find_child(node, VALUE_KEY)
        if value is not None:
            return value
        return FilteredSection(node, (TYPE_KEY, RELOAD_ON_CHANGE_KEY))

    def resolve(self, target: Any, owner: Any = None, member: str | None = None, path: str | None = None) -> Any:
        """Apply steps b-f for *target* declared as *member* of *owner*."""

        inner, _ = unwrap_optional(target)
        for candidate in (
            self._metadata.default_type_for_member(owner, member, path),
            self._default_types.for_member(owner, member),
        ):
            if candidate is not None and is_assignable(candidate, inner):
                return candidate
        if isinstance(inner, type):
            declared = self._metadata.default_type_for(inner)
            if declared is not None:
                if not is_assignable(declared, inner):
                    raise type_not_assignable(inner, declared, path, source="declared default type")
                return declared
        registered = self._default_types.for_type(inner)
        if registered is None and inner is not target:
            registered = self._default_types.for_type(target)
        if registered is not None:
            return registered
        return inner

    def _declares_type_member(self, target: Any) -> bool:
        inner, _ = unwrap_optional(target)
        cls = runtime_class(inner)
        if cls is None or is_abstract(cls) or cls is object:
            return False
        return schema_for(cls, self._metadata).declares(TYPE_KEY)
