"""Leaf value conversion: from configuration strings to typed values.

Purpose
-------
Decide whether a target is a *leaf type* (bound from a single string) and turn
the string into a value of that type.

Conversion ladder (first match wins)
------------------------------------
1. conversion method declared for the member (``member_convert_method``);
2. conversion method declared on the target type (``@convert_method``);
3. per ``(declaring type, member)`` entry in :class:`ValueConverters`;
4. per target-type entry in :class:`ValueConverters`;
5. built-in conversion for ``str``, numbers, ``bool`` (``true``/``false``),
   ``Decimal``, ``UUID``, ISO dates and times, time spans, enums and flags,
   Base64 ``bytes``, URIs, paths, importable type names and codec names.

A missing (``None``) value binds to the type default (``0``, ``False``, ``""``
...; ``None`` for optional targets). An empty string is handed to custom
converters and otherwise binds to the type default as well.
"""

from __future__ import annotations

import base64
import binascii
import codecs
import datetime
import decimal
import enum
import pathlib
import re
import typing
import urllib.parse
import uuid
from typing import Any, Callable

from ..domain.errors import BindError, conversion_failed, result_cannot_be_null, type_not_assignable
from .metadata import MetadataRegistry
from .registrations import Converter, FrozenValueConverters, converter_return_type
from .typeinfo import default_value, is_assignable, is_union, load_type, strip_annotated, unwrap_optional

_FLAG_DELIMITERS = re.compile(r"\s*\|\s*|\s+[Oo][Rr]\s+")
_TIME_SPAN = re.compile(
    r"^(?P<sign>-)?(?:(?P<days>\d+)[.:])?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?$"
)
_ISO_DURATION = re.compile(
    r"^(?P<sign>-)?P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$",
    re.IGNORECASE,
)


def parse_bool(text: str) -> bool:
    """Parse ``true``/``false`` case-insensitively.

    >>> parse_bool(" True "), parse_bool("FALSE")
    (True, False)
    """

    folded = text.strip().casefold()
    if folded == "true":
        return True
    if folded == "false":
        return False
    raise ValueError(f"{text!r} is not 'true' or 'false'")


def parse_timedelta(text: str) -> datetime.timedelta:
    """Parse ``[-][d.]hh:mm[:ss[.fffffff]]``, ISO-8601 durations, or whole days.

    >>> parse_timedelta("01:30:00")
    datetime.timedelta(seconds=5400)
    >>> parse_timedelta("2.03:00:00")
    datetime.timedelta(days=2, seconds=10800)
    >>> parse_timedelta("PT5M")
    datetime.timedelta(seconds=300)
    >>> parse_timedelta("3")
    datetime.timedelta(days=3)
    """

    stripped = text.strip()
    if re.fullmatch(r"-?\d+", stripped):
        return datetime.timedelta(days=int(stripped))
    match = _TIME_SPAN.match(stripped)
    if match:
        hours, minutes = int(match["hours"]), int(match["minutes"])
        seconds = int(match["seconds"] or 0)
        if hours > 23 or minutes > 59 or seconds > 59:
            raise ValueError(f"{text!r} has out-of-range components")
        fraction = (match["fraction"] or "").ljust(7, "0")
        span = datetime.timedelta(
            days=int(match["days"] or 0),
            hours=hours,
            minutes=minutes,
            seconds=seconds,
            microseconds=int(fraction) // 10,
        )
        return -span if match["sign"] else span
    match = _ISO_DURATION.match(stripped)
    if match and any(match[name] for name in ("days", "hours", "minutes", "seconds")):
        span = datetime.timedelta(
            days=float(match["days"] or 0),
            hours=float(match["hours"] or 0),
            minutes=float(match["minutes"] or 0),
            seconds=float(match["seconds"] or 0),
        )
        return -span if match["sign"] else span
    raise ValueError(f"{text!r} is not a time span")


def parse_datetime(text: str) -> datetime.datetime:
    stripped = text.strip()
    if stripped.endswith(("Z", "z")):
        stripped = stripped[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(stripped)


def parse_enum(cls: type[enum.Enum], text: str) -> enum.Enum:
    """Parse enum members by name (case-insensitive), value, or flag combination.

    Flag members may be joined with ``,``, ``|`` or ``or``.

    >>> import enum
    >>> class Access(enum.Flag):
    ...     READ = 1
    ...     WRITE = 2
    >>> parse_enum(Access, "read | Write") == Access.READ | Access.WRITE
    True
    >>> parse_enum(Access, "read or write") == parse_enum(Access, "READ, WRITE")
    True
    """

    normalized = _FLAG_DELIMITERS.sub(", ", text.strip())
    tokens = [token.strip() for token in normalized.split(",")]
    if len(tokens) > 1 and not issubclass(cls, enum.Flag):
        raise ValueError(f"{cls.__name__} is not a flag enum; cannot combine {text!r}")
    result: Any = None
    for token in tokens:
        member = _enum_member(cls, token)
        result = member if result is None else result | member
    return result


def _enum_member(cls: type[enum.Enum], token: str) -> enum.Enum:
    folded = token.casefold()
    for name, member in cls.__members__.items():
        if name.casefold() == folded:
            return member
    for member in cls:
        if isinstance(member.value, str) and member.value.casefold() == folded:
            return member
    try:
        number = int(token)
    except ValueError:
        raise ValueError(f"{token!r} is not a member of {cls.__name__}") from None
    return cls(number)


def parse_bytes(text: str) -> bytes:
    try:
        return base64.b64decode(text.strip(), validate=True)
    except binascii.Error as exc:
        raise ValueError(f"invalid Base64: {exc}") from exc


def parse_uri(text: str) -> urllib.parse.ParseResult:
    stripped = text.strip()
    if not stripped or any(ch.isspace() for ch in stripped):
        raise ValueError(f"{text!r} is not a URI")
    return urllib.parse.urlparse(stripped)


def _parse_decimal(text: str) -> decimal.Decimal:
    try:
        return decimal.Decimal(text.strip())
    except decimal.InvalidOperation as exc:
        raise ValueError(f"{text!r} is not a decimal number") from exc


BUILTIN_CONVERTERS: dict[type, Callable[[str], Any]] = {
    str: str,
    int: lambda text: int(text.strip()),
    float: lambda text: float(text.strip()),
    complex: lambda text: complex(text.strip()),
    bool: parse_bool,
    decimal.Decimal: _parse_decimal,
    uuid.UUID: lambda text: uuid.UUID(text.strip()),
    datetime.datetime: parse_datetime,
    datetime.date: lambda text: datetime.date.fromisoformat(text.strip()),
    datetime.time: lambda text: datetime.time.fromisoformat(text.strip()),
    datetime.timedelta: parse_timedelta,
    bytes: parse_bytes,
    bytearray: lambda text: bytearray(parse_bytes(text)),
    urllib.parse.ParseResult: parse_uri,
    type: load_type,
    codecs.CodecInfo: codecs.lookup,
}


def builtin_converter(target: Any) -> Callable[[str], Any] | None:
    """Return the built-in converter for *target* or ``None``."""

    if not isinstance(target, type):
        if typing.get_origin(target) is type:
            return load_type
        return None
    converter = BUILTIN_CONVERTERS.get(target)
    if converter is not None:
        return converter
    if issubclass(target, enum.Enum):
        return lambda text: parse_enum(target, text)
    if issubclass(target, pathlib.PurePath):
        return target
    return None


class LeafConverter:
    """Applies the conversion ladder for one bind call.

    Parameters
    ----------
    value_converters:
        Frozen registry snapshot.
    metadata:
        Declarative metadata registry.
    """

    def __init__(self, value_converters: FrozenValueConverters, metadata: MetadataRegistry) -> None:
        self._registry = value_converters
        self._metadata = metadata

    def custom(self, target: Any, owner: Any = None, member: str | None = None) -> Converter | None:
        inner, _ = unwrap_optional(target)
        found = self._metadata.convert_method_for_member(owner, member)
        if found is not None:
            self._check_declared(found, inner)
            return found
        if isinstance(inner, type):
            found = self._metadata.convert_method_for(inner)
            if found is not None:
                self._check_declared(found, inner)
                return found
        found = self._registry.for_member(owner, member)
        if found is not None:
            return found
        return self._registry.for_type(inner) or self._registry.for_type(target)

    def is_leaf(self, target: Any, owner: Any = None, member: str | None = None) -> bool:
        if self.custom(target, owner, member) is not None:
            return True
        inner, _ = unwrap_optional(target)
        if is_union(inner):
            return all(builtin_converter(arg) is not None for arg in typing.get_args(strip_annotated(inner)))
        return builtin_converter(inner) is not None

    def convert(
        self,
        value: str | None,
        target: Any,
        owner: Any = None,
        member: str | None = None,
        path: str | None = None,
    ) -> Any:
        """Convert *value* to *target* following the ladder."""

        inner, optional = unwrap_optional(target)
        if value is None:
            return default_value(target)

        custom = self.custom(target, owner, member)
        if custom is not None:
            try:
                result = custom(value)
            except BindError:
                raise
            except Exception as exc:  # noqa: BLE001 - user converters may raise anything
                raise conversion_failed(target, value, path, str(exc)) from exc
            if result is None and not optional:
                raise result_cannot_be_null(target, path)
            return result

        if value == "" and inner is not str:
            return default_value(target)
        return self._builtin(value, inner, target, path)

    def _builtin(self, value: str, inner: Any, target: Any, path: str | None) -> Any:
        candidates = typing.get_args(strip_annotated(inner)) if is_union(inner) else (inner,)
        failure: Exception | None = None
        for candidate in candidates:
            converter = builtin_converter(candidate)
            if converter is None:
                continue
            try:
                return converter(value)
            except (ValueError, TypeError, LookupError, ImportError, AttributeError, OverflowError) as exc:
                failure = exc
        reason = str(failure) if failure is not None else "no conversion available"
        raise conversion_failed(target, value, path, reason) from failure

    def _check_declared(self, convert: Converter, target: Any) -> None:
        produced = converter_return_type(convert)
        if produced is Any or isinstance(produced, str):
            return
        inner, _ = unwrap_optional(produced)
        if not is_assignable(inner, target):
            raise type_not_assignable(target, produced, None, source="return type of conversion method")
