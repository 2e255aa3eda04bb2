"""Named value resolution over bound inputs.

A statement can be bound to several inputs (mappings, records, raw row
collections). Lookups scan the inputs from last to first, so a later input
overrides an earlier one for the same name.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final, Optional

from mypy_extensions import mypyc_attr

from sqlbind.core.fields import get_at_path, resolve_field_index
from sqlbind.utils.type_guards import is_mapping, is_record

__all__ = (
    "ROWS_NAME",
    "AmbiguousField",
    "Scalar",
    "ValueResolver",
    "lookup_mapping",
    "rows_from_collection",
)

ROWS_NAME: Final = "rows"


@mypyc_attr(allow_interpreted_subclasses=False)
class Scalar:
    """Force a value to bind as exactly one argument, even if it is a collection.

    Useful for ``= ANY(:ids)`` idioms where the driver receives the whole list.
    """

    __slots__ = ("value",)

    def __init__(self, value: Any) -> None:
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scalar):
            return NotImplemented
        return bool(self.value == other.value)

    def __hash__(self) -> int:
        return hash(("Scalar", self.value))

    def __repr__(self) -> str:
        return f"Scalar({self.value!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class AmbiguousField:
    """Sentinel returned in place of a value when a record field name is ambiguous."""

    __slots__ = ("name",)

    def __init__(self, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"AmbiguousField({self.name!r})"


def lookup_mapping(mapping: Mapping[Any, Any], key: str) -> tuple[Any, bool]:
    """Look up ``key`` in a mapping, coercing it for non-string keyed mappings.

    The key is tried as-is first, then compared against the string form of
    every non-string key.

    Returns:
        ``(value, found)``.
    """
    if key in mapping:
        return mapping[key], True
    for candidate, value in mapping.items():
        if not isinstance(candidate, str) and str(candidate) == key:
            return value, True
    return None, False


def _is_row(value: Any) -> bool:
    return is_mapping(value) or is_record(value)


def rows_from_collection(value: Any) -> Optional[list[Any]]:
    """Return the elements of ``value`` if it is a collection of rows.

    A row is a mapping or a record instance. Only the first element is
    inspected; later rows are validated per column while rendering.

    Returns:
        The rows as a list, an empty list for an empty collection, or ``None``
        when ``value`` is not a row collection.
    """
    if isinstance(value, (str, bytes, bytearray, memoryview)) or is_mapping(value):
        return None
    if not isinstance(value, Sequence):
        return None
    rows = list(value)
    if rows and not _is_row(rows[0]):
        return None
    return rows


def _single_lookup(source: Any, name: str) -> tuple[Any, bool]:
    if is_mapping(source):
        return lookup_mapping(source, name)
    if is_record(source):
        info = resolve_field_index(type(source)).get(name)
        if info is None:
            return None, False
        if info.ambiguous:
            return AmbiguousField(name), True
        value = get_at_path(source, info.path)
        if info.force_scalar:
            return Scalar(value), True
        return value, True
    return None, False


def _single_rows_lookup(source: Any, name: str) -> tuple[Optional[list[Any]], bool]:
    if is_mapping(source):
        value, found = lookup_mapping(source, name)
        if found:
            rows = rows_from_collection(value)
            return rows, rows is not None
    if name == ROWS_NAME:
        rows = rows_from_collection(source)
        return rows, rows is not None
    return None, False


@mypyc_attr(allow_interpreted_subclasses=False)
class ValueResolver:
    """Resolve placeholder names against an ordered list of bound inputs.

    Args:
        inputs: Bound inputs in bind order; ``None`` entries are ignored.
    """

    __slots__ = ("_inputs",)

    def __init__(self, inputs: Sequence[Any]) -> None:
        self._inputs = tuple(source for source in inputs if source is not None)

    def lookup_value(self, name: str) -> tuple[Any, bool]:
        """Resolve a scalar placeholder.

        Returns:
            ``(value, found)``. The value may be a :class:`Scalar` wrapper for
            fields marked scalar, or an :class:`AmbiguousField` sentinel.
        """
        for source in reversed(self._inputs):
            value, found = _single_lookup(source, name)
            if found:
                return value, True
        return None, False

    def lookup_rows(self, name: str) -> tuple[Optional[list[Any]], bool]:
        """Resolve a row-block placeholder to its rows.

        Returns:
            ``(rows, found)``.
        """
        for source in reversed(self._inputs):
            rows, found = _single_rows_lookup(source, name)
            if found:
                return rows, True
        return None, False
