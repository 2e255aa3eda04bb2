"""Type guard functions for runtime type checking in sqlbind.

This module provides type-safe runtime checks that help the type checker
understand type narrowing, replacing defensive hasattr() and duck typing patterns.
"""

from collections.abc import Mapping, Sequence
from collections.abc import Set as AbstractSet
from typing import TYPE_CHECKING, Any

import attrs
import msgspec

from sqlbind.protocols import ColumnScanner, ColumnValuer

if TYPE_CHECKING:
    from typing import TypeGuard

__all__ = (
    "is_attrs_schema",
    "is_bytes_like",
    "is_column_scanner_type",
    "is_column_valuer",
    "is_dataclass",
    "is_expandable_collection",
    "is_mapping",
    "is_msgspec_struct",
    "is_record",
    "is_record_type",
)


def is_dataclass(obj: Any) -> bool:
    """Check if an object is a dataclass type or instance.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return hasattr(obj if isinstance(obj, type) else type(obj), "__dataclass_fields__")


def is_attrs_schema(obj: Any) -> bool:
    """Check if an object is an attrs class or instance.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return attrs.has(obj if isinstance(obj, type) else type(obj))


def is_msgspec_struct(obj: Any) -> bool:
    """Check if an object is a msgspec struct type or instance.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    if isinstance(obj, type):
        return issubclass(obj, msgspec.Struct)
    return isinstance(obj, msgspec.Struct)


def is_record_type(tp: Any) -> "TypeGuard[type]":
    """Check if ``tp`` is a record-shaped class (dataclass, attrs class or msgspec struct).

    Args:
        tp: Value to check.

    Returns:
        bool
    """
    return isinstance(tp, type) and (is_dataclass(tp) or is_attrs_schema(tp) or is_msgspec_struct(tp))


def is_record(obj: Any) -> bool:
    """Check if ``obj`` is an instance of a record-shaped class.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return not isinstance(obj, type) and is_record_type(type(obj))


def is_mapping(obj: Any) -> "TypeGuard[Mapping[Any, Any]]":
    """Check if a value is a mapping.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return isinstance(obj, Mapping)


def is_bytes_like(obj: Any) -> "TypeGuard[bytes | bytearray | memoryview]":
    """Check if a value is a raw byte blob.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return isinstance(obj, (bytes, bytearray, memoryview))


def is_expandable_collection(obj: Any) -> bool:
    """Check if a bound value should expand into one placeholder per element.

    Strings, byte blobs and mappings never expand.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    if isinstance(obj, (str, bytes, bytearray, memoryview)) or isinstance(obj, Mapping):
        return False
    return isinstance(obj, (Sequence, AbstractSet))


def is_column_scanner_type(tp: Any) -> bool:
    """Check if a type exposes the ``scan_column`` conversion hook.

    Args:
        tp: Type to check.

    Returns:
        bool
    """
    return isinstance(tp, type) and issubclass(tp, ColumnScanner)


def is_column_valuer(obj: Any) -> "TypeGuard[ColumnValuer]":
    """Check if a value exposes the ``column_value`` conversion hook.

    Args:
        obj: Value to check.

    Returns:
        bool
    """
    return not isinstance(obj, type) and isinstance(obj, ColumnValuer)
