"""Flattened field indexes for record types.

A record type (dataclass, attrs class or msgspec struct) is flattened into a
mapping of exposed column name to :class:`FieldInfo`. Nested records are
inlined into their parent's namespace, so a column name resolves to a path of
attribute names from the root record to a leaf.

Column names default to the attribute name and can be customised with:

- ``metadata={"db": "name"}`` on dataclass and attrs fields (``"-"`` excludes
  the field, ``"name,scalar"`` forces single-argument binding);
- ``Annotated[T, Column("name", scalar=True)]`` on any record kind;
- ``msgspec.field(name="name")`` on msgspec structs.

The same index drives binding (reading values out of records) and scanning
(writing values into records), so naming rules are identical in both
directions.
"""

import builtins
import dataclasses
import datetime
import inspect
import logging
import sys
import types
import typing
from collections.abc import Mapping
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Any, Callable, Final, Optional, Union
from uuid import UUID

import attrs
import msgspec
from mypy_extensions import mypyc_attr

from sqlbind.core.cache import GenerationalCache, clear_all_caches, get_field_index_cache
from sqlbind.utils.logging import get_logger, log_with_context
from sqlbind.utils.type_guards import (
    is_attrs_schema,
    is_column_scanner_type,
    is_dataclass,
    is_msgspec_struct,
    is_record_type,
)

__all__ = (
    "Column",
    "FieldInfo",
    "assign_at_path",
    "ensure_path",
    "get_at_path",
    "is_leaf_type",
    "new_record",
    "register_leaf_type",
    "resolve_field_index",
    "unwrap_optional",
)

logger = get_logger("sqlbind.core.fields")

DB_METADATA_KEY: Final = "db"
IGNORE_TAG: Final = "-"
SCALAR_OPTION: Final = "scalar"

_NO_DEFAULT: Final = object()
_LEAF_TYPES: set[type] = {datetime.datetime, datetime.date, datetime.time, datetime.timedelta, Decimal, UUID}


@dataclasses.dataclass(frozen=True)
class Column:
    """Column mapping marker for ``Annotated`` field annotations.

    Attributes:
        name: Exposed column name; ``None`` keeps the attribute name.
        scalar: Bind a collection-typed value as one opaque argument.
        ignore: Exclude the field from mapping.
    """

    name: Optional[str] = None
    scalar: bool = False
    ignore: bool = False


@mypyc_attr(allow_interpreted_subclasses=False)
class FieldInfo:
    """A flattened leaf of a record type.

    Attributes:
        path: Attribute names from the root record to the leaf.
        path_types: Record type of each intermediate node along ``path``.
        force_scalar: Bind as a single argument even if the value is a collection.
        ambiguous: More than one leaf exposes the same column name.
        leaf_type: Declared type of the leaf with ``Optional`` stripped.
        optional: The leaf was declared ``Optional``.
    """

    __slots__ = ("ambiguous", "force_scalar", "leaf_type", "optional", "path", "path_types")

    def __init__(
        self,
        path: tuple[str, ...] = (),
        path_types: tuple[type, ...] = (),
        force_scalar: bool = False,
        ambiguous: bool = False,
        leaf_type: Any = Any,
        optional: bool = False,
    ) -> None:
        self.path = path
        self.path_types = path_types
        self.force_scalar = force_scalar
        self.ambiguous = ambiguous
        self.leaf_type = leaf_type
        self.optional = optional

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldInfo):
            return NotImplemented
        return (
            self.path == other.path
            and self.force_scalar == other.force_scalar
            and self.ambiguous == other.ambiguous
            and self.optional == other.optional
        )

    def __hash__(self) -> int:
        return hash((self.path, self.force_scalar, self.ambiguous, self.optional))

    def __repr__(self) -> str:
        if self.ambiguous:
            return "FieldInfo(ambiguous=True)"
        return (
            f"FieldInfo(path={self.path!r}, force_scalar={self.force_scalar}, "
            f"leaf_type={self.leaf_type!r}, optional={self.optional})"
        )


AMBIGUOUS: Final = FieldInfo(ambiguous=True)


def register_leaf_type(tp: type) -> type:
    """Mark a record-shaped type as an opaque leaf that is never flattened.

    Can be used as a class decorator.

    Args:
        tp: Type to register.

    Returns:
        The type, unchanged.
    """
    _LEAF_TYPES.add(tp)
    clear_all_caches()
    _record_defaults.cache_clear()
    return tp


def is_leaf_type(tp: Any) -> bool:
    """Check whether ``tp`` is a registered non-flattened leaf type."""
    return isinstance(tp, type) and any(issubclass(tp, leaf) for leaf in _LEAF_TYPES)


class _Annotation:
    """Result of unwrapping a field annotation."""

    __slots__ = ("base", "column", "optional")

    def __init__(self, base: Any, optional: bool, column: Optional[Column]) -> None:
        self.base = base
        self.optional = optional
        self.column = column


def _unwrap_annotation(annotation: Any) -> _Annotation:
    column: Optional[Column] = None
    optional = False
    base = annotation

    # Annotated and Optional may nest in either order.
    while True:
        origin = typing.get_origin(base)
        if origin is Annotated:
            if column is None:
                column = next((m for m in base.__metadata__ if isinstance(m, Column)), None)
            base = typing.get_args(base)[0]
            continue
        if origin is Union or origin is types.UnionType:
            args = typing.get_args(base)
            members = [arg for arg in args if arg is not type(None)]
            if len(members) != len(args):
                optional = True
                base = members[0] if len(members) == 1 else Union[tuple(members)]  # noqa: UP007
                continue
        break

    return _Annotation(base, optional, column)


def _parse_db_tag(tag: str) -> tuple[Optional[str], bool, bool]:
    """Split a ``"name,option"`` tag into (name, scalar, ignore)."""
    if tag == IGNORE_TAG:
        return None, False, True
    name, *options = tag.split(",")
    scalar = any(option.strip() == SCALAR_OPTION for option in options)
    return (name or None), scalar, False


class _DeclaredField:
    __slots__ = ("annotation", "attr", "encode_name", "metadata")

    def __init__(self, attr: str, annotation: Any, metadata: Mapping[str, Any], encode_name: Optional[str]) -> None:
        self.attr = attr
        self.annotation = annotation
        self.metadata = metadata
        self.encode_name = encode_name


class _UnresolvedNames(dict):  # type: ignore[type-arg]
    """Evaluation namespace that turns unknown names into forward references."""

    __slots__ = ("_globalns",)

    def __init__(self, localns: Mapping[str, Any], globalns: Mapping[str, Any]) -> None:
        super().__init__(localns)
        self._globalns = globalns

    def __missing__(self, key: str) -> Any:
        if key in self._globalns:
            return self._globalns[key]
        if hasattr(builtins, key):
            return getattr(builtins, key)
        return typing.ForwardRef(key)


def _own_annotations(klass: type) -> dict[str, Any]:
    try:
        return inspect.get_annotations(klass)
    except NameError as exc:
        log_with_context(logger, logging.DEBUG, "Unreadable annotations", record=klass.__qualname__, error=str(exc))
        return {}


def _resolve_hint(annotation: Any, globalns: dict[str, Any], localns: dict[str, Any]) -> Any:
    """Resolve one annotation, keeping what resolves when some names do not.

    Names that cannot be found become :class:`typing.ForwardRef` leaves, so
    ``"Optional[Missing]"`` still reads as optional. An annotation that cannot
    be evaluated at all is returned unchanged.
    """
    holder = type("_Hint", (), {"__annotations__": {"hint": annotation}})
    try:
        return typing.get_type_hints(holder, globalns=globalns, localns=localns, include_extras=True)["hint"]
    except (NameError, TypeError):
        if not isinstance(annotation, str):
            return annotation
    try:
        return eval(annotation, globalns, _UnresolvedNames(localns, globalns))  # noqa: S307
    except (AttributeError, NameError, SyntaxError, TypeError) as exc:
        log_with_context(logger, logging.DEBUG, "Unresolved annotation", annotation=annotation, error=str(exc))
        return annotation


def _type_hints(tp: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(tp, include_extras=True)
    except (NameError, TypeError) as exc:
        log_with_context(
            logger, logging.DEBUG, "Resolving annotations per field", record=tp.__qualname__, error=str(exc)
        )
    hints: dict[str, Any] = {}
    for klass in reversed(tp.__mro__):
        module = sys.modules.get(klass.__module__)
        globalns = vars(module) if module is not None else {}
        localns = {**vars(klass), tp.__name__: tp}
        for name, annotation in _own_annotations(klass).items():
            hints[name] = _resolve_hint(annotation, globalns, localns)
    return hints


def _declared_fields(tp: type) -> list[_DeclaredField]:
    """List the declared fields of a record type in declaration order."""
    hints = _type_hints(tp)
    if is_dataclass(tp):
        return [
            _DeclaredField(f.name, hints.get(f.name, f.type), f.metadata, None) for f in dataclasses.fields(tp)
        ]
    if is_attrs_schema(tp):
        return [_DeclaredField(a.name, hints.get(a.name, a.type), a.metadata, None) for a in attrs.fields(tp)]
    if is_msgspec_struct(tp):
        return [
            _DeclaredField(f.name, hints.get(f.name, f.type), {}, f.encode_name if f.encode_name != f.name else None)
            for f in msgspec.structs.fields(tp)
        ]
    return []


def _column_options(field: _DeclaredField, annotation: _Annotation) -> tuple[str, bool, bool]:
    """Resolve the exposed column name and the scalar/ignore modifiers of a field."""
    name: Optional[str] = None
    scalar = False
    ignore = False
    tag = field.metadata.get(DB_METADATA_KEY)
    if isinstance(tag, str):
        name, scalar, ignore = _parse_db_tag(tag)
    if annotation.column is not None:
        ignore = ignore or annotation.column.ignore
        scalar = scalar or annotation.column.scalar
        name = name or annotation.column.name
    if name is None:
        name = field.encode_name or field.attr
    return name, scalar, ignore


def _should_flatten(tp: Any) -> bool:
    """Decide whether a field of type ``tp`` is inlined into its parent."""
    return is_record_type(tp) and not is_column_scanner_type(tp) and not is_leaf_type(tp)


def _build_field_index(root: type) -> dict[str, FieldInfo]:
    index: dict[str, FieldInfo] = {}
    expanding: set[type] = set()

    def walk(rt: type, path: tuple[str, ...], path_types: tuple[type, ...]) -> None:
        if rt in expanding:
            return
        expanding.add(rt)
        try:
            for field in _declared_fields(rt):
                if field.attr.startswith("_"):
                    continue
                annotation = _unwrap_annotation(field.annotation)
                name, scalar, ignore = _column_options(field, annotation)
                if ignore:
                    continue

                if _should_flatten(annotation.base):
                    walk(annotation.base, (*path, field.attr), (*path_types, annotation.base))
                    continue

                if name in index:
                    index[name] = AMBIGUOUS
                    continue
                index[name] = FieldInfo(
                    path=(*path, field.attr),
                    path_types=path_types,
                    force_scalar=scalar,
                    leaf_type=annotation.base,
                    optional=annotation.optional,
                )
        finally:
            expanding.discard(rt)

    walk(root, (), ())
    return index


def resolve_field_index(
    tp: Any, cache: "Optional[GenerationalCache[Any, Mapping[str, FieldInfo]]]" = None
) -> Mapping[str, FieldInfo]:
    """Return the flattened ``column name -> FieldInfo`` mapping for a type.

    Non-record types resolve to an empty mapping. Results are memoized per type.

    Args:
        tp: Record type (or any other type).
        cache: Cache to use instead of the process-wide field-index cache.

    Returns:
        Read-only mapping of exposed column name to field info.
    """
    cache = cache if cache is not None else get_field_index_cache()
    index = cache.get(tp)
    if index is not None:
        return index

    built = _build_field_index(tp) if is_record_type(tp) else {}
    index = types.MappingProxyType(built)
    cache.put(tp, index)
    log_with_context(logger, logging.DEBUG, "Resolved field index", record=repr(tp), columns=len(built))
    return index


# -- Path helpers shared by binding and scanning --


def get_at_path(root: Any, path: tuple[str, ...]) -> Any:
    """Read the leaf at ``path``; a ``None`` intermediate node reads as ``None``."""
    value = root
    for attr in path:
        if value is None:
            return None
        value = getattr(value, attr)
    return value


def ensure_path(root: Any, info: FieldInfo) -> Any:
    """Allocate missing intermediate nodes along ``info.path``.

    The leaf itself is never allocated. Idempotent.

    Returns:
        The record holding the leaf attribute.
    """
    node = root
    for attr, node_type in zip(info.path[:-1], info.path_types):
        child = getattr(node, attr)
        if child is None:
            child = new_record(node_type)
            setattr(node, attr, child)
        node = child
    return node


def assign_at_path(root: Any, info: FieldInfo, value: Any) -> None:
    """Assign ``value`` to the leaf at ``info.path``, allocating intermediate nodes."""
    setattr(ensure_path(root, info), info.path[-1], value)


_RecordDefault = tuple[str, Any, Optional[Callable[..., Any]], bool, Optional[type]]


@lru_cache(maxsize=512)
def _record_defaults(tp: type) -> tuple[_RecordDefault, ...]:
    """Per-field (name, default, factory, factory_takes_self, nested_record) of a record type.

    ``nested_record`` is set for non-optional record-typed fields without a
    default, which are allocated rather than left as ``None``.
    """
    fields: list[tuple[str, Any, Optional[Callable[..., Any]], bool]] = []
    if is_dataclass(tp):
        for f in dataclasses.fields(tp):
            factory = None if f.default_factory is dataclasses.MISSING else f.default_factory
            default = _NO_DEFAULT if f.default is dataclasses.MISSING else f.default
            fields.append((f.name, default, factory, False))
    elif is_attrs_schema(tp):
        for a in attrs.fields(tp):
            if isinstance(a.default, attrs.Factory):  # type: ignore[arg-type]
                factory = a.default.factory  # type: ignore[union-attr]
                fields.append((a.name, _NO_DEFAULT, factory, a.default.takes_self))  # type: ignore[union-attr]
            else:
                fields.append((a.name, _NO_DEFAULT if a.default is attrs.NOTHING else a.default, None, False))
    elif is_msgspec_struct(tp):
        for f in msgspec.structs.fields(tp):
            factory = None if f.default_factory is msgspec.NODEFAULT else f.default_factory
            default = _NO_DEFAULT if f.default is msgspec.NODEFAULT else f.default
            fields.append((f.name, default, factory, False))

    hints = _type_hints(tp) if any(d is _NO_DEFAULT and fn is None for _, d, fn, _ in fields) else {}
    defaults: list[_RecordDefault] = []
    for name, default, factory, takes_self in fields:
        nested: Optional[type] = None
        if default is _NO_DEFAULT and factory is None and name in hints:
            annotation = _unwrap_annotation(hints[name])
            if not annotation.optional and _should_flatten(annotation.base):
                nested = annotation.base
        defaults.append((name, default, factory, takes_self, nested))
    return tuple(defaults)


def new_record(tp: type, _allocating: tuple[type, ...] = ()) -> Any:
    """Allocate a record without running its constructor.

    Every field gets its default, its default factory result, or ``None``.
    Non-optional record-typed fields without a default are allocated the same
    way, except where that would recurse into a type already being allocated.
    msgspec structs are built through their constructor with those values.

    Args:
        tp: Record type to allocate.

    Returns:
        A new instance of ``tp``.
    """
    values: dict[str, Any] = {}
    obj: Any = None
    if not is_msgspec_struct(tp):
        obj = object.__new__(tp)
    allocating = (*_allocating, tp)
    for name, default, factory, takes_self, nested in _record_defaults(tp):
        if factory is not None:
            values[name] = factory(obj) if takes_self else factory()
        elif default is not _NO_DEFAULT:
            values[name] = default
        elif nested is not None and nested not in allocating:
            values[name] = new_record(nested, allocating)
        else:
            values[name] = None
    if obj is None:
        return tp(**values)
    for name, value in values.items():
        object.__setattr__(obj, name, value)
    return obj


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Strip ``Annotated`` and ``Optional`` from a type.

    Returns:
        ``(base type, was optional)``.
    """
    annotation = _unwrap_annotation(tp)
    return annotation.base, annotation.optional
