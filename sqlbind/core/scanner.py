"""Row scanning into records, custom scanners and scalars."""

from collections.abc import MutableSequence, Sequence
from typing import Any, Optional, TypeVar

from sqlbind.core.cache import GenerationalCache
from sqlbind.core.fields import new_record, unwrap_optional
from sqlbind.core.plan import ScanPlan, ScanState, build_scan_plan, new_scanner
from sqlbind.exceptions import NoRowsError, NullValueError, ScanShapeError
from sqlbind.protocols import ColumnScanner, RowCursor
from sqlbind.utils.type_guards import is_column_scanner_type, is_record, is_record_type

__all__ = (
    "cursor_columns",
    "fetch_row",
    "scan_all",
    "scan_one",
)

T = TypeVar("T")


def cursor_columns(cursor: RowCursor) -> tuple[str, ...]:
    """Column names of the cursor's current result set.

    Raises:
        ScanShapeError: The cursor has no result set.
    """
    description = cursor.description
    if description is None:
        msg = "cursor has no result set"
        raise ScanShapeError(msg)
    return tuple(str(entry[0]) for entry in description)


def fetch_row(cursor: RowCursor) -> Sequence[Any]:
    """Fetch the next row or raise :class:`NoRowsError`."""
    row = cursor.fetchone()
    if row is None:
        raise NoRowsError
    return row


def _require_single_column(columns: tuple[str, ...], dest: Any) -> None:
    if len(columns) != 1:
        msg = f"scanning into {_describe(dest)} requires exactly 1 column, got {len(columns)}"
        raise ScanShapeError(msg)


def _describe(dest: Any) -> str:
    if isinstance(dest, type):
        return dest.__qualname__
    return getattr(dest, "__name__", None) or type(dest).__qualname__


def _scalar_value(value: Any, tp: Any, optional: bool, column: str) -> Any:
    if value is None and not optional and tp is not Any and tp is not object:
        raise NullValueError(column, tp)
    return value


def _scan_record(
    cursor: RowCursor, dest: Any, columns: tuple[str, ...], cache: "Optional[GenerationalCache[Any, ScanPlan]]"
) -> Any:
    state = ScanState(build_scan_plan(columns, type(dest), cache))
    state.prepare(dest)
    state.apply(dest, fetch_row(cursor))
    return dest


def scan_one(cursor: RowCursor, dest: Any, cache: "Optional[GenerationalCache[Any, ScanPlan]]" = None) -> Any:
    """Scan the next row of ``cursor`` into ``dest``.

    Args:
        cursor: DB-API cursor positioned before the row to read.
        dest: A record instance (populated in place), a record type (a new
            instance is allocated), a ``ColumnScanner`` type or instance, or a
            scalar type such as ``int`` or ``Optional[str]``.
        cache: Scan-plan cache to use instead of the process-wide one.

    Raises:
        ScanShapeError: The destination does not fit the result columns.
        NoRowsError: The cursor has no more rows.
        NullValueError: NULL scanned into a non-optional leaf.

    Returns:
        The populated destination value.
    """
    columns = cursor_columns(cursor)

    if not isinstance(dest, type) and isinstance(dest, ColumnScanner):
        _require_single_column(columns, dest)
        dest.scan_column(fetch_row(cursor)[0])
        return dest

    if is_record(dest):
        return _scan_record(cursor, dest, columns, cache)

    tp, optional = unwrap_optional(dest)
    if is_column_scanner_type(tp):
        _require_single_column(columns, tp)
        value = fetch_row(cursor)[0]
        if value is None and optional:
            return None
        target = new_scanner(tp)
        target.scan_column(value)
        return target

    if is_record_type(tp):
        return _scan_record(cursor, new_record(tp), columns, cache)

    if tp is not Any and not isinstance(tp, type):
        msg = f"unsupported scan destination: {dest!r}"
        raise ScanShapeError(msg)
    _require_single_column(columns, tp)
    return _scalar_value(fetch_row(cursor)[0], tp, optional, columns[0])


def scan_all(
    cursor: RowCursor,
    dest: "MutableSequence[T]",
    element_type: Any,
    cache: "Optional[GenerationalCache[Any, ScanPlan]]" = None,
) -> "MutableSequence[T]":
    """Scan every remaining row of ``cursor``, appending one element per row.

    ``dest`` is cleared first. Record element types share one plan and one
    scan state across rows; each row gets a newly allocated element.

    Args:
        cursor: DB-API cursor.
        dest: Mutable sequence receiving the elements.
        element_type: Record type, ``Optional[Record]``, ``ColumnScanner`` type
            or scalar type of the elements.
        cache: Scan-plan cache to use instead of the process-wide one.

    Raises:
        ScanShapeError: ``dest`` is not a mutable sequence, or a non-record
            element type is used with more than one column.
        NullValueError: NULL scanned into a non-optional leaf.

    Returns:
        ``dest``.
    """
    if not isinstance(dest, MutableSequence):
        msg = f"scan destination must be a mutable sequence, got {type(dest).__qualname__}"
        raise ScanShapeError(msg)
    del dest[:]
    columns = cursor_columns(cursor)
    tp, optional = unwrap_optional(element_type)

    if is_record_type(tp) and not is_column_scanner_type(tp):
        state = ScanState(build_scan_plan(columns, tp, cache))
        row = cursor.fetchone()
        while row is not None:
            state.reset()
            element = new_record(tp)
            state.prepare(element)
            state.apply(element, row)
            dest.append(element)
            row = cursor.fetchone()
        return dest

    if tp is not Any and not isinstance(tp, type):
        msg = f"unsupported element type: {element_type!r}"
        raise ScanShapeError(msg)
    _require_single_column(columns, tp)
    scanner = is_column_scanner_type(tp)
    row = cursor.fetchone()
    while row is not None:
        value = row[0]
        if scanner:
            if value is None and optional:
                dest.append(None)  # type: ignore[arg-type]
            else:
                target = new_scanner(tp)
                target.scan_column(value)
                dest.append(target)
        else:
            dest.append(_scalar_value(value, tp, optional, columns[0]))
        row = cursor.fetchone()
    return dest
