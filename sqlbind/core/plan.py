"""Scan plans for mapping result columns onto record fields.

A :class:`ScanPlan` is built once per ``(record type, column list)`` pair and
cached. It records, for every result column, how the raw value reaches the
destination record:

- DISCARD: the column has no mapped field.
- CUSTOM_SCAN: the leaf type implements ``scan_column``.
- OPTIONAL_LEAF: the leaf is declared ``Optional``; the value is captured in a
  per-row holder and copied back after the row is read.
- DIRECT_LEAF: the value is assigned as-is.

Plans are immutable and shared between threads. Per-call mutable state lives in
:class:`ScanState`.
"""

import logging
from collections.abc import Sequence
from enum import Enum
from typing import Any, Final, ForwardRef, Optional

from mypy_extensions import mypyc_attr

from sqlbind.core.cache import CacheKey, GenerationalCache, get_scan_plan_cache
from sqlbind.core.fields import FieldInfo, assign_at_path, ensure_path, get_at_path, new_record, resolve_field_index
from sqlbind.exceptions import FieldAmbiguousError, NullValueError
from sqlbind.utils.logging import get_logger, log_with_context
from sqlbind.utils.type_guards import is_column_scanner_type, is_record_type

__all__ = (
    "ColumnPlan",
    "ColumnStrategy",
    "ScanPlan",
    "ScanState",
    "build_scan_plan",
    "new_scanner",
)

logger = get_logger("sqlbind.core.plan")

COLUMN_SIGNATURE_SEPARATOR: Final = "\x1f"
_EMPTY: Final = object()


class ColumnStrategy(Enum):
    """How a result column reaches its destination."""

    DISCARD = "DISCARD"
    CUSTOM_SCAN = "CUSTOM_SCAN"
    OPTIONAL_LEAF = "OPTIONAL_LEAF"
    DIRECT_LEAF = "DIRECT_LEAF"


@mypyc_attr(allow_interpreted_subclasses=False)
class ColumnPlan:
    """Immutable plan for one result column.

    Attributes:
        column: Result column name.
        strategy: Column strategy.
        field: Target field, ``None`` for DISCARD.
        optional: CUSTOM_SCAN only, the leaf is ``Optional[Scanner]``.
        nullable: DIRECT_LEAF only, the leaf accepts ``None`` (``Any``, ``object``
            or an unresolved annotation).
    """

    __slots__ = ("column", "field", "nullable", "optional", "strategy")

    column: str
    strategy: ColumnStrategy
    field: Optional[FieldInfo]
    optional: bool
    nullable: bool

    def __init__(
        self,
        column: str,
        strategy: ColumnStrategy,
        field: Optional[FieldInfo] = None,
        optional: bool = False,
        nullable: bool = False,
    ) -> None:
        object.__setattr__(self, "column", column)
        object.__setattr__(self, "strategy", strategy)
        object.__setattr__(self, "field", field)
        object.__setattr__(self, "optional", optional)
        object.__setattr__(self, "nullable", nullable)

    def __setattr__(self, name: str, value: Any) -> None:
        msg = f"{type(self).__name__} is immutable"
        raise AttributeError(msg)

    @property
    def deferred(self) -> bool:
        """Whether the value is copied back after the row is read."""
        return self.strategy is ColumnStrategy.OPTIONAL_LEAF or (
            self.strategy is ColumnStrategy.CUSTOM_SCAN and self.optional
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnPlan):
            return NotImplemented
        return (
            self.column == other.column
            and self.strategy is other.strategy
            and self.field == other.field
            and self.optional == other.optional
            and self.nullable == other.nullable
        )

    def __hash__(self) -> int:
        return hash((self.column, self.strategy, self.field, self.optional, self.nullable))

    def __repr__(self) -> str:
        return f"ColumnPlan(column={self.column!r}, strategy={self.strategy.name})"


@mypyc_attr(allow_interpreted_subclasses=False)
class ScanPlan:
    """Immutable per-shape scan plan.

    Attributes:
        record_type: Destination record type.
        columns: Result column names, in cursor order.
        column_plans: One plan per column, in cursor order.
        nested_fields: Mapped fields whose path has intermediate nodes to allocate.
    """

    __slots__ = ("column_plans", "columns", "nested_fields", "record_type")

    def __init__(
        self, record_type: type, columns: tuple[str, ...], column_plans: tuple[ColumnPlan, ...]
    ) -> None:
        self.record_type = record_type
        self.columns = columns
        self.column_plans = column_plans
        seen: set[tuple[str, ...]] = set()
        nested: list[FieldInfo] = []
        for plan in column_plans:
            if plan.field is None or len(plan.field.path) < 2:
                continue
            parent = plan.field.path[:-1]
            if parent not in seen:
                seen.add(parent)
                nested.append(plan.field)
        self.nested_fields = tuple(nested)

    def __repr__(self) -> str:
        return f"ScanPlan(record_type={self.record_type.__qualname__}, columns={self.columns!r})"


def new_scanner(tp: type) -> Any:
    """Allocate a fresh ``ColumnScanner`` instance of type ``tp``."""
    if is_record_type(tp):
        return new_record(tp)
    return tp()


def _plan_column(column: str, info: Optional[FieldInfo]) -> ColumnPlan:
    if info is None:
        return ColumnPlan(column, ColumnStrategy.DISCARD)
    if info.ambiguous:
        raise FieldAmbiguousError(column)
    if is_column_scanner_type(info.leaf_type):
        return ColumnPlan(column, ColumnStrategy.CUSTOM_SCAN, info, optional=info.optional)
    if info.optional:
        return ColumnPlan(column, ColumnStrategy.OPTIONAL_LEAF, info)
    return ColumnPlan(column, ColumnStrategy.DIRECT_LEAF, info, nullable=_accepts_null(info.leaf_type))


def _accepts_null(leaf_type: Any) -> bool:
    return leaf_type is Any or leaf_type is object or isinstance(leaf_type, (str, ForwardRef))


def build_scan_plan(
    columns: Sequence[str], tp: type, cache: "Optional[GenerationalCache[Any, ScanPlan]]" = None
) -> ScanPlan:
    """Build, or fetch from cache, the scan plan for ``columns`` into ``tp``.

    Args:
        columns: Result column names in cursor order.
        tp: Destination record type.
        cache: Cache to use instead of the process-wide scan-plan cache.

    Raises:
        FieldAmbiguousError: A column maps to an ambiguous field name.

    Returns:
        The scan plan.
    """
    cache = cache if cache is not None else get_scan_plan_cache()
    key = CacheKey((tp, COLUMN_SIGNATURE_SEPARATOR.join(columns)))
    plan = cache.get(key)
    if plan is not None:
        return plan

    index = resolve_field_index(tp)
    plan = ScanPlan(tp, tuple(columns), tuple(_plan_column(column, index.get(column)) for column in columns))
    cache.put(key, plan)
    log_with_context(
        logger,
        logging.DEBUG,
        "Built scan plan",
        record=tp.__qualname__,
        columns=len(plan.columns),
        discarded=sum(1 for p in plan.column_plans if p.strategy is ColumnStrategy.DISCARD),
    )
    return plan


@mypyc_attr(allow_interpreted_subclasses=False)
class ScanState:
    """Mutable per-call state for applying a plan to result rows.

    Holders capture deferred column values and are reset before every row so a
    value never leaks from one row into the next.
    """

    __slots__ = ("_holders", "plan")

    def __init__(self, plan: ScanPlan) -> None:
        self.plan = plan
        self._holders: list[Any] = [_EMPTY] * len(plan.column_plans)

    def reset(self) -> None:
        """Empty all holders."""
        for i in range(len(self._holders)):
            self._holders[i] = _EMPTY

    def prepare(self, dest: Any) -> None:
        """Allocate intermediate nodes of ``dest`` for every mapped nested field."""
        for info in self.plan.nested_fields:
            ensure_path(dest, info)

    def apply(self, dest: Any, row: Sequence[Any]) -> None:
        """Copy one result row into ``dest``.

        Args:
            dest: Destination record, already prepared.
            row: Raw row values in cursor order.

        Raises:
            NullValueError: NULL scanned into a leaf that cannot hold it.
        """
        holders = self._holders
        for i, plan in enumerate(self.plan.column_plans):
            strategy = plan.strategy
            if strategy is ColumnStrategy.DISCARD:
                continue
            value = row[i]
            if plan.deferred:
                holders[i] = value
                continue
            info = plan.field
            if info is None:
                continue
            if strategy is ColumnStrategy.DIRECT_LEAF:
                if value is None and not plan.nullable:
                    raise NullValueError(plan.column, info.leaf_type)
                assign_at_path(dest, info, value)
                continue
            target = get_at_path(dest, info.path)
            if target is None:
                target = new_scanner(info.leaf_type)
                assign_at_path(dest, info, target)
            target.scan_column(value)

        for i, plan in enumerate(self.plan.column_plans):
            if not plan.deferred or plan.field is None:
                continue
            value = holders[i]
            if value is _EMPTY or value is None:
                assign_at_path(dest, plan.field, None)
                continue
            if plan.strategy is ColumnStrategy.CUSTOM_SCAN:
                target = new_scanner(plan.field.leaf_type)
                target.scan_column(value)
                value = target
            assign_at_path(dest, plan.field, value)
