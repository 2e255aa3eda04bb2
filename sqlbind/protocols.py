"""Runtime-checkable protocols for sqlbind.

These describe the capabilities sqlbind consumes from its environment (row
cursors and statement executors) and the custom value-conversion hooks a
record leaf type may expose.
"""

from collections.abc import Sequence
from typing import Any, Optional, Protocol, runtime_checkable

__all__ = (
    "ColumnScanner",
    "ColumnValuer",
    "RowCursor",
    "StatementExecutor",
)


@runtime_checkable
class ColumnScanner(Protocol):
    """Protocol for leaf types that convert themselves from a driver value.

    Implementations must be constructible without arguments; the scanner
    allocates an instance and then calls :meth:`scan_column` with the raw value,
    which may be ``None`` for non-optional leaves.
    """

    def scan_column(self, value: Any) -> None:
        """Populate this instance from a raw driver value."""
        ...


@runtime_checkable
class ColumnValuer(Protocol):
    """Protocol for values that convert themselves into a driver value when bound."""

    def column_value(self) -> Any:
        """Return the driver-native representation of this value."""
        ...


@runtime_checkable
class RowCursor(Protocol):
    """Protocol for DB-API 2.0 style cursors producing result rows."""

    @property
    def description(self) -> Optional[Sequence[Sequence[Any]]]:
        """Column descriptions; the first item of each entry is the column name."""
        ...

    def fetchone(self) -> Optional[Sequence[Any]]:
        """Fetch the next row, or ``None`` when the result set is exhausted."""
        ...


@runtime_checkable
class StatementExecutor(Protocol):
    """Protocol for DB-API 2.0 style connections or cursors that execute statements."""

    def execute(self, sql: str, parameters: Sequence[Any], /) -> Any:
        """Execute ``sql`` with positional ``parameters``."""
        ...
