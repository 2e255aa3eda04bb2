"""Statement builder façade.

:class:`SQLBind` is the long-lived, thread-safe entry point for one dialect.
It hands out single-use :class:`Builder` objects from a thread-local pool::

    db = SQLBind(Dialect.POSTGRES)
    sql, args = db.write("SELECT * FROM users WHERE id IN (:ids)").bind(ids=[1, 2]).build()

A builder is released back to the pool by :meth:`Builder.build` and by the
execute/scan shortcuts built on it, and must not be used afterwards.
"""

import logging
from collections.abc import MutableSequence
from typing import Any, Final, Optional, TypeVar

from mypy_extensions import mypyc_attr

from sqlbind.config import BindConfig
from sqlbind.core._pool import ThreadLocalPool
from sqlbind.core.parser import RenderedStatement, TemplateParser
from sqlbind.core.scanner import scan_all, scan_one
from sqlbind.dialects import Dialect
from sqlbind.exceptions import BindError, BuilderReleasedError, MultipleRowsError
from sqlbind.protocols import RowCursor, StatementExecutor
from sqlbind.utils.logging import get_logger, log_with_context

__all__ = ("Builder", "SQLBind")

logger = get_logger("sqlbind.builder")

T = TypeVar("T")

BUILDER_POOL_SIZE: Final = 32


@mypyc_attr(allow_interpreted_subclasses=False)
class Builder:
    """Single-use statement builder.

    SQL fragments are concatenated as written, with no auto-spacing. Bound
    inputs are resolved last-bound-wins; key/value pairs and keyword arguments
    passed to :meth:`bind` collect in a bag that is consulted after every other
    input.
    """

    __slots__ = ("_bag", "_error", "_inputs", "_owner", "_parts", "_released")

    def __init__(self, owner: "SQLBind") -> None:
        self._owner = owner
        self._parts: list[str] = []
        self._inputs: list[Any] = []
        self._bag: Optional[dict[str, Any]] = None
        self._error: Optional[BindError] = None
        self._released = True

    @property
    def released(self) -> bool:
        return self._released

    def _check_live(self) -> None:
        if self._released:
            raise BuilderReleasedError

    def write(self, sql: str) -> "Builder":
        """Append a raw SQL fragment."""
        self._check_live()
        self._parts.append(sql)
        return self

    def writef(self, fmt: str, *args: Any) -> "Builder":
        """Append a ``%``-formatted SQL fragment.

        Formatted values are inlined as text, not bound. Use placeholders for data.
        """
        self._check_live()
        self._parts.append(fmt % args if args else fmt)
        return self

    def bind(self, *args: Any, **kwargs: Any) -> "Builder":
        """Add a parameter source.

        Supported forms:
        - no arguments: ensure an (empty) key/value bag exists;
        - one argument: a mapping, record, or row collection (``None`` is ignored);
        - several arguments: ``key, value, key, value, ...`` pairs merged into the bag;
        - keyword arguments: merged into the bag.

        Invalid pairs are recorded and reported by :meth:`build`.

        Returns:
            The builder.
        """
        self._check_live()
        if self._error is not None:
            return self
        if len(args) == 1:
            if args[0] is not None:
                self._inputs.append(args[0])
        elif args:
            if len(args) % 2 != 0:
                self._error = BindError(f"bind expects an even number of args (key, value, ...), got {len(args)}")
                return self
            bag = self._ensure_bag()
            for i in range(0, len(args), 2):
                key = args[i]
                if not isinstance(key, str) or not key:
                    self._error = BindError(
                        f"bind key at position {i} must be a non-empty string (got {type(key).__name__})"
                    )
                    return self
                bag[key] = args[i + 1]
        else:
            self._ensure_bag()
        if kwargs:
            self._ensure_bag().update(kwargs)
        return self

    def _ensure_bag(self) -> dict[str, Any]:
        if self._bag is None:
            self._bag = {}
        return self._bag

    def _render(self) -> RenderedStatement:
        if self._error is not None:
            raise self._error
        inputs = list(self._inputs)
        if self._bag:
            inputs.append(self._bag)
        return self._owner.parser.render("".join(self._parts), inputs)

    def preview(self) -> RenderedStatement:
        """Render the statement without releasing the builder."""
        self._check_live()
        return self._render()

    def build(self) -> RenderedStatement:
        """Render the statement and release the builder back to its pool.

        Raises:
            BuilderReleasedError: The builder was already released.
            BindError: :meth:`bind` received invalid arguments.
            RenderError: The template failed to render.
        """
        self._check_live()
        try:
            return self._render()
        finally:
            self.release()

    def release(self) -> None:
        """Clear the builder and return it to its pool. Repeated calls are no-ops."""
        if self._released:
            return
        self._owner.release_builder(self)

    def reset(self) -> None:
        """Drop all fragments, inputs and errors and mark the builder released."""
        self._parts.clear()
        self._inputs.clear()
        self._bag = None
        self._error = None
        self._released = True

    def exec(self, db: StatementExecutor) -> Any:
        """Build and execute the statement.

        Returns:
            Whatever the driver's ``execute`` returns.
        """
        sql, args = self.build()
        return db.execute(sql, args)

    def scan_one(self, db: StatementExecutor, dest: Any) -> Any:
        """Build, execute and scan exactly one row into ``dest``.

        Raises:
            NoRowsError: The query returned no rows.
            MultipleRowsError: The query returned more than one row.

        Returns:
            The populated destination value.
        """
        sql, args = self.build()
        cursor, owned = _query(db, sql, args)
        try:
            value = scan_one(cursor, dest)
            if cursor.fetchone() is not None:
                raise MultipleRowsError
            return value
        finally:
            if owned:
                _close(cursor)

    def scan_all(self, db: StatementExecutor, dest: "MutableSequence[T]", element_type: Any) -> "MutableSequence[T]":
        """Build, execute and scan every row into ``dest``.

        Returns:
            ``dest``.
        """
        sql, args = self.build()
        cursor, owned = _query(db, sql, args)
        try:
            return scan_all(cursor, dest, element_type)
        finally:
            if owned:
                _close(cursor)


def _query(db: StatementExecutor, sql: str, args: list[Any]) -> tuple[RowCursor, bool]:
    """Execute a query and return its cursor and whether this call owns it."""
    result = db.execute(sql, args)
    if result is None or result is db:
        return db, False  # type: ignore[return-value]
    return result, True


def _close(cursor: Any) -> None:
    close = getattr(cursor, "close", None)
    if close is not None:
        close()


@mypyc_attr(allow_interpreted_subclasses=False)
class SQLBind:
    """Entry point binding a dialect and limits to a pool of builders.

    Args:
        dialect: Target dialect.
        config: Limits; unset limits fall back to the dialect defaults.
    """

    __slots__ = ("_pool", "parser")

    def __init__(self, dialect: Dialect, config: Optional[BindConfig] = None) -> None:
        self.parser = TemplateParser(dialect, config)
        self._pool: ThreadLocalPool[Builder] = ThreadLocalPool(
            factory=self._new_builder, resetter=Builder.reset, max_size=BUILDER_POOL_SIZE
        )
        log_with_context(
            logger,
            logging.DEBUG,
            "Created SQLBind",
            dialect=str(dialect),
            max_params=self.parser.config.max_params,
            max_name_len=self.parser.config.max_name_len,
        )

    @property
    def dialect(self) -> Dialect:
        return self.parser.dialect

    @property
    def config(self) -> BindConfig:
        return self.parser.config

    def _new_builder(self) -> Builder:
        return Builder(self)

    def write(self, sql: str = "") -> Builder:
        """Start a new statement.

        Args:
            sql: Optional first SQL fragment.

        Returns:
            A fresh single-use builder.
        """
        builder = self._pool.acquire()
        builder._released = False
        if sql:
            builder._parts.append(sql)
        return builder

    def release_builder(self, builder: Builder) -> None:
        self._pool.release(builder)
