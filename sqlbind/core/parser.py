"""SQL template parsing and parameter binding.

This module turns SQL text with named placeholders into dialect-specific
positional SQL plus an ordered argument list.

Placeholder forms:
- ``:name``: one argument, or one per element when the value is a collection.
- ``:name{col1,col2}``: a VALUES-style row block, one tuple per bound row.

The parser is a single left-to-right pass over the template using an explicit
lexical state machine, so placeholder-shaped text inside string literals,
quoted identifiers, comments and dollar-quoted bodies is copied through
untouched. ``::`` casts are never treated as placeholders.
"""

import logging
import re
from collections.abc import Iterator, Sequence
from enum import Enum
from re import Pattern
from typing import Any, Final, Optional

from mypy_extensions import mypyc_attr

from sqlbind.config import BindConfig, resolve_config
from sqlbind.core.fields import FieldInfo, get_at_path, resolve_field_index
from sqlbind.core.resolver import AmbiguousField, Scalar, ValueResolver, lookup_mapping
from sqlbind.dialects import Dialect, render_placeholder
from sqlbind.exceptions import (
    ColumnNotFoundError,
    FieldAmbiguousError,
    ParamMissingError,
    ParamNameTooLongError,
    RowsEmptyError,
    RowsMalformedError,
    SliceEmptyError,
    TooManyParamsError,
)
from sqlbind.utils.logging import get_logger, log_with_context
from sqlbind.utils.type_guards import is_bytes_like, is_column_valuer, is_expandable_collection, is_mapping, is_record

__all__ = (
    "LexState",
    "RenderedStatement",
    "TemplateParser",
    "render_template",
)

logger = get_logger("sqlbind.core.parser")

_NAME_RE: Final = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_DOLLAR_TAG_RE: Final = re.compile(r"\$[A-Za-z0-9_]*\$")
_LINE_END_RE: Final = re.compile(r"[\r\n]")
_SINGLE_QUOTE_STOP_RE: Final = re.compile(r"[\\']")
_DOUBLE_QUOTE_STOP_RE: Final = re.compile(r'[\\"]')
_ARG_SEPARATOR: Final = ","


class LexState(Enum):
    """States of the template lexer."""

    PLAIN = "PLAIN"
    SINGLE_QUOTED = "SINGLE_QUOTED"
    DOUBLE_QUOTED = "DOUBLE_QUOTED"
    BACKTICK_QUOTED = "BACKTICK_QUOTED"
    BRACKET_QUOTED = "BRACKET_QUOTED"
    LINE_COMMENT = "LINE_COMMENT"
    BLOCK_COMMENT = "BLOCK_COMMENT"
    DOLLAR_QUOTED = "DOLLAR_QUOTED"


def _plain_stop_pattern(dialect: Dialect) -> "Pattern[str]":
    """Characters that may change state or start a placeholder in PLAIN text."""
    chars = "-/'\":$"
    if dialect.hash_line_comments:
        chars += "#"
    if dialect.backtick_identifiers:
        chars += "`"
    if dialect.bracket_identifiers:
        chars += "["
    return re.compile(f"[{re.escape(chars)}]")


_PLAIN_STOP_RE: Final[dict[Dialect, "Pattern[str]"]] = {dialect: _plain_stop_pattern(dialect) for dialect in Dialect}


@mypyc_attr(allow_interpreted_subclasses=False)
class RenderedStatement:
    """Final SQL text and its ordered positional arguments.

    Unpacks as ``sql, args = statement``.
    """

    __slots__ = ("args", "sql")

    def __init__(self, sql: str, args: list[Any]) -> None:
        self.sql = sql
        self.args = args

    def __iter__(self) -> Iterator[Any]:
        yield self.sql
        yield self.args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RenderedStatement):
            return NotImplemented
        return self.sql == other.sql and self.args == other.args

    def __hash__(self) -> int:
        return hash(self.sql)

    def __repr__(self) -> str:
        return f"RenderedStatement(sql={self.sql!r}, args={self.args!r})"


def _driver_value(value: Any) -> Any:
    if is_column_valuer(value):
        return value.column_value()
    return value


def _read_dollar_tag(template: str, start: int) -> Optional[str]:
    match = _DOLLAR_TAG_RE.match(template, start)
    return match.group(0) if match else None


def _read_columns(template: str, start: int) -> Optional[tuple[int, list[str]]]:
    """Parse ``{a,b,c}`` starting at the opening brace.

    Returns:
        ``(index after '}', columns)`` or ``None`` when malformed.
    """
    end = template.find("}", start + 1)
    if end < 0:
        return None
    body = template[start + 1 : end]
    if "{" in body:
        return None
    if not body.strip():
        return end + 1, []
    columns = [column.strip() for column in body.split(",")]
    if any(not column for column in columns):
        return None
    return end + 1, columns


@mypyc_attr(allow_interpreted_subclasses=False)
class _Render:
    """Mutable state of a single render call."""

    __slots__ = ("args", "config", "dialect", "ordinal", "out", "resolver")

    def __init__(self, dialect: Dialect, config: BindConfig, resolver: ValueResolver) -> None:
        self.dialect = dialect
        self.config = config
        self.resolver = resolver
        self.out: list[str] = []
        self.args: list[Any] = []
        self.ordinal = 0

    def ensure_capacity(self, add: int) -> None:
        """Fail before emitting ``add`` placeholders if the ceiling would be exceeded."""
        if self.config.params_unlimited:
            return
        requested = self.ordinal + add
        if requested > self.config.max_params:
            raise TooManyParamsError(requested, self.config.max_params)

    def next_placeholder(self, value: Any) -> str:
        self.ordinal += 1
        self.args.append(value)
        return render_placeholder(self.dialect, self.ordinal)

    def emit_value(self, name: str, value: Any) -> None:
        if isinstance(value, Scalar):
            self.ensure_capacity(1)
            self.out.append(self.next_placeholder(value.value))
            return
        if is_column_valuer(value):
            self.ensure_capacity(1)
            self.out.append(self.next_placeholder(value.column_value()))
            return
        if is_bytes_like(value):
            self.ensure_capacity(1)
            self.out.append(self.next_placeholder(bytes(value) if isinstance(value, memoryview) else value))
            return
        if is_expandable_collection(value):
            items = list(value)
            if not items:
                raise SliceEmptyError(name)
            self.ensure_capacity(len(items))
            self.out.append(_ARG_SEPARATOR.join(self.next_placeholder(_driver_value(item)) for item in items))
            return
        self.ensure_capacity(1)
        self.out.append(self.next_placeholder(value))

    def emit_rows(self, name: str, columns: list[str]) -> None:
        rows, found = self.resolver.lookup_rows(name)
        if not found or rows is None:
            raise ParamMissingError(name, f":{name}{{...}}")
        if not rows:
            raise RowsEmptyError(name)
        self.ensure_capacity(len(rows) * len(columns))
        values = _row_block_values(name, columns, rows)
        self.out.append(
            _ARG_SEPARATOR.join(
                "(" + _ARG_SEPARATOR.join(self.next_placeholder(value) for value in row) + ")" for row in values
            )
        )


def _record_column_infos(name: str, columns: list[str], row_type: type, row_index: int) -> list[FieldInfo]:
    index = resolve_field_index(row_type)
    infos: list[FieldInfo] = []
    for column in columns:
        info = index.get(column)
        if info is None:
            raise ColumnNotFoundError(column, name, row_index)
        if info.ambiguous:
            raise FieldAmbiguousError(column, row_index=row_index, name=name)
        infos.append(info)
    return infos


def _row_block_values(name: str, columns: list[str], rows: Sequence[Any]) -> list[list[Any]]:
    """Resolve every column of every row before anything is emitted.

    Record rows of a type not seen earlier in the block get their column paths
    resolved on first sight, so mixed record shapes are supported.
    """
    infos_by_type: dict[type, list[FieldInfo]] = {}
    values: list[list[Any]] = []
    for row_index, row in enumerate(rows):
        if is_record(row):
            infos = infos_by_type.get(type(row))
            if infos is None:
                infos = _record_column_infos(name, columns, type(row), row_index)
                infos_by_type[type(row)] = infos
            values.append([_driver_value(get_at_path(row, info.path)) for info in infos])
            continue
        if not is_mapping(row):
            raise ColumnNotFoundError(columns[0], name, row_index)
        row_values: list[Any] = []
        for column in columns:
            value, found = lookup_mapping(row, column)
            if not found:
                raise ColumnNotFoundError(column, name, row_index)
            row_values.append(_driver_value(value))
        values.append(row_values)
    return values


@mypyc_attr(allow_interpreted_subclasses=False)
class TemplateParser:
    """Render SQL templates for one dialect.

    Args:
        dialect: Target dialect.
        config: Limits; unset limits fall back to the dialect defaults.
    """

    __slots__ = ("_config", "_dialect", "_plain_stop")

    def __init__(self, dialect: Dialect, config: Optional[BindConfig] = None) -> None:
        self._dialect = dialect
        self._config = resolve_config(dialect, config)
        self._plain_stop = _PLAIN_STOP_RE[dialect]

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def config(self) -> BindConfig:
        return self._config

    def render(self, template: str, inputs: Sequence[Any] = ()) -> RenderedStatement:
        """Render ``template`` against ``inputs``.

        Args:
            template: SQL text with ``:name`` and ``:name{cols}`` placeholders.
            inputs: Bound inputs; later inputs win on name conflicts.

        Returns:
            The rendered statement.

        Raises:
            RenderError: Any placeholder failed to resolve or a limit was exceeded.
            FieldAmbiguousError: A record input exposes a name ambiguously.
        """
        ctx = _Render(self._dialect, self._config, ValueResolver(inputs))
        out = ctx.out
        dialect = self._dialect
        plain_stop = self._plain_stop
        state = LexState.PLAIN
        tag = ""
        size = len(template)
        i = 0

        while i < size:
            if state is LexState.PLAIN:
                match = plain_stop.search(template, i)
                if match is None:
                    out.append(template[i:])
                    break
                stop = match.start()
                if stop > i:
                    out.append(template[i:stop])
                i = stop
                c = template[i]
                nxt = template[i + 1] if i + 1 < size else ""

                if c == "-" and nxt == "-":
                    out.append("--")
                    state, i = LexState.LINE_COMMENT, i + 2
                elif c == "#":
                    out.append(c)
                    state, i = LexState.LINE_COMMENT, i + 1
                elif c == "/" and nxt == "*":
                    out.append("/*")
                    state, i = LexState.BLOCK_COMMENT, i + 2
                elif c == "'":
                    out.append(c)
                    state, i = LexState.SINGLE_QUOTED, i + 1
                elif c == '"':
                    out.append(c)
                    state, i = LexState.DOUBLE_QUOTED, i + 1
                elif c == "`":
                    out.append(c)
                    state, i = LexState.BACKTICK_QUOTED, i + 1
                elif c == "[":
                    out.append(c)
                    state, i = LexState.BRACKET_QUOTED, i + 1
                elif c == "$" and (dollar_tag := _read_dollar_tag(template, i)) is not None:
                    out.append(dollar_tag)
                    tag = dollar_tag
                    state, i = LexState.DOLLAR_QUOTED, i + len(dollar_tag)
                elif c == ":" and nxt and nxt != ":" and not (i > 0 and template[i - 1] == ":"):
                    i = self._placeholder(template, i, ctx)
                else:
                    out.append(c)
                    i += 1

            elif state is LexState.SINGLE_QUOTED or state is LexState.DOUBLE_QUOTED:
                quote = "'" if state is LexState.SINGLE_QUOTED else '"'
                pattern = _SINGLE_QUOTE_STOP_RE if quote == "'" else _DOUBLE_QUOTE_STOP_RE
                match = pattern.search(template, i)
                if match is None:
                    out.append(template[i:])
                    break
                stop = match.start()
                if template[stop] == "\\":
                    out.append(template[i : stop + 2])
                    i = stop + 2
                    continue
                if stop + 1 < size and template[stop + 1] == quote:
                    out.append(template[i : stop + 2])
                    i = stop + 2
                    continue
                out.append(template[i : stop + 1])
                state, i = LexState.PLAIN, stop + 1

            elif state is LexState.BACKTICK_QUOTED or state is LexState.BRACKET_QUOTED:
                close = "`" if state is LexState.BACKTICK_QUOTED else "]"
                stop = template.find(close, i)
                if stop < 0:
                    out.append(template[i:])
                    break
                if stop + 1 < size and template[stop + 1] == close:
                    out.append(template[i : stop + 2])
                    i = stop + 2
                    continue
                out.append(template[i : stop + 1])
                state, i = LexState.PLAIN, stop + 1

            elif state is LexState.LINE_COMMENT:
                match = _LINE_END_RE.search(template, i)
                if match is None:
                    out.append(template[i:])
                    break
                out.append(template[i : match.end()])
                state, i = LexState.PLAIN, match.end()

            elif state is LexState.BLOCK_COMMENT:
                stop = template.find("*/", i)
                if stop < 0:
                    out.append(template[i:])
                    break
                out.append(template[i : stop + 2])
                state, i = LexState.PLAIN, stop + 2

            else:
                stop = template.find(tag, i)
                if stop < 0:
                    out.append(template[i:])
                    break
                end = stop + len(tag)
                out.append(template[i:end])
                tag = ""
                state, i = LexState.PLAIN, end

        sql = "".join(out)
        log_with_context(
            logger, logging.DEBUG, "Rendered statement", dialect=str(dialect), sql_length=len(sql), args=len(ctx.args)
        )
        return RenderedStatement(sql, ctx.args)

    def _placeholder(self, template: str, i: int, ctx: _Render) -> int:
        """Handle ``:`` at ``i`` in PLAIN state and return the next index."""
        match = _NAME_RE.match(template, i + 1)
        if match is None:
            ctx.out.append(":")
            return i + 1
        name = match.group(0)
        if len(name) > self._config.max_name_len:
            raise ParamNameTooLongError(name, self._config.max_name_len)
        end = match.end()

        if end < len(template) and template[end] == "{":
            parsed = _read_columns(template, end)
            if parsed is None:
                raise RowsMalformedError(name)
            end, columns = parsed
            if not columns:
                raise RowsMalformedError(name, "without columns")
            ctx.emit_rows(name, columns)
            return end

        value, found = ctx.resolver.lookup_value(name)
        if not found:
            raise ParamMissingError(name)
        if isinstance(value, AmbiguousField):
            raise FieldAmbiguousError(value.name)
        ctx.emit_value(name, value)
        return end


def render_template(
    dialect: Dialect, template: str, inputs: Sequence[Any] = (), config: Optional[BindConfig] = None
) -> RenderedStatement:
    """Render a template once without keeping a parser around.

    Args:
        dialect: Target dialect.
        template: SQL text with placeholders.
        inputs: Bound inputs; later inputs win on name conflicts.
        config: Limits; unset limits fall back to the dialect defaults.

    Returns:
        The rendered statement.
    """
    return TemplateParser(dialect, config).render(template, inputs)
