from typing import Any, Optional

__all__ = (
    "BindError",
    "BuilderReleasedError",
    "ColumnNotFoundError",
    "FieldAmbiguousError",
    "MultipleRowsError",
    "NoRowsError",
    "NullValueError",
    "ParamMissingError",
    "ParamNameTooLongError",
    "RenderError",
    "RowsEmptyError",
    "RowsMalformedError",
    "SQLBindError",
    "ScanError",
    "ScanShapeError",
    "SliceEmptyError",
    "TooManyParamsError",
)


class SQLBindError(Exception):
    """Base exception class from which all sqlbind exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLBindError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


# -- Render Errors --
class RenderError(SQLBindError):
    """Base class for errors raised while rendering a statement template."""


class ParamMissingError(RenderError):
    """A placeholder name has no value in any bound input."""

    name: str

    def __init__(self, name: str, placeholder: Optional[str] = None) -> None:
        self.name = name
        super().__init__(detail=f"missing parameter: {placeholder or name}")


class SliceEmptyError(RenderError):
    """A collection bound to a scalar placeholder has no elements."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(detail=f"empty collection bound to :{name}")


class RowsEmptyError(RenderError):
    """A row block resolved to a collection with no rows."""

    name: str

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(detail=f"empty rows for :{name}{{...}}")


class RowsMalformedError(RenderError):
    """A row block placeholder has a malformed or empty column list."""

    name: str

    def __init__(self, name: str, reason: Optional[str] = None) -> None:
        self.name = name
        message = f"malformed row block :{name}{{...}}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(detail=message)


class ColumnNotFoundError(RenderError):
    """A row of a row block has no value for a requested column."""

    column: str
    name: str
    row_index: int

    def __init__(self, column: str, name: str, row_index: int) -> None:
        self.column = column
        self.name = name
        self.row_index = row_index
        super().__init__(detail=f"column not found: {column!r} in :{name}{{...}} (record {row_index})")


class TooManyParamsError(RenderError):
    """Emitting more placeholders would exceed the configured ceiling."""

    requested: int
    limit: int

    def __init__(self, requested: int, limit: int) -> None:
        self.requested = requested
        self.limit = limit
        super().__init__(detail=f"too many parameters: requested={requested}, limit={limit}")


class ParamNameTooLongError(RenderError):
    """A placeholder name is longer than the configured ceiling."""

    name: str
    limit: int

    def __init__(self, name: str, limit: int) -> None:
        self.name = name
        self.limit = limit
        super().__init__(detail=f"parameter name too long: {name!r} ({len(name)} > {limit})")


class FieldAmbiguousError(SQLBindError):
    """Two distinct record fields map to the same exposed column name.

    Raised both while rendering (binding from a record) and while building a scan plan.
    """

    column: str
    row_index: Optional[int]
    name: Optional[str]

    def __init__(self, column: str, row_index: Optional[int] = None, name: Optional[str] = None) -> None:
        self.column = column
        self.row_index = row_index
        self.name = name
        message = f"ambiguous field name: {column!r}"
        if name is not None:
            message = f"{message} in :{name}{{...}}"
        if row_index is not None:
            message = f"{message} (record {row_index})"
        super().__init__(detail=message)


class BindError(SQLBindError):
    """Invalid arguments were passed to ``Builder.bind``."""


class BuilderReleasedError(SQLBindError):
    """A builder was used after it was released back to its pool."""

    def __init__(self) -> None:
        super().__init__(detail="builder already released; call write() on SQLBind for a new query")


# -- Scan Errors --
class ScanError(SQLBindError):
    """Base class for errors raised while scanning rows into destinations."""


class ScanShapeError(ScanError):
    """The destination kind or the column count does not fit the result shape."""


class NullValueError(ScanError):
    """A NULL was scanned into a leaf that cannot hold it."""

    column: str

    def __init__(self, column: str, leaf_type: Any) -> None:
        self.column = column
        type_name = getattr(leaf_type, "__name__", repr(leaf_type))
        super().__init__(detail=f"converting NULL to {type_name} is unsupported (column {column!r})")


class NoRowsError(ScanError):
    """A single-row scan found no rows."""

    def __init__(self) -> None:
        super().__init__(detail="no rows in result set")


class MultipleRowsError(ScanError):
    """A single-row scan found more than one row."""

    def __init__(self) -> None:
        super().__init__(detail="more than one row")
