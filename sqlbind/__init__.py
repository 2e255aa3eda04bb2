"""sqlbind: named-placeholder SQL templates and record mapping for DB-API drivers."""

from sqlbind import config, core, dialects, exceptions, protocols, utils
from sqlbind.__metadata__ import __version__
from sqlbind.builder import Builder, SQLBind
from sqlbind.config import BindConfig, load_config_from_env
from sqlbind.core.fields import Column, register_leaf_type
from sqlbind.core.parser import RenderedStatement, render_template
from sqlbind.core.resolver import Scalar
from sqlbind.core.scanner import scan_all, scan_one
from sqlbind.dialects import Dialect
from sqlbind.exceptions import (
    BindError,
    BuilderReleasedError,
    ColumnNotFoundError,
    FieldAmbiguousError,
    MultipleRowsError,
    NoRowsError,
    NullValueError,
    ParamMissingError,
    ParamNameTooLongError,
    RenderError,
    RowsEmptyError,
    RowsMalformedError,
    ScanError,
    ScanShapeError,
    SliceEmptyError,
    SQLBindError,
    TooManyParamsError,
)
from sqlbind.protocols import ColumnScanner, ColumnValuer

__all__ = (
    "BindConfig",
    "BindError",
    "Builder",
    "BuilderReleasedError",
    "Column",
    "ColumnNotFoundError",
    "ColumnScanner",
    "ColumnValuer",
    "Dialect",
    "FieldAmbiguousError",
    "MultipleRowsError",
    "NoRowsError",
    "NullValueError",
    "ParamMissingError",
    "ParamNameTooLongError",
    "RenderError",
    "RenderedStatement",
    "RowsEmptyError",
    "RowsMalformedError",
    "SQLBind",
    "SQLBindError",
    "Scalar",
    "ScanError",
    "ScanShapeError",
    "SliceEmptyError",
    "TooManyParamsError",
    "__version__",
    "config",
    "core",
    "dialects",
    "exceptions",
    "load_config_from_env",
    "protocols",
    "register_leaf_type",
    "render_template",
    "scan_all",
    "scan_one",
    "utils",
)
