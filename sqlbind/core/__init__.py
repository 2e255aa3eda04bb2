"""sqlbind core: template rendering and result mapping.

Architecture Overview:
- parser.py: lexical state machine rendering templates to positional SQL
- resolver.py: last-bound-wins lookup over bound inputs
- fields.py: flattened field indexes for record types and path helpers
- plan.py: immutable per-shape scan plans
- scanner.py: applies scan plans to DB-API cursors
- cache.py: generational caches shared by fields.py and plan.py
"""

from sqlbind.core.cache import (
    CacheKey,
    CacheStats,
    GenerationalCache,
    clear_all_caches,
    get_cache_statistics,
    get_field_index_cache,
    get_scan_plan_cache,
)
from sqlbind.core.fields import Column, FieldInfo, new_record, register_leaf_type, resolve_field_index
from sqlbind.core.parser import LexState, RenderedStatement, TemplateParser, render_template
from sqlbind.core.plan import ColumnPlan, ColumnStrategy, ScanPlan, ScanState, build_scan_plan
from sqlbind.core.resolver import Scalar, ValueResolver
from sqlbind.core.scanner import cursor_columns, scan_all, scan_one

__all__ = (
    "CacheKey",
    "CacheStats",
    "Column",
    "ColumnPlan",
    "ColumnStrategy",
    "FieldInfo",
    "GenerationalCache",
    "LexState",
    "RenderedStatement",
    "Scalar",
    "ScanPlan",
    "ScanState",
    "TemplateParser",
    "ValueResolver",
    "build_scan_plan",
    "clear_all_caches",
    "cursor_columns",
    "get_cache_statistics",
    "get_field_index_cache",
    "get_scan_plan_cache",
    "new_record",
    "register_leaf_type",
    "render_template",
    "resolve_field_index",
    "scan_all",
    "scan_one",
)
