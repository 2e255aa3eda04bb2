"""Configuration for the parser and binder.

Limits default per dialect; environment variables can override them for a
whole deployment.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Final, Optional

from sqlbind.dialects import DEFAULT_MAX_PARAMS, Dialect
from sqlbind.utils.logging import get_logger, log_with_context

__all__ = (
    "DEFAULT_CACHE_SIZE",
    "DEFAULT_MAX_NAME_LEN",
    "BindConfig",
    "get_cache_size",
    "load_config_from_env",
    "resolve_config",
)

logger = get_logger("sqlbind.config")

DEFAULT_MAX_NAME_LEN: Final = 64
DEFAULT_CACHE_SIZE: Final = 4096


@dataclass(frozen=True)
class BindConfig:
    """Limits applied while rendering a statement.

    Attributes:
        max_params: Ceiling on placeholders emitted by one render. ``0`` picks the
            dialect default, a negative value means unlimited.
        max_name_len: Ceiling on placeholder name length. ``0`` or less picks the default.
    """

    max_params: int = 0
    max_name_len: int = 0

    @property
    def params_unlimited(self) -> bool:
        """Whether the parameter ceiling is disabled."""
        return self.max_params < 0


def resolve_config(dialect: Dialect, config: Optional[BindConfig] = None) -> BindConfig:
    """Merge a user configuration with the per-dialect defaults.

    Args:
        dialect: Dialect whose defaults apply.
        config: Optional user configuration.

    Returns:
        A configuration with every limit resolved.
    """
    cfg = config or BindConfig()
    if cfg.max_params == 0:
        cfg = replace(cfg, max_params=DEFAULT_MAX_PARAMS[dialect])
    if cfg.max_name_len <= 0:
        cfg = replace(cfg, max_name_len=DEFAULT_MAX_NAME_LEN)
    return cfg


def load_config_from_env() -> BindConfig:
    """Load limits from environment variables.

    Environment Variables Supported:
    - SQLBIND_MAX_PARAMS: Ceiling on emitted placeholders (integer, negative for unlimited)
    - SQLBIND_MAX_NAME_LEN: Ceiling on placeholder name length (integer)

    Returns:
        BindConfig loaded from environment variables; unset values keep dialect defaults.
    """
    return BindConfig(
        max_params=_env_int("SQLBIND_MAX_PARAMS", 0),
        max_name_len=_env_int("SQLBIND_MAX_NAME_LEN", 0),
    )


def get_cache_size() -> int:
    """Capacity of the process-wide field-index and scan-plan caches.

    Reads ``SQLBIND_CACHE_SIZE``; non-positive values fall back to the default.
    """
    size = _env_int("SQLBIND_CACHE_SIZE", DEFAULT_CACHE_SIZE)
    if size <= 0:
        log_with_context(
            logger,
            logging.WARNING,
            f"Invalid cache size {size}, using default {DEFAULT_CACHE_SIZE}",
            key="SQLBIND_CACHE_SIZE",
            value=size,
        )
        return DEFAULT_CACHE_SIZE
    return size


def _env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        log_with_context(
            logger, logging.WARNING, f"Invalid integer value for {key}, using default {default}", key=key, value=value
        )
        return default
