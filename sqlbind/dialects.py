"""SQL dialects and placeholder rendering.

A :class:`Dialect` selects the positional placeholder token emitted for each
bound argument and a few lexical toggles used by the template parser:

- POSTGRES: ``$1, $2, ...``; dollar-quoted strings.
- MYSQL: ``?``; ``#`` line comments and backtick-quoted identifiers.
- SQLITE: ``?``; backtick-quoted identifiers.
- SQLSERVER: ``@p1, @p2, ...``; bracket-quoted identifiers.
"""

from enum import Enum
from typing import Final

__all__ = (
    "DEFAULT_MAX_PARAMS",
    "Dialect",
    "render_placeholder",
)


class Dialect(str, Enum):
    """Dialect enumeration.

    Supported dialects:
    - POSTGRES: ordinal ``$n`` placeholders
    - MYSQL: ``?`` placeholders
    - SQLITE: ``?`` placeholders
    - SQLSERVER: ordinal ``@pn`` placeholders
    """

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    SQLSERVER = "sqlserver"

    def __str__(self) -> str:
        """String representation.

        Returns:
            Lowercase name of the dialect.
        """
        return self.value

    @property
    def hash_line_comments(self) -> bool:
        """Whether ``#`` starts a line comment."""
        return self is Dialect.MYSQL

    @property
    def backtick_identifiers(self) -> bool:
        """Whether backticks quote identifiers."""
        return self in {Dialect.MYSQL, Dialect.SQLITE}

    @property
    def bracket_identifiers(self) -> bool:
        """Whether ``[...]`` quotes identifiers."""
        return self is Dialect.SQLSERVER

    @property
    def ordinal_placeholders(self) -> bool:
        """Whether placeholder tokens carry their ordinal."""
        return self in {Dialect.POSTGRES, Dialect.SQLSERVER}


DEFAULT_MAX_PARAMS: Final[dict[Dialect, int]] = {
    Dialect.POSTGRES: 65535,
    Dialect.MYSQL: 65535,
    Dialect.SQLITE: 999,
    Dialect.SQLSERVER: 2100,
}


def render_placeholder(dialect: Dialect, ordinal: int) -> str:
    """Render the placeholder token for a 1-based argument ordinal.

    Args:
        dialect: Target dialect.
        ordinal: 1-based position of the argument.

    Returns:
        The dialect-specific placeholder token.
    """
    if dialect is Dialect.POSTGRES:
        return f"${ordinal}"
    if dialect is Dialect.SQLSERVER:
        return f"@p{ordinal}"
    return "?"
