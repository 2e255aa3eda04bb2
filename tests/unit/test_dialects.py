"""Tests for dialects and placeholder tokens."""

import pytest

from sqlbind.dialects import DEFAULT_MAX_PARAMS, Dialect, render_placeholder


@pytest.mark.parametrize(
    ("dialect", "ordinal", "token"),
    [
        (Dialect.POSTGRES, 1, "$1"),
        (Dialect.POSTGRES, 12, "$12"),
        (Dialect.SQLSERVER, 3, "@p3"),
        (Dialect.MYSQL, 7, "?"),
        (Dialect.SQLITE, 7, "?"),
    ],
)
def test_render_placeholder(dialect: Dialect, ordinal: int, token: str) -> None:
    assert render_placeholder(dialect, ordinal) == token


@pytest.mark.parametrize(
    ("dialect", "name"),
    [
        (Dialect.POSTGRES, "postgres"),
        (Dialect.MYSQL, "mysql"),
        (Dialect.SQLITE, "sqlite"),
        (Dialect.SQLSERVER, "sqlserver"),
    ],
)
def test_str(dialect: Dialect, name: str) -> None:
    assert str(dialect) == name
    assert Dialect(name) is dialect


def test_lexical_toggles() -> None:
    assert [d for d in Dialect if d.hash_line_comments] == [Dialect.MYSQL]
    assert {d for d in Dialect if d.backtick_identifiers} == {Dialect.MYSQL, Dialect.SQLITE}
    assert [d for d in Dialect if d.bracket_identifiers] == [Dialect.SQLSERVER]
    assert {d for d in Dialect if d.ordinal_placeholders} == {Dialect.POSTGRES, Dialect.SQLSERVER}


def test_every_dialect_has_a_default_limit() -> None:
    assert set(DEFAULT_MAX_PARAMS) == set(Dialect)
