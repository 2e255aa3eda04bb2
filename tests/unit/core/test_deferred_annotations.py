"""Tests for records whose annotations are strings that do not all resolve."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, ForwardRef, Optional

from sqlbind.core.fields import resolve_field_index
from sqlbind.core.plan import ColumnStrategy, build_scan_plan
from sqlbind.core.scanner import scan_all, scan_one

if TYPE_CHECKING:
    from decimal import Decimal


@dataclass
class Address:
    city: str = ""
    street: str = ""


@dataclass
class Invoice:
    id: int = 0
    amount: Optional[Decimal] = None
    fee: Decimal = None  # type: ignore[assignment]


def test_local_record_keeps_optional_and_nested_fields(sqlite_conn: sqlite3.Connection) -> None:
    @dataclass
    class Inner:
        code: str = ""

    @dataclass
    class Outer:
        id: int = 0
        note: Optional[str] = None
        inner: Optional[Inner] = None
        home: Optional[Address] = None

    cursor = sqlite_conn.execute("SELECT 1 AS id, NULL AS note, 'x' AS city")
    outer = scan_one(cursor, Outer)

    assert outer.id == 1
    assert outer.note is None
    assert outer.inner is None
    assert outer.home == Address(city="x")


def test_one_unresolved_hint_does_not_affect_the_others() -> None:
    @dataclass
    class Local:
        code: str = ""

    @dataclass
    class Holder:
        id: int = 0
        local: Optional[Local] = None
        home: Optional[Address] = None

    index = resolve_field_index(Holder)

    assert index["id"].leaf_type is int
    assert index["id"].optional is False
    assert index["local"].optional is True
    assert isinstance(index["local"].leaf_type, ForwardRef)
    assert index["city"].path == ("home", "city")
    assert index["city"].path_types == (Address,)


def test_type_checking_import_becomes_nullable_leaf() -> None:
    index = resolve_field_index(Invoice)

    assert index["id"].leaf_type is int
    assert index["amount"].optional is True
    assert index["fee"].optional is False

    plan = build_scan_plan(("id", "amount", "fee"), Invoice)
    strategies = {p.column: p.strategy for p in plan.column_plans}
    assert strategies == {
        "id": ColumnStrategy.DIRECT_LEAF,
        "amount": ColumnStrategy.OPTIONAL_LEAF,
        "fee": ColumnStrategy.DIRECT_LEAF,
    }
    assert plan.column_plans[0].nullable is False
    assert plan.column_plans[2].nullable is True


def test_type_checking_import_scans_null(sqlite_conn: sqlite3.Connection) -> None:
    cursor = sqlite_conn.execute("SELECT 7 AS id, NULL AS amount, NULL AS fee UNION ALL SELECT 8, '1.50', '0.25'")
    invoices: list[Invoice] = []
    scan_all(cursor, invoices, Invoice)

    assert invoices == [Invoice(id=7), Invoice(id=8, amount="1.50", fee="0.25")]  # type: ignore[arg-type]
