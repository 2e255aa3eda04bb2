"""Tests for scan plan construction and per-row scan state."""

from dataclasses import dataclass, field
from typing import Any, Optional

import pytest

from sqlbind.core.cache import CacheKey, GenerationalCache, get_scan_plan_cache
from sqlbind.core.plan import ColumnPlan, ColumnStrategy, ScanState, build_scan_plan
from sqlbind.exceptions import FieldAmbiguousError, NullValueError


class Flag:
    def __init__(self) -> None:
        self.on = False
        self.calls = 0

    def scan_column(self, value: Any) -> None:
        self.calls += 1
        self.on = bool(value)


@dataclass
class Profile:
    bio: Optional[str] = None
    score: int = 0


@dataclass
class Account:
    id: int = 0
    name: Optional[str] = None
    extra: Any = ""
    active: Flag = field(default_factory=Flag)
    verified: Optional[Flag] = None
    profile: Optional[Profile] = None


@dataclass
class X:
    v: int = 0


@dataclass
class Y:
    v: int = 0


@dataclass
class Clash:
    x: X = field(default_factory=X)
    y: Y = field(default_factory=Y)


def strategies(columns: list[str]) -> dict[str, ColumnStrategy]:
    plan = build_scan_plan(columns, Account)
    return {p.column: p.strategy for p in plan.column_plans}


class TestBuildScanPlan:
    """Test per-column strategies."""

    def test_strategies(self) -> None:
        result = strategies(["id", "name", "extra", "active", "verified", "bio", "score", "unknown"])

        assert result == {
            "id": ColumnStrategy.DIRECT_LEAF,
            "name": ColumnStrategy.OPTIONAL_LEAF,
            "extra": ColumnStrategy.DIRECT_LEAF,
            "active": ColumnStrategy.CUSTOM_SCAN,
            "verified": ColumnStrategy.CUSTOM_SCAN,
            "bio": ColumnStrategy.OPTIONAL_LEAF,
            "score": ColumnStrategy.DIRECT_LEAF,
            "unknown": ColumnStrategy.DISCARD,
        }

    def test_flags(self) -> None:
        plan = build_scan_plan(["id", "extra", "active", "verified"], Account)
        by_column = {p.column: p for p in plan.column_plans}

        assert by_column["id"].nullable is False
        assert by_column["extra"].nullable is True
        assert by_column["active"].optional is False
        assert by_column["verified"].optional is True
        assert by_column["verified"].deferred is True
        assert by_column["active"].deferred is False

    def test_nested_fields(self) -> None:
        plan = build_scan_plan(["bio", "score", "id"], Account)

        assert [info.path for info in plan.nested_fields] == [("profile", "bio")]

    def test_preserves_column_order(self) -> None:
        plan = build_scan_plan(["score", "id"], Account)

        assert plan.columns == ("score", "id")
        assert [p.column for p in plan.column_plans] == ["score", "id"]

    def test_ambiguous_column_fails(self) -> None:
        with pytest.raises(FieldAmbiguousError, match="'v'"):
            build_scan_plan(["v"], Clash)

    def test_ambiguous_name_not_selected_is_fine(self) -> None:
        plan = build_scan_plan(["other"], Clash)

        assert plan.column_plans[0].strategy is ColumnStrategy.DISCARD

    def test_plan_is_cached(self) -> None:
        first = build_scan_plan(["id", "name"], Account)
        second = build_scan_plan(["id", "name"], Account)

        assert first is second
        assert CacheKey((Account, "id\x1fname")) in get_scan_plan_cache()

    def test_column_signature_distinguishes_plans(self) -> None:
        assert build_scan_plan(["id", "name"], Account) is not build_scan_plan(["name", "id"], Account)

    def test_injected_cache(self) -> None:
        cache: GenerationalCache[Any, Any] = GenerationalCache(4)

        build_scan_plan(["id"], Account, cache)

        assert len(cache) == 1
        assert len(get_scan_plan_cache()) == 0

    def test_column_plan_is_immutable(self) -> None:
        plan = build_scan_plan(["id"], Account)

        with pytest.raises(AttributeError):
            plan.column_plans[0].strategy = ColumnStrategy.DISCARD  # type: ignore[misc]

    def test_column_plan_equality(self) -> None:
        assert ColumnPlan("a", ColumnStrategy.DISCARD) == ColumnPlan("a", ColumnStrategy.DISCARD)
        assert ColumnPlan("a", ColumnStrategy.DISCARD) != ColumnPlan("b", ColumnStrategy.DISCARD)


class TestScanState:
    """Test applying a plan to raw rows."""

    def test_apply_row(self) -> None:
        state = ScanState(build_scan_plan(["id", "name", "active", "verified", "bio", "score"], Account))
        account = Account()

        state.prepare(account)
        state.apply(account, (1, "ann", 1, 0, "hi", 5))

        assert account.id == 1
        assert account.name == "ann"
        assert account.active.on is True
        assert account.verified is not None
        assert account.verified.on is False
        assert account.profile == Profile(bio="hi", score=5)

    def test_null_into_optional_leaves(self) -> None:
        state = ScanState(build_scan_plan(["name", "verified", "extra"], Account))
        account = Account(name="old", verified=Flag(), extra="x")

        state.prepare(account)
        state.apply(account, (None, None, None))

        assert account.name is None
        assert account.verified is None
        assert account.extra is None

    def test_null_into_non_optional_leaf(self) -> None:
        state = ScanState(build_scan_plan(["id"], Account))

        with pytest.raises(NullValueError, match="int"):
            state.apply(Account(), (None,))

    def test_null_into_non_optional_scanner_calls_hook(self) -> None:
        state = ScanState(build_scan_plan(["active"], Account))
        account = Account()
        flag = account.active

        state.apply(account, (None,))

        assert account.active is flag
        assert flag.calls == 1
        assert flag.on is False

    def test_discarded_columns_are_ignored(self) -> None:
        state = ScanState(build_scan_plan(["id", "ignored"], Account))
        account = Account()

        state.apply(account, (3, object()))

        assert account.id == 3

    def test_reset_between_rows(self) -> None:
        state = ScanState(build_scan_plan(["id", "name"], Account))
        first, second = Account(), Account()

        state.apply(first, (1, "a"))
        state.reset()
        state.apply(second, (2, None))

        assert first.name == "a"
        assert second.name is None
