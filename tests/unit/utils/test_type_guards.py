"""Tests for runtime type guards."""

from dataclasses import dataclass
from typing import Any

import attrs
import msgspec
import pytest

from sqlbind.utils.type_guards import (
    is_attrs_schema,
    is_bytes_like,
    is_column_scanner_type,
    is_column_valuer,
    is_dataclass,
    is_expandable_collection,
    is_mapping,
    is_msgspec_struct,
    is_record,
    is_record_type,
)


@dataclass
class DataRecord:
    id: int = 0


@attrs.define
class AttrsRecord:
    id: int = 0


class StructRecord(msgspec.Struct):
    id: int = 0


class Scanner:
    def scan_column(self, value: Any) -> None:
        self.value = value


class Valuer:
    def column_value(self) -> Any:
        return 1


def test_record_kinds() -> None:
    assert is_dataclass(DataRecord) and is_dataclass(DataRecord())
    assert is_attrs_schema(AttrsRecord) and is_attrs_schema(AttrsRecord())
    assert is_msgspec_struct(StructRecord) and is_msgspec_struct(StructRecord())
    assert not is_dataclass(int)


@pytest.mark.parametrize("tp", [DataRecord, AttrsRecord, StructRecord])
def test_record_type_and_instance(tp: Any) -> None:
    assert is_record_type(tp)
    assert not is_record(tp)
    assert is_record(tp())
    assert not is_record_type(tp())


@pytest.mark.parametrize("value", [[1], (1,), {1}, frozenset({1}), range(2)])
def test_expandable(value: Any) -> None:
    assert is_expandable_collection(value)


@pytest.mark.parametrize("value", ["ab", b"ab", bytearray(b"a"), memoryview(b"a"), {"a": 1}, 5, None])
def test_not_expandable(value: Any) -> None:
    assert not is_expandable_collection(value)


def test_bytes_and_mapping() -> None:
    assert is_bytes_like(b"x") and is_bytes_like(bytearray()) and is_bytes_like(memoryview(b""))
    assert not is_bytes_like("x")
    assert is_mapping({}) and not is_mapping([])


def test_capabilities() -> None:
    assert is_column_scanner_type(Scanner)
    assert not is_column_scanner_type(Scanner())
    assert not is_column_scanner_type(int)
    assert is_column_valuer(Valuer())
    assert not is_column_valuer(Valuer)
    assert not is_column_valuer(3)
