"""Tests for JSON serialization helpers."""

import datetime
from decimal import Decimal

from sqlbind.utils.serializers import from_json, to_json


def test_round_trip() -> None:
    data = {"a": 1, "b": [True, None, "x"]}

    assert from_json(to_json(data)) == data
    assert from_json(to_json(data, as_bytes=True)) == data


def test_as_bytes() -> None:
    assert to_json({"a": 1}, as_bytes=True) == b'{"a":1}'


def test_native_and_fallback_types() -> None:
    class Opaque:
        def __repr__(self) -> str:
            return "<opaque>"

    encoded = from_json(to_json({"when": datetime.date(2024, 1, 2), "amount": Decimal("1.5"), "obj": Opaque()}))

    assert encoded == {"when": "2024-01-02", "amount": "1.5", "obj": "<opaque>"}
