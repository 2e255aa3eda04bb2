from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from sqlbind.core.cache import clear_all_caches

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def _clear_sqlbind_caches() -> Iterator[None]:
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def sqlite_conn() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(":memory:")
    try:
        yield conn
    finally:
        conn.close()
