# tests/fixtures/__init__.py
"""Shared test doubles for tablesweep tests.

Available fakes:
- FakeTableStore / FakeTableHandle: in-memory table service
"""

from tests.fixtures.stores import FakeTableHandle, FakeTableStore, make_interleaved_keys, make_keys

__all__ = [
    "FakeTableHandle",
    "FakeTableStore",
    "make_interleaved_keys",
    "make_keys",
]
