# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import entity_streams

    @given(stream=entity_streams())
    def test_something(stream: EntityStream) -> None:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass

from hypothesis import strategies as st

from tablesweep.contracts.entities import EntityRef
from tests.fixtures import FakeTableHandle

TABLES = (FakeTableHandle("acct", "Logs"), FakeTableHandle("acct", "Audit"))


@dataclass(frozen=True)
class EntityStream:
    """Entities in arrival order plus the sizes they are batched with."""

    entities: list[EntityRef]
    batch_size: int
    cache_size: int


@st.composite
def entity_streams(draw: st.DrawFn, max_entities: int = 400) -> EntityStream:
    """Streams over a few tables and partitions, skewed so some partitions dominate."""
    partition_count = draw(st.integers(min_value=1, max_value=8))
    placements = draw(
        st.lists(
            st.tuples(
                st.integers(min_value=0, max_value=len(TABLES) - 1),
                st.integers(min_value=0, max_value=partition_count - 1),
            ),
            max_size=max_entities,
        )
    )
    entities = [EntityRef(TABLES[t], f"P{p}", f"r{i:05d}") for i, (t, p) in enumerate(placements)]
    batch_size = draw(st.integers(min_value=1, max_value=100))
    cache_size = draw(st.integers(min_value=1, max_value=300))
    return EntityStream(entities=entities, batch_size=batch_size, cache_size=cache_size)
