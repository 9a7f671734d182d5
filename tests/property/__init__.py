# tests/property/__init__.py
"""Property-based tests for tablesweep.

Property-based testing validates invariants that must hold for ALL inputs,
not just the specific examples we think of. The batching cache is the part
of the sweep where a subtle bug loses or duplicates deletes, so it gets the
most attention here.
"""
