"""
Tablesweep: bulk deletion for partitioned key-value table stores.

Streams entity keys out of every configured (account, table) pair, groups them
into single-partition delete transactions under a bounded memory budget, and
reports how many deletions were attempted and how many failed.
"""

__version__ = "0.1.0"
