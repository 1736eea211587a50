"""
Address probe: batched existence check against a read-only SQLite store.

Reads a list of candidate addresses, checks them in batches against a large
reference table and reports the ones that exist. Built for repeated,
scripted invocation where startup and query latency matter.
"""

__version__ = "0.1.0"
