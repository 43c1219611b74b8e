"""
dbgraph - Map the relationships of a relational database schema.

Introspects catalog metadata, infers undeclared foreign keys from naming
conventions, resolves reference cycles and computes deterministic table
insertion/deletion orders.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
