from dbgraph.adapters.base import MetadataAdapter
from dbgraph.adapters.postgresql import PostgreSQLAdapter
from dbgraph.adapters.sqlite import SQLiteAdapter

__all__ = [
    "MetadataAdapter",
    "PostgreSQLAdapter",
    "SQLiteAdapter",
]
