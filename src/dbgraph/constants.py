DEFAULT_MAX_DETAILED_TABLES = 300
"""Schemas with more tables than this get compact (key-columns only) diagrams."""

DEFAULT_POSTGRESQL_SCHEMA = "public"
"""Schema analyzed when none is given for PostgreSQL."""

DEFAULT_SQLITE_SCHEMA = "main"
"""Schema name reported for SQLite databases."""

DEFAULT_POSTGRESQL_PORT = 5432
"""Default port number for PostgreSQL connections."""

DEFAULT_ID_SUFFIXES = ("id",)
"""Key suffixes recognized when inferring implied foreign keys."""

MAX_SIMILAR_SUGGESTIONS = 3
"""Maximum number of similar suggestions to show in error messages."""

INSERTION_ORDER_FILE = "insertionOrder.txt"
DELETION_ORDER_FILE = "deletionOrder.txt"
GRAPH_JSON_FILE = "relationships.json"
REMOVE_RECURSIVE_SQL_FILE = "removeRecursiveConstraints.sql"
RESTORE_RECURSIVE_SQL_FILE = "restoreRecursiveConstraints.sql"
