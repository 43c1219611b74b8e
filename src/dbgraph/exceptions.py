from dbgraph.constants import MAX_SIMILAR_SUGGESTIONS

__all__ = [
    "DbgraphError",
    "ConnectionError",
    "InvalidURLError",
    "UnsupportedDatabaseError",
    "SchemaIntrospectionError",
    "MalformedMetadataError",
    "EmptySchemaError",
    "TableNotFoundError",
    "GraphFrozenError",
]


class DbgraphError(Exception):
    """Base exception for all dbgraph errors."""

    pass


class ConnectionError(DbgraphError):
    """Failed to connect to database."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        masked_url = self._mask_password(url)
        super().__init__(f"Cannot connect to {masked_url}: {reason}")

    @staticmethod
    def _mask_password(url: str) -> str:
        """Mask password in database URL for safe display."""
        import re

        # Match password in URL: ://user:password@host
        return re.sub(r"(://[^:]+:)(.+)(@[^@]+)$", r"\1****\3", url)


class InvalidURLError(DbgraphError):
    """Database URL is malformed."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Invalid database URL: {reason}")


class UnsupportedDatabaseError(DbgraphError):
    """Database type is not supported."""

    def __init__(self, db_type: str):
        self.db_type = db_type
        super().__init__(
            f"Unsupported database type: '{db_type}'. Supported types: postgresql, sqlite"
        )


class SchemaIntrospectionError(DbgraphError):
    """Failed to introspect database schema."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to introspect schema: {reason}")


class MalformedMetadataError(DbgraphError):
    """Table metadata violates the model invariants and cannot be graphed."""

    def __init__(self, reason: str, table: str | None = None):
        self.reason = reason
        self.table = table
        msg = f"Malformed metadata: {reason}"
        if table:
            msg = f"Malformed metadata for table '{table}': {reason}"
        super().__init__(msg)


class EmptySchemaError(DbgraphError):
    """No tables or views were found to analyze."""

    def __init__(self, schema: str | None, filtered: bool = False):
        self.schema = schema
        self.filtered = filtered
        where = f"schema '{schema}'" if schema else "the database"
        msg = f"No tables or views were found in {where}"
        if filtered:
            msg += " (after applying table inclusion/exclusion patterns)"
        super().__init__(msg)


class TableNotFoundError(DbgraphError):
    """Referenced table does not exist in the analyzed schema."""

    def __init__(self, table: str, available_tables: list[str] | None = None):
        self.table = table
        self.available_tables = available_tables
        msg = f"Table '{table}' not found in schema"
        if available_tables:
            suggestions = self._find_similar(table, available_tables)
            if suggestions:
                msg += f". Did you mean: {', '.join(suggestions)}?"
        super().__init__(msg)

    @staticmethod
    def _find_similar(
        target: str, candidates: list[str], max_results: int = MAX_SIMILAR_SUGGESTIONS
    ) -> list[str]:
        """Find similar table names using simple substring matching."""
        target_lower = target.lower()
        similar = []
        for name in candidates:
            name_lower = name.lower()
            if target_lower in name_lower or name_lower in target_lower:
                similar.append(name)
            elif len(set(target_lower) & set(name_lower)) > len(target_lower) // 2:
                similar.append(name)
        return similar[:max_results]


class GraphFrozenError(DbgraphError):
    """Attempted to add a constraint after the graph was frozen."""

    def __init__(self, constraint_id: str):
        self.constraint_id = constraint_id
        super().__init__(
            f"Cannot add constraint '{constraint_id}': the relationship graph is frozen"
        )
