from abc import ABC, abstractmethod

from dbgraph.config import DatabaseType
from dbgraph.models import Table


class MetadataAdapter(ABC):
    """
    Abstract base class for catalog readers.

    Each adapter implements database-specific logic for:
    - Connection management
    - Reading tables, views, columns, primary keys and foreign keys

    Adapters only read catalog metadata; they never touch row data.
    """

    default_schema: str = ""
    db_type: DatabaseType | None = None

    @abstractmethod
    def connect(self, url: str) -> None:
        """
        Establish database connection.

        Raises:
            ConnectionError: If connection fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    @abstractmethod
    def get_tables(self, schema: str | None = None) -> list[Table]:
        """
        Read every table and view of a schema.

        Tables carry their columns, primary key and the explicit foreign keys
        declared on them. The order of the returned list is not significant.

        Args:
            schema: Schema name; the adapter's default schema when None

        Raises:
            SchemaIntrospectionError: If the catalog cannot be read
        """
        pass

    @abstractmethod
    def list_schemas(self) -> list[str]:
        """Names of the user schemas available on the connection, sorted."""
        pass

    def __enter__(self):
        """Support using adapter as context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Close connection when exiting context."""
        self.close()
        return False
