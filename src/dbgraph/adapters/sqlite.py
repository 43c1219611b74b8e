import sqlite3
from pathlib import Path
from typing import Any

from dbgraph.adapters.base import MetadataAdapter
from dbgraph.config import DatabaseType
from dbgraph.constants import DEFAULT_SQLITE_SCHEMA
from dbgraph.exceptions import ConnectionError, SchemaIntrospectionError
from dbgraph.logging import get_logger
from dbgraph.models import Column, ForeignKeyConstraint, ReferentialAction, Table
from dbgraph.utils.connection import parse_database_url

logger = get_logger(__name__)


class SQLiteAdapter(MetadataAdapter):
    """
    SQLite catalog reader.

    SQLite has one schema per attached database; the main database is
    ``main``. Foreign keys carry no names in the catalog, so each is named
    ``fk_<table>_<id>`` after its position in ``PRAGMA foreign_key_list``.
    """

    default_schema = DEFAULT_SQLITE_SCHEMA
    db_type = DatabaseType.SQLITE

    def __init__(self):
        self._conn: sqlite3.Connection | None = None

    def connect(self, url: str) -> None:
        """Open the database file read-only."""
        config = parse_database_url(url)

        if config.db_type != DatabaseType.SQLITE:
            raise ConnectionError(url, f"Expected SQLite URL, got {config.db_type.value}")

        try:
            if config.is_memory:
                self._conn = sqlite3.connect(config.database)
            else:
                if not Path(config.database).is_file():
                    raise ConnectionError(url, f"Database file not found: {config.database}")
                self._conn = sqlite3.connect(config.sqlite_uri(), uri=True)
            logger.info("SQLite database opened", database=config.database)
        except sqlite3.Error as e:
            logger.error("SQLite connection failed", error=str(e), exc_info=True)
            raise ConnectionError(url, str(e))

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("SQLite connection closed")

    def list_schemas(self) -> list[str]:
        try:
            rows = self._conn.execute("PRAGMA database_list").fetchall()
        except sqlite3.Error as e:
            raise SchemaIntrospectionError(str(e))
        return sorted(row[1] for row in rows if row[1] != "temp")

    def get_tables(self, schema: str | None = None) -> list[Table]:
        """Introspect tables, views and foreign keys of an SQLite database."""
        schema = schema or self.default_schema
        logger.info("Starting schema introspection", schema=schema)

        try:
            rows = self._conn.execute(
                f"SELECT name, type FROM {_quote(schema)}.sqlite_master "
                "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' "
                "ORDER BY name"
            ).fetchall()

            tables = [self._read_table(schema, name, kind == "view") for name, kind in rows]
            # Identifiers are case-insensitive: REFERENCES ZCustomers names zcustomers
            by_folded_name = {t.name.lower(): t for t in tables}
            for table in tables:
                if not table.is_view:
                    table.foreign_keys = self._read_foreign_keys(
                        schema, table.name, by_folded_name
                    )
        except sqlite3.Error as e:
            logger.error("Schema introspection failed", error=str(e), exc_info=True)
            raise SchemaIntrospectionError(str(e))

        logger.info(
            "Schema introspection complete",
            schema=schema,
            table_count=len(tables),
            fk_count=sum(len(t.foreign_keys) for t in tables),
        )
        return tables

    def _read_table(self, schema: str, name: str, is_view: bool) -> Table:
        # cid, name, type, notnull, dflt_value, pk (1-based position in the key)
        info = self._conn.execute(f"PRAGMA {_quote(schema)}.table_info({_quote(name)})").fetchall()

        key_positions = sorted((row[5], row[1]) for row in info if row[5])
        primary_key = tuple(col for _, col in key_positions)

        columns = []
        for _, col_name, col_type, notnull, default, pk in info:
            if not col_type:
                logger.warning(
                    "Column type unreadable, using 'unknown'", table=name, column=col_name
                )
                col_type = "unknown"
            columns.append(
                Column(
                    name=col_name,
                    data_type=col_type,
                    nullable=not notnull and not pk,
                    is_primary_key=bool(pk),
                    table=name,
                    default=default,
                )
            )

        return Table(
            name=name,
            schema=schema,
            columns=columns,
            primary_key=primary_key,
            foreign_keys=[],
            is_view=is_view,
        )

    def _read_foreign_keys(
        self, schema: str, table: str, by_folded_name: dict[str, Table]
    ) -> list[ForeignKeyConstraint]:
        # id, seq, table, from, to, on_update, on_delete, match
        rows = self._conn.execute(
            f"PRAGMA {_quote(schema)}.foreign_key_list({_quote(table)})"
        ).fetchall()

        grouped: dict[int, list[tuple]] = {}
        for row in sorted(rows, key=lambda r: (r[0], r[1])):
            grouped.setdefault(row[0], []).append(row)

        columns = {
            row[1]: not row[3]
            for row in self._conn.execute(
                f"PRAGMA {_quote(schema)}.table_info({_quote(table)})"
            ).fetchall()
        }

        fks = []
        for fk_id, parts in sorted(grouped.items()):
            parent = parts[0][2]
            parent_table = by_folded_name.get(parent.lower())
            if parent_table is not None:
                parent = parent_table.name
            child_columns = tuple(p[3] for p in parts)
            parent_columns: tuple[str, ...] = tuple(p[4] for p in parts)
            if any(col is None for col in parent_columns):
                # REFERENCES parent without a column list targets the parent's key
                parent_columns = parent_table.primary_key if parent_table else ()
                if len(parent_columns) != len(child_columns):
                    logger.warning(
                        "Foreign key target unresolved, skipping",
                        table=table,
                        parent_table=parent,
                        constraint_id=fk_id,
                    )
                    continue
            elif parent_table is not None:
                parent_columns = tuple(_column_name(parent_table, col) for col in parent_columns)

            fks.append(
                ForeignKeyConstraint(
                    name=f"fk_{table}_{fk_id}",
                    child_table=table,
                    child_columns=child_columns,
                    parent_table=parent,
                    parent_columns=parent_columns,
                    delete_rule=_rule(parts[0][6], table),
                    update_rule=_rule(parts[0][5], table),
                    is_nullable=any(columns.get(col, True) for col in child_columns),
                )
            )
        return fks


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _rule(code: Any, table: str) -> ReferentialAction:
    try:
        return ReferentialAction.from_code(code)
    except ValueError:
        logger.warning("Unknown referential action, using NO ACTION", table=table, code=code)
        return ReferentialAction.NO_ACTION


def _column_name(table: Table, name: str) -> str:
    """The column's declared spelling; unknown names are returned as given."""
    for column in table.columns:
        if column.name.lower() == name.lower():
            return column.name
    return name
