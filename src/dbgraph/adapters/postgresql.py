from typing import Any

import psycopg2

from dbgraph.adapters.base import MetadataAdapter
from dbgraph.config import DatabaseType
from dbgraph.constants import DEFAULT_POSTGRESQL_SCHEMA
from dbgraph.exceptions import ConnectionError, SchemaIntrospectionError
from dbgraph.logging import get_logger
from dbgraph.models import Column, ForeignKeyConstraint, ReferentialAction, Table
from dbgraph.utils.connection import parse_database_url

logger = get_logger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")


class PostgreSQLAdapter(MetadataAdapter):
    """PostgreSQL catalog reader."""

    default_schema = DEFAULT_POSTGRESQL_SCHEMA
    db_type = DatabaseType.POSTGRESQL

    def __init__(self, schema: str | None = None):
        self._conn: Any = None
        self._schema_name = schema or self.default_schema

    def connect(self, url: str) -> None:
        """Establish PostgreSQL connection."""
        config = parse_database_url(url)

        if config.db_type != DatabaseType.POSTGRESQL:
            raise ConnectionError(url, f"Expected PostgreSQL URL, got {config.db_type.value}")

        logger.debug("Connecting to PostgreSQL", target=config.display_name, user=config.user)

        try:
            self._conn = psycopg2.connect(**config.connect_kwargs())
            # Catalog reads only
            self._conn.autocommit = True
            self._conn.set_session(readonly=True)

            logger.info("PostgreSQL connection established", database=config.database)
        except psycopg2.Error as e:
            logger.error("PostgreSQL connection failed", error=str(e), exc_info=True)
            raise ConnectionError(url, str(e))

    def close(self) -> None:
        """Close PostgreSQL connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.debug("PostgreSQL connection closed")

    def list_schemas(self) -> list[str]:
        try:
            with self._conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT schema_name
                    FROM information_schema.schemata
                    WHERE schema_name NOT IN %s
                      AND schema_name NOT LIKE 'pg_temp_%%'
                      AND schema_name NOT LIKE 'pg_toast_temp_%%'
                    ORDER BY schema_name
                    """,
                    (SYSTEM_SCHEMAS,),
                )
                return [row[0] for row in cur.fetchall()]
        except psycopg2.Error as e:
            logger.error("Listing schemas failed", error=str(e), exc_info=True)
            raise SchemaIntrospectionError(str(e))

    def get_tables(self, schema: str | None = None) -> list[Table]:
        """Introspect tables, views and foreign keys of a PostgreSQL schema."""
        schema = schema or self._schema_name
        logger.info("Starting schema introspection", schema=schema)

        try:
            tables = self._fetch_tables(schema)
            logger.debug("Tables fetched", count=len(tables))

            fks = self._fetch_foreign_keys(schema)
            logger.debug("Foreign keys fetched", count=len(fks))
        except psycopg2.Error as e:
            logger.error("Schema introspection failed", error=str(e), exc_info=True)
            raise SchemaIntrospectionError(str(e))

        for fk in fks:
            owner = tables.get(fk.child_table)
            if owner is None:
                logger.warning(
                    "Foreign key on unknown table ignored",
                    constraint=fk.name,
                    table=fk.child_table,
                )
                continue
            owner.foreign_keys.append(fk)

        logger.info(
            "Schema introspection complete",
            schema=schema,
            table_count=len(tables),
            fk_count=len(fks),
        )
        return list(tables.values())

    def _fetch_tables(self, schema: str) -> dict[str, Table]:
        """Fetch all tables and views with their columns and primary keys."""
        all_columns: dict[str, list[tuple]] = {}
        with self._conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    table_name,
                    column_name,
                    data_type,
                    is_nullable,
                    column_default
                FROM information_schema.columns
                WHERE table_schema = %s
                ORDER BY table_name, ordinal_position
                """,
                (schema,),
            )
            for row in cur.fetchall():
                all_columns.setdefault(row[0], []).append(row[1:])

        all_pks: dict[str, list[str]] = {}
        with self._conn.cursor() as cur:
            cur.execute(
                """
                SELECT tc.table_name, kcu.column_name
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                    AND tc.table_schema = kcu.table_schema
                    AND tc.table_name = kcu.table_name
                WHERE tc.constraint_type = 'PRIMARY KEY'
                  AND tc.table_schema = %s
                ORDER BY tc.table_name, kcu.ordinal_position
                """,
                (schema,),
            )
            for table_name, col_name in cur.fetchall():
                all_pks.setdefault(table_name, []).append(col_name)

        with self._conn.cursor() as cur:
            cur.execute(
                """
                SELECT t.table_name, t.table_type, obj_description(c.oid, 'pg_class')
                FROM information_schema.tables t
                LEFT JOIN pg_namespace ns ON ns.nspname = t.table_schema
                LEFT JOIN pg_class c
                    ON c.relname = t.table_name AND c.relnamespace = ns.oid
                WHERE t.table_schema = %s
                  AND t.table_type IN ('BASE TABLE', 'VIEW')
                ORDER BY t.table_name
                """,
                (schema,),
            )
            table_rows = cur.fetchall()

        tables: dict[str, Table] = {}
        for table_name, table_type, comment in table_rows:
            pk_columns = tuple(all_pks.get(table_name, []))
            columns = [
                _make_column(table_name, row, pk_columns)
                for row in all_columns.get(table_name, [])
            ]
            tables[table_name] = Table(
                name=table_name,
                schema=schema,
                columns=columns,
                primary_key=pk_columns,
                foreign_keys=[],  # Populated from _fetch_foreign_keys
                is_view=table_type == "VIEW",
                comment=comment,
            )

        return tables

    def _fetch_foreign_keys(self, schema: str) -> list[ForeignKeyConstraint]:
        """Fetch all foreign key relationships declared in a schema.

        Uses pg_catalog instead of information_schema to correctly handle
        composite foreign keys. The information_schema approach produces a
        cross product between child and parent columns for multi-column FKs.
        """
        with self._conn.cursor() as cur:
            cur.execute(
                """
                SELECT
                    c.conname AS constraint_name,
                    child_cls.relname AS child_table,
                    a_child.attname AS child_column,
                    parent_cls.relname AS parent_table,
                    a_parent.attname AS parent_column,
                    NOT a_child.attnotnull AS is_nullable,
                    c.confdeltype AS delete_rule,
                    c.confupdtype AS update_rule
                FROM pg_constraint c
                JOIN pg_class child_cls ON c.conrelid = child_cls.oid
                JOIN pg_class parent_cls ON c.confrelid = parent_cls.oid
                JOIN pg_namespace ns ON child_cls.relnamespace = ns.oid
                CROSS JOIN LATERAL unnest(c.conkey, c.confkey)
                    WITH ORDINALITY AS u(child_attnum, parent_attnum, ord)
                JOIN pg_attribute a_child
                    ON a_child.attrelid = c.conrelid
                    AND a_child.attnum = u.child_attnum
                JOIN pg_attribute a_parent
                    ON a_parent.attrelid = c.confrelid
                    AND a_parent.attnum = u.parent_attnum
                WHERE c.contype = 'f'
                  AND ns.nspname = %s
                ORDER BY child_cls.relname, c.conname, u.ord
                """,
                (schema,),
            )

            # Group by (table, constraint name) for multi-column FKs
            fk_data: dict[tuple[str, str], dict] = {}
            for row in cur.fetchall():
                (
                    constraint_name,
                    child_table,
                    child_col,
                    parent_table,
                    parent_col,
                    is_nullable,
                    delete_rule,
                    update_rule,
                ) = row

                key = (child_table, constraint_name)
                if key not in fk_data:
                    fk_data[key] = {
                        "name": constraint_name,
                        "child_table": child_table,
                        "child_columns": [],
                        "parent_table": parent_table,
                        "parent_columns": [],
                        "is_nullable": False,
                        "delete_rule": delete_rule,
                        "update_rule": update_rule,
                    }

                fk_data[key]["child_columns"].append(child_col)
                fk_data[key]["parent_columns"].append(parent_col)
                fk_data[key]["is_nullable"] |= bool(is_nullable)

        return [
            ForeignKeyConstraint(
                name=data["name"],
                child_table=data["child_table"],
                child_columns=tuple(data["child_columns"]),
                parent_table=data["parent_table"],
                parent_columns=tuple(data["parent_columns"]),
                delete_rule=_rule(data["delete_rule"], data["name"]),
                update_rule=_rule(data["update_rule"], data["name"]),
                is_nullable=data["is_nullable"],
            )
            for data in fk_data.values()
        ]


def _make_column(table_name: str, row: tuple, pk_columns: tuple[str, ...]) -> Column:
    col_name, data_type, is_nullable, default = row
    if not data_type:
        logger.warning("Column type unreadable, using 'unknown'", table=table_name, column=col_name)
        data_type = "unknown"
    return Column(
        name=col_name,
        data_type=data_type,
        nullable=is_nullable == "YES",
        is_primary_key=col_name in pk_columns,
        table=table_name,
        default=default,
    )


def _rule(code: Any, constraint: str) -> ReferentialAction:
    try:
        return ReferentialAction.from_code(code)
    except ValueError:
        logger.warning("Unknown referential action, using NO ACTION", constraint=constraint, code=code)
        return ReferentialAction.NO_ACTION
