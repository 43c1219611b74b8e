from collections.abc import Iterable
from dataclasses import replace

from dbgraph.exceptions import MalformedMetadataError
from dbgraph.logging import get_logger
from dbgraph.models import ForeignKeyConstraint, SchemaGraph, Table

logger = get_logger(__name__)


def validate_tables(tables: Iterable[Table]) -> None:
    """
    Reject metadata that would break the graph invariants.

    Checks:
    - table names are unique within the pass
    - column names are unique within a table
    - each ingested constraint belongs to its owning table, is explicit,
      has non-empty child/parent column lists of equal length, and only
      names columns that exist (parent columns are checked when the parent
      table is part of the pass)

    Raises:
        MalformedMetadataError: On the first violation found
    """
    by_name: dict[str, Table] = {}
    for table in tables:
        if table.name in by_name:
            raise MalformedMetadataError("duplicate table name", table=table.name)
        by_name[table.name] = table

    for table in by_name.values():
        seen_columns: set[str] = set()
        for column in table.columns:
            if column.name in seen_columns:
                raise MalformedMetadataError(
                    f"duplicate column '{column.name}'", table=table.name
                )
            seen_columns.add(column.name)

        for pk_column in table.primary_key:
            if pk_column not in seen_columns:
                raise MalformedMetadataError(
                    f"primary key column '{pk_column}' does not exist", table=table.name
                )

        for fk in table.foreign_keys:
            if fk.child_table != table.name:
                raise MalformedMetadataError(
                    f"constraint '{fk.name}' belongs to table '{fk.child_table}'",
                    table=table.name,
                )
            if fk.is_implied:
                raise MalformedMetadataError(
                    f"ingested constraint '{fk.name}' must be explicit", table=table.name
                )
            _validate_constraint_columns(fk, table, by_name.get(fk.parent_table))


def _validate_constraint_columns(
    fk: ForeignKeyConstraint, child: Table, parent: Table | None
) -> None:
    if not fk.child_columns or not fk.parent_columns:
        raise MalformedMetadataError(
            f"constraint '{fk.name}' has no columns", table=child.name
        )
    if len(fk.child_columns) != len(fk.parent_columns):
        raise MalformedMetadataError(
            f"constraint '{fk.name}' maps {len(fk.child_columns)} child columns "
            f"to {len(fk.parent_columns)} parent columns",
            table=child.name,
        )
    for col in fk.child_columns:
        if child.get_column(col) is None:
            raise MalformedMetadataError(
                f"constraint '{fk.name}' references missing column '{col}'",
                table=child.name,
            )
    if parent is not None:
        for col in fk.parent_columns:
            if parent.get_column(col) is None:
                raise MalformedMetadataError(
                    f"constraint '{fk.name}' references missing column "
                    f"'{parent.name}.{col}'",
                    table=child.name,
                )


def resolve_virtual_foreign_key(
    vfk: ForeignKeyConstraint, tables: dict[str, Table]
) -> ForeignKeyConstraint | None:
    """
    Complete a configured relationship against the ingested tables.

    Parent columns default to the parent's primary key. Returns None (with
    a warning) when either table is absent or the columns cannot be resolved.
    """
    child = tables.get(vfk.child_table)
    parent = tables.get(vfk.parent_table)
    if child is None or parent is None:
        logger.warning(
            "Skipping virtual foreign key: table not in schema",
            name=vfk.name,
            child_table=vfk.child_table,
            parent_table=vfk.parent_table,
        )
        return None

    parent_columns = vfk.parent_columns or parent.primary_key
    if len(parent_columns) != len(vfk.child_columns):
        logger.warning(
            "Skipping virtual foreign key: column count mismatch",
            name=vfk.name,
            child_columns=list(vfk.child_columns),
            parent_columns=list(parent_columns),
        )
        return None

    missing = [c for c in vfk.child_columns if child.get_column(c) is None]
    missing += [f"{parent.name}.{c}" for c in parent_columns if parent.get_column(c) is None]
    if missing:
        logger.warning(
            "Skipping virtual foreign key: unknown columns",
            name=vfk.name,
            missing=missing,
        )
        return None

    nullable = any(child.get_column(c).nullable for c in vfk.child_columns)
    return replace(vfk, parent_columns=tuple(parent_columns), is_nullable=nullable)


def build_schema_graph(
    tables: Iterable[Table],
    virtual_foreign_keys: Iterable[ForeignKeyConstraint] = (),
    schema: str | None = None,
) -> SchemaGraph:
    """
    Validate tables and register their explicit constraints.

    Constraints are registered table by table in ascending table name, then
    in ingested order, so registration order is reproducible. Configured
    virtual relationships are registered last, as explicit constraints.

    Args:
        tables: Ingested tables (and views)
        virtual_foreign_keys: Relationships declared in configuration
        schema: Schema name recorded on the graph

    Returns:
        An unfrozen SchemaGraph, ready for implied-constraint inference

    Raises:
        MalformedMetadataError: If the metadata is not well-formed
    """
    table_list = list(tables)
    validate_tables(table_list)

    for table in table_list:
        if any(col.table != table.name for col in table.columns):
            table.columns = [replace(col, table=table.name) for col in table.columns]

    graph = SchemaGraph(
        tables={t.name: t for t in sorted(table_list, key=lambda t: t.name)},
        schema=schema or (table_list[0].schema if table_list else None),
    )

    for name in graph.get_table_names():
        for fk in graph.tables[name].foreign_keys:
            graph.add_constraint(fk)
            if fk.parent_table not in graph.tables:
                logger.debug(
                    "Constraint references a table outside this pass",
                    constraint=fk.name,
                    child_table=fk.child_table,
                    parent_table=fk.parent_table,
                )

    for vfk in virtual_foreign_keys:
        resolved = resolve_virtual_foreign_key(vfk, graph.tables)
        if resolved is None:
            continue
        if graph.find_equivalent(resolved) is not None:
            logger.debug("Virtual foreign key already declared in database", name=vfk.name)
            continue
        graph.add_constraint(resolved)

    logger.debug(
        "Built relationship graph",
        tables=len(graph.tables),
        constraints=len(graph.constraints()),
    )
    return graph
