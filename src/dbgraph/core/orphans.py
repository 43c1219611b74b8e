import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from dbgraph.constants import DEFAULT_MAX_DETAILED_TABLES
from dbgraph.models import Column, SchemaGraph, Table


def find_orphans(graph: SchemaGraph, tables: Iterable[str] | None = None) -> list[Table]:
    """
    Find tables with no modeled relationship to any table.

    A table is an orphan when it has zero incoming and zero outgoing
    constraints, explicit or implied. Views are considered too. Reporting
    only: orphans are ordered like any other table.

    Returns:
        Orphan tables sorted by name
    """
    names = graph.get_table_names() if tables is None else sorted(set(tables))
    return [
        graph.tables[name]
        for name in names
        if graph.in_degree(name) == 0 and graph.out_degree(name) == 0
    ]


@dataclass
class CoverageReport:
    """What a renderer may show in full and what it should leave out."""

    detailed: bool  # Small enough for all-column diagrams
    excluded_columns: set[Column] = field(default_factory=set)
    table_count: int = 0
    view_count: int = 0

    def excluded_column_names(self) -> list[str]:
        """Excluded columns as sorted ``table.column`` names."""
        return sorted(f"{col.table}.{col.name}" for col in self.excluded_columns)


def analyze_coverage(
    graph: SchemaGraph,
    exclude_columns: str | None = None,
    max_detailed_tables: int = DEFAULT_MAX_DETAILED_TABLES,
) -> CoverageReport:
    """
    Decide which columns are left out of detailed rendering.

    Columns whose name fully matches ``exclude_columns`` are excluded unless
    they take part in a constraint (either side), since relationship edges
    need their endpoints.

    Args:
        graph: Relationship graph
        exclude_columns: Regex of column names to leave out
        max_detailed_tables: Above this many tables/views only key columns
            are rendered

    Returns:
        CoverageReport
    """
    tables = list(graph.tables.values())
    view_count = sum(1 for t in tables if t.is_view)
    report = CoverageReport(
        detailed=len(tables) <= max_detailed_tables,
        table_count=len(tables) - view_count,
        view_count=view_count,
    )
    if not exclude_columns:
        return report

    pattern = re.compile(exclude_columns)
    related: set[tuple[str, str]] = set()
    for fk in graph.constraints():
        related.update((fk.child_table, col) for col in fk.child_columns)
        related.update((fk.parent_table, col) for col in fk.parent_columns)

    for table in tables:
        for column in table.columns:
            if (table.name, column.name) in related:
                continue
            if pattern.fullmatch(column.name):
                report.excluded_columns.add(column)

    return report
