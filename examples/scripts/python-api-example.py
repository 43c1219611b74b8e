#!/usr/bin/env python3
"""Example: Using dbgraph as a Python library.

This script demonstrates how to use dbgraph programmatically to get a
load order for a schema and the script that clears the way for it.

Usage:
    DATABASE_URL=postgres://localhost/myapp python python-api-example.py
    DATABASE_URL=sqlite:///./app.db SCHEMA=main python python-api-example.py
"""

import os
from pathlib import Path

from dbgraph.config import AnalysisConfig
from dbgraph.core.analyzer import SchemaAnalyzer
from dbgraph.core.naming import NamingPolicy
from dbgraph.output.sql_out import RecursiveConstraintSQL


def plan_load(database_url: str, schema: str | None) -> str:
    """Analyze a schema and return the SQL that drops its recursive constraints.

    Args:
        database_url: Database connection URL
        schema: Schema to analyze (adapter default when None)

    Returns:
        SQL statements as a string (empty when there are no cycles)
    """
    config = AnalysisConfig(
        database_url=database_url,
        schema=schema,
        exclude_tables=r"django_.*|alembic_version",
        naming=NamingPolicy(table_names="plural", exclude_columns=r".*_by_id"),
    )

    result = SchemaAnalyzer(config).analyze()

    print(f"Load order for {result.schema} ({len(result.insertion_order)} tables):")
    for position, table in enumerate(result.insertion_order, start=1):
        print(f"  {position:3}. {table}")

    if result.implied_constraints:
        print("")
        print("Relationships inferred from column names:")
        for fk in result.implied_constraints:
            print(f"  - {fk.child_table}.{fk.child_columns[0]} -> {fk.parent_table}")

    if result.orphans:
        print("")
        print("Tables without relationships: " + ", ".join(t.name for t in result.orphans))

    if not result.recursive_constraints:
        return ""
    generator = RecursiveConstraintSQL(schema=result.schema, db_type=result.db_type)
    return generator.generate_remove(result.recursive_constraints)


def main():
    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL environment variable is required")
        print("")
        print("Example:")
        print("  DATABASE_URL=postgres://localhost/myapp python python-api-example.py")
        return

    sql = plan_load(database_url, os.environ.get("SCHEMA"))
    if not sql:
        print("")
        print("No reference cycles; tables load as listed.")
        return

    output_path = Path("removeRecursiveConstraints.sql")
    output_path.write_text(sql)
    print("")
    print(f"Run {output_path} before loading")


if __name__ == "__main__":
    main()
