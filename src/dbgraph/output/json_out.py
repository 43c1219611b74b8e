import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dbgraph.models import Column, ForeignKeyConstraint, SchemaGraph, Table

if TYPE_CHECKING:
    from dbgraph.core.analyzer import AnalysisResult


class GraphJSONExporter:
    """
    Serializes an analysis pass as a single JSON document.

    Format:
    {
        "generated_by": "dbgraph",
        "schema": "public",
        "tables": [{"name": ..., "columns": [...], "in_degree": N, ...}],
        "constraints": [{"id": "orders.fk_customer", "recursive": false, ...}],
        "insertion_order": [...],
        "deletion_order": [...],
        "orphans": [...],
        "implied_constraints": [...],
        "cycles": [{"tables": [...], "constraints": [...]}],
        "coverage": {"detailed": true, "excluded_columns": [...], ...}
    }

    Keys are sorted and every list has a defined order, so identical
    metadata always produces identical bytes.
    """

    def __init__(self, pretty: bool = True, indent: int = 2):
        self.indent = indent if pretty else None

    def generate(self, result: "AnalysisResult") -> str:
        """Render an analysis result as JSON text (newline-terminated)."""
        text = json.dumps(
            self.to_dict(result),
            indent=self.indent,
            sort_keys=True,
            ensure_ascii=False,
        )
        return text + "\n"

    def to_dict(self, result: "AnalysisResult") -> dict[str, Any]:
        graph = result.graph
        orphan_names = {t.name for t in result.orphans}
        excluded = result.coverage.excluded_columns

        return {
            "generated_by": "dbgraph",
            "schema": result.schema,
            "tables": [
                self._table(graph, graph.tables[name], name in orphan_names, excluded)
                for name in graph.get_table_names()
            ],
            "constraints": [
                self._constraint(graph, fk)
                for fk in sorted(graph.constraints(), key=lambda fk: fk.constraint_id)
            ],
            "insertion_order": result.insertion_order,
            "deletion_order": result.deletion_order,
            "recursive_constraints": [fk.constraint_id for fk in result.recursive_constraints],
            "orphans": sorted(orphan_names),
            "implied_constraints": sorted(fk.constraint_id for fk in result.implied_constraints),
            "cycles": [
                {
                    "tables": cycle.tables,
                    "constraints": [fk.constraint_id for fk in cycle.constraints],
                }
                for cycle in result.cycles
            ],
            "coverage": {
                "detailed": result.coverage.detailed,
                "table_count": result.coverage.table_count,
                "view_count": result.coverage.view_count,
                "excluded_columns": result.coverage.excluded_column_names(),
            },
        }

    @staticmethod
    def _table(
        graph: SchemaGraph, table: Table, orphan: bool, excluded: set[Column]
    ) -> dict[str, Any]:
        return {
            "name": table.name,
            "schema": table.schema,
            "is_view": table.is_view,
            "comment": table.comment,
            "primary_key": list(table.primary_key),
            "columns": [
                {
                    "name": col.name,
                    "data_type": col.data_type,
                    "nullable": col.nullable,
                    "is_primary_key": col.is_primary_key,
                    "excluded": col in excluded,
                }
                for col in table.columns
            ],
            "in_degree": graph.in_degree(table.name),
            "out_degree": graph.out_degree(table.name),
            "orphan": orphan,
        }

    @staticmethod
    def _constraint(graph: SchemaGraph, fk: ForeignKeyConstraint) -> dict[str, Any]:
        return {
            "id": fk.constraint_id,
            "name": fk.name,
            "child_table": fk.child_table,
            "child_columns": list(fk.child_columns),
            "parent_table": fk.parent_table,
            "parent_columns": list(fk.parent_columns),
            "delete_rule": fk.delete_rule.value,
            "update_rule": fk.update_rule.value,
            "provenance": fk.provenance.value,
            "nullable": fk.is_nullable,
            "recursive": graph.is_recursive(fk),
            "description": fk.description,
        }

    def write_to_file(self, result: "AnalysisResult", file_path: Path | str) -> Path:
        """
        Write the JSON document for ``result``.

        Raises:
            OSError: If file operations fail
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(self.generate(result), encoding="utf-8")
        return file_path
