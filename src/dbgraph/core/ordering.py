from collections.abc import Iterable
from dataclasses import dataclass, field

from dbgraph.logging import get_logger
from dbgraph.models import ForeignKeyConstraint, SchemaGraph

logger = get_logger(__name__)


@dataclass
class OrderResult:
    """Referential-integrity order of the tables of a pass."""

    insertion_order: list[str]  # Parents before children
    recursive_constraints: list[ForeignKeyConstraint] = field(default_factory=list)
    forced_tables: list[str] = field(default_factory=list)  # Placed by breaking a cycle

    @property
    def deletion_order(self) -> list[str]:
        """Children before parents: the exact reverse of the insertion order."""
        return list(reversed(self.insertion_order))

    def position(self, table: str) -> int:
        return self.insertion_order.index(table)

    def __len__(self) -> int:
        return len(self.insertion_order)


class TableOrderer:
    """
    Orders tables so that every parent precedes its children.

    Repeated topological reduction: each round places, in ascending name
    order, every table whose parents are all placed. A table's references to
    itself never hold it back; they are marked recursive when it is placed.
    When no table qualifies the remaining tables contain a cycle; the table
    with the fewest unresolved dependencies on other tables (ties by name) is
    placed anyway and those dependencies are marked recursive on the graph.
    Every round places at least one table, so the loop terminates on any
    input.
    """

    def __init__(self, graph: SchemaGraph):
        self.graph = graph

    def compute_order(self, tables: Iterable[str] | None = None) -> OrderResult:
        """
        Compute insertion order and the constraints suppressed to get it.

        Recursive marks from any earlier ordering of this graph are cleared
        first: the marks always describe the most recent order.

        Args:
            tables: Tables to order (default: every non-view table)

        Returns:
            OrderResult covering each table exactly once
        """
        if tables is None:
            names = [n for n in self.graph.get_table_names() if not self.graph.tables[n].is_view]
        else:
            names = sorted(set(tables))

        self.graph.clear_recursive()
        dependencies = self._dependencies(names)
        remaining = set(names)
        result = OrderResult(insertion_order=[])

        while remaining:
            ready = sorted(t for t in remaining if not self._blocking(t, dependencies, remaining))
            if ready:
                for table in ready:
                    self._place(table, dependencies, remaining, result)
                continue

            forced = min(
                remaining,
                key=lambda t: (len(self._blocking(t, dependencies, remaining)), t),
            )
            logger.debug(
                "Breaking reference cycle",
                table=forced,
                recursive=[
                    fk.constraint_id for fk in self._blocking(forced, dependencies, remaining)
                ],
            )
            result.forced_tables.append(forced)
            self._place(forced, dependencies, remaining, result)

        if result.recursive_constraints:
            logger.info(
                "Resolved reference cycles",
                forced_tables=len(result.forced_tables),
                recursive_constraints=len(result.recursive_constraints),
            )
        return result

    def _dependencies(self, names: list[str]) -> dict[str, list[ForeignKeyConstraint]]:
        in_scope = set(names)
        return {
            name: [fk for fk in self.graph.outgoing(name) if fk.parent_table in in_scope]
            for name in names
        }

    @staticmethod
    def _blocking(
        table: str, dependencies: dict[str, list[ForeignKeyConstraint]], remaining: set[str]
    ) -> list[ForeignKeyConstraint]:
        """Constraints to other unplaced tables; self-references excluded."""
        return [
            fk
            for fk in dependencies[table]
            if fk.parent_table in remaining and fk.parent_table != table
        ]

    def _place(
        self,
        table: str,
        dependencies: dict[str, list[ForeignKeyConstraint]],
        remaining: set[str],
        result: OrderResult,
    ) -> None:
        # Whatever still points at an unplaced table (itself included) is suppressed
        for fk in dependencies[table]:
            if fk.parent_table in remaining:
                self.graph.mark_recursive(fk)
                result.recursive_constraints.append(fk)
        result.insertion_order.append(table)
        remaining.discard(table)


def compute_order(graph: SchemaGraph, tables: Iterable[str] | None = None) -> OrderResult:
    """Convenience wrapper around TableOrderer.compute_order."""
    return TableOrderer(graph).compute_order(tables)
