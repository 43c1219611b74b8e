from collections.abc import Iterable
from dataclasses import dataclass

from dbgraph.models import ForeignKeyConstraint, SchemaGraph


@dataclass
class CycleInfo:
    """Information about a detected reference cycle."""

    tables: list[str]  # Tables in the cycle (ordered along child -> parent edges)
    constraints: list[ForeignKeyConstraint]  # Constraints forming the cycle's edges

    def __str__(self) -> str:
        """Human-readable cycle representation."""
        return " → ".join(self.tables + [self.tables[0]])

    @property
    def is_self_reference(self) -> bool:
        return len(self.tables) == 1


def graph_dependencies(
    graph: SchemaGraph,
    tables: Iterable[str] | None = None,
    skip_recursive: bool = False,
) -> dict[str, set[str]]:
    """
    Build a child -> parents dependency map restricted to a table set.

    Args:
        graph: Relationship graph
        tables: Tables to include (defaults to every table of the graph)
        skip_recursive: Leave out constraints marked recursive

    Returns:
        Map of table -> set of tables it depends on
    """
    names = set(graph.tables) if tables is None else set(tables)
    dependencies: dict[str, set[str]] = {t: set() for t in names}
    for table in names:
        for fk in graph.outgoing(table):
            if fk.parent_table not in names:
                continue
            if skip_recursive and graph.is_recursive(fk):
                continue
            dependencies[table].add(fk.parent_table)
    return dependencies


def find_cycles(dependencies: dict[str, set[str]]) -> list[list[str]]:
    """
    Find cycles in a dependency graph using depth-first search.

    A recursion stack detects back edges, which indicate cycles. Nodes and
    neighbors are visited in ascending name order so the result is stable.
    Each back edge yields one cycle; this is not an enumeration of every
    elementary cycle.

    Args:
        dependencies: Map of table -> set of tables it depends on

    Returns:
        List of cycles, where each cycle is a list of table names
    """
    cycles = []
    visited = set()
    rec_stack: list[str] = []

    def dfs(node: str) -> None:
        if node in rec_stack:
            cycle_start = rec_stack.index(node)
            cycles.append(rec_stack[cycle_start:])
            return

        if node in visited:
            return

        visited.add(node)
        rec_stack.append(node)

        for neighbor in sorted(dependencies.get(node, set())):
            dfs(neighbor)

        rec_stack.pop()

    for node in sorted(dependencies):
        if node not in visited:
            dfs(node)

    return cycles


def identify_cycle_constraints(
    graph: SchemaGraph, cycle: list[str]
) -> list[ForeignKeyConstraint]:
    """
    Identify the constraints that form edges in the cycle path.

    Only constraints on the path are returned, not every constraint between
    tables of the cycle. Given cycle [A, B] the path is A -> B -> A, so only
    constraints forming (A, B) or (B, A) are returned; a self-reference
    (A, A) is returned only for the single-table cycle [A].
    """
    cycle_edges: set[tuple[str, str]] = set()
    for i in range(len(cycle)):
        cycle_edges.add((cycle[i], cycle[(i + 1) % len(cycle)]))

    return [
        fk
        for table in cycle
        for fk in graph.outgoing(table)
        if fk.as_edge() in cycle_edges
    ]


def detect_cycles(
    graph: SchemaGraph,
    tables: Iterable[str] | None = None,
    skip_recursive: bool = False,
) -> list[CycleInfo]:
    """Detect reference cycles among ``tables`` (default: all tables)."""
    dependencies = graph_dependencies(graph, tables, skip_recursive=skip_recursive)
    return [
        CycleInfo(tables=cycle, constraints=identify_cycle_constraints(graph, cycle))
        for cycle in find_cycles(dependencies)
    ]
