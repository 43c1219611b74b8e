"""
Inference of foreign keys that the database does not declare.

Legacy schemas (and many ORM-managed ones) rely on naming conventions
instead of declared constraints. This module proposes those relationships
so that diagrams and orderings can account for them; they are always
flagged as implied, never presented as guaranteed.
"""

from dbgraph.core.naming import MatchConfidence, NamingPolicy
from dbgraph.logging import get_logger
from dbgraph.models import (
    Column,
    ConstraintProvenance,
    ForeignKeyConstraint,
    ReferentialAction,
    SchemaGraph,
    Table,
)

logger = get_logger(__name__)


def _candidate_parents(graph: SchemaGraph) -> list[tuple[Table, Column]]:
    """Tables with a single-column primary key, sorted by name."""
    parents = []
    for name in graph.get_table_names():
        table = graph.tables[name]
        if table.is_view or len(table.primary_key) != 1:
            continue
        pk_column = table.get_column(table.primary_key[0])
        if pk_column is not None:
            parents.append((table, pk_column))
    return parents


def _explicit_child_columns(graph: SchemaGraph) -> set[tuple[str, str]]:
    """(table, lower-cased column) pairs already used by explicit constraints."""
    return {
        (fk.child_table, col.lower())
        for fk in graph.constraints(ConstraintProvenance.EXPLICIT)
        for col in fk.child_columns
    }


def best_parent(
    policy: NamingPolicy,
    table: Table,
    column: Column,
    parents: list[tuple[Table, Column]],
) -> tuple[Table, Column, MatchConfidence] | None:
    """
    Pick the parent a column most plausibly references.

    Ties are broken by confidence, then by ascending parent table name, so
    the choice does not depend on catalog order.
    """
    is_own_pk = table.primary_key == (column.name,)
    best: tuple[Table, Column, MatchConfidence] | None = None

    for parent, pk_column in parents:
        is_self = parent.name == table.name
        if is_self and is_own_pk:
            continue

        confidence = policy.match(column.name, parent.name, pk_column.name)
        if confidence is None:
            continue
        # Matching your own primary key by name is the key itself, not a reference
        if is_self and confidence is MatchConfidence.EXACT:
            continue
        if is_own_pk and confidence < MatchConfidence.CONVENTION:
            continue
        if not policy.types_compatible(column.data_type, pk_column.data_type):
            continue

        if best is None or confidence > best[2]:
            best = (parent, pk_column, confidence)

    return best


def infer_implied_constraints(
    graph: SchemaGraph, policy: NamingPolicy | None = None
) -> list[ForeignKeyConstraint]:
    """
    Propose foreign keys absent from the declared metadata.

    Every column (tables in ascending name, columns in declared order) that
    is not already the child side of an explicit constraint is matched
    against every table with a single-column primary key. The graph is not
    modified.

    Args:
        graph: Relationship graph holding the explicit constraints
        policy: Matching policy (defaults to NamingPolicy())

    Returns:
        Implied constraints, in a reproducible order
    """
    policy = policy or NamingPolicy()
    parents = _candidate_parents(graph)
    consumed = _explicit_child_columns(graph)

    implied: list[ForeignKeyConstraint] = []
    for name in graph.get_table_names():
        table = graph.tables[name]
        for column in table.columns:
            if (table.name, column.name.lower()) in consumed:
                continue
            if policy.is_excluded(column.name):
                continue

            match = best_parent(policy, table, column, parents)
            if match is None:
                continue

            parent, pk_column, confidence = match
            fk = ForeignKeyConstraint(
                name=f"implied_{table.name}_{column.name}",
                child_table=table.name,
                child_columns=(column.name,),
                parent_table=parent.name,
                parent_columns=(pk_column.name,),
                delete_rule=ReferentialAction.NO_ACTION,
                update_rule=ReferentialAction.NO_ACTION,
                provenance=ConstraintProvenance.IMPLIED,
                is_nullable=column.nullable,
                description=f"Inferred from column name ({confidence.name.lower()} match)",
            )

            if graph.find_equivalent(fk) is not None:
                continue
            if graph.get_constraint(fk.constraint_id) is not None:
                logger.warning(
                    "Implied constraint name already taken, skipping",
                    constraint=fk.constraint_id,
                )
                continue

            logger.debug(
                "Inferred implied constraint",
                child=f"{table.name}.{column.name}",
                parent=f"{parent.name}.{pk_column.name}",
                confidence=confidence.name,
            )
            implied.append(fk)

    return implied


def apply_implied_constraints(
    graph: SchemaGraph, policy: NamingPolicy | None = None
) -> list[ForeignKeyConstraint]:
    """
    Infer implied constraints and register them on the graph.

    Returns:
        The constraints that were actually added
    """
    added = []
    for fk in infer_implied_constraints(graph, policy):
        if graph.add_constraint(fk):
            added.append(fk)

    logger.info("Implied constraint inference complete", implied=len(added))
    return added
