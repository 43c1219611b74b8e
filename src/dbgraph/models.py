from dataclasses import dataclass, field
from enum import Enum

from dbgraph.exceptions import GraphFrozenError, MalformedMetadataError


class ConstraintProvenance(Enum):
    """Where a foreign key relationship came from."""

    EXPLICIT = "explicit"  # Declared in the database (or in configuration)
    IMPLIED = "implied"  # Inferred from naming conventions


class ReferentialAction(Enum):
    """ON DELETE / ON UPDATE rule of a foreign key."""

    CASCADE = "CASCADE"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"

    @classmethod
    def from_code(cls, code: "str | int | ReferentialAction | None") -> "ReferentialAction":
        """
        Parse a rule from the various catalog encodings.

        Accepts:
        - None (no rule recorded) -> NO ACTION
        - JDBC DatabaseMetaData integers (0=cascade, 1=restrict, 2=set null,
          3=no action, 4=set default)
        - PostgreSQL pg_constraint codes ('a', 'r', 'c', 'n', 'd')
        - One-letter upper-case codes ('C', 'A', 'N', 'R', 'S')
        - Rule text ("CASCADE", "no action", "SET_NULL", ...)

        Raises:
            ValueError: If the code is not recognized
        """
        if code is None:
            return cls.NO_ACTION
        if isinstance(code, ReferentialAction):
            return code
        if isinstance(code, int):
            if code not in _JDBC_RULES:
                raise ValueError(f"Unknown referential action code: {code!r}")
            return _JDBC_RULES[code]

        text = code.strip()
        if len(text) == 1:
            if text in _PG_RULES:
                return _PG_RULES[text]
            if text in _LETTER_RULES:
                return _LETTER_RULES[text]
            raise ValueError(f"Unknown referential action code: {code!r}")

        normalized = text.upper().replace("_", " ")
        for action in cls:
            if action.value == normalized:
                return action
        raise ValueError(f"Unknown referential action: {code!r}")


_JDBC_RULES = {
    0: ReferentialAction.CASCADE,
    1: ReferentialAction.RESTRICT,
    2: ReferentialAction.SET_NULL,
    3: ReferentialAction.NO_ACTION,
    4: ReferentialAction.SET_DEFAULT,
}

_PG_RULES = {
    "a": ReferentialAction.NO_ACTION,
    "r": ReferentialAction.RESTRICT,
    "c": ReferentialAction.CASCADE,
    "n": ReferentialAction.SET_NULL,
    "d": ReferentialAction.SET_DEFAULT,
}

_LETTER_RULES = {
    "C": ReferentialAction.CASCADE,
    "A": ReferentialAction.NO_ACTION,
    "N": ReferentialAction.NO_ACTION,  # Oracle
    "R": ReferentialAction.RESTRICT,
    "S": ReferentialAction.SET_NULL,  # Oracle
}


@dataclass(frozen=True)
class Column:
    """Represents a database column."""

    name: str
    data_type: str
    nullable: bool
    is_primary_key: bool
    table: str = ""  # Owning table name (back-reference, not ownership)
    default: str | None = None

    def __hash__(self) -> int:
        """Hash for use in sets and as dict keys."""
        return hash((self.table, self.name))


@dataclass(frozen=True)
class ForeignKeyConstraint:
    """
    A foreign key relationship: child table references parent table.

    Constraints are values. The SchemaGraph that registers one owns it and
    records whether it has been suppressed ("recursive") for ordering.
    """

    name: str
    child_table: str
    child_columns: tuple[str, ...]
    parent_table: str
    parent_columns: tuple[str, ...]
    delete_rule: ReferentialAction = ReferentialAction.NO_ACTION
    update_rule: ReferentialAction = ReferentialAction.NO_ACTION
    provenance: ConstraintProvenance = ConstraintProvenance.EXPLICIT
    is_nullable: bool = True
    description: str = ""

    def __hash__(self) -> int:
        """Hash for use in sets and as dict keys."""
        return hash((self.name, self.child_table, self.parent_table, self.provenance))

    @property
    def constraint_id(self) -> str:
        """Stable identifier used as the registry key."""
        return f"{self.child_table}.{self.name}"

    def as_edge(self) -> tuple[str, str]:
        """Return as directed edge (child -> parent)."""
        return (self.child_table, self.parent_table)

    @property
    def is_self_referential(self) -> bool:
        """Check if this FK references the same table."""
        return self.child_table == self.parent_table

    @property
    def is_implied(self) -> bool:
        return self.provenance is ConstraintProvenance.IMPLIED

    @property
    def column_pairs(self) -> list[tuple[str, str]]:
        """(child column, parent column) pairs in declared order."""
        return list(zip(self.child_columns, self.parent_columns))

    def is_equivalent_to(self, other: "ForeignKeyConstraint") -> bool:
        """
        Check if two constraints connect the same tables on the same columns.

        Column names are compared case-insensitively; order matters because
        position i of the child maps to position i of the parent.
        """
        return (
            self.child_table == other.child_table
            and self.parent_table == other.parent_table
            and _fold(self.child_columns) == _fold(other.child_columns)
            and _fold(self.parent_columns) == _fold(other.parent_columns)
        )


def _fold(columns: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(col.lower() for col in columns)


@dataclass
class Table:
    """Represents a database table or view."""

    name: str
    schema: str  # 'public' for postgres, 'main' for sqlite
    columns: list[Column]
    primary_key: tuple[str, ...]
    foreign_keys: list[ForeignKeyConstraint]  # Explicit outgoing constraints as ingested
    is_view: bool = False
    comment: str | None = None

    def __hash__(self) -> int:
        """Hash for use in sets and as dict keys."""
        return hash((self.name, self.schema))

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.name}"

    def get_pk_columns(self) -> tuple[str, ...]:
        """Get primary key column names."""
        return self.primary_key

    def get_column(self, name: str, case_sensitive: bool = True) -> Column | None:
        """Get a column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        if not case_sensitive:
            lowered = name.lower()
            for col in self.columns:
                if col.name.lower() == lowered:
                    return col
        return None

    def get_column_names(self) -> list[str]:
        """Get all column names."""
        return [col.name for col in self.columns]


@dataclass
class SchemaGraph:
    """
    Relationship graph of one analysis pass.

    Edges point child -> parent. The graph is the canonical owner of every
    constraint: constraints are registered once, keyed by their
    ``constraint_id``, and indexed by child and parent table so that
    parents, children and degrees are cheap to look up. Suppressing a
    constraint for ordering sets a flag here and never removes it.
    """

    tables: dict[str, Table]
    schema: str | None = None
    _constraints: dict[str, ForeignKeyConstraint] = field(default_factory=dict, repr=False)
    _by_child: dict[str, list[str]] = field(default_factory=dict, repr=False)
    _by_parent: dict[str, list[str]] = field(default_factory=dict, repr=False)
    _recursive: dict[str, None] = field(default_factory=dict, repr=False)
    _frozen: bool = field(default=False, repr=False)

    def get_table(self, name: str) -> Table | None:
        """Get a table by name."""
        return self.tables.get(name)

    def has_table(self, name: str) -> bool:
        """Check if a table exists."""
        return name in self.tables

    def get_table_names(self) -> list[str]:
        """Get all table names, sorted."""
        return sorted(self.tables.keys())

    # -- registry -----------------------------------------------------------

    def add_constraint(self, fk: ForeignKeyConstraint) -> bool:
        """
        Register a constraint.

        Returns:
            True if registered, False if an implied constraint was skipped
            because an equivalent explicit constraint already exists

        Raises:
            GraphFrozenError: If the graph has been frozen
            MalformedMetadataError: On a duplicate identifier or a duplicate
                explicit constraint
        """
        if self._frozen:
            raise GraphFrozenError(fk.constraint_id)

        if fk.constraint_id in self._constraints:
            raise MalformedMetadataError(
                f"duplicate constraint '{fk.name}'", table=fk.child_table
            )

        equivalent = self.find_equivalent(fk)
        if equivalent is not None:
            if fk.is_implied:
                return False
            if not equivalent.is_implied:
                raise MalformedMetadataError(
                    f"constraint '{fk.name}' duplicates explicit constraint '{equivalent.name}'",
                    table=fk.child_table,
                )

        self._constraints[fk.constraint_id] = fk
        self._by_child.setdefault(fk.child_table, []).append(fk.constraint_id)
        self._by_parent.setdefault(fk.parent_table, []).append(fk.constraint_id)
        return True

    def find_equivalent(self, fk: ForeignKeyConstraint) -> ForeignKeyConstraint | None:
        """Find a registered constraint on the same tables and columns."""
        for constraint in self.outgoing(fk.child_table):
            if constraint.is_equivalent_to(fk):
                return constraint
        return None

    def get_constraint(self, constraint_id: str) -> ForeignKeyConstraint | None:
        return self._constraints.get(constraint_id)

    def constraints(
        self, provenance: ConstraintProvenance | None = None
    ) -> list[ForeignKeyConstraint]:
        """All constraints in registration order, optionally by provenance."""
        if provenance is None:
            return list(self._constraints.values())
        return [fk for fk in self._constraints.values() if fk.provenance is provenance]

    def implied_constraints(self) -> list[ForeignKeyConstraint]:
        return self.constraints(ConstraintProvenance.IMPLIED)

    def freeze(self) -> None:
        """End the mutation window; only recursive marks may change afterwards."""
        self._frozen = True

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    # -- adjacency ----------------------------------------------------------

    def outgoing(self, table: str) -> list[ForeignKeyConstraint]:
        """Constraints where ``table`` is the child."""
        return [self._constraints[cid] for cid in self._by_child.get(table, [])]

    def incoming(self, table: str) -> list[ForeignKeyConstraint]:
        """Constraints where ``table`` is the parent."""
        return [self._constraints[cid] for cid in self._by_parent.get(table, [])]

    def get_parents(self, table: str) -> list[tuple[str, ForeignKeyConstraint]]:
        """
        Get tables this table depends on (FK targets).

        Includes both explicit and implied constraints.

        Returns:
            List of (parent_table_name, constraint) tuples
        """
        return [(fk.parent_table, fk) for fk in self.outgoing(table)]

    def get_children(self, table: str) -> list[tuple[str, ForeignKeyConstraint]]:
        """
        Get tables that depend on this table (FK sources).

        Includes both explicit and implied constraints.

        Returns:
            List of (child_table_name, constraint) tuples
        """
        return [(fk.child_table, fk) for fk in self.incoming(table)]

    def out_degree(self, table: str) -> int:
        return len(self._by_child.get(table, ()))

    def in_degree(self, table: str) -> int:
        return len(self._by_parent.get(table, ()))

    # -- recursive marks ----------------------------------------------------

    def mark_recursive(self, fk: ForeignKeyConstraint) -> None:
        """Suppress a constraint for ordering purposes."""
        if fk.constraint_id not in self._constraints:
            raise KeyError(f"Constraint '{fk.constraint_id}' is not registered")
        self._recursive[fk.constraint_id] = None

    def is_recursive(self, fk: ForeignKeyConstraint) -> bool:
        return fk.constraint_id in self._recursive

    def recursive_constraints(self) -> list[ForeignKeyConstraint]:
        """Constraints marked recursive, in the order they were marked."""
        return [self._constraints[cid] for cid in self._recursive]

    def clear_recursive(self) -> None:
        self._recursive.clear()
