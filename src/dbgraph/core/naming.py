"""
Naming conventions used to infer undeclared foreign keys.

The policy is a pure function of names and declared types so it can be
tested without building a graph. The default convention recognizes:

- ``<singular table name>_id`` and ``<table name>_id`` (snake_case), and the
  same names in camelCase (``customerId``, ``CustomerID``);
- an exact repeat of a parent's primary-key column name when that name is
  more specific than a bare ``id`` (``customer_code`` -> ``customers.customer_code``);
- role-prefixed forms of the above (``billing_address_id`` -> ``addresses``,
  ``parent_category_id`` -> ``categories``), ranked below the other two.

Table names may be plural (``customers``), singular (``customer``) or either
(``auto``, the default).
"""

import re
from dataclasses import dataclass
from enum import IntEnum

import inflect

from dbgraph.constants import DEFAULT_ID_SUFFIXES


class MatchConfidence(IntEnum):
    """How strongly a column name points at a parent table. Higher wins."""

    ROLE = 1  # <role>_<table>_id
    CONVENTION = 2  # <table>_id
    EXACT = 3  # Same name as the parent's (non-generic) primary key


VALID_TABLE_NAME_FORMS = ("plural", "singular", "auto")
VALID_NAMING_STYLES = ("snake", "camel", "auto")

_inflect = inflect.engine()

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[\s\-_.]+")

_TYPE_ALIASES = {
    "int": "integer",
    "int4": "integer",
    "integer": "integer",
    "serial": "integer",
    "serial4": "integer",
    "mediumint": "integer",
    "bigint": "bigint",
    "int8": "bigint",
    "bigserial": "bigint",
    "serial8": "bigint",
    "smallint": "smallint",
    "int2": "smallint",
    "smallserial": "smallint",
    "varchar": "text",
    "character varying": "text",
    "nvarchar": "text",
    "text": "text",
    "clob": "text",
    "char": "char",
    "character": "char",
    "bpchar": "char",
    "nchar": "char",
    "numeric": "numeric",
    "decimal": "numeric",
    "number": "numeric",
    "uuid": "uuid",
    "uniqueidentifier": "uuid",
}


def normalize(name: str) -> str:
    """
    Fold a column or table name to lower snake_case.

    >>> normalize("CustomerID")
    'customer_id'
    >>> normalize("order-items")
    'order_items'
    """
    spaced = _CAMEL_BOUNDARY.sub("_", name.strip())
    return _SEPARATORS.sub("_", spaced).strip("_").lower()


def singularize(word: str) -> str:
    """English singular of the last word of a snake_case name."""
    head, sep, last = word.rpartition("_")
    if not last:
        return word
    return head + sep + (_inflect.singular_noun(last) or last)


def normalize_type(data_type: str) -> str:
    """Collapse a declared type to a comparable family name."""
    base = data_type.strip().lower()
    base = re.sub(r"\(.*\)", "", base).strip()
    base = base.replace("unsigned", "").strip()
    return _TYPE_ALIASES.get(base, base)


@dataclass(frozen=True)
class NamingPolicy:
    """
    Configurable matching policy for implied foreign keys.

    Attributes:
        table_names: "plural", "singular" or "auto" - the form table names take
        naming_style: "snake", "camel" or "auto" - how column names are written
        id_suffixes: Key suffixes recognized after a table name
        exclude_columns: Regex; matching child columns are never inferred
    """

    table_names: str = "auto"
    naming_style: str = "auto"
    id_suffixes: tuple[str, ...] = DEFAULT_ID_SUFFIXES
    exclude_columns: str | None = None

    def __post_init__(self) -> None:
        if self.table_names not in VALID_TABLE_NAME_FORMS:
            raise ValueError(
                f"table_names must be one of: {', '.join(VALID_TABLE_NAME_FORMS)}"
            )
        if self.naming_style not in VALID_NAMING_STYLES:
            raise ValueError(f"naming_style must be one of: {', '.join(VALID_NAMING_STYLES)}")
        if not self.id_suffixes:
            raise ValueError("id_suffixes must not be empty")
        if self.exclude_columns:
            try:
                re.compile(self.exclude_columns)
            except re.error as e:
                raise ValueError(f"Invalid exclude_columns pattern: {e}")

    def column_name(self, name: str) -> str | None:
        """
        Normalize a column name under the configured style.

        Returns None when the name is not written in the configured style
        (e.g. a camelCase name while the policy is strictly "snake").
        """
        if self.naming_style == "snake" and name != name.lower():
            return None
        if self.naming_style == "camel" and "_" in name:
            return None
        return normalize(name)

    def is_excluded(self, column_name: str) -> bool:
        if not self.exclude_columns:
            return False
        return re.fullmatch(self.exclude_columns, column_name) is not None

    def entity_names(self, table_name: str) -> list[str]:
        """Names a row of ``table_name`` goes by in referencing columns."""
        table = normalize(table_name)
        if self.table_names == "plural":
            return [singularize(table)]
        if self.table_names == "singular":
            return [table]
        return list(dict.fromkeys([singularize(table), table]))

    def candidate_names(self, table_name: str, pk_column: str) -> list[str]:
        """Normalized column names that reference ``table_name`` by convention."""
        entities = self.entity_names(table_name)
        suffixes = [normalize(s) for s in self.id_suffixes]
        pk = normalize(pk_column)
        if pk not in suffixes and not any(pk.startswith(e + "_") for e in entities):
            suffixes.append(pk)

        candidates = []
        for entity in entities:
            for suffix in suffixes:
                candidates.append(f"{entity}_{suffix}")
        return list(dict.fromkeys(candidates))

    def match(
        self, child_column: str, parent_table: str, parent_pk: str
    ) -> MatchConfidence | None:
        """
        Decide whether ``child_column`` references ``parent_table``.

        Args:
            child_column: Candidate referencing column name
            parent_table: Candidate parent table name
            parent_pk: The parent's single primary-key column name

        Returns:
            MatchConfidence, or None if the names do not match
        """
        column = self.column_name(child_column)
        if column is None:
            return None

        pk = normalize(parent_pk)
        generic = {normalize(s) for s in self.id_suffixes}
        if column == pk and pk not in generic:
            return MatchConfidence.EXACT

        candidates = self.candidate_names(parent_table, parent_pk)
        if column in candidates:
            return MatchConfidence.CONVENTION
        if any(column.endswith("_" + candidate) for candidate in candidates):
            return MatchConfidence.ROLE
        return None

    def types_compatible(self, child_type: str, parent_type: str) -> bool:
        return normalize_type(child_type) == normalize_type(parent_type)
