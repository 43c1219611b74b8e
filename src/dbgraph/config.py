import re
from dataclasses import dataclass, field
from enum import Enum

from dbgraph.constants import DEFAULT_MAX_DETAILED_TABLES
from dbgraph.core.naming import NamingPolicy
from dbgraph.models import ForeignKeyConstraint


class DatabaseType(Enum):
    """Supported database types."""

    POSTGRESQL = "postgresql"
    SQLITE = "sqlite"


class OutputFormat(Enum):
    """Output files an analysis pass can write."""

    TEXT = "text"  # insertionOrder.txt / deletionOrder.txt
    JSON = "json"  # relationships.json
    SQL = "sql"  # remove/restore recursive constraint scripts


def compile_pattern(pattern: str | None, option: str) -> re.Pattern[str] | None:
    """
    Compile a user-supplied regex.

    Raises:
        ValueError: If the pattern is not a valid regular expression
    """
    if pattern is None or pattern == "":
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ValueError(f"Invalid regular expression for {option}: {pattern!r} ({e})")


def table_selected(
    name: str,
    include: re.Pattern[str] | None,
    exclude: re.Pattern[str] | None,
) -> bool:
    """Whether a table passes the inclusion/exclusion patterns (full match)."""
    if include is not None and not include.fullmatch(name):
        return False
    if exclude is not None and exclude.fullmatch(name):
        return False
    return True


@dataclass
class AnalysisConfig:
    """Configuration for an analysis pass."""

    database_url: str | None = None
    schema: str | None = None  # Adapter default when None
    include_tables: str | None = None  # Regex; tables must fully match
    exclude_tables: str | None = None  # Regex; matching tables are dropped
    implied_constraints: bool = True
    naming: NamingPolicy = field(default_factory=NamingPolicy)
    virtual_foreign_keys: list[ForeignKeyConstraint] = field(default_factory=list)
    exclude_columns: str | None = None  # Regex of columns left out of detailed diagrams
    max_detailed_tables: int = DEFAULT_MAX_DETAILED_TABLES
    output_dir: str | None = None
    output_formats: set[OutputFormat] = field(
        default_factory=lambda: {OutputFormat.TEXT, OutputFormat.JSON, OutputFormat.SQL}
    )
    allow_empty: bool = False  # Multi-schema runs keep going past empty schemas
    verbose: bool = False
    quiet: bool = False

    def __post_init__(self) -> None:
        self._include = compile_pattern(self.include_tables, "include_tables")
        self._exclude = compile_pattern(self.exclude_tables, "exclude_tables")
        compile_pattern(self.exclude_columns, "exclude_columns")
        if self.max_detailed_tables < 0:
            raise ValueError("max_detailed_tables must not be negative")

    def selects_table(self, name: str) -> bool:
        return table_selected(name, self._include, self._exclude)
