from pathlib import Path

from dbgraph.config import DatabaseType
from dbgraph.constants import REMOVE_RECURSIVE_SQL_FILE, RESTORE_RECURSIVE_SQL_FILE
from dbgraph.models import ForeignKeyConstraint


class RecursiveConstraintSQL:
    """
    Generates scripts that drop and re-create recursive constraints.

    Loading tables in insertion order only works once the constraints that
    close cycles are out of the way: run the remove script, load, then run
    the restore script. Implied constraints do not exist in the database
    and are never emitted.

    SQLite has no ``ALTER TABLE ... DROP CONSTRAINT`` and its foreign keys
    carry no catalog names, so for SQLite the scripts switch enforcement off
    and on for the loading connection and list the constraints as comments.
    """

    def __init__(self, schema: str | None = None, db_type: DatabaseType | None = None):
        self.schema = schema
        self.db_type = db_type or DatabaseType.POSTGRESQL

    def quote_identifier(self, name: str) -> str:
        """Quote an identifier with double quotes (SQL standard)."""
        return '"' + name.replace('"', '""') + '"'

    def _table_ref(self, table: str) -> str:
        if self.schema:
            return f"{self.quote_identifier(self.schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    def _columns(self, columns: tuple[str, ...]) -> str:
        return ", ".join(self.quote_identifier(col) for col in columns)

    @staticmethod
    def _emitted(constraints: list[ForeignKeyConstraint]) -> list[ForeignKeyConstraint]:
        return [fk for fk in constraints if not fk.is_implied]

    def drop_statement(self, fk: ForeignKeyConstraint) -> str:
        return (
            f"ALTER TABLE {self._table_ref(fk.child_table)} "
            f"DROP CONSTRAINT {self.quote_identifier(fk.name)};"
        )

    def add_statement(self, fk: ForeignKeyConstraint) -> str:
        return (
            f"ALTER TABLE {self._table_ref(fk.child_table)} "
            f"ADD CONSTRAINT {self.quote_identifier(fk.name)} "
            f"FOREIGN KEY ({self._columns(fk.child_columns)}) "
            f"REFERENCES {self._table_ref(fk.parent_table)} ({self._columns(fk.parent_columns)}) "
            f"ON DELETE {fk.delete_rule.value} ON UPDATE {fk.update_rule.value};"
        )

    def describe(self, fk: ForeignKeyConstraint) -> str:
        """One-line summary of a constraint, for comments."""
        return (
            f"{self._table_ref(fk.child_table)} ({self._columns(fk.child_columns)}) -> "
            f"{self._table_ref(fk.parent_table)} ({self._columns(fk.parent_columns)})"
        )

    def generate_remove(self, constraints: list[ForeignKeyConstraint]) -> str:
        if self.db_type == DatabaseType.SQLITE:
            lines = [
                "-- SQLite cannot drop a constraint from an existing table.",
                "-- Foreign key enforcement is switched off instead; it applies to the",
                "-- current connection only, so load the data on that same connection.",
                "-- Constraints that close reference cycles:",
            ]
            lines.extend(f"--   {self.describe(fk)}" for fk in self._emitted(constraints))
            lines.append("PRAGMA foreign_keys = OFF;")
            return "\n".join(lines) + "\n"

        lines = ["-- Drop constraints that close reference cycles"]
        lines.extend(self.drop_statement(fk) for fk in self._emitted(constraints))
        return "\n".join(lines) + "\n"

    def generate_restore(self, constraints: list[ForeignKeyConstraint]) -> str:
        if self.db_type == DatabaseType.SQLITE:
            lines = [
                "-- Switch foreign key enforcement back on and report violations",
                "PRAGMA foreign_keys = ON;",
                "PRAGMA foreign_key_check;",
            ]
            return "\n".join(lines) + "\n"

        lines = ["-- Re-create constraints that close reference cycles"]
        lines.extend(self.add_statement(fk) for fk in self._emitted(constraints))
        return "\n".join(lines) + "\n"

    def write(self, out_dir: Path | str, constraints: list[ForeignKeyConstraint]) -> list[Path]:
        """
        Write both scripts into ``out_dir``.

        Nothing is written when no explicit constraint needs suppressing.

        Returns:
            Paths written (empty or remove + restore)
        """
        if not self._emitted(constraints):
            return []

        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        remove_path = out_dir / REMOVE_RECURSIVE_SQL_FILE
        restore_path = out_dir / RESTORE_RECURSIVE_SQL_FILE
        remove_path.write_text(self.generate_remove(constraints), encoding="utf-8")
        restore_path.write_text(self.generate_restore(constraints), encoding="utf-8")
        return [remove_path, restore_path]
