"""Shared pytest fixtures for dbgraph tests."""

import sqlite3
from pathlib import Path

import pytest

from dbgraph.adapters.base import MetadataAdapter
from dbgraph.models import Column, ForeignKeyConstraint, ReferentialAction, Table


def make_table(
    name: str,
    columns: list[tuple[str, str, bool]],
    primary_key: tuple[str, ...] = ("id",),
    foreign_keys: list[ForeignKeyConstraint] | None = None,
    schema: str = "main",
    is_view: bool = False,
) -> Table:
    """Build a table from (name, type, nullable) column triples."""
    return Table(
        name=name,
        schema=schema,
        columns=[
            Column(
                name=col,
                data_type=data_type,
                nullable=nullable,
                is_primary_key=col in primary_key,
                table=name,
            )
            for col, data_type, nullable in columns
        ],
        primary_key=primary_key,
        foreign_keys=foreign_keys or [],
        is_view=is_view,
    )


def make_fk(
    name: str,
    child: str,
    child_columns: tuple[str, ...],
    parent: str,
    parent_columns: tuple[str, ...] = ("id",),
    nullable: bool = False,
    delete_rule: ReferentialAction = ReferentialAction.NO_ACTION,
) -> ForeignKeyConstraint:
    return ForeignKeyConstraint(
        name=name,
        child_table=child,
        child_columns=child_columns,
        parent_table=parent,
        parent_columns=parent_columns,
        delete_rule=delete_rule,
        is_nullable=nullable,
    )


@pytest.fixture
def shop_tables() -> list[Table]:
    """
    customers <- orders <- order_items, plus self-referencing employees.

    Every relationship is declared.
    """
    customers = make_table(
        "customers",
        [("id", "integer", False), ("name", "text", False), ("email", "text", True)],
    )
    orders = make_table(
        "orders",
        [("id", "integer", False), ("customer_id", "integer", False), ("total", "numeric", True)],
        foreign_keys=[make_fk("fk_orders_customer", "orders", ("customer_id",), "customers")],
    )
    order_items = make_table(
        "order_items",
        [("id", "integer", False), ("order_id", "integer", False), ("quantity", "integer", False)],
        foreign_keys=[
            make_fk(
                "fk_items_order",
                "order_items",
                ("order_id",),
                "orders",
                delete_rule=ReferentialAction.CASCADE,
            )
        ],
    )
    employees = make_table(
        "employees",
        [("id", "integer", False), ("name", "text", False), ("manager_id", "integer", True)],
        foreign_keys=[
            make_fk("fk_employees_manager", "employees", ("manager_id",), "employees", nullable=True)
        ],
    )
    return [customers, orders, order_items, employees]


@pytest.fixture
def undeclared_tables() -> list[Table]:
    """The shop schema with no declared foreign keys at all."""
    return [
        make_table("customers", [("id", "integer", False), ("name", "text", False)]),
        make_table(
            "orders",
            [("id", "integer", False), ("customer_id", "integer", False)],
        ),
        make_table(
            "order_items",
            [("id", "integer", False), ("order_id", "integer", False), ("note", "text", True)],
        ),
        make_table("settings", [("key", "text", False), ("value", "text", True)], primary_key=("key",)),
    ]


@pytest.fixture
def two_table_cycle() -> list[Table]:
    """departments.head_id -> employees, employees.department_id -> departments."""
    return [
        make_table(
            "departments",
            [("id", "integer", False), ("head_id", "integer", True)],
            foreign_keys=[make_fk("fk_dept_head", "departments", ("head_id",), "employees", nullable=True)],
        ),
        make_table(
            "employees",
            [("id", "integer", False), ("department_id", "integer", False)],
            foreign_keys=[make_fk("fk_emp_dept", "employees", ("department_id",), "departments")],
        ),
    ]


@pytest.fixture
def three_table_cycle() -> list[Table]:
    """a -> b -> c -> a, plus d depending on a."""
    return [
        make_table(
            "a",
            [("id", "integer", False), ("b_ref", "integer", True)],
            foreign_keys=[make_fk("fk_a_b", "a", ("b_ref",), "b", nullable=True)],
        ),
        make_table(
            "b",
            [("id", "integer", False), ("c_ref", "integer", True)],
            foreign_keys=[make_fk("fk_b_c", "b", ("c_ref",), "c", nullable=True)],
        ),
        make_table(
            "c",
            [("id", "integer", False), ("a_ref", "integer", True)],
            foreign_keys=[make_fk("fk_c_a", "c", ("a_ref",), "a", nullable=True)],
        ),
        make_table(
            "d",
            [("id", "integer", False), ("a_ref", "integer", False)],
            foreign_keys=[make_fk("fk_d_a", "d", ("a_ref",), "a")],
        ),
    ]


SHOP_DDL = """
    CREATE TABLE customers (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT
    );

    CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        customer_id INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
        total REAL
    );

    CREATE TABLE order_items (
        id INTEGER PRIMARY KEY,
        order_id INTEGER NOT NULL REFERENCES orders(id),
        product_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL
    );

    CREATE TABLE products (
        id INTEGER PRIMARY KEY,
        sku TEXT NOT NULL
    );

    CREATE TABLE employees (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        manager_id INTEGER REFERENCES employees
    );

    CREATE TABLE shipments (
        order_id INTEGER NOT NULL,
        line_no INTEGER NOT NULL,
        carrier TEXT,
        PRIMARY KEY (order_id, line_no)
    );

    CREATE TABLE shipment_events (
        id INTEGER PRIMARY KEY,
        order_id INTEGER NOT NULL,
        line_no INTEGER NOT NULL,
        FOREIGN KEY (order_id, line_no) REFERENCES shipments(order_id, line_no)
    );

    CREATE TABLE audit_log (
        id INTEGER PRIMARY KEY,
        message TEXT
    );

    CREATE VIEW order_totals AS
        SELECT customer_id, SUM(total) AS total FROM orders GROUP BY customer_id;
"""


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    """An on-disk SQLite database with the shop schema."""
    path = tmp_path / "shop.db"
    conn = sqlite3.connect(path)
    conn.executescript(SHOP_DDL)
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def sqlite_url(sqlite_path: Path) -> str:
    return f"sqlite:///{sqlite_path}"


class StaticAdapter(MetadataAdapter):
    """Adapter serving fixed tables per schema, for tests without a database."""

    default_schema = "main"

    def __init__(self, tables_by_schema: dict[str, list[Table]]):
        self.tables_by_schema = tables_by_schema
        self.connected = False
        self.closed = False
        self.requested: list[str | None] = []

    def connect(self, url: str) -> None:
        self.connected = True

    def close(self) -> None:
        self.closed = True

    def get_tables(self, schema: str | None = None) -> list[Table]:
        self.requested.append(schema)
        return list(self.tables_by_schema.get(schema or self.default_schema, []))

    def list_schemas(self) -> list[str]:
        return sorted(self.tables_by_schema)
