"""Tests for insertion/deletion ordering and cycle resolution."""

import random

import pytest

from dbgraph.core.graph import build_schema_graph
from dbgraph.core.implied import apply_implied_constraints
from dbgraph.core.ordering import OrderResult, TableOrderer, compute_order
from tests.conftest import make_fk, make_table


def assert_parents_first(graph, result):
    """Every constraint not marked recursive points backwards in the order."""
    position = {name: i for i, name in enumerate(result.insertion_order)}
    for fk in graph.constraints():
        if fk.child_table not in position or fk.parent_table not in position:
            continue
        if graph.is_recursive(fk):
            continue
        assert position[fk.parent_table] < position[fk.child_table], fk.constraint_id


def random_tables(seed: int, count: int = 12, edges: int = 20):
    rng = random.Random(seed)
    names = [f"t{i:02d}" for i in range(count)]
    columns = {name: [("id", "integer", False)] for name in names}
    fks = {name: [] for name in names}
    for n in range(edges):
        child = rng.choice(names)
        parent = rng.choice(names)
        column = f"ref_{n}"
        columns[child].append((column, "integer", True))
        fks[child].append(make_fk(f"fk_{n}", child, (column,), parent, nullable=True))
    return [make_table(name, columns[name], foreign_keys=fks[name]) for name in names]


class TestAcyclicOrdering:
    """Tests for schemas without reference cycles."""

    def test_shop_order(self, undeclared_tables):
        graph = build_schema_graph(undeclared_tables)
        apply_implied_constraints(graph)
        result = TableOrderer(graph).compute_order()

        assert result.insertion_order == ["customers", "settings", "orders", "order_items"]
        assert result.deletion_order == ["order_items", "orders", "settings", "customers"]
        assert result.recursive_constraints == []
        assert result.forced_tables == []

    def test_without_implied_constraints(self, undeclared_tables):
        graph = build_schema_graph(undeclared_tables)
        result = TableOrderer(graph).compute_order()
        assert result.insertion_order == ["customers", "order_items", "orders", "settings"]

    def test_parents_first(self, undeclared_tables):
        graph = build_schema_graph(undeclared_tables)
        apply_implied_constraints(graph)
        assert_parents_first(graph, TableOrderer(graph).compute_order())

    def test_each_table_once(self, undeclared_tables):
        graph = build_schema_graph(undeclared_tables)
        result = compute_order(graph)
        assert sorted(result.insertion_order) == graph.get_table_names()
        assert len(result) == 4

    def test_views_not_ordered(self):
        tables = [
            make_table("customers", [("id", "integer", False)]),
            make_table("customer_totals", [("customer_id", "integer", True)], primary_key=(), is_view=True),
        ]
        graph = build_schema_graph(tables)
        assert compute_order(graph).insertion_order == ["customers"]

    def test_subset_of_tables(self, shop_tables):
        graph = build_schema_graph(shop_tables)
        result = compute_order(graph, ["order_items", "orders"])
        assert result.insertion_order == ["orders", "order_items"]

    def test_parent_outside_pass_ignored(self):
        orders = make_table(
            "orders",
            [("id", "integer", False), ("customer_id", "integer", False)],
            foreign_keys=[make_fk("fk_oc", "orders", ("customer_id",), "customers")],
        )
        graph = build_schema_graph([orders])
        assert compute_order(graph).insertion_order == ["orders"]

    def test_empty_graph(self):
        result = compute_order(build_schema_graph([]))
        assert result.insertion_order == []
        assert result.deletion_order == []


class TestCycleResolution:
    """Tests for breaking reference cycles."""

    def test_self_reference(self, shop_tables):
        graph = build_schema_graph(shop_tables)
        result = TableOrderer(graph).compute_order()

        assert result.insertion_order == ["customers", "employees", "orders", "order_items"]
        assert [fk.constraint_id for fk in result.recursive_constraints] == [
            "employees.fk_employees_manager"
        ]
        assert result.forced_tables == []
        assert graph.recursive_constraints() == result.recursive_constraints

    def test_self_reference_does_not_block_children(self):
        """A child sorting before its self-referencing parent still follows it."""
        tables = [
            make_table(
                "employees",
                [("id", "integer", False), ("manager_id", "integer", True)],
                foreign_keys=[
                    make_fk("fk_emp_mgr", "employees", ("manager_id",), "employees", nullable=True)
                ],
            ),
            make_table(
                "audit_log",
                [("id", "integer", False), ("employee_ref", "integer", False)],
                foreign_keys=[make_fk("fk_audit_emp", "audit_log", ("employee_ref",), "employees")],
            ),
        ]
        graph = build_schema_graph(tables)
        result = TableOrderer(graph).compute_order()

        assert result.insertion_order == ["employees", "audit_log"]
        assert [fk.name for fk in result.recursive_constraints] == ["fk_emp_mgr"]
        assert not graph.is_recursive(graph.get_constraint("audit_log.fk_audit_emp"))
        assert result.forced_tables == []

    def test_forced_table_with_self_reference(self):
        """Forcing counts only references to other tables; the self-reference is still suppressed."""
        tables = [
            make_table(
                "a",
                [("id", "integer", False), ("b_ref", "integer", True), ("a_ref", "integer", True)],
                foreign_keys=[
                    make_fk("fk_a_a", "a", ("a_ref",), "a", nullable=True),
                    make_fk("fk_a_b", "a", ("b_ref",), "b", nullable=True),
                ],
            ),
            make_table(
                "b",
                [("id", "integer", False), ("a_ref", "integer", True)],
                foreign_keys=[make_fk("fk_b_a", "b", ("a_ref",), "a", nullable=True)],
            ),
        ]
        graph = build_schema_graph(tables)
        result = TableOrderer(graph).compute_order()

        assert result.forced_tables == ["a"]
        assert result.insertion_order == ["a", "b"]
        assert [fk.name for fk in result.recursive_constraints] == ["fk_a_a", "fk_a_b"]

    def test_two_table_cycle(self, two_table_cycle):
        graph = build_schema_graph(two_table_cycle)
        result = TableOrderer(graph).compute_order()

        assert result.insertion_order == ["departments", "employees"]
        assert [fk.constraint_id for fk in result.recursive_constraints] == [
            "departments.fk_dept_head"
        ]
        assert_parents_first(graph, result)

    def test_three_table_cycle(self, three_table_cycle):
        graph = build_schema_graph(three_table_cycle)
        result = TableOrderer(graph).compute_order()

        assert result.insertion_order == ["a", "c", "d", "b"]
        assert [fk.name for fk in result.recursive_constraints] == ["fk_a_b"]
        assert result.position("b") == 3
        assert_parents_first(graph, result)

    def test_fewest_dependencies_forced_first(self):
        # "a" depends on b and c; "b" only on a; so b is forced even though a sorts first
        tables = [
            make_table(
                "a",
                [("id", "integer", False), ("b_ref", "integer", True), ("c_ref", "integer", True)],
                foreign_keys=[
                    make_fk("fk_a_b", "a", ("b_ref",), "b", nullable=True),
                    make_fk("fk_a_c", "a", ("c_ref",), "c", nullable=True),
                ],
            ),
            make_table(
                "b",
                [("id", "integer", False), ("a_ref", "integer", True)],
                foreign_keys=[make_fk("fk_b_a", "b", ("a_ref",), "a", nullable=True)],
            ),
            make_table(
                "c",
                [("id", "integer", False), ("b_ref", "integer", True)],
                foreign_keys=[make_fk("fk_c_b", "c", ("b_ref",), "b", nullable=True)],
            ),
        ]
        graph = build_schema_graph(tables)
        result = TableOrderer(graph).compute_order()

        assert result.forced_tables == ["b"]
        assert result.insertion_order == ["b", "c", "a"]
        assert [fk.name for fk in result.recursive_constraints] == ["fk_b_a"]

    def test_marks_reset_between_runs(self, shop_tables):
        graph = build_schema_graph(shop_tables)
        orderer = TableOrderer(graph)
        orderer.compute_order()
        assert len(graph.recursive_constraints()) == 1

        result = orderer.compute_order(["customers", "orders"])
        assert result.recursive_constraints == []
        assert graph.recursive_constraints() == []

    def test_recursive_constraints_remain_registered(self, two_table_cycle):
        graph = build_schema_graph(two_table_cycle)
        TableOrderer(graph).compute_order()
        assert len(graph.constraints()) == 2


class TestOrderingProperties:
    """Properties that hold for any input."""

    @pytest.mark.parametrize("seed", range(10))
    def test_random_graphs(self, seed):
        graph = build_schema_graph(random_tables(seed))
        result = TableOrderer(graph).compute_order()

        assert sorted(result.insertion_order) == graph.get_table_names()
        assert result.deletion_order == list(reversed(result.insertion_order))
        assert_parents_first(graph, result)
        for fk in result.recursive_constraints:
            assert graph.is_recursive(fk)

    @pytest.mark.parametrize("seed", range(5))
    def test_independent_of_input_order(self, seed):
        tables = random_tables(seed)
        expected = compute_order(build_schema_graph(tables))

        shuffled = list(tables)
        random.Random(seed + 100).shuffle(shuffled)
        result = compute_order(build_schema_graph(shuffled))

        assert result.insertion_order == expected.insertion_order
        assert [fk.constraint_id for fk in result.recursive_constraints] == [
            fk.constraint_id for fk in expected.recursive_constraints
        ]

    def test_complete_graph_terminates(self):
        names = ["a", "b", "c", "d"]
        tables = []
        for child in names:
            columns = [("id", "integer", False)]
            fks = []
            for parent in names:
                columns.append((f"{parent}_ref", "integer", True))
                fks.append(make_fk(f"fk_{child}_{parent}", child, (f"{parent}_ref",), parent))
            tables.append(make_table(child, columns, foreign_keys=fks))
        graph = build_schema_graph(tables)
        result = TableOrderer(graph).compute_order()

        assert sorted(result.insertion_order) == names
        assert_parents_first(graph, result)


class TestOrderResult:
    """Tests for the result object."""

    def test_deletion_is_reverse(self):
        result = OrderResult(insertion_order=["a", "b", "c"])
        assert result.deletion_order == ["c", "b", "a"]
        assert result.position("b") == 1
        assert len(result) == 3
