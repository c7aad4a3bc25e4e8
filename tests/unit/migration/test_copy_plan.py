"""
Unit tests for the tier migration copy plan.
"""

import pytest

from tenantstore.migration.plan import CopyStep, build_copy_plan, dependency_order
from tenantstore.schema.definitions import (
    TENANT_COLUMN,
    ColumnDef,
    ColumnType,
    ForeignKeyDef,
    TableDef,
)
from tenantstore.schema.templates import TENANT_TABLES, table_names


def _table(name: str, *refs: str) -> TableDef:
    return TableDef(
        name=name,
        columns=(ColumnDef("id", ColumnType.INTEGER, primary_key=True),),
        foreign_keys=tuple(ForeignKeyDef(f"{ref}_id", ref) for ref in refs),
    )


class TestDependencyOrder:
    def test_parents_come_first(self):
        items = _table("items", "orders", "products")
        orders = _table("orders", "customers")
        customers = _table("customers")
        products = _table("products")

        ordered = [t.name for t in dependency_order([items, orders, customers, products])]

        assert ordered.index("customers") < ordered.index("orders") < ordered.index("items")
        assert ordered.index("products") < ordered.index("items")

    def test_independent_tables_keep_template_order(self):
        ordered = dependency_order([_table("b"), _table("a"), _table("c")])
        assert [t.name for t in ordered] == ["b", "a", "c"]

    def test_references_outside_the_set_are_ignored(self):
        ordered = dependency_order([_table("items", "external")])
        assert [t.name for t in ordered] == ["items"]

    def test_cycle_raises(self):
        with pytest.raises(ValueError, match="cycle"):
            dependency_order([_table("a", "b"), _table("b", "a")])


class TestBuildCopyPlan:
    def test_full_plan_follows_template_order(self):
        plan = build_copy_plan()

        assert [step.table for step in plan] == list(table_names())
        assert all(step.strip_columns == (TENANT_COLUMN,) for step in plan)

    def test_steps_carry_dependencies(self):
        plan = {step.table: step for step in build_copy_plan()}

        assert plan["invoice_items"] == CopyStep("invoice_items", ("invoices", "products"))
        assert plan["stores"].depends_on == ()

    def test_plan_covers_variation_and_payment_tables(self):
        plan = {step.table: step for step in build_copy_plan()}

        assert plan["product_variation_options"].depends_on == ("product_variations",)
        assert plan["receipts"].depends_on == ("invoices",)
        assert plan["staff"].depends_on == ("stores",)
        assert plan["payment_transactions"].depends_on == ()

    def test_subset_keeps_dependency_order(self):
        plan = build_copy_plan(TENANT_TABLES, tables=["invoice_items", "stores", "invoices"])

        assert [step.table for step in plan] == ["stores", "invoices", "invoice_items"]

    def test_unknown_table(self):
        with pytest.raises(KeyError, match="ghost"):
            build_copy_plan(tables=["ghost"])
