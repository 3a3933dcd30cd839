"""
Unit Tests for SQLGenerator
===========================

Tests for rendering semantic queries into SQL text.
"""

import pytest

from chatbi.generator import ERROR_PREFIX, NO_TABLES_SQL, SQLGenerator, format_value, is_generation_error
from chatbi.models import Aggregation, Condition, Join, OrderBy, SemanticQuery


class TestSentinels:
    """Empty and absent queries."""

    def test_empty_tables_returns_sentinel(self, generator: SQLGenerator) -> None:
        """Test that a query without tables renders the fixed sentinel."""
        assert generator.generate(SemanticQuery.empty()) == "SELECT 1; -- No tables specified"
        assert generator.generate(SemanticQuery(tables=[])) == NO_TABLES_SQL

    def test_absent_fields_return_error_string(self, generator: SQLGenerator) -> None:
        """Test that missing fields produce an error string instead of raising."""
        sql = generator.generate(SemanticQuery.absent())
        assert sql.startswith("-- Error generating SQL")
        assert is_generation_error(sql)

    def test_single_absent_field(self, generator: SQLGenerator) -> None:
        """Test that one missing field is named in the error."""
        sql = generator.generate(SemanticQuery(tables=["orders"], joins=None))
        assert sql.startswith(ERROR_PREFIX)
        assert "joins" in sql

    def test_non_query_input(self, generator: SQLGenerator) -> None:
        """Test that garbage input is reported, not raised."""
        assert is_generation_error(generator.generate(None))


class TestClauses:
    """Rendering of individual clauses."""

    def test_select_star_without_columns(self, generator: SQLGenerator) -> None:
        assert generator.generate(SemanticQuery(tables=["customers"])) == "SELECT * FROM customers"

    def test_in_condition(self, generator: SQLGenerator) -> None:
        """Test that IN renders a parenthesized, comma-separated list."""
        query = SemanticQuery(
            tables=["orders"],
            conditions=[Condition("orders.status", "IN", ["paid", "pending"])],
        )
        assert generator.generate(query) == "SELECT * FROM orders WHERE orders.status IN ('paid', 'pending')"

    def test_not_in_condition(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["orders"],
            conditions=[Condition("orders.id", "not in", [1, 2])],
        )
        assert generator.generate(query) == "SELECT * FROM orders WHERE orders.id NOT IN (1, 2)"

    def test_between_condition(self, generator: SQLGenerator) -> None:
        """Test that BETWEEN renders both bounds joined by AND."""
        query = SemanticQuery(
            tables=["orders"],
            conditions=[Condition("orders.amount", "BETWEEN", [10, 100])],
        )
        assert generator.generate(query) == "SELECT * FROM orders WHERE orders.amount BETWEEN 10 AND 100"

    def test_between_with_dates(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["orders"],
            conditions=[Condition("orders.order_date", "BETWEEN", ["2024-01-01", "2024-03-31"])],
        )
        assert generator.generate(query).endswith("orders.order_date BETWEEN '2024-01-01' AND '2024-03-31'")

    def test_between_needs_two_bounds(self, generator: SQLGenerator) -> None:
        """Test that a one-sided BETWEEN is a generation error."""
        query = SemanticQuery(
            tables=["orders"],
            conditions=[Condition("orders.amount", "BETWEEN", [10])],
        )
        sql = generator.generate(query)
        assert sql.startswith(ERROR_PREFIX)
        assert "two bounds" in sql

    def test_empty_in_list_is_error(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(tables=["orders"], conditions=[Condition("orders.status", "IN", [])])
        assert is_generation_error(generator.generate(query))

    def test_is_null_condition(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["customers"],
            conditions=[Condition("customers.email", "IS NULL")],
        )
        assert generator.generate(query) == "SELECT * FROM customers WHERE customers.email IS NULL"

    def test_conditions_joined_with_and(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["customers"],
            columns=["customers.name"],
            conditions=[
                Condition("customers.tier", "=", "premium"),
                Condition("customers.id", ">", 1001),
            ],
        )
        assert generator.generate(query) == (
            "SELECT customers.name FROM customers "
            "WHERE customers.tier = 'premium' AND customers.id > 1001"
        )

    def test_select_lists_columns_only(self, generator: SQLGenerator) -> None:
        """Test that aggregations are rendered through columns, never added to them."""
        query = SemanticQuery(
            tables=["orders"],
            columns=["orders.status"],
            aggregations=[Aggregation("count", "orders.id", "n")],
            group_by=["orders.status"],
        )
        assert generator.generate(query) == "SELECT orders.status FROM orders GROUP BY orders.status"

    def test_aggregate_in_columns_not_duplicated(self, generator: SQLGenerator) -> None:
        query = SemanticQuery.from_dict(
            {
                "tables": ["orders"],
                "columns": ["SUM(orders.amount) AS total_amount"],
                "aggregations": [{"function": "SUM", "column": "orders.amount"}],
            }
        )
        assert generator.generate(query) == "SELECT SUM(orders.amount) AS total_amount FROM orders"

    def test_aggregations_without_columns_select_star(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(tables=["orders"], aggregations=[Aggregation("SUM", "orders.amount", "total")])
        assert generator.generate(query) == "SELECT * FROM orders"

    def test_like_condition(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["customers"],
            conditions=[Condition("customers.name", "like", "%Alice%")],
        )
        assert generator.generate(query) == "SELECT * FROM customers WHERE customers.name LIKE '%Alice%'"

    def test_single_element_list_on_scalar_operator(self, generator: SQLGenerator) -> None:
        """Test that a one-value list on '=' renders as that value."""
        query = SemanticQuery.from_dict(
            {"tables": ["orders"], "conditions": [{"column": "orders.status", "operator": "=", "value": ["PAID"]}]}
        )
        assert generator.generate(query) == "SELECT * FROM orders WHERE orders.status = 'PAID'"

    def test_multi_value_list_on_scalar_operator_is_error(self, generator: SQLGenerator) -> None:
        query = SemanticQuery.from_dict(
            {
                "tables": ["orders"],
                "conditions": [{"column": "orders.status", "operator": "=", "value": ["PAID", "SHIPPED"]}],
            }
        )
        sql = generator.generate(query)
        assert sql.startswith(ERROR_PREFIX)
        assert "single value" in sql

    def test_multiple_joins_in_order(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["orders", "customers", "products"],
            joins=[
                Join("INNER", "orders", "customers", "orders.user_id = customers.id"),
                Join("left join", "orders", "products", "orders.product_id = products.id"),
            ],
        )
        assert generator.generate(query) == (
            "SELECT * FROM orders "
            "INNER JOIN customers ON orders.user_id = customers.id "
            "LEFT JOIN products ON orders.product_id = products.id"
        )

    def test_order_by_and_limit(self, generator: SQLGenerator) -> None:
        query = SemanticQuery(
            tables=["customers"],
            order_by=[OrderBy("customers.created_at", "desc"), OrderBy("customers.name")],
            limit=5,
        )
        assert generator.generate(query) == (
            "SELECT * FROM customers ORDER BY customers.created_at DESC, customers.name ASC LIMIT 5"
        )

    def test_limit_zero_is_rendered(self, generator: SQLGenerator) -> None:
        assert generator.generate(SemanticQuery(tables=["orders"], limit=0)).endswith("LIMIT 0")


class TestFullQuery:
    """End-to-end rendering of a model answer."""

    def test_top_customers_statement(
        self, generator: SQLGenerator, top_customers_json: dict, top_customers_sql: str
    ) -> None:
        """Test the join/aggregate/group/order/limit statement clause by clause."""
        sql = generator.generate(SemanticQuery.from_dict(top_customers_json))
        assert sql == top_customers_sql
        assert sql.endswith("LIMIT 100")
        assert not sql.endswith(";")

    def test_filtered_ranking_statement(self, generator: SQLGenerator) -> None:
        """Test a statement using every clause, including IN, BETWEEN and LIKE filters."""
        query = SemanticQuery.from_dict(
            {
                "tables": ["orders", "customers"],
                "columns": ["orders.customer_id", "SUM(orders.amount) AS total_amount"],
                "conditions": [
                    {"column": "orders.status", "operator": "IN", "value": ["PAID", "SHIPPED"]},
                    {"column": "orders.created_at", "operator": "BETWEEN", "value": ["2024-01-01", "2024-12-31"]},
                    {"column": "customers.name", "operator": "LIKE", "value": "%Alice%"},
                ],
                "aggregations": [{"function": "SUM", "column": "orders.amount", "alias": "total_amount"}],
                "joins": [
                    {
                        "type": "LEFT",
                        "table1": "orders",
                        "table2": "customers",
                        "condition": "orders.customer_id = customers.id",
                    }
                ],
                "group_by": ["orders.customer_id"],
                "order_by": [{"column": "total_amount", "direction": "DESC"}],
                "limit": 100,
            }
        )
        sql = generator.generate(query)

        assert sql.startswith("SELECT orders.customer_id, SUM(orders.amount) AS total_amount FROM orders ")
        assert "LEFT JOIN customers ON orders.customer_id = customers.id" in sql
        assert "orders.status IN ('PAID', 'SHIPPED')" in sql
        assert "orders.created_at BETWEEN '2024-01-01' AND '2024-12-31'" in sql
        assert "customers.name LIKE '%Alice%'" in sql
        assert sql.count(" AND ") == 3
        assert "GROUP BY orders.customer_id" in sql
        assert "ORDER BY total_amount DESC" in sql
        assert sql.endswith("LIMIT 100")
        assert sql.index("WHERE") < sql.index("GROUP BY") < sql.index("ORDER BY")

    def test_generation_is_deterministic(self, generator: SQLGenerator, top_customers_json: dict) -> None:
        query = SemanticQuery.from_dict(top_customers_json)
        assert generator.generate(query) == generator.generate(query)


class TestFormatValue:
    """Literal rendering."""

    @pytest.mark.parametrize(
        "value, expected",
        [
            (None, "NULL"),
            (True, "TRUE"),
            (False, "FALSE"),
            (42, "42"),
            (3.5, "3.5"),
            ("100", "100"),
            (" 12.50 ", "12.50"),
            ("-7", "-7"),
            ("00501", "'00501'"),
            ("13800138000123456789", "'13800138000123456789'"),
            ("1e5", "'1e5'"),
            ("0.1234567890123456", "'0.1234567890123456'"),
            ("paid", "'paid'"),
            ("2024-01-01", "'2024-01-01'"),
        ],
    )
    def test_format_value(self, value, expected: str) -> None:
        assert format_value(value) == expected
