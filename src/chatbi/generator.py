"""
SQL Generator
=============

Deterministic rendering of a semantic query into MySQL-style SQL text.
"""

import re
from decimal import Decimal
from typing import Any

import structlog

from chatbi.exceptions import SQLGenerationError
from chatbi.models import NULL_OPERATORS, Condition, SemanticQuery

logger = structlog.get_logger(__name__)

NO_TABLES_SQL = "SELECT 1; -- No tables specified"
ERROR_PREFIX = "-- Error generating SQL"

_INTEGER = re.compile(r"^-?(0|[1-9]\d*)$")
_DECIMAL = re.compile(r"^-?(0|[1-9]\d*)\.\d+$")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1
# Digits a double holds exactly
_MAX_DECIMAL_DIGITS = 15
_REQUIRED_FIELDS = ("tables", "columns", "conditions", "aggregations", "joins", "order_by", "group_by")


def is_generation_error(sql: str | None) -> bool:
    return sql is None or sql.startswith(ERROR_PREFIX)


def format_value(value: Any) -> str:
    """
    Render a literal.

    Numbers and numeric strings are emitted bare, everything else is wrapped
    in single quotes. Quotes inside values are not escaped.

    A string counts as numeric only in canonical form: an integer that fits
    in 64 bits, or a decimal with at most 15 digits. Zip codes such as
    ``00501`` and long identifiers stay quoted.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    text = str(value)
    if _is_numeric_string(text.strip()):
        return text.strip()
    return f"'{text}'"


def _is_numeric_string(text: str) -> bool:
    if _INTEGER.match(text):
        return _INT64_MIN <= int(text) <= _INT64_MAX
    if _DECIMAL.match(text):
        return len(text.lstrip("-").replace(".", "")) <= _MAX_DECIMAL_DIGITS
    return False


def _as_list(value: Any) -> list:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class SQLGenerator:
    """Renders semantic queries to SQL. Stateless and safe to share."""

    def generate(self, query: SemanticQuery) -> str:
        """
        Render a semantic query.

        Never raises: a query that cannot be rendered produces a string
        starting with ``-- Error generating SQL``.

        Args:
            query: Semantic query to render

        Returns:
            SQL text, the no-tables sentinel, or an error string
        """
        try:
            return self._render(query)
        except Exception as e:
            logger.warning("sql_generation_failed", error=str(e))
            return f"{ERROR_PREFIX}: {e}"

    def _render(self, query: SemanticQuery) -> str:
        missing = [name for name in _REQUIRED_FIELDS if getattr(query, name) is None]
        if missing:
            raise SQLGenerationError(f"semantic query is missing {', '.join(missing)}")

        if not query.tables:
            return NO_TABLES_SQL

        parts = [f"SELECT {self._select_list(query)}", f"FROM {query.tables[0]}"]

        for join in query.joins:
            parts.append(f"{join.kind} JOIN {join.right_table} ON {join.on_condition}")

        if query.conditions:
            fragments = [self._condition(condition) for condition in query.conditions]
            parts.append(f"WHERE {' AND '.join(fragments)}")

        if query.group_by:
            parts.append(f"GROUP BY {', '.join(query.group_by)}")

        if query.order_by:
            ordering = ", ".join(f"{order.column} {order.direction}" for order in query.order_by)
            parts.append(f"ORDER BY {ordering}")

        if query.limit is not None:
            if isinstance(query.limit, bool) or not isinstance(query.limit, int) or query.limit < 0:
                raise SQLGenerationError(f"invalid limit: {query.limit!r}")
            parts.append(f"LIMIT {query.limit}")

        return " ".join(parts)

    def _select_list(self, query: SemanticQuery) -> str:
        return ", ".join(query.columns) if query.columns else "*"

    def _condition(self, condition: Condition) -> str:
        if not condition.column or not condition.operator:
            raise SQLGenerationError(f"incomplete condition: {condition.to_dict()}")

        column, operator, value = condition.column, condition.operator, condition.value

        if operator in ("IN", "NOT IN"):
            values = _as_list(value)
            if not values:
                raise SQLGenerationError(f"{operator} on {column} needs at least one value")
            return f"{column} {operator} ({', '.join(format_value(item) for item in values)})"

        if operator in ("BETWEEN", "NOT BETWEEN"):
            bounds = _as_list(value)
            if len(bounds) != 2:
                raise SQLGenerationError(f"{operator} on {column} needs exactly two bounds")
            low, high = bounds
            return f"{column} {operator} {format_value(low)} AND {format_value(high)}"

        if operator in NULL_OPERATORS:
            return f"{column} {operator}"

        return f"{column} {operator} {format_value(condition.scalar_value())}"
