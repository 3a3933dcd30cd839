"""
Metadata Enricher
=================

Collects table comments, column definitions and sample rows from a
connection and condenses them into a prompt-sized schema digest.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy.engine import Inspector

from chatbi.connections import ConnectionRegistry, DatabaseConnection
from chatbi.database import DatabaseManager
from chatbi.models import ColumnMetadata, MetadataTree, TableMetadata

logger = structlog.get_logger(__name__)

MAX_COLUMN_SAMPLES = 3
MAX_SAMPLE_CHARS = 40


@dataclass(frozen=True)
class SemanticRule:
    """Tags a table or column whose name and/or declared type match."""

    tag: str
    name_pattern: Optional[str] = None
    type_pattern: Optional[str] = None

    def matches(self, name: str, type_name: str = "") -> bool:
        if self.name_pattern and not re.search(self.name_pattern, name, re.IGNORECASE):
            return False
        if self.type_pattern and not re.search(self.type_pattern, type_name, re.IGNORECASE):
            return False
        return bool(self.name_pattern or self.type_pattern)


TABLE_RULES: tuple[SemanticRule, ...] = (
    SemanticRule("user-related data", name_pattern=r"(^|_)(user|member|account|customer)s?(_|$)"),
    SemanticRule("order/transaction data", name_pattern=r"order|transaction|payment|invoice"),
    SemanticRule("product/catalog data", name_pattern=r"product|goods|item|sku|catalog"),
    SemanticRule("log/event data", name_pattern=r"(^|_)(log|event|audit)s?(_|$)"),
)

COLUMN_RULES: tuple[SemanticRule, ...] = (
    SemanticRule("primary/foreign key identifier", name_pattern=r"(^id$)|(_id$)"),
    SemanticRule("date/time", type_pattern=r"date|time|year"),
    SemanticRule(
        "user-identifying",
        name_pattern=r"(^|_)(user|customer|member|account|email|phone|mobile|username|nickname)(_|$)",
    ),
    SemanticRule("monetary amount", name_pattern=r"amount|price|cost|revenue|fee|salary|balance"),
    SemanticRule("categorical", name_pattern=r"(^|_)(status|type|category|level|tier|state|gender)(_|$)"),
)


def _tags(rules: tuple[SemanticRule, ...], name: str, type_name: str = "") -> list[str]:
    return [rule.tag for rule in rules if rule.matches(name, type_name)]


def _format_sample(value: Any) -> str:
    rendered = value.isoformat() if hasattr(value, "isoformat") else str(value)
    if len(rendered) > MAX_SAMPLE_CHARS:
        rendered = rendered[: MAX_SAMPLE_CHARS - 3] + "..."
    return rendered


class MetadataEnricher:
    """
    Builds schema metadata for prompt grounding.

    Metadata is always read fresh from the connection. Failures on a single
    table degrade that table's comment, columns or samples to empty values;
    enrichment itself never raises for metadata problems.
    """

    def __init__(
        self,
        database: DatabaseManager,
        registry: ConnectionRegistry,
        sample_size: int = 5,
    ) -> None:
        self.database = database
        self.registry = registry
        self.sample_size = sample_size

    def build_metadata(self, connection: Optional[DatabaseConnection] = None) -> MetadataTree:
        """
        Build the metadata tree of a connection.

        Args:
            connection: Target connection, or None for the active connection

        Returns:
            MetadataTree with one entry per table
        """
        connection = connection or self.registry.active()
        tree = MetadataTree(host=connection.host, database_name=connection.database_name)

        try:
            inspector = self.database.inspector(connection)
            table_names = inspector.get_table_names()
        except Exception as e:
            logger.warning("metadata_tables_unavailable", connection_id=connection.id, error=str(e))
            return tree

        for table_name in table_names:
            tree.tables[table_name] = self._build_table_metadata(table_name, inspector, connection)

        logger.debug("metadata_built", connection_id=connection.id, tables=len(tree.tables))
        return tree

    def _build_table_metadata(
        self, table_name: str, inspector: Inspector, connection: DatabaseConnection
    ) -> TableMetadata:
        columns = self._get_columns(table_name, inspector)
        rows = self._get_sample_rows(table_name, connection)

        for column in columns:
            samples: list = []
            for row in rows:
                value = row.get(column.name)
                if value is not None and value not in samples:
                    samples.append(value)
                if len(samples) >= MAX_COLUMN_SAMPLES:
                    break
            column.samples = samples

        return TableMetadata(
            name=table_name,
            comment=self._get_table_comment(table_name, inspector),
            columns=columns,
            sample_rows=rows,
        )

    def _get_table_comment(self, table_name: str, inspector: Inspector) -> str:
        try:
            return (inspector.get_table_comment(table_name) or {}).get("text") or ""
        except NotImplementedError:
            # Dialect has no table comments (e.g. SQLite)
            return ""
        except Exception as e:
            logger.warning("table_comment_unavailable", table=table_name, error=str(e))
            return ""

    def _get_columns(self, table_name: str, inspector: Inspector) -> list[ColumnMetadata]:
        try:
            return [
                ColumnMetadata(
                    name=column["name"],
                    type=str(column.get("type", "")).lower(),
                    comment=column.get("comment") or "",
                )
                for column in inspector.get_columns(table_name)
            ]
        except Exception as e:
            logger.warning("table_columns_unavailable", table=table_name, error=str(e))
            return []

    def _get_sample_rows(self, table_name: str, connection: DatabaseConnection) -> list[dict]:
        try:
            return self.database.sample_rows(table_name, self.sample_size, connection)
        except Exception as e:
            logger.warning("table_samples_unavailable", table=table_name, error=str(e))
            return []

    def summarize_for_prompt(self, tree: MetadataTree) -> str:
        """
        Condense a metadata tree into one line per table.

        Tables without a comment get a description inferred from their name.
        Each column lists its type, comment, heuristic tags and one sample.

        Args:
            tree: Metadata tree to summarize

        Returns:
            Prompt-ready schema digest
        """
        if not tree.tables:
            return "(no tables available)"

        lines = []
        for table_name, table in tree.tables.items():
            description = table.comment or ", ".join(_tags(TABLE_RULES, table_name))
            header = f"- Table {table_name}"
            if description:
                header += f" ({description})"

            column_parts = [self._describe_column(column, table) for column in table.columns]
            lines.append(f"{header}: {', '.join(column_parts)}" if column_parts else header)

        return "\n".join(lines)

    def _describe_column(self, column: ColumnMetadata, table: TableMetadata) -> str:
        details = []
        if column.type:
            details.append(column.type)
        if column.comment:
            details.append(column.comment)
        details.extend(_tags(COLUMN_RULES, column.name, column.type))

        sample = column.samples[0] if column.samples else None
        if sample is None:
            sample = next(
                (row[column.name] for row in table.sample_rows if row.get(column.name) is not None),
                None,
            )
        if sample is not None:
            details.append(f"sample: {column.name}={_format_sample(sample)}")

        if not details:
            return column.name
        return f"{column.name}({'; '.join(details)})"
