"""
Database Manager
================

Execution gateway: runs SQL and introspects schemas on a resolved
connection through SQLAlchemy.
"""

import threading
from typing import Any, Optional

import structlog
from sqlalchemy import create_engine, inspect, literal_column, select, table, text
from sqlalchemy.engine import Engine, Inspector
from sqlalchemy.exc import SQLAlchemyError

from chatbi.connections import ConnectionRegistry, DatabaseConnection
from chatbi.models import ExecutionOutcome

logger = structlog.get_logger(__name__)


def _error_message(error: SQLAlchemyError) -> str:
    """Driver-level message without SQLAlchemy's statement/background suffix."""
    original = getattr(error, "orig", None)
    return str(original) if original is not None else str(error)


class DatabaseManager:
    """
    Runs SQL against registered connections.

    One engine is kept per connection id and rebuilt if the connection URL
    changes.
    """

    def __init__(self, registry: ConnectionRegistry, query_timeout: float = 30.0) -> None:
        """
        Initialize the manager.

        Args:
            registry: Resolver used when no connection is passed explicitly
            query_timeout: Seconds allowed per statement where the driver supports it
        """
        self.registry = registry
        self.query_timeout = query_timeout
        self._engines: dict[str, tuple[str, Engine]] = {}
        self._lock = threading.Lock()

    def _connect_args(self, connection: DatabaseConnection) -> dict[str, Any]:
        dialect = connection.dialect
        timeout = int(self.query_timeout)
        if dialect in ("mysql", "mariadb"):
            return {"connect_timeout": timeout, "read_timeout": timeout, "write_timeout": timeout}
        if dialect == "sqlite":
            return {"timeout": self.query_timeout, "check_same_thread": False}
        return {}

    def engine_for(self, connection: Optional[DatabaseConnection] = None) -> Engine:
        """Return the cached engine for a connection (active connection when None)."""
        connection = connection or self.registry.active()
        with self._lock:
            cached = self._engines.get(connection.id)
            if cached is not None and cached[0] == connection.url:
                return cached[1]
            if cached is not None:
                cached[1].dispose()

            options: dict[str, Any] = {"connect_args": self._connect_args(connection)}
            # SQLite's singleton pool rejects pool sizing options
            if connection.dialect != "sqlite":
                options.update(pool_pre_ping=True, pool_timeout=self.query_timeout)

            engine = create_engine(connection.url, **options)
            self._engines[connection.id] = (connection.url, engine)
            logger.debug("engine_created", connection_id=connection.id, dialect=connection.dialect)
            return engine

    def inspector(self, connection: Optional[DatabaseConnection] = None) -> Inspector:
        return inspect(self.engine_for(connection))

    def execute(self, sql: str, connection: Optional[DatabaseConnection] = None) -> ExecutionOutcome:
        """
        Execute one SQL statement.

        Args:
            sql: Statement to run
            connection: Target connection (active connection when None)

        Returns:
            ExecutionOutcome with rows for queries, affected row count otherwise.
            Database errors are reported in the outcome, not raised.
        """
        engine = self.engine_for(connection)
        try:
            with engine.connect() as conn:
                result = conn.execute(text(sql))
                if result.returns_rows:
                    rows = [{str(key): value for key, value in row._mapping.items()} for row in result]
                    return ExecutionOutcome(success=True, rows=rows, row_count=len(rows))

                row_count = max(result.rowcount, 0)
                conn.commit()
                return ExecutionOutcome(success=True, rows=[], row_count=row_count)
        except SQLAlchemyError as e:
            message = _error_message(e)
            logger.warning("sql_execution_failed", error=message)
            return ExecutionOutcome.failure(message)

    def list_tables(self, connection: Optional[DatabaseConnection] = None) -> list[str]:
        return self.inspector(connection).get_table_names()

    def table_schema(self, table_name: str, connection: Optional[DatabaseConnection] = None) -> list[dict]:
        """Column definitions of one table."""
        inspector = self.inspector(connection)
        columns = inspector.get_columns(table_name)
        primary_keys = set(inspector.get_pk_constraint(table_name).get("constrained_columns") or [])
        return [
            {
                "name": column["name"],
                "type": str(column["type"]),
                "nullable": bool(column.get("nullable", True)),
                "default": None if column.get("default") is None else str(column["default"]),
                "comment": column.get("comment") or "",
                "primary_key": column["name"] in primary_keys,
            }
            for column in columns
        ]

    def sample_rows(
        self, table_name: str, limit: int, connection: Optional[DatabaseConnection] = None
    ) -> list[dict]:
        """First ``limit`` rows of a table (``SELECT * FROM t LIMIT n``)."""
        statement = select(literal_column("*")).select_from(table(table_name)).limit(limit)
        with self.engine_for(connection).connect() as conn:
            result = conn.execute(statement)
            return [{str(key): value for key, value in row._mapping.items()} for row in result]

    def dispose(self) -> None:
        with self._lock:
            for _, engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
