"""
Pytest Fixtures
===============

Shared fixtures for ChatBI tests.
"""

import json
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text

# Add src and the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from chatbi.connections import ConnectionRegistry
from chatbi.conversation import ConversationOrchestrator, ConversationStore
from chatbi.converter import SemanticConverter
from chatbi.database import DatabaseManager
from chatbi.generator import SQLGenerator
from chatbi.llm.mock import MockLLM
from chatbi.metadata import MetadataEnricher

SAMPLE_DDL = [
    """
    CREATE TABLE customers (
        id INTEGER PRIMARY KEY,
        name VARCHAR(100) NOT NULL,
        email VARCHAR(200),
        tier VARCHAR(20),
        created_at DATETIME
    )
    """,
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY,
        user_id INTEGER NOT NULL,
        amount DECIMAL(10, 2),
        status VARCHAR(20),
        order_date DATE
    )
    """,
]

SAMPLE_ROWS = [
    "INSERT INTO customers VALUES (1001, 'Alice', 'alice@example.com', 'premium', '2024-01-05 10:00:00')",
    "INSERT INTO customers VALUES (1002, 'Bob', 'bob@example.com', 'basic', '2024-02-11 09:30:00')",
    "INSERT INTO customers VALUES (1003, 'Carol', NULL, 'premium', '2024-03-20 16:45:00')",
    "INSERT INTO orders VALUES (1, 1001, 120.50, 'paid', '2024-03-01')",
    "INSERT INTO orders VALUES (2, 1001, 80.00, 'paid', '2024-03-15')",
    "INSERT INTO orders VALUES (3, 1002, 42.00, 'pending', '2024-04-02')",
]

# The model answer for "top customers by order amount"
TOP_CUSTOMERS_JSON = {
    "tables": ["orders", "customers"],
    "columns": ["customers.name", "SUM(orders.amount) AS total_amount"],
    "conditions": [],
    "aggregations": [{"function": "SUM", "column": "orders.amount", "alias": "total_amount"}],
    "joins": [
        {
            "type": "LEFT",
            "table1": "orders",
            "table2": "customers",
            "condition": "orders.user_id = customers.id",
        }
    ],
    "order_by": [{"column": "total_amount", "direction": "DESC"}],
    "group_by": ["customers.name"],
    "limit": 100,
}

TOP_CUSTOMERS_SQL = (
    "SELECT customers.name, SUM(orders.amount) AS total_amount FROM orders "
    "LEFT JOIN customers ON orders.user_id = customers.id "
    "GROUP BY customers.name ORDER BY total_amount DESC LIMIT 100"
)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Create a populated SQLite database and return its URL."""
    url = f"sqlite:///{tmp_path / 'chatbi_test.db'}"
    engine = create_engine(url)
    with engine.begin() as conn:
        for statement in SAMPLE_DDL + SAMPLE_ROWS:
            conn.execute(text(statement))
    engine.dispose()
    return url


@pytest.fixture
def empty_database_url(tmp_path: Path) -> str:
    """URL of a SQLite database with no tables."""
    return f"sqlite:///{tmp_path / 'empty.db'}"


@pytest.fixture
def registry(database_url: str) -> ConnectionRegistry:
    """Registry seeded with the sample database as the active connection."""
    return ConnectionRegistry(default_url=database_url)


@pytest.fixture
def database(registry: ConnectionRegistry):
    """DatabaseManager over the sample registry."""
    manager = DatabaseManager(registry, query_timeout=5)
    yield manager
    manager.dispose()


@pytest.fixture
def enricher(database: DatabaseManager, registry: ConnectionRegistry) -> MetadataEnricher:
    return MetadataEnricher(database, registry, sample_size=5)


@pytest.fixture
def mock_llm() -> MockLLM:
    """Mock LLM that knows a few questions by their wording."""
    return MockLLM(
        responses={
            "Question: top customers": [json.dumps(TOP_CUSTOMERS_JSON)],
            "Question: premium customers": [
                json.dumps(
                    {
                        "tables": ["customers"],
                        "columns": ["customers.name", "customers.email"],
                        "conditions": [{"column": "customers.tier", "operator": "=", "value": "premium"}],
                    }
                )
            ],
            "Question: only the paid ones": [
                "Sure! Here is the query:\n"
                + json.dumps(
                    {
                        "tables": ["orders"],
                        "columns": ["orders.id", "orders.amount"],
                        "conditions": [{"column": "orders.status", "operator": "=", "value": "paid"}],
                    }
                )
            ],
            "Question: weather": ["I am not able to answer that."],
        },
        default='{"tables": []}',
    )


@pytest.fixture
def converter(mock_llm: MockLLM, enricher: MetadataEnricher) -> SemanticConverter:
    return SemanticConverter(mock_llm, enricher)


@pytest.fixture
def generator() -> SQLGenerator:
    return SQLGenerator()


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def orchestrator(
    registry: ConnectionRegistry,
    enricher: MetadataEnricher,
    converter: SemanticConverter,
    generator: SQLGenerator,
    database: DatabaseManager,
    store: ConversationStore,
) -> ConversationOrchestrator:
    """Fully wired orchestrator over the sample database and mock LLM."""
    return ConversationOrchestrator(
        registry=registry,
        enricher=enricher,
        converter=converter,
        generator=generator,
        database=database,
        store=store,
    )


@pytest.fixture
def top_customers_json() -> dict:
    """Model answer for the orders/customers ranking question."""
    return json.loads(json.dumps(TOP_CUSTOMERS_JSON))


@pytest.fixture
def top_customers_sql() -> str:
    """SQL expected for ``top_customers_json``."""
    return TOP_CUSTOMERS_SQL
