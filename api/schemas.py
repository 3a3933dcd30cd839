"""
API Schemas
===========

Pydantic models for API request/response validation.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request body for one chat turn."""

    message: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Natural language question",
        examples=["Show the top 10 customers by total order amount"],
    )
    conversation_id: str | None = Field(
        default=None,
        description="Existing conversation to continue (a new one is started when omitted)",
    )
    connection_id: str | None = Field(
        default=None,
        description="Database connection to query (the active connection when omitted)",
    )


class ChatResponse(BaseModel):
    """Response body for one chat turn."""

    conversation_id: str = Field(..., description="Conversation the turn belongs to")
    response: str = Field(..., description="Reply text for the user")
    semantic_sql: dict[str, Any] | None = Field(None, description="Structured query extracted from the question")
    sql_query: str | None = Field(None, description="Generated SQL (or an error string)")
    executable: bool = Field(..., description="Whether the SQL is ready to run")
    debug: dict[str, Any] = Field(default_factory=dict, description="Conversion debug trace")
    request_id: str | None = Field(None, description="Request identifier")
    processing_time_ms: float = Field(..., description="Processing time in milliseconds")


class SQLExecutionRequest(BaseModel):
    """Request body for running a SQL statement."""

    sql: str = Field(..., min_length=1, description="SQL statement to execute")
    conversation_id: str | None = Field(
        default=None,
        description="Conversation to record the outcome into",
    )
    connection_id: str | None = Field(
        default=None,
        description="Database connection to run on (the active connection when omitted)",
    )


class SQLExecutionResponse(BaseModel):
    """Outcome of a SQL execution."""

    success: bool = Field(..., description="Whether the statement succeeded")
    data: list[dict[str, Any]] | None = Field(None, description="Result rows")
    error: str | None = Field(None, description="Driver error message")
    row_count: int = Field(0, description="Rows returned or affected")


class ConversationTurnResponse(BaseModel):
    """One recorded turn."""

    role: str
    content: str
    semantic_sql: dict[str, Any] | None = None
    sql_query: str | None = None
    execution_result: dict[str, Any] | None = None
    debug: dict[str, Any] | None = None
    executable: bool = False
    timestamp: str


class ConversationHistoryResponse(BaseModel):
    """Full history of one conversation."""

    conversation_id: str
    state: str = Field(..., description="no_turns, awaiting_execution or settled")
    history: list[ConversationTurnResponse] = Field(default_factory=list)


class ColumnSchemaResponse(BaseModel):
    """One column of a table."""

    name: str
    type: str
    nullable: bool = True
    default: str | None = None
    comment: str | None = None
    primary_key: bool = False


class TableSchemaResponse(BaseModel):
    """Column list of one table."""

    table_name: str
    columns: list[ColumnSchemaResponse] = Field(default_factory=list)


class TablesResponse(BaseModel):
    """Tables of one connection."""

    connection_id: str
    tables: list[str] = Field(default_factory=list)


class MetadataResponse(BaseModel):
    """Metadata tree of one connection plus its prompt digest."""

    connection_id: str
    metadata: dict[str, Any]
    summary: str


class ConnectionResponse(BaseModel):
    """Public view of a registered connection."""

    id: str
    name: str
    description: str = ""
    dialect: str
    host: str
    port: int | None = None
    database_name: str
    is_active: bool
    created_at: str


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Health check response."""

    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    database: str = Field("connected", description="Database connectivity")
    tables_count: int | None = Field(None, description="Tables visible on the active connection")
    error: str | None = Field(None, description="Failure detail when unhealthy")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool = Field(..., description="Whether the service is ready to handle requests")
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Individual readiness checks",
    )


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    request_id: str | None = Field(None, description="Request ID if available")
    details: dict[str, Any] | None = Field(None, description="Additional error details")
