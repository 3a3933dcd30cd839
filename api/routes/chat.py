"""
Chat Routes
===========

Chat turns and SQL execution.
"""

import asyncio
import time

from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator, get_request_id
from api.schemas import (
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    SQLExecutionRequest,
    SQLExecutionResponse,
)
from chatbi.conversation import ConversationOrchestrator
from observability.metrics import track_execution_metrics, track_turn_metrics

router = APIRouter(prefix="/api/v1", tags=["Chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown connection"},
        500: {"model": ErrorResponse, "description": "Internal server error"},
    },
    summary="Ask a question about the data",
    description="Converts a natural language question into SQL within a conversation",
)
async def chat(
    request: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
    request_id: str = Depends(get_request_id),
) -> ChatResponse:
    """
    Process one chat turn.

    The endpoint:
    1. Starts or continues the conversation
    2. Grounds the question on the connection's schema
    3. Returns the reply, the structured query and the generated SQL

    The SQL is not executed here; use ``/execute-sql``.
    """
    start_time = time.perf_counter()

    reply = await asyncio.to_thread(
        orchestrator.start_or_continue,
        request.conversation_id,
        request.message,
        request.connection_id,
    )

    processing_time = time.perf_counter() - start_time
    if reply.semantic_query is None:
        outcome = "error"
    else:
        outcome = "executable" if reply.executable else "not_executable"
    track_turn_metrics(outcome, processing_time)

    return ChatResponse(
        conversation_id=reply.conversation_id,
        response=reply.text,
        semantic_sql=reply.semantic_query.to_dict() if reply.semantic_query else None,
        sql_query=reply.sql,
        executable=reply.executable,
        debug=reply.debug_trace,
        request_id=request_id,
        processing_time_ms=processing_time * 1000,
    )


@router.post(
    "/execute-sql",
    response_model=SQLExecutionResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Unknown connection"},
    },
    summary="Execute SQL",
    description="Runs a statement and records the outcome into the conversation when one is given",
)
async def execute_sql(
    request: SQLExecutionRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> SQLExecutionResponse:
    """
    Execute SQL on the resolved connection.

    Driver errors come back as ``success=False`` with the error message,
    not as an HTTP error.
    """
    start_time = time.perf_counter()

    outcome = await asyncio.to_thread(
        orchestrator.run_and_record,
        request.conversation_id,
        request.sql,
        request.connection_id,
    )
    track_execution_metrics(outcome.success, time.perf_counter() - start_time)

    return SQLExecutionResponse(**outcome.to_dict())
