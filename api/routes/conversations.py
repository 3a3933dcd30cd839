"""
Conversation Routes
===================

Read and clear in-memory conversation history.
"""

import asyncio

from fastapi import APIRouter, Depends, Response

from api.dependencies import get_orchestrator
from api.schemas import ConversationHistoryResponse, ConversationTurnResponse
from chatbi.conversation import ConversationOrchestrator

router = APIRouter(prefix="/api/v1/conversations", tags=["Conversations"])


@router.get(
    "/{conversation_id}",
    response_model=ConversationHistoryResponse,
    summary="Conversation history",
)
async def get_conversation(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ConversationHistoryResponse:
    """Unknown ids return an empty history rather than 404."""
    turns = orchestrator.history(conversation_id)
    return ConversationHistoryResponse(
        conversation_id=conversation_id,
        state=orchestrator.state(conversation_id).value,
        history=[ConversationTurnResponse(**turn.to_dict()) for turn in turns],
    )


@router.delete(
    "/{conversation_id}",
    status_code=204,
    summary="Clear conversation",
)
async def clear_conversation(
    conversation_id: str,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> Response:
    """Waits for a running turn of the same conversation, off the event loop."""
    await asyncio.to_thread(orchestrator.clear, conversation_id)
    return Response(status_code=204)
