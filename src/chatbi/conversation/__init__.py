"""
Conversation Module
===================

Per-conversation turn history and the chat pipeline that fills it.
"""

from chatbi.conversation.orchestrator import ConversationOrchestrator
from chatbi.conversation.store import ConversationStore

__all__ = [
    "ConversationOrchestrator",
    "ConversationStore",
]
