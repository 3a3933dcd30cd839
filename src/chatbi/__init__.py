"""
ChatBI
======

Conversational business intelligence: natural-language questions to SQL
over a dynamically chosen relational database.
"""

from chatbi.models import (
    Aggregation,
    ChatReply,
    Condition,
    ConversationState,
    ConversationTurn,
    ExecutionOutcome,
    Join,
    LLMResponse,
    MetadataTree,
    OrderBy,
    SemanticQuery,
    VerificationResult,
    VerificationStatus,
)
from chatbi.config import Settings
from chatbi.connections import ConnectionRegistry, DatabaseConnection
from chatbi.conversation import ConversationOrchestrator, ConversationStore
from chatbi.converter import SemanticConverter
from chatbi.database import DatabaseManager
from chatbi.exceptions import ChatBIError, ConnectionNotFoundError
from chatbi.generator import SQLGenerator
from chatbi.llm import LLMInterface, MockLLM
from chatbi.metadata import MetadataEnricher
from chatbi.validation import ValidationChain

__version__ = "0.1.0"

__all__ = [
    # Models
    "SemanticQuery",
    "Condition",
    "Aggregation",
    "Join",
    "OrderBy",
    "MetadataTree",
    "ConversationTurn",
    "ConversationState",
    "ExecutionOutcome",
    "ChatReply",
    "VerificationResult",
    "VerificationStatus",
    "LLMResponse",
    # Pipeline
    "MetadataEnricher",
    "SemanticConverter",
    "ValidationChain",
    "SQLGenerator",
    "ConversationOrchestrator",
    "ConversationStore",
    # Collaborators
    "ConnectionRegistry",
    "DatabaseConnection",
    "DatabaseManager",
    # LLM
    "LLMInterface",
    "MockLLM",
    # Config & errors
    "Settings",
    "ChatBIError",
    "ConnectionNotFoundError",
]
