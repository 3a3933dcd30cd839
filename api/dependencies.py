"""
Route Dependencies
==================

Accessors for the pipeline components held on ``app.state``.
"""

import uuid

from fastapi import Request

from chatbi.connections import ConnectionRegistry
from chatbi.conversation import ConversationOrchestrator
from chatbi.database import DatabaseManager
from chatbi.metadata import MetadataEnricher


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    """Dependency to get the configured orchestrator from app state."""
    return request.app.state.orchestrator


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.orchestrator.registry


def get_database(request: Request) -> DatabaseManager:
    return request.app.state.orchestrator.database


def get_enricher(request: Request) -> MetadataEnricher:
    return request.app.state.orchestrator.enricher


def get_request_id(request: Request) -> str:
    """Request ID set by the telemetry middleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())
