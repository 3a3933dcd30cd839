"""API Routes."""

from api.routes.chat import router as chat_router
from api.routes.conversations import router as conversations_router
from api.routes.health import router as health_router
from api.routes.schema import router as schema_router

__all__ = ["chat_router", "conversations_router", "health_router", "schema_router"]
