"""
FastAPI Application
===================

Main FastAPI application for the ChatBI service.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api import __version__
from api.middleware.telemetry import TelemetryMiddleware
from api.routes import chat_router, conversations_router, health_router, schema_router
from api.schemas import ErrorResponse
from chatbi.config import Settings
from chatbi.connections import ConnectionRegistry
from chatbi.conversation import ConversationOrchestrator
from chatbi.converter import SemanticConverter
from chatbi.database import DatabaseManager
from chatbi.exceptions import ConnectionNotFoundError
from chatbi.generator import SQLGenerator
from chatbi.llm import LLMInterface, MockLLM, OllamaLLM
from chatbi.metadata import MetadataEnricher
from observability.logging_config import get_logger, setup_logging
from observability.metrics import metrics_endpoint, setup_metrics
from observability.tracing import setup_tracing


def create_llm(settings: Settings) -> LLMInterface:
    """Create the language model selected by ``CHATBI_LLM_PROVIDER``."""
    if settings.llm_provider == "mock":
        return MockLLM()
    if settings.llm_provider == "ollama":
        return OllamaLLM(
            base_url=settings.ollama_base_url,
            model_name=settings.ollama_model,
            timeout=settings.llm_timeout,
        )
    raise ValueError(f"Unsupported LLM provider: {settings.llm_provider}")


def create_orchestrator(settings: Settings, llm: LLMInterface | None = None) -> ConversationOrchestrator:
    """Wire the pipeline components for one process."""
    registry = ConnectionRegistry(default_url=settings.database_url)
    database = DatabaseManager(registry, query_timeout=settings.query_timeout)
    enricher = MetadataEnricher(database, registry, sample_size=settings.sample_rows)
    converter = SemanticConverter(llm or create_llm(settings), enricher)
    return ConversationOrchestrator(
        registry=registry,
        enricher=enricher,
        converter=converter,
        generator=SQLGenerator(),
        database=database,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan handler."""
    logger = get_logger(__name__)
    settings: Settings = app.state.settings
    logger.info(
        "Starting ChatBI API",
        version=__version__,
        llm_provider=app.state.orchestrator.converter.llm.name,
        environment=settings.environment,
    )

    yield

    app.state.orchestrator.database.dispose()
    logger.info("Shutting down ChatBI API")


def create_app(
    settings: Settings | None = None,
    orchestrator: ConversationOrchestrator | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Runtime settings (default: read from the environment)
        orchestrator: Pre-built pipeline (default: built from ``settings``)
    """
    settings = settings or Settings.from_env()
    setup_logging()

    app = FastAPI(
        title="ChatBI API",
        description=(
            "Conversational business intelligence. "
            "Turns natural language questions into SQL over a chosen database."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator or create_orchestrator(settings)

    # Add middleware
    app.add_middleware(TelemetryMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add routes
    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(conversations_router)
    app.include_router(schema_router)

    setup_metrics(app, version=__version__, environment=settings.environment)
    app.add_route("/metrics", metrics_endpoint)
    setup_tracing(app, otlp_endpoint=settings.otlp_endpoint, version=__version__)

    @app.exception_handler(ConnectionNotFoundError)
    async def connection_not_found_handler(request: Request, exc: ConnectionNotFoundError) -> JSONResponse:
        """Unknown connection ids are a client error."""
        return JSONResponse(
            status_code=404,
            content=ErrorResponse(
                error="ConnectionNotFound",
                message=str(exc),
                request_id=getattr(request.state, "request_id", None),
                details={"connection_id": exc.connection_id},
            ).model_dump(),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        get_logger(__name__).exception("unhandled_error", path=request.url.path)
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="InternalServerError",
                message="An unexpected error occurred",
                request_id=request_id,
            ).model_dump(),
        )

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
