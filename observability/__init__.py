"""
Observability Module
====================

Full-stack observability: metrics, tracing, and structured logging.
"""

from observability.metrics import (
    metrics_endpoint,
    setup_metrics,
    track_execution_metrics,
    track_turn_metrics,
)
from observability.tracing import setup_tracing
from observability.logging_config import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    "setup_metrics",
    "metrics_endpoint",
    "track_turn_metrics",
    "track_execution_metrics",
    "setup_tracing",
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
