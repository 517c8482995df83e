"""
Observability module - Logging, Metrics, and Tracing.
"""

from payhooks.observability.logging import get_logger, log_context, setup_logging
from payhooks.observability.metrics import metrics
from payhooks.observability.tracing import instrument_fastapi, setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "instrument_fastapi",
    "setup_tracing",
]
