"""Observability: structured logging and metrics."""

from agent_linking.observability.metrics import MetricsCollector
from agent_linking.observability.logging import configure_logging

__all__ = [
    "MetricsCollector",
    "configure_logging",
]
