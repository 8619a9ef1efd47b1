"""Cross-cutting pieces of the shopdesk service: structured JSON logging and health probes."""

from .logging_config import RequestLoggingMiddleware, get_logger, setup_logging
from .health import HealthStatus, ServiceHealth

__all__ = [
    "setup_logging",
    "get_logger",
    "RequestLoggingMiddleware",
    "ServiceHealth",
    "HealthStatus",
]
