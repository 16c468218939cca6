"""
Observability: structlog logging and Prometheus metrics.
"""

from .logging import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
