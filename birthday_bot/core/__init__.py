"""Core modules for the birthday bot."""

from .health_server import HealthCheckServer
from .logging import setup_logging

__all__ = [
    "HealthCheckServer",
    "setup_logging",
]
