"""
ESP Relay Backend Core Module

Settings and structured logging shared by the API and services.
"""

from .config import settings
from .logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    "settings",
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
