"""
ESP Relay Backend API Module

HTTP/WebSocket routes and dependencies.
"""

from . import routes
from .dependencies import get_hub, get_ws_hub

__all__ = ["routes", "get_hub", "get_ws_hub"]
