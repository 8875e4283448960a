"""
ESP Relay Backend API Routes

All API routers are registered here.
"""

from .health import router as health_router
from .sensor import router as sensor_router
from .websocket import router as websocket_router

__all__ = [
    "health_router",
    "sensor_router",
    "websocket_router",
]
