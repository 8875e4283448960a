"""
ESP Relay Backend Services Module

Relay state and routing logic.
"""

from .cache import CacheStats, SensorCache, SensorSnapshot
from .connection import Connection, ConnectionRole, Outbound, deliver
from .hub import RelayHub
from .liveness import LivenessSupervisor, PeriodicTask
from .registry import ConnectionRegistry
from .router import MessageRouter

__all__ = [
    # Cache
    "CacheStats",
    "SensorCache",
    "SensorSnapshot",
    # Connection
    "Connection",
    "ConnectionRole",
    "Outbound",
    "deliver",
    "ConnectionRegistry",
    # Routing
    "MessageRouter",
    # Liveness
    "LivenessSupervisor",
    "PeriodicTask",
    # Hub
    "RelayHub",
]
