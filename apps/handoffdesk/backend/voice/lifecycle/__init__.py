"""
Voice Session Lifecycle
=======================

Usage:
    from apps.handoffdesk.backend.voice.lifecycle import create_connection_manager
"""

from .manager import ConnectionLifecycleManager, create_connection_manager
from .transport import ConnectOptions, LoopbackTransport, RealtimeTransport

__all__ = [
    "ConnectOptions",
    "ConnectionLifecycleManager",
    "LoopbackTransport",
    "RealtimeTransport",
    "create_connection_manager",
]
