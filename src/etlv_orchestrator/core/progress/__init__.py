# src/etlv_orchestrator/core/progress/__init__.py
"""
Progress Bus e transporte SSE.

    - bus → ProgressBus, Event, Subscription, EVENT_TYPES
    - sse → format_sse, SSEStream (fila limitada + heartbeat)
"""

from .bus import EVENT_TYPES, Event, ProgressBus, Subscription
from .sse import KEEPALIVE, SSEStream, format_connected, format_sse

__all__ = [
    "EVENT_TYPES",
    "Event",
    "ProgressBus",
    "Subscription",
    "KEEPALIVE",
    "SSEStream",
    "format_connected",
    "format_sse",
]
