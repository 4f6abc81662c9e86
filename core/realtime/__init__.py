"""
TaskHub Core Realtime — Room-Based Event Fan-Out.

- Broadcaster: rooms, per-connection ordered queues, start/stop lifecycle
- ChatEvent: names of the events pushed to conversation rooms
"""
from core.realtime.broadcaster import Broadcaster, ChatEvent, Connection

__all__ = [
    "Broadcaster",
    "ChatEvent",
    "Connection",
]
