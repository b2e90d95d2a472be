"""Live event fan-out to dashboard subscribers."""

from .broadcaster import EventHandler, LiveBroadcaster, Subscriber
from .queues import QueueHandler

__all__ = ["LiveBroadcaster", "Subscriber", "EventHandler", "QueueHandler"]
