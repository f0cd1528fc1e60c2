"""WebSocket event streaming."""
from .publisher import EventPublisher

__all__ = ["EventPublisher"]
