"""
Queue Module.

Provides the event bus side of the bridge:
- Redis Streams producer for bus events
- Matrix notice sender built on the producer
"""

from .producer import QueueProducer
from .sender import MessageSenderClient

__all__ = ["QueueProducer", "MessageSenderClient"]
