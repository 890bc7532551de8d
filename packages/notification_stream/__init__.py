"""
Notification Stream Package.

Per-user GitHub notification polling for the Matrix bridge.

Features:
- One APScheduler interval job per registered user
- Minimum interval between fetches for each user
- Subject and latest-comment enrichment with partial-failure tolerance
- Redis Streams publishing of enriched batches
- Automatic disabling of streams after sustained failures

Usage:
    from packages.notification_stream import NotificationWatcher
    from packages.notification_stream.queue import QueueProducer

    with QueueProducer() as producer:
        watcher = NotificationWatcher(producer)
        watcher.start()
        watcher.add_user(registration)
"""

__version__ = "1.0.0"


# Lazy imports so that importing the package does not pull in aiohttp/apscheduler
def __getattr__(name):
    if name == "NotificationWatcher":
        from .watcher import NotificationWatcher
        return NotificationWatcher
    elif name == "PollCycleExecutor":
        from .executor import PollCycleExecutor
        return PollCycleExecutor
    elif name == "NotificationEnricher":
        from .enricher import NotificationEnricher
        return NotificationEnricher
    elif name == "StreamState":
        from .state import StreamState
        return StreamState
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "NotificationWatcher",
    "PollCycleExecutor",
    "NotificationEnricher",
    "StreamState",
]
