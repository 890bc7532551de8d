"""
GitHub Module.

Provides the async GitHub REST client used by notification streams:
- Token authentication per user
- Bounded concurrency per client
- Typed notification listing
"""

# Use lazy imports to avoid requiring aiohttp at import time
def __getattr__(name):
    if name == "GitHubRestClient":
        from .client import GitHubRestClient
        return GitHubRestClient
    elif name == "NOTIFICATIONS_PATH":
        from .client import NOTIFICATIONS_PATH
        return NOTIFICATIONS_PATH
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

__all__ = [
    "GitHubRestClient",
    "NOTIFICATIONS_PATH",
]
