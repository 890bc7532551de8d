"""Per-user stream state."""

from dataclasses import dataclass, field
from typing import Optional

from packages.shared.types import NotificationsEnableEvent

from .github.client import GitHubRestClient


@dataclass
class StreamState:
    """
    Everything one user's polling cycle needs between runs.

    Only the cycle that currently owns the stream mutates it; the watcher
    installs the returned state once the cycle finishes.
    """

    user_id: str
    room_id: str
    client: GitHubRestClient = field(repr=False)
    last_read_ts: int = 0
    participating: bool = False
    failure_count: int = 0
    batches_published: int = 0
    last_error: Optional[str] = None

    @classmethod
    def from_registration(
        cls,
        registration: NotificationsEnableEvent,
        client: GitHubRestClient,
    ) -> "StreamState":
        return cls(
            user_id=registration.user_id,
            room_id=registration.room_id,
            client=client,
            last_read_ts=registration.since,
            participating=registration.filter_participating,
        )

    @property
    def never_polled(self) -> bool:
        return self.last_read_ts == 0

    def advance_cursor(self, timestamp_ms: int) -> None:
        # Cursor never moves backwards, even if the clock does.
        self.last_read_ts = max(self.last_read_ts, timestamp_ms)

    def record_failure(self, error: str) -> int:
        self.failure_count += 1
        self.last_error = error
        return self.failure_count
