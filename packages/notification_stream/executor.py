"""
Poll Cycle Executor.

Runs one fetch-enrich-publish pass for a single notification stream.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from core.logging import LogContext, get_logger
from packages.shared.constants import (
    EVENT_SENDER,
    FAILURE_THRESHOLD,
    MIN_INTERVAL_MS,
    STREAM_DISABLED_NOTICE,
    USER_NOTIFICATIONS_EVENT,
)
from packages.shared.types import UserNotification, UserNotificationsEvent
from packages.shared.utils import now_ms

from .enricher import NotificationEnricher
from .queue.sender import MessageSenderClient
from .state import StreamState

logger = get_logger("executor")


class PollCycleExecutor:
    """
    Executes poll cycles against a shared queue.

    A cycle:
    1. waits until ``min_interval_ms`` has passed since the last fetch
    2. fetches notifications newer than the stream cursor
    3. enriches them
    4. publishes one ``notifications.user.events`` batch
    5. disables the stream once its failure count exceeds the threshold

    ``on_threshold`` deregisters the stream and returns True, or returns
    False when the stream was no longer registered; the room notice is sent
    only in the first case.

    Fetch failures abort the cycle before enrichment and count toward the
    threshold. Nothing raised by the remote side escapes ``run_cycle``.
    """

    def __init__(
        self,
        queue,
        on_threshold: Callable[[StreamState], bool],
        sender: Optional[MessageSenderClient] = None,
        min_interval_ms: int = MIN_INTERVAL_MS,
        failure_threshold: int = FAILURE_THRESHOLD,
        reset_failures_on_success: bool = False,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.queue = queue
        self.sender = sender or MessageSenderClient(queue)
        self.min_interval_ms = min_interval_ms
        self.failure_threshold = failure_threshold
        self.reset_failures_on_success = reset_failures_on_success
        self._on_threshold = on_threshold
        self._clock = clock
        self._sleep = sleep

    async def run_cycle(self, stream: StreamState) -> StreamState:
        """Run one cycle and return the (mutated) stream."""
        with LogContext(user_id=stream.user_id, room_id=stream.room_id):
            await self._throttle(stream)

            notifications = await self._fetch(stream)
            if notifications is not None:
                enricher = NotificationEnricher(stream.client)
                events = await enricher.enrich_all(notifications)
                self._publish(stream, events)

            if stream.failure_count > self.failure_threshold:
                self._disable(stream)

        return stream

    async def _throttle(self, stream: StreamState) -> None:
        elapsed = self._clock() - stream.last_read_ts
        wait_ms = min(self.min_interval_ms - elapsed, self.min_interval_ms)
        if wait_ms > 0:
            logger.info("poll_throttled", elapsed_ms=elapsed, wait_ms=wait_ms)
            await self._sleep(wait_ms / 1000)

    async def _fetch(self, stream: StreamState) -> Optional[List[UserNotification]]:
        logger.info("notifications_fetching", last_read_ts=stream.last_read_ts)
        try:
            notifications = await stream.client.list_notifications(
                participating=stream.participating,
                since_ms=stream.last_read_ts,
            )
        except Exception as e:
            failures = stream.record_failure(str(e))
            logger.error(
                "notifications_fetch_failed",
                error=str(e),
                error_type=type(e).__name__,
                failure_count=failures,
            )
            return None

        stream.advance_cursor(self._clock())
        stream.last_error = None
        if self.reset_failures_on_success:
            stream.failure_count = 0

        logger.info("notifications_fetched", count=len(notifications))
        return notifications

    def _publish(self, stream: StreamState, events: List[UserNotification]) -> None:
        batch = UserNotificationsEvent(
            room_id=stream.room_id,
            last_read_ts=stream.last_read_ts,
            events=events,
        )
        entry_id = self.queue.push(
            USER_NOTIFICATIONS_EVENT,
            batch.to_payload(),
            sender=EVENT_SENDER,
        )
        if entry_id is None:
            logger.error("notifications_publish_failed", count=len(events))
            return
        stream.batches_published += 1

    def _disable(self, stream: StreamState) -> None:
        # The notice goes out only for the cycle that actually deregistered.
        if not self._on_threshold(stream):
            logger.info("stream_disable_skipped", failure_count=stream.failure_count)
            return

        logger.warning(
            "stream_disabled",
            failure_count=stream.failure_count,
            threshold=self.failure_threshold,
        )
        self.sender.send_matrix_text(stream.room_id, STREAM_DISABLED_NOTICE)
