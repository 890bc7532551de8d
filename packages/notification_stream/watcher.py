"""
Notification Watcher.

APScheduler-based registry of per-user notification streams. Each stream
gets its own interval job; the job runs one poll cycle at a time.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import Settings, get_settings
from core.logging import get_logger
from packages.shared.types import NotificationsEnableEvent
from packages.shared.utils import now_ms

from .exceptions import StreamNotFoundError
from .executor import PollCycleExecutor
from .github.client import GitHubRestClient
from .queue.sender import MessageSenderClient
from .state import StreamState

logger = get_logger("watcher")


@dataclass
class StreamHandle:
    """Registry entry: the latest state of a stream plus its scheduling bits."""

    state: StreamState
    job_id: str
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    completed: asyncio.Condition = field(default_factory=asyncio.Condition)
    runs: int = 0
    last_run: Optional[str] = None


class NotificationWatcher:
    """
    Owns one recurring poll job per registered user.

    Features:
    - Unconditional replace on re-registration
    - Strictly sequential cycles per stream (job ``max_instances=1`` plus
      a per-stream lock)
    - Automatic removal and a room notice after sustained failures
    - On-demand cycles and an awaitable completion signal
    - Statistics tracking
    """

    def __init__(
        self,
        queue,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        client_factory: Optional[Callable[[str], GitHubRestClient]] = None,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.queue = queue
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self.sender = MessageSenderClient(queue)
        self.executor = PollCycleExecutor(
            queue,
            on_threshold=self._on_threshold,
            sender=self.sender,
            min_interval_ms=self.settings.min_poll_interval_ms,
            failure_threshold=self.settings.failure_threshold,
            reset_failures_on_success=self.settings.reset_failures_on_success,
            clock=clock,
            sleep=sleep,
        )
        self._client_factory = client_factory or self._default_client
        self._streams: Dict[str, StreamHandle] = {}
        self._retiring: Set[asyncio.Task] = set()
        self._running = False

    def _default_client(self, token: str) -> GitHubRestClient:
        return GitHubRestClient(
            token,
            base_url=self.settings.github_api_url,
            user_agent=self.settings.github_user_agent,
            max_concurrent=self.settings.github_max_concurrent,
            timeout=self.settings.github_request_timeout,
        )

    @staticmethod
    def job_id_for(user_id: str) -> str:
        return f"notifications_{user_id}"

    # =========================================================================
    # Registry
    # =========================================================================

    def add_user(self, registration: NotificationsEnableEvent) -> StreamState:
        """
        Start (or restart) the notification stream for a user.

        An existing stream for the same user is removed first. A cycle of the
        old stream that is already running may still finish and publish.
        """
        user_id = registration.user_id
        existing = user_id in self._streams
        self.remove_user(user_id)

        state = StreamState.from_registration(
            registration, self._client_factory(registration.token)
        )
        handle = StreamHandle(state=state, job_id=self.job_id_for(user_id))
        self._streams[user_id] = handle

        self.scheduler.add_job(
            self._run_stream,
            trigger=IntervalTrigger(seconds=self.settings.poll_interval_seconds),
            id=handle.job_id,
            name=f"Notifications: {user_id}",
            kwargs={"handle": handle},
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            next_run_time=datetime.now(timezone.utc),
        )

        if existing:
            logger.info("stream_reinserted", user_id=user_id, room_id=state.room_id)
        else:
            logger.info("stream_inserted", user_id=user_id, room_id=state.room_id)
        return state

    def remove_user(self, user_id: str) -> bool:
        """
        Stop polling for a user. Safe to call for unknown users.

        Returns True if a stream was removed.
        """
        handle = self._streams.pop(user_id, None)
        if handle is None:
            logger.info("stream_not_registered", user_id=user_id)
            return False

        try:
            self.scheduler.remove_job(handle.job_id)
        except JobLookupError:
            pass
        self._retire_client(handle)

        logger.info("stream_removed", user_id=user_id)
        return True

    def has_user(self, user_id: str) -> bool:
        return user_id in self._streams

    @property
    def user_ids(self) -> List[str]:
        return list(self._streams)

    def get_state(self, user_id: str) -> StreamState:
        handle = self._streams.get(user_id)
        if handle is None:
            raise StreamNotFoundError(user_id)
        return handle.state

    def _on_threshold(self, stream: StreamState) -> bool:
        handle = self._streams.get(stream.user_id)
        # A replaced stream's late cycle must not remove its successor.
        if handle is None or handle.state is not stream:
            logger.info("stream_already_replaced", user_id=stream.user_id)
            return False
        return self.remove_user(stream.user_id)

    def _retire_client(self, handle: StreamHandle) -> None:
        """Close the stream's client once any in-flight cycle has finished."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return

        task = loop.create_task(self._close_after_cycle(handle))
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)

    async def _close_after_cycle(self, handle: StreamHandle) -> None:
        async with handle.lock:
            await handle.state.client.close()

    # =========================================================================
    # Cycles
    # =========================================================================

    async def _run_stream(self, handle: StreamHandle) -> None:
        """Scheduled job body: one cycle, then install the returned state."""
        async with handle.lock:
            # Cycles queued behind the lock of a removed stream are dropped.
            if self._streams.get(handle.state.user_id) is not handle:
                logger.info("stream_cycle_skipped", user_id=handle.state.user_id)
                return
            try:
                handle.state = await self.executor.run_cycle(handle.state)
            except Exception as e:
                logger.exception(
                    "poll_cycle_crashed",
                    user_id=handle.state.user_id,
                    error=str(e),
                )
            handle.runs += 1
            handle.last_run = datetime.now(timezone.utc).isoformat()

        async with handle.completed:
            handle.completed.notify_all()

    async def trigger(self, user_id: str) -> StreamState:
        """Run a cycle for a user now, waiting for any running cycle first."""
        handle = self._streams.get(user_id)
        if handle is None:
            raise StreamNotFoundError(user_id)
        await self._run_stream(handle)
        return handle.state

    async def wait_for_cycle(
        self,
        user_id: str,
        runs: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> StreamState:
        """
        Wait until a stream has completed ``runs`` cycles in total.

        Defaults to waiting for the next cycle to complete.
        """
        handle = self._streams.get(user_id)
        if handle is None:
            raise StreamNotFoundError(user_id)
        target = handle.runs + 1 if runs is None else runs

        async def _wait() -> None:
            async with handle.completed:
                await handle.completed.wait_for(lambda: handle.runs >= target)

        await asyncio.wait_for(_wait(), timeout)
        return handle.state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler.start()
        self._running = True
        logger.info("watcher_started", streams=len(self._streams))

    def stop(self) -> None:
        """Stop scheduling new cycles."""
        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False
        logger.info("watcher_stopped")

    async def close(self) -> None:
        """Stop the scheduler and close every stream's client."""
        self.stop()
        for user_id in list(self._streams):
            self.remove_user(user_id)
        if self._retiring:
            await asyncio.gather(*self._retiring, return_exceptions=True)

    def get_stats(self) -> Dict:
        """Get watcher statistics."""
        streams = {}
        for user_id, handle in self._streams.items():
            job = self.scheduler.get_job(handle.job_id)
            next_run = getattr(job, "next_run_time", None) if job else None
            state = handle.state

            streams[user_id] = {
                "room_id": state.room_id,
                "last_read_ts": state.last_read_ts,
                "failure_count": state.failure_count,
                "batches_published": state.batches_published,
                "last_error": state.last_error,
                "runs": handle.runs,
                "last_run": handle.last_run,
                "next_run": next_run.isoformat() if next_run else None,
            }

        return {
            "running": self._running,
            "stream_count": len(streams),
            "streams": streams,
        }


async def run_notification_watcher():
    """
    Main entry point for the notification watcher.

    Connects the event bus, starts the scheduler and runs until cancelled.
    Streams are registered by whoever holds the watcher via ``add_user``.
    """
    from core.logging import configure_logging
    from .queue import QueueProducer

    settings = get_settings()
    configure_logging(settings.log_level)

    errors, warnings = settings.validate_production_config()
    for warning in warnings:
        logger.warning("config_warning", detail=warning)
    if errors:
        for error in errors:
            logger.error("config_error", detail=error)
        return

    with QueueProducer() as producer:
        watcher = NotificationWatcher(producer, settings=settings)
        watcher.start()

        try:
            # Run forever
            while True:
                await asyncio.sleep(60)
                logger.info("watcher_stats", **watcher.get_stats(), queue=producer.get_stats())
        except asyncio.CancelledError:
            logger.info("watcher_cancelled")
        finally:
            await watcher.close()


def main() -> None:
    asyncio.run(run_notification_watcher())


if __name__ == "__main__":
    main()
