"""
Tests for the Notification Watcher.

Tests:
- Stream registration, replacement and removal
- On-demand cycles and state installation
- Failure threshold deregistration
- Per-stream serialization
- Scheduler-driven cycles
"""

import asyncio

import pytest

from packages.notification_stream.exceptions import GitHubRequestError, StreamNotFoundError
from packages.notification_stream.watcher import NotificationWatcher
from packages.shared.constants import MATRIX_MESSAGE_EVENT, STREAM_DISABLED_NOTICE, USER_NOTIFICATIONS_EVENT
from packages.shared.types import NotificationsEnableEvent

from tests.factories import START_MS, make_client, make_notification

USER = "@alice:example.org"


@pytest.fixture
def clients():
    """Clients handed out by the watcher, in creation order."""
    return []


@pytest.fixture
def watcher(fake_queue, test_settings, clock, clients):
    def factory(token):
        client = make_client()
        client.token = token
        clients.append(client)
        return client

    return NotificationWatcher(
        fake_queue,
        settings=test_settings,
        client_factory=factory,
        clock=clock,
        sleep=clock.sleep,
    )


async def drain(watcher):
    """Let client retirement tasks finish."""
    if watcher._retiring:
        await asyncio.gather(*watcher._retiring)


class TestRegistry:
    """Tests for add_user / remove_user."""

    def test_add_user_creates_state_and_job(self, watcher, registration, clients):
        state = watcher.add_user(registration)

        assert state.user_id == USER
        assert state.room_id == "!room:example.org"
        assert state.last_read_ts == 0
        assert state.participating is False
        assert state.failure_count == 0
        assert state.client is clients[0]
        assert clients[0].token == "ghp_test_token"

        assert watcher.has_user(USER)
        assert watcher.user_ids == [USER]
        assert watcher.scheduler.get_job(watcher.job_id_for(USER)) is not None

    def test_add_user_uses_since_as_cursor(self, watcher):
        watcher.add_user(NotificationsEnableEvent(
            user_id=USER,
            room_id="!room:example.org",
            since=START_MS - 1000,
            filter_participating=True,
            token="t",
        ))

        state = watcher.get_state(USER)
        assert state.last_read_ts == START_MS - 1000
        assert state.participating is True

    @pytest.mark.asyncio
    async def test_add_user_replaces_existing_stream(self, watcher, registration, clients):
        """Re-registering installs a fresh stream and retires the old client."""
        old = watcher.add_user(registration)
        old.failure_count = 20

        new = watcher.add_user(registration.model_copy(update={"room_id": "!other:example.org"}))
        await drain(watcher)

        assert new is not old
        assert new.failure_count == 0
        assert watcher.get_state(USER) is new
        assert watcher.get_state(USER).room_id == "!other:example.org"
        assert len(watcher.scheduler.get_jobs()) == 1
        clients[0].close.assert_awaited_once()
        clients[1].close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_remove_user_cancels_job(self, watcher, registration, clients):
        watcher.add_user(registration)

        assert watcher.remove_user(USER) is True
        await drain(watcher)

        assert not watcher.has_user(USER)
        assert watcher.scheduler.get_job(watcher.job_id_for(USER)) is None
        clients[0].close.assert_awaited_once()

    def test_remove_unknown_user_is_noop(self, watcher, fake_queue):
        assert watcher.remove_user("@nobody:example.org") is False
        fake_queue.push.assert_not_called()

    def test_first_run_survives_late_scheduler_start(self, watcher, registration):
        """The immediate first run is never dropped as a misfire."""
        watcher.add_user(registration)

        job = watcher.scheduler.get_job(watcher.job_id_for(USER))

        assert job.misfire_grace_time is None
        assert job.coalesce is True
        assert job.max_instances == 1

    def test_get_state_unknown_user(self, watcher):
        with pytest.raises(StreamNotFoundError):
            watcher.get_state("@nobody:example.org")


class TestCycles:
    """Tests for running cycles through the watcher."""

    @pytest.mark.asyncio
    async def test_trigger_runs_cycle_and_installs_state(self, watcher, registration, clients, fake_queue, clock):
        watcher.add_user(registration)
        clients[0].list_notifications.return_value = [make_notification()]

        state = await watcher.trigger(USER)

        assert state.last_read_ts == clock()
        assert watcher.get_state(USER) is state
        assert fake_queue.push.call_args.args[0] == USER_NOTIFICATIONS_EVENT
        assert watcher.get_stats()["streams"][USER]["runs"] == 1

    @pytest.mark.asyncio
    async def test_trigger_unknown_user(self, watcher):
        with pytest.raises(StreamNotFoundError):
            await watcher.trigger("@nobody:example.org")

    @pytest.mark.asyncio
    async def test_second_cycle_is_throttled(self, watcher, registration, clock):
        watcher.add_user(registration)

        await watcher.trigger(USER)
        clock.advance(5000)
        await watcher.trigger(USER)

        assert clock.sleeps == [10.0]

    @pytest.mark.asyncio
    async def test_cycles_for_one_stream_do_not_overlap(self, watcher, registration, clients):
        watcher.add_user(registration)
        events = []

        async def fetch(**kwargs):
            events.append("start")
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            events.append("end")
            return []

        clients[0].list_notifications.side_effect = fetch

        await asyncio.gather(watcher.trigger(USER), watcher.trigger(USER))

        assert events == ["start", "end", "start", "end"]

    @pytest.mark.asyncio
    async def test_wait_for_cycle(self, watcher, registration):
        watcher.add_user(registration)

        waiter = asyncio.create_task(watcher.wait_for_cycle(USER, timeout=5))
        await asyncio.sleep(0)
        await watcher.trigger(USER)
        state = await waiter

        assert state is watcher.get_state(USER)

    @pytest.mark.asyncio
    async def test_late_cycle_of_replaced_stream_does_not_clobber(self, watcher, registration, clients):
        """A cycle that finishes after re-registration leaves the new stream untouched."""
        watcher.add_user(registration)
        release = asyncio.Event()

        async def slow_fetch(**kwargs):
            await release.wait()
            return []

        clients[0].list_notifications.side_effect = slow_fetch
        old_cycle = asyncio.create_task(watcher.trigger(USER))
        await asyncio.sleep(0)

        new = watcher.add_user(registration)
        release.set()
        old_state = await old_cycle

        assert old_state is not new
        assert watcher.get_state(USER) is new
        assert new.last_read_ts == 0


class TestFailureThreshold:
    """Tests for automatic deregistration."""

    @pytest.mark.asyncio
    async def test_stream_removed_after_threshold(self, watcher, registration, clients, fake_queue):
        watcher.add_user(registration)
        watcher.get_state(USER).failure_count = 50
        clients[0].list_notifications.side_effect = GitHubRequestError("bad credentials", status=401)

        state = await watcher.trigger(USER)
        await drain(watcher)

        assert state.failure_count == 51
        assert not watcher.has_user(USER)
        assert watcher.scheduler.get_job(watcher.job_id_for(USER)) is None
        clients[0].close.assert_awaited_once()

        calls = fake_queue.push.call_args_list
        assert len(calls) == 1
        assert calls[0].args[0] == MATRIX_MESSAGE_EVENT
        assert calls[0].args[1]["text"] == STREAM_DISABLED_NOTICE

    @pytest.mark.asyncio
    async def test_no_removal_before_threshold(self, watcher, registration, clients):
        watcher.add_user(registration)
        clients[0].list_notifications.side_effect = GitHubRequestError("timeout")

        for _ in range(3):
            await watcher.trigger(USER)

        assert watcher.has_user(USER)
        assert watcher.get_state(USER).failure_count == 3

    def test_threshold_of_replaced_stream_keeps_successor(self, watcher, registration):
        old = watcher.add_user(registration)
        new = watcher.add_user(registration)

        assert watcher._on_threshold(old) is False
        assert watcher.get_state(USER) is new
        assert watcher._on_threshold(new) is True
        assert not watcher.has_user(USER)

    @pytest.mark.asyncio
    async def test_queued_cycle_after_trip_does_not_run(self, watcher, registration, clients, fake_queue):
        """A cycle waiting on the lock when the stream trips is dropped: one removal, one notice."""
        watcher.add_user(registration)
        watcher.get_state(USER).failure_count = 50

        async def failing_fetch(**kwargs):
            await asyncio.sleep(0)
            raise GitHubRequestError("bad credentials", status=401)

        clients[0].list_notifications.side_effect = failing_fetch

        await asyncio.gather(watcher.trigger(USER), watcher.trigger(USER))
        await drain(watcher)

        assert clients[0].list_notifications.await_count == 1
        assert not watcher.has_user(USER)
        notices = [c for c in fake_queue.push.call_args_list if c.args[0] == MATRIX_MESSAGE_EVENT]
        assert len(notices) == 1
        clients[0].close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_replaced_stream_tripping_late_sends_no_notice(self, watcher, registration, clients, fake_queue):
        """An old cycle crossing the threshold after re-registration neither removes nor notifies."""
        old = watcher.add_user(registration)
        old.failure_count = 50
        release = asyncio.Event()

        async def slow_failing_fetch(**kwargs):
            await release.wait()
            raise GitHubRequestError("bad credentials", status=401)

        clients[0].list_notifications.side_effect = slow_failing_fetch
        old_cycle = asyncio.create_task(watcher.trigger(USER))
        await asyncio.sleep(0)

        new = watcher.add_user(registration)
        release.set()
        await old_cycle
        await drain(watcher)

        assert old.failure_count == 51
        assert watcher.get_state(USER) is new
        assert watcher.scheduler.get_job(watcher.job_id_for(USER)) is not None
        assert not any(c.args[0] == MATRIX_MESSAGE_EVENT for c in fake_queue.push.call_args_list)


class TestScheduling:
    """Tests for scheduler-driven cycles."""

    @pytest.mark.asyncio
    async def test_scheduler_runs_cycles(self, watcher, registration, fake_queue):
        watcher.start()
        try:
            watcher.add_user(registration)
            state = await watcher.wait_for_cycle(USER, runs=1, timeout=5)
        finally:
            await watcher.close()

        assert state.batches_published >= 1
        assert fake_queue.push.call_args_list[0].args[0] == USER_NOTIFICATIONS_EVENT
        assert watcher.get_stats()["running"] is False

    @pytest.mark.asyncio
    async def test_close_retires_all_clients(self, watcher, registration, clients):
        watcher.add_user(registration)
        watcher.add_user(registration.model_copy(update={"user_id": "@bob:example.org"}))

        await watcher.close()

        assert watcher.user_ids == []
        for client in clients:
            client.close.assert_awaited_once()

    def test_get_stats(self, watcher, registration):
        watcher.add_user(registration)

        stats = watcher.get_stats()

        assert stats["running"] is False
        assert stats["stream_count"] == 1
        stream = stats["streams"][USER]
        assert stream["room_id"] == "!room:example.org"
        assert stream["failure_count"] == 0
        assert stream["runs"] == 0
        assert stream["last_run"] is None
        assert "next_run" in stream
