"""
Pytest fixtures for notification stream tests.

Remote GitHub access and the Redis bus are replaced by mocks; time is
driven by a fake clock so throttling is deterministic.
"""

from unittest.mock import MagicMock

import pytest

from core.config import get_settings
from packages.shared.types import NotificationsEnableEvent

from tests.factories import START_MS, FakeClock, make_client


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_queue():
    """Queue mock whose ``push`` succeeds with increasing entry ids."""
    queue = MagicMock()
    counter = {"n": 0}

    def push(event_name, data, sender="GithubWebhooks"):
        counter["n"] += 1
        return f"{START_MS}-{counter['n']}"

    queue.push = MagicMock(side_effect=push)
    return queue


@pytest.fixture
def fake_client():
    return make_client()


@pytest.fixture
def registration():
    return NotificationsEnableEvent(
        user_id="@alice:example.org",
        room_id="!room:example.org",
        since=0,
        filter_participating=False,
        token="ghp_test_token",
    )


@pytest.fixture
def test_settings():
    """Settings with a tiny scheduler interval for in-process runs."""
    return get_settings().model_copy(update={"poll_interval_seconds": 0.01})
