"""
Shared Constants.

Constants used across all packages. Values that other bridge components
depend on (event names, sender tag, notice wording) must stay byte-for-byte
stable.
"""

# =============================================================================
# Polling
# =============================================================================

# Minimum time between two notification fetches for one stream.
MIN_INTERVAL_MS: int = 15000

# A stream is disabled once its failure count exceeds this value.
FAILURE_THRESHOLD: int = 50

# =============================================================================
# Event Bus
# =============================================================================

USER_NOTIFICATIONS_EVENT: str = "notifications.user.events"
MATRIX_MESSAGE_EVENT: str = "matrix.message"

# Sender tag attached to every event produced by this subsystem.
EVENT_SENDER: str = "GithubWebhooks"

# =============================================================================
# Notices
# =============================================================================

NOTICE_MSGTYPE: str = "m.notice"

STREAM_DISABLED_NOTICE: str = (
    "The bridge has been unable to process your notification stream for some time, "
    "and has disabled notifications.\n"
    "Check your GitHub token is still valid, and then turn notifications back on."
)
