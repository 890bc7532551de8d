"""
Shared Package.

Contains types, constants, enums and utilities shared across the
notification stream and any bridge component that consumes its events.

Usage:
    from packages.shared import UserNotification, NotificationsEnableEvent
    from packages.shared.constants import MIN_INTERVAL_MS
"""

from packages.shared.types import (
    BusMessage,
    MatrixMessageEvent,
    NotificationSubject,
    NotificationsEnableEvent,
    UserNotification,
    UserNotificationsEvent,
)
from packages.shared.constants import (
    EVENT_SENDER,
    FAILURE_THRESHOLD,
    MATRIX_MESSAGE_EVENT,
    MIN_INTERVAL_MS,
    NOTICE_MSGTYPE,
    STREAM_DISABLED_NOTICE,
    USER_NOTIFICATIONS_EVENT,
)
from packages.shared.enums import (
    NotificationReason,
    SubjectType,
)

__all__ = [
    # Types
    "BusMessage",
    "MatrixMessageEvent",
    "NotificationSubject",
    "NotificationsEnableEvent",
    "UserNotification",
    "UserNotificationsEvent",
    # Constants
    "EVENT_SENDER",
    "FAILURE_THRESHOLD",
    "MATRIX_MESSAGE_EVENT",
    "MIN_INTERVAL_MS",
    "NOTICE_MSGTYPE",
    "STREAM_DISABLED_NOTICE",
    "USER_NOTIFICATIONS_EVENT",
    # Enums
    "NotificationReason",
    "SubjectType",
]
