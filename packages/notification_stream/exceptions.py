"""Errors raised by the notification stream."""

from typing import Optional


class NotificationStreamError(Exception):
    """Base class for notification stream errors."""


class GitHubRequestError(NotificationStreamError):
    """Raised when a GitHub REST request fails at the transport or HTTP level."""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        self.url = url
        self.status = status
        self.body = body
        super().__init__(message)


class NotificationParseError(NotificationStreamError):
    """Raised when GitHub returns something that is not a notification list."""


class StreamNotFoundError(NotificationStreamError, KeyError):
    """Raised when an operation targets a user with no registered stream."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No notification stream registered for {user_id}")

    def __str__(self) -> str:
        return self.args[0]
