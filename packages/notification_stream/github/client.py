"""
Async GitHub REST Client.

Features:
- Async HTTP with aiohttp
- Token authentication per user
- Connection pooling with a bounded number of in-flight requests
- Typed access to the notifications endpoint
"""

import asyncio
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from core.config import get_settings
from core.logging import get_logger
from packages.shared.types import UserNotification
from packages.shared.utils import ms_to_iso

from ..exceptions import GitHubRequestError, NotificationParseError

logger = get_logger("github")

NOTIFICATIONS_PATH = "/notifications"


class GitHubRestClient:
    """
    Async GitHub REST client bound to one user's token.

    The session is opened lazily on first request so a client can be built
    outside the event loop and handed to a stream.

    Example:
        async with GitHubRestClient(token) as client:
            for notification in await client.list_notifications(participating=True):
                print(notification.subject.title)
    """

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        user_agent: Optional[str] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[int] = None,
    ):
        if not token:
            raise ValueError("GitHub token required")

        settings = get_settings()
        self.token = token
        self.base_url = (base_url or settings.github_api_url).rstrip("/")
        self.user_agent = user_agent or settings.github_user_agent
        self.max_concurrent = max_concurrent or settings.github_max_concurrent
        self.timeout = timeout or settings.github_request_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore = asyncio.Semaphore(self.max_concurrent)

    def __repr__(self) -> str:
        return f"GitHubRestClient(base_url={self.base_url!r})"

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    async def open(self) -> None:
        """Create the aiohttp session if it is not already open."""
        if not self.closed:
            return

        connector = aiohttp.TCPConnector(
            limit=self.max_concurrent * 2,
            limit_per_host=self.max_concurrent,
        )
        self._session = aiohttp.ClientSession(
            connector=connector,
            headers={
                "Authorization": f"token {self.token}",
                "Accept": "application/vnd.github+json",
                "User-Agent": self.user_agent,
            },
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "GitHubRestClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def resolve_url(self, path_or_url: str) -> str:
        """Turn an API path into an absolute URL; absolute URLs pass through."""
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        if not path_or_url.startswith("/"):
            path_or_url = f"/{path_or_url}"
        return f"{self.base_url}{path_or_url}"

    async def request(
        self,
        path_or_url: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Issue a GET and return the decoded JSON body.

        No retries: callers decide what a failure means for them.

        Raises:
            GitHubRequestError: on timeouts, connection errors, non-2xx
                statuses and undecodable bodies.
        """
        await self.open()
        url = self.resolve_url(path_or_url)

        async with self._semaphore:
            try:
                async with self._session.get(url, params=params) as response:
                    if response.status >= 400:
                        text = await response.text()
                        raise GitHubRequestError(
                            f"GitHub API error {response.status}",
                            url=url,
                            status=response.status,
                            body=text[:500],
                        )
                    if response.status == 204:
                        return None
                    return await response.json(content_type=None)

            except asyncio.TimeoutError as e:
                raise GitHubRequestError("Request timed out", url=url) from e

            except aiohttp.ClientError as e:
                raise GitHubRequestError(f"Client error: {e}", url=url) from e

            except ValueError as e:
                raise GitHubRequestError(f"Invalid JSON body: {e}", url=url) from e

    async def list_notifications(
        self,
        participating: bool = False,
        since_ms: int = 0,
    ) -> List[UserNotification]:
        """
        Fetch the authenticated user's notifications.

        Args:
            participating: Only return notifications the user participates in.
            since_ms: Only return notifications updated after this time.
                0 means no lower bound.

        Raises:
            GitHubRequestError: if the request fails.
            NotificationParseError: if the body is not a list of notifications.
        """
        params = {"participating": "true" if participating else "false"}
        if since_ms:
            params["since"] = ms_to_iso(since_ms)

        data = await self.request(NOTIFICATIONS_PATH, params=params)

        if not isinstance(data, list):
            raise NotificationParseError(
                f"Expected a list of notifications, got {type(data).__name__}"
            )
        try:
            return [UserNotification.model_validate(item) for item in data]
        except ValidationError as e:
            raise NotificationParseError(f"Malformed notification: {e}") from e
