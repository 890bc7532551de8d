"""
Notification Enricher.

Attaches the subject (issue / pull request) and latest comment bodies to
each notification so downstream renderers do not need GitHub access.
"""

import asyncio
from typing import List

from core.logging import get_logger
from packages.shared.types import UserNotification

from .github.client import GitHubRestClient

logger = get_logger("enricher")


class NotificationEnricher:
    """
    Performs the secondary fetches for a notification.

    The subject and latest-comment fetches fail independently. A failed
    fetch leaves its ``*_data`` field unset; the notification itself is
    always returned.
    """

    def __init__(self, client: GitHubRestClient):
        self.client = client

    async def enrich(self, notification: UserNotification) -> UserNotification:
        """Enrich one notification in place and return it."""
        subject = notification.subject

        if subject.url:
            try:
                subject.url_data = await self.client.request(subject.url)
            except Exception as e:
                logger.warning(
                    "enrichment_failed",
                    notification_id=notification.id,
                    field="url_data",
                    error=str(e),
                )

        if subject.latest_comment_url:
            try:
                subject.latest_comment_url_data = await self.client.request(
                    subject.latest_comment_url
                )
            except Exception as e:
                logger.warning(
                    "enrichment_failed",
                    notification_id=notification.id,
                    field="latest_comment_url_data",
                    error=str(e),
                )

        return notification

    async def enrich_all(self, notifications: List[UserNotification]) -> List[UserNotification]:
        """
        Enrich a batch concurrently.

        Concurrency is bounded by the client's semaphore; output order
        matches input order.
        """
        if not notifications:
            return []
        return list(await asyncio.gather(*(self.enrich(n) for n in notifications)))
