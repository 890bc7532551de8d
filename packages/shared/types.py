"""
Shared Pydantic Types/Schemas.

Contracts exchanged with GitHub, with the event bus and with the
registration source. Field names follow the wire format of each side:
snake_case for GitHub payloads, camelCase for bus payloads.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .constants import EVENT_SENDER, NOTICE_MSGTYPE
from .enums import NotificationReason, SubjectType


# =============================================================================
# GitHub Notifications
# =============================================================================

class NotificationSubject(BaseModel):
    """
    The object a notification refers to.

    ``url_data`` and ``latest_comment_url_data`` are filled in by the
    enricher; they stay unset when the matching fetch fails.
    """
    model_config = ConfigDict(extra="allow")

    title: str
    url: Optional[str] = None
    latest_comment_url: Optional[str] = None
    type: str
    url_data: Optional[Any] = None
    latest_comment_url_data: Optional[Any] = None

    @property
    def kind(self) -> Optional[SubjectType]:
        """Known subject type, or None for kinds the bridge does not render."""
        try:
            return SubjectType(self.type)
        except ValueError:
            return None


class UserNotification(BaseModel):
    """A single entry from ``GET /notifications``."""
    model_config = ConfigDict(extra="allow")

    id: str
    reason: str
    unread: bool = True
    updated_at: Optional[str] = None
    last_read_at: Optional[str] = None
    url: Optional[str] = None
    subject: NotificationSubject
    repository: Optional[Dict[str, Any]] = None

    @property
    def reason_kind(self) -> Optional[NotificationReason]:
        try:
            return NotificationReason(self.reason)
        except ValueError:
            return None

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with only the fields GitHub sent plus any enrichment."""
        return self.model_dump(mode="json", exclude_unset=True)


# =============================================================================
# Event Bus
# =============================================================================

class UserNotificationsEvent(BaseModel):
    """One enriched batch, published once per successful poll cycle."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    room_id: str = Field(alias="roomId")
    last_read_ts: int = Field(alias="lastReadTs")
    events: List[UserNotification] = Field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "roomId": self.room_id,
            "lastReadTs": self.last_read_ts,
            "events": [event.to_payload() for event in self.events],
        }


class MatrixMessageEvent(BaseModel):
    """Plain-text message to deliver into a Matrix room."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    room_id: str = Field(alias="roomId")
    text: str
    msgtype: str = NOTICE_MSGTYPE

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class BusMessage(BaseModel):
    """Envelope for everything pushed onto the event bus."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_name: str = Field(alias="eventName")
    data: Dict[str, Any]
    sender: str = EVENT_SENDER


# =============================================================================
# Registration
# =============================================================================

class NotificationsEnableEvent(BaseModel):
    """Request to start streaming a user's notifications into a room."""
    user_id: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    since: int = Field(default=0, ge=0, description="Cursor in ms since epoch, 0 for never")
    filter_participating: bool = False
    token: str = Field(min_length=1, repr=False)
