"""
Matrix Message Sender.

Asks the Matrix side of the bridge to post text into a room by pushing a
``matrix.message`` event onto the bus.
"""

from typing import Optional

from core.logging import get_logger
from packages.shared.constants import MATRIX_MESSAGE_EVENT, NOTICE_MSGTYPE
from packages.shared.types import MatrixMessageEvent

logger = get_logger("queue")


class MessageSenderClient:
    """Sends room messages through any queue exposing ``push``."""

    def __init__(self, queue):
        self.queue = queue

    def send_matrix_text(
        self,
        room_id: str,
        text: str,
        msgtype: str = NOTICE_MSGTYPE,
    ) -> Optional[str]:
        """Queue a text message for ``room_id``. Returns the bus entry id."""
        event = MatrixMessageEvent(room_id=room_id, text=text, msgtype=msgtype)
        entry_id = self.queue.push(MATRIX_MESSAGE_EVENT, event.to_payload())
        if entry_id is None:
            logger.error("matrix_message_not_queued", room_id=room_id, msgtype=msgtype)
        return entry_id
