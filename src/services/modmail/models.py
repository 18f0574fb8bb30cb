"""
Courier - Modmail Models
========================

Message payloads, relay direction and the delivery error.

DESIGN:
    A DM can reach a thread straight from the gateway (a discord.Message)
    or later from a pending selection (a stored row with attachment URLs).
    InboundMessage flattens both into one shape so the lifecycle code
    never cares where the text came from.

Author: Courier Maintainers
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

import discord

from src.core.database import PendingMessageRecord


class Direction(Enum):
    """Which way a relayed message travels."""
    USER_TO_STAFF = "user_to_staff"
    STAFF_TO_USER = "staff_to_user"


class ThreadDeliveryError(Exception):
    """
    A message could not be delivered to the other side of a thread.

    Attributes:
        reason: Short human readable cause shown to the sender.
    """

    def __init__(self, reason: str, original: Optional[Exception] = None):
        super().__init__(reason)
        self.reason = reason
        self.original = original


@dataclass
class InboundMessage:
    """
    Text and attachments to relay.

    Attributes:
        content: Message text (may be empty when only files were sent).
        attachments: Attachment URLs.
        author: Who wrote it, when known.
        source: The original Discord message, used for acknowledgement reactions.
    """
    content: str = ""
    attachments: List[str] = field(default_factory=list)
    author: Optional[Union[discord.User, discord.Member]] = None
    source: Optional[discord.Message] = None

    @classmethod
    def from_message(cls, message: discord.Message) -> "InboundMessage":
        return cls(
            content=message.content or "",
            attachments=[a.url for a in message.attachments],
            author=message.author,
            source=message,
        )

    @classmethod
    def from_pending(
        cls,
        record: PendingMessageRecord,
        author: Optional[Union[discord.User, discord.Member]] = None,
    ) -> "InboundMessage":
        return cls(
            content=record.get("content") or "",
            attachments=list(record.get("attachments") or []),
            author=author,
        )

    @property
    def is_empty(self) -> bool:
        return not self.content.strip() and not self.attachments


def as_inbound(message: Union[discord.Message, InboundMessage, None]) -> InboundMessage:
    """Normalise whatever the caller holds into an InboundMessage."""
    if message is None:
        return InboundMessage()
    if isinstance(message, InboundMessage):
        return message
    return InboundMessage.from_message(message)


__all__ = [
    "Direction",
    "ThreadDeliveryError",
    "InboundMessage",
    "as_inbound",
]
