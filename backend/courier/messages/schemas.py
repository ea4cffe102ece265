"""Pydantic schemas for chat messages.

A message carries text, an image reference, or both. ``seenAt`` is present
if and only if ``seen`` is true; the model validator enforces it so no code
path can build an inconsistent record.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from courier.storage import utcnow


class MessageType(str, Enum):
    """Kind of chat message.

    Attributes:
        TEXT: Plain text message.
        IMAGE: Message with an image attachment (text optional).
    """
    TEXT = "text"
    IMAGE = "image"


class ImageRef(BaseModel):
    """Reference to a stored image."""
    url: str = Field(..., description="URL the image is served from")
    publicId: str = Field(..., description="Storage identifier")


class Message(BaseModel):
    """A persisted chat message, as stored and as pushed to clients."""
    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique message ID"
    )
    chatId: str = Field(..., description="Chat this message belongs to")
    sender: str = Field(..., description="User ID of the sender")
    text: str = Field(default="", description="Message text")
    image: Optional[ImageRef] = Field(default=None, description="Image attachment")
    messageType: MessageType = Field(default=MessageType.TEXT, description="Message kind")
    seen: bool = Field(default=False, description="Whether the receiver has seen it")
    seenAt: Optional[datetime] = Field(default=None, description="When it was seen (UTC)")
    createdAt: datetime = Field(default_factory=utcnow, description="Creation time (UTC)")

    @model_validator(mode="after")
    def _seen_at_matches_seen(self) -> "Message":
        if self.seen != (self.seenAt is not None):
            raise ValueError("seenAt must be set if and only if seen is true")
        return self


class SendMessageResponse(BaseModel):
    message: Message
    sender: str


class MessagesSeenEvent(BaseModel):
    """Payload of the ``messagesSeen`` real-time event."""
    chatId: str
    seenBy: str
    messageIds: List[str]


class ChatMessagesResponse(BaseModel):
    messages: List[Message]
    user: dict = Field(..., description="Other participant's profile")
