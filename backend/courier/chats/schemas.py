"""Pydantic schemas for chats.

A Chat is a one-to-one conversation between exactly two users. Field names
are camelCase because they go over the wire to the web client unchanged.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from courier.storage import utcnow

# Summary text used for image messages in the chat list
IMAGE_PLACEHOLDER_TEXT = "📷 Image"


class LatestMessage(BaseModel):
    """Snippet of the most recent message, shown in the chat list."""
    text: str = Field(..., description="Message text or image placeholder")
    sender: str = Field(..., description="User ID of the sender")


class Chat(BaseModel):
    """A persisted one-to-one chat.

    Attributes:
        id: Unique chat identifier.
        users: The two participant user IDs, in creation order.
        latestMessage: Summary of the latest message, if any.
        createdAt: When the chat was created (UTC).
        updatedAt: When the chat last changed (UTC).
    """
    id: str = Field(..., description="Unique chat ID")
    users: List[str] = Field(..., min_length=2, max_length=2, description="Participant user IDs")
    latestMessage: Optional[LatestMessage] = Field(default=None, description="Latest message summary")
    createdAt: datetime = Field(default_factory=utcnow, description="Creation time (UTC)")
    updatedAt: datetime = Field(default_factory=utcnow, description="Last update time (UTC)")

    def has_participant(self, user_id: str) -> bool:
        return user_id in self.users

    def other_participant(self, user_id: str) -> Optional[str]:
        """Return the participant that is not ``user_id``, or None."""
        for participant in self.users:
            if participant != user_id:
                return participant
        return None


class CreateChatRequest(BaseModel):
    """Request body for POST /chats."""
    otherUserId: Optional[str] = Field(default=None, description="User to chat with")

    @field_validator("otherUserId", mode="before")
    @classmethod
    def _numeric_id_as_string(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class CreateChatResponse(BaseModel):
    message: str
    chatId: str


class ChatSummary(Chat):
    """Chat annotated with the caller's unseen-message count."""
    unseenCount: int = Field(default=0, ge=0, description="Unseen messages for the caller")


class ChatListItem(BaseModel):
    user: dict = Field(..., description="Other participant's profile")
    chat: ChatSummary


class ChatListResponse(BaseModel):
    chats: List[ChatListItem]
