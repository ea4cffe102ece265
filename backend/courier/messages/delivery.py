"""Delivery engine: persisting messages and fanning them out to live clients.

This is the core of Courier. On send it decides whether the message is
already seen (the receiver is online *and* viewing the chat room), writes
the message and the chat's latest-message summary, and pushes the message
to the room, the receiver and the sender. On fetch it marks the reader's
unseen messages as seen and tells the other participant in real time.

Fanout order on send (each step best-effort, a failure never blocks the next):
    1. newMessage   -> chat room (every connection that joined it)
    2. newMessage   -> receiver's connection (online but maybe not in the room)
    3. newMessage   -> sender's connection (mirrors the send to the sender)
    4. messagesSeen -> sender's connection, only if seen at write time

Steps 1-3 can deliver the same message more than once to one client (for
example when the sender's connection also joined the room). Clients
deduplicate ``newMessage`` by message id.

There is no transaction across the message insert and the chat-summary
update. A crash between them leaves a stale summary and a durable message.
"""
import logging
from typing import Awaitable, List, Optional, Tuple

from courier.chats.schemas import IMAGE_PLACEHOLDER_TEXT, Chat
from courier.chats.store import ChatStore
from courier.errors import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from courier.profiles.client import UserProfileClient
from courier.realtime.manager import (
    EVENT_MESSAGES_SEEN,
    EVENT_NEW_MESSAGE,
    ConnectionManager,
)
from courier.storage import utcnow
from courier.uploads.service import ImageStorage, ImageUpload

from .schemas import Message, MessagesSeenEvent, MessageType
from .store import MessageStore

logger = logging.getLogger(__name__)


class DeliveryEngine:
    """Send and fetch operations over the stores and the live channel.

    Args:
        chats: Chat store.
        messages: Message store.
        connections: Live notification channel (presence + rooms).
        profiles: User-profile client.
        images: Image storage, required only to send image attachments.
    """

    def __init__(
        self,
        chats: ChatStore,
        messages: MessageStore,
        connections: ConnectionManager,
        profiles: UserProfileClient,
        images: Optional[ImageStorage] = None,
    ) -> None:
        self._chats = chats
        self._messages = messages
        self._connections = connections
        self._profiles = profiles
        self._images = images

    # =========================================================================
    # Shared checks
    # =========================================================================

    def _load_chat_for(self, user_id: str, chat_id: str) -> Chat:
        chat = self._chats.get(chat_id)
        if chat is None:
            raise NotFoundError("Chat not found")
        if not chat.has_participant(user_id):
            raise ForbiddenError("You are not a participant of this chat")
        return chat

    async def _best_effort(self, step: str, emit: Awaitable) -> None:
        try:
            await emit
        except Exception as e:
            logger.warning(f"[Delivery] {step} emit failed: {e}")

    # =========================================================================
    # Send
    # =========================================================================

    async def send_message(
        self,
        sender_id: Optional[str],
        chat_id: Optional[str],
        text: Optional[str] = None,
        image: Optional[ImageUpload] = None,
    ) -> Tuple[Message, str]:
        """Validate, persist and fan out one message.

        Args:
            sender_id: Authenticated sender (None if unauthenticated).
            chat_id: Target chat.
            text: Optional message text.
            image: Optional image attachment.

        Returns:
            Tuple of (persisted message, sender id).

        Raises:
            UnauthorizedError: No sender, or the chat has no other participant.
            BadRequestError: Missing chat id or content.
            NotFoundError: Chat does not exist.
            ForbiddenError: Sender is not a participant.
        """
        if not sender_id:
            raise UnauthorizedError("unauthorized")
        if not chat_id:
            raise BadRequestError("chatId required")
        has_text = bool(text and text.strip())
        if not has_text and image is None:
            raise BadRequestError("content required")

        chat = self._load_chat_for(sender_id, chat_id)
        receiver_id = chat.other_participant(sender_id)
        if receiver_id is None:
            logger.error(f"[Delivery] Chat {chat_id} has no other participant for {sender_id}")
            raise UnauthorizedError("No other user")

        # Seen-at-write-time: receiver online and viewing this chat room.
        # No await between these reads and the write below.
        receiver_connection = self._connections.get_connection_id(receiver_id)
        seen = self._connections.is_viewing(receiver_id, chat_id)

        image_ref = None
        if image is not None:
            if self._images is None:
                raise BadRequestError("Image attachments are not enabled")
            image_ref = self._images.save(image)

        now = utcnow()
        message = Message(
            chatId=chat_id,
            sender=sender_id,
            text=text or "",
            image=image_ref,
            messageType=MessageType.IMAGE if image_ref else MessageType.TEXT,
            seen=seen,
            seenAt=now if seen else None,
            createdAt=now,
        )
        try:
            self._messages.create(message)
        except Exception:
            if image_ref is not None:
                self._images.delete(image_ref)
            raise
        logger.info(
            f"[Delivery] Saved message {message.id} in chat {chat_id} "
            f"from {sender_id} (seen={seen})"
        )

        summary_text = IMAGE_PLACEHOLDER_TEXT if image_ref else message.text
        self._chats.update_latest_message(chat_id, summary_text, sender_id, now)

        await self._fan_out(message, receiver_id, receiver_connection)
        return message, sender_id

    async def _fan_out(
        self, message: Message, receiver_id: str, receiver_connection: Optional[str]
    ) -> None:
        payload = message.model_dump(mode="json")
        chat_id = message.chatId

        await self._best_effort(
            "room",
            self._connections.emit_to_room(chat_id, EVENT_NEW_MESSAGE, payload),
        )

        if receiver_connection:
            await self._best_effort(
                "receiver",
                self._connections.emit_to_connection(receiver_connection, EVENT_NEW_MESSAGE, payload),
            )

        sender_connection = self._connections.get_connection_id(message.sender)
        if sender_connection:
            await self._best_effort(
                "sender",
                self._connections.emit_to_connection(sender_connection, EVENT_NEW_MESSAGE, payload),
            )

        if message.seen and sender_connection:
            seen_event = MessagesSeenEvent(
                chatId=chat_id, seenBy=receiver_id, messageIds=[message.id]
            )
            await self._best_effort(
                "seen",
                self._connections.emit_to_connection(
                    sender_connection, EVENT_MESSAGES_SEEN, seen_event.model_dump()
                ),
            )

    # =========================================================================
    # Fetch
    # =========================================================================

    async def get_messages_by_chat(
        self, user_id: Optional[str], chat_id: Optional[str]
    ) -> Tuple[List[Message], dict]:
        """Return a chat's messages, marking the reader's unseen ones as seen.

        The seen update and its ``messagesSeen`` notification finish before
        the profile lookup starts, so a slow profile service delays only
        the response.

        Returns:
            Tuple of (messages oldest first, other participant's profile).

        Raises:
            UnauthorizedError: No authenticated user.
            BadRequestError: Missing chat id, or no other participant.
            NotFoundError: Chat does not exist.
            ForbiddenError: User is not a participant.
        """
        if not user_id:
            raise UnauthorizedError("Unauthorized")
        if not chat_id:
            raise BadRequestError("chatId required")

        chat = self._load_chat_for(user_id, chat_id)
        other_id = chat.other_participant(user_id)
        if other_id is None:
            logger.error(f"[Delivery] Chat {chat_id} has no other participant for {user_id}")
            raise BadRequestError("No other user found")

        newly_seen = self._messages.unseen_ids_for_reader(chat_id, user_id)
        if newly_seen:
            self._messages.mark_seen(newly_seen, utcnow())
            logger.info(f"[Delivery] {user_id} saw {len(newly_seen)} message(s) in chat {chat_id}")

        messages = self._messages.list_by_chat(chat_id)

        if newly_seen:
            seen_event = MessagesSeenEvent(chatId=chat_id, seenBy=user_id, messageIds=newly_seen)
            await self._best_effort(
                "seen",
                self._connections.emit_to_user(other_id, EVENT_MESSAGES_SEEN, seen_event.model_dump()),
            )

        profile = await self._profiles.resolve_profile(other_id)
        return messages, profile
