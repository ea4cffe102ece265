"""Chat creation and listing.

Listing resolves every other participant's profile concurrently with
asyncio.gather(); a failed lookup degrades to the placeholder profile and
never fails the request.
"""
import asyncio
import logging
from typing import List, Optional, Tuple

from courier.errors import BadRequestError, UnauthorizedError
from courier.messages.store import MessageStore
from courier.profiles.client import UserProfileClient

from .schemas import Chat, ChatListItem, ChatSummary
from .store import ChatStore

logger = logging.getLogger(__name__)


class ChatService:
    """Create-or-get and list operations for chats.

    Args:
        chats: Chat store.
        messages: Message store (for unseen counts).
        profiles: User-profile client.
    """

    def __init__(
        self, chats: ChatStore, messages: MessageStore, profiles: UserProfileClient
    ) -> None:
        self._chats = chats
        self._messages = messages
        self._profiles = profiles

    def create_new_chat(
        self, user_id: Optional[str], other_user_id: Optional[str]
    ) -> Tuple[str, bool]:
        """Return the chat id for this pair, creating the chat if needed.

        Returns:
            Tuple of (chat_id, created).

        Raises:
            UnauthorizedError: No authenticated user.
            BadRequestError: Missing other user, or a self-chat.
        """
        if not user_id:
            raise UnauthorizedError("Unauthorized")
        if not other_user_id or str(other_user_id) == str(user_id):
            logger.warning(f"Invalid otherUserId from {user_id}: {other_user_id!r}")
            raise BadRequestError("Invalid otherUserId")

        chat, created = self._chats.get_or_create(user_id, str(other_user_id))
        if created:
            logger.info(f"New chat created: {chat.id}")
        else:
            logger.info(f"Existing chat found: {chat.id}")
        return chat.id, created

    async def get_all_chats(self, user_id: Optional[str]) -> List[ChatListItem]:
        """List the user's chats, most recently updated first.

        Each entry carries the other participant's profile (or placeholder)
        and the number of messages the user has not seen yet. Chats with no
        resolvable other participant violate the two-user invariant; they
        are logged and left out.
        """
        if not user_id:
            raise UnauthorizedError("Unauthorized")

        chats = self._chats.list_for_user(user_id)
        logger.info(f"Found {len(chats)} chats for {user_id}")

        valid: List[Tuple[Chat, str]] = []
        for chat in chats:
            other_id = chat.other_participant(user_id)
            if other_id is None:
                logger.error(f"Chat {chat.id} has no other participant; skipping")
                continue
            valid.append((chat, other_id))

        profiles = await asyncio.gather(
            *[self._profiles.resolve_profile(other_id) for _, other_id in valid]
        )

        items = []
        for (chat, _), profile in zip(valid, profiles):
            unseen = self._messages.count_unseen_for_reader(chat.id, user_id)
            items.append(
                ChatListItem(
                    user=profile,
                    chat=ChatSummary(**chat.model_dump(), unseenCount=unseen),
                )
            )
        return items
