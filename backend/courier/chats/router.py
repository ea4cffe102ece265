"""Chat REST endpoints.

Endpoints:
    POST /chats - Create (or return the existing) chat with another user
    GET  /chats - List the caller's chats with unseen counts and profiles
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from courier.auth import current_user_id
from courier.messages.store import MessageStore
from courier.profiles.client import get_profile_client
from courier.storage import Database

from .schemas import ChatListResponse, CreateChatRequest, CreateChatResponse
from .service import ChatService
from .store import ChatStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


def get_chat_service() -> ChatService:
    db = Database.get_instance()
    return ChatService(ChatStore(db), MessageStore(db), get_profile_client())


@router.post("", response_model=CreateChatResponse)
async def create_new_chat(
    request: Optional[CreateChatRequest] = None,
    user_id: Optional[str] = Depends(current_user_id),
) -> JSONResponse:
    """Create a chat with ``otherUserId`` or return the existing one.

    Returns:
        201 {message: "New Chat created", chatId} for a new chat,
        200 {message: "Chat already exist", chatId} otherwise.
    """
    other_user_id = request.otherUserId if request else None
    logger.info(f"Create Chat Request: userId={user_id}, otherUserId={other_user_id}")

    chat_id, created = get_chat_service().create_new_chat(user_id, other_user_id)
    if created:
        body = CreateChatResponse(message="New Chat created", chatId=chat_id)
        return JSONResponse(body.model_dump(), status_code=201)
    body = CreateChatResponse(message="Chat already exist", chatId=chat_id)
    return JSONResponse(body.model_dump(), status_code=200)


@router.get("", response_model=ChatListResponse)
async def get_all_chats(
    user_id: Optional[str] = Depends(current_user_id),
) -> ChatListResponse:
    """List the caller's chats, most recently updated first."""
    chats = await get_chat_service().get_all_chats(user_id)
    return ChatListResponse(chats=chats)
