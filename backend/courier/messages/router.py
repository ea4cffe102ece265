"""Message REST endpoints.

Endpoints:
    POST /messages          - Send a text and/or image message (multipart form)
    GET  /messages/{chatId} - Fetch a chat's messages, marking them seen
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from courier.auth import current_user_id
from courier.chats.store import ChatStore
from courier.profiles.client import get_profile_client
from courier.realtime.manager import manager
from courier.storage import Database
from courier.uploads.service import ImageUpload, get_image_storage

from .delivery import DeliveryEngine
from .schemas import ChatMessagesResponse, SendMessageResponse
from .store import MessageStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


def get_delivery_engine() -> DeliveryEngine:
    db = Database.get_instance()
    return DeliveryEngine(
        ChatStore(db),
        MessageStore(db),
        manager,
        get_profile_client(),
        images=get_image_storage(),
    )


@router.post("", response_model=SendMessageResponse, status_code=201)
async def send_message(
    chatId: Optional[str] = Form(None),
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Depends(current_user_id),
) -> JSONResponse:
    """Send a message to a chat and push it to live clients.

    Returns:
        201 {message, sender}.
    """
    upload = None
    if image is not None and image.filename:
        # One byte past the limit is enough for ImageStorage to reject it
        limit = get_image_storage().max_bytes + 1
        upload = ImageUpload(
            filename=image.filename,
            content=await image.read(limit),
            mime_type=image.content_type or "application/octet-stream",
        )

    logger.info(
        f"SendMessage Request: senderId={user_id}, chatId={chatId}, "
        f"hasText={bool(text)}, hasImage={upload is not None}"
    )

    message, sender = await get_delivery_engine().send_message(user_id, chatId, text, upload)
    body = SendMessageResponse(message=message, sender=sender)
    return JSONResponse(body.model_dump(mode="json"), status_code=201)


@router.get("/{chatId}", response_model=ChatMessagesResponse)
async def get_messages_by_chat(
    chatId: str,
    user_id: Optional[str] = Depends(current_user_id),
) -> ChatMessagesResponse:
    """Return all messages of a chat (oldest first) and the other user's profile."""
    messages, profile = await get_delivery_engine().get_messages_by_chat(user_id, chatId)
    return ChatMessagesResponse(messages=messages, user=profile)
