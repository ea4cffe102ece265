"""FastAPI router serving stored image attachments."""
import logging

from fastapi import APIRouter
from fastapi.responses import FileResponse

from courier.errors import NotFoundError

from .service import get_image_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.get("/{name}")
async def download_image(name: str):
    """Serve a stored image by its stored file name.

    Raises:
        NotFoundError: If no such file exists.
    """
    path = get_image_storage().get_path(name)
    if path is None:
        raise NotFoundError("File not found")
    return FileResponse(path=path)
