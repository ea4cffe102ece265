"""Image storage for message attachments.

Images are stored on local disk as ``{uploads_dir}/{publicId}{ext}`` and
served back by ``GET /uploads/{name}``. Only the bytes are stored; the
message record keeps the returned ``ImageRef``.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from courier.errors import BadRequestError
from courier.messages.schemas import ImageRef

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
)

URL_PREFIX = "/uploads"


@dataclass
class ImageUpload:
    """An image attachment received with a send-message request."""
    filename: str
    content: bytes
    mime_type: str


class ImageStorage:
    """Stores image attachments on disk.

    Args:
        upload_dir: Directory files are written to (created if missing).
        max_bytes: Largest accepted image.
    """

    def __init__(self, upload_dir: str = "uploads", max_bytes: int = 10 * 1024 * 1024) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save(self, upload: ImageUpload) -> ImageRef:
        """Write an image to disk.

        Raises:
            BadRequestError: For non-image MIME types, empty or oversized files.
        """
        if upload.mime_type not in ALLOWED_IMAGE_TYPES:
            raise BadRequestError(f"Unsupported image type: {upload.mime_type}")
        size_bytes = len(upload.content)
        if size_bytes == 0:
            raise BadRequestError("Image is empty")
        if size_bytes > self.max_bytes:
            raise BadRequestError(f"Image exceeds size limit ({self.max_bytes} bytes)")

        public_id = str(uuid.uuid4())
        ext = Path(upload.filename).suffix.lower()
        stored_name = f"{public_id}{ext}"
        (self.upload_dir / stored_name).write_bytes(upload.content)

        logger.info(f"Saved image: {stored_name} ({size_bytes} bytes)")
        return ImageRef(url=f"{URL_PREFIX}/{stored_name}", publicId=public_id)

    def delete(self, ref: ImageRef) -> None:
        """Remove a stored image. Missing files are ignored."""
        path = self.get_path(ref.url.rsplit("/", 1)[-1])
        if path is not None:
            path.unlink()
            logger.info(f"Deleted image: {path.name}")

    def get_path(self, name: str) -> Optional[Path]:
        """Path of a stored file, or None if missing or outside the upload dir."""
        path = (self.upload_dir / name).resolve()
        if path.parent != self.upload_dir.resolve() or not path.is_file():
            return None
        return path


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_storage: Optional[ImageStorage] = None


def get_image_storage() -> ImageStorage:
    """Return the global storage, building it from config on first use."""
    global _storage
    if _storage is None:
        from courier.config import get_config
        settings = get_config().uploads
        _storage = ImageStorage(settings.dir, max_bytes=settings.max_bytes)
    return _storage


def set_image_storage(storage: Optional[ImageStorage]) -> None:
    global _storage
    _storage = storage
