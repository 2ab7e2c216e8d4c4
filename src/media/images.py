"""Bunny.net Storage adapter for course thumbnails and avatars.

Bunny Storage has no pre-signed uploads and its zone password must stay
server-side, so a browser upload takes two steps:

1. An authenticated user asks for an upload ticket: an HMAC binding the
   user, the object path, the content type and an expiry.
2. The file is sent to ``PUT /v1/upload/image`` with that ticket and the
   API forwards the bytes to the storage zone.

Images are served from the pull zone in front of the storage zone. With
Bunny Optimizer enabled on it, ``width``/``height`` query parameters
resize on the fly.
"""

import hashlib
import hmac
import re
import time
from dataclasses import dataclass
from urllib.parse import quote, urlencode
from uuid import UUID, uuid4

import httpx
import structlog

from src.config.settings import Settings
from src.media.service import (
    MediaDeliveryError,
    MediaNotConfiguredError,
    MediaUpstreamError,
)


logger = structlog.get_logger(__name__)

EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}

FOLDER_PATTERN = re.compile(r"^[a-z0-9_-]+(?:/[a-z0-9_-]+)*$")

# Segments may not start with a dot, which rules out ".." traversal
OBJECT_PATH_PATTERN = re.compile(
    r"^[A-Za-z0-9_-][A-Za-z0-9_.-]*(?:/[A-Za-z0-9_-][A-Za-z0-9_.-]*)*$"
)


class InvalidImageError(MediaDeliveryError):
    """Rejected folder, path, content type or size."""

    def __init__(self, message: str):
        super().__init__(message, "invalid_image")


class InvalidUploadTicketError(MediaDeliveryError):
    """Ticket signature mismatch or ticket expired."""

    def __init__(self, message: str = "Upload ticket is invalid or expired"):
        super().__init__(message, "invalid_upload_ticket")


@dataclass(frozen=True)
class ImageUploadTicket:
    path: str
    content_type: str
    expires: int
    signature: str
    url: str


class ImageStorageService:
    """Issues upload tickets, forwards uploads and builds image URLs."""

    DEFAULT_FOLDER = "images"
    MAX_DIMENSION = 4000

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return self.settings.bunny_storage_configured

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            logger.error("media_not_configured", feature="images")
            raise MediaNotConfiguredError("Image storage is not configured")

    def _sign(self, user_id: UUID, path: str, content_type: str, expires: int) -> str:
        key = (self.settings.bunny_storage_api_key or "").encode()
        message = f"{user_id}:{path}:{content_type}:{expires}".encode()
        return hmac.new(key, message, hashlib.sha256).hexdigest()

    def public_url(self, path: str) -> str:
        return f"https://{self.settings.bunny_images_cdn_hostname}/{quote(path)}"

    def create_upload_ticket(
        self,
        user_id: UUID,
        content_type: str,
        folder: str | None = None,
    ) -> ImageUploadTicket:
        """Reserve a fresh object path and sign an upload to it.

        Raises:
            MediaNotConfiguredError: If Bunny Storage is not configured.
            InvalidImageError: If the folder or content type is not accepted.
        """
        self._ensure_configured()

        folder = (folder or self.DEFAULT_FOLDER).strip("/").lower()
        if not FOLDER_PATTERN.match(folder):
            raise InvalidImageError("Invalid folder")
        if content_type not in self.settings.upload_allowed_image_types:
            raise InvalidImageError(f"Unsupported image type: {content_type}")

        path = f"{folder}/{uuid4().hex}{EXTENSIONS.get(content_type, '')}"
        expires = int(time.time()) + self.settings.bunny_upload_expiry_seconds
        signature = self._sign(user_id, path, content_type, expires)

        logger.info("image_upload_ticket_created", user_id=str(user_id), path=path)
        return ImageUploadTicket(
            path=path,
            content_type=content_type,
            expires=expires,
            signature=signature,
            url=self.public_url(path),
        )

    def verify_ticket(
        self,
        user_id: UUID,
        path: str,
        content_type: str,
        expires: int,
        signature: str,
    ) -> None:
        """Raises InvalidUploadTicketError unless the ticket matches and is live."""
        expected = self._sign(user_id, path, content_type, expires)
        if not hmac.compare_digest(expected, signature):
            logger.warning("image_upload_rejected", reason="signature", path=path)
            raise InvalidUploadTicketError
        if expires < int(time.time()):
            logger.warning("image_upload_rejected", reason="expired", path=path)
            raise InvalidUploadTicketError

    async def upload_image(
        self,
        user_id: UUID,
        *,
        path: str,
        content_type: str,
        expires: int,
        signature: str,
        content: bytes,
    ) -> str:
        """Forward ticketed image bytes to the storage zone.

        Returns:
            Public URL of the stored image.

        Raises:
            MediaNotConfiguredError: If Bunny Storage is not configured.
            InvalidUploadTicketError: If the ticket does not verify.
            InvalidImageError: If the body is empty or too large.
            MediaUpstreamError: If Bunny Storage rejects or drops the upload.
        """
        self._ensure_configured()
        self.verify_ticket(user_id, path, content_type, expires, signature)

        max_bytes = self.settings.upload_image_max_bytes
        if not content:
            raise InvalidImageError("Image is empty")
        if len(content) > max_bytes:
            raise InvalidImageError(f"Image exceeds {max_bytes} bytes")

        url = (
            f"https://{self.settings.bunny_storage_hostname}/"
            f"{self.settings.bunny_storage_zone}/{quote(path)}"
        )
        headers = {
            "AccessKey": self.settings.bunny_storage_api_key or "",
            "Content-Type": "application/octet-stream",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.bunny_api_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.put(url, content=content, headers=headers)
        except httpx.RequestError as e:
            logger.error("bunny_storage_request_error", error=str(e), path=path)
            raise MediaUpstreamError("Image storage request failed") from e

        if response.status_code not in (httpx.codes.OK, httpx.codes.CREATED):
            logger.error(
                "bunny_storage_upload_failed",
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise MediaUpstreamError("Image storage request failed")

        logger.info("image_uploaded", path=path, size=len(content))
        return self.public_url(path)

    def get_image_url(
        self,
        image_id: str,
        width: int | None = None,
        height: int | None = None,
    ) -> str:
        """Optimized URL for a stored image, optionally resized.

        Raises:
            MediaNotConfiguredError: If Bunny Storage is not configured.
            InvalidImageError: If the id is not a plain object path.
        """
        self._ensure_configured()

        image_id = image_id.strip().lstrip("/")
        if not OBJECT_PATH_PATTERN.match(image_id):
            raise InvalidImageError("Invalid image id")

        params = {
            name: value
            for name, value in (("width", width), ("height", height))
            if value
        }
        url = self.public_url(image_id)
        return f"{url}?{urlencode(params)}" if params else url
