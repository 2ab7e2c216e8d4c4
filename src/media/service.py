"""Bunny.net Stream adapter for signed playback URLs and browser uploads.

This service handles:
- Signed HLS playlist URLs (CDN token authentication)
- Signed iframe embed URLs
- Creating library videos and signing TUS uploads for admins

SECURITY: The token_key and api_key stay server-side; clients only ever see
derived, time-limited signatures.
"""

import hashlib
import re
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import httpx
import structlog

from src.config.settings import Settings


logger = structlog.get_logger(__name__)


class MediaDeliveryError(Exception):
    """Media CDN not configured or unreachable."""

    def __init__(self, message: str, code: str = "media_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class MediaNotConfiguredError(MediaDeliveryError):
    """Raised when Bunny.net is not configured."""

    def __init__(self, message: str = "Video delivery is not configured"):
        super().__init__(message, "media_not_configured")


class MediaUpstreamError(MediaDeliveryError):
    """Raised when a Bunny.net API request fails."""

    def __init__(self, message: str = "Video provider request failed"):
        super().__init__(message, "media_upstream_error")


@dataclass(frozen=True)
class UploadSignature:
    """Everything a browser needs for a direct TUS upload."""

    video_id: str
    library_id: str
    expiration: int
    signature: str
    endpoint: str


class MediaDeliveryService:
    """Signs Bunny.net Stream URLs and uploads.

    Playback tokens:
    - HLS: SHA256(token_key + "/{video_id}/" + expires), path-scoped
    - Embed: SHA256(token_key + video_id + expires)

    Upload signatures: SHA256(library_id + api_key + expiration + video_id)
    """

    # A media ref may be a bare video id or a full embed/play URL
    EMBED_PATTERN = re.compile(
        r"iframe\.mediadelivery\.net/(?:embed|play)/\d+/([a-f0-9-]+)", re.IGNORECASE
    )
    VIDEO_ID_PATTERN = re.compile(r"^[a-f0-9-]{36}$", re.IGNORECASE)

    BUNNY_API_BASE = "https://video.bunnycdn.com"
    TUS_ENDPOINT = "https://video.bunnycdn.com/tusupload"

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize with settings.

        Args:
            settings: Application settings containing Bunny configuration.
            transport: Optional httpx transport for the Bunny API client.
        """
        self.settings = settings
        self._library_id = settings.bunny_library_id
        self._cdn_hostname = settings.bunny_cdn_hostname
        self._token_key = settings.bunny_token_key
        self._api_key = settings.bunny_api_key
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        """Playback signing is possible."""
        return self.settings.bunny_configured

    @property
    def is_api_configured(self) -> bool:
        """Library management (uploads) is possible."""
        return self.settings.bunny_api_configured

    def _ensure_configured(self) -> None:
        if not self.is_configured:
            logger.error("media_not_configured", feature="playback")
            raise MediaNotConfiguredError

    def _ensure_api_configured(self) -> None:
        if not self.is_api_configured:
            logger.error("media_not_configured", feature="upload")
            raise MediaNotConfiguredError("Video upload is not configured")

    def extract_video_id(self, media_ref: str) -> str:
        """Video id from a bare id or an iframe URL (returned as given otherwise)."""
        media_ref = media_ref.strip()
        if self.VIDEO_ID_PATTERN.match(media_ref):
            return media_ref
        match = self.EMBED_PATTERN.search(media_ref)
        return match.group(1) if match else media_ref

    @staticmethod
    def _sha256(data: str) -> str:
        return hashlib.sha256(data.encode()).hexdigest()

    def get_signed_url(self, media_ref: str, expires_in: int = 3600) -> str:
        """Signed HLS playlist URL, valid for ``expires_in`` seconds.

        Raises:
            MediaNotConfiguredError: If Bunny.net is not configured.
        """
        self._ensure_configured()

        video_id = self.extract_video_id(media_ref)
        expires = int(time.time()) + expires_in

        # Token covers every file under the video directory (playlist + segments)
        token_path = f"/{video_id}/"
        token = self._sha256(f"{self._token_key}{token_path}{expires}")

        url = (
            f"https://{self._cdn_hostname}/"
            f"bcdn_token={token}&"
            f"expires={expires}&"
            f"token_path={token_path}/"
            f"{video_id}/playlist.m3u8"
        )

        logger.debug("signed_hls_url_generated", video_id=video_id, expires=expires)
        return url

    def get_signed_embed_url(
        self,
        media_ref: str,
        expires_in: int = 3600,
        *,
        autoplay: bool = False,
    ) -> str:
        """Signed iframe embed URL, valid for ``expires_in`` seconds.

        Raises:
            MediaNotConfiguredError: If Bunny.net is not configured.
        """
        self._ensure_configured()

        video_id = self.extract_video_id(media_ref)
        expires = int(time.time()) + expires_in

        params: dict[str, str | int] = {
            "token": self._sha256(f"{self._token_key}{video_id}{expires}"),
            "expires": expires,
        }
        if autoplay:
            params["autoplay"] = "true"

        logger.debug("signed_embed_url_generated", video_id=video_id, expires=expires)
        return (
            "https://iframe.mediadelivery.net/embed/"
            f"{self._library_id}/{video_id}?{urlencode(params)}"
        )

    async def create_upload_signature(self, title: str) -> UploadSignature:
        """Create a library video and sign a TUS upload for it.

        Raises:
            MediaNotConfiguredError: If the Bunny API is not configured.
            MediaUpstreamError: If the video could not be created.
        """
        self._ensure_api_configured()

        url = f"{self.BUNNY_API_BASE}/library/{self._library_id}/videos"
        headers = {
            "AccessKey": self._api_key or "",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.bunny_api_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json={"title": title}, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("bunny_api_timeout", error=str(e))
            raise MediaUpstreamError("Video provider timed out") from e
        except httpx.RequestError as e:
            logger.error("bunny_api_request_error", error=str(e))
            raise MediaUpstreamError from e

        if response.status_code not in (httpx.codes.OK, httpx.codes.CREATED):
            logger.error(
                "bunny_api_request_failed",
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            raise MediaUpstreamError

        video_id = response.json().get("guid")
        if not video_id:
            logger.error("bunny_api_missing_guid")
            raise MediaUpstreamError

        expiration = int(time.time()) + self.settings.bunny_upload_expiry_seconds
        signature = self._sha256(
            f"{self._library_id}{self._api_key}{expiration}{video_id}"
        )

        logger.info("upload_signature_created", video_id=video_id)
        return UploadSignature(
            video_id=video_id,
            library_id=self._library_id or "",
            expiration=expiration,
            signature=signature,
            endpoint=self.TUS_ENDPOINT,
        )
