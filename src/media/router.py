"""Media API endpoints.

Provides routes for:
- Signed playback URLs for lessons (behind the access gate)
- Upload signatures for lesson videos (admin)
- Ticketed image uploads and resized image URLs
- Media configuration status
"""

from collections.abc import Callable
from typing import Annotated
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.auth.dependencies import AdminUser, CurrentUser
from src.config.settings import Settings, get_settings
from src.courses.dependencies import handle_course_error
from src.courses.service import CourseError
from src.media.access import PlaybackAccessService, PlaybackError
from src.media.images import ImageStorageService
from src.media.schemas import (
    ImageUploadResponse,
    ImageUploadTicketRequest,
    ImageUploadTicketResponse,
    ImageUrlResponse,
    MediaConfigResponse,
    PlaybackUrlResponse,
    UploadSignatureRequest,
    UploadSignatureResponse,
)
from src.media.service import MediaDeliveryError, MediaDeliveryService


router = APIRouter(prefix="/v1/upload", tags=["media"])


# ==============================================================================
# Dependencies
# ==============================================================================


def get_media_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> MediaDeliveryService:
    """Get media delivery service instance."""
    return MediaDeliveryService(settings)


def get_image_service(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ImageStorageService:
    return ImageStorageService(settings)


_playback_access_getter: Callable[[], PlaybackAccessService] | None = None


def set_playback_access_getter(getter: Callable[[], PlaybackAccessService]) -> None:
    """Set the playback access service getter function."""
    global _playback_access_getter  # noqa: PLW0603 - Required for DI pattern
    _playback_access_getter = getter


def get_playback_access_service() -> PlaybackAccessService:
    if _playback_access_getter is None:
        msg = "PlaybackAccessService not configured"
        raise RuntimeError(msg)
    return _playback_access_getter()


MediaServiceDep = Annotated[MediaDeliveryService, Depends(get_media_service)]
ImageServiceDep = Annotated[ImageStorageService, Depends(get_image_service)]
PlaybackAccessDep = Annotated[
    PlaybackAccessService, Depends(get_playback_access_service)
]


def handle_media_error(error: MediaDeliveryError | PlaybackError) -> HTTPException:
    """Convert media and playback errors to HTTPException."""
    status_map = {
        "lesson_unavailable": status.HTTP_404_NOT_FOUND,
        "playback_denied": status.HTTP_403_FORBIDDEN,
        "media_not_configured": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "media_upstream_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
        "invalid_image": status.HTTP_400_BAD_REQUEST,
        "invalid_upload_ticket": status.HTTP_403_FORBIDDEN,
    }
    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )


# ==============================================================================
# Endpoints
# ==============================================================================


@router.get(
    "/config",
    response_model=MediaConfigResponse,
    summary="Get media configuration status",
)
async def get_media_config(
    media_service: MediaServiceDep,
    image_service: ImageServiceDep,
) -> MediaConfigResponse:
    """Media configuration status (public).

    Does NOT expose sensitive information like token or API keys.
    """
    settings = media_service.settings
    return MediaConfigResponse(
        configured=media_service.is_configured,
        upload_configured=media_service.is_api_configured,
        library_id=settings.bunny_library_id if media_service.is_configured else None,
        cdn_hostname=settings.bunny_cdn_hostname
        if media_service.is_configured
        else None,
        images_configured=image_service.is_configured,
    )


@router.get(
    "/video/{course_id}/{lesson_id}",
    response_model=PlaybackUrlResponse,
    summary="Get signed playback URL for a lesson",
    responses={
        403: {"description": "Not enrolled"},
        404: {"description": "Course, lesson or video not found"},
    },
)
async def get_lesson_video_url(
    course_id: str,
    lesson_id: str,
    caller: CurrentUser,
    access_service: PlaybackAccessDep,
    media_service: MediaServiceDep,
) -> PlaybackUrlResponse:
    """Signed, time-limited URL for a lesson video.

    Allowed for admins, for free preview lessons, and for accounts enrolled
    in the course.
    """
    try:
        lesson = await access_service.authorize_playback(caller, course_id, lesson_id)
    except CourseError as e:
        raise handle_course_error(e) from e
    except PlaybackError as e:
        raise handle_media_error(e) from e

    expires_in = media_service.settings.bunny_token_expiry_seconds
    try:
        url = media_service.get_signed_url(lesson.media_ref, expires_in=expires_in)
        embed_url = media_service.get_signed_embed_url(
            lesson.media_ref, expires_in=expires_in
        )
    except MediaDeliveryError as e:
        raise handle_media_error(e) from e

    return PlaybackUrlResponse(url=url, embed_url=embed_url, expires_in=expires_in)


@router.post(
    "/signature/video",
    response_model=UploadSignatureResponse,
    summary="Sign a direct video upload",
)
async def create_video_upload_signature(
    data: UploadSignatureRequest,
    media_service: MediaServiceDep,
    _admin: AdminUser,
) -> UploadSignatureResponse:
    """Create a library video and return TUS upload credentials (admin only).

    The returned ``video_id`` is what goes into a lesson's ``mediaRef``.
    """
    try:
        signature = await media_service.create_upload_signature(data.title)
    except MediaDeliveryError as e:
        raise handle_media_error(e) from e

    return UploadSignatureResponse(
        video_id=signature.video_id,
        library_id=signature.library_id,
        expiration=signature.expiration,
        signature=signature.signature,
        endpoint=signature.endpoint,
    )


@router.post(
    "/signature/image",
    response_model=ImageUploadTicketResponse,
    summary="Get an image upload ticket",
)
async def create_image_upload_ticket(
    data: ImageUploadTicketRequest,
    caller: CurrentUser,
    image_service: ImageServiceDep,
) -> ImageUploadTicketResponse:
    """Reserve a storage path for a thumbnail or avatar.

    Send the file with ``PUT /v1/upload/image`` before ``expires``.
    """
    try:
        ticket = image_service.create_upload_ticket(
            caller.id, data.content_type, data.folder
        )
    except MediaDeliveryError as e:
        raise handle_media_error(e) from e

    query = urlencode(
        {"path": ticket.path, "expires": ticket.expires, "signature": ticket.signature}
    )
    upload_url = f"/v1/upload/image?{query}"
    return ImageUploadTicketResponse(
        path=ticket.path,
        content_type=ticket.content_type,
        expires=ticket.expires,
        signature=ticket.signature,
        upload_url=upload_url,
        url=ticket.url,
    )


@router.put(
    "/image",
    response_model=ImageUploadResponse,
    summary="Upload an image with a ticket",
    responses={
        400: {"description": "Empty, oversized or wrong content type"},
        403: {"description": "Ticket invalid or expired"},
    },
)
async def upload_image(
    request: Request,
    caller: CurrentUser,
    image_service: ImageServiceDep,
    path: Annotated[str, Query(min_length=1)],
    expires: Annotated[int, Query()],
    signature: Annotated[str, Query(min_length=1)],
) -> ImageUploadResponse:
    """Store the raw request body at the ticketed path."""
    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    content = await request.body()
    try:
        url = await image_service.upload_image(
            caller.id,
            path=path,
            content_type=content_type,
            expires=expires,
            signature=signature,
            content=content,
        )
    except MediaDeliveryError as e:
        raise handle_media_error(e) from e

    return ImageUploadResponse(path=path, url=url)


@router.get(
    "/image",
    response_model=ImageUrlResponse,
    summary="Get an optimized image URL",
)
async def get_image_url(
    image_service: ImageServiceDep,
    image_id: Annotated[str, Query(alias="id", min_length=1)],
    width: Annotated[
        int | None, Query(alias="w", ge=1, le=ImageStorageService.MAX_DIMENSION)
    ] = None,
    height: Annotated[
        int | None, Query(alias="h", ge=1, le=ImageStorageService.MAX_DIMENSION)
    ] = None,
) -> ImageUrlResponse:
    """Public URL for a stored image, resized when ``w``/``h`` are given."""
    try:
        url = image_service.get_image_url(image_id, width=width, height=height)
    except MediaDeliveryError as e:
        raise handle_media_error(e) from e

    return ImageUrlResponse(url=url)
