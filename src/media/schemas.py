"""Pydantic schemas for the media API.

Request and response models for playback URLs, upload signatures
and images.
"""

from pydantic import BaseModel, ConfigDict, Field


class PlaybackUrlResponse(BaseModel):
    """Signed playback URL for one lesson."""

    url: str = Field(..., description="Signed HLS playlist URL")
    embed_url: str | None = Field(
        default=None,
        description="Signed iframe embed URL",
    )
    expires_in: int = Field(..., description="Seconds until the URL expires")


class UploadSignatureRequest(BaseModel):
    """Request for a direct video upload."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Title of the video in the media library",
    )


class UploadSignatureResponse(BaseModel):
    """TUS upload credentials for the browser."""

    video_id: str = Field(..., description="Media ref to store on the lesson")
    library_id: str
    expiration: int = Field(..., description="UNIX timestamp")
    signature: str
    endpoint: str = Field(..., description="TUS upload endpoint")


class MediaConfigResponse(BaseModel):
    """Response with media configuration status."""

    configured: bool = Field(..., description="Whether playback signing works")
    upload_configured: bool = Field(
        ..., description="Whether direct uploads can be signed"
    )
    library_id: str | None = Field(
        default=None,
        description="Bunny.net library ID (if configured)",
    )
    cdn_hostname: str | None = Field(
        default=None,
        description="CDN hostname for thumbnail URLs (if configured)",
    )
    images_configured: bool = Field(
        default=False, description="Whether image uploads and URLs work"
    )


class ImageUploadTicketRequest(BaseModel):
    """Request for an image upload ticket."""

    model_config = ConfigDict(populate_by_name=True)

    content_type: str = Field(
        ..., alias="contentType", description="MIME type of the image"
    )
    folder: str | None = Field(
        default=None,
        max_length=100,
        description="Storage folder such as thumbnails or avatars",
    )


class ImageUploadTicketResponse(BaseModel):
    """Ticket to send with ``PUT /v1/upload/image``."""

    path: str
    content_type: str
    expires: int = Field(..., description="UNIX timestamp")
    signature: str
    upload_url: str = Field(..., description="Where to PUT the raw image bytes")
    url: str = Field(..., description="Public URL once uploaded")


class ImageUploadResponse(BaseModel):
    path: str
    url: str


class ImageUrlResponse(BaseModel):
    url: str
