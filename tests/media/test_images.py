"""Tests for the Bunny.net Storage image adapter."""

from uuid import uuid4

import httpx
import pytest

from src.config.settings import Settings
from src.media.images import (
    ImageStorageService,
    InvalidImageError,
    InvalidUploadTicketError,
)
from src.media.service import MediaNotConfiguredError, MediaUpstreamError


NOW = 1_700_000_000
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _settings(**overrides) -> Settings:
    values = {
        "bunny_storage_zone": "test-zone",
        "bunny_storage_api_key": "test-storage-key",
        "bunny_images_cdn_hostname": "img-test.b-cdn.net",
        "bunny_upload_expiry_seconds": 3600,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def frozen_time(monkeypatch: pytest.MonkeyPatch) -> int:
    monkeypatch.setattr("src.media.images.time.time", lambda: NOW)
    return NOW


class TestUploadTicket:
    """Tests for create_upload_ticket and verify_ticket."""

    def test_ticket_fields(self, frozen_time: int) -> None:
        service = ImageStorageService(_settings())
        ticket = service.create_upload_ticket(uuid4(), "image/png", "thumbnails")

        assert ticket.path.startswith("thumbnails/")
        assert ticket.path.endswith(".png")
        assert ticket.expires == frozen_time + 3600
        assert len(ticket.signature) == 64
        assert ticket.url == f"https://img-test.b-cdn.net/{ticket.path}"

    def test_default_folder(self, frozen_time: int) -> None:
        ticket = ImageStorageService(_settings()).create_upload_ticket(
            uuid4(), "image/jpeg"
        )
        assert ticket.path.startswith("images/")
        assert ticket.path.endswith(".jpg")

    def test_fresh_path_per_ticket(self, frozen_time: int) -> None:
        service = ImageStorageService(_settings())
        user_id = uuid4()
        first = service.create_upload_ticket(user_id, "image/png")
        second = service.create_upload_ticket(user_id, "image/png")
        assert first.path != second.path

    @pytest.mark.parametrize("folder", ["../secrets", "a//b", "with space", "x.y"])
    def test_rejects_unsafe_folder(self, folder: str) -> None:
        with pytest.raises(InvalidImageError):
            ImageStorageService(_settings()).create_upload_ticket(
                uuid4(), "image/png", folder
            )

    @pytest.mark.parametrize("content_type", ["image/svg+xml", "text/html", ""])
    def test_rejects_unsupported_type(self, content_type: str) -> None:
        with pytest.raises(InvalidImageError):
            ImageStorageService(_settings()).create_upload_ticket(
                uuid4(), content_type
            )

    def test_requires_configuration(self) -> None:
        service = ImageStorageService(_settings(bunny_storage_api_key=None))
        assert service.is_configured is False
        with pytest.raises(MediaNotConfiguredError):
            service.create_upload_ticket(uuid4(), "image/png")

    def test_ticket_is_bound_to_user_path_and_type(self, frozen_time: int) -> None:
        service = ImageStorageService(_settings())
        owner = uuid4()
        ticket = service.create_upload_ticket(owner, "image/png")
        args = (ticket.path, ticket.content_type, ticket.expires, ticket.signature)

        service.verify_ticket(owner, *args)
        with pytest.raises(InvalidUploadTicketError):
            service.verify_ticket(uuid4(), *args)
        with pytest.raises(InvalidUploadTicketError):
            service.verify_ticket(owner, "images/other.png", *args[1:])
        with pytest.raises(InvalidUploadTicketError):
            service.verify_ticket(
                owner, ticket.path, "image/gif", ticket.expires, ticket.signature
            )

    def test_expired_ticket(
        self, frozen_time: int, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        service = ImageStorageService(_settings())
        user_id = uuid4()
        ticket = service.create_upload_ticket(user_id, "image/png")

        monkeypatch.setattr("src.media.images.time.time", lambda: ticket.expires + 1)
        with pytest.raises(InvalidUploadTicketError):
            service.verify_ticket(
                user_id,
                ticket.path,
                ticket.content_type,
                ticket.expires,
                ticket.signature,
            )


def _refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("refused", request=request)


class TestUploadImage:
    """Tests for upload_image."""

    async def test_forwards_bytes_to_storage_zone(self, frozen_time: int) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"HttpCode": 201})

        service = ImageStorageService(
            _settings(), transport=httpx.MockTransport(handler)
        )
        user_id = uuid4()
        ticket = service.create_upload_ticket(user_id, "image/png", "avatars")

        url = await service.upload_image(
            user_id,
            path=ticket.path,
            content_type="image/png",
            expires=ticket.expires,
            signature=ticket.signature,
            content=PNG,
        )

        assert url == ticket.url
        [request] = seen
        assert request.method == "PUT"
        assert str(request.url) == f"https://storage.bunnycdn.com/test-zone/{ticket.path}"
        assert request.headers["AccessKey"] == "test-storage-key"
        assert request.content == PNG

    async def test_bad_ticket_sends_nothing(self, frozen_time: int) -> None:
        seen: list[httpx.Request] = []
        transport = httpx.MockTransport(
            lambda request: seen.append(request) or httpx.Response(201)
        )
        service = ImageStorageService(_settings(), transport=transport)

        with pytest.raises(InvalidUploadTicketError):
            await service.upload_image(
                uuid4(),
                path="images/forged.png",
                content_type="image/png",
                expires=NOW + 60,
                signature="0" * 64,
                content=PNG,
            )
        assert seen == []

    @pytest.mark.parametrize("content", [b"", b"x" * 11])
    async def test_rejects_empty_or_oversized(
        self, frozen_time: int, content: bytes
    ) -> None:
        service = ImageStorageService(
            _settings(upload_image_max_bytes=10),
            transport=httpx.MockTransport(lambda request: httpx.Response(201)),
        )
        user_id = uuid4()
        ticket = service.create_upload_ticket(user_id, "image/png")

        with pytest.raises(InvalidImageError):
            await service.upload_image(
                user_id,
                path=ticket.path,
                content_type="image/png",
                expires=ticket.expires,
                signature=ticket.signature,
                content=content,
            )

    @pytest.mark.parametrize(
        "handler",
        [lambda request: httpx.Response(401, text="Unauthorized"), _refuse],
        ids=["rejected", "unreachable"],
    )
    async def test_upstream_failure(self, frozen_time: int, handler) -> None:
        service = ImageStorageService(
            _settings(), transport=httpx.MockTransport(handler)
        )
        user_id = uuid4()
        ticket = service.create_upload_ticket(user_id, "image/webp")

        with pytest.raises(MediaUpstreamError):
            await service.upload_image(
                user_id,
                path=ticket.path,
                content_type="image/webp",
                expires=ticket.expires,
                signature=ticket.signature,
                content=PNG,
            )


class TestImageUrl:
    """Tests for get_image_url."""

    def test_plain_url(self) -> None:
        url = ImageStorageService(_settings()).get_image_url("thumbnails/abc.png")
        assert url == "https://img-test.b-cdn.net/thumbnails/abc.png"

    def test_resize_parameters(self) -> None:
        service = ImageStorageService(_settings())
        assert (
            service.get_image_url("/thumbnails/abc.png", width=320, height=180)
            == "https://img-test.b-cdn.net/thumbnails/abc.png?width=320&height=180"
        )
        assert service.get_image_url("abc.png", width=64).endswith("abc.png?width=64")

    @pytest.mark.parametrize(
        "image_id", ["../etc/passwd", "images/../secret", "a//b", ".hidden", ""]
    )
    def test_rejects_unsafe_ids(self, image_id: str) -> None:
        with pytest.raises(InvalidImageError):
            ImageStorageService(_settings()).get_image_url(image_id)

    def test_requires_configuration(self) -> None:
        service = ImageStorageService(_settings(bunny_images_cdn_hostname=None))
        with pytest.raises(MediaNotConfiguredError):
            service.get_image_url("abc.png")
