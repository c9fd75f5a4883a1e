import httpx
import pytest

from app.core.config import settings
from app.core.exceptions import ImageTransferError
from app.core.image_transfer import (
    ImageTransferClient,
    drive_download_url,
    extract_drive_file_id,
    is_drive_link,
)


@pytest.mark.parametrize(
    "url,file_id",
    [
        ("https://drive.google.com/file/d/1AbC_d-9/view?usp=sharing", "1AbC_d-9"),
        ("https://drive.google.com/open?id=1AbC_d-9", "1AbC_d-9"),
        ("https://drive.google.com/uc?export=download&id=1AbC_d-9", "1AbC_d-9"),
        ("https://drive.google.com/drive/folders", None),
        ("", None),
    ],
)
def test_extract_drive_file_id(url, file_id) -> None:
    assert extract_drive_file_id(url) == file_id


def test_is_drive_link() -> None:
    assert is_drive_link("https://drive.google.com/open?id=abc")
    assert not is_drive_link("https://example.com/photo.jpg")
    assert not is_drive_link("")


def make_client(handler) -> ImageTransferClient:
    return ImageTransferClient(
        cloud_name="demo",
        upload_preset="students_unsigned",
        folder="profiles/students",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_transfer_downloads_then_uploads() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.host == "drive.google.com":
            return httpx.Response(200, content=b"\xff\xd8jpeg-bytes")
        return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/demo/image/upload/amal.jpg"})

    client = make_client(handler)
    url = await client.transfer_external_image("https://drive.google.com/file/d/abc123/view", "student_1_2.jpg")

    assert url == "https://res.cloudinary.com/demo/image/upload/amal.jpg"
    assert str(seen[0].url) == drive_download_url("abc123")
    assert str(seen[1].url) == "https://api.cloudinary.com/v1_1/demo/image/upload"
    body = seen[1].content
    assert b"students_unsigned" in body
    assert b"student_1_2.jpg" in body
    assert b"jpeg-bytes" in body


@pytest.mark.asyncio
async def test_download_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    with pytest.raises(ImageTransferError):
        await make_client(handler).transfer_external_image("https://drive.google.com/open?id=abc", "x.jpg")


@pytest.mark.asyncio
async def test_invalid_drive_url_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(ImageTransferError, match="Invalid Google Drive URL"):
        await make_client(handler).transfer_external_image("https://drive.google.com/drive/folders", "x.jpg")


@pytest.mark.asyncio
async def test_upload_failure_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "drive.google.com":
            return httpx.Response(200, content=b"jpeg")
        return httpx.Response(400, json={"error": {"message": "Upload preset not found"}})

    with pytest.raises(ImageTransferError):
        await make_client(handler).transfer_external_image("https://drive.google.com/open?id=abc", "x.jpg")


@pytest.mark.asyncio
async def test_missing_cloudinary_config_raises(monkeypatch) -> None:
    monkeypatch.setattr(settings, "cloudinary_cloud_name", None)
    client = ImageTransferClient(upload_preset="p", transport=httpx.MockTransport(lambda r: httpx.Response(200)))

    with pytest.raises(ImageTransferError, match="Cloudinary configuration missing"):
        await client.upload(b"jpeg", "x.jpg")
