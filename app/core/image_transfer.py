"""
Moves student photos shared as Google Drive links into permanent image storage (Cloudinary).

Drive links are accepted in the forms:
- https://drive.google.com/file/d/<file_id>/view
- https://drive.google.com/open?id=<file_id>
- https://drive.google.com/uc?id=<file_id>
"""
import logging
import re
from typing import Optional

import httpx

from app.core.config import settings
from app.core.exceptions import ImageTransferError

logger = logging.getLogger(__name__)

DRIVE_HOST = "drive.google.com"
CLOUDINARY_UPLOAD_URL = "https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"
MAX_REDIRECTS = 5

_FILE_PATH_PATTERN = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
_ID_PARAM_PATTERN = re.compile(r"[?&]id=([a-zA-Z0-9_-]+)")


def is_drive_link(url: Optional[str]) -> bool:
    return bool(url) and DRIVE_HOST in url


def extract_drive_file_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    match = _FILE_PATH_PATTERN.search(url) or _ID_PARAM_PATTERN.search(url)
    return match.group(1) if match else None


def drive_download_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=download&id={file_id}"


class ImageTransferClient:
    """Download from Drive, upload to Cloudinary (unsigned preset). Every failure raises ImageTransferError."""

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        upload_preset: Optional[str] = None,
        folder: Optional[str] = None,
        download_timeout: Optional[float] = None,
        upload_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cloud_name = cloud_name or settings.cloudinary_cloud_name
        self.upload_preset = upload_preset or settings.cloudinary_upload_preset
        self.folder = folder or settings.cloudinary_folder
        self.download_timeout = download_timeout or settings.image_download_timeout_seconds
        self.upload_timeout = upload_timeout or settings.image_upload_timeout_seconds
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=MAX_REDIRECTS,
            transport=self._transport,
        )

    async def download_drive_image(self, url: str) -> bytes:
        file_id = extract_drive_file_id(url)
        if not file_id:
            raise ImageTransferError("Invalid Google Drive URL")
        try:
            async with self._client(self.download_timeout) as client:
                response = await client.get(drive_download_url(file_id))
                response.raise_for_status()
                return response.content
        except httpx.TimeoutException as e:
            raise ImageTransferError(f"Timed out downloading image from Google Drive: {e}") from e
        except httpx.HTTPError as e:
            raise ImageTransferError(f"Failed to download image from Google Drive: {e}") from e

    async def upload(self, content: bytes, file_name: str) -> str:
        """Upload bytes to Cloudinary and return the secure URL."""
        if not self.cloud_name or not self.upload_preset:
            raise ImageTransferError("Cloudinary configuration missing")
        try:
            async with self._client(self.upload_timeout) as client:
                response = await client.post(
                    CLOUDINARY_UPLOAD_URL.format(cloud_name=self.cloud_name),
                    data={"upload_preset": self.upload_preset, "folder": self.folder},
                    files={"file": (file_name, content, "image/jpeg")},
                )
                response.raise_for_status()
                secure_url = response.json().get("secure_url")
        except httpx.HTTPStatusError as e:
            logger.error("Cloudinary response: %s", e.response.text)
            raise ImageTransferError(f"Failed to upload image to Cloudinary: {e}") from e
        except httpx.HTTPError as e:
            raise ImageTransferError(f"Failed to upload image to Cloudinary: {e}") from e
        except ValueError as e:
            raise ImageTransferError(f"Invalid Cloudinary response: {e}") from e
        if not secure_url:
            raise ImageTransferError("Cloudinary response has no secure_url")
        return secure_url

    async def transfer_external_image(self, source_url: str, destination_name: str) -> str:
        content = await self.download_drive_image(source_url)
        return await self.upload(content, destination_name)


async def transfer_external_image(source_url: str, destination_name: str) -> str:
    """Drive link -> permanent URL with the configured Cloudinary account."""
    return await ImageTransferClient().transfer_external_image(source_url, destination_name)
