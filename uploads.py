"""
Cloudinary image uploads.

`ImageUploader` wraps an uploader handle (the `cloudinary.uploader` module in
production) so the collection service never talks to Cloudinary directly.
"""

import io
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from config import CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET, CLOUDINARY_FOLDER
from errors import ImageUploadError

logger = logging.getLogger(__name__)

_VERSION_PREFIX = re.compile(r"^v\d+/")
_EXTENSION = re.compile(r"\.[^/.]+$")

ImagePayload = Union[bytes, str]


@dataclass(frozen=True)
class UploadedImage:
    secure_url: str
    public_id: str


def configure_cloudinary() -> bool:
    """Apply credentials from the environment. Returns False when they are incomplete."""
    if not (CLOUDINARY_CLOUD_NAME and CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET):
        return False
    cloudinary.config(
        cloud_name=CLOUDINARY_CLOUD_NAME,
        api_key=CLOUDINARY_API_KEY,
        api_secret=CLOUDINARY_API_SECRET,
        secure=True,
    )
    return True


def as_data_url(data: str) -> str:
    """Bare base64 gets wrapped in a data URL; data URLs and remote URLs pass through."""
    data = data.strip()
    if data.startswith(("data:", "http://", "https://")):
        return data
    return f"data:image/jpeg;base64,{data}"


def get_public_id_from_url(url) -> Optional[str]:
    """
    Derive a Cloudinary public id from a delivery URL, for records that only
    kept the URL.

    https://res.cloudinary.com/demo/image/upload/v1620000000/collections/abc123.jpg
    -> collections/abc123
    """
    if not isinstance(url, str) or not url:
        return None

    parts = url.split("?", 1)[0].split("/")
    try:
        upload_index = parts.index("upload")
    except ValueError:
        return None

    public_id = "/".join(parts[upload_index + 1:])
    public_id = _VERSION_PREFIX.sub("", public_id)
    public_id = _EXTENSION.sub("", public_id)
    return public_id or None


class ImageUploader:
    def __init__(self, uploader=cloudinary.uploader, folder: str = CLOUDINARY_FOLDER):
        self.uploader = uploader
        self.folder = folder

    def _upload(self, source, folder: Optional[str]) -> UploadedImage:
        try:
            result = self.uploader.upload(source, folder=folder or self.folder, resource_type="image")
        except CloudinaryError as exc:
            raise ImageUploadError(str(exc)) from exc
        try:
            return UploadedImage(secure_url=result["secure_url"], public_id=result["public_id"])
        except (KeyError, TypeError) as exc:
            raise ImageUploadError(f"Unexpected upload response: {result!r}") from exc

    def upload_buffer(self, data: bytes, folder: Optional[str] = None) -> UploadedImage:
        """Upload raw file bytes (multipart uploads)."""
        if not data:
            raise ImageUploadError("Empty image file")
        return self._upload(io.BytesIO(data), folder)

    def upload_encoded(self, data: str, folder: Optional[str] = None) -> UploadedImage:
        """Upload a base64 string or data URL (JSON payloads)."""
        if not data or not data.strip():
            raise ImageUploadError("Empty image data")
        return self._upload(as_data_url(data), folder)

    def upload(self, payload: ImagePayload, folder: Optional[str] = None) -> UploadedImage:
        if isinstance(payload, (bytes, bytearray)):
            return self.upload_buffer(bytes(payload), folder)
        return self.upload_encoded(payload, folder)

    def destroy(self, public_id: str) -> bool:
        """Best-effort delete. Failures are logged, never raised."""
        if not public_id:
            return False
        try:
            result = self.uploader.destroy(public_id)
        except Exception:
            logger.warning("Error deleting image %s from Cloudinary", public_id, exc_info=True)
            return False
        if isinstance(result, dict) and result.get("result") not in ("ok", "not found"):
            logger.warning("Cloudinary refused to delete %s: %s", public_id, result)
            return False
        logger.info("Deleted image %s from Cloudinary", public_id)
        return True
