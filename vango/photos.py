"""
Photo pipeline: validation, compression and storage of booking photos.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
import time
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from vango.storage import StorageClient

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB
ALLOWED_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
DEFAULT_MAX_WIDTH = 1920
JPEG_QUALITY = 80

DATA_URL_PATTERN = re.compile(
    r"^data:(?P<mime>[\w/+.-]+)?(?P<params>(;[^,;]+)*),(?P<data>.*)$", re.S
)
EXTENSIONS_BY_TYPE = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
}


@dataclass
class PhotoFile:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return self.name.split(".")[-1]


@dataclass
class UploadResult:
    url: str
    path: str

    def as_dict(self) -> dict:
        return {"url": self.url, "path": self.path}


def _epoch_millis() -> int:
    return int(time.time() * 1000)


class PhotoService:
    def __init__(self, storage: StorageClient):
        self.storage = storage

    def initialize_bucket(self) -> bool:
        """Create the photo bucket if it is missing (call once on app setup)."""
        try:
            if not self.storage.bucket_exists():
                # Two callers may both get here; create_bucket tolerates that.
                self.storage.create_bucket()
                logger.info("Storage bucket created")
            return True
        except Exception:
            logger.exception("Error initializing bucket")
            return False

    def _validate_file(self, file: PhotoFile) -> bool:
        if file.content_type not in ALLOWED_TYPES:
            logger.error("Invalid file type: %s", file.content_type)
            return False
        if file.size > MAX_FILE_SIZE:
            logger.error("File too large: %d", file.size)
            return False
        return True

    def compress_image(
        self, file: PhotoFile, max_width: int = DEFAULT_MAX_WIDTH
    ) -> PhotoFile:
        """
        Downscale to `max_width` (keeping the aspect ratio) and re-encode as JPEG.

        Returns the original file unchanged when it cannot be decoded or encoded.
        """
        try:
            with Image.open(io.BytesIO(file.data)) as image:
                image.load()
                width, height = image.size
                if width > max_width:
                    height = max(1, round(height * max_width / width))
                    width = max_width
                    image = image.resize((width, height), Image.Resampling.LANCZOS)
                if image.mode != "RGB":
                    image = image.convert("RGB")
                out = io.BytesIO()
                image.save(out, format="JPEG", quality=JPEG_QUALITY)
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            logger.warning("Could not compress %s, keeping original: %s", file.name, exc)
            return file
        return PhotoFile(name=file.name, content_type="image/jpeg", data=out.getvalue())

    def upload_photo(
        self, file: PhotoFile, booking_id: str, user_id: str
    ) -> Optional[UploadResult]:
        if not self._validate_file(file):
            logger.error("Error uploading photo: invalid file type or size")
            return None

        path = f"{booking_id}/{user_id}/{_epoch_millis()}.{file.extension}"
        try:
            stored_path = self.storage.upload_bytes(
                path, file.data, file.content_type, cache_control="max-age=3600"
            )
            url = self.storage.public_url(stored_path)
        except Exception:
            logger.exception("Error uploading photo to %s", path)
            return None
        return UploadResult(url=url, path=stored_path)

    def upload_base64_photo(
        self, data_url: str, booking_id: str, user_id: str
    ) -> Optional[UploadResult]:
        """Upload a camera capture delivered as a `data:` URL."""
        match = DATA_URL_PATTERN.match(data_url or "")
        if not match:
            logger.error("Error uploading base64 photo: not a data URL")
            return None

        content_type = (match.group("mime") or "image/jpeg").lower()
        try:
            if ";base64" in (match.group("params") or ""):
                data = base64.b64decode(match.group("data"), validate=True)
            else:
                data = match.group("data").encode("utf-8")
        except (binascii.Error, ValueError):
            logger.exception("Error uploading base64 photo: bad payload")
            return None

        extension = EXTENSIONS_BY_TYPE.get(content_type, "jpg")
        file = PhotoFile(
            name=f"photo-{_epoch_millis()}.{extension}",
            content_type=content_type,
            data=data,
        )
        return self.upload_photo(file, booking_id, user_id)

    def get_signed_url(self, path: str, expires_in: int = 3600) -> Optional[str]:
        try:
            return self.storage.presign_get(path, expires_in=expires_in)
        except Exception:
            logger.exception("Error getting signed URL for %s", path)
            return None

    def delete_photo(self, path: str) -> bool:
        try:
            self.storage.remove(path)
            return True
        except Exception:
            logger.exception("Error deleting photo %s", path)
            return False

    def list_booking_photos(self, booking_id: str) -> list[str]:
        try:
            paths = self.storage.list_paths(f"{booking_id}/")
            return [self.storage.public_url(path) for path in paths]
        except Exception:
            logger.exception("Error listing photos for booking %s", booking_id)
            return []
