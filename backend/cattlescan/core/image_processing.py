"""Image inspection for scan uploads.

Uploaded bytes are opened with Pillow to confirm they decode as an image
and to record basic metadata (format, dimensions) on the scan record.
"""

from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ALLOWED_FORMATS = {"JPEG", "PNG", "WEBP"}

_FORMAT_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}


class InvalidImageError(ValueError):
    pass


@dataclass(frozen=True)
class ImageInfo:
    format: str
    width: int
    height: int
    content_type: str
    size_bytes: int

    def as_metadata(self) -> dict[str, Any]:
        return asdict(self)


def inspect_image(content: bytes, declared_content_type: Optional[str] = None) -> ImageInfo:
    """Verify *content* is a supported image and return its metadata.

    The content type is derived from the decoded format, not from what the
    client declared; a mismatch is only logged.
    """
    if not content:
        raise InvalidImageError("Empty image")
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.verify()
            fmt = (img.format or "").upper()
            width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("File is not a readable image") from exc

    if fmt not in ALLOWED_FORMATS:
        raise InvalidImageError(f"Unsupported image format: {fmt or 'unknown'}")

    content_type = _FORMAT_CONTENT_TYPES[fmt]
    if declared_content_type and declared_content_type.lower() != content_type:
        logger.info("Declared content type %s differs from detected %s", declared_content_type, content_type)

    return ImageInfo(
        format=fmt,
        width=int(width),
        height=int(height),
        content_type=content_type,
        size_bytes=len(content),
    )
