import logging
import secrets
import time
from pathlib import Path
from typing import Optional

from supabase import create_client

from cattlescan.core.config import get_settings
from cattlescan.services.errors import UploadError

logger = logging.getLogger(__name__)


def _safe_filename(filename: Optional[str]) -> str:
    name = Path(filename or "").name.strip().replace(" ", "_")
    return name or "image.jpg"


def build_object_path(filename: Optional[str], *, prefix: Optional[str] = None) -> str:
    """``images/{epoch_ms}-{random}.{filename}``; unique per call."""
    if prefix is None:
        prefix = get_settings().storage_key_prefix
    token = secrets.token_hex(6)
    key = f"{int(time.time() * 1000)}-{token}.{_safe_filename(filename)}"
    return f"{prefix.strip('/')}/{key}" if prefix else key


def get_storage_client():
    settings = get_settings()
    key = settings.supabase_service_role_key or settings.supabase_key
    if not settings.supabase_url or not key:
        raise RuntimeError("Supabase credentials are not configured")
    return create_client(settings.supabase_url, key)


def _result_error(result) -> Optional[object]:
    if isinstance(result, dict):
        return result.get("error")
    return getattr(result, "error", None)


def upload_object(client, bucket: str, path: str, content: bytes, content_type: Optional[str]) -> None:
    settings = get_settings()
    options = {
        "cache-control": settings.storage_cache_control,
        "upsert": "false",
    }
    if content_type:
        options["content-type"] = content_type
    try:
        result = client.storage.from_(bucket).upload(path, content, options)
    except Exception as exc:
        logger.warning("Storage upload failed bucket=%s path=%s: %s", bucket, path, exc)
        raise UploadError(f"Storage upload failed: {exc}") from exc

    error = _result_error(result)
    if error:
        logger.warning("Storage upload rejected bucket=%s path=%s: %s", bucket, path, error)
        raise UploadError(f"Storage upload failed: {error}")


def get_public_url(client, bucket: str, path: str) -> str:
    try:
        result = client.storage.from_(bucket).get_public_url(path)
    except Exception as exc:
        raise UploadError("Could not get public URL of the uploaded image") from exc

    # Older clients return {"publicUrl": ...}; current ones return the URL string.
    if isinstance(result, dict):
        url = result.get("publicUrl") or result.get("publicURL")
    else:
        url = result
    url = (url or "").strip() if isinstance(url, str) else ""
    if not url:
        raise UploadError("Could not get public URL of the uploaded image")
    return url


def upload_scan_image(
    *,
    filename: Optional[str],
    content: bytes,
    content_type: Optional[str],
    client=None,
) -> tuple[str, str]:
    """Upload a scan image and return ``(path, public_url)``."""
    if not content:
        raise UploadError("No file to upload")
    settings = get_settings()
    if client is None:
        try:
            client = get_storage_client()
        except RuntimeError as exc:
            raise UploadError(str(exc)) from exc
    path = build_object_path(filename)
    upload_object(client, settings.storage_bucket, path, content, content_type)
    url = get_public_url(client, settings.storage_bucket, path)
    logger.info("Uploaded scan image bucket=%s path=%s bytes=%d", settings.storage_bucket, path, len(content))
    return path, url
