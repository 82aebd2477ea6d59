"""HTTP classifier: posts the image to a remote ``/scan`` endpoint."""

from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from pydantic import ValidationError

from cattlescan.services.errors import ClassificationError

from .base import BaseClassifier, ClassificationResult, ScanImage

logger = logging.getLogger(__name__)


class HttpClassifier(BaseClassifier):
    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def classify(self, image: ScanImage) -> ClassificationResult:
        t0 = time.monotonic()
        files = {"image": (image.filename, image.content, image.content_type)}
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                resp = await client.post(self._url, files=files)
        except httpx.HTTPError as exc:
            raise ClassificationError(f"Classifier request failed: {exc}") from exc

        elapsed = (time.monotonic() - t0) * 1000
        logger.info("Classifier responded status=%s latency_ms=%.2f", resp.status_code, elapsed)

        if resp.is_error:
            detail = _envelope_error(resp)
            suffix = f": {detail}" if detail else ""
            raise ClassificationError(f"Classifier returned HTTP {resp.status_code}{suffix}")

        try:
            return ClassificationResult.model_validate(resp.json())
        except (ValueError, ValidationError) as exc:
            raise ClassificationError("Classifier returned a malformed response") from exc


def _envelope_error(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return None
