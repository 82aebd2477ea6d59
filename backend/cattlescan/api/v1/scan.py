"""Classification endpoint: ``POST /scan`` with a multipart ``image`` field.

Responds with the ``{data, error}`` envelope the scan pipeline consumes.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from cattlescan.core.config import get_settings
from cattlescan.services.classifier import BaseClassifier, MockClassifier, ScanImage

logger = logging.getLogger(__name__)

router = APIRouter()

NO_IMAGE_ERROR = "No image file provided."
PROCESSING_ERROR = "Failed to process image."


def get_breed_model() -> BaseClassifier:
    """The model served by this endpoint (a fixed-output placeholder)."""
    return MockClassifier(delay_seconds=get_settings().classifier_mock_delay_seconds)


@router.post("/scan")
async def scan_image(request: Request, model: BaseClassifier = Depends(get_breed_model)):
    async with request.form() as form:
        image = form.get("image")
        # A plain text value under "image" is not an attached file.
        if not isinstance(image, UploadFile):
            return JSONResponse(status_code=400, content={"data": None, "error": NO_IMAGE_ERROR})
        return await _classify(image, model)


async def _classify(image: UploadFile, model: BaseClassifier) -> JSONResponse:
    try:
        content = await image.read()
        result = await model.classify(
            ScanImage(
                content=content,
                filename=image.filename or "image",
                content_type=image.content_type or "application/octet-stream",
            )
        )
    except Exception:
        logger.exception("POST /scan failed filename=%s", image.filename)
        return JSONResponse(status_code=500, content={"data": None, "error": PROCESSING_ERROR})

    return JSONResponse(status_code=200, content=result.model_dump())
