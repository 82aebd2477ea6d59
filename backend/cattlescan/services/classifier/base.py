"""Abstract base for breed classifiers."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class ScanImage:
    """Raw image as captured or uploaded by the user."""

    content: bytes
    filename: str
    content_type: str = "application/octet-stream"


class ClassificationResult(BaseModel):
    """Wire envelope of the ``/scan`` endpoint: exactly one of the fields is set."""

    data: Optional[dict[str, float]] = None
    error: Optional[str] = None


class BaseClassifier(abc.ABC):
    """Contract that every classifier must implement."""

    @abc.abstractmethod
    async def classify(self, image: ScanImage) -> ClassificationResult:
        """Classify *image* and return the result envelope."""
