"""Mock classifier: fixed distribution after a short delay."""

from __future__ import annotations

import asyncio

from .base import BaseClassifier, ClassificationResult, ScanImage

MOCK_PREDICTIONS = {"Gir": 92.0, "Sahiwal": 5.0, "Red Sindhi": 3.0}


class MockClassifier(BaseClassifier):
    def __init__(self, delay_seconds: float = 1.0) -> None:
        self._delay_seconds = delay_seconds

    async def classify(self, image: ScanImage) -> ClassificationResult:
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)
        return ClassificationResult(data=dict(MOCK_PREDICTIONS), error=None)
