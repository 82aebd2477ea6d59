"""Classifier factory: remote HTTP classifier when configured, mock otherwise."""

from __future__ import annotations

import logging

from cattlescan.core.config import get_settings

from .base import BaseClassifier, ClassificationResult, ScanImage
from .mock import MockClassifier

logger = logging.getLogger(__name__)

__all__ = ["get_classifier", "BaseClassifier", "ClassificationResult", "ScanImage", "MockClassifier"]


def get_classifier() -> BaseClassifier:
    settings = get_settings()
    url = settings.classifier_url.strip()
    if not url:
        logger.debug("CLASSIFIER_URL not set – using mock classifier")
        return MockClassifier(delay_seconds=settings.classifier_mock_delay_seconds)

    from .http import HttpClassifier

    return HttpClassifier(url, timeout_seconds=settings.classifier_timeout_seconds)
