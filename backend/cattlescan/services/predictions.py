"""Helpers for breed → confidence mappings returned by the classifier."""

from __future__ import annotations

import math
from typing import Mapping, Optional


def normalize_predictions(raw: Mapping[str, object]) -> dict[str, float]:
    """Coerce scores to floats and validate the 0–100 range.

    Raises ``ValueError`` for blank or duplicate labels (after trimming
    whitespace) and for non-numeric or out-of-range scores. Insertion order
    is preserved.
    """
    normalized: dict[str, float] = {}
    for label, score in raw.items():
        key = str(label).strip()
        if not key:
            raise ValueError("Prediction label is empty")
        if key in normalized:
            raise ValueError(f"Duplicate prediction label {key!r}")
        if isinstance(score, bool):
            raise ValueError(f"Score for {key!r} is not numeric")
        try:
            value = float(score)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            raise ValueError(f"Score for {key!r} is not numeric") from None
        if math.isnan(value) or value < 0 or value > 100:
            raise ValueError(f"Score for {key!r} is outside 0-100")
        normalized[key] = value
    return normalized


def sorted_predictions(predictions: Mapping[str, float]) -> list[tuple[str, float]]:
    # sorted() is stable, so equal scores keep their original order.
    return sorted(predictions.items(), key=lambda item: item[1], reverse=True)


def top_prediction(predictions: Optional[Mapping[str, float]]) -> Optional[tuple[str, float]]:
    if not predictions:
        return None
    return sorted_predictions(predictions)[0]


def rounded_percentage(score: float) -> int:
    return max(0, min(100, int(round(score))))
