"""Scan record persistence and the review / inspection actions on it."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cattlescan.models.scan import Breed, CattleScan, PredictedBreed
from cattlescan.services.errors import AuthRequiredError, PersistError, ScanNotFoundError
from cattlescan.services.geolocation import Coordinates
from cattlescan.services.predictions import rounded_percentage

logger = logging.getLogger(__name__)


def _parse_id(record_id: Any) -> uuid.UUID:
    if isinstance(record_id, uuid.UUID):
        return record_id
    try:
        return uuid.UUID(str(record_id))
    except ValueError:
        raise ScanNotFoundError(f"Scan {record_id} not found") from None


def _require_user(user_id: Optional[str]) -> str:
    if not user_id or not str(user_id).strip():
        raise AuthRequiredError("Sign in to perform this action")
    return str(user_id).strip()


def resolve_breed_ids(db: Session, labels: list[str]) -> dict[str, uuid.UUID]:
    """Map classifier labels onto ``breeds.id`` by case-insensitive name.

    Labels without a catalog entry are absent from the result.
    """
    if not labels:
        return {}
    lowered: dict[str, list[str]] = {}
    for label in labels:
        lowered.setdefault(label.lower(), []).append(label)
    rows = db.execute(
        select(Breed.id, Breed.name).where(func.lower(Breed.name).in_(list(lowered)))
    ).all()
    resolved: dict[str, uuid.UUID] = {}
    for breed_id, name in rows:
        for label in lowered.get(name.lower(), []):
            resolved[label] = breed_id
    return resolved


def persist_scan(
    db: Session,
    *,
    image_url: str,
    predictions: Mapping[str, float],
    location: Optional[Coordinates] = None,
    user_id: Optional[str] = None,
    image_metadata: Optional[dict[str, Any]] = None,
) -> uuid.UUID:
    """Insert the scan and its predicted-breed rows in one transaction."""
    if not image_url:
        raise PersistError("Refusing to save a scan without an uploaded image URL")
    if not predictions:
        raise PersistError("No scan results to save")

    try:
        breed_ids = resolve_breed_ids(db, list(predictions))
        scan = CattleScan(
            id=uuid.uuid4(),
            image_url=image_url,
            predictions=dict(predictions),
            image_metadata=image_metadata,
            location=location.as_dict() if location else None,
            scanned_by_user_id=user_id,
        )
        db.add(scan)
        for rank, (label, score) in enumerate(predictions.items()):
            db.add(
                PredictedBreed(
                    scan_id=scan.id,
                    breed_id=breed_ids.get(label),
                    label=label,
                    percentage=rounded_percentage(score),
                    rank=rank,
                )
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to save scan image_url=%s", image_url)
        raise PersistError(f"Save failed: {exc.__class__.__name__}") from exc

    logger.info("Saved scan id=%s predictions=%d user=%s", scan.id, len(predictions), user_id or "-")
    return scan.id


def get_scan(db: Session, record_id: Any) -> CattleScan:
    scan = db.get(CattleScan, _parse_id(record_id))
    if scan is None:
        raise ScanNotFoundError(f"Scan {record_id} not found")
    return scan


def _update_scan(db: Session, record_id: Any, values: dict[str, Any]) -> CattleScan:
    scan = get_scan(db, record_id)
    try:
        for field, value in values.items():
            setattr(scan, field, value)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to update scan id=%s", record_id)
        raise PersistError(f"Update failed: {exc.__class__.__name__}") from exc
    db.refresh(scan)
    return scan


def set_helpful(db: Session, record_id: Any, is_helpful: bool, *, user_id: Optional[str]) -> CattleScan:
    acting_user = _require_user(user_id)
    scan = _update_scan(
        db,
        record_id,
        {"is_helpful": bool(is_helpful), "reviewed_by_user_id": acting_user},
    )
    logger.info("Scan reviewed id=%s helpful=%s user=%s", scan.id, scan.is_helpful, acting_user)
    return scan


def set_flag(
    db: Session,
    record_id: Any,
    flag: bool,
    reason: Optional[str] = None,
    *,
    user_id: Optional[str],
) -> CattleScan:
    acting_user = _require_user(user_id)
    stored_reason = None
    if flag and reason is not None:
        stored_reason = reason.strip() or None
    scan = _update_scan(
        db,
        record_id,
        {"is_flagged": bool(flag), "flag_reason": stored_reason, "flagged_by_user_id": acting_user},
    )
    logger.info("Scan flag set id=%s flagged=%s user=%s", scan.id, scan.is_flagged, acting_user)
    return scan


def ordered_predictions(scan: CattleScan) -> dict[str, float]:
    """The stored mapping in the order the classifier returned it.

    The JSON column may come back with its keys reordered, so the order is
    taken from the ranked ``predicted_breeds`` rows.
    """
    stored = dict(scan.predictions or {})
    ordered = {row.label: stored[row.label] for row in scan.predicted_breeds if row.label in stored}
    for label, score in stored.items():
        ordered.setdefault(label, score)
    return ordered
