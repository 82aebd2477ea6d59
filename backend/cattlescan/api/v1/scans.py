"""Scan pipeline API: submit a photo, read a scan, review and flag it."""

from __future__ import annotations

import ipaddress
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session

from cattlescan.core.auth import CurrentUser, get_optional_user
from cattlescan.core.config import get_settings
from cattlescan.core.dependencies import get_db
from cattlescan.core.image_processing import InvalidImageError, inspect_image
from cattlescan.core.storage import upload_scan_image
from cattlescan.models.scan import CattleScan
from cattlescan.schemas.scan import (
    LocationOut,
    PredictionOut,
    ScanCreateResponse,
    ScanEventOut,
    ScanFlagRequest,
    ScanOut,
    ScanReviewRequest,
)
from cattlescan.services.classifier import BaseClassifier, ScanImage, get_classifier
from cattlescan.services.errors import (
    AuthRequiredError,
    ClassificationError,
    LocationUnavailableError,
    PersistError,
    ScanNotFoundError,
    UploadError,
)
from cattlescan.services.geolocation import (
    Coordinates,
    IpInfoLookup,
    PositionUnavailableError,
    ReportedPosition,
    build_ip_lookup,
    resolve_location,
)
from cattlescan.services.predictions import sorted_predictions, top_prediction
from cattlescan.services.scan_pipeline import ScanOrchestrator, ScanRecordDraft, log_scan_event
from cattlescan.services.scan_repository import get_scan, ordered_predictions, persist_scan, set_flag, set_helpful
from cattlescan.utils.rate_limit import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── Dependencies ─────────────────────────────────────


def get_scan_uploader() -> Callable[[ScanImage], tuple[str, str]]:
    def _upload(image: ScanImage) -> tuple[str, str]:
        return upload_scan_image(
            filename=image.filename,
            content=image.content,
            content_type=image.content_type,
        )

    return _upload


def get_ip_lookup(request: Request) -> Optional[IpInfoLookup]:
    settings = get_settings()
    if not settings.ipinfo_token:
        return None
    ip = get_client_ip(request)
    try:
        routable = ip is not None and ipaddress.ip_address(ip).is_global
    except ValueError:
        routable = False
    # Without a routable client IP ipinfo resolves the server's own address.
    return build_ip_lookup(ip if routable else None)


# ─── Helpers ──────────────────────────────────────────


def _prediction_list(predictions: Optional[dict]) -> list[PredictionOut]:
    return [PredictionOut(breed=breed, confidence=score) for breed, score in sorted_predictions(predictions or {})]


def _top_out(predictions: Optional[dict]) -> Optional[PredictionOut]:
    top = top_prediction(predictions)
    if top is None:
        return None
    return PredictionOut(breed=top[0], confidence=top[1])


def _location_out(location) -> Optional[LocationOut]:
    if isinstance(location, Coordinates):
        return LocationOut(**location.as_dict())
    if isinstance(location, dict) and location.get("latitude") is not None and location.get("longitude") is not None:
        return LocationOut(
            latitude=location["latitude"],
            longitude=location["longitude"],
            accuracy=location.get("accuracy") or 0.0,
        )
    return None


def _scan_to_out(scan: CattleScan) -> ScanOut:
    predictions = ordered_predictions(scan)
    return ScanOut(
        id=str(scan.id),
        image_url=scan.image_url,
        predictions=_prediction_list(predictions),
        top_prediction=_top_out(predictions),
        image_metadata=scan.image_metadata,
        location=_location_out(scan.location),
        scanned_by_user_id=scan.scanned_by_user_id,
        is_helpful=scan.is_helpful,
        is_flagged=bool(scan.is_flagged),
        flag_reason=scan.flag_reason,
        created_at=scan.created_at,
        updated_at=scan.updated_at,
    )


async def _locate(
    latitude: Optional[float],
    longitude: Optional[float],
    accuracy: Optional[float],
    ip_lookup: Optional[IpInfoLookup],
) -> Optional[Coordinates]:
    settings = get_settings()
    device = ReportedPosition(latitude, longitude, accuracy)
    if not settings.resolve_location:
        try:
            return await device.get_position()
        except PositionUnavailableError:
            return None
    try:
        return await resolve_location(device, ip_lookup)
    except LocationUnavailableError as exc:
        logger.info("Scan saved without location: %s", exc)
        return None


# ─── Endpoints ────────────────────────────────────────


@router.post("/scans", response_model=ScanCreateResponse, status_code=201)
async def create_scan(
    image: UploadFile = File(...),
    latitude: Optional[float] = Form(None),
    longitude: Optional[float] = Form(None),
    accuracy: Optional[float] = Form(None),
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    classifier: BaseClassifier = Depends(get_classifier),
    uploader: Callable[[ScanImage], tuple[str, str]] = Depends(get_scan_uploader),
    ip_lookup: Optional[IpInfoLookup] = Depends(get_ip_lookup),
):
    settings = get_settings()
    # One byte past the limit is enough to tell the upload is too large.
    content = await image.read(settings.max_image_bytes + 1)
    if not content:
        raise HTTPException(400, "Empty file")
    if len(content) > settings.max_image_bytes:
        raise HTTPException(413, "File is too large")
    try:
        info = inspect_image(content, image.content_type)
    except InvalidImageError as exc:
        raise HTTPException(400, str(exc))

    location = await _locate(latitude, longitude, accuracy, ip_lookup)

    def _persist(draft: ScanRecordDraft):
        return persist_scan(
            db,
            image_url=draft.image_url,
            predictions=draft.predictions,
            location=draft.location,
            user_id=draft.user_id,
            image_metadata=draft.image_metadata,
        )

    orchestrator = ScanOrchestrator(classifier=classifier, uploader=uploader, persister=_persist)
    orchestrator.subscribe(log_scan_event)

    scan_image = ScanImage(
        content=content,
        filename=image.filename or f"cattle-photo.{info.format.lower()}",
        content_type=info.content_type,
    )
    try:
        state = await orchestrator.run(
            scan_image,
            location=location,
            user_id=current_user.id if current_user else None,
            image_metadata=info.as_metadata(),
        )
    except ClassificationError as exc:
        raise HTTPException(502, f"Scan failed: {exc.message}")
    except UploadError as exc:
        raise HTTPException(502, f"Upload failed: {exc.message}")
    except PersistError as exc:
        raise HTTPException(500, f"Save failed: {exc.message}")

    return ScanCreateResponse(
        id=str(state.record_id),
        image_url=state.image_url or "",
        predictions=_prediction_list(state.predictions),
        top_prediction=_top_out(state.predictions),
        location=_location_out(location),
        events=[
            ScanEventOut(phase=e.phase.value, step=e.step, status=e.status, message=e.message)
            for e in state.events
        ],
    )


@router.get("/scans/{scan_id}", response_model=ScanOut)
def read_scan(scan_id: str, db: Session = Depends(get_db)):
    try:
        scan = get_scan(db, scan_id)
    except ScanNotFoundError:
        raise HTTPException(404, "Scan not found")
    return _scan_to_out(scan)


@router.patch("/scans/{scan_id}/review", response_model=ScanOut)
def review_scan(
    scan_id: str,
    payload: ScanReviewRequest,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        scan = set_helpful(
            db,
            scan_id,
            payload.is_helpful,
            user_id=current_user.id if current_user else None,
        )
    except AuthRequiredError as exc:
        raise HTTPException(401, exc.message)
    except ScanNotFoundError:
        raise HTTPException(404, "Scan not found")
    except PersistError as exc:
        raise HTTPException(500, exc.message)
    return _scan_to_out(scan)


@router.patch("/scans/{scan_id}/flag", response_model=ScanOut)
def flag_scan(
    scan_id: str,
    payload: ScanFlagRequest,
    current_user: Optional[CurrentUser] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    try:
        scan = set_flag(
            db,
            scan_id,
            payload.flag,
            payload.reason,
            user_id=current_user.id if current_user else None,
        )
    except AuthRequiredError as exc:
        raise HTTPException(401, exc.message)
    except ScanNotFoundError:
        raise HTTPException(404, "Scan not found")
    except PersistError as exc:
        raise HTTPException(500, exc.message)
    return _scan_to_out(scan)
