"""
Scan pipeline: classify, then upload, then persist.

Phases:
  IDLE → CLASSIFYING → UPLOADING → PERSISTING → DONE
                  ↘            ↘             ↘ FAILED

Each step starts only after the previous one succeeded. A failure stops the
chain, leaves the orchestrator in FAILED and re-raises the step's error;
nothing is retried. Observers subscribed with ``subscribe()`` receive a
``ScanEvent`` for every step start, finish and failure.

``reset()`` may be called at any phase. Calls already in flight are not
cancelled, but their results are dropped and no further step is started.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Optional

from cattlescan.services.classifier import BaseClassifier, ScanImage
from cattlescan.services.errors import ClassificationError, PersistError, ScanPipelineError, UploadError
from cattlescan.services.geolocation import Coordinates
from cattlescan.services.predictions import normalize_predictions, sorted_predictions, top_prediction

logger = logging.getLogger(__name__)


class ScanPhase(str, Enum):
    IDLE = "IDLE"
    CLASSIFYING = "CLASSIFYING"
    UPLOADING = "UPLOADING"
    PERSISTING = "PERSISTING"
    DONE = "DONE"
    FAILED = "FAILED"


ACTIVE_PHASES = {ScanPhase.CLASSIFYING, ScanPhase.UPLOADING, ScanPhase.PERSISTING}


@dataclass(frozen=True)
class ScanEvent:
    phase: ScanPhase
    step: str
    status: str  # "started" | "finished" | "failed"
    message: str = ""


@dataclass(frozen=True)
class ScanRecordDraft:
    image_url: str
    predictions: dict[str, float]
    location: Optional[Coordinates] = None
    user_id: Optional[str] = None
    image_metadata: Optional[dict[str, Any]] = None


@dataclass
class ScanState:
    phase: ScanPhase = ScanPhase.IDLE
    predictions: Optional[dict[str, float]] = None
    image_url: Optional[str] = None
    record_id: Optional[uuid.UUID] = None
    error: Optional[ScanPipelineError] = None
    events: list[ScanEvent] = field(default_factory=list)

    def top_prediction(self) -> Optional[tuple[str, float]]:
        return top_prediction(self.predictions)

    def ranked_predictions(self) -> list[tuple[str, float]]:
        return sorted_predictions(self.predictions or {})


Uploader = Callable[[ScanImage], tuple[str, str]]
Persister = Callable[[ScanRecordDraft], uuid.UUID]
Observer = Callable[[ScanEvent], None]


# ─── Steps ────────────────────────────────────────────


async def classify_step(classifier: BaseClassifier, image: ScanImage) -> dict[str, float]:
    try:
        result = await classifier.classify(image)
    except ClassificationError:
        raise
    except Exception as exc:
        raise ClassificationError(f"Failed to scan: {exc}") from exc

    if result.error is not None:
        raise ClassificationError(f"Scan returned an error: {result.error}")
    if not result.data:
        raise ClassificationError("Scan returned no predictions")
    try:
        return normalize_predictions(result.data)
    except ValueError as exc:
        raise ClassificationError(f"Scan returned invalid predictions: {exc}") from exc


async def upload_step(uploader: Uploader, image: ScanImage) -> tuple[str, str]:
    try:
        path, url = await asyncio.to_thread(uploader, image)
    except UploadError:
        raise
    except Exception as exc:
        raise UploadError(f"Upload failed: {exc}") from exc
    if not url:
        raise UploadError("Could not get public URL of the uploaded image")
    return path, url


async def persist_step(persister: Persister, draft: ScanRecordDraft) -> uuid.UUID:
    try:
        record_id = await asyncio.to_thread(persister, draft)
    except PersistError:
        raise
    except Exception as exc:
        raise PersistError(f"Save failed: {exc}") from exc
    if record_id is None:
        raise PersistError("Save returned no identifier")
    return record_id


# ─── Driver ───────────────────────────────────────────


class ScanOrchestrator:
    def __init__(self, *, classifier: BaseClassifier, uploader: Uploader, persister: Persister) -> None:
        self._classifier = classifier
        self._uploader = uploader
        self._persister = persister
        self._observers: list[Observer] = []
        self._state = ScanState()
        self._generation = 0

    @property
    def state(self) -> ScanState:
        return replace(self._state, events=list(self._state.events))

    @property
    def phase(self) -> ScanPhase:
        return self._state.phase

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def _unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _unsubscribe

    def reset(self) -> None:
        self._generation += 1
        self._state = ScanState()

    def _emit(self, step: str, status: str, message: str = "") -> None:
        event = ScanEvent(phase=self._state.phase, step=step, status=status, message=message)
        self._state.events.append(event)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception("Scan observer failed on %s/%s", step, status)

    def _enter(self, phase: ScanPhase, step: str, message: str) -> None:
        self._state.phase = phase
        self._emit(step, "started", message)

    def _fail(self, step: str, exc: ScanPipelineError) -> None:
        self._state.phase = ScanPhase.FAILED
        self._state.error = exc
        self._emit(step, "failed", exc.message or str(exc))

    async def run(
        self,
        image: ScanImage,
        *,
        location: Optional[Coordinates] = None,
        user_id: Optional[str] = None,
        image_metadata: Optional[dict[str, Any]] = None,
    ) -> ScanState:
        if self._state.phase in ACTIVE_PHASES:
            raise RuntimeError("A scan is already in progress; reset first")
        if self._state.phase is not ScanPhase.IDLE:
            self.reset()
        generation = self._generation

        def _stale() -> bool:
            if generation != self._generation:
                logger.info("Scan results discarded after reset")
                return True
            return False

        step = "classify"
        try:
            self._enter(ScanPhase.CLASSIFYING, step, "Analyzing image...")
            predictions = await classify_step(self._classifier, image)
            if _stale():
                return self.state
            self._state.predictions = predictions
            self._emit(step, "finished", "Scan complete!")

            step = "upload"
            self._enter(ScanPhase.UPLOADING, step, "Uploading image...")
            _, url = await upload_step(self._uploader, image)
            if _stale():
                return self.state
            self._state.image_url = url
            self._emit(step, "finished", "Image uploaded!")

            step = "persist"
            self._enter(ScanPhase.PERSISTING, step, "Saving scan data...")
            draft = ScanRecordDraft(
                image_url=url,
                predictions=dict(predictions),
                location=location,
                user_id=user_id,
                image_metadata=image_metadata,
            )
            record_id = await persist_step(self._persister, draft)
            if _stale():
                return self.state
            self._state.record_id = record_id
            self._state.phase = ScanPhase.DONE
            self._emit(step, "finished", "Scan data saved successfully!")
        except ScanPipelineError as exc:
            if generation == self._generation:
                self._fail(step, exc)
            raise

        return self.state


def log_scan_event(event: ScanEvent) -> None:
    if event.status == "failed":
        logger.warning("scan step=%s status=%s phase=%s: %s", event.step, event.status, event.phase.value, event.message)
    else:
        logger.info("scan step=%s status=%s phase=%s: %s", event.step, event.status, event.phase.value, event.message)
