from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ScanEnvelope(BaseModel):
    data: Optional[Dict[str, float]] = None
    error: Optional[str] = None


class PredictionOut(BaseModel):
    breed: str
    confidence: float


class LocationOut(BaseModel):
    latitude: float
    longitude: float
    accuracy: float


class ScanEventOut(BaseModel):
    phase: str
    step: str
    status: str
    message: str = ""


class ScanCreateResponse(BaseModel):
    id: str
    image_url: str
    predictions: List[PredictionOut]
    top_prediction: Optional[PredictionOut] = None
    location: Optional[LocationOut] = None
    events: List[ScanEventOut] = []


class ScanOut(BaseModel):
    id: str
    image_url: str
    predictions: List[PredictionOut]
    top_prediction: Optional[PredictionOut] = None
    image_metadata: Optional[Dict[str, Any]] = None
    location: Optional[LocationOut] = None
    scanned_by_user_id: Optional[str] = None
    is_helpful: Optional[bool] = None
    is_flagged: bool = False
    flag_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ScanReviewRequest(BaseModel):
    is_helpful: bool


class ScanFlagRequest(BaseModel):
    flag: bool
    reason: Optional[str] = Field(default=None, max_length=1000)
