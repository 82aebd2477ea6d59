from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class BreedOut(BaseModel):
    id: str
    name: str
    species: str
    origin: Optional[str] = None
    status: Optional[str] = None
    description: Optional[str] = None
    key_characteristics: Optional[List[str]] = None
    native_region: Optional[str] = None
    avg_milk_yield_min: Optional[float] = None
    avg_milk_yield_max: Optional[float] = None
    milk_yield_unit: Optional[str] = None
    avg_body_weight_min: Optional[float] = None
    avg_body_weight_max: Optional[float] = None
    body_weight_unit: Optional[str] = None
    adaptability: Optional[str] = None
    temperament: Optional[str] = None
    conservation_status: Optional[str] = None
    stock_img_url: Optional[str] = None
    created_at: Optional[datetime] = None


class BreedListResponse(BaseModel):
    items: List[BreedOut]


class ConfirmedImageOut(BaseModel):
    id: str
    image_url: str


class ConfirmedImagePage(BaseModel):
    items: List[ConfirmedImageOut]
    page: int
    next_page: Optional[int] = None


class SightingOut(BaseModel):
    id: str
    lat: float
    lng: float
    breed: str
    image_url: str


class SightingListResponse(BaseModel):
    items: List[SightingOut]
    breeds: List[str]
