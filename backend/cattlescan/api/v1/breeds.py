"""Breed catalog and sightings map (read-only)."""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from cattlescan.core.dependencies import get_db
from cattlescan.models.scan import Breed
from cattlescan.schemas.breed import (
    BreedListResponse,
    BreedOut,
    ConfirmedImageOut,
    ConfirmedImagePage,
    SightingListResponse,
    SightingOut,
)
from cattlescan.services.catalog_service import (
    BreedFilters,
    get_breed,
    list_breeds,
    list_confirmed_images,
    list_sightings,
)

router = APIRouter()


def _float_or_none(value) -> Optional[float]:
    return float(value) if value is not None else None


def _breed_to_out(breed: Breed) -> BreedOut:
    characteristics = breed.key_characteristics
    if characteristics is not None and not isinstance(characteristics, list):
        characteristics = [str(characteristics)]
    return BreedOut(
        id=str(breed.id),
        name=breed.name,
        species=breed.species,
        origin=breed.origin,
        status=breed.status,
        description=breed.description,
        key_characteristics=characteristics,
        native_region=breed.native_region,
        avg_milk_yield_min=_float_or_none(breed.avg_milk_yield_min),
        avg_milk_yield_max=_float_or_none(breed.avg_milk_yield_max),
        milk_yield_unit=breed.milk_yield_unit,
        avg_body_weight_min=_float_or_none(breed.avg_body_weight_min),
        avg_body_weight_max=_float_or_none(breed.avg_body_weight_max),
        body_weight_unit=breed.body_weight_unit,
        adaptability=breed.adaptability,
        temperament=breed.temperament,
        conservation_status=breed.conservation_status,
        stock_img_url=breed.stock_img_url,
        created_at=breed.created_at,
    )


@router.get("/breeds", response_model=BreedListResponse)
def get_breeds(
    species: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    conservation_status: Optional[str] = Query(None),
    temperament: Optional[str] = Query(None),
    min_milk: Optional[float] = Query(None, ge=0),
    max_milk: Optional[float] = Query(None, ge=0),
    min_weight: Optional[float] = Query(None, ge=0),
    max_weight: Optional[float] = Query(None, ge=0),
    origin: Optional[str] = Query(None, max_length=200),
    search: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
):
    filters = BreedFilters(
        species=species,
        status=status,
        conservation_status=conservation_status,
        temperament=temperament,
        min_milk=min_milk,
        max_milk=max_milk,
        min_weight=min_weight,
        max_weight=max_weight,
        origin=origin,
        search=search,
    )
    return BreedListResponse(items=[_breed_to_out(b) for b in list_breeds(db, filters)])


@router.get("/breeds/{breed_id}", response_model=BreedOut)
def get_breed_detail(breed_id: uuid.UUID, db: Session = Depends(get_db)):
    breed = get_breed(db, breed_id)
    if breed is None:
        raise HTTPException(404, "Breed not found")
    return _breed_to_out(breed)


@router.get("/breeds/{breed_id}/confirmed-images", response_model=ConfirmedImagePage)
def get_confirmed_images(
    breed_id: uuid.UUID,
    page: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    rows, has_more = list_confirmed_images(db, breed_id, page)
    return ConfirmedImagePage(
        items=[ConfirmedImageOut(id=str(r.id), image_url=r.image_url) for r in rows],
        page=page,
        next_page=page + 1 if has_more else None,
    )


@router.get("/sightings", response_model=SightingListResponse)
def get_sightings(
    breed: Optional[str] = Query(None, max_length=200),
    db: Session = Depends(get_db),
):
    sightings, names = list_sightings(db, breed)
    return SightingListResponse(
        items=[SightingOut(id=s.id, lat=s.lat, lng=s.lng, breed=s.breed, image_url=s.image_url) for s in sightings],
        breeds=names,
    )
