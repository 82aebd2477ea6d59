"""Read-only queries behind the breed catalog and the sightings map."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from cattlescan.models.scan import Breed, CattleScan, ConfirmedCattleBreed

CONFIRMED_IMAGES_PAGE_SIZE = 12

# Sentinels sent by filter dropdowns meaning "no filter".
_ALL_SENTINELS = {
    "",
    "all",
    "all species",
    "all status",
    "all conservation status",
    "all temperament",
}


@dataclass(frozen=True)
class BreedFilters:
    species: Optional[str] = None
    status: Optional[str] = None
    conservation_status: Optional[str] = None
    temperament: Optional[str] = None
    min_milk: Optional[float] = None
    max_milk: Optional[float] = None
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    origin: Optional[str] = None
    search: Optional[str] = None


@dataclass(frozen=True)
class Sighting:
    id: str
    lat: float
    lng: float
    breed: str
    image_url: str


def _is_set(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() not in _ALL_SENTINELS


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_breeds(db: Session, filters: Optional[BreedFilters] = None) -> list[Breed]:
    f = filters or BreedFilters()
    stmt = select(Breed)

    for column, value in (
        (Breed.species, f.species),
        (Breed.status, f.status),
        (Breed.conservation_status, f.conservation_status),
        (Breed.temperament, f.temperament),
    ):
        if _is_set(value):
            stmt = stmt.where(column == value.strip())

    if f.min_milk is not None:
        stmt = stmt.where(Breed.avg_milk_yield_min >= f.min_milk)
    if f.max_milk is not None:
        stmt = stmt.where(Breed.avg_milk_yield_max <= f.max_milk)
    if f.min_weight is not None:
        stmt = stmt.where(Breed.avg_body_weight_min >= f.min_weight)
    if f.max_weight is not None:
        stmt = stmt.where(Breed.avg_body_weight_max <= f.max_weight)
    if f.origin and f.origin.strip():
        stmt = stmt.where(Breed.origin.ilike(f"%{_escape_like(f.origin.strip())}%", escape="\\"))
    if f.search and f.search.strip():
        stmt = stmt.where(Breed.name.ilike(f"%{_escape_like(f.search.strip())}%", escape="\\"))

    return list(db.execute(stmt.order_by(Breed.name.asc())).scalars().all())


def get_breed(db: Session, breed_id: uuid.UUID) -> Optional[Breed]:
    return db.get(Breed, breed_id)


def list_confirmed_images(db: Session, breed_id: uuid.UUID, page: int = 0) -> tuple[list[ConfirmedCattleBreed], bool]:
    """One page of confirmed images for a breed, newest first.

    The second value is True when the page was full, i.e. another page may
    exist.
    """
    page = max(0, int(page))
    rows = (
        db.execute(
            select(ConfirmedCattleBreed)
            .where(ConfirmedCattleBreed.breed_id == breed_id)
            .order_by(ConfirmedCattleBreed.created_at.desc(), ConfirmedCattleBreed.id.desc())
            .offset(page * CONFIRMED_IMAGES_PAGE_SIZE)
            .limit(CONFIRMED_IMAGES_PAGE_SIZE)
        )
        .scalars()
        .all()
    )
    return list(rows), len(rows) == CONFIRMED_IMAGES_PAGE_SIZE


def _coordinates(location: Any) -> Optional[tuple[float, float]]:
    if not isinstance(location, dict):
        return None
    lat = location.get("latitude")
    lng = location.get("longitude")
    if lat is None or lng is None:
        return None
    try:
        return float(lat), float(lng)
    except (TypeError, ValueError):
        return None


def list_sightings(db: Session, breed: Optional[str] = None) -> tuple[list[Sighting], list[str]]:
    """Confirmed sightings that can be placed on a map.

    Returns the (optionally breed-filtered) sightings and the sorted names of
    every breed that has at least one mappable sighting.
    """
    rows = db.execute(
        select(
            ConfirmedCattleBreed.id,
            ConfirmedCattleBreed.image_url,
            Breed.name,
            CattleScan.location,
        )
        .join(Breed, Breed.id == ConfirmedCattleBreed.breed_id)
        .outerjoin(CattleScan, CattleScan.id == ConfirmedCattleBreed.scan_id)
        .order_by(ConfirmedCattleBreed.created_at.desc())
    ).all()

    sightings: list[Sighting] = []
    names: set[str] = set()
    for row_id, image_url, breed_name, location in rows:
        coords = _coordinates(location)
        if coords is None or not breed_name:
            continue
        names.add(breed_name)
        sightings.append(
            Sighting(id=str(row_id), lat=coords[0], lng=coords[1], breed=breed_name, image_url=image_url)
        )

    if _is_set(breed):
        sightings = [s for s in sightings if s.breed == breed]
    return sightings, sorted(names)
