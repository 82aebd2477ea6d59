"""Best-effort coordinates for a scan.

The device-reported position is tried first with a bounded wait; when it
fails or is missing, the location is looked up from the caller's IP
address (ipinfo.io), which is only accurate to tens of kilometres.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from cattlescan.core.config import get_settings
from cattlescan.services.errors import LocationUnavailableError

logger = logging.getLogger(__name__)

IP_LOOKUP_ACCURACY_METERS = 50_000.0


class PositionUnavailableError(Exception):
    pass


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float
    accuracy: float

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude, "accuracy": self.accuracy}


def _validated(latitude: float, longitude: float, accuracy: float) -> Coordinates:
    if not -90.0 <= latitude <= 90.0:
        raise PositionUnavailableError(f"Latitude out of range: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise PositionUnavailableError(f"Longitude out of range: {longitude}")
    if accuracy < 0:
        raise PositionUnavailableError(f"Negative accuracy: {accuracy}")
    return Coordinates(latitude=latitude, longitude=longitude, accuracy=accuracy)


class PositionSource(Protocol):
    async def get_position(self, *, high_accuracy: bool, maximum_age: float) -> Coordinates: ...


class ReportedPosition:
    """Position the client device reported alongside the scan."""

    def __init__(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        accuracy: Optional[float] = None,
    ) -> None:
        self._latitude = latitude
        self._longitude = longitude
        self._accuracy = accuracy

    async def get_position(self, *, high_accuracy: bool = True, maximum_age: float = 0) -> Coordinates:
        if self._latitude is None or self._longitude is None:
            raise PositionUnavailableError("Device did not report a position")
        return _validated(float(self._latitude), float(self._longitude), float(self._accuracy or 0.0))


class IpInfoLookup:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://ipinfo.io",
        ip: Optional[str] = None,
        timeout_seconds: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._token = token
        self._base_url = base_url.rstrip("/")
        self._ip = ip
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def _url(self) -> str:
        if self._ip:
            return f"{self._base_url}/{self._ip}/json"
        return f"{self._base_url}/json"

    async def lookup(self) -> Coordinates:
        if not self._token:
            raise PositionUnavailableError("Missing IPInfo token")
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                resp = await client.get(self._url(), params={"token": self._token})
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PositionUnavailableError("Failed to fetch IP-based location") from exc

        loc = data.get("loc") if isinstance(data, dict) else None
        if not isinstance(loc, str) or "," not in loc:
            raise PositionUnavailableError("IP lookup returned no location")
        lat, lng = loc.split(",", 1)
        try:
            return _validated(float(lat), float(lng), IP_LOOKUP_ACCURACY_METERS)
        except ValueError as exc:
            raise PositionUnavailableError(f"Unparseable IP location: {loc!r}") from exc


async def resolve_location(
    device: Optional[PositionSource],
    ip_lookup: Optional[IpInfoLookup],
    *,
    timeout_seconds: Optional[float] = None,
) -> Coordinates:
    if timeout_seconds is None:
        timeout_seconds = get_settings().geolocation_timeout_seconds

    if device is not None:
        try:
            return await asyncio.wait_for(
                device.get_position(high_accuracy=True, maximum_age=0),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.info("Device position timed out after %.1fs, trying IP lookup", timeout_seconds)
        except Exception as exc:
            logger.info("Device position unavailable (%s), trying IP lookup", exc)

    if ip_lookup is None:
        raise LocationUnavailableError("No location source available")
    try:
        return await ip_lookup.lookup()
    except PositionUnavailableError as exc:
        logger.warning("IP location lookup failed: %s", exc)
        raise LocationUnavailableError(str(exc)) from exc


def build_ip_lookup(ip: Optional[str] = None) -> IpInfoLookup:
    settings = get_settings()
    return IpInfoLookup(settings.ipinfo_token, base_url=settings.ipinfo_url, ip=ip)
