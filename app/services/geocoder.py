from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from app.core.config import settings

_LOG = logging.getLogger("app.geocoder")


class GeocoderError(RuntimeError):
    pass


@dataclass(frozen=True)
class GeoLocation:
    latitude: float
    longitude: float
    formatted_address: str | None = None
    city: str | None = None
    state: str | None = None
    zipcode: str | None = None
    country: str | None = None


def _location_from_item(item: Any) -> GeoLocation | None:
    if not isinstance(item, dict):
        return None
    try:
        latitude = float(item["lat"])
        longitude = float(item["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    address = item.get("address") or {}
    return GeoLocation(
        latitude=latitude,
        longitude=longitude,
        formatted_address=item.get("display_name"),
        city=address.get("city") or address.get("town") or address.get("village"),
        state=address.get("state"),
        zipcode=address.get("postcode"),
        country=address.get("country_code", "").upper() or address.get("country"),
    )


class Geocoder:
    """Forward geocoding against a Nominatim-compatible search endpoint."""

    def __init__(
        self,
        url: str,
        user_agent: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self.transport = transport

    def geocode(self, query: str, limit: int = 1) -> list[GeoLocation]:
        text = str(query or "").strip()
        if not text:
            return []
        params = {"q": text, "format": "jsonv2", "addressdetails": 1, "limit": limit}
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport, headers=headers) as client:
                response = client.get(self.url, params=params)
        except httpx.HTTPError as exc:
            _LOG.warning("geocoder request failed query=%r error=%s", text, exc)
            raise GeocoderError("Geocoding service is unavailable") from exc

        if response.status_code >= 400:
            _LOG.warning("geocoder error status=%s query=%r", response.status_code, text)
            raise GeocoderError(f"Geocoding service responded with status {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise GeocoderError("Geocoding service returned malformed data") from exc
        if not isinstance(payload, list):
            raise GeocoderError("Geocoding service returned malformed data")

        locations = [loc for loc in (_location_from_item(item) for item in payload) if loc is not None]
        _LOG.info("geocoded query=%r results=%s", text, len(locations))
        return locations


@lru_cache(maxsize=1)
def get_geocoder() -> Geocoder:
    return Geocoder(
        url=settings.GEOCODER_URL,
        user_agent=settings.GEOCODER_USER_AGENT,
        timeout=settings.GEOCODER_TIMEOUT_SECONDS,
    )
