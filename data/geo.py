"""
WindPrice — Client Location
Resolves where the wind forecast is for: either explicit browser
coordinates (``?lat=..&long=..``) or an IP geolocation lookup.

Geolocation source
------------------
  ip-api.com  (free, no API key; HTTP only on the free tier)

      GET http://ip-api.com/json/{ip}?fields=status,message,country,city,lat,lon

  Reserved/private addresses come back with ``status == "fail"`` and a
  ``message`` such as "private range" or "reserved range".
"""

from __future__ import annotations

import ipaddress
import math
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel

GEOIP_URL    = "http://ip-api.com/json"
GEOIP_FIELDS = "status,message,country,city,lat,lon"


class GeolocationError(Exception):
    """IP geolocation lookup failed."""


class Location(BaseModel):
    """Where the forecast is fetched for."""
    latitude:  float
    longitude: float
    city:      str = ""
    country:   str = ""
    source:    str   # "browser" | "geoip"

    @property
    def label(self) -> str:
        coords = f"({self.latitude:.2f}, {self.longitude:.2f})"
        if self.source == "browser":
            return f"browser location {coords}"
        place = ", ".join(p for p in (self.city, self.country) if p)
        return f"{place} {coords}" if place else coords


class _GeoIPResponse(BaseModel):
    status:  str
    message: str = ""
    country: str = ""
    city:    str = ""
    lat:     float = 0.0
    lon:     float = 0.0


def parse_client_ip(host: Optional[str]) -> Optional[str]:
    """Return the normalised client address, or None if it is not an IP."""
    if not host:
        return None
    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return None


def parse_coordinates(lat: Optional[str], lon: Optional[str]) -> Optional[Location]:
    """
    Build a browser Location from query parameters.

    Returns None unless both are present; raises ValueError when either
    is not a decimal number.
    """
    if lat is None or lon is None:
        return None
    latitude, longitude = float(lat), float(lon)
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise ValueError(f"non-finite coordinates: {lat}, {lon}")
    return Location(latitude=latitude, longitude=longitude, source="browser")


async def geolocate(
    client: httpx.AsyncClient,
    ip: str,
    base_url: str = GEOIP_URL,
) -> Location:
    """Look up the coordinates, city and country for an IP address."""
    url = f"{base_url}/{ip}"
    try:
        resp = await client.get(url, params={"fields": GEOIP_FIELDS})
        resp.raise_for_status()
        result = _GeoIPResponse.model_validate(resp.json())
    except httpx.HTTPError as exc:
        logger.error("GeoIP lookup for {} failed: {}", ip, exc)
        raise GeolocationError(str(exc)) from exc
    except ValueError as exc:
        # undecodable body or schema mismatch
        logger.error("GeoIP returned an unexpected body for {}: {}", ip, exc)
        raise GeolocationError(f"unexpected geolocation response: {exc}") from exc

    if result.status != "success":
        logger.warning("GeoIP: no location for {} ({}).", ip, result.message or result.status)
        raise GeolocationError(result.message or result.status)

    logger.info("GeoIP: {} → {}, {} ({:.2f}, {:.2f})",
                ip, result.city, result.country, result.lat, result.lon)
    return Location(
        latitude=result.lat,
        longitude=result.lon,
        city=result.city,
        country=result.country,
        source="geoip",
    )
