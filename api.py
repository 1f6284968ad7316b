"""
WindPrice — FastAPI Server
Serves the hourly wind forecast for the caller's location merged with
today's and tomorrow's electricity spot prices.

Run:  uvicorn api:app --reload --port 8000

Routes (GET/HEAD only)
----------------------
  /                    navigation page
  /wind, /wind.json    merged series as JSON
  /wind.html           merged series as a Chart.js page

  ?lat=..&long=..      explicit coordinates; otherwise the client IP is
                       geolocated.
"""

from __future__ import annotations

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import requests
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from loguru import logger

from data.forecast import ForecastClient
from data.geo import (
    GeolocationError,
    Location,
    geolocate,
    parse_client_ip,
    parse_coordinates,
)
from data.merge import MergedEntry, merge_prices
from data.prices import PRICE_REGIONS, PriceClient
from data.render import root_html, to_html, to_json
from data.transport import CachingSession
from settings import load_settings

# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

settings = load_settings()

logger.remove()
logger.add(sys.stderr, level=settings.log_level)

ALLOWED_METHODS = {"GET", "HEAD"}

# ---------------------------------------------------------------------------
# Application state: shared clients
# ---------------------------------------------------------------------------

_http_client: Optional[httpx.AsyncClient] = None

_transport = CachingSession(timeout=settings.request_timeout)
_forecast_client = ForecastClient(
    session=_transport,
    ttl_seconds=settings.forecast_ttl_seconds,
    timezone=settings.forecast_timezone,
    max_hours=settings.forecast_hours,
)
_price_client = PriceClient(
    session=_transport,
    ttl_seconds=settings.price_ttl_seconds,
    timezone=settings.price_timezone,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log the service version and hold one httpx client for geolocation."""
    global _http_client
    logger.info("SERVICE_VERSION: {}", settings.service_version or "unknown")
    if settings.price_region not in PRICE_REGIONS:
        logger.warning("PRICE_REGION {} is not one of {}.", settings.price_region, sorted(PRICE_REGIONS))
    _http_client = httpx.AsyncClient(timeout=settings.request_timeout)
    logger.info("httpx AsyncClient initialised.")
    yield
    await _http_client.aclose()
    _http_client = None
    logger.info("httpx AsyncClient closed.")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="WindPrice",
    description=(
        "Hourly wind speed and gust forecast for the caller's location, "
        "merged with hourly electricity spot prices."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


@app.middleware("http")
async def reject_unexpected_methods(request: Request, call_next):
    """Only GET and HEAD reach the routes."""
    if request.method not in ALLOWED_METHODS:
        logger.warning("{} {} rejected (method not allowed).", request.method, request.url.path)
        return PlainTextResponse("This method is not allowed\n", status_code=405)
    return await call_next(request)


@app.exception_handler(HTTPException)
async def plain_text_error(request: Request, exc: HTTPException) -> PlainTextResponse:
    """Errors are plain-text lines, not JSON envelopes."""
    return PlainTextResponse(f"{exc.detail}\n", status_code=exc.status_code)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def resolve_location(
    request: Request,
    lat: Optional[str] = Query(default=None, description="Latitude override (decimal degrees)."),
    long: Optional[str] = Query(default=None, description="Longitude override (decimal degrees)."),
) -> Location:
    """
    Work out where the forecast is for.

    The client address must parse as an IP (400 otherwise).  Explicit
    ``lat``/``long`` win; without them the IP is geolocated (500 on failure).
    """
    host = request.client.host if request.client else None
    ip = parse_client_ip(host)
    if ip is None:
        logger.warning("Unparseable client address: {!r}", host)
        raise HTTPException(status_code=400, detail=f"unable to parse the client IP {json.dumps(host)}")

    try:
        explicit = parse_coordinates(lat, long)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail=f"unable to parse coordinates lat={json.dumps(lat)} long={json.dumps(long)}",
        ) from exc
    if explicit is not None:
        return explicit

    try:
        if _http_client is not None:
            return await geolocate(_http_client, ip, settings.geoip_url)
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            return await geolocate(client, ip, settings.geoip_url)
    except GeolocationError as exc:
        raise HTTPException(
            status_code=500,
            detail=f"unable to geolocate client ip {json.dumps(ip)}: {exc}",
        ) from exc


async def _fetch_merged(location: Location) -> list[MergedEntry]:
    """
    Fetch wind and prices concurrently, then merge.

    Either fetch failing fails the whole request with 502; nothing partial
    is rendered.
    """
    try:
        forecast, prices = await asyncio.gather(
            asyncio.to_thread(
                _forecast_client.get_forecast, location.latitude, location.longitude
            ),
            asyncio.to_thread(_price_client.get_prices, settings.price_region),
        )
    except requests.exceptions.RequestException as exc:
        logger.error("Upstream fetch failed for {}: {}", location.label, exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return merge_prices(forecast, prices)


def _coordinate_query(location: Location) -> str:
    if location.source != "browser":
        return ""
    return f"?lat={location.latitude}&long={location.longitude}"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.api_route("/wind", methods=["GET", "HEAD"], tags=["Wind"])
@app.api_route("/wind.json", methods=["GET", "HEAD"], tags=["Wind"])
async def get_wind_json(location: Location = Depends(resolve_location)):
    """
    Return the merged series as a JSON array:

        {"hour": "2023-02-15T14:00", "speed": 3.20, "gust": 5.10, "price": 0.45}

    speed/gust in m/s, price in SEK/kWh (0.00 where no price is published).
    """
    logger.info("GET /wind.json | {}", location.label)
    entries = await _fetch_merged(location)
    return Response(content=to_json(entries), media_type="application/json")


@app.api_route("/wind.html", methods=["GET", "HEAD"], response_class=HTMLResponse, tags=["Wind"])
async def get_wind_html(location: Location = Depends(resolve_location)):
    """Return the merged series as a Chart.js line chart."""
    logger.info("GET /wind.html | {}", location.label)
    entries = await _fetch_merged(location)
    return HTMLResponse(to_html(entries, location))


@app.api_route("/", methods=["GET", "HEAD"], response_class=HTMLResponse, tags=["Meta"])
async def get_root(location: Location = Depends(resolve_location)):
    """Navigation page linking the HTML and JSON views."""
    return HTMLResponse(root_html(location, _coordinate_query(location)))


@app.api_route("/{path:path}", methods=["GET", "HEAD"], tags=["Meta"])
async def get_other(path: str, location: Location = Depends(resolve_location)):
    """
    Unknown ``/wind*`` paths get an empty 200 and no upstream calls;
    any other path shows the navigation page.
    """
    if path.startswith("wind"):
        logger.info("GET /{} | no matching view.", path)
        return Response(content=b"", status_code=200)
    return await get_root(location)
