"""
WindPrice — Electricity Spot Price Client
Fetches hourly day-ahead spot prices from elprisetjustnu.se.

Endpoint
--------
  GET https://www.elprisetjustnu.se/api/v1/prices/{year}/{MM}-{DD}_{region}.json

  One file per calendar day and price area (SE1–SE4).  The body is a JSON
  array, one object per hour:

      {"SEK_per_kWh": 0.45, "EUR_per_kWh": 0.04, "EXR": 11.2,
       "time_start": "2023-02-15T14:00:00+01:00",
       "time_end":   "2023-02-15T15:00:00+01:00"}

Hour keys
---------
  The hour key is the first 16 characters of ``time_start``
  ("2023-02-15T14:00"), the same shape Open-Meteo uses for its hourly
  labels.  Both series must share that format for prices to merge.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

from loguru import logger

from data.transport import CachingSession, default_session

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PRICE_API_BASE   = "https://www.elprisetjustnu.se/api/v1/prices"
DEFAULT_REGION   = "SE4"
DEFAULT_TIMEZONE = "Europe/Stockholm"
CACHE_TTL        = 60 * 60   # 1 hour
HOUR_KEY_LEN     = 16        # "YYYY-MM-DDTHH:MM"

PRICE_REGIONS = {"SE1", "SE2", "SE3", "SE4"}


# ---------------------------------------------------------------------------
# Output dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricePoint:
    """Spot price for a single hour."""

    hour:  str     # time_start[:16]
    price: float   # SEK/kWh

    def to_dict(self) -> dict:
        return {"hour": self.hour, "price": self.price}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_price_url(day: date, region: str) -> str:
    """Return the elprisetjustnu URL for one calendar day and price area."""
    return f"{PRICE_API_BASE}/{day.year}/{day.month:02d}-{day.day:02d}_{region}.json"


def parse_prices(body: Any) -> list[PricePoint]:
    """
    Convert one day's price array into PricePoints, preserving order.

    Items without a usable ``time_start`` are skipped; a missing price
    is read as 0.0.
    """
    if not isinstance(body, list):
        logger.warning("Prices: expected a JSON array, got {}.", type(body).__name__)
        return []

    points: list[PricePoint] = []
    for item in body:
        if not isinstance(item, dict):
            continue
        start = str(item.get("time_start") or "")
        if len(start) < HOUR_KEY_LEN:
            logger.debug("Prices: skipping item with malformed time_start {!r}", start)
            continue
        try:
            price = float(item.get("SEK_per_kWh") or 0.0)
        except (TypeError, ValueError):
            price = 0.0
        points.append(PricePoint(hour=start[:HOUR_KEY_LEN], price=price))

    logger.debug("Prices: parsed {} hourly prices.", len(points))
    return points


# ---------------------------------------------------------------------------
# Core client
# ---------------------------------------------------------------------------


class PriceClient:
    """
    Fetches today's and tomorrow's hourly spot prices for one price area.

    Parameters
    ----------
    session:     Caching transport; the process-wide one by default.
    ttl_seconds: Cache lifetime hint attached to each request.
    timezone:    Zone whose calendar defines "today".
    """

    def __init__(
        self,
        session: Optional[CachingSession] = None,
        ttl_seconds: int = CACHE_TTL,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._session  = session or default_session
        self._ttl      = ttl_seconds
        self._tz       = ZoneInfo(timezone)

    def get_prices(
        self,
        region: str = DEFAULT_REGION,
        now: Optional[datetime] = None,
    ) -> list[PricePoint]:
        """
        Return today's prices followed by tomorrow's.

        Both days must succeed: a failure on either raises
        ``requests.RequestException`` and no partial result is returned.
        """
        now = now.astimezone(self._tz) if now else datetime.now(tz=self._tz)
        today    = now.date()
        tomorrow = today + timedelta(days=1)

        logger.info("Prices | region={} | days={}, {}", region, today, tomorrow)
        today_points    = self.get_day(region, today)
        tomorrow_points = self.get_day(region, tomorrow)

        return today_points + tomorrow_points

    def get_day(self, region: str, day: date) -> list[PricePoint]:
        """Fetch and parse a single day's price file."""
        body = self._session.get_json(build_price_url(day, region), ttl=self._ttl)
        points = parse_prices(body)
        if not points:
            logger.warning("Prices: no hourly prices for {} on {}.", region, day)
        return points


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------


def fetch_prices(region: str = DEFAULT_REGION) -> list[PricePoint]:
    """Fetch today's and tomorrow's spot prices for the given price area."""
    return PriceClient().get_prices(region)
