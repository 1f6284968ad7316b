"""
WindPrice — Open-Meteo Wind Forecast Client
Fetches hourly 10 m wind speed and gust forecasts for a coordinate pair.

Endpoint
--------
  GET https://api.open-meteo.com/v1/forecast
      ?latitude=..&longitude=..&windspeed_unit=ms&timezone=CET
      &hourly=windspeed_10m,windgusts_10m

  No API key required.  The response carries three index-aligned arrays:

      hourly.time            ["2023-02-15T00:00", "2023-02-15T01:00", ...]
      hourly.windspeed_10m   [3.2, 3.4, ...]   (m/s)
      hourly.windgusts_10m   [5.1, 5.9, ...]   (m/s)

  Open-Meteo returns 7 days by default; only the first 72 hours are kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from data.transport import CachingSession, default_session

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

OPEN_METEO_API   = "https://api.open-meteo.com/v1/forecast"
HOURLY_VARS      = "windspeed_10m,windgusts_10m"
DEFAULT_TIMEZONE = "CET"
MAX_HOURS        = 72             # 3 days of hourly data
CACHE_TTL        = 60 * 60 * 4    # 4 hours


# ---------------------------------------------------------------------------
# Output dataclass
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForecastPoint:
    """One hour of forecast wind."""

    hour:       str     # "YYYY-MM-DDTHH:MM", forecast timezone
    wind_speed: float   # m/s
    wind_gust:  float   # m/s

    def to_dict(self) -> dict:
        return {
            "hour":       self.hour,
            "wind_speed": self.wind_speed,
            "wind_gust":  self.wind_gust,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def build_forecast_url(lat: float, lon: float, *, timezone: str = DEFAULT_TIMEZONE) -> str:
    """Return the Open-Meteo hourly wind URL for a coordinate pair (2-decimal precision)."""
    return (
        f"{OPEN_METEO_API}?latitude={lat:.2f}&longitude={lon:.2f}"
        f"&windspeed_unit=ms&timezone={timezone}&hourly={HOURLY_VARS}"
    )


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_list(value: Any) -> list:
    # anything other than a JSON array counts as missing
    return value if isinstance(value, list) else []


def parse_forecast(body: Any, max_hours: int = MAX_HOURS) -> list[ForecastPoint]:
    """
    Extract the hourly wind series from an Open-Meteo response body.

    Missing, mismatched or non-array fields never raise: the series is cut to the
    shortest of the three arrays (and to ``max_hours``).  ``null`` samples
    become 0.0.
    """
    hourly = body.get("hourly") if isinstance(body, dict) else None
    if not isinstance(hourly, dict):
        logger.warning("Open-Meteo: response has no 'hourly' block.")
        return []

    times  = _as_list(hourly.get("time"))
    speeds = _as_list(hourly.get("windspeed_10m"))
    gusts  = _as_list(hourly.get("windgusts_10m"))

    n = min(len(times), len(speeds), len(gusts), max_hours)
    if len(times) != len(speeds) or len(times) != len(gusts):
        logger.warning(
            "Open-Meteo: misaligned arrays (time={}, speed={}, gust={}); using {} hours.",
            len(times), len(speeds), len(gusts), n,
        )

    points = [
        ForecastPoint(
            hour=str(times[i]),
            wind_speed=_as_float(speeds[i]),
            wind_gust=_as_float(gusts[i]),
        )
        for i in range(n)
    ]
    logger.debug("Open-Meteo: parsed {} hourly points ({} available).", len(points), len(times))
    return points


# ---------------------------------------------------------------------------
# Core client
# ---------------------------------------------------------------------------


class ForecastClient:
    """
    Fetches the hourly wind forecast for a coordinate pair.

    Parameters
    ----------
    session:     Caching transport; the process-wide one by default.
    ttl_seconds: Cache lifetime hint attached to each request.
    timezone:    Open-Meteo ``timezone`` parameter; fixes the hour labels.
    max_hours:   Cap on the returned series length.
    """

    def __init__(
        self,
        session: Optional[CachingSession] = None,
        ttl_seconds: int = CACHE_TTL,
        timezone: str = DEFAULT_TIMEZONE,
        max_hours: int = MAX_HOURS,
    ) -> None:
        self._session   = session or default_session
        self._ttl       = ttl_seconds
        self._timezone  = timezone
        self._max_hours = max_hours

    def get_forecast(self, lat: float, lon: float) -> list[ForecastPoint]:
        """
        Return up to ``max_hours`` ForecastPoints starting at the first
        hour Open-Meteo reports.

        Raises ``requests.RequestException`` if the upstream call fails.
        """
        url = build_forecast_url(lat, lon, timezone=self._timezone)
        logger.info("Forecast | lat={:.2f} | lon={:.2f} | tz={}", lat, lon, self._timezone)
        body = self._session.get_json(url, ttl=self._ttl)

        points = parse_forecast(body, self._max_hours)
        if not points:
            logger.warning("Forecast: Open-Meteo returned no hourly data for {:.2f},{:.2f}.", lat, lon)
        return points


# ---------------------------------------------------------------------------
# Module-level convenience
# ---------------------------------------------------------------------------


def fetch_forecast(lat: float, lon: float) -> list[ForecastPoint]:
    """Fetch the 72-hour wind forecast for a coordinate pair."""
    return ForecastClient().get_forecast(lat, lon)
