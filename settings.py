"""
WindPrice — Runtime Settings
Read once from the environment (and an optional .env file) at process start.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Immutable service configuration."""

    service_version:      str
    log_level:            str
    price_region:         str     # elprisetjustnu area code, e.g. "SE4"
    price_timezone:       str     # zone that defines "today" for prices
    forecast_timezone:    str     # Open-Meteo timezone parameter
    forecast_ttl_seconds: int
    price_ttl_seconds:    int
    forecast_hours:       int
    request_timeout:      float
    geoip_url:            str


def load_settings() -> Settings:
    """Build Settings from environment variables, falling back to defaults."""
    return Settings(
        service_version=os.getenv(
            "SERVICE_VERSION", os.getenv("FASTLY_SERVICE_VERSION", "")
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        price_region=os.getenv("PRICE_REGION", "SE4"),
        price_timezone=os.getenv("PRICE_TIMEZONE", "Europe/Stockholm"),
        forecast_timezone=os.getenv("FORECAST_TIMEZONE", "CET"),
        forecast_ttl_seconds=int(os.getenv("FORECAST_TTL_SECONDS", str(60 * 60 * 4))),
        price_ttl_seconds=int(os.getenv("PRICE_TTL_SECONDS", str(60 * 60))),
        forecast_hours=int(os.getenv("FORECAST_HOURS", "72")),
        request_timeout=float(os.getenv("REQUEST_TIMEOUT", "30")),
        geoip_url=os.getenv("GEOIP_URL", "http://ip-api.com/json"),
    )
