"""Shared fixtures: canned upstream payloads and a loguru capture sink."""

from __future__ import annotations

from typing import Any

import pytest
from loguru import logger


def open_meteo_body(
    times: list[str],
    speeds: list[Any],
    gusts: list[Any],
) -> dict[str, Any]:
    """Minimal Open-Meteo hourly forecast response."""
    return {
        "latitude": 55.6,
        "longitude": 13.0,
        "timezone": "CET",
        "hourly_units": {"time": "iso8601", "windspeed_10m": "m/s", "windgusts_10m": "m/s"},
        "hourly": {"time": times, "windspeed_10m": speeds, "windgusts_10m": gusts},
    }


def hourly_times(day: str, hours: int = 24) -> list[str]:
    """["<day>T00:00", "<day>T01:00", ...]"""
    return [f"{day}T{h:02d}:00" for h in range(hours)]


def price_day_body(day: str, prices: list[float]) -> list[dict[str, Any]]:
    """elprisetjustnu price array for one day, one item per hour."""
    return [
        {
            "SEK_per_kWh": price,
            "EUR_per_kWh": round(price / 11.2, 5),
            "EXR": 11.2,
            "time_start": f"{day}T{h:02d}:00:00+01:00",
            "time_end": f"{day}T{h + 1:02d}:00:00+01:00",
        }
        for h, price in enumerate(prices)
    ]


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
