"""
WindPrice — Wind / Price Merge
Attaches spot prices to forecast hours by exact hour-key match.

Rules
-----
  * Output order and length follow the forecast series.
  * A price lands on the first forecast entry with the same hour key;
    later entries repeating that hour keep price 0.0.
  * If several prices share an hour key, the last one wins.
  * Forecast hours without a price keep price 0.0; unmatched prices are
    dropped without error.

The inputs are never modified.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd
from loguru import logger

from data.forecast import ForecastPoint
from data.prices import PricePoint


@dataclass(frozen=True)
class MergedEntry:
    """Forecast wind plus spot price for a single hour."""

    hour:       str
    wind_speed: float   # m/s
    wind_gust:  float   # m/s
    price:      float   # SEK/kWh; 0.0 when no price matched

    def to_dict(self) -> dict:
        return {
            "hour":  self.hour,
            "speed": self.wind_speed,
            "gust":  self.wind_gust,
            "price": self.price,
        }


def merge_prices(
    forecast: Sequence[ForecastPoint],
    prices: Sequence[PricePoint],
) -> list[MergedEntry]:
    """Left-join prices onto the forecast series on the hour key."""
    if not forecast:
        return []

    wind_df = pd.DataFrame(
        [(p.hour, p.wind_speed, p.wind_gust) for p in forecast],
        columns=["hour", "wind_speed", "wind_gust"],
    )
    # Only the first occurrence of an hour may receive a price
    wind_df["is_first"] = ~wind_df["hour"].duplicated(keep="first")

    price_df = pd.DataFrame(
        [(p.hour, p.price) for p in prices],
        columns=["hour", "price"],
    ).drop_duplicates(subset="hour", keep="last")

    merged = wind_df.merge(price_df, on="hour", how="left")
    merged.loc[~merged["is_first"], "price"] = float("nan")
    matched = int(merged["price"].notna().sum())
    merged["price"] = merged["price"].astype(float).fillna(0.0)

    _log_match_rate(forecast, prices, matched, len(price_df))

    return [
        MergedEntry(
            hour=str(row.hour),
            wind_speed=float(row.wind_speed),
            wind_gust=float(row.wind_gust),
            price=float(row.price),
        )
        for row in merged.itertuples(index=False)
    ]


def _log_match_rate(
    forecast: Sequence[ForecastPoint],
    prices: Sequence[PricePoint],
    matched: int,
    distinct_prices: int,
) -> None:
    logger.debug("Merge: {}/{} price hours matched {} forecast hours.",
                 matched, distinct_prices, len(forecast))
    if prices and matched == 0:
        # Usually a timestamp format or timezone mismatch between the two feeds
        logger.warning(
            "Merge: no price hour matched the forecast "
            "(forecast {} .. {}, prices {} .. {}); prices default to 0.",
            forecast[0].hour, forecast[-1].hour, prices[0].hour, prices[-1].hour,
        )
