"""Coin price layer -- daily OHLC aggregation, cumulative means, trend, and the daily upsert rule."""

from gifter.prices.aggregation import (
    aggregate_cumulative_mean,
    aggregate_daily,
    calendar_day,
    compute_trend,
    cumulative_trend,
    trend_of_values,
)
from gifter.prices.upsert import DailyPriceUpserter, SubmissionRepository, day_bounds

__all__ = [
    "DailyPriceUpserter",
    "SubmissionRepository",
    "aggregate_cumulative_mean",
    "aggregate_daily",
    "calendar_day",
    "compute_trend",
    "cumulative_trend",
    "day_bounds",
    "trend_of_values",
]
