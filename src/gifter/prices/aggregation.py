"""Daily price aggregation: submission stream -> one OHLC candle per calendar day.

Submissions are bucketed by calendar day in a single canonical time zone.
Each day's open carries forward the previous day's close, so single-submission
days still join the series continuously. The first day opens at its first value.

A second, independent view replaces OHLC with the running mean of daily means.

CRITICAL: All computations use Decimal. Never use float.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timezone, tzinfo
from decimal import Decimal

from gifter.models import CumulativePoint, DailyCandle, PriceSubmission, Trend, TrendDirection

#: Precision limit for running means (12 decimal places), avoids unbounded repeating digits.
_MEAN_QUANTIZE = Decimal("0.000000000001")
_HUNDRED = Decimal("100")
_CHANGE_QUANTIZE = Decimal("0.01")


def _aware(moment: datetime) -> datetime:
    """Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def calendar_day(moment: datetime, tz: tzinfo = timezone.utc) -> date:
    """Calendar day of ``moment`` in ``tz``."""
    return _aware(moment).astimezone(tz).date()


def group_by_day(
    submissions: Iterable[PriceSubmission],
    tz: tzinfo = timezone.utc,
) -> list[tuple[date, list[Decimal]]]:
    """Group prices by calendar day, days ascending, values chronological within a day.

    The sort on submitted_at is stable, so equal timestamps keep input order.
    """
    ordered = sorted(submissions, key=lambda s: _aware(s.submitted_at))
    buckets: dict[date, list[Decimal]] = defaultdict(list)
    for submission in ordered:
        buckets[calendar_day(submission.submitted_at, tz)].append(submission.price_per_1000)
    return sorted(buckets.items())


def aggregate_daily(
    submissions: Iterable[PriceSubmission],
    tz: tzinfo = timezone.utc,
) -> list[DailyCandle]:
    """Build one candle per day: high/low/close from the day, open from the prior close.

    Args:
        submissions: Price submissions for a single currency.
        tz: Canonical time zone for calendar-day boundaries.

    Returns:
        Candles ordered by date ascending. Empty list if there are no submissions.
    """
    candles: list[DailyCandle] = []
    previous_close: Decimal | None = None

    for day, values in group_by_day(submissions, tz):
        open_ = values[0] if previous_close is None else previous_close
        candle = DailyCandle(
            date=day,
            open=open_,
            high=max(values),
            low=min(values),
            close=values[-1],
        )
        candles.append(candle)
        previous_close = candle.close

    return candles


def aggregate_cumulative_mean(
    submissions: Iterable[PriceSubmission],
    tz: tzinfo = timezone.utc,
) -> list[CumulativePoint]:
    """Running mean of daily means: value(day i) = (sum of daily means 1..i) / i.

    Each daily mean is the arithmetic mean of that day's submitted prices.
    """
    points: list[CumulativePoint] = []
    running_sum = Decimal("0")

    for index, (day, values) in enumerate(group_by_day(submissions, tz), start=1):
        daily_mean = sum(values, Decimal("0")) / Decimal(len(values))
        running_sum += daily_mean
        value = (running_sum / Decimal(index)).quantize(_MEAN_QUANTIZE)
        points.append(CumulativePoint(date=day, value=value))

    return points


def trend_of_values(values: Sequence[Decimal]) -> Trend | None:
    """Percent change and direction from the first to the last value.

    Returns None for fewer than two values, or when the first value is zero
    (no meaningful percentage exists).
    """
    if len(values) < 2:
        return None

    first, last = values[0], values[-1]
    if first == 0:
        return None

    percent_change = ((last - first) / first * _HUNDRED).quantize(_CHANGE_QUANTIZE)

    if percent_change > 0:
        direction = TrendDirection.UP
    elif percent_change < 0:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.FLAT
    return Trend(direction=direction, percent_change=percent_change)


def compute_trend(candles: Sequence[DailyCandle]) -> Trend | None:
    """Trend between the first and last candle's close (not open)."""
    return trend_of_values([candle.close for candle in candles])


def cumulative_trend(points: Sequence[CumulativePoint]) -> Trend | None:
    """Trend over the cumulative-mean series."""
    return trend_of_values([point.value for point in points])
