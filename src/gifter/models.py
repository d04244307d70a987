"""Shared data models for the gifter calculator.

CRITICAL: All monetary values use Decimal. Never use float for prices, costs, or amounts.
Point balances are plain ints.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class TrendDirection(str, Enum):
    """Price series direction from first close to last close."""

    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class UpsertOutcome(str, Enum):
    """What the daily upsert rule did with a submission."""

    INSERTED = "inserted"
    UPDATED = "updated"


class LevelStatus(str, Enum):
    """Position of a tier relative to a user's balance."""

    COMPLETE = "complete"
    CURRENT = "current"
    LOCKED = "locked"


@dataclass(frozen=True)
class Tier:
    """One row of the tier table: points in [start, end] belong to ``level``."""

    level: int
    start: int
    end: int

    @property
    def size(self) -> int:
        """Number of integer point values covered by this tier."""
        return self.end - self.start + 1


@dataclass(frozen=True)
class Currency:
    """A display currency with its default point-to-money rate."""

    code: str
    symbol: str
    name: str
    cost_per_point: Decimal


@dataclass
class PriceSubmission:
    """A community-submitted coin price (per 1000 coins) for one currency.

    Identified for dedup purposes by (source_id, currency_code, calendar day).
    """

    source_id: str
    currency_code: str
    price_per_1000: Decimal
    submitted_at: datetime
    device_id: str | None = None
    id: int | None = None


@dataclass(frozen=True)
class DailyCandle:
    """Open/high/low/close of one calendar day of submitted prices."""

    date: date
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal


@dataclass(frozen=True)
class CumulativePoint:
    """Running mean of daily mean prices up to and including ``date``."""

    date: date
    value: Decimal


@dataclass(frozen=True)
class Trend:
    """Direction and percent change between the first and last value of a series."""

    direction: TrendDirection
    percent_change: Decimal


@dataclass
class PriceHistory:
    """Both chart views of one currency's submissions, with their trends."""

    currency_code: str
    candles: list[DailyCandle]
    trend: Trend | None
    cumulative: list[CumulativePoint]
    cumulative_trend: Trend | None


@dataclass
class UpsertResult:
    """Caller-visible result of a price submission."""

    outcome: UpsertOutcome
    submission: PriceSubmission

    @property
    def updated(self) -> bool:
        return self.outcome is UpsertOutcome.UPDATED


@dataclass
class CalculationRecord:
    """Audit entry written after every completed tier calculation."""

    source_id: str
    currency_code: str
    current_level: int
    target_level: int
    points_needed: int
    amount_calculated: Decimal
    user_points: int
    timestamp: datetime
    device_id: str | None = None


@dataclass
class TierSummary:
    """Everything the calculator view shows for one balance and currency."""

    points: int
    currency: Currency
    current_level: int
    total_spent: Decimal
    points_to_next_tier: int
    money_to_next_tier: Decimal
    progress_pct: Decimal  # 0-100
    points_to_top: int
    money_to_top: Decimal
    next_milestone: int
    points_to_milestone: int
    money_to_milestone: Decimal
    status: str


@dataclass
class LevelBreakdown:
    """One row of the full levels table, optionally relative to a balance."""

    tier: Tier
    tier_points: int
    tier_cost: Decimal
    status: LevelStatus | None = None
    points_held: int = 0
    money_spent: Decimal = Decimal("0")
    points_missing: int = 0
    money_missing: Decimal = Decimal("0")


@dataclass
class SourceStatistics:
    """Per-source aggregate of calculations for one currency."""

    source_id: str
    currency_code: str
    total_calculations: int
    total_amount: Decimal
    first_calculation: datetime
    last_calculation: datetime
    device_ids: list[str] = field(default_factory=list)
