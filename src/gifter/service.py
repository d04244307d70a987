"""Calculator service: wires the tier engine, currency pricing, upserts, and storage.

The engines stay pure; this layer resolves the effective currency from today's
submitted coin price, emits the calculation audit record, and reads price
history snapshots from the store for aggregation.
"""

from datetime import datetime, timezone, tzinfo
from decimal import Decimal

from gifter.currency import effective_currency, get_currency
from gifter.data.store import GifterStore
from gifter.exceptions import PersistenceError
from gifter.logging import get_logger
from gifter.models import (
    CalculationRecord,
    Currency,
    LevelBreakdown,
    PriceHistory,
    SourceStatistics,
    TierSummary,
    UpsertResult,
)
from gifter.prices.aggregation import (
    aggregate_cumulative_mean,
    aggregate_daily,
    compute_trend,
    cumulative_trend,
)
from gifter.prices.upsert import DailyPriceUpserter, day_bounds
from gifter.tiers.engine import TierProgressionEngine

logger = get_logger(__name__)


class CalculatorService:
    """Application service behind the HTTP API.

    Args:
        engine: Tier progression engine over the active tier table.
        store: Persistence collaborator for prices and calculations.
        tz: Canonical time zone for calendar days.
        history_limit: Number of calculations returned per source.
    """

    def __init__(
        self,
        engine: TierProgressionEngine,
        store: GifterStore,
        tz: tzinfo = timezone.utc,
        history_limit: int = 10,
    ) -> None:
        self._engine = engine
        self._store = store
        self._tz = tz
        self._history_limit = history_limit
        self._upserter = DailyPriceUpserter(store, tz)

    @property
    def engine(self) -> TierProgressionEngine:
        return self._engine

    async def today_price(self, currency_code: str, now: datetime | None = None) -> Decimal | None:
        """Latest coin price (per 1000) submitted today for a currency, if any."""
        currency = get_currency(currency_code)
        start, _ = day_bounds(now or datetime.now(timezone.utc), self._tz)
        return await self._store.get_latest_price(currency.code, start)

    async def resolve_currency(self, currency_code: str, now: datetime | None = None) -> Currency:
        """Currency priced from today's coin price, falling back to its default rate."""
        currency = get_currency(currency_code)
        price = await self.today_price(currency.code, now)
        return effective_currency(currency, price)

    async def calculate(
        self,
        points: int,
        currency_code: str,
        source_id: str,
        device_id: str | None = None,
        now: datetime | None = None,
    ) -> TierSummary:
        """Summarize a balance and append the calculation to the audit history.

        The audit target is the next milestone level. An audit write failure is
        logged and does not fail the calculation itself.
        """
        now = now or datetime.now(timezone.utc)
        currency = await self.resolve_currency(currency_code, now)
        summary = self._engine.summarize(points, currency)

        record = CalculationRecord(
            source_id=source_id,
            device_id=device_id,
            currency_code=currency.code,
            current_level=summary.current_level,
            target_level=summary.next_milestone,
            points_needed=summary.points_to_milestone,
            amount_calculated=summary.money_to_milestone,
            user_points=points,
            timestamp=now,
        )
        try:
            await self._store.record_calculation(record)
        except PersistenceError:
            logger.warning(
                "calculation_audit_failed",
                source_id=source_id,
                currency_code=currency.code,
                exc_info=True,
            )

        logger.info(
            "calculation_completed",
            source_id=source_id,
            currency_code=currency.code,
            points=points,
            level=summary.current_level,
            cost_per_point=str(currency.cost_per_point),
        )
        return summary

    async def level_breakdown(
        self,
        currency_code: str,
        points: int | None = None,
        now: datetime | None = None,
    ) -> tuple[Currency, list[LevelBreakdown]]:
        currency = await self.resolve_currency(currency_code, now)
        return currency, self._engine.level_breakdown(currency.cost_per_point, points)

    async def submit_price(
        self,
        source_id: str,
        currency_code: str,
        price_per_1000: Decimal,
        device_id: str | None = None,
        now: datetime | None = None,
    ) -> UpsertResult:
        """Record a coin price through the daily upsert rule."""
        currency = get_currency(currency_code)
        return await self._upserter.submit_price(
            source_id=source_id,
            currency_code=currency.code,
            price_per_1000=price_per_1000,
            now=now,
            device_id=device_id,
        )

    async def price_history(self, currency_code: str) -> PriceHistory:
        """OHLC candles and cumulative-mean series for a currency, with trends."""
        currency = get_currency(currency_code)
        submissions = await self._store.get_submissions(currency.code)
        candles = aggregate_daily(submissions, self._tz)
        cumulative = aggregate_cumulative_mean(submissions, self._tz)
        return PriceHistory(
            currency_code=currency.code,
            candles=candles,
            trend=compute_trend(candles),
            cumulative=cumulative,
            cumulative_trend=cumulative_trend(cumulative),
        )

    async def source_statistics(self, currency_code: str) -> list[SourceStatistics]:
        currency = get_currency(currency_code)
        return await self._store.get_source_statistics(currency.code)

    async def calculation_history(
        self,
        source_id: str,
        currency_code: str,
    ) -> list[CalculationRecord]:
        currency = get_currency(currency_code)
        return await self._store.get_calculation_history(
            source_id, currency.code, limit=self._history_limit
        )
