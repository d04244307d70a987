"""Daily upsert rule: one effective price per source, per currency, per calendar day.

A second submission from the same source on the same day corrects the first
one in place instead of adding a row. Distinct sources each keep their own row,
so the aggregation still combines them into that day's high/low/close.

The lookup and the write run inside one repository transaction; the store
backs this with a unique (source_id, currency_code, day) index so concurrent
retries from the same source cannot produce a duplicate row.
"""

from contextlib import AbstractAsyncContextManager
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from decimal import Decimal
from typing import Protocol

from gifter.currency import validate_rate
from gifter.exceptions import InvalidInputError
from gifter.logging import get_logger
from gifter.models import PriceSubmission, UpsertOutcome, UpsertResult
from gifter.prices.aggregation import calendar_day

logger = get_logger(__name__)


class SubmissionRepository(Protocol):
    """Persistence primitives the upsert rule depends on."""

    def transaction(self) -> AbstractAsyncContextManager[None]: ...

    async def find_submission(
        self,
        source_id: str,
        currency_code: str,
        start: datetime,
        end: datetime,
    ) -> PriceSubmission | None: ...

    async def insert_submission(self, submission: PriceSubmission, day: date) -> PriceSubmission: ...

    async def update_submission(
        self,
        submission_id: int,
        price_per_1000: Decimal,
        device_id: str | None,
    ) -> PriceSubmission: ...


def day_bounds(now: datetime, tz: tzinfo = timezone.utc) -> tuple[datetime, datetime]:
    """Half-open [start_of_day, end_of_day) window containing ``now`` in ``tz``."""
    day = calendar_day(now, tz)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


class DailyPriceUpserter:
    """Decides insert-vs-update for price submissions.

    Args:
        repository: Storage collaborator providing lookup, insert, update and
            a transaction scope.
        tz: Canonical time zone for calendar-day boundaries.
    """

    def __init__(self, repository: SubmissionRepository, tz: tzinfo = timezone.utc) -> None:
        self._repository = repository
        self._tz = tz

    async def submit_price(
        self,
        source_id: str,
        currency_code: str,
        price_per_1000: Decimal,
        now: datetime | None = None,
        device_id: str | None = None,
    ) -> UpsertResult:
        """Store a price, updating the source's existing row for today if there is one.

        Raises:
            InvalidInputError: Empty source/currency or a non-positive price.
            PersistenceError: The store failed; nothing was written.
        """
        if not source_id or not source_id.strip():
            raise InvalidInputError("source_id is required")
        if not currency_code or not currency_code.strip():
            raise InvalidInputError("currency_code is required")
        validate_rate(price_per_1000, "price_per_1000")

        currency_code = currency_code.upper()
        now = now or datetime.now(timezone.utc)
        start, end = day_bounds(now, self._tz)

        async with self._repository.transaction():
            existing = await self._repository.find_submission(
                source_id, currency_code, start, end
            )
            if existing is not None and existing.id is not None:
                stored = await self._repository.update_submission(
                    existing.id, price_per_1000, device_id
                )
                outcome = UpsertOutcome.UPDATED
            else:
                stored = await self._repository.insert_submission(
                    PriceSubmission(
                        source_id=source_id,
                        currency_code=currency_code,
                        price_per_1000=price_per_1000,
                        submitted_at=now,
                        device_id=device_id,
                    ),
                    day=start.date(),
                )
                outcome = UpsertOutcome.INSERTED

        logger.info(
            "price_submission_saved",
            outcome=outcome.value,
            source_id=source_id,
            currency_code=currency_code,
            price_per_1000=str(price_per_1000),
            day=start.date().isoformat(),
        )
        return UpsertResult(outcome=outcome, submission=stored)
