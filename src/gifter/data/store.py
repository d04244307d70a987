"""Typed SQLite read/write abstraction for coin prices and calculation history.

Provides GifterStore, which implements the submission repository used by the
daily upsert rule and the append-only calculation audit sink. All SQL is
isolated behind this interface.

CRITICAL: All monetary values stored as TEXT in SQLite, restored as Decimal on read.
Timestamps are stored as UTC ISO-8601 strings with microseconds so that string
comparison matches chronological order.
"""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import aiosqlite

from gifter.data.database import GifterDatabase
from gifter.exceptions import PersistenceError
from gifter.logging import get_logger
from gifter.models import CalculationRecord, PriceSubmission, SourceStatistics

logger = get_logger(__name__)

_SUBMISSION_COLUMNS = (
    "id, source_id, device_id, currency_code, price_per_1000, created_at"
)
_CALCULATION_COLUMNS = (
    "source_id, device_id, currency_code, current_level, target_level, "
    "points_needed, amount_calculated, user_points, created_at"
)


def _to_db_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


def _row_to_submission(row: tuple) -> PriceSubmission:
    return PriceSubmission(
        id=row[0],
        source_id=row[1],
        device_id=row[2],
        currency_code=row[3],
        price_per_1000=Decimal(row[4]),
        submitted_at=_from_db_time(row[5]),
    )


def _row_to_calculation(row: tuple) -> CalculationRecord:
    return CalculationRecord(
        source_id=row[0],
        device_id=row[1],
        currency_code=row[2],
        current_level=row[3],
        target_level=row[4],
        points_needed=row[5],
        amount_calculated=Decimal(row[6]),
        user_points=row[7],
        timestamp=_from_db_time(row[8]),
    )


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    """Re-raise sqlite failures as PersistenceError."""
    try:
        yield
    except aiosqlite.Error as exc:
        logger.error("storage_operation_failed", operation=operation, error=str(exc))
        raise PersistenceError(f"{operation} failed: {exc}") from exc


class GifterStore:
    """Async SQLite store for price submissions and calculation records.

    Wraps GifterDatabase with typed read/write methods. All SQL access
    goes through self._database.db (the aiosqlite Connection).

    Usage:
        async with GifterDatabase("data/gifter.db") as database:
            store = GifterStore(database)
            prices = await store.get_submissions("BRL")
    """

    def __init__(self, database: GifterDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Transactions
    # ──────────────────────────────────────────────

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the enclosed statements as one write transaction.

        Coroutines sharing the connection queue on the database write lock;
        BEGIN IMMEDIATE then takes the SQLite write lock against other
        processes, so a lookup followed by a write cannot interleave with
        another writer. Any failure rolls back.
        """
        db = self._database.db
        async with self._database.write_lock:
            with _storage_errors("begin_transaction"):
                await db.execute("BEGIN IMMEDIATE")
            try:
                yield
            except BaseException:
                await db.rollback()
                raise
            with _storage_errors("commit_transaction"):
                try:
                    await db.commit()
                except aiosqlite.Error:
                    await db.rollback()
                    raise

    # ──────────────────────────────────────────────
    # Price submissions
    # ──────────────────────────────────────────────

    async def find_submission(
        self,
        source_id: str,
        currency_code: str,
        start: datetime,
        end: datetime,
    ) -> PriceSubmission | None:
        """Find a source's submission for a currency within [start, end)."""
        with _storage_errors("find_submission"):
            cursor = await self._database.db.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM coin_price_history "
                "WHERE source_id = ? AND currency_code = ? "
                "AND created_at >= ? AND created_at < ? "
                "ORDER BY created_at ASC LIMIT 1",
                (source_id, currency_code, _to_db_time(start), _to_db_time(end)),
            )
            row = await cursor.fetchone()
        return _row_to_submission(row) if row is not None else None

    async def insert_submission(self, submission: PriceSubmission, day: date) -> PriceSubmission:
        """Insert a new submission row. Does not commit; call inside transaction()."""
        with _storage_errors("insert_submission"):
            cursor = await self._database.db.execute(
                "INSERT INTO coin_price_history "
                "(source_id, device_id, currency_code, price_per_1000, day, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    submission.source_id,
                    submission.device_id,
                    submission.currency_code,
                    str(submission.price_per_1000),
                    day.isoformat(),
                    _to_db_time(submission.submitted_at),
                ),
            )
        logger.debug(
            "price_submission_inserted",
            id=cursor.lastrowid,
            source_id=submission.source_id,
            currency_code=submission.currency_code,
        )
        return replace(submission, id=cursor.lastrowid)

    async def update_submission(
        self,
        submission_id: int,
        price_per_1000: Decimal,
        device_id: str | None,
    ) -> PriceSubmission:
        """Correct a submission's price (and device tag) in place.

        Does not commit; call inside transaction().
        """
        now = _to_db_time(datetime.now(timezone.utc))
        with _storage_errors("update_submission"):
            cursor = await self._database.db.execute(
                "UPDATE coin_price_history "
                "SET price_per_1000 = ?, device_id = COALESCE(?, device_id), updated_at = ? "
                "WHERE id = ?",
                (str(price_per_1000), device_id, now, submission_id),
            )
            if cursor.rowcount == 0:
                raise PersistenceError(f"Submission {submission_id} disappeared during update")
            cursor = await self._database.db.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM coin_price_history WHERE id = ?",
                (submission_id,),
            )
            row = await cursor.fetchone()
        logger.debug("price_submission_updated", id=submission_id)
        return _row_to_submission(row)

    async def get_submissions(
        self,
        currency_code: str,
        since: datetime | None = None,
    ) -> list[PriceSubmission]:
        """All submissions for a currency ordered by submission time ASC."""
        conditions = ["currency_code = ?"]
        params: list = [currency_code]

        if since is not None:
            conditions.append("created_at >= ?")
            params.append(_to_db_time(since))

        where = " AND ".join(conditions)
        with _storage_errors("get_submissions"):
            cursor = await self._database.db.execute(
                f"SELECT {_SUBMISSION_COLUMNS} FROM coin_price_history "
                f"WHERE {where} ORDER BY created_at ASC, id ASC",
                params,
            )
            rows = await cursor.fetchall()
        return [_row_to_submission(row) for row in rows]

    async def get_latest_price(self, currency_code: str, since: datetime) -> Decimal | None:
        """Most recently written price for a currency at or after ``since``.

        Corrections count as writes: an updated row is as recent as its update.
        """
        with _storage_errors("get_latest_price"):
            cursor = await self._database.db.execute(
                "SELECT price_per_1000 FROM coin_price_history "
                "WHERE currency_code = ? AND created_at >= ? "
                "ORDER BY COALESCE(updated_at, created_at) DESC, id DESC LIMIT 1",
                (currency_code, _to_db_time(since)),
            )
            row = await cursor.fetchone()
        return Decimal(row[0]) if row is not None else None

    # ──────────────────────────────────────────────
    # Calculation history
    # ──────────────────────────────────────────────

    async def record_calculation(self, record: CalculationRecord) -> int:
        """Append a calculation audit record. Returns its row id."""
        async with self._database.write_lock:
            with _storage_errors("record_calculation"):
                cursor = await self._database.db.execute(
                    f"INSERT INTO calculation_history ({_CALCULATION_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.source_id,
                        record.device_id,
                        record.currency_code,
                        record.current_level,
                        record.target_level,
                        record.points_needed,
                        str(record.amount_calculated),
                        record.user_points,
                        _to_db_time(record.timestamp),
                    ),
                )
                await self._database.db.commit()
        logger.debug(
            "calculation_recorded",
            id=cursor.lastrowid,
            source_id=record.source_id,
            current_level=record.current_level,
        )
        return cursor.lastrowid or 0

    async def get_calculation_history(
        self,
        source_id: str,
        currency_code: str,
        limit: int = 10,
    ) -> list[CalculationRecord]:
        """A source's most recent calculations for a currency, newest first."""
        with _storage_errors("get_calculation_history"):
            cursor = await self._database.db.execute(
                f"SELECT {_CALCULATION_COLUMNS} FROM calculation_history "
                "WHERE source_id = ? AND currency_code = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (source_id, currency_code, limit),
            )
            rows = await cursor.fetchall()
        return [_row_to_calculation(row) for row in rows]

    async def get_source_statistics(self, currency_code: str) -> list[SourceStatistics]:
        """Per-source calculation totals for a currency, most recently active first.

        Amounts are summed in Python to keep Decimal precision (SQLite SUM on
        TEXT would go through float).
        """
        with _storage_errors("get_source_statistics"):
            cursor = await self._database.db.execute(
                "SELECT source_id, device_id, amount_calculated, created_at "
                "FROM calculation_history WHERE currency_code = ? "
                "ORDER BY created_at ASC, id ASC",
                (currency_code,),
            )
            rows = await cursor.fetchall()

        stats: dict[str, SourceStatistics] = {}
        for source_id, device_id, amount, created_at in rows:
            timestamp = _from_db_time(created_at)
            entry = stats.get(source_id)
            if entry is None:
                entry = SourceStatistics(
                    source_id=source_id,
                    currency_code=currency_code,
                    total_calculations=0,
                    total_amount=Decimal("0"),
                    first_calculation=timestamp,
                    last_calculation=timestamp,
                )
                stats[source_id] = entry
            entry.total_calculations += 1
            entry.total_amount += Decimal(amount)
            entry.last_calculation = timestamp
            if device_id and device_id not in entry.device_ids:
                entry.device_ids.append(device_id)

        return sorted(stats.values(), key=lambda s: s.last_calculation, reverse=True)
