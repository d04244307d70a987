"""Shared test fixtures for the gifter calculator."""

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

from gifter.config import AppSettings, PriceSettings, StorageSettings, TierSettings
from gifter.data.database import GifterDatabase
from gifter.data.store import GifterStore
from gifter.models import PriceSubmission
from gifter.tiers.engine import TierProgressionEngine
from gifter.tiers.table import TierTable


@pytest.fixture
def mock_settings(tmp_path: Path) -> AppSettings:
    """Return AppSettings with test defaults (temp database, UTC days)."""
    return AppSettings(
        log_level="DEBUG",
        storage=StorageSettings(db_path=str(tmp_path / "gifter.db")),
        tiers=TierSettings(),
        prices=PriceSettings(timezone="UTC", default_currency="BRL"),
    )


@pytest.fixture
def table() -> TierTable:
    """The built-in DEFAULT_TIERS snapshot."""
    return TierTable.default()


@pytest.fixture
def engine(table: TierTable) -> TierProgressionEngine:
    """Engine over the default table with a milestone every 5 levels."""
    return TierProgressionEngine(table, milestone_step=5)


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[GifterDatabase]:
    """Connected GifterDatabase on a temp file."""
    async with GifterDatabase(str(tmp_path / "test.db")) as db:
        yield db


@pytest_asyncio.fixture
async def store(database: GifterDatabase) -> GifterStore:
    """GifterStore over the temp database."""
    return GifterStore(database)


def _make_submission(
    submitted_at: datetime,
    price: str,
    source_id: str = "198.51.100.7",
    currency_code: str = "BRL",
) -> PriceSubmission:
    """PriceSubmission with a Decimal price; naive datetimes get UTC."""
    if submitted_at.tzinfo is None:
        submitted_at = submitted_at.replace(tzinfo=timezone.utc)
    return PriceSubmission(
        source_id=source_id,
        currency_code=currency_code,
        price_per_1000=Decimal(price),
        submitted_at=submitted_at,
    )


@pytest.fixture
def make_submission():
    """Factory fixture: make_submission(submitted_at, "10.5", source_id=..., currency_code=...)."""
    return _make_submission
