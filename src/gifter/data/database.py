"""SQLite schema and connection lifecycle for coin prices and calculation history.

One aiosqlite connection per process, in WAL mode so chart reads do not block
price writes. Coroutines sharing that connection take write_lock in turn;
against other processes, a writer that finds the file locked waits up to
``busy_timeout_ms`` before the statement fails with a PersistenceError.
"""

import asyncio
from pathlib import Path
from typing import Self

import aiosqlite

from gifter.exceptions import PersistenceError
from gifter.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

-- One effective price per (source_id, currency_code, day); corrections update in place.
CREATE TABLE IF NOT EXISTS coin_price_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id TEXT NOT NULL,
    device_id TEXT,
    currency_code TEXT NOT NULL,
    price_per_1000 TEXT NOT NULL,
    day TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

-- Append-only audit of completed calculations.
CREATE TABLE IF NOT EXISTS calculation_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    source_id TEXT NOT NULL,
    device_id TEXT,
    currency_code TEXT NOT NULL,
    current_level INTEGER NOT NULL,
    target_level INTEGER NOT NULL,
    points_needed INTEGER NOT NULL,
    amount_calculated TEXT NOT NULL,
    user_points INTEGER NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_price_source_day
    ON coin_price_history(source_id, currency_code, day);

CREATE INDEX IF NOT EXISTS idx_price_currency_ts
    ON coin_price_history(currency_code, created_at);

CREATE INDEX IF NOT EXISTS idx_calc_source_currency_ts
    ON calculation_history(source_id, currency_code, created_at);
"""


class GifterDatabase:
    """Owns the aiosqlite connection and the schema.

    Usage:
        async with GifterDatabase("data/gifter.db") as database:
            store = GifterStore(database)
    """

    def __init__(self, db_path: str = "data/gifter.db", busy_timeout_ms: int = 5000) -> None:
        self._db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def write_lock(self) -> asyncio.Lock:
        """Serializes writes on the shared connection.

        All coroutines share one connection, so only one may hold an open
        transaction (or commit) at a time.
        """
        return self._write_lock

    @property
    def db(self) -> aiosqlite.Connection:
        """The open connection. Raises RuntimeError before connect()."""
        if self._connection is None:
            raise RuntimeError(f"GifterDatabase({self._db_path!r}) is not connected")
        return self._connection

    async def connect(self) -> None:
        """Open the file (creating its directory), set pragmas, and apply the schema.

        Raises:
            PersistenceError: The file cannot be opened, or it was written by a
                newer schema than this code understands.
        """
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            connection = await aiosqlite.connect(self._db_path)
            self._connection = connection
            await connection.execute("PRAGMA journal_mode=WAL")
            await connection.execute("PRAGMA synchronous=NORMAL")
            await connection.execute(f"PRAGMA busy_timeout={int(self._busy_timeout_ms)}")
            await connection.executescript(_SCHEMA_SQL)
            version = await self._stored_schema_version(connection)
        except aiosqlite.Error as exc:
            await self.close()
            raise PersistenceError(f"Cannot open database {self._db_path}: {exc}") from exc

        if version > SCHEMA_VERSION:
            await self.close()
            raise PersistenceError(
                f"Database {self._db_path} has schema v{version}, "
                f"this build understands up to v{SCHEMA_VERSION}"
            )

        logger.info("gifter_db_connected", db_path=self._db_path, schema_version=version)

    async def _stored_schema_version(self, connection: aiosqlite.Connection) -> int:
        """Read the schema version, stamping the current one on a fresh file."""
        cursor = await connection.execute("SELECT MAX(version) FROM schema_version")
        (version,) = await cursor.fetchone()
        if version is None:
            await connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
            )
            await connection.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)
            return SCHEMA_VERSION
        return version

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("gifter_db_closed", db_path=self._db_path)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
