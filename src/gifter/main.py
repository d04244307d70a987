"""Entry point for the gifter calculator API.

Wires all components together and serves the FastAPI app with uvicorn.
The database connection lives inside FastAPI's lifespan context manager so it
opens and closes on the server's event loop.

Component wiring order:
1. AppSettings (configuration)
2. Logging setup
3. TierTable (validated; a malformed table aborts startup)
4. TierProgressionEngine
5. GifterDatabase + GifterStore (opened in the lifespan)
6. CalculatorService
"""

import asyncio
from contextlib import asynccontextmanager
from zoneinfo import ZoneInfo

import uvicorn
from fastapi import FastAPI

from gifter.api.app import create_app
from gifter.config import AppSettings
from gifter.data.database import GifterDatabase
from gifter.data.store import GifterStore
from gifter.logging import get_logger, setup_logging
from gifter.service import CalculatorService
from gifter.tiers.engine import TierProgressionEngine
from gifter.tiers.table import load_tier_table


def build_engine(settings: AppSettings) -> TierProgressionEngine:
    """Load and validate the tier table, then build the engine over it.

    Raises:
        TierTableError: If the configured table is malformed.
    """
    table = load_tier_table(settings.tiers.table_path)
    return TierProgressionEngine(table, milestone_step=settings.tiers.milestone_step)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the database, build the service, and close everything on shutdown."""
    logger = get_logger("gifter.main")
    settings: AppSettings = app.state.settings

    async with GifterDatabase(
        settings.storage.db_path, busy_timeout_ms=settings.storage.busy_timeout_ms
    ) as database:
        app.state.service = CalculatorService(
            engine=app.state.engine,
            store=GifterStore(database),
            tz=ZoneInfo(settings.prices.timezone),
            history_limit=settings.prices.history_limit,
        )
        logger.info("lifespan_started", db_path=settings.storage.db_path)
        yield

    logger.info("gifter_stopped")


async def run() -> None:
    """Run the API server."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("gifter.main")

    # 3-4. Validate the tier table before accepting any request
    engine = build_engine(settings)

    app = create_app(
        lifespan=lifespan,
        default_currency=settings.prices.default_currency,
        trust_source_id=settings.api.trust_source_id,
    )
    app.state.settings = settings
    app.state.engine = engine

    logger.info(
        "starting_api",
        host=settings.api.host,
        port=settings.api.port,
        max_level=engine.max_level,
        timezone=settings.prices.timezone,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
