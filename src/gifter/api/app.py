"""FastAPI application factory for the calculator and coin price API."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gifter.api.routes import calculator, prices
from gifter.exceptions import InvalidInputError, PersistenceError

log = structlog.get_logger(__name__)


async def _invalid_input_handler(request: Request, exc: Exception) -> JSONResponse:
    """User-correctable input: 400 with the validation message."""
    return JSONResponse(content={"error": str(exc)}, status_code=400)


async def _persistence_handler(request: Request, exc: Exception) -> JSONResponse:
    """Storage failure: 503 so callers know a retry may succeed."""
    log.error("request_storage_failure", path=request.url.path, error=str(exc))
    return JSONResponse(
        content={"error": "Storage temporarily unavailable", "retryable": True},
        status_code=503,
    )


def create_app(
    service: Any = None,
    lifespan: Any = None,
    default_currency: str = "BRL",
    trust_source_id: bool = False,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: CalculatorService used by route handlers. May be set later on
                 app.state.service (main.py does this inside the lifespan).
        lifespan: Optional async context manager for application lifespan events.
        default_currency: Currency used when a request does not name one.
        trust_source_id: Honor a caller-supplied source_id in request bodies.
                         Leave off unless every caller is a trusted client,
                         since the id is the daily dedup key.

    Returns:
        Configured FastAPI application with error handlers and routes.
    """
    app = FastAPI(
        title="Gifter Calculator API",
        lifespan=lifespan,
    )

    app.state.service = service
    app.state.default_currency = default_currency
    app.state.trust_source_id = trust_source_id

    app.add_exception_handler(InvalidInputError, _invalid_input_handler)
    app.add_exception_handler(PersistenceError, _persistence_handler)

    app.include_router(calculator.router, prefix="/api")
    app.include_router(prices.router, prefix="/api")

    return app
