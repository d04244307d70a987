"""Coin price endpoints: daily submission, today's price, candles, and cumulative mean."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gifter.api.routes.calculator import client_source, optional_text
from gifter.api.serialize import submission_to_dict, to_json, trend_to_dict
from gifter.logging import get_logger, request_context

log = get_logger(__name__)

router = APIRouter()


@router.post("/prices")
async def submit_price(request: Request) -> JSONResponse:
    """Record today's coin price for the calling source.

    Expects JSON body with: price_per_1000, currency_code, and optional device_id.
    A second submission from the same source on the same day updates the first.
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)

    if not isinstance(body, dict) or body.get("price_per_1000") in (None, ""):
        return JSONResponse(
            content={"error": "Missing required field: price_per_1000"}, status_code=400
        )

    try:
        price = Decimal(str(body["price_per_1000"]))
    except InvalidOperation:
        log.warning("price_submission_rejected", value=str(body["price_per_1000"]))
        return JSONResponse(
            content={"error": f"Invalid price: {body['price_per_1000']!r}"}, status_code=400
        )

    source_id = client_source(request, body)
    currency_code = body.get("currency_code") or request.app.state.default_currency
    with request_context(source_id=source_id, currency_code=currency_code):
        result = await request.app.state.service.submit_price(
            source_id=source_id,
            currency_code=currency_code,
            price_per_1000=price,
            device_id=optional_text(body, "device_id"),
        )

    return JSONResponse(content={
        "success": True,
        "updated": result.updated,
        "data": submission_to_dict(result.submission),
    })


@router.get("/prices/{currency_code}/today")
async def get_today_price(request: Request, currency_code: str) -> JSONResponse:
    """Latest price submitted today for a currency, or null."""
    price = await request.app.state.service.today_price(currency_code)
    return JSONResponse(content={
        "currency_code": currency_code.upper(),
        "price_per_1000": str(price) if price is not None else None,
    })


@router.get("/prices/{currency_code}/candles")
async def get_candles(request: Request, currency_code: str) -> JSONResponse:
    """Daily OHLC candles with the close-to-close trend."""
    history = await request.app.state.service.price_history(currency_code)
    return JSONResponse(content={
        "currency_code": history.currency_code,
        "candles": to_json(history.candles),
        "trend": trend_to_dict(history.trend),
    })


@router.get("/prices/{currency_code}/cumulative")
async def get_cumulative(request: Request, currency_code: str) -> JSONResponse:
    """Cumulative running mean of daily mean prices with its trend."""
    history = await request.app.state.service.price_history(currency_code)
    return JSONResponse(content={
        "currency_code": history.currency_code,
        "points": to_json(history.cumulative),
        "trend": trend_to_dict(history.cumulative_trend),
    })
