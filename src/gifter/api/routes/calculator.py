"""Tier calculator endpoints: calculate, levels table, currencies, and visitor history."""

from __future__ import annotations

import re
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from gifter.api.serialize import breakdown_to_dict, currency_to_dict, summary_to_dict, to_json
from gifter.currency import CURRENCIES
from gifter.exceptions import InvalidInputError
from gifter.logging import request_context

router = APIRouter()

#: Plain digits, or digits grouped in threes by "." "," or spaces ("37.918", "1,250").
_POINTS_PATTERN = re.compile(r"\d+|\d{1,3}(?:([.,\s])\d{3})(?:\1\d{3})*")
_SEPARATORS = re.compile(r"[.,\s]")


def optional_text(body: dict[str, Any], field: str) -> str | None:
    """A free-form string field from a JSON body; None when absent or blank."""
    value = body.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be a string, got {type(value).__name__}")
    return value.strip() or None


def client_source(request: Request, body: dict[str, Any] | None = None) -> str:
    """Dedup key of the caller: its originating network address.

    A body source_id is honored only when the app trusts callers to name
    themselves (API_TRUST_SOURCE_ID); otherwise it is ignored.
    """
    if body and request.app.state.trust_source_id:
        explicit = optional_text(body, "source_id")
        if explicit:
            return explicit
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and forwarded.split(",")[0].strip():
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


def parse_points(value: Any) -> int:
    """Accept an int, or a string with thousands separators ("37.918" -> 37918).

    Signs, decimals ("12.5") and anything else non-numeric are rejected.
    """
    if isinstance(value, bool):
        raise InvalidInputError("points must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _POINTS_PATTERN.fullmatch(text):
            return int(_SEPARATORS.sub("", text))
    raise InvalidInputError(f"Invalid points value: {value!r}")


@router.post("/calculate")
async def calculate(request: Request) -> JSONResponse:
    """Tier summary for a balance; also appends the calculation to the audit history.

    Expects JSON body with: points, currency_code, and optional device_id / source_id.
    """
    try:
        body = await request.json()
    except Exception:
        return JSONResponse(content={"error": "Invalid JSON body"}, status_code=400)

    if not isinstance(body, dict) or "points" not in body:
        return JSONResponse(content={"error": "Missing required field: points"}, status_code=400)

    source_id = client_source(request, body)
    currency_code = body.get("currency_code") or request.app.state.default_currency
    with request_context(source_id=source_id, currency_code=currency_code):
        summary = await request.app.state.service.calculate(
            points=parse_points(body["points"]),
            currency_code=currency_code,
            source_id=source_id,
            device_id=optional_text(body, "device_id"),
        )
    return JSONResponse(content=summary_to_dict(summary))


@router.get("/levels")
async def get_levels(
    request: Request,
    currency: str | None = None,
    points: str | None = None,
) -> JSONResponse:
    """Full levels table priced in a currency, with the user's standing when points is given."""
    service = request.app.state.service
    parsed = parse_points(points) if points is not None else None
    effective, rows = await service.level_breakdown(
        currency or request.app.state.default_currency, parsed
    )
    return JSONResponse(content={
        "currency": currency_to_dict(effective),
        "current_level": service.engine.tier_of(parsed) if parsed is not None else None,
        "levels": [breakdown_to_dict(row) for row in rows],
    })


@router.get("/currencies")
async def get_currencies(request: Request) -> JSONResponse:
    """Registered currencies with their effective cost per point for today."""
    service = request.app.state.service
    result = []
    for currency in CURRENCIES:
        effective = await service.resolve_currency(currency.code)
        entry = currency_to_dict(effective)
        entry["default_cost_per_point"] = str(currency.cost_per_point)
        result.append(entry)
    return JSONResponse(content=result)


@router.get("/sources/{currency_code}")
async def get_source_statistics(request: Request, currency_code: str) -> JSONResponse:
    """Per-source calculation totals for a currency, most recently active first."""
    stats = await request.app.state.service.source_statistics(currency_code)
    return JSONResponse(content=to_json(stats))


@router.get("/sources/{currency_code}/{source_id}/history")
async def get_source_history(
    request: Request,
    currency_code: str,
    source_id: str,
) -> JSONResponse:
    """A source's most recent calculations for a currency."""
    records = await request.app.state.service.calculation_history(source_id, currency_code)
    return JSONResponse(content=to_json(records))
