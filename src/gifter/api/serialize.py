"""JSON-ready dict conversion for API responses. Decimals are rendered as strings."""

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from gifter.models import Currency, LevelBreakdown, PriceSubmission, TierSummary, Trend


def to_json(obj: Any) -> Any:
    """Recursively convert Decimal, dates, enums and dataclasses to JSON-safe values."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return to_json(asdict(obj))
    if isinstance(obj, dict):
        return {k: to_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json(item) for item in obj]
    return obj


def currency_to_dict(currency: Currency) -> dict[str, Any]:
    return {
        "code": currency.code,
        "symbol": currency.symbol,
        "name": currency.name,
        "cost_per_point": str(currency.cost_per_point),
    }


def summary_to_dict(summary: TierSummary) -> dict[str, Any]:
    data = to_json(summary)
    data["currency"] = currency_to_dict(summary.currency)
    return data


def breakdown_to_dict(row: LevelBreakdown) -> dict[str, Any]:
    return {
        "level": row.tier.level,
        "start": row.tier.start,
        "end": row.tier.end,
        "tier_points": row.tier_points,
        "tier_cost": str(row.tier_cost),
        "status": row.status.value if row.status is not None else None,
        "points_held": row.points_held,
        "money_spent": str(row.money_spent),
        "points_missing": row.points_missing,
        "money_missing": str(row.money_missing),
    }


def submission_to_dict(submission: PriceSubmission) -> dict[str, Any]:
    return to_json(submission)


def trend_to_dict(trend: Trend | None) -> dict[str, Any] | None:
    if trend is None:
        return None
    return {"direction": trend.direction.value, "percent_change": str(trend.percent_change)}
