"""Currency registry and effective cost-per-point derivation.

Each currency carries a fixed default cost per point. At calculation time the
latest community-submitted coin price (per 1000 coins) overrides it; that
override is a new Currency value, never a mutation of the registry entry.
"""

from dataclasses import replace
from decimal import Decimal

from gifter.exceptions import InvalidInputError, UnknownCurrencyError
from gifter.models import Currency

#: Coins per quoted price unit. Prices are submitted per 1000 coins.
COINS_PER_QUOTE = Decimal("1000")

CURRENCIES: tuple[Currency, ...] = (
    Currency("BRL", "R$", "Brazilian Real", Decimal("0.05845")),
    Currency("USD", "$", "US Dollar", Decimal("0.01")),
    Currency("EUR", "€", "Euro", Decimal("0.0095")),
    Currency("GBP", "£", "Pound Sterling", Decimal("0.008")),
    Currency("ARS", "$", "Argentine Peso", Decimal("10.5")),
)

_BY_CODE: dict[str, Currency] = {c.code: c for c in CURRENCIES}


def get_currency(code: str) -> Currency:
    """Look up a currency by its code (case-insensitive).

    Raises:
        UnknownCurrencyError: If the code is not registered.
    """
    if not isinstance(code, str):
        raise UnknownCurrencyError(f"Unknown currency: {code!r}")
    currency = _BY_CODE.get(code.upper())
    if currency is None:
        raise UnknownCurrencyError(f"Unknown currency: {code}")
    return currency


def validate_rate(rate: Decimal, name: str = "cost_per_point") -> Decimal:
    """Ensure a monetary rate is a finite, strictly positive Decimal."""
    if not isinstance(rate, Decimal):
        raise InvalidInputError(f"{name} must be a Decimal, got {type(rate).__name__}")
    if not rate.is_finite() or rate <= 0:
        raise InvalidInputError(f"{name} must be finite and positive, got {rate}")
    return rate


def cost_per_point_from_price(price_per_1000: Decimal) -> Decimal:
    """Convert a coin price per 1000 coins into a cost per point."""
    validate_rate(price_per_1000, "price_per_1000")
    return price_per_1000 / COINS_PER_QUOTE


def with_rate(currency: Currency, rate: Decimal) -> Currency:
    """Return a copy of ``currency`` whose cost_per_point is ``rate``."""
    return replace(currency, cost_per_point=validate_rate(rate))


def effective_currency(currency: Currency, latest_price_per_1000: Decimal | None) -> Currency:
    """Currency priced from the latest daily coin price, or its default when none exists."""
    if latest_price_per_1000 is None:
        return currency
    return with_rate(currency, cost_per_point_from_price(latest_price_per_1000))
