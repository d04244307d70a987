"""Tests for the currency registry and effective cost-per-point derivation."""

from decimal import Decimal

import pytest

from gifter.currency import (
    CURRENCIES,
    cost_per_point_from_price,
    effective_currency,
    get_currency,
    with_rate,
)
from gifter.exceptions import InvalidInputError, UnknownCurrencyError


class TestRegistry:
    def test_codes_are_unique(self) -> None:
        codes = [c.code for c in CURRENCIES]
        assert len(codes) == len(set(codes))

    def test_all_default_rates_positive(self) -> None:
        assert all(c.cost_per_point > 0 for c in CURRENCIES)

    def test_lookup_is_case_insensitive(self) -> None:
        assert get_currency("brl").code == "BRL"

    def test_unknown_currency(self) -> None:
        with pytest.raises(UnknownCurrencyError):
            get_currency("XYZ")

    @pytest.mark.parametrize("code", [5, None, ["BRL"]])
    def test_non_string_code_is_unknown(self, code) -> None:
        with pytest.raises(UnknownCurrencyError):
            get_currency(code)

    def test_unknown_currency_is_input_error(self) -> None:
        """Callers can treat unknown codes like any other user-correctable input."""
        with pytest.raises(InvalidInputError):
            get_currency("JPY")


class TestEffectiveRate:
    def test_price_per_1000_to_cost_per_point(self) -> None:
        assert cost_per_point_from_price(Decimal("58.45")) == Decimal("0.05845")

    def test_with_rate_returns_new_currency(self) -> None:
        brl = get_currency("BRL")
        repriced = with_rate(brl, Decimal("0.06"))

        assert repriced.cost_per_point == Decimal("0.06")
        assert repriced.code == "BRL"
        assert brl.cost_per_point == Decimal("0.05845")  # registry untouched

    def test_effective_currency_uses_latest_price(self) -> None:
        usd = get_currency("USD")
        assert effective_currency(usd, Decimal("12.50")).cost_per_point == Decimal("0.0125")

    def test_effective_currency_falls_back_to_default(self) -> None:
        usd = get_currency("USD")
        assert effective_currency(usd, None) is usd

    @pytest.mark.parametrize("price", [Decimal("0"), Decimal("-1"), Decimal("NaN")])
    def test_invalid_price_rejected(self, price: Decimal) -> None:
        with pytest.raises(InvalidInputError):
            cost_per_point_from_price(price)
