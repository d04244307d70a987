"""Tests for request-scoped logging context."""

import structlog

from gifter.logging import request_context


class TestRequestContext:
    def test_fields_bound_inside_and_cleared_after(self) -> None:
        with request_context(source_id="203.0.113.9", currency_code="BRL"):
            assert structlog.contextvars.get_contextvars() == {
                "source_id": "203.0.113.9",
                "currency_code": "BRL",
            }
        assert "source_id" not in structlog.contextvars.get_contextvars()

    def test_none_values_are_skipped(self) -> None:
        with request_context(source_id="s", device_id=None):
            assert "device_id" not in structlog.contextvars.get_contextvars()
