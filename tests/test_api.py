"""HTTP API tests through FastAPI's TestClient with the real lifespan and a temp database."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from gifter.api.app import create_app
from gifter.api.routes.calculator import parse_points
from gifter.config import AppSettings
from gifter.exceptions import InvalidInputError
from gifter.main import lifespan
from gifter.tiers.engine import TierProgressionEngine

CALLER = {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}


@pytest.fixture
def client(mock_settings: AppSettings, engine: TierProgressionEngine) -> Iterator[TestClient]:
    app = create_app(lifespan=lifespan, default_currency="BRL")
    app.state.settings = mock_settings
    app.state.engine = engine
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def trusted_client(mock_settings: AppSettings, engine: TierProgressionEngine) -> Iterator[TestClient]:
    app = create_app(lifespan=lifespan, default_currency="BRL", trust_source_id=True)
    app.state.settings = mock_settings
    app.state.engine = engine
    with TestClient(app) as test_client:
        yield test_client


class TestParsePoints:
    @pytest.mark.parametrize(("raw", "expected"), [(37918, 37918), ("37918", 37918), ("37.918", 37918), ("1,250", 1250)])
    def test_accepted_forms(self, raw, expected: int) -> None:
        assert parse_points(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", None, True, 12.5, "-5", "12.5", "-37918", "1.2345", "1,25"])
    def test_rejected_forms(self, raw) -> None:
        with pytest.raises(InvalidInputError):
            parse_points(raw)


class TestCalculate:
    def test_summary_for_balance(self, client: TestClient) -> None:
        resp = client.post("/api/calculate", json={"points": 37918, "currency_code": "BRL"}, headers=CALLER)

        assert resp.status_code == 200
        data = resp.json()
        assert data["current_level"] == 20
        assert data["points_to_next_tier"] == 1682
        assert data["progress_pct"] == "85.75"
        assert data["next_milestone"] == 25
        assert data["currency"]["code"] == "BRL"
        assert data["status"] == "In Progress"

    def test_calculation_is_audited_under_forwarded_address(self, client: TestClient) -> None:
        client.post("/api/calculate", json={"points": "37.918", "device_id": "phone"}, headers=CALLER)

        history = client.get("/api/sources/BRL/203.0.113.9/history").json()
        assert len(history) == 1
        assert history[0]["user_points"] == 37918
        assert history[0]["device_id"] == "phone"

        stats = client.get("/api/sources/BRL").json()
        assert stats[0]["source_id"] == "203.0.113.9"
        assert stats[0]["total_calculations"] == 1

    def test_body_source_id_ignored_by_default(self, client: TestClient) -> None:
        client.post("/api/calculate", json={"points": 10, "source_id": "kiosk-1"}, headers=CALLER)
        assert client.get("/api/sources/BRL/kiosk-1/history").json() == []
        assert len(client.get("/api/sources/BRL/203.0.113.9/history").json()) == 1

    def test_body_source_id_honored_when_trusted(self, trusted_client: TestClient) -> None:
        trusted_client.post("/api/calculate", json={"points": 10, "source_id": "kiosk-1"}, headers=CALLER)
        assert len(trusted_client.get("/api/sources/BRL/kiosk-1/history").json()) == 1

    @pytest.mark.parametrize("source_id", [{"a": 1}, ["kiosk-1"], 7])
    def test_non_string_source_id_rejected_when_trusted(self, trusted_client: TestClient, source_id) -> None:
        resp = trusted_client.post("/api/calculate", json={"points": 10, "source_id": source_id})
        assert resp.status_code == 400
        assert "source_id" in resp.json()["error"]

    @pytest.mark.parametrize("device_id", [{"a": 1}, ["phone"], 3])
    def test_non_string_device_id_rejected(self, client: TestClient, device_id) -> None:
        resp = client.post("/api/calculate", json={"points": 10, "device_id": device_id})
        assert resp.status_code == 400
        assert "device_id" in resp.json()["error"]
        assert client.get("/api/sources/BRL").json() == []

    def test_missing_points(self, client: TestClient) -> None:
        resp = client.post("/api/calculate", json={"currency_code": "BRL"})
        assert resp.status_code == 400
        assert "points" in resp.json()["error"]

    def test_invalid_json(self, client: TestClient) -> None:
        resp = client.post(
            "/api/calculate", content=b"{oops", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400

    def test_negative_points(self, client: TestClient) -> None:
        resp = client.post("/api/calculate", json={"points": -5})
        assert resp.status_code == 400

    @pytest.mark.parametrize("points", ["-37918", "-5", "12.5"])
    def test_signed_or_fractional_point_strings(self, client: TestClient, points: str) -> None:
        resp = client.post("/api/calculate", json={"points": points})
        assert resp.status_code == 400
        assert client.get("/api/sources/BRL").json() == []

    def test_unknown_currency(self, client: TestClient) -> None:
        resp = client.post("/api/calculate", json={"points": 5, "currency_code": "XYZ"})
        assert resp.status_code == 400
        assert "XYZ" in resp.json()["error"]

    @pytest.mark.parametrize("code", [5, ["BRL"], {"code": "BRL"}])
    def test_non_string_currency_code(self, client: TestClient, code) -> None:
        resp = client.post("/api/calculate", json={"points": 5, "currency_code": code})
        assert resp.status_code == 400
        assert "Unknown currency" in resp.json()["error"]


class TestLevels:
    def test_levels_with_points(self, client: TestClient) -> None:
        data = client.get("/api/levels", params={"currency": "USD", "points": "100"}).json()

        assert data["current_level"] == 6
        assert data["currency"]["code"] == "USD"
        assert len(data["levels"]) == 51
        assert data["levels"][6]["status"] == "current"
        assert data["levels"][5]["status"] == "complete"
        assert data["levels"][7]["status"] == "locked"

    def test_levels_without_points(self, client: TestClient) -> None:
        data = client.get("/api/levels").json()
        assert data["current_level"] is None
        assert data["levels"][0]["status"] is None

    def test_currencies(self, client: TestClient) -> None:
        data = client.get("/api/currencies").json()
        assert [c["code"] for c in data] == ["BRL", "USD", "EUR", "GBP", "ARS"]
        assert data[0]["cost_per_point"] == data[0]["default_cost_per_point"] == "0.05845"


class TestPrices:
    def test_second_submission_same_day_updates(self, client: TestClient) -> None:
        first = client.post("/api/prices", json={"price_per_1000": "58.45", "currency_code": "BRL"}, headers=CALLER)
        second = client.post("/api/prices", json={"price_per_1000": "60.00", "currency_code": "BRL"}, headers=CALLER)

        assert first.status_code == 200
        assert first.json()["updated"] is False
        assert second.json()["updated"] is True
        assert second.json()["data"]["id"] == first.json()["data"]["id"]
        assert second.json()["data"]["source_id"] == "203.0.113.9"

        today = client.get("/api/prices/brl/today").json()
        assert today == {"currency_code": "BRL", "price_per_1000": "60.00"}

    def test_submitted_price_drives_calculation(self, client: TestClient) -> None:
        client.post("/api/prices", json={"price_per_1000": "60.00"}, headers=CALLER)
        data = client.post("/api/calculate", json={"points": 37918}).json()
        assert data["currency"]["cost_per_point"] == "0.06"
        assert data["total_spent"] == "2275.08"

    def test_today_without_submissions(self, client: TestClient) -> None:
        assert client.get("/api/prices/USD/today").json()["price_per_1000"] is None

    def test_candles_and_cumulative(self, client: TestClient) -> None:
        client.post("/api/prices", json={"price_per_1000": "10"}, headers={"X-Forwarded-For": "198.51.100.1"})
        client.post("/api/prices", json={"price_per_1000": "20"}, headers={"X-Forwarded-For": "198.51.100.2"})

        candles = client.get("/api/prices/BRL/candles").json()
        assert len(candles["candles"]) == 1
        assert candles["candles"][0]["high"] == "20"
        assert candles["trend"] is None

        cumulative = client.get("/api/prices/BRL/cumulative").json()
        assert cumulative["points"][0]["value"] == "15.000000000000"

    @pytest.mark.parametrize(
        "body",
        [{}, {"price_per_1000": ""}, {"price_per_1000": "abc"}, {"price_per_1000": "0"}, {"price_per_1000": "-2"}],
    )
    def test_invalid_price_rejected(self, client: TestClient, body: dict) -> None:
        resp = client.post("/api/prices", json=body)
        assert resp.status_code == 400
        assert "error" in resp.json()

    def test_unknown_currency_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/prices", json={"price_per_1000": "1", "currency_code": "XYZ"})
        assert resp.status_code == 400
        assert client.get("/api/prices/XYZ/candles").status_code == 400

    def test_non_string_device_id_rejected(self, client: TestClient) -> None:
        resp = client.post("/api/prices", json={"price_per_1000": "58.45", "device_id": {"a": 1}})
        assert resp.status_code == 400
        assert client.get("/api/prices/BRL/today").json()["price_per_1000"] is None

    def test_body_source_id_cannot_bypass_daily_limit(self, client: TestClient) -> None:
        client.post("/api/prices", json={"price_per_1000": "10", "source_id": "x"}, headers=CALLER)
        resp = client.post("/api/prices", json={"price_per_1000": "90", "source_id": "y"}, headers=CALLER)

        assert resp.json()["updated"] is True
        assert resp.json()["data"]["source_id"] == "203.0.113.9"
        assert len(client.get("/api/prices/BRL/candles").json()["candles"]) == 1
        assert client.get("/api/prices/BRL/cumulative").json()["points"][0]["value"] == "90.000000000000"
