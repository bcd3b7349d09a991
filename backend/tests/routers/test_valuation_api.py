# backend/tests/routers/test_valuation_api.py
"""
API tests for valuation endpoints and health checks.

Decimal fields are serialized as strings, so assertions compare through
Decimal().
"""

from decimal import Decimal

from folio import __version__
from folio.models import EntryReason
from tests.conftest import at, make_entry, make_quote


class TestPositionMetrics:
    """Tests for GET /positions/{id}/metrics."""

    def test_metrics(self, client, db, stock, stock_position):
        make_entry(db, stock_position, EntryReason.PURCHASE, "10", "100", at(0))
        make_entry(db, stock_position, EntryReason.PURCHASE, "10", "200", at(1))
        make_quote(db, stock, "180", at(2))

        response = client.get(f"/positions/{stock_position.id}/metrics")

        assert response.status_code == 200
        data = response.json()
        assert data["asset_code"] == "AAPL"
        metrics = data["metrics"]
        assert Decimal(metrics["quantity"]) == Decimal("20")
        assert Decimal(metrics["average_cost"]) == Decimal("150")
        assert Decimal(metrics["total_invested"]) == Decimal("3000")
        assert Decimal(metrics["current_value"]) == Decimal("3600")
        assert Decimal(metrics["unrealized_gain_loss"]) == Decimal("600")

    def test_unquoted_price_is_null(self, client, db, stock_position):
        make_entry(db, stock_position, EntryReason.PURCHASE, "1", "10", at(0))

        response = client.get(f"/positions/{stock_position.id}/metrics")

        assert response.json()["metrics"]["current_price"] is None

    def test_empty_ledger_is_404(self, client, stock_position):
        response = client.get(f"/positions/{stock_position.id}/metrics")

        assert response.status_code == 404
        data = response.json()
        assert data["error"] == "EmptyLedgerError"
        assert data["details"] == {"position_id": stock_position.id}

    def test_unknown_position(self, client):
        response = client.get("/positions/999/metrics")

        assert response.status_code == 404
        assert response.json()["error"] == "PositionNotFoundError"


class TestBalanceCheck:
    """Tests for GET /positions/{id}/balance."""

    def test_insufficient(self, client, db, stock_position):
        make_entry(db, stock_position, EntryReason.PURCHASE, "10", "100", at(0))
        make_entry(db, stock_position, EntryReason.SALE, "4", "150", at(1))

        response = client.get(f"/positions/{stock_position.id}/balance", params={"amount": "100"})

        assert response.status_code == 200
        data = response.json()
        assert data["is_sufficient"] is False
        assert Decimal(data["available"]) == Decimal("6")

    def test_sufficient(self, client, db, cash_position):
        make_entry(db, cash_position, EntryReason.DEPOSIT, "50", occurred_at=at(0))

        response = client.get(f"/positions/{cash_position.id}/balance", params={"amount": "50"})

        assert response.json()["is_sufficient"] is True

    def test_amount_must_be_positive(self, client, cash_position):
        response = client.get(f"/positions/{cash_position.id}/balance", params={"amount": "0"})

        assert response.status_code == 422


class TestSummaries:
    """Tests for platform and owner summaries."""

    def test_platform_summary(self, client, db, platform, stock, stock_position, cash_position):
        make_entry(db, stock_position, EntryReason.PURCHASE, "10", "100", at(0))
        make_quote(db, stock, "120", at(1))
        make_entry(db, cash_position, EntryReason.DEPOSIT, "300", occurred_at=at(0))

        response = client.get(f"/platforms/{platform.id}/summary")

        assert response.status_code == 200
        data = response.json()
        assert data["scope"] == "platform"
        assert data["summary"]["total_assets"] == 2
        assert Decimal(data["summary"]["total_current_value"]) == Decimal("1500")
        assert len(data["positions"]) == 2

    def test_owner_summary(self, client, db, user, cash_position):
        make_entry(db, cash_position, EntryReason.DEPOSIT, "300", occurred_at=at(0))

        response = client.get(f"/owners/{user.id}/summary")

        assert response.status_code == 200
        assert response.json()["scope"] == "owner"

    def test_unknown_platform(self, client):
        response = client.get("/platforms/999/summary")

        assert response.status_code == 404
        assert response.json()["details"]["resource_type"] == "Platform"

    def test_unknown_owner(self, client):
        assert client.get("/owners/999/summary").status_code == 404


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["checks"]["database"]["status"] == "healthy"

    def test_liveness_and_readiness(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").json() == {"status": "ready"}

    def test_index_reports_version(self, client):
        body = client.get("/").json()

        assert body["version"] == __version__
        assert body["docs"] == "/docs"

    def test_unknown_route_uses_error_body(self, client):
        response = client.get("/no-such-route")

        assert response.status_code == 404
        assert response.json()["error"] == "NotFoundError"

    def test_wrong_method_uses_error_body(self, client):
        response = client.post("/health/live")

        assert response.status_code == 405
        body = response.json()
        assert body["error"] == "MethodNotAllowedError"
        assert body["message"] == "Method Not Allowed"
        assert "allow" in {name.lower() for name in response.headers}
