from datetime import datetime, timezone
from decimal import Decimal

from gatewayapi.models.transaction import TransactionStatus


class TestStatementRoutes:
    def test_requires_authentication(self, anonymous_client):
        response = anonymous_client.get("/api/v1/statements")

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "AUTH_001"
        assert body["error"] == "Not authenticated"

    def test_record_then_list_daily_statements(self, client):
        # Given
        created = client.post(
            "/api/v1/statements",
            json={"variation": 150.25, "asOf": "2026-02-10T15:00:00Z"},
        )
        assert created.status_code == 201
        assert Decimal(created.json()["finalBalance"]) == Decimal("150.25")

        # When
        response = client.get(
            "/api/v1/statements",
            params={"startDate": "2026-02-09", "endDate": "2026-02-11"},
        )

        # Then
        assert response.status_code == 200
        data = response.json()
        assert [s["day"] for s in data["statements"]] == [
            "2026-02-09",
            "2026-02-10",
            "2026-02-11",
        ]
        assert Decimal(data["statements"][1]["entradas"]) == Decimal("150.25")
        assert Decimal(data["statements"][2]["initialBalance"]) == Decimal("150.25")
        assert Decimal(data["currentBalance"]) == Decimal("150.25")
        assert data["pagination"] == {"page": 1, "limit": 31, "total": 3, "pages": 1}

    def test_inverted_range_is_bad_request(self, client):
        response = client.get(
            "/api/v1/statements",
            params={"startDate": "2026-02-11", "endDate": "2026-02-09"},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_001"

    def test_malformed_date_is_bad_request(self, client):
        response = client.get("/api/v1/statements", params={"startDate": "yesterday"})

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid data"
        assert body["details"]

    def test_billing_summary(self, client, user, make_transaction):
        make_transaction(
            user,
            amount="75.00",
            status=TransactionStatus.COMPLETED,
            created_at=datetime(2026, 2, 10, 15, 0, tzinfo=timezone.utc),
        )

        response = client.get(
            "/api/v1/billing",
            params={"startDate": "2026-02-10", "endDate": "2026-02-10"},
        )

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["totalEntradas"]) == Decimal("75.00")
        assert Decimal(data["totalSaidas"]) == Decimal("0.00")
