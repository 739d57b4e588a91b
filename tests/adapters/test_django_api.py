"""
Tests for the Django JSON adapter over the reservation service.
"""

import json

import pytest
from django.db import OperationalError
from django.test import Client

from adapters.django_api import reset_dependencies
from adapters.django_api.responses import KIND_TO_STATUS, status_for
from core.errors import ErrorKind, TransactionError
from core.store.models import EntityRecord

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture(autouse=True)
def fresh_service():
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def client():
    return Client()


def post(client, url, body):
    return client.post(url, data=json.dumps(body), content_type="application/json")


@pytest.fixture
def seeded(client):
    assert post(client, "/v1/accounts", {"account_id": "A", "initial_balance": 1000}).status_code == 201
    assert post(client, "/v1/accounts", {"account_id": "B"}).status_code == 201
    assert post(client, "/v1/items", {"item_id": "item1", "stock_count": 5, "unit_price": 100}).status_code == 201
    return client


class TestStatusMapping:
    def test_every_kind_has_a_status(self):
        assert set(KIND_TO_STATUS) == set(ErrorKind)

    def test_business_failures_are_unprocessable(self):
        error = TransactionError(ErrorKind.INSUFFICIENT_STOCK, "none left")
        assert status_for(error) == 422


class TestAccountsAndItems:
    def test_account_detail(self, seeded):
        response = seeded.get("/v1/accounts/A")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "data": {"account_id": "A", "balance": 1000}}

    def test_duplicate_account(self, seeded):
        response = post(seeded, "/v1/accounts", {"account_id": "A"})
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_EXISTS"

    def test_missing_account(self, client):
        response = client.get("/v1/accounts/nobody")
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_item_detail(self, seeded):
        assert seeded.get("/v1/items/item1").json()["data"]["stock_count"] == 5

    def test_missing_field(self, client):
        response = post(client, "/v1/items", {"item_id": "x"})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_wrong_method(self, client):
        assert client.get("/v1/accounts").status_code == 405


class TestTransfers:
    def test_transfer_then_replay(self, seeded):
        body = {"from_account_id": "A", "to_account_id": "B", "amount": 500, "operation_id": "op1"}
        first = post(seeded, "/v1/transfers", body)
        assert first.status_code == 201
        entry = first.json()["data"]["entry"]
        assert entry["sequence_number"] == 1
        assert entry["affected_keys"] == ["account:A", "account:B"]

        again = post(seeded, "/v1/transfers", body)
        assert again.status_code == 200
        assert again.json()["data"]["replayed"] is True
        assert seeded.get("/v1/accounts/A").json()["data"]["balance"] == 500

    def test_insufficient_balance(self, seeded):
        response = post(seeded, "/v1/transfers", {
            "from_account_id": "A", "to_account_id": "B", "amount": 2000,
        })
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_BALANCE"
        assert error["details"]["key"] == "account:A"
        assert error["details"]["retryable"] is False
        assert error["details"]["operation_id"]

    def test_malformed_json(self, client):
        response = client.post("/v1/transfers", data="{not json", content_type="application/json")
        assert response.status_code == 400

    def test_blank_operation_id(self, seeded):
        response = post(seeded, "/v1/transfers", {
            "from_account_id": "A", "to_account_id": "B", "amount": 1, "operation_id": "",
        })
        assert response.status_code == 400


class TestOrders:
    def test_create_and_fetch_order(self, seeded):
        response = post(seeded, "/v1/orders", {
            "account_id": "A",
            "line_items": [{"item_id": "item1", "quantity": 3}],
            "operation_id": "op3",
        })
        assert response.status_code == 201
        order = response.json()["data"]["order"]
        assert order["status"] == "COMMITTED"
        assert order["total_amount"] == 300

        fetched = seeded.get(f"/v1/orders/{order['order_id']}")
        assert fetched.json()["data"] == order
        assert seeded.get("/v1/items/item1").json()["data"]["stock_count"] == 2

    def test_failed_order_carries_order(self, seeded):
        response = post(seeded, "/v1/orders", {
            "account_id": "A", "line_items": [{"item_id": "item1", "quantity": 9}],
        })
        assert response.status_code == 422
        details = response.json()["error"]["details"]
        assert details["order"]["status"] == "FAILED"

    def test_unknown_order(self, client):
        assert client.get("/v1/orders/nope").status_code == 404


class TestStats:
    def test_stats_bucket(self, seeded):
        response = seeded.get("/v1/stats/2026-03-14T12:00:00Z")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["bucket"] == "2026-03-14T12:00:00Z"
        assert data["orders"] == 0

    def test_bad_bucket(self, client):
        assert client.get("/v1/stats/not-a-time").status_code == 400


class TestStoreOutage:
    @pytest.fixture
    def outage(self, seeded, monkeypatch):
        def filter(*args, **kwargs):
            raise OperationalError("database is locked")

        monkeypatch.setattr(EntityRecord.objects, "filter", filter)
        return seeded

    def test_read_is_retryable_503(self, outage):
        response = outage.get("/v1/accounts/A")
        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "STORE_UNAVAILABLE"
        assert error["details"]["retryable"] is True

    def test_transfer_is_retryable_503(self, outage):
        response = post(outage, "/v1/transfers", {
            "from_account_id": "A", "to_account_id": "B", "amount": 10,
            "operation_id": "t-1",
        })
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STORE_UNAVAILABLE"
