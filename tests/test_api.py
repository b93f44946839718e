"""HTTP surface: status-code mapping, camelCase wire shape and read endpoints."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from cardpay.services.payment.main import app, get_service

from conftest import DECLINE_CARD


PAYLOAD = {
    "cardholderName": "Jane Doe",
    "cardNumber": "4111 1111 1111 1111",
    "expiryDate": "12/30",
    "cvv": "123",
    "amount": "19.98",
    "orderItems": [{"productName": "widget", "quantity": 2, "price": "9.99"}],
}


@pytest.fixture
def client(payment_service):
    app.dependency_overrides[get_service] = lambda: payment_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_completed_payment_returns_200(client):
    resp = client.post("/api/payments/process", json=PAYLOAD)

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "COMPLETED"
    assert body["transactionId"].startswith("TXN-")
    assert Decimal(body["amount"]) == Decimal("19.98")
    assert body["errorMessage"] is None


def test_validation_failure_returns_400(client):
    resp = client.post("/api/payments/process", json={**PAYLOAD, "amount": "20.00"})

    assert resp.status_code == 400
    body = resp.json()
    assert body["status"] == "FAILED"
    assert body["errorMessage"] == "Total amount does not match order items total"
    assert body["amount"] is None


def test_declined_payment_returns_400(client):
    resp = client.post("/api/payments/process", json={**PAYLOAD, "cardNumber": DECLINE_CARD})

    assert resp.status_code == 400
    assert resp.json()["status"] == "DECLINED"


def test_stored_payment_is_masked_and_hides_cvv(client):
    txn = client.post("/api/payments/process", json=PAYLOAD).json()["transactionId"]

    resp = client.get(f"/api/payments/transaction/{txn}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["cardNumber"] == "************1111"
    assert "cvv" not in body
    assert client.get(f"/api/payments/{body['paymentId']}").json()["transactionId"] == txn


def test_unknown_payment_returns_404(client):
    assert client.get("/api/payments/transaction/TXN-0-00000000").status_code == 404
    assert client.get("/api/payments/does-not-exist").status_code == 404


def test_list_endpoints_and_stats(client):
    client.post("/api/payments/process", json=PAYLOAD)
    client.post("/api/payments/process", json={**PAYLOAD, "cardNumber": DECLINE_CARD})

    assert len(client.get("/api/payments").json()) == 2
    assert len(client.get("/api/payments/successful").json()) == 1
    assert len(client.get("/api/payments/failed").json()) == 1
    assert len(client.get("/api/payments/status/DECLINED").json()) == 1
    assert len(client.get("/api/payments/recent", params={"limit": 1}).json()) == 1
    assert len(client.get("/api/payments", params={"last_four": "1111"}).json()) == 1

    stats = client.get("/api/payments/stats").json()
    assert stats["totalCompleted"] == 1
    assert stats["totalFailed"] == 1
    assert Decimal(stats["totalAmount"]) == Decimal("19.98")


def test_health_and_metrics(client):
    assert client.get("/health").json() == {"ok": True}
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "payment_requests_total" in resp.text
