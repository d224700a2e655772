"""Integration tests for payment initiation, the IPN webhook and browser callbacks."""

import asyncio

import pytest
from checkout.api import order_router, payment_router, register_checkout_error_handlers
from checkout.gateway.signature import sign_payload
from checkout.order.order import Order, OrderStatus
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean import current_domain
from protean.integrations.fastapi import register_exception_handlers

HEADERS = {"X-Customer-Id": "cust-001", "X-Customer-Email": "rahim@example.com"}
APP_URL = "http://localhost:8000"


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(order_router)
    app.include_router(payment_router)
    register_exception_handlers(app)
    register_checkout_error_handlers(app)
    return TestClient(app)


def _status(order_id):
    return current_domain.repository_for(Order).get(order_id).status


class TestInitPaymentAPI:
    def test_places_order_and_returns_gateway_url(self, client, cart, address, gateway):
        response = client.post("/pay/init", json={"addressId": address.id}, headers=HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["gatewayUrl"].startswith("https://fake-gateway.paaniyo.local/pay")
        assert body["orderNo"].startswith("PN-")
        assert _status(body["orderId"]) == OrderStatus.PAYMENT_INITIATED.value
        assert gateway.calls[-1]["amount"] == 115_000

    def test_gateway_refusal_is_502(self, client, cart, address, gateway):
        gateway.configure(should_succeed=False, failure_reason="Store credential mismatch")

        response = client.post("/pay/init", json={"addressId": address.id}, headers=HEADERS)

        assert response.status_code == 502
        assert response.json()["error"] == "Payment Error"
        assert response.json()["message"] == "Store credential mismatch"

    def test_requires_customer(self, client, cart, address):
        response = client.post("/pay/init", json={"addressId": address.id})
        assert response.status_code == 401


class TestNotificationWebhook:
    def test_verified_success(self, client, session, gateway):
        response = client.post("/pay/ipn", data=gateway.complete(session.tran_id))

        assert response.status_code == 200
        assert response.json() == {"status": "success"}
        assert _status(session.order_id) == OrderStatus.PAID.value

    def test_redelivery_is_acknowledged(self, client, session, gateway):
        payload = gateway.complete(session.tran_id)
        client.post("/pay/ipn", data=payload)

        response = client.post("/pay/ipn", data=payload)

        assert response.status_code == 200
        assert response.json() == {"status": "duplicate"}

    def test_forged_signature(self, client, session, gateway):
        payload = gateway.complete(session.tran_id)
        payload["amount"] = "1.00"

        response = client.post("/pay/ipn", data=payload)

        assert response.status_code == 400
        assert "error" in response.json()
        assert _status(session.order_id) == OrderStatus.PAYMENT_INITIATED.value

    def test_unknown_transaction(self, client, session, gateway):
        payload = gateway.complete(session.tran_id)
        other = dict(payload, tran_id="paaniyo_unknown_1")
        signed = sign_payload({k: v for k, v in other.items() if not k.startswith("verify_")}, "qwerty")
        response = client.post("/pay/ipn", data=signed)
        assert response.status_code == 404

    def test_failed_payment(self, client, session, gateway):
        response = client.post("/pay/ipn", data=gateway.complete(session.tran_id, status="FAILED"))
        assert response.status_code == 200
        assert response.json() == {"status": "failed"}
        assert _status(session.order_id) == OrderStatus.PENDING.value


class TestPaymentStatusPolling:
    def test_awaiting_payment(self, client, session):
        response = client.get("/pay/ipn", params={"tran_id": session.tran_id})
        assert response.status_code == 200
        assert response.json() == {
            "orderId": session.order_id,
            "orderNo": session.order_no,
            "status": "PAYMENT_INITIATED",
            "paid": False,
        }

    def test_after_settlement(self, client, session, gateway):
        client.post("/pay/ipn", data=gateway.complete(session.tran_id))
        response = client.get("/pay/ipn", params={"tran_id": session.tran_id})
        assert response.json()["paid"] is True

    def test_unknown(self, client):
        response = client.get("/pay/ipn", params={"tran_id": "paaniyo_missing_1"})
        assert response.status_code == 404


class TestBrowserCallbacks:
    def test_success_redirects_to_order(self, client, session, gateway):
        response = client.post("/pay/success", data=gateway.complete(session.tran_id), follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == f"{APP_URL}/orders/{session.order_id}/success"
        assert _status(session.order_id) == OrderStatus.PAID.value

    def test_success_after_ipn_still_redirects_to_order(self, client, session, gateway):
        client.post("/pay/ipn", data=gateway.complete(session.tran_id))
        response = client.post("/pay/success", data=gateway.complete(session.tran_id), follow_redirects=False)
        assert response.headers["location"] == f"{APP_URL}/orders/{session.order_id}/success"

    def test_fail_redirects_to_checkout(self, client, session, gateway):
        response = client.post(
            "/pay/fail", data=gateway.complete(session.tran_id, status="FAILED"), follow_redirects=False
        )
        assert response.status_code == 303
        assert response.headers["location"].startswith(f"{APP_URL}/checkout?error=payment_failed")
        assert "reason=Transaction+declined" in response.headers["location"]

    def test_cancel_redirects_to_cart(self, client, session, gateway):
        response = client.post(
            "/pay/cancel", data=gateway.complete(session.tran_id, status="CANCELLED"), follow_redirects=False
        )
        assert response.headers["location"] == f"{APP_URL}/cart?cancelled=true"

    def test_forged_success_goes_to_error_page(self, client, session, gateway):
        payload = gateway.complete(session.tran_id)
        payload["amount"] = "1.00"

        response = client.post("/pay/success", data=payload, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"].startswith(f"{APP_URL}/checkout/error?reason=")
        assert _status(session.order_id) == OrderStatus.PAYMENT_INITIATED.value

    @pytest.mark.parametrize(
        "path,location",
        [
            ("/pay/success", "/orders"),
            ("/pay/fail", "/checkout?error=payment_failed"),
            ("/pay/cancel", "/cart?cancelled=true"),
        ],
    )
    def test_direct_navigation(self, client, path, location):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == f"{APP_URL}{location}"


def _on_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class TestGatewayCallsStayOffTheEventLoop:
    @pytest.fixture()
    def loop_seen(self, gateway, monkeypatch):
        """Whether each gateway call ran on the event loop thread."""
        seen = []
        for name in ("init_session", "validate", "query_transaction", "refund"):
            original = getattr(gateway, name)

            def recording(*args, _original=original, **kwargs):
                seen.append(_on_event_loop())
                return _original(*args, **kwargs)

            monkeypatch.setattr(gateway, name, recording)
        return seen

    def test_session_init(self, client, cart, address, loop_seen):
        response = client.post("/pay/init", json={"addressId": address.id}, headers=HEADERS)

        assert response.status_code == 200
        assert loop_seen == [False]

    def test_ipn_validation(self, client, session, gateway, loop_seen):
        response = client.post("/pay/ipn", data=gateway.complete(session.tran_id))

        assert response.status_code == 200
        assert loop_seen == [False]

    def test_browser_callback(self, client, session, gateway, loop_seen):
        payload = gateway.complete(session.tran_id, status="FAILED")

        response = client.post("/pay/fail", data=payload, follow_redirects=False)

        assert response.status_code == 303
        assert loop_seen == [False]

    def test_refund(self, client, paid_order_id, loop_seen):
        headers = {"X-Customer-Id": "admin-001", "X-Customer-Role": "ADMIN"}

        response = client.post(f"/orders/{paid_order_id}/refund", json={"reason": "Damaged"}, headers=headers)

        assert response.status_code == 200
        assert loop_seen == [False]
