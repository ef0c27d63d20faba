"""Tests for the payment gateway adapters"""

import json

import httpx
import pytest

from rideops.config.settings import PaymentGatewayType, Settings
from rideops.v1.captures.gateway import (
    GatewayError,
    GatewayTimeoutError,
    HttpPaymentGateway,
    StubPaymentGateway,
    build_gateway,
)


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        base_url="https://payments.test/",
        token="secret-token",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


async def test_stub_gateway_always_succeeds():
    result = await StubPaymentGateway().capture("pi_123", 5000, "capture-abc")

    assert result.succeeded is True
    assert result.gateway_reference_id.startswith("stub_")


def test_build_http_gateway():
    gateway = build_gateway(
        Settings(
            payment_gateway=PaymentGatewayType.HTTP,
            payment_gateway_url="https://payments.test",
            payment_gateway_token="secret-token",
        )
    )

    assert isinstance(gateway, HttpPaymentGateway)
    assert gateway.headers["Authorization"] == "Bearer secret-token"


class TestHttpPaymentGateway:
    async def test_successful_capture(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200, json={"success": True, "data": {"chargeId": "ch_42"}}
            )

        result = await _gateway(handler).capture("pi_123", 5000, "capture-abc")

        assert result.succeeded is True
        assert result.gateway_reference_id == "ch_42"

        [request] = requests
        assert request.method == "POST"
        assert request.url.path == "/api/payment/capture"
        assert request.headers["Idempotency-Key"] == "capture-abc"
        assert request.headers["Authorization"] == "Bearer secret-token"
        assert json.loads(request.content) == {"paymentIntentId": "pi_123", "amount": 5000}

    async def test_success_false_is_a_decline(self):
        def handler(request):
            return httpx.Response(200, json={"success": False, "error": "card_declined"})

        result = await _gateway(handler).capture("pi_123", 5000, "capture-abc")

        assert result.succeeded is False
        assert result.reason == "card_declined"

    async def test_client_error_is_a_decline(self):
        def handler(request):
            return httpx.Response(402, json={"success": False})

        result = await _gateway(handler).capture("pi_123", 5000, "capture-abc")

        assert result.succeeded is False
        assert "402" in result.reason

    async def test_client_error_with_html_body_is_a_decline(self):
        def handler(request):
            return httpx.Response(403, text="<html>Forbidden</html>")

        result = await _gateway(handler).capture("pi_123", 5000, "capture-abc")

        assert result.succeeded is False
        assert result.reason == "Capture rejected with status 403"

    async def test_client_error_reason_from_body(self):
        def handler(request):
            return httpx.Response(400, json={"success": False, "error": "already_captured"})

        result = await _gateway(handler).capture("pi_123", 5000, "capture-abc")

        assert result.succeeded is False
        assert result.reason == "already_captured"

    async def test_server_error_raises(self):
        def handler(request):
            return httpx.Response(503, text="unavailable")

        with pytest.raises(GatewayError, match="503"):
            await _gateway(handler).capture("pi_123", 5000, "capture-abc")

    async def test_invalid_json_raises(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(GatewayError, match="Invalid JSON"):
            await _gateway(handler).capture("pi_123", 5000, "capture-abc")

    async def test_timeout_raises_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(GatewayTimeoutError):
            await _gateway(handler).capture("pi_123", 5000, "capture-abc")

    async def test_connection_error_raises_gateway_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(GatewayError) as excinfo:
            await _gateway(handler).capture("pi_123", 5000, "capture-abc")
        assert not isinstance(excinfo.value, GatewayTimeoutError)
