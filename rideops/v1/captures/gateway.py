"""
Payment gateway port and adapters.

The capture worker only ever talks to a ``PaymentGateway``. Adapters are
selected by name through the payment gateway registry: ``stub`` for local
development and ``http`` which delegates to the payment backend service.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from rideops.config.settings import Settings
from rideops.v1.core.registries import payment_gateway_registry

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Infrastructure failure while talking to the gateway."""


class GatewayTimeoutError(GatewayError):
    """The gateway did not answer in time; the capture may or may not have landed."""


@dataclass(frozen=True)
class CaptureResult:
    """Outcome reported by the gateway for one capture request."""

    succeeded: bool
    gateway_reference_id: str | None = None
    reason: str | None = None

    @classmethod
    def success(cls, gateway_reference_id: str | None) -> "CaptureResult":
        return cls(succeeded=True, gateway_reference_id=gateway_reference_id)

    @classmethod
    def declined(cls, reason: str) -> "CaptureResult":
        return cls(succeeded=False, reason=reason)


class PaymentGateway(Protocol):
    """Port for capturing previously authorized holds."""

    async def capture(
        self, external_reference_id: str, amount: int, idempotency_key: str
    ) -> CaptureResult:
        """
        Capture ``amount`` on the authorized intent ``external_reference_id``.

        Returns a declined result when the gateway rejects the capture.

        Raises:
            GatewayTimeoutError: the call timed out
            GatewayError: any other transport or server failure
        """
        ...


class StubPaymentGateway:
    """Gateway that accepts every capture. Development only."""

    async def capture(
        self, external_reference_id: str, amount: int, idempotency_key: str
    ) -> CaptureResult:
        logger.info(
            "Stub capture",
            extra={
                "external_reference_id": external_reference_id,
                "amount": amount,
                "idempotency_key": idempotency_key,
            },
        )
        return CaptureResult.success(f"stub_{uuid.uuid4().hex[:16]}")


class HttpPaymentGateway:
    """
    Adapter for the payment backend's capture endpoint.

    The backend owns the processor credentials; this adapter only forwards
    the capture request with an Idempotency-Key header and maps the reply:
    2xx ``success: true`` is a capture, 4xx or ``success: false`` is a
    decline, 5xx and transport errors raise ``GatewayError``.
    """

    capture_path = "/api/payment/capture"

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json"}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self._transport = transport

    async def capture(
        self, external_reference_id: str, amount: int, idempotency_key: str
    ) -> CaptureResult:
        headers = {**self.headers, "Idempotency-Key": idempotency_key}
        body = {"paymentIntentId": external_reference_id, "amount": amount}

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(self.capture_path, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise GatewayTimeoutError(
                f"Capture of {external_reference_id} timed out after {self.timeout}s"
            ) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Capture request failed: {e}") from e

        if response.status_code >= 500:
            raise GatewayError(
                f"Payment backend error {response.status_code}: {response.text[:200]}"
            )

        if response.status_code >= 400:
            return CaptureResult.declined(self._rejection_reason(response))

        data = self._parse(response)
        if not data.get("success", False):
            return CaptureResult.declined(
                str(data.get("error") or f"Capture rejected with status {response.status_code}")
            )

        payload = data.get("data") or {}
        return CaptureResult.success(
            payload.get("chargeId") or payload.get("latest_charge") or payload.get("id")
        )

    @staticmethod
    def _rejection_reason(response: httpx.Response) -> str:
        """Reason for a 4xx reply; the body is optional and may not be JSON."""
        fallback = f"Capture rejected with status {response.status_code}"
        try:
            data = response.json()
        except ValueError:
            return fallback
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return fallback

    @staticmethod
    def _parse(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            raise GatewayError(
                f"Invalid JSON response from payment backend: {response.status_code}"
            ) from None
        if not isinstance(data, dict):
            raise GatewayError("Unexpected response shape from payment backend")
        return data


def _build_stub(settings: Settings) -> PaymentGateway:
    return StubPaymentGateway()


def _build_http(settings: Settings) -> PaymentGateway:
    return HttpPaymentGateway(
        base_url=settings.payment_gateway_url or "",
        token=settings.payment_gateway_token,
        timeout=settings.payment_gateway_timeout_s,
    )


payment_gateway_registry.register("stub", _build_stub)
payment_gateway_registry.register("http", _build_http)


def build_gateway(settings: Settings) -> PaymentGateway:
    """Build the adapter configured by ``settings.payment_gateway``."""
    factory = payment_gateway_registry.get(settings.payment_gateway.value)
    return factory(settings)
