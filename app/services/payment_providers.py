from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from app.core.config import settings
from app.core.exceptions import ProviderError

logger = logging.getLogger(__name__)


class RazorpayProvider:
    name = "razorpay"

    def __init__(self, key_id: str, key_secret: str, base_url: str | None = None, timeout: float | None = None):
        if not key_id or not key_secret:
            raise ValueError("Razorpay key id and secret are required")
        self.key_id = key_id
        self.key_secret = key_secret
        self.base = (base_url or settings.RAZORPAY_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.PAYMENT_PROVIDER_TIMEOUT

    async def create_order(self, amount_minor: int, currency: str, receipt: str) -> dict[str, Any]:
        """Create an order; returns the provider's order payload."""
        payload = {"amount": amount_minor, "currency": currency, "receipt": receipt}
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    f"{self.base}/orders",
                    auth=(self.key_id, self.key_secret),
                    json=payload,
                    timeout=self.timeout,
                )
        except httpx.TimeoutException as exc:
            logger.error("Razorpay order request timed out after %ss", self.timeout)
            raise ProviderError(f"Payment provider timed out: {exc}", provider=self.name) from exc
        except httpx.RequestError as exc:
            logger.error("Razorpay request error: %s", exc)
            raise ProviderError(f"Payment provider unreachable: {exc}", provider=self.name) from exc

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.error("Razorpay order creation failed (%s): %s", response.status_code, message)
            raise ProviderError(message, provider=self.name, provider_status=response.status_code)

        data = response.json()
        if not data.get("id"):
            raise ProviderError("Payment provider returned no order id", provider=self.name)
        return data

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Razorpay wraps failures as {"error": {"description": ...}}; pass it through as-is."""
        try:
            body = response.json()
        except ValueError:
            return response.text or f"Payment provider returned HTTP {response.status_code}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("description"):
            return str(error["description"])
        return response.text

    def expected_signature(self, order_id: str, payment_id: str) -> str:
        message = f"{order_id}|{payment_id}".encode("utf-8", "surrogatepass")
        return hmac.new(self.key_secret.encode(), message, hashlib.sha256).hexdigest()

    def verify_signature(self, order_id: str | None, payment_id: str | None, signature: str | None) -> bool:
        if not order_id or not payment_id or not signature:
            return False
        # Compare bytes: str comparison refuses non-ASCII input
        expected = self.expected_signature(order_id, payment_id).encode()
        return hmac.compare_digest(expected, signature.encode("utf-8", "surrogatepass"))


def get_provider() -> RazorpayProvider:
    return RazorpayProvider(settings.RAZORPAY_KEY_ID or "", settings.RAZORPAY_KEY_SECRET or "")
