"""Razorpay REST client for order creation."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from config import require_razorpay_credentials, settings
from services.exceptions import PaymentProviderError

logger = logging.getLogger(__name__)


class RazorpayClient:
    """Thin async client. Holds the server-side secret; never expose it."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str = "https://api.razorpay.com/v1",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "RazorpayClient":
        try:
            key_id, key_secret = require_razorpay_credentials()
        except ValueError as exc:
            raise PaymentProviderError("Payment provider is not configured", detail=str(exc)) from exc
        return cls(
            key_id,
            key_secret,
            api_base=settings.RAZORPAY_API_BASE,
            timeout=settings.RAZORPAY_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def create_order(
        self,
        *,
        amount: int,
        currency: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> Dict[str, Any]:
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes}
        try:
            async with httpx.AsyncClient(
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(f"{self.api_base}/orders", json=payload)
        except httpx.HTTPError as exc:
            logger.error("Razorpay order request failed: %s", exc)
            raise PaymentProviderError(detail=f"transport error: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code not in (200, 201):
            description = ""
            if isinstance(data, dict):
                description = str((data.get("error") or {}).get("description") or "")
            logger.error("Razorpay order creation failed (%s): %s", response.status_code, description or response.text)
            raise PaymentProviderError(detail=description or "Failed to create order")

        if not isinstance(data, dict) or not data.get("id"):
            raise PaymentProviderError(detail="Order response missing id")
        return data
