"""
Minimal Stripe REST client for the platform account (balance + payouts).
Talks to the Stripe API directly over httpx with form-encoded bodies.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import STRIPE_API_BASE, STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)


class StripeError(Exception):
    """Stripe rejected the call or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, str]:
    """{"metadata": {"a": 1}} -> {"metadata[a]": "1"} (Stripe form encoding)"""
    flat = {}
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        elif value is not None:
            flat[name] = str(value)
    return flat


class StripeClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = STRIPE_API_BASE,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or STRIPE_SECRET_KEY
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.api_key:
            raise StripeError("STRIPE_SECRET_KEY is not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                if method.upper() == "GET":
                    response = client.get(url, params=_flatten(data or {}), headers=headers)
                else:
                    response = client.request(
                        method.upper(), url, data=_flatten(data or {}), headers=headers
                    )
        except httpx.HTTPError as e:
            logger.error(f"❌ Stripe connection error on {method} {path}: {e}")
            raise StripeError(f"Stripe API connection error: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise StripeError("Stripe API returned invalid JSON", response.status_code) from e

        if response.status_code >= 400:
            message = (payload.get("error") or {}).get("message") or f"HTTP {response.status_code}"
            logger.error(f"❌ Stripe API error on {method} {path}: {message}")
            raise StripeError(message, response.status_code)

        return payload

    def retrieve_balance(self) -> Dict[str, Any]:
        return self._request("GET", "/balance")

    def create_payout(
        self,
        amount: int,
        currency: str = "usd",
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        data = {
            "amount": amount,
            "currency": currency,
            "description": description,
            "metadata": metadata or {},
        }
        idempotency_key = (metadata or {}).get("transactionId")
        return self._request("POST", "/payouts", data=data, idempotency_key=idempotency_key)


def get_stripe_client() -> StripeClient:
    """Dependency injection for the Stripe client"""
    return StripeClient()
