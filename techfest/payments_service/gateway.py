"""
Razorpay client: order creation over the Orders REST API and checkout
signature verification.
"""

import hashlib
import hmac
import logging
import secrets
from decimal import Decimal
from typing import Any, Dict

import requests

from techfest.config import Settings
from techfest.errors import PaymentGatewayError

logger = logging.getLogger(__name__)

ORDERS_URL = "https://api.razorpay.com/v1/orders"
CURRENCY = "INR"
TIMEOUT_SECONDS = 10


class RazorpayGateway:
    def __init__(self, settings: Settings, session: requests.Session = None) -> None:
        self._key_id = settings.razorpay_key_id
        self._key_secret = settings.razorpay_key_secret
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self._key_id and self._key_secret)

    def create_order(self, amount: Decimal) -> Dict[str, Any]:
        """
        Create an order for amount rupees.

        Returns:
            dict: Razorpay's order object (id, amount in paise, currency, ...).

        Raises:
            PaymentGatewayError: If the gateway is not configured or the call fails.
        """
        if not self.configured:
            raise PaymentGatewayError("Online payments are not configured")

        payload = {
            "amount": int(amount * 100),
            "currency": CURRENCY,
            "receipt": f"receipt_order_{secrets.token_hex(6)}",
        }
        try:
            response = self._session.post(
                ORDERS_URL,
                json=payload,
                auth=(self._key_id, self._key_secret),
                timeout=TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error("Razorpay order creation failed: %s", e)
            raise PaymentGatewayError() from e

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Check the checkout signature: HMAC-SHA256 of "order_id|payment_id"."""
        if not self._key_secret:
            return False
        expected = hmac.new(
            self._key_secret.encode("utf-8"),
            f"{order_id}|{payment_id}".encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(expected, signature or "")
