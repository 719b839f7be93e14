"""
Paystack Service - payment initialization, verification and webhook signatures
"""

import hashlib
import hmac
import logging
import random
import string
import time
from typing import Any, Dict, Optional

import httpx

from config.settings import DEFAULT_CURRENCY

logger = logging.getLogger(__name__)

PAYMENT_CHANNELS = ["card", "mobile_money"]
REFERENCE_ALPHABET = string.digits + string.ascii_lowercase


class PaystackService:
    """
    Thin async client for the Paystack transaction API.
    Methods return normalized dicts: {"data": ..., "is_error": False} or {"error": str, "is_error": True}.
    """

    def __init__(
        self,
        secret_key: Optional[str],
        base_url: str = "https://api.paystack.co",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        """
        Args:
            secret_key: Paystack secret key; also the webhook signing key
            base_url: API root
            transport: Optional httpx transport (tests pass a MockTransport)
            timeout: Per-request timeout in seconds
        """
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.timeout = timeout
        if not secret_key:
            logger.warning("PAYSTACK_SECRET_KEY is not set. Paystack functionality will be unavailable.")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
            transport=self.transport,
            timeout=self.timeout,
        )

    @staticmethod
    def generate_reference(prefix: str = "TFLOW") -> str:
        """Unique payment reference: PREFIX_<epoch millis>_<6 base36 chars>."""
        suffix = "".join(random.choices(REFERENCE_ALPHABET, k=6))
        return f"{prefix}_{int(time.time() * 1000)}_{suffix}"

    @staticmethod
    def to_minor_units(amount: float) -> int:
        """GHS to pesewas."""
        return int(round(amount * 100))

    async def initialize_payment(
        self,
        email: str,
        amount: float,
        reference: Optional[str] = None,
        callback_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if not self.secret_key:
            logger.error("PAYSTACK_SECRET_KEY is not set. Cannot initialize payment.")
            return {"error": "Paystack secret key is not configured", "is_error": True}
        if not email:
            return {"error": "Email is required for payment", "is_error": True}
        if not amount or amount <= 0:
            return {"error": "Amount must be greater than 0", "is_error": True}

        payload = {
            "email": email,
            "amount": self.to_minor_units(amount),
            "reference": reference or self.generate_reference("PAYMENT"),
            "currency": DEFAULT_CURRENCY,
            "callback_url": callback_url,
            "metadata": metadata or {},
            "channels": PAYMENT_CHANNELS,
        }

        try:
            async with self._client() as client:
                response = await client.post("/transaction/initialize", json=payload)
        except httpx.RequestError as e:
            logger.error(f"Paystack initialize request failed: {e}", exc_info=True)
            return {"error": f"Paystack request failed: {e}", "is_error": True}

        if not response.is_success:
            logger.warning(f"Paystack initialize returned {response.status_code}: {response.text}")
            return {"error": f"Paystack API error {response.status_code}", "is_error": True}

        result = response.json()
        if not result.get("status"):
            return {"error": result.get("message") or "Payment initialization failed", "is_error": True}

        logger.info(f"Paystack payment initialized: {payload['reference']}")
        return {"data": result.get("data", {}), "is_error": False}

    async def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Look up a transaction. `data.status == "success"` means the charge went through.
        """
        if not self.secret_key:
            logger.error("PAYSTACK_SECRET_KEY is not set. Cannot verify transaction.")
            return {"error": "Paystack secret key is not configured", "is_error": True}

        try:
            async with self._client() as client:
                response = await client.get(f"/transaction/verify/{reference}")
        except httpx.RequestError as e:
            logger.error(f"Paystack verify request failed: {e}", exc_info=True)
            return {"error": f"Paystack request failed: {e}", "is_error": True}

        if not response.is_success:
            logger.warning(f"Paystack verify returned {response.status_code} for {reference}")
            return {"error": f"Paystack API error {response.status_code}", "is_error": True}

        result = response.json()
        if not result.get("status"):
            return {"error": result.get("message") or "Verification failed", "is_error": True}
        return {"data": result.get("data", {}), "is_error": False}

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> bool:
        """Paystack signs the raw body with HMAC-SHA512 using the secret key."""
        if not self.secret_key or not signature:
            return False
        expected = hmac.new(self.secret_key.encode("utf-8"), payload, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature)
