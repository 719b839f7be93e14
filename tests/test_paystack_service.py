"""
Tests for the Paystack client
"""
import hashlib
import hmac
import json
import re

import httpx
import pytest

from services.paystack_service import PaystackService
from tests.conftest import PAYSTACK_TEST_KEY


def test_webhook_signature():
    service = PaystackService(PAYSTACK_TEST_KEY)
    body = b'{"event":"charge.success"}'
    signature = hmac.new(PAYSTACK_TEST_KEY.encode(), body, hashlib.sha512).hexdigest()

    assert service.verify_webhook_signature(body, signature) is True
    assert service.verify_webhook_signature(body + b" ", signature) is False
    assert service.verify_webhook_signature(body, None) is False
    assert PaystackService(None).verify_webhook_signature(body, signature) is False


def test_reference_format_and_minor_units():
    reference = PaystackService.generate_reference("TFLOW")
    assert re.fullmatch(r"TFLOW_\d{13}_[0-9a-z]{6}", reference)
    assert PaystackService.generate_reference() != PaystackService.generate_reference()
    assert PaystackService.to_minor_units(43) == 4300
    assert PaystackService.to_minor_units(19.99) == 1999


@pytest.mark.asyncio
async def test_initialize_payment_payload():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": True, "data": {"authorization_url": "https://pay"}})

    service = PaystackService(PAYSTACK_TEST_KEY, transport=httpx.MockTransport(handler))
    result = await service.initialize_payment(
        email="owner@shop.test",
        amount=43,
        reference="TFLOW_1_abc123",
        metadata={"shopId": "shop-1", "planId": "standard-monthly"},
    )

    assert result == {"data": {"authorization_url": "https://pay"}, "is_error": False}
    assert captured["auth"] == f"Bearer {PAYSTACK_TEST_KEY}"
    assert captured["body"]["amount"] == 4300
    assert captured["body"]["currency"] == "GHS"
    assert captured["body"]["channels"] == ["card", "mobile_money"]
    assert captured["body"]["metadata"]["shopId"] == "shop-1"


@pytest.mark.asyncio
async def test_initialize_payment_validation():
    assert (await PaystackService(None).initialize_payment("a@b.c", 10))["is_error"] is True
    service = PaystackService(PAYSTACK_TEST_KEY)
    assert (await service.initialize_payment("", 10))["error"] == "Email is required for payment"
    assert (await service.initialize_payment("a@b.c", 0))["error"] == "Amount must be greater than 0"


@pytest.mark.asyncio
async def test_verify_transaction(paystack_service, paystack_transactions):
    paystack_transactions["TFLOW_1_abc123"] = {"status": "success", "reference": "TFLOW_1_abc123"}

    ok = await paystack_service.verify_transaction("TFLOW_1_abc123")
    assert ok["is_error"] is False
    assert ok["data"]["status"] == "success"

    missing = await paystack_service.verify_transaction("unknown")
    assert missing["is_error"] is True
