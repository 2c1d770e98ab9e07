from decimal import Decimal

import httpx
import pytest
from jose import jws

from app.core.exceptions import PaymentGatewayUnavailable, PaymentSignatureInvalid
from app.services.payment_gateway import PaymentGatewayClient, format_amount


def _client(handler=None) -> PaymentGatewayClient:
    return PaymentGatewayClient(
        base_url="https://gateway.test/u2/",
        merchant_id="PMCMERCHANT",
        client_id="pmcclient",
        signing_key="shared-secret",
        key_id="kid-1",
        return_url="http://localhost:8000/api/v1/payments/callback",
        transport=httpx.MockTransport(handler) if handler else None,
    )


def test_format_amount_uses_two_decimals():
    assert format_amount(Decimal("3000")) == "3000.00"
    assert format_amount("12.5") == "12.50"


def test_signed_payload_round_trips():
    client = _client()
    token = client.sign({"orderid": "PMC1", "auth_status": "0300"})

    assert client.verify(token) == {"orderid": "PMC1", "auth_status": "0300"}
    headers = jws.get_unverified_headers(token)
    assert headers["clientid"] == "pmcclient"
    assert headers["kid"] == "kid-1"


def test_token_signed_with_other_key_is_rejected():
    token = jws.sign({"orderid": "PMC1"}, "someone-else", algorithm="HS256")

    with pytest.raises(PaymentSignatureInvalid):
        _client().verify(token)


def test_non_object_payload_is_rejected():
    token = jws.sign(b"[1, 2]", "shared-secret", algorithm="HS256")

    with pytest.raises(PaymentSignatureInvalid):
        _client().verify(token)


def test_empty_callback_is_rejected():
    with pytest.raises(PaymentSignatureInvalid):
        _client().decode_callback("")


@pytest.mark.asyncio
async def test_create_order_posts_signed_request_and_reads_redirect():
    seen = {}
    signer = _client()

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["content_type"] = request.headers["Content-Type"]
        seen["payload"] = signer.verify(request.content.decode("ascii"))
        body = {
            "bdorderid": "OAFC123",
            "links": [
                {"rel": "self", "href": "https://gateway.test/self"},
                {"rel": "redirect", "href": "https://gateway.test/pay/OAFC123"},
            ],
        }
        return httpx.Response(200, text=signer.sign(body))

    order = await _client(handler).create_order(
        order_id="PMC2610191A2B3C", amount=Decimal("3000"), application_number="PMC-ARC-2026-1A2B3C4D"
    )

    assert seen["url"] == "https://gateway.test/u2/payments/ve1_2/orders/create"
    assert seen["content_type"] == "application/jose"
    assert seen["payload"]["orderid"] == "PMC2610191A2B3C"
    assert seen["payload"]["amount"] == "3000.00"
    assert seen["payload"]["additional_info"] == {"additional_info1": "PMC-ARC-2026-1A2B3C4D"}
    assert order.order_id == "OAFC123"
    assert order.redirect_url == "https://gateway.test/pay/OAFC123"


@pytest.mark.asyncio
async def test_create_order_without_gateway_order_id_fails():
    signer = _client()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text=signer.sign({"status": "REJECTED"}))

    with pytest.raises(PaymentGatewayUnavailable) as exc:
        await _client(handler).create_order(order_id="PMC1", amount=Decimal("1"), application_number="X")

    assert exc.value.details == {"status": "REJECTED"}


@pytest.mark.asyncio
async def test_gateway_http_error_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(PaymentGatewayUnavailable) as exc:
        await _client(handler).get_transaction_status("PMC1")

    assert exc.value.details == {"path": "payments/ve1_2/transactions/get"}


@pytest.mark.asyncio
async def test_unsigned_gateway_response_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="not-a-token")

    with pytest.raises(PaymentSignatureInvalid):
        await _client(handler).get_transaction_status("PMC1")
