"""Client for the card/UPI payment gateway.

Requests and responses are compact JWS tokens signed with HS256 using the
merchant's shared secret, so every body we receive is verified before use.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import uuid4

import httpx
from jose import jws
from jose.exceptions import JWSError

from app.core.exceptions import PaymentGatewayUnavailable, PaymentSignatureInvalid
from app.core.settings import Settings, settings

logger = logging.getLogger(__name__)

CREATE_ORDER_PATH = "payments/ve1_2/orders/create"
TRANSACTION_STATUS_PATH = "payments/ve1_2/transactions/get"
SUCCESS_AUTH_STATUS = "0300"
PENDING_AUTH_STATUSES = {"0002"}


@dataclass(frozen=True)
class GatewayOrder:
    order_id: str
    redirect_url: str | None
    raw: dict[str, Any]


def format_amount(amount: Decimal | str) -> str:
    return f"{Decimal(str(amount)):.2f}"


class PaymentGatewayClient:
    def __init__(
        self,
        *,
        base_url: str,
        merchant_id: str,
        client_id: str,
        signing_key: str,
        key_id: str,
        return_url: str,
        currency: str = "356",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.merchant_id = merchant_id
        self.client_id = client_id
        self.signing_key = signing_key
        self.key_id = key_id
        self.return_url = return_url
        self.currency = currency
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, config: Settings = settings, **overrides: Any) -> "PaymentGatewayClient":
        options: dict[str, Any] = {
            "base_url": config.payment_gateway_base_url,
            "merchant_id": config.payment_gateway_merchant_id,
            "client_id": config.payment_gateway_client_id,
            "signing_key": config.payment_gateway_signing_key,
            "key_id": config.payment_gateway_key_id,
            "return_url": config.payment_gateway_return_url,
            "currency": config.payment_currency,
            "timeout": config.payment_gateway_timeout_seconds,
        }
        options.update(overrides)
        return cls(**options)

    def sign(self, payload: dict[str, Any]) -> str:
        headers = {"clientid": self.client_id, "kid": self.key_id}
        return jws.sign(payload, self.signing_key, headers=headers, algorithm="HS256")

    def verify(self, token: str) -> dict[str, Any]:
        if not token:
            raise PaymentSignatureInvalid("Empty gateway response")
        try:
            body = jws.verify(token.strip(), self.signing_key, algorithms=["HS256"])
        except JWSError as exc:
            raise PaymentSignatureInvalid() from exc
        try:
            data = json.loads(body)
        except ValueError as exc:
            raise PaymentSignatureInvalid("Gateway response is not JSON") from exc
        if not isinstance(data, dict):
            raise PaymentSignatureInvalid("Gateway response is not an object")
        return data

    def decode_callback(self, transaction_response: str) -> dict[str, Any]:
        return self.verify(transaction_response)

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        headers = {
            "Content-Type": "application/jose",
            "Accept": "application/jose",
            "BD-Traceid": uuid4().hex[:20],
            "BD-Timestamp": now.strftime("%Y%m%d%H%M%S"),
        }
        url = f"{self.base_url}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, content=self.sign(payload), headers=headers)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Payment gateway call to %s failed: %s", path, exc)
            raise PaymentGatewayUnavailable(details={"path": path}) from exc
        return self.verify(response.text)

    async def create_order(self, *, order_id: str, amount: Decimal, application_number: str) -> GatewayOrder:
        payload = {
            "mercid": self.merchant_id,
            "orderid": order_id,
            "amount": format_amount(amount),
            "order_date": datetime.now(timezone.utc).isoformat(timespec="seconds"),
            "currency": self.currency,
            "ru": self.return_url,
            "itemcode": "DIRECT",
            "additional_info": {"additional_info1": application_number},
            "device": {"init_channel": "internet"},
        }
        data = await self._post(CREATE_ORDER_PATH, payload)
        gateway_order_id = data.get("bdorderid")
        if not gateway_order_id:
            raise PaymentGatewayUnavailable(
                "Payment gateway did not return an order",
                details={"status": data.get("status")},
            )
        redirect_url = None
        for link in data.get("links") or []:
            if link.get("rel") == "redirect":
                redirect_url = link.get("href")
                break
        logger.info("Created gateway order %s for %s", gateway_order_id, order_id)
        return GatewayOrder(order_id=gateway_order_id, redirect_url=redirect_url, raw=data)

    async def get_transaction_status(self, order_id: str) -> dict[str, Any]:
        payload = {"mercid": self.merchant_id, "orderid": order_id}
        return await self._post(TRANSACTION_STATUS_PATH, payload)


def get_payment_gateway_client() -> PaymentGatewayClient:
    return PaymentGatewayClient.from_settings()
