"""HTTP client for the HSM OTP and PDF signing services."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from xml.sax.saxutils import escape

import httpx
from bs4 import BeautifulSoup

from app.core.exceptions import OtpServiceUnavailable, SignerServiceUnavailable, WorkflowError
from app.core.settings import Settings, settings

logger = logging.getLogger(__name__)

OTP_PATH = "HSM/GenOtp"
SIGNER_PATH = "services/dsverifyWS"
SIGNER_NAMESPACE = "http://ds.ws.emas/"
OTP_RESPONSE_KEYS = ("otp", "code", "otpCode")

SOAP_TEMPLATE = """<?xml version="1.0" encoding="UTF-8"?>
<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/">
  <s:Body xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" xmlns:xsd="http://www.w3.org/2001/XMLSchema">
    <signPdf xmlns="{namespace}">
      <arg0 xmlns="">{txn}</arg0>
      <arg1 xmlns="">{key_label}</arg1>
      <arg2 xmlns="">{pdf}</arg2>
      <arg4 xmlns="">{coordinates}</arg4>
      <arg5 xmlns="">{page}</arg5>
      <arg8 xmlns="">True</arg8>
      <arg9 xmlns="">{otp}</arg9>
      <arg10 xmlns="">single</arg10>
    </signPdf>
  </s:Body>
</s:Envelope>"""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    delay_seconds: float = 1.0
    exponential: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay before the attempt following ``attempt`` (1-based)."""
        if self.exponential:
            return self.delay_seconds * (2 ** (attempt - 1))
        return self.delay_seconds


@dataclass(frozen=True)
class HsmOtpResult:
    transaction_id: str
    otp: str
    message: str | None = None


class HsmClient:
    def __init__(
        self,
        *,
        otp_base_url: str,
        signer_base_url: str,
        timeout: float = 60.0,
        retry: RetryPolicy | None = None,
        enabled: bool = True,
        detailed_logging: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.otp_url = f"{otp_base_url.rstrip('/')}/{OTP_PATH}"
        self.signer_url = f"{signer_base_url.rstrip('/')}/{SIGNER_PATH}"
        self.timeout = timeout
        self.retry = retry or RetryPolicy()
        self.enabled = enabled
        self.detailed_logging = detailed_logging
        self._transport = transport
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config: Settings = settings, **overrides: Any) -> "HsmClient":
        options: dict[str, Any] = dict(
            otp_base_url=config.hsm_otp_service_url,
            signer_base_url=config.hsm_signer_service_url,
            timeout=config.hsm_timeout_seconds,
            retry=RetryPolicy(
                max_attempts=config.hsm_max_retries,
                delay_seconds=config.hsm_retry_delay_ms / 1000,
                exponential=config.hsm_use_exponential_backoff,
            ),
            enabled=config.hsm_enabled,
            detailed_logging=config.hsm_detailed_logging,
        )
        options.update(overrides)
        return cls(**options)

    async def generate_otp(self, transaction_id: str, key_label: str) -> HsmOtpResult:
        if not self.enabled:
            raise OtpServiceUnavailable("HSM integration is disabled")
        payload = {"otptype": "single", "ptno": "1", "txn": transaction_id, "klabel": key_label}
        logger.info("Requesting HSM OTP txn=%s key_label=%s", transaction_id, key_label)
        response = await self._post_with_retry(
            self.otp_url,
            operation="otp",
            error_cls=OtpServiceUnavailable,
            json=payload,
        )
        try:
            body = response.json()
        except ValueError as exc:
            raise OtpServiceUnavailable("OTP service returned a non-JSON response") from exc
        if not isinstance(body, dict) or str(body.get("status")) != "1":
            reason = body.get("errMsg") if isinstance(body, dict) else None
            logger.error("HSM OTP generation failed txn=%s reason=%s", transaction_id, reason)
            raise OtpServiceUnavailable(
                reason or "OTP service rejected the request",
                details={"error_code": body.get("errCode") if isinstance(body, dict) else None},
            )
        code = next((str(body[key]) for key in OTP_RESPONSE_KEYS if body.get(key)), None)
        if not code:
            raise OtpServiceUnavailable("OTP service response did not include a code")
        return HsmOtpResult(
            transaction_id=str(body.get("txn") or transaction_id),
            otp=code,
            message=body.get("succMsg"),
        )

    async def sign_pdf(
        self,
        *,
        transaction_id: str,
        key_label: str,
        pdf_bytes: bytes,
        coordinates: str,
        otp: str,
        page: str = "last",
    ) -> bytes:
        if not self.enabled:
            raise SignerServiceUnavailable("HSM integration is disabled")
        envelope = SOAP_TEMPLATE.format(
            namespace=SIGNER_NAMESPACE,
            txn=escape(transaction_id),
            key_label=escape(key_label),
            pdf=base64.b64encode(pdf_bytes).decode("ascii"),
            coordinates=escape(coordinates),
            page=escape(page),
            otp=escape(otp),
        )
        logger.info("Requesting HSM signature txn=%s key_label=%s", transaction_id, key_label)
        if self.detailed_logging:
            logger.info("HSM sign payload txn=%s pdf_bytes=%s", transaction_id, len(pdf_bytes))
        response = await self._post_with_retry(
            self.signer_url,
            operation="sign",
            error_cls=SignerServiceUnavailable,
            content=envelope.encode("utf-8"),
            headers={"Content-Type": "application/xml; charset=utf-8"},
        )
        return self._parse_sign_response(response.text, transaction_id)

    @staticmethod
    def _parse_sign_response(text: str, transaction_id: str) -> bytes:
        soup = BeautifulSoup(text, "html.parser")
        node = soup.find(lambda tag: tag.name.split(":")[-1] == "return")
        value = (node.get_text() if node else text).strip()
        parts = value.split("~", 2)
        if len(parts) == 3 and parts[1] == "SUCCESS":
            try:
                return base64.b64decode(parts[2], validate=True)
            except (binascii.Error, ValueError) as exc:
                raise SignerServiceUnavailable("Signer returned an unreadable document") from exc
        reason = parts[2] if len(parts) == 3 and parts[1] == "FAILURE" else "Unexpected signer response"
        logger.error("HSM signature failed txn=%s reason=%s", transaction_id, reason)
        raise SignerServiceUnavailable(f"Signing failed: {reason}", details={"transaction_id": transaction_id})

    async def _post_with_retry(
        self,
        url: str,
        *,
        operation: str,
        error_cls: type[WorkflowError],
        **request_kwargs: Any,
    ) -> httpx.Response:
        last_error = None
        attempts = self.retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    response = await client.post(url, **request_kwargs)
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError as exc:
                last_error = f"HTTP {exc.response.status_code}"
            except httpx.HTTPError as exc:
                last_error = f"{exc.__class__.__name__}: {exc}"
            logger.warning("HSM %s attempt %s/%s failed: %s", operation, attempt, attempts, last_error)
            if attempt < attempts:
                await self._sleep(self.retry.delay_for(attempt))
        raise error_cls(
            f"HSM {operation} service unavailable after {attempts} attempts",
            details={"attempts": attempts, "last_error": last_error},
        )


def get_hsm_client() -> HsmClient:
    return HsmClient.from_settings()
