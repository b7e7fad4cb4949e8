"""Thin async client for the M-Pesa (Daraja) STK push API."""
from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx

from ..config import get_settings
from ..security.secrets import MissingSecretError, require_secret

logger = logging.getLogger(__name__)

RESULT_SUCCESS = 0
RESULT_CANCELLED = 1032
RESULT_TIMEOUT = 1037


class PaymentConfigurationError(RuntimeError):
    """Raised when the M-Pesa gateway settings are missing."""


class PaymentGatewayError(RuntimeError):
    """Raised when the gateway rejects or fails an STK push request."""


@dataclass(frozen=True)
class MpesaConfig:
    base_url: str
    shortcode: str
    callback_url: str
    consumer_key: str
    consumer_secret: str
    passkey: str
    timeout: float


@dataclass(frozen=True)
class StkPushResult:
    checkout_request_id: str
    merchant_request_id: str | None
    customer_message: str | None


@dataclass(frozen=True)
class StkCallback:
    checkout_request_id: str
    result_code: int
    result_desc: str | None
    mpesa_receipt_number: str | None


def load_mpesa_config() -> MpesaConfig:
    settings = get_settings()
    missing = [
        name
        for name, value in (
            ("MPESA_BASE_URL", settings.mpesa_base_url),
            ("MPESA_SHORTCODE", settings.mpesa_shortcode),
            ("MPESA_CALLBACK_URL", settings.mpesa_callback_url),
        )
        if not value
    ]
    if missing:
        raise PaymentConfigurationError("Missing M-Pesa configuration: " + ", ".join(missing))
    try:
        consumer_key = require_secret("MPESA_CONSUMER_KEY")
        consumer_secret = require_secret("MPESA_CONSUMER_SECRET")
        passkey = require_secret("MPESA_PASSKEY")
    except MissingSecretError as exc:
        raise PaymentConfigurationError(str(exc)) from exc

    return MpesaConfig(
        base_url=str(settings.mpesa_base_url).rstrip("/"),
        shortcode=str(settings.mpesa_shortcode),
        callback_url=str(settings.mpesa_callback_url),
        consumer_key=consumer_key,
        consumer_secret=consumer_secret,
        passkey=passkey,
        timeout=float(settings.mpesa_timeout),
    )


def to_msisdn(phone_number: str) -> str:
    """Convert a local ``07XXXXXXXX``/``01XXXXXXXX`` number to ``2547XXXXXXXX`` form."""

    digits = "".join(ch for ch in phone_number if ch.isdigit())
    if digits.startswith("0"):
        return "254" + digits[1:]
    return digits


def _timestamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def _password(config: MpesaConfig, timestamp: str) -> str:
    raw = f"{config.shortcode}{config.passkey}{timestamp}".encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


async def _access_token(client: httpx.AsyncClient, config: MpesaConfig) -> str:
    response = await client.get(
        f"{config.base_url}/oauth/v1/generate",
        params={"grant_type": "client_credentials"},
        auth=(config.consumer_key, config.consumer_secret),
    )
    response.raise_for_status()
    token = response.json().get("access_token")
    if not token:
        raise PaymentGatewayError("M-Pesa did not return an access token")
    return str(token)


async def request_stk_push(
    *,
    phone_number: str,
    amount: int,
    account_reference: str,
    description: str,
) -> StkPushResult:
    """Ask the gateway to prompt ``phone_number`` for ``amount``."""

    config = load_mpesa_config()
    timestamp = _timestamp()
    msisdn = to_msisdn(phone_number)
    payload = {
        "BusinessShortCode": config.shortcode,
        "Password": _password(config, timestamp),
        "Timestamp": timestamp,
        "TransactionType": "CustomerPayBillOnline",
        "Amount": int(amount),
        "PartyA": msisdn,
        "PartyB": config.shortcode,
        "PhoneNumber": msisdn,
        "CallBackURL": config.callback_url,
        "AccountReference": account_reference[:12],
        "TransactionDesc": description[:13],
    }

    try:
        async with httpx.AsyncClient(timeout=config.timeout) as client:
            token = await _access_token(client, config)
            response = await client.post(
                f"{config.base_url}/mpesa/stkpush/v1/processrequest",
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPStatusError as exc:
        logger.warning("STK push rejected with %s: %s", exc.response.status_code, exc.response.text[:200])
        raise PaymentGatewayError("Payment request was rejected by M-Pesa") from exc
    except httpx.HTTPError as exc:
        logger.exception("STK push request failed")
        raise PaymentGatewayError("Unable to reach M-Pesa") from exc
    except ValueError as exc:
        raise PaymentGatewayError("M-Pesa returned an unreadable response") from exc

    if str(data.get("ResponseCode", "")) != "0" or not data.get("CheckoutRequestID"):
        raise PaymentGatewayError(data.get("errorMessage") or data.get("ResponseDescription") or "Payment request failed")

    return StkPushResult(
        checkout_request_id=str(data["CheckoutRequestID"]),
        merchant_request_id=data.get("MerchantRequestID"),
        customer_message=data.get("CustomerMessage"),
    )


def parse_stk_callback(payload: dict[str, Any]) -> StkCallback:
    """Read either the raw Daraja callback body or the flattened form."""

    body = payload.get("Body")
    if isinstance(body, dict) and isinstance(body.get("stkCallback"), dict):
        callback = body["stkCallback"]
        receipt = None
        items = (callback.get("CallbackMetadata") or {}).get("Item") or []
        for item in items:
            if isinstance(item, dict) and item.get("Name") == "MpesaReceiptNumber":
                receipt = item.get("Value")
        checkout_id = callback.get("CheckoutRequestID")
        result_code = callback.get("ResultCode")
        result_desc = callback.get("ResultDesc")
    else:
        checkout_id = payload.get("checkout_request_id")
        result_code = payload.get("result_code")
        result_desc = payload.get("result_desc")
        receipt = payload.get("mpesa_receipt_number")

    if not checkout_id or result_code is None:
        raise ValueError("Callback is missing the checkout request id or result code")
    try:
        code = int(result_code)
    except (TypeError, ValueError) as exc:
        raise ValueError("Callback result code must be numeric") from exc

    return StkCallback(
        checkout_request_id=str(checkout_id),
        result_code=code,
        result_desc=str(result_desc) if result_desc is not None else None,
        mpesa_receipt_number=str(receipt) if receipt else None,
    )


__all__ = [
    "RESULT_SUCCESS",
    "RESULT_CANCELLED",
    "RESULT_TIMEOUT",
    "MpesaConfig",
    "StkPushResult",
    "StkCallback",
    "PaymentConfigurationError",
    "PaymentGatewayError",
    "load_mpesa_config",
    "to_msisdn",
    "request_stk_push",
    "parse_stk_callback",
]
