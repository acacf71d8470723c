"""GoCardless Pro REST client (redirect flows, payments).

Thin wrapper over ``httpx.AsyncClient``. Every call is bounded by
GOCARDLESS_TIMEOUT_SECONDS; transport failures and 5xx answers surface as
PaymentProviderUnavailableError, 4xx answers as PaymentProviderError.
Nothing is retried here.

API reference: https://developer.gocardless.com/api-reference
"""

import logging
from typing import Any

import httpx

from config.settings import settings
from src.rs_common.errors import (
    PaymentProviderError,
    PaymentProviderNotConfiguredError,
    PaymentProviderUnavailableError,
)
from src.rs_payments.domain.models import ProviderPayment, ProviderRedirectFlow

logger = logging.getLogger(__name__)

_IDEMPOTENT_CONFLICT = "idempotent_creation_conflict"


class GoCardlessClient:
    def __init__(
        self,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._access_token = (
            access_token if access_token is not None else settings.GOCARDLESS_ACCESS_TOKEN
        )
        self._base_url = base_url or settings.gocardless_base_url
        self._timeout = timeout or settings.GOCARDLESS_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self, idempotency_key: str | None = None) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "GoCardless-Version": settings.GOCARDLESS_VERSION,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
        idempotency_key: str | None = None,
    ) -> dict[str, Any]:
        if not self._access_token:
            raise PaymentProviderNotConfiguredError()
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method, path, json=payload, headers=self._headers(idempotency_key)
                )
        except httpx.TimeoutException as e:
            logger.warning("GoCardless %s %s timed out", method, path)
            raise PaymentProviderUnavailableError("timeout") from e
        except httpx.TransportError as e:
            logger.warning("GoCardless %s %s transport error: %s", method, path, e)
            raise PaymentProviderUnavailableError(str(e)) from e

        if response.status_code >= 500:
            logger.error("GoCardless %s %s → %d", method, path, response.status_code)
            raise PaymentProviderUnavailableError(f"HTTP {response.status_code}")
        body = _json_body(response)
        if response.is_error:
            logger.error(
                "GoCardless %s %s → %d: %s", method, path, response.status_code, body
            )
            raise _provider_error(response.status_code, body or {})
        if body is None:
            logger.error(
                "GoCardless %s %s → %d: body is not JSON", method, path, response.status_code
            )
            raise PaymentProviderError(response.status_code, "response body is not JSON")
        return body

    async def create_redirect_flow(
        self,
        session_token: str,
        success_redirect_url: str,
        description: str,
        email: str | None = None,
    ) -> ProviderRedirectFlow:
        flow: dict[str, Any] = {
            "description": description,
            "session_token": session_token,
            "success_redirect_url": success_redirect_url,
        }
        if email:
            flow["prefilled_customer"] = {"email": email}
        body = await self._request("POST", "/redirect_flows", {"redirect_flows": flow})
        return _parse_redirect_flow(body)

    async def complete_redirect_flow(
        self, redirect_flow_id: str, session_token: str
    ) -> ProviderRedirectFlow:
        body = await self._request(
            "POST",
            f"/redirect_flows/{redirect_flow_id}/actions/complete",
            {"data": {"session_token": session_token}},
        )
        return _parse_redirect_flow(body)

    async def create_payment(
        self,
        mandate_id: str,
        amount_cents: int,
        currency: str,
        description: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> ProviderPayment:
        payload = {
            "payments": {
                "amount": amount_cents,
                "currency": currency,
                "description": description,
                "metadata": metadata,
                "links": {"mandate": mandate_id},
            }
        }
        try:
            body = await self._request("POST", "/payments", payload, idempotency_key)
        except PaymentProviderError as e:
            # Same idempotency key already produced a payment: return that one
            if e.conflicting_resource_id:
                logger.info("GoCardless idempotency hit: payment=%s", e.conflicting_resource_id)
                return await self.get_payment(e.conflicting_resource_id)
            raise
        return _parse_payment(body)

    async def get_payment(self, payment_id: str) -> ProviderPayment:
        body = await self._request("GET", f"/payments/{payment_id}")
        return _parse_payment(body)


def _parse_redirect_flow(body: dict[str, Any]) -> ProviderRedirectFlow:
    flow = body.get("redirect_flows") or {}
    links = flow.get("links") or {}
    return ProviderRedirectFlow(
        id=flow.get("id", ""),
        redirect_url=flow.get("redirect_url"),
        mandate_id=links.get("mandate"),
        customer_id=links.get("customer"),
    )


def _parse_payment(body: dict[str, Any]) -> ProviderPayment:
    payment = body.get("payments") or {}
    return ProviderPayment(
        id=payment.get("id", ""),
        status=payment.get("status", ""),
        amount_cents=int(payment.get("amount") or 0),
        currency=payment.get("currency") or settings.PAYMENT_CURRENCY,
        metadata={str(k): str(v) for k, v in (payment.get("metadata") or {}).items()},
    )


def _provider_error(status: int, body: dict[str, Any]) -> PaymentProviderError:
    error = body.get("error") or {}
    conflicting_id = None
    for item in error.get("errors") or []:
        if item.get("reason") == _IDEMPOTENT_CONFLICT:
            conflicting_id = (item.get("links") or {}).get("conflicting_resource_id")
    return PaymentProviderError(
        status, str(error.get("message") or "unknown error"), conflicting_id
    )


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    """Decoded JSON object, {} for an empty body, None when the body is not a JSON object."""
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None
