"""PayPal REST client for the v1 Payments API.

Only the two calls the fine flow needs: create a payment the user must approve,
and execute it once approved. Calls are never retried; the provider's answer is
treated as final.
"""

import time
from typing import Any, Optional, Protocol
from urllib.parse import quote

import httpx

from finebot.common.config import Settings
from finebot.common.errors import ProviderError
from finebot.common.logging import logger
from finebot.common.metrics import provider_latency_seconds, provider_requests_total

PAYPAL_API_BASE_URLS = {
    "sandbox": "https://api.sandbox.paypal.com",
    "live": "https://api.paypal.com",
}
# Refresh the access token this many seconds before PayPal says it expires.
TOKEN_EXPIRY_MARGIN_S = 60.0


class PaymentProvider(Protocol):
    """What the orchestrator needs from a payment provider."""

    async def create_payment(self, request: dict[str, Any]) -> dict[str, Any]:
        ...

    async def execute_payment(self, payment_id: str, request: dict[str, Any]) -> dict[str, Any]:
        ...


class PayPalClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        service_name: str = "paybot",
    ):
        if mode not in PAYPAL_API_BASE_URLS:
            raise ValueError(f"unknown PayPal mode {mode!r}, expected one of {sorted(PAYPAL_API_BASE_URLS)}")
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = PAYPAL_API_BASE_URLS[mode]
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._service_name = service_name
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @classmethod
    def from_settings(cls, app_settings: Settings) -> "PayPalClient":
        return cls(
            client_id=app_settings.paypal_client_id,
            client_secret=app_settings.paypal_client_secret,
            mode=app_settings.paypal_client_mode,
            timeout=app_settings.provider_timeout_seconds,
            service_name=app_settings.service_name,
        )

    @staticmethod
    def _error_from_response(operation: str, resp: httpx.Response) -> ProviderError:
        """Translate a PayPal error body ({name, message, debug_id}) into a ProviderError."""
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        name = body.get("name") or body.get("error") or "HTTP_ERROR"
        message = body.get("message") or body.get("error_description") or resp.text[:200]
        return ProviderError(
            f"paypal {operation} failed: HTTP {resp.status_code} {name}: {message}",
            status_code=resp.status_code,
            debug_id=body.get("debug_id"),
            details=body or None,
        )

    async def _access_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires_at:
            return self._token
        try:
            resp = await self._client.post(
                f"{self._base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise ProviderError(f"paypal token request failed: {exc}") from exc
        if resp.status_code >= 400:
            raise self._error_from_response("token", resp)
        try:
            body = resp.json()
            self._token = body["access_token"]
            expires_in = float(body.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as exc:
            raise ProviderError("paypal token returned an unreadable body", status_code=resp.status_code) from exc
        self._token_expires_at = time.monotonic() + max(0.0, expires_in - TOKEN_EXPIRY_MARGIN_S)
        return self._token

    async def _post(self, operation: str, path: str, body: dict[str, Any]) -> dict[str, Any]:
        outcome = "error"
        start = time.perf_counter()
        try:
            token = await self._access_token()
            try:
                resp = await self._client.post(
                    f"{self._base_url}{path}",
                    json=body,
                    headers={
                        "Authorization": f"Bearer {token}",
                        "Content-Type": "application/json",
                        "Accept": "application/json",
                    },
                )
            except httpx.HTTPError as exc:
                raise ProviderError(f"paypal {operation} request failed: {exc}") from exc
            if resp.status_code >= 400:
                error = self._error_from_response(operation, resp)
                logger.warning(
                    "provider_rejected operation=%s status=%s debug_id=%s",
                    operation,
                    resp.status_code,
                    error.debug_id,
                )
                raise error
            try:
                payment = resp.json()
            except ValueError as exc:
                raise ProviderError(
                    f"paypal {operation} returned an unreadable body", status_code=resp.status_code
                ) from exc
            if not isinstance(payment, dict):
                raise ProviderError(f"paypal {operation} returned an unreadable body", status_code=resp.status_code)
            outcome = "success"
            return payment
        finally:
            provider_latency_seconds.labels(service=self._service_name, operation=operation).observe(
                max(0.0, time.perf_counter() - start)
            )
            provider_requests_total.labels(
                service=self._service_name,
                operation=operation,
                outcome=outcome,
            ).inc()

    async def create_payment(self, request: dict[str, Any]) -> dict[str, Any]:
        """Create a payment that the user must approve. Returns {id, state, links, ...}."""
        return await self._post("create", "/v1/payments/payment", request)

    async def execute_payment(self, payment_id: str, request: dict[str, Any]) -> dict[str, Any]:
        """Execute (capture) a payment the user has approved."""
        return await self._post("execute", f"/v1/payments/payment/{quote(payment_id, safe='')}/execute", request)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
