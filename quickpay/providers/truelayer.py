"""
TrueLayer Payments API v3 client.

Auth:     OAuth 2.0 client credentials → Bearer access token (scope "payments").
Signing:  every POST carries an Idempotency-Key and a Tl-Signature (see signing.py).

Endpoints used
--------------
  POST /v3/payments                                                  create_payment
  GET  /v3/payments/{id}                                             get_payment
  POST /v3/payments/{id}/authorization-flow                          start_authorization_flow
  POST /v3/payments/{id}/authorization-flow/actions/provider-selection
  POST /v3/payments/{id}/authorization-flow/actions/consent
  POST /v3/payments/{id}/authorization-flow/actions/form

Error mapping
-------------
  429              → RateLimitError (Retry-After honoured by with_retry)
  502/503/504      → RemoteError, retriable
  other 5xx        → RemoteError, not retriable
  other 4xx        → PermanentError with the problem-details title/detail
  network failure  → RemoteError, retriable
  undecodable body → ProtocolError
"""

import json
import logging
import time
import uuid
from typing import Any, Optional

import httpx

from quickpay.engine.errors import (
    PermanentError,
    ProtocolError,
    RateLimitError,
    RemoteError,
)
from quickpay.engine.retry import RETRIABLE_STATUS_CODES
from quickpay.providers.base import PaymentsApi
from quickpay.providers.schemas import (
    AuthorizationFlowResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentStatusResponse,
    StartAuthorizationFlowRequest,
    parse_response,
)
from quickpay.providers.signing import sign_request

logger = logging.getLogger("quickpay.truelayer")

ENVIRONMENTS = {
    "sandbox": {
        "auth_url": "https://auth.truelayer-sandbox.com",
        "api_url": "https://api.truelayer-sandbox.com",
    },
    "production": {
        "auth_url": "https://auth.truelayer.com",
        "api_url": "https://api.truelayer.com",
    },
}

TOKEN_EXPIRY_MARGIN = 30.0


class TrueLayerPaymentsApi(PaymentsApi):
    """Async httpx client for the TrueLayer Payments API."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        signing_kid: str,
        signing_private_key: str,
        environment: str = "sandbox",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if environment not in ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment {environment!r}. Available: {list(ENVIRONMENTS)}"
            )
        urls = ENVIRONMENTS[environment]
        self._client_id = client_id
        self._client_secret = client_secret
        self._signing_kid = signing_kid
        self._signing_private_key = signing_private_key
        self._auth_url = urls["auth_url"]
        self._client = httpx.AsyncClient(
            base_url=urls["api_url"],
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0
        logger.debug("TrueLayer client initialised (environment=%s)", environment)

    @property
    def name(self) -> str:
        return "truelayer"

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # PaymentsApi interface
    # ------------------------------------------------------------------

    async def create_payment(self, request: CreatePaymentRequest) -> CreatePaymentResponse:
        data = await self._post("/v3/payments", request.to_wire())
        payment = parse_response(CreatePaymentResponse, data)
        logger.info(
            "Payment created: id=%s amount=%d %s",
            payment.id,
            request.amount_in_minor,
            request.currency.value,
        )
        return payment

    async def get_payment(self, payment_id: str) -> PaymentStatusResponse:
        data = await self._get(f"/v3/payments/{payment_id}")
        return parse_response(PaymentStatusResponse, data)

    async def start_authorization_flow(
        self,
        payment_id: str,
        capabilities: StartAuthorizationFlowRequest,
    ) -> AuthorizationFlowResponse:
        data = await self._post(
            f"/v3/payments/{payment_id}/authorization-flow",
            capabilities.model_dump(mode="json", exclude_none=True),
        )
        return parse_response(AuthorizationFlowResponse, data)

    async def submit_provider_selection(
        self, payment_id: str, provider_id: str
    ) -> AuthorizationFlowResponse:
        data = await self._post(
            f"/v3/payments/{payment_id}/authorization-flow/actions/provider-selection",
            {"provider_id": provider_id},
        )
        return parse_response(AuthorizationFlowResponse, data)

    async def submit_consent(self, payment_id: str) -> AuthorizationFlowResponse:
        data = await self._post(
            f"/v3/payments/{payment_id}/authorization-flow/actions/consent",
            {},
        )
        return parse_response(AuthorizationFlowResponse, data)

    async def submit_form_inputs(
        self, payment_id: str, inputs: dict[str, str]
    ) -> AuthorizationFlowResponse:
        data = await self._post(
            f"/v3/payments/{payment_id}/authorization-flow/actions/form",
            {"inputs": inputs},
        )
        return parse_response(AuthorizationFlowResponse, data)

    # ------------------------------------------------------------------
    # Internal: auth + HTTP helpers
    # ------------------------------------------------------------------

    async def _ensure_token(self) -> str:
        if self._access_token and time.time() < self._token_expiry - TOKEN_EXPIRY_MARGIN:
            return self._access_token
        try:
            response = await self._client.post(
                f"{self._auth_url}/connect/token",
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": "payments",
                },
            )
        except httpx.RequestError as e:
            raise RemoteError(f"Token request failed: {e}", status_code=0, retriable=True) from e
        data = _decode(response)
        try:
            self._access_token = data["access_token"]
        except (KeyError, TypeError) as e:
            raise ProtocolError("Token response has no access_token") from e
        expires_in = int(data.get("expires_in", 3600))
        self._token_expiry = time.time() + expires_in
        logger.debug("Access token refreshed (expires in %ds)", expires_in)
        return self._access_token

    async def _get(self, path: str) -> Any:
        token = await self._ensure_token()
        try:
            response = await self._client.get(path, headers={"Authorization": f"Bearer {token}"})
        except httpx.RequestError as e:
            raise RemoteError(f"GET {path} failed: {e}", status_code=0, retriable=True) from e
        return self._handle(response)

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        token = await self._ensure_token()
        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        idempotency_key = str(uuid.uuid4())
        signature = sign_request(
            self._signing_kid,
            self._signing_private_key,
            "POST",
            path,
            [("Idempotency-Key", idempotency_key)],
            body,
        )
        try:
            response = await self._client.post(
                path,
                content=body,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                    "Idempotency-Key": idempotency_key,
                    "Tl-Signature": signature,
                },
            )
        except httpx.RequestError as e:
            raise RemoteError(f"POST {path} failed: {e}", status_code=0, retriable=True) from e
        return self._handle(response)

    def _handle(self, response: httpx.Response) -> Any:
        if response.status_code == 401:
            self._access_token = None
        return _decode(response)


def _decode(response: httpx.Response) -> Any:
    """Map error statuses to RemoteError subclasses and decode the JSON body."""
    status = response.status_code

    if status == 429:
        raise RateLimitError(
            message=f"Rate limited: {_problem(response)}",
            retry_after=_retry_after(response),
        )
    if status >= 500:
        raise RemoteError(
            f"Server error {status}: {_problem(response)}",
            status_code=status,
            retriable=status in RETRIABLE_STATUS_CODES,
        )
    if status >= 400:
        raise PermanentError(_problem(response), status_code=status)

    if status == 204 or not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise ProtocolError(f"Undecodable response body (HTTP {status})") from e


def _problem(response: httpx.Response) -> str:
    """Render an RFC 7807 problem-details body as one line."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or f"HTTP {response.status_code}"
    if not isinstance(body, dict):
        return str(body)[:200]

    message = body.get("title") or f"HTTP {response.status_code}"
    if body.get("detail"):
        message = f"{message}: {body['detail']}"
    errors = body.get("errors")
    if isinstance(errors, dict) and errors:
        fields = "; ".join(
            f"{field}: {', '.join(map(str, reasons)) if isinstance(reasons, list) else reasons}"
            for field, reasons in errors.items()
        )
        message = f"{message} ({fields})"
    if body.get("trace_id"):
        message = f"{message} [trace_id={body['trace_id']}]"
    return message


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
