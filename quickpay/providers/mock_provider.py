"""
Scripted mock of the payments API.

Replays a queue of authorization-flow responses, one per start/submit call,
and records every call so tests can assert what was (and was not) submitted.
Payment status reads replay a separate queue of statuses; the last one
repeats once the queue is exhausted.

    api = MockPaymentsApi(
        flow=[
            {"authorization_flow": {"actions": {"next": {"type": "consent"}}}},
            {"authorization_flow": {"actions": {"next": {"type": "wait"}}}},
        ],
        statuses=["authorizing", "executed"],
    )
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from quickpay.engine.errors import ProtocolError, RemoteError
from quickpay.providers.base import PaymentsApi
from quickpay.providers.schemas import (
    AuthorizationFlowResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentStatusResponse,
    PaymentUserRef,
    StartAuthorizationFlowRequest,
    parse_response,
)

_TIMESTAMP_FIELDS = {
    "executed": "executed_at",
    "settled": "settled_at",
    "failed": "failed_at",
}

DEMO_PROVIDERS = [
    {"id": "mock-payments-gb-redirect", "display_name": "Mock UK Bank", "country_code": "GB"},
    {"id": "mock-payments-de-embedded", "display_name": "Mock Bank DE", "country_code": "DE"},
    {"id": "mock-payments-nl-redirect", "display_name": "Mock Bank NL", "country_code": "NL"},
]


def _next_action(action: dict[str, Any]) -> dict[str, Any]:
    return {"status": "authorizing", "authorization_flow": {"actions": {"next": action}}}


class MockPaymentsApi(PaymentsApi):
    """
    In-process stand-in for the payments API.

    Each entry of `flow` is either a response body (dict) or an exception
    instance, raised when its turn comes. Each entry of `statuses` is a
    status string, a full status body (dict) or an exception instance.
    """

    def __init__(
        self,
        flow: Optional[list[Any]] = None,
        statuses: Optional[list[Any]] = None,
        payment_id: Optional[str] = None,
    ):
        self._flow = list(flow or [])
        self._statuses = list(statuses or ["executed"])
        self._last_status: Any = self._statuses[-1]
        self.payment_id = payment_id or f"pay_{uuid.uuid4().hex[:16]}"
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @classmethod
    def demo(cls) -> "MockPaymentsApi":
        """Script used by `quickpay pay --dry-run`: provider selection, consent, wait, executed."""
        return cls(
            flow=[
                _next_action({"type": "provider_selection", "providers": DEMO_PROVIDERS}),
                _next_action({"type": "consent"}),
                _next_action({"type": "wait"}),
            ],
            statuses=["authorizing", "authorized", "executed"],
        )

    @property
    def name(self) -> str:
        return "mock"

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [args for name, args in self.calls if name == method]

    async def create_payment(self, request: CreatePaymentRequest) -> CreatePaymentResponse:
        self.calls.append(("create_payment", {"request": request}))
        return CreatePaymentResponse(
            id=self.payment_id,
            user=PaymentUserRef(id=f"usr_{uuid.uuid4().hex[:12]}"),
            resource_token="mock-resource-token",
            status="authorization_required",
        )

    async def get_payment(self, payment_id: str) -> PaymentStatusResponse:
        self.calls.append(("get_payment", {"payment_id": payment_id}))
        entry = self._statuses.pop(0) if self._statuses else self._last_status
        if isinstance(entry, Exception):
            raise entry
        if isinstance(entry, str):
            entry = self._status_body(payment_id, entry)
        return parse_response(PaymentStatusResponse, entry)

    async def start_authorization_flow(
        self,
        payment_id: str,
        capabilities: StartAuthorizationFlowRequest,
    ) -> AuthorizationFlowResponse:
        self.calls.append(
            ("start_authorization_flow", {"payment_id": payment_id, "capabilities": capabilities})
        )
        return self._next_flow()

    async def submit_provider_selection(
        self, payment_id: str, provider_id: str
    ) -> AuthorizationFlowResponse:
        self.calls.append(
            ("submit_provider_selection", {"payment_id": payment_id, "provider_id": provider_id})
        )
        return self._next_flow()

    async def submit_consent(self, payment_id: str) -> AuthorizationFlowResponse:
        self.calls.append(("submit_consent", {"payment_id": payment_id}))
        return self._next_flow()

    async def submit_form_inputs(
        self, payment_id: str, inputs: dict[str, str]
    ) -> AuthorizationFlowResponse:
        self.calls.append(("submit_form_inputs", {"payment_id": payment_id, "inputs": dict(inputs)}))
        return self._next_flow()

    def _next_flow(self) -> AuthorizationFlowResponse:
        if not self._flow:
            raise RemoteError("Mock flow script exhausted", status_code=409, retriable=False)
        entry = self._flow.pop(0)
        if isinstance(entry, Exception):
            raise entry
        if not isinstance(entry, dict):
            raise ProtocolError(f"Mock flow entries must be dicts, got {type(entry).__name__}")
        return parse_response(AuthorizationFlowResponse, entry)

    def _status_body(self, payment_id: str, status: str) -> dict[str, Any]:
        body: dict[str, Any] = {"id": payment_id, "status": status}
        field = _TIMESTAMP_FIELDS.get(status)
        if field:
            body[field] = datetime.now(timezone.utc).isoformat()
        if status == "failed":
            body["failure_stage"] = "authorizing"
            body["failure_reason"] = "authorization_failed"
        return body
