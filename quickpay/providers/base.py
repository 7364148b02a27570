"""
Abstract payments API interface.

The authorization flow driver and the orchestrator only talk to this
interface. TrueLayerPaymentsApi wraps the real HTTP API; MockPaymentsApi
replays scripted responses for tests and dry runs.
"""

from abc import ABC, abstractmethod

from quickpay.providers.schemas import (
    AuthorizationFlowResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentStatusResponse,
    StartAuthorizationFlowRequest,
)


class PaymentsApi(ABC):
    """Abstract base class for payments API clients."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Client identifier (e.g. 'truelayer')."""
        ...

    @abstractmethod
    async def create_payment(self, request: CreatePaymentRequest) -> CreatePaymentResponse:
        """
        Create a payment awaiting authorization.

        Raises:
            RemoteError: On any failed call.
        """
        ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> PaymentStatusResponse:
        """Read the current status of a payment."""
        ...

    @abstractmethod
    async def start_authorization_flow(
        self,
        payment_id: str,
        capabilities: StartAuthorizationFlowRequest,
    ) -> AuthorizationFlowResponse:
        """Start the authorization flow, declaring which actions this client supports."""
        ...

    @abstractmethod
    async def submit_provider_selection(
        self, payment_id: str, provider_id: str
    ) -> AuthorizationFlowResponse:
        ...

    @abstractmethod
    async def submit_consent(self, payment_id: str) -> AuthorizationFlowResponse:
        ...

    @abstractmethod
    async def submit_form_inputs(
        self, payment_id: str, inputs: dict[str, str]
    ) -> AuthorizationFlowResponse:
        """
        Submit every answer of a form action in one batch.

        The server re-validates the answers; a rejection surfaces as a
        PermanentError, not a retry.
        """
        ...

    async def close(self) -> None:
        """Release any underlying connections."""
        return None
