"""
Error taxonomy for the payment authorization flow.

Only ValidationError is recovered locally (the text prompt re-asks).
Everything else aborts the authorization flow and bubbles up to the
orchestrator, which records the failure and re-raises.
"""


class QuickPayError(Exception):
    """Base class for all QuickPay errors."""


class ConfigurationError(QuickPayError):
    """Required settings are missing or invalid."""


class InputError(QuickPayError):
    """The terminal interaction could not complete (closed stream, I/O failure)."""


class ValidationError(QuickPayError):
    """User-entered text failed a length or pattern constraint."""


class ConsentDeclined(QuickPayError):
    """The user explicitly refused consent. An intentional stop, not a bug."""


class UnsupportedInput(QuickPayError, NotImplementedError):
    """A form input needs a capability this client does not have."""


class ProtocolError(QuickPayError):
    """A server response violates the expected shape."""


class MissingActions(ProtocolError):
    """An authorization flow was returned without any next action."""

    def __init__(self, message: str = "authorization flow has no actions"):
        super().__init__(message)


class ImageDecodeError(ProtocolError):
    """An inline form image could not be decoded."""


class PaymentNotTerminal(QuickPayError):
    """Status polling ended before the payment reached a terminal status."""

    def __init__(self, payment_id: str, status: str):
        super().__init__(f"Payment {payment_id} did not reach a terminal status (last: {status})")
        self.payment_id = payment_id
        self.status = status


class RemoteError(QuickPayError):
    """A call to the payments API failed."""

    def __init__(self, message: str, status_code: int = 500, retriable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retriable = retriable


class RateLimitError(RemoteError):
    """429 Too Many Requests from the payments API."""

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None):
        super().__init__(message, status_code=429, retriable=True)
        self.retry_after = retry_after


class PermanentError(RemoteError):
    """Non-retriable error (e.g. invalid request, rejected form answers)."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code=status_code, retriable=False)
