"""Enumerations for the QuickPay domain model."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment lifecycle states reported by the payments API."""

    AUTHORIZATION_REQUIRED = "authorization_required"
    AUTHORIZING = "authorizing"
    AUTHORIZED = "authorized"
    EXECUTED = "executed"
    SETTLED = "settled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentStatus.EXECUTED, PaymentStatus.SETTLED, PaymentStatus.FAILED)


class InputType(str, Enum):
    """Additional input kinds a form action can carry."""

    TEXT = "text"
    TEXT_WITH_IMAGE = "text_with_image"
    SELECT = "select"


class FlowOutcome(str, Enum):
    """
    How the authorization flow loop ended locally.

    None of these say anything about the payment's own outcome; only status
    polling does.
    """

    WAIT = "wait"
    REDIRECT = "redirect"
    COMPLETED = "completed"
    FAILED = "failed"
    DECLINED = "declined"


class Currency(str, Enum):
    GBP = "GBP"
    EUR = "EUR"


class SkipReason(str, Enum):
    """Reasons a provider is left out of the selection list."""

    MISSING_DISPLAY_NAME = "missing_display_name"
    MISSING_COUNTRY = "missing_country"
