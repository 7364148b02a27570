from quickpay.models.enums import (
    Currency,
    FlowOutcome,
    InputType,
    PaymentStatus,
    SkipReason,
)
from quickpay.models.payment import AuditLog, Base, Payment

__all__ = [
    "Base",
    "Payment",
    "AuditLog",
    "Currency",
    "FlowOutcome",
    "InputType",
    "PaymentStatus",
    "SkipReason",
]
