"""SQLAlchemy models for locally recorded payments."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """
    A payment created through QuickPay.

    The primary key is the payments API's own payment id. Tracks the full
    lifecycle: creation → authorization flow → status polling → terminal
    status. flow_outcome records how the local authorization loop ended;
    status is only ever what the payments API reported.
    """

    __tablename__ = "payments"

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=True)
    amount_in_minor = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False)
    beneficiary_name = Column(String(200), nullable=False)
    reference = Column(String(200), nullable=True)
    account_identifier_type = Column(String(40), nullable=True)  # "iban", "sort_code_account_number"

    status = Column(String(30), nullable=False, default="authorization_required")
    flow_outcome = Column(String(20), nullable=True)  # "wait", "redirect", "completed", "failed", "declined"
    flow_steps = Column(Integer, default=0)
    failure_reason = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    audit_logs = relationship("AuditLog", back_populates="payment", lazy="raise")


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Every authorization step (flow started, action received, provider
    selected, consent submitted, form submitted, redirect issued) and every
    status change gets an entry. Entries are append-only and never modified.
    Form answers are never stored, only input ids.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_id = Column(String(64), ForeignKey("payments.id"), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)

    payment = relationship("Payment", back_populates="audit_logs")
