"""
Local payment history and trace endpoints.

GET /payments             List recorded payments with filters (status, flow outcome).
GET /payments/{id}        Get a single recorded payment.
GET /payments/{id}/trace  Full authorization audit trail for a payment.
"""

import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quickpay.database import get_session
from quickpay.models.payment import AuditLog, Payment

router = APIRouter(prefix="/payments", tags=["payments"])


class PaymentDetail(BaseModel):
    id: str
    user_id: Optional[str]
    amount_in_minor: int
    currency: str
    beneficiary_name: str
    reference: Optional[str]
    account_identifier_type: Optional[str]
    status: str
    flow_outcome: Optional[str]
    flow_steps: int
    failure_reason: Optional[str]
    notes: Optional[str]
    created_at: Optional[str]
    updated_at: Optional[str]

    model_config = {"from_attributes": True}


class AuditEntry(BaseModel):
    id: int
    action: str
    details: Optional[dict] = None
    timestamp: Optional[str]

    model_config = {"from_attributes": True}


class PaymentTrace(BaseModel):
    payment: PaymentDetail
    audit_trail: list[AuditEntry]


def _payment_to_detail(p: Payment) -> PaymentDetail:
    return PaymentDetail(
        id=p.id,
        user_id=p.user_id,
        amount_in_minor=p.amount_in_minor,
        currency=p.currency,
        beneficiary_name=p.beneficiary_name,
        reference=p.reference,
        account_identifier_type=p.account_identifier_type,
        status=p.status,
        flow_outcome=p.flow_outcome,
        flow_steps=p.flow_steps or 0,
        failure_reason=p.failure_reason,
        notes=p.notes,
        created_at=p.created_at.isoformat() if p.created_at else None,
        updated_at=p.updated_at.isoformat() if p.updated_at else None,
    )


@router.get("", response_model=list[PaymentDetail])
async def list_payments(
    status: Optional[str] = Query(None, description="Filter by payment status"),
    flow_outcome: Optional[str] = Query(None, description="Filter by authorization flow outcome"),
    session: AsyncSession = Depends(get_session),
):
    """List recorded payments, newest first."""
    stmt = select(Payment)

    if status:
        stmt = stmt.where(Payment.status == status)
    if flow_outcome:
        stmt = stmt.where(Payment.flow_outcome == flow_outcome)

    stmt = stmt.order_by(Payment.created_at.desc())
    result = await session.execute(stmt)
    return [_payment_to_detail(p) for p in result.scalars().all()]


@router.get("/{payment_id}", response_model=PaymentDetail)
async def get_payment(payment_id: str, session: AsyncSession = Depends(get_session)):
    payment = await session.get(Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"Payment not found: {payment_id}")
    return _payment_to_detail(payment)


@router.get("/{payment_id}/trace", response_model=PaymentTrace)
async def get_payment_trace(payment_id: str, session: AsyncSession = Depends(get_session)):
    """
    Full audit trail for a payment.

    Returns the payment plus every audit log entry in chronological order:
    the actions the server declared, what was submitted for each, and the
    status changes seen while polling.
    """
    payment = await session.get(Payment, payment_id)
    if not payment:
        raise HTTPException(status_code=404, detail=f"Payment not found: {payment_id}")

    result = await session.execute(
        select(AuditLog)
        .where(AuditLog.payment_id == payment_id)
        .order_by(AuditLog.timestamp.asc(), AuditLog.id.asc())
    )
    logs = result.scalars().all()

    audit_trail = []
    for log in logs:
        details = None
        if log.details:
            try:
                details = json.loads(log.details)
            except (json.JSONDecodeError, TypeError):
                details = {"raw": log.details}

        audit_trail.append(AuditEntry(
            id=log.id,
            action=log.action,
            details=details,
            timestamp=log.timestamp.isoformat() if log.timestamp else None,
        ))

    return PaymentTrace(
        payment=_payment_to_detail(payment),
        audit_trail=audit_trail,
    )
