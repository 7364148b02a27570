"""
Payment orchestrator: creates a payment and sees it through.

The flow for each payment:

  1. Create the payment via the payments API and record it locally
  2. Drive the authorization flow (every step lands in the audit trail)
  3. Poll the payment until it reaches a terminal status
  4. Record the terminal status

Any authorization failure is recorded on the local payment and re-raised
without polling. Status reads are the only calls retried on transient errors.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickpay.audit.logger import append_note, log_event
from quickpay.engine.auth_flow import FlowResult, run_authorization_flow
from quickpay.engine.errors import ConsentDeclined, PaymentNotTerminal
from quickpay.engine.inputs import TerminalPrompter
from quickpay.engine.retry import with_retry
from quickpay.models.enums import FlowOutcome, PaymentStatus
from quickpay.models.payment import Payment
from quickpay.providers.base import PaymentsApi
from quickpay.providers.schemas import CreatePaymentRequest, PaymentStatusResponse

logger = logging.getLogger("quickpay.orchestrator")

StatusCallback = Callable[[PaymentStatusResponse], Awaitable[None]]


@dataclass
class PaymentOutcome:
    """A payment after its authorization flow and status polling."""

    payment: Payment
    flow: FlowResult
    status: PaymentStatusResponse


async def execute_payment(
    session: AsyncSession,
    api: PaymentsApi,
    prompter: TerminalPrompter,
    request: CreatePaymentRequest,
    return_uri: str,
    poll_interval: float = 1.0,
    poll_timeout: float = 300.0,
) -> PaymentOutcome:
    """
    Create a payment, authorize it interactively and wait for its terminal status.

    Args:
        session: Database session for the local record and audit trail.
        api: Payments API client.
        prompter: Terminal used for every user decision.
        request: The payment to create.
        return_uri: Redirect return URI advertised to the authorization flow.
        poll_interval: Seconds between status reads.
        poll_timeout: Seconds before polling gives up with PaymentNotTerminal.

    Returns:
        The PaymentOutcome with the terminal status.
    """
    created = await api.create_payment(request)

    identifier = request.beneficiary.account_identifier
    payment = Payment(
        id=created.id,
        user_id=created.user.id if created.user else None,
        amount_in_minor=request.amount_in_minor,
        currency=request.currency.value,
        beneficiary_name=request.beneficiary.account_holder_name,
        reference=request.beneficiary.reference,
        account_identifier_type=identifier.type,
        status=created.status.value,
    )
    payment.notes = append_note(None, f"Payment created via {api.name}")
    session.add(payment)
    await log_event(session, "payment_created", payment_id=payment.id, details={
        "amount_in_minor": request.amount_in_minor,
        "currency": request.currency.value,
        "provider": api.name,
    })
    await session.commit()

    async def record(action: str, details: dict[str, Any]) -> None:
        await log_event(session, action, payment_id=payment.id, details=details)

    try:
        flow = await run_authorization_flow(api, prompter, payment.id, return_uri, recorder=record)
    except ConsentDeclined as e:
        payment.flow_outcome = FlowOutcome.DECLINED.value
        payment.notes = append_note(payment.notes, f"Consent declined: {e}")
        await log_event(session, "authorization_flow_declined", payment_id=payment.id, details={
            "error": str(e),
        })
        await session.commit()
        raise
    except Exception as e:
        payment.flow_outcome = FlowOutcome.FAILED.value
        payment.notes = append_note(payment.notes, f"Authorization failed: {e}")
        await log_event(session, "authorization_flow_failed", payment_id=payment.id, details={
            "error": str(e),
            "error_type": type(e).__name__,
        })
        await session.commit()
        raise

    payment.flow_outcome = flow.outcome.value
    payment.flow_steps = flow.steps
    payment.notes = append_note(payment.notes, f"Authorization flow ended: {flow.outcome.value}")
    await session.commit()

    async def on_status(status: PaymentStatusResponse) -> None:
        payment.status = status.status.value
        await log_event(session, "status_changed", payment_id=payment.id, details={
            "status": status.status.value,
        })
        await session.commit()

    try:
        status = await poll_until_terminal(
            api,
            payment.id,
            interval=poll_interval,
            timeout=poll_timeout,
            on_change=on_status,
        )
    except Exception as e:
        payment.notes = append_note(payment.notes, f"Status polling failed: {e}")
        await log_event(session, "status_poll_failed", payment_id=payment.id, details={
            "error": str(e),
        })
        await session.commit()
        raise

    payment.failure_reason = status.failure_reason
    payment.notes = append_note(payment.notes, format_status_line(status))
    await log_event(session, "payment_terminal", payment_id=payment.id, details={
        "status": status.status.value,
        "failure_stage": status.failure_stage,
        "failure_reason": status.failure_reason,
    })
    await session.commit()

    logger.info(
        "Payment %s: flow=%s status=%s",
        payment.id,
        flow.outcome.value,
        status.status.value,
    )
    return PaymentOutcome(payment=payment, flow=flow, status=status)


async def poll_until_terminal(
    api: PaymentsApi,
    payment_id: str,
    interval: float = 1.0,
    timeout: float = 300.0,
    on_change: Optional[StatusCallback] = None,
) -> PaymentStatusResponse:
    """
    Read the payment's status until it is executed, settled or failed.

    Each read goes through with_retry. on_change is awaited whenever the
    status differs from the previous read.

    Raises:
        PaymentNotTerminal: If the timeout elapses first.
        RemoteError: On a permanent failure or exhausted retries.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    last: Optional[PaymentStatus] = None

    while True:
        status = await with_retry(api.get_payment, payment_id)
        if status.status != last:
            logger.info("Payment %s status: %s", payment_id, status.status.value)
            last = status.status
            if on_change is not None:
                await on_change(status)
        if status.status.is_terminal:
            return status
        if loop.time() + interval > deadline:
            raise PaymentNotTerminal(payment_id, status.status.value)
        await asyncio.sleep(interval)


def format_status_line(status: PaymentStatusResponse) -> str:
    """Final line shown to the operator for a terminal status."""
    if status.status == PaymentStatus.EXECUTED:
        return f"Payment executed at {status.executed_at}"
    if status.status == PaymentStatus.SETTLED:
        return f"Payment settled at {status.settled_at}"
    if status.status == PaymentStatus.FAILED:
        reason = status.failure_reason or "unknown reason"
        return f"Payment failed at {status.failed_at} ({reason})"
    raise PaymentNotTerminal(status.id, status.status.value)
