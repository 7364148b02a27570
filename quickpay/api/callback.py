"""
Redirect landing page.

GET /callback?payment_id=... is where the bank sends the payer back after a
redirect authorization (the configured redirect_uri). Arriving here does not
mean the payment succeeded; it only marks the return in the audit trail.
The CLI keeps polling for the real status.
"""

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from quickpay.audit.logger import log_event
from quickpay.database import get_session
from quickpay.models.payment import Payment

router = APIRouter(tags=["callback"])

_PAGE = """<!doctype html>
<html>
  <head><title>QuickPay</title></head>
  <body>
    <h1>{title}</h1>
    <p>{message}</p>
  </body>
</html>
"""


@router.get("/callback", response_class=HTMLResponse)
async def redirect_return(
    payment_id: Optional[str] = Query(None, description="Payment the payer is returning from"),
    error: Optional[str] = Query(None, description="Error code set by the provider, if any"),
    session: AsyncSession = Depends(get_session),
):
    if not payment_id:
        return HTMLResponse(
            _PAGE.format(title="Unknown payment", message="No payment_id in the return URL."),
            status_code=400,
        )

    payment = await session.get(Payment, payment_id)
    if payment is None:
        return HTMLResponse(
            _PAGE.format(
                title="Unknown payment",
                message=f"Payment {escape(payment_id)} was not created by this QuickPay instance.",
            ),
            status_code=404,
        )

    details = {"error": error} if error else {}
    await log_event(session, "redirect_returned", payment_id=payment.id, details=details or None)
    await session.commit()

    return HTMLResponse(
        _PAGE.format(
            title="Authorization returned",
            message=(
                f"Payment {escape(payment.id)} is back from the bank. "
                "You can close this window; QuickPay reports the final status in the terminal."
            ),
        )
    )
