"""
Immutable audit trail for payment authorization.

Every step gets an append-only audit log entry with:
  - Payment ID (which payment it relates to)
  - Action (what happened)
  - Details (action type, chosen provider, input ids, status, errors)
  - Timestamp (UTC)

Form answers and secrets never reach the details; callers pass input ids only.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quickpay.models.payment import AuditLog

logger = logging.getLogger("quickpay.audit")


async def log_event(
    session: AsyncSession,
    action: str,
    payment_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an immutable audit log entry.

    Args:
        session: Database session.
        action: What happened (e.g. "payment_created", "provider_selected", "status_polled").
        payment_id: The payment this event relates to.
        details: Arbitrary context (serialized to JSON).

    Returns:
        The created AuditLog record.
    """
    entry = AuditLog(
        payment_id=payment_id,
        action=action,
        details=json.dumps(details) if details else None,
        timestamp=datetime.now(timezone.utc),
    )
    session.add(entry)
    logger.info(
        "AUDIT | payment=%s action=%s | %s",
        payment_id or "-",
        action,
        json.dumps(details)[:200] if details else "",
    )
    return entry


def append_note(existing_notes: Optional[str], message: str) -> str:
    """Append a timestamped note to a payment's notes field."""
    prefix = f"[{datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}] "
    new_note = prefix + message
    if not existing_notes:
        return new_note
    return f"{existing_notes}\n{new_note}"
