"""
Authorization flow driver, the state machine at the heart of QuickPay.

Starts the flow for a payment, then loops:

  1. Inspect the current flow state (None → terminated)
  2. Require a next action (absent → MissingActions)
  3. Dispatch to the handler for that action type
  4. Replace the state with whatever the handler returns

wait and redirect always terminate the loop. One action is fully resolved,
user input and network round-trip included, before the next is requested.
Any handler or API error aborts the flow immediately; nothing is retried.

Termination says nothing about the payment itself: after a redirect or a
wait the outcome is undetermined until the payment status is polled.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from quickpay.engine.errors import MissingActions, ProtocolError
from quickpay.engine.handlers import (
    FlowContext,
    Recorder,
    handle_consent,
    handle_form,
    handle_provider_selection,
    handle_redirect,
    no_record,
)
from quickpay.engine.inputs import TerminalPrompter
from quickpay.models.enums import FlowOutcome
from quickpay.providers.base import PaymentsApi
from quickpay.providers.schemas import (
    AuthorizationFlow,
    ConsentAction,
    FormAction,
    ProviderSelectionAction,
    RedirectAction,
    WaitAction,
    supported_capabilities,
)

logger = logging.getLogger("quickpay.auth_flow")


@dataclass
class FlowResult:
    """How the local loop ended and how many actions it resolved."""

    outcome: FlowOutcome
    steps: int


async def run_authorization_flow(
    api: PaymentsApi,
    prompter: TerminalPrompter,
    payment_id: str,
    return_uri: str,
    recorder: Optional[Recorder] = None,
) -> FlowResult:
    """
    Drive a payment's authorization flow until no action remains.

    Args:
        api: Payments API client.
        prompter: Terminal used for every user decision.
        payment_id: The payment being authorized.
        return_uri: Where the bank sends the user back after a redirect.
        recorder: Optional async callback receiving (action, details) per step.

    Returns:
        FlowResult naming the terminating step.

    Raises:
        QuickPayError: Any handler, protocol or API failure, unchanged.
    """
    ctx = FlowContext(api=api, prompter=prompter, payment_id=payment_id, recorder=recorder or no_record)

    response = await api.start_authorization_flow(payment_id, supported_capabilities(return_uri))
    await ctx.recorder("authorization_flow_started", {"status": response.status})

    state: Optional[AuthorizationFlow] = response.authorization_flow
    outcome = FlowOutcome.COMPLETED
    steps = 0

    while state is not None:
        if state.actions is None:
            raise MissingActions()
        action = state.actions.next
        steps += 1
        logger.info("Payment %s: next action %s (step %d)", payment_id, action.type, steps)
        await ctx.recorder("action_received", {"type": action.type, "step": steps})

        if isinstance(action, ProviderSelectionAction):
            state = await handle_provider_selection(ctx, action)
        elif isinstance(action, ConsentAction):
            state = await handle_consent(ctx, action)
        elif isinstance(action, FormAction):
            state = await handle_form(ctx, action)
        elif isinstance(action, RedirectAction):
            handle_redirect(ctx, action)
            await ctx.recorder("redirect_issued", {"uri": action.uri})
            state = None
            outcome = FlowOutcome.REDIRECT
        elif isinstance(action, WaitAction):
            state = None
            outcome = FlowOutcome.WAIT
        else:
            raise ProtocolError(f"Unhandled next action: {type(action).__name__}")

    await ctx.recorder("authorization_flow_ended", {"outcome": outcome.value, "steps": steps})
    logger.info("Payment %s: authorization flow ended (%s after %d steps)", payment_id, outcome.value, steps)
    return FlowResult(outcome=outcome, steps=steps)
