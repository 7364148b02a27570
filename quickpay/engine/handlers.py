"""
Authorization-flow action handlers.

One handler per server-declared next action. Each turns the action's
requirements into terminal prompts, submits the answer for that action
kind and returns the server's next flow state (None when the flow has
ended). The redirect handler is the exception: it only shows the link and
never calls the payments API.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from quickpay.countries import provider_label
from quickpay.engine.eligibility import eligible_providers
from quickpay.engine.errors import ConsentDeclined, ProtocolError, UnsupportedInput
from quickpay.engine.images import decode_image, render_image
from quickpay.engine.inputs import Choice, TerminalPrompter, TextRule
from quickpay.providers.base import PaymentsApi
from quickpay.providers.schemas import (
    AuthorizationFlow,
    Base64Image,
    ConsentAction,
    FormAction,
    ProviderSelectionAction,
    RedirectAction,
    SelectInput,
    TextInput,
    TextWithImageInput,
)

Recorder = Callable[[str, dict[str, Any]], Awaitable[None]]


async def no_record(action: str, details: dict[str, Any]) -> None:
    return None


@dataclass
class FlowContext:
    """Everything a handler needs for one payment's authorization flow."""

    api: PaymentsApi
    prompter: TerminalPrompter
    payment_id: str
    recorder: Recorder = field(default=no_record)


async def handle_provider_selection(
    ctx: FlowContext, action: ProviderSelectionAction
) -> Optional[AuthorizationFlow]:
    """Offer every fully-described provider and submit the chosen provider's id."""
    options = [
        Choice(provider_label(provider.display_name, provider.country_code), provider.id)
        for provider in eligible_providers(action.providers)
    ]
    if not options:
        raise ProtocolError(
            f"None of the {len(action.providers)} providers offered can be displayed"
        )

    provider_id = ctx.prompter.collect_choice("Select provider", options)
    await ctx.recorder("provider_selected", {
        "provider_id": provider_id,
        "offered": len(options),
        "excluded": len(action.providers) - len(options),
    })
    response = await ctx.api.submit_provider_selection(ctx.payment_id, provider_id)
    return response.authorization_flow


async def handle_consent(ctx: FlowContext, action: ConsentAction) -> Optional[AuthorizationFlow]:
    """Ask for consent; a refusal stops the whole flow without calling the API."""
    if not ctx.prompter.confirm("Submit consent"):
        await ctx.recorder("consent_declined", {})
        raise ConsentDeclined("Consent was not given")

    await ctx.recorder("consent_submitted", {})
    response = await ctx.api.submit_consent(ctx.payment_id)
    return response.authorization_flow


def handle_redirect(ctx: FlowContext, action: RedirectAction) -> None:
    """
    Show the authorisation link to the operator.

    Authorization continues out-of-band (browser or bank app), so there is
    never a next flow state. Whether the payment succeeds is unknown here
    and only status polling can tell.
    """
    ctx.prompter.show(f"Authorisation link: \n{action.uri}\n")
    return None


async def handle_form(ctx: FlowContext, action: FormAction) -> Optional[AuthorizationFlow]:
    """Collect one answer per input in server order and submit them in one batch."""
    answers: dict[str, str] = {}
    for form_input in action.inputs:
        if isinstance(form_input, TextWithImageInput):
            _show_input_image(ctx, form_input)
            answers[form_input.id] = _collect_text(ctx, form_input)
        elif isinstance(form_input, TextInput):
            answers[form_input.id] = _collect_text(ctx, form_input)
        elif isinstance(form_input, SelectInput):
            answers[form_input.id] = ctx.prompter.collect_choice(
                form_input.display_text.default,
                [Choice(option.display_text.default, option.id) for option in form_input.options],
            )
        else:
            raise ProtocolError(f"Unhandled form input type: {type(form_input).__name__}")

    await ctx.recorder("form_submitted", {"input_ids": list(answers)})
    response = await ctx.api.submit_form_inputs(ctx.payment_id, answers)
    return response.authorization_flow


def _collect_text(ctx: FlowContext, form_input: TextInput | TextWithImageInput) -> str:
    return ctx.prompter.collect_text(
        form_input.display_text.default,
        min_length=form_input.min_length,
        max_length=form_input.max_length,
        rules=[TextRule(r.regex, r.message.default) for r in form_input.regexes],
        sensitive=form_input.sensitive,
    )


def _show_input_image(ctx: FlowContext, form_input: TextWithImageInput) -> None:
    if not isinstance(form_input.image, Base64Image):
        raise UnsupportedInput(
            f"Input {form_input.id!r} uses a remote image; URI images are not supported"
        )
    for row in render_image(decode_image(form_input.image.data)):
        ctx.prompter.show(row)
