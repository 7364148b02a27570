"""
Provider eligibility checks with categorized skip reasons.

Before a provider is offered to the user, we verify:
  1. It has a display name
  2. It has a country code

Only fully-described providers make it into the selection list, so the
offered list is never longer than what the server sent.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from quickpay.models.enums import SkipReason
from quickpay.providers.schemas import Provider

logger = logging.getLogger("quickpay.eligibility")


@dataclass
class EligibilityResult:
    """Result of an eligibility check."""

    eligible: bool
    skip_reason: Optional[SkipReason] = None
    message: str = ""


def check_provider(provider: Provider) -> EligibilityResult:
    """
    Check whether a provider can be offered for selection.

    Returns:
        EligibilityResult indicating pass/fail with categorized reason.
    """
    if not provider.display_name:
        return EligibilityResult(
            eligible=False,
            skip_reason=SkipReason.MISSING_DISPLAY_NAME,
            message=f"Provider {provider.id} has no display name",
        )

    if not provider.country_code:
        return EligibilityResult(
            eligible=False,
            skip_reason=SkipReason.MISSING_COUNTRY,
            message=f"Provider {provider.id} has no country code",
        )

    return EligibilityResult(eligible=True)


def eligible_providers(providers: list[Provider]) -> list[Provider]:
    """Providers that pass check_provider, in server order."""
    eligible = []
    for provider in providers:
        result = check_provider(provider)
        if not result.eligible:
            logger.debug("Skipping provider: %s", result.message)
            continue
        eligible.append(provider)
    return eligible
