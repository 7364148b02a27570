"""
Country-code to flag glyph table for provider labels.

Maps the ISO 3166-1 alpha-2 codes the payments API can attach to a provider
to their regional-indicator flag. The table is closed: a code outside it is
a contract mismatch with the server and raises ProtocolError instead of
falling back to a placeholder glyph.
"""

from quickpay.engine.errors import ProtocolError

COUNTRY_FLAGS: dict[str, str] = {
    # ─── SEPA Zone (EUR) ───────────────────────────────────────────────
    "DE": "🇩🇪",  # Germany
    "ES": "🇪🇸",  # Spain
    "FR": "🇫🇷",  # France
    "IE": "🇮🇪",  # Ireland
    "IT": "🇮🇹",  # Italy
    "LT": "🇱🇹",  # Lithuania
    "NL": "🇳🇱",  # Netherlands
    "PT": "🇵🇹",  # Portugal
    # ─── UK (GBP) ──────────────────────────────────────────────────────
    "GB": "🇬🇧",
    # ─── Poland (PLN) ──────────────────────────────────────────────────
    "PL": "🇵🇱",
}

SUPPORTED_COUNTRIES = set(COUNTRY_FLAGS.keys())


def flag_for(country_code: str) -> str:
    """
    Flag glyph for a provider's country code.

    Raises:
        ProtocolError: If the code is not in COUNTRY_FLAGS.
    """
    try:
        return COUNTRY_FLAGS[country_code]
    except KeyError:
        raise ProtocolError(f"Unmapped provider country code: {country_code!r}") from None


def provider_label(display_name: str, country_code: str) -> str:
    """Selection label: '<flag> <display name>'."""
    return f"{flag_for(country_code)} {display_name}"
