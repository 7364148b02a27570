from quickpay.countries.flags import COUNTRY_FLAGS, SUPPORTED_COUNTRIES, flag_for, provider_label

__all__ = ["COUNTRY_FLAGS", "SUPPORTED_COUNTRIES", "flag_for", "provider_label"]
