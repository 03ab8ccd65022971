"""Shared utilities used across the scheduling and alerting pipelines."""

import re


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(918) 856-5304")
        '9188565304'
        >>> normalize_phone("+1 918 856 5304")
        '+19188565304'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def to_e164(value: str, default_country_code: str = "1") -> str:
    """Format a phone number in E.164 for SMS delivery.

    Ten-digit national numbers get the default country code.

    Examples:
        >>> to_e164("(918) 856-5304")
        '+19188565304'
        >>> to_e164("+44 20 7946 0958")
        '+442079460958'
    """
    cleaned = normalize_phone(value)
    if cleaned.startswith("+"):
        return cleaned
    if len(cleaned) == 10:
        cleaned = default_country_code + cleaned
    return "+" + cleaned
