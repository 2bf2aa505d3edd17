"""Phone number normalization to E.164 so one number maps to one contact."""

import phonenumbers


def normalize_phone(raw: str, default_region: str | None = None) -> str | None:
    """Parse and return E.164 form of the number, or None if invalid.

    Use default_region when the input has no leading + (e.g. "202 555 1234"
    with default_region "US"). If the number already includes a country
    code, default_region is ignored.
    """
    if not raw or not str(raw).strip():
        return None
    raw = str(raw).strip()
    try:
        parsed = phonenumbers.parse(raw, default_region)
    except phonenumbers.NumberParseException:
        return None
    if not phonenumbers.is_valid_number(parsed):
        return None
    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


def normalize_identifier(raw: str) -> str:
    """Registry key for a sender identifier.

    Valid phone numbers become E.164; anything else (Signal UUIDs, short
    codes) is kept as given, minus surrounding whitespace.
    """
    raw = (raw or "").strip()
    return normalize_phone(raw, default_region=None) or raw
