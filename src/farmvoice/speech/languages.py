"""Supported locales and localized fallback messages."""

from __future__ import annotations

SUPPORTED_LANGUAGES: tuple[str, ...] = ("en", "ta", "ml")
DEFAULT_LANGUAGE = "en"

SERVICE_BUSY_MESSAGES: dict[str, str] = {
    "en": "Service is busy, please try again in a moment.",
    "ta": "சேவை பிசியாக உள்ளது, சிறிது நேரம் கழித்து மீண்டும் முயற்சிக்கவும்.",
    "ml": "സേവനം തിരക്കിലാണ്, ദയവായി കുറച്ച് കഴിഞ്ഞ് വീണ്ടും ശ്രമിക്കുക.",
}

_LOCALES = {"en": "en-IN", "ta": "ta-IN", "ml": "ml-IN"}


def normalize_language(tag: str | None) -> str:
    """Map a short code or BCP-47 tag (e.g. `ta-IN`) onto a supported language."""
    if not tag:
        return DEFAULT_LANGUAGE
    primary = tag.strip().lower().replace("_", "-").split("-", 1)[0]
    return primary if primary in SUPPORTED_LANGUAGES else DEFAULT_LANGUAGE


def to_locale(language: str) -> str:
    return _LOCALES.get(normalize_language(language), _LOCALES[DEFAULT_LANGUAGE])


def busy_message(language: str | None) -> str:
    return SERVICE_BUSY_MESSAGES.get(language or "", SERVICE_BUSY_MESSAGES[DEFAULT_LANGUAGE])
