"""Normalization of raw model output into speakable text."""

from __future__ import annotations

import json
import re
from typing import Any

_LABEL_PREFIX = re.compile(
    r"\b(response|hidden_risks?|explanation|sources?|severity|label|detail)\s*:",
    flags=re.IGNORECASE,
)
_STRUCTURAL_PUNCTUATION = re.compile(r'[{}"\[\]]')
_LEADING_COLON = re.compile(r"^\s*:\s*", flags=re.MULTILINE)
_CODE_FENCE = re.compile(r"```.*?```", flags=re.DOTALL)
_EMPHASIS = re.compile(r"\*{1,2}")
_WHITESPACE_RUN = re.compile(r"\s{2,}")

_JSON_FENCE = re.compile(r"```json\s*(.*?)```", flags=re.DOTALL)
_JSON_OBJECT = re.compile(r"\{.*\}", flags=re.DOTALL)


def parse_structured(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from model output, or None when malformed."""
    if not text:
        return None
    fenced = _JSON_FENCE.search(text)
    if fenced:
        candidate = fenced.group(1)
    else:
        braced = _JSON_OBJECT.search(text)
        candidate = braced.group(0) if braced else text
    try:
        payload = json.loads(candidate)
    except (ValueError, RecursionError):
        return None
    return payload if isinstance(payload, dict) else None


def sanitize(raw_text: str | None) -> str:
    """Strip structured-format and markdown artifacts before speech synthesis.

    Steps: unwrap a JSON `response` field, drop field-name labels, drop
    braces/brackets/quotes and line-leading colons, drop fenced code blocks
    and emphasis, collapse whitespace. The steps are repeated until the text
    stops changing, which makes `sanitize(sanitize(x)) == sanitize(x)`.
    """
    if not raw_text:
        return ""
    # Each pass that changes the text makes it strictly shorter.
    text = raw_text
    while True:
        cleaned = _sanitize_once(text)
        if cleaned == text:
            return text
        text = cleaned


def _sanitize_once(text: str) -> str:
    try:
        payload = json.loads(text)
    except (ValueError, RecursionError):
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("response"), str):
        text = payload["response"]

    text = _LABEL_PREFIX.sub("", text)
    text = _STRUCTURAL_PUNCTUATION.sub("", text)
    text = _LEADING_COLON.sub("", text)
    text = _CODE_FENCE.sub("", text)
    text = _EMPHASIS.sub("", text)
    return _WHITESPACE_RUN.sub(" ", text).strip()
