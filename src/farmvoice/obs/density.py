"""Information-density heuristic for generated answers."""

from __future__ import annotations

import re

_NUMBER_PATTERN = re.compile(r"\d+\.?\d*")
_DOMAIN_TERM_PATTERN = re.compile(
    r"\b(nitrogen|phosphate|potassium|ph|npk|rainfall|soil|nutrient|kg|acre|mm"
    r"|deviation|tnau|kau|laterite|loam)\b",
    flags=re.IGNORECASE,
)


def score_density(text: str | None) -> float:
    """Score in [0, 1]: (numbers * 2 + domain terms * 1.5) / words, capped at 1.

    Observability only; the score never gates a response.
    """
    if not text or not text.strip():
        return 0.0
    words = len(text.split())
    numbers = len(_NUMBER_PATTERN.findall(text))
    terms = len(_DOMAIN_TERM_PATTERN.findall(text))
    return min(1.0, (numbers * 2 + terms * 1.5) / max(words, 1))
