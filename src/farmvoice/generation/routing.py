"""Greeting / short-query detection for fast-path routing."""

from __future__ import annotations

import re

from farmvoice.config import RoutingConfig
from farmvoice.types import QueryRoute

GREETING_PATTERN = re.compile(
    r"\b(hello|hi|hey|test|testing)\b|ஹலோ|வணக்கம்|புரியுதா|கேக்குதா|எப்படி",
    flags=re.IGNORECASE,
)

DOMAIN_PATTERN = re.compile(
    r"coconut|thengai|rice|banana|fertilizer|soil|pest|crop|harvest|irrigation|rainfall"
    r"|paddy|sugarcane|turmeric|tea|pepper|rubber|cotton|groundnut|nitrogen|phosphate"
    r"|potassium|npk|ph|acre|hectare|yield"
    r"|நெல்|தேங்காய்|தென்னை|வாழை|வாழ்க்கை|வாழ்கை|பூச்சி|மரம்|மத்து",
    flags=re.IGNORECASE,
)


def classify_query(transcript: str, config: RoutingConfig | None = None) -> QueryRoute:
    """Classify a transcript as greeting, short small talk, or a normal question.

    Greetings and mic checks win over everything else. A transcript with
    fewer than `short_query_max_words` words and no farming term is small
    talk; both go to the fast path.
    """
    config = config or RoutingConfig()
    text = (transcript or "").strip()
    if GREETING_PATTERN.search(text):
        return QueryRoute.GREETING
    words = text.split()
    if len(words) < config.short_query_max_words and not DOMAIN_PATTERN.search(text):
        return QueryRoute.SHORT
    return QueryRoute.NORMAL
