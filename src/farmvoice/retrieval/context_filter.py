"""Tiered keyword filter that bounds the knowledge context sent to generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from farmvoice.config import FilterConfig
from farmvoice.ingest.corpus import KnowledgeIndex
from farmvoice.retrieval.keywords import SectionKeywordTable

logger = logging.getLogger(__name__)


class ContextTier(str, Enum):
    KEYWORD_MATCH = "keyword_match"
    LONG_QUERY = "long_query"
    SLIM_BUNDLE = "slim_bundle"
    FULL_FALLBACK = "full_fallback"


@dataclass(slots=True)
class ContextSelection:
    tier: ContextTier
    sections: list[str]
    text: str


class ContextFilter:
    """Selects the smallest useful slice of the corpus for a query.

    Tiers, in priority order:
    1. Every section whose trigger terms occur in the query, in keyword-table
       order.
    2. No match and a query longer than `long_query_threshold` characters:
       the whole corpus.
    3. No match on a short query: the fixed slim bundle (risk rules + IPM).
    4. Slim sections missing from the corpus: the whole corpus.

    A smaller context shortens time-to-first-token, which is what the latency
    budget is spent on.
    """

    def __init__(
        self,
        index: KnowledgeIndex,
        keywords: SectionKeywordTable | None = None,
        config: FilterConfig | None = None,
    ) -> None:
        self.index = index
        self.keywords = keywords or SectionKeywordTable()
        self.config = config or FilterConfig()

    def select(self, query: str) -> str:
        return self.select_with_tier(query).text

    def select_with_tier(self, query: str) -> ContextSelection:
        lowered = (query or "").lower()

        matched = [title for title in self.keywords.match(lowered) if title in self.index]
        if matched:
            text = "\n\n".join(self.index.sections[title] for title in matched)
            logger.info(
                "context tier=%s sections=%d chars=%d",
                ContextTier.KEYWORD_MATCH.value,
                len(matched),
                len(text),
            )
            return ContextSelection(ContextTier.KEYWORD_MATCH, matched, text)

        if len(lowered) > self.config.long_query_threshold:
            logger.info(
                "context tier=%s query_chars=%d chars=%d",
                ContextTier.LONG_QUERY.value,
                len(lowered),
                len(self.index.full_text),
            )
            return ContextSelection(
                ContextTier.LONG_QUERY, self.index.titles(), self.index.full_text
            )

        slim = [title for title in self.config.slim_sections if title.upper() in self.index]
        if slim:
            text = "\n\n".join(self.index.sections[title.upper()] for title in slim)
            logger.info(
                "context tier=%s chars=%d", ContextTier.SLIM_BUNDLE.value, len(text)
            )
            return ContextSelection(
                ContextTier.SLIM_BUNDLE, [title.upper() for title in slim], text
            )

        logger.info(
            "context tier=%s chars=%d",
            ContextTier.FULL_FALLBACK.value,
            len(self.index.full_text),
        )
        return ContextSelection(
            ContextTier.FULL_FALLBACK, self.index.titles(), self.index.full_text
        )
