"""Hidden-risk analysis of field documents against the full corpus."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any

from farmvoice.generation.prompts import build_document_request
from farmvoice.generation.racer import GenerationRacer
from farmvoice.generation.sanitizer import parse_structured
from farmvoice.ingest.corpus import KnowledgeIndex
from farmvoice.obs.density import score_density
from farmvoice.speech.languages import normalize_language
from farmvoice.types import DocumentAnalysis

logger = logging.getLogger(__name__)

MIN_DOCUMENT_CHARS = 50


class DocumentAnalyzer:
    """Cross-references a document with the whole knowledge base.

    Documents need broad context, so the keyword filter is bypassed. A model
    reply that is not valid JSON is kept as the summary rather than dropped.
    """

    def __init__(self, *, racer: GenerationRacer, index: KnowledgeIndex) -> None:
        self.racer = racer
        self.index = index

    async def analyze(self, text: str, language: str = "en") -> DocumentAnalysis:
        if len((text or "").strip()) < MIN_DOCUMENT_CHARS:
            raise ValueError("document contains insufficient text content")

        start = perf_counter()
        request = build_document_request(
            text, knowledge=self.index.full_text, language=normalize_language(language)
        )
        result = await self.racer.generate(request)
        parsed = parse_structured(result.text)
        if parsed is None:
            logger.warning("document analysis returned unstructured output, using raw text")
            parsed = {"summary": result.text, "explanation": "Direct model output"}

        latency_ms = (perf_counter() - start) * 1000.0
        return DocumentAnalysis(
            summary=str(parsed.get("summary") or "Analysis complete"),
            hidden_risks=_list_field(parsed, "hidden_risks"),
            recommendations=_list_field(parsed, "recommendations"),
            fertilizer_ratios=_dict_field(parsed, "fertilizer_ratios"),
            explanation=str(parsed.get("explanation") or ""),
            sources=_list_field(parsed, "sources"),
            model=result.model,
            latency_ms=latency_ms,
            info_density=score_density(result.text),
        )


def _list_field(payload: dict[str, Any], key: str) -> list[Any]:
    value = payload.get(key)
    return value if isinstance(value, list) else []


def _dict_field(payload: dict[str, Any], key: str) -> dict[str, Any] | None:
    value = payload.get(key)
    return value if isinstance(value, dict) else None
