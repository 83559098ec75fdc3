"""Voice query orchestration: transcribe -> filter + generate -> sanitize -> synthesize."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

from farmvoice.config import PipelineConfig
from farmvoice.errors import GenerationFailure, SynthesisFailure, TranscriptionFailure
from farmvoice.generation.prompts import build_answer_request
from farmvoice.generation.racer import GenerationRacer
from farmvoice.generation.routing import classify_query
from farmvoice.generation.sanitizer import parse_structured, sanitize
from farmvoice.obs.density import score_density
from farmvoice.obs.tracing import MetricsChannel, StageEvent, Timer, TraceStore
from farmvoice.pipeline.location import LocationLookup
from farmvoice.retrieval.context_filter import ContextFilter
from farmvoice.speech.languages import busy_message, normalize_language
from farmvoice.speech.synthesis import Synthesizer
from farmvoice.speech.transcription import Transcriber
from farmvoice.types import (
    AudioQuery,
    GenerationResult,
    PipelineResult,
    PipelineStatus,
    Query,
    QueryRoute,
    TimingBreakdown,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Answer:
    """Generated and sanitized answer for one transcribed query."""

    text: str
    route: QueryRoute
    generation: GenerationResult
    structured: dict[str, Any] | None = None
    context_tier: str = ""


@dataclass(slots=True)
class _RunState:
    started: float
    language: str
    timing: TimingBreakdown = field(default_factory=TimingBreakdown)
    events: list[StageEvent] = field(default_factory=list)
    transcript: str = ""
    detected_language: str | None = None
    confidence: float = 0.0
    route: QueryRoute | None = None


class VoicePipeline:
    """Runs one voice query end to end within the latency budget.

    Provider failures never escape `run()`: every outcome, including
    transcription and generation failures, comes back as a well-formed
    `PipelineResult` whose `status` says what happened.
    """

    def __init__(
        self,
        *,
        transcriber: Transcriber,
        racer: GenerationRacer,
        synthesizer: Synthesizer,
        context_filter: ContextFilter,
        locations: LocationLookup | None = None,
        config: PipelineConfig | None = None,
        metrics: MetricsChannel | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.transcriber = transcriber
        self.racer = racer
        self.synthesizer = synthesizer
        self.context_filter = context_filter
        self.locations = locations
        self.config = config or PipelineConfig()
        self.metrics = metrics or MetricsChannel()
        self.trace_store = trace_store

    async def run(self, query: AudioQuery) -> PipelineResult:
        state = _RunState(started=perf_counter(), language=normalize_language(query.language))
        try:
            result = await self._run(query, state)
        except Exception as exc:
            logger.exception("voice pipeline failed")
            result = self._finish(
                state,
                status=PipelineStatus.FAILED,
                answer=busy_message(state.language),
                error=f"{type(exc).__name__}: {exc}",
            )
        if self.trace_store is not None:
            record = self.trace_store.record(result, stage_events=state.events)
            result.trace_id = record.trace_id
        return result

    async def answer(self, query: Query) -> Answer:
        """Route, filter, generate and sanitize for an already transcribed query."""
        route = classify_query(query.transcript, self.config.routing)
        selection = self.context_filter.select_with_tier(query.transcript)
        routing = self.config.routing
        fast_path = route is not QueryRoute.NORMAL
        request = build_answer_request(
            query.transcript,
            knowledge=selection.text,
            language=query.language,
            location=query.location,
            max_tokens=routing.fast_path_max_tokens if fast_path else routing.normal_max_tokens,
            temperature=routing.fast_path_temperature if fast_path else routing.normal_temperature,
            fast_path=fast_path,
        )
        logger.info(
            "query route=%s lang=%s context=%s words=%d",
            route.value,
            query.language,
            selection.tier.value,
            len(query.transcript.split()),
        )

        if fast_path:
            generation = await self.racer.generate_direct(request)
        else:
            generation = await self.racer.generate(request)

        structured = parse_structured(generation.text)
        spoken = generation.text
        if structured and isinstance(structured.get("response"), str):
            spoken = structured["response"]
        return Answer(
            text=sanitize(spoken),
            route=route,
            generation=generation,
            structured=structured,
            context_tier=selection.tier.value,
        )

    async def _run(self, query: AudioQuery, state: _RunState) -> PipelineResult:
        try:
            with Timer() as timer:
                transcription = await self.transcriber.transcribe(
                    query.audio,
                    mime_type=query.mime_type,
                    language=state.language,
                    filename=query.filename,
                )
                if not transcription.transcript.strip():
                    raise TranscriptionFailure(
                        "empty transcript", busy_message(state.language)
                    )
        except TranscriptionFailure as exc:
            state.timing.transcription_ms = timer.elapsed_ms
            self._emit(state, "transcription", timer.elapsed_ms, ok=False)
            logger.warning("transcription failed, returning busy message: %s", exc.error)
            return self._finish(
                state,
                status=PipelineStatus.TRANSCRIPTION_FAILED,
                answer=exc.fallback_message,
                error=exc.error,
            )

        state.timing.transcription_ms = timer.elapsed_ms
        state.transcript = transcription.transcript.strip()
        state.detected_language = transcription.detected_language
        state.confidence = transcription.confidence or 0.0
        state.language = normalize_language(transcription.detected_language or state.language)
        self._emit(state, "transcription", timer.elapsed_ms, confidence=state.confidence)

        location = self.locations.get(query.district) if self.locations else None
        try:
            with Timer() as timer:
                answer = await self.answer(
                    Query(transcript=state.transcript, language=state.language, location=location)
                )
        except GenerationFailure as exc:
            state.timing.generation_ms = timer.elapsed_ms
            self._emit(state, "generation", timer.elapsed_ms, ok=False)
            logger.error("generation failed on both models: %s", exc)
            return self._finish(
                state,
                status=PipelineStatus.GENERATION_FAILED,
                answer=busy_message(state.language),
                error=str(exc),
            )

        state.timing.generation_ms = timer.elapsed_ms
        state.route = answer.route
        self._emit(
            state,
            "generation",
            timer.elapsed_ms,
            model=answer.generation.model,
            fallback=answer.generation.fallback_used,
            context=answer.context_tier,
        )

        audio: bytes | None = None
        content_type: str | None = None
        if answer.text:
            try:
                with Timer() as timer:
                    synthesis = await self.synthesizer.synthesize(answer.text, state.language)
                audio, content_type = synthesis.audio, synthesis.content_type
                self._emit(state, "synthesis", timer.elapsed_ms, bytes=len(audio))
            except SynthesisFailure as exc:
                logger.warning("synthesis failed, returning text only: %s", exc)
                self._emit(state, "synthesis", timer.elapsed_ms, ok=False)
            state.timing.synthesis_ms = timer.elapsed_ms

        structured = answer.structured or {}
        return self._finish(
            state,
            status=PipelineStatus.OK,
            answer=answer.text,
            audio=audio,
            audio_content_type=content_type,
            model=answer.generation.model,
            fallback_used=answer.generation.fallback_used,
            info_density=score_density(answer.generation.text),
            hidden_risks=_as_list(structured.get("hidden_risks")),
            explanation=str(structured.get("explanation") or ""),
            sources=_as_list(structured.get("sources")),
        )

    def _finish(
        self,
        state: _RunState,
        *,
        status: PipelineStatus,
        answer: str,
        **extra: Any,
    ) -> PipelineResult:
        state.timing.total_ms = (perf_counter() - state.started) * 1000.0
        met_budget = state.timing.total_ms <= self.config.latency_budget_ms
        self._emit(state, "total", state.timing.total_ms, status=status.value, met_budget=met_budget)
        logger.info(
            "pipeline status=%s total_ms=%.0f stt_ms=%.0f llm_ms=%.0f tts_ms=%.0f met_budget=%s",
            status.value,
            state.timing.total_ms,
            state.timing.transcription_ms,
            state.timing.generation_ms,
            state.timing.synthesis_ms,
            met_budget,
        )
        return PipelineResult(
            status=status,
            transcript=state.transcript,
            answer=answer,
            language=state.language,
            timing=state.timing,
            met_budget=met_budget,
            detected_language=state.detected_language,
            route=state.route,
            confidence=state.confidence,
            **extra,
        )

    def _emit(self, state: _RunState, stage: str, elapsed_ms: float, **detail: Any) -> None:
        event = StageEvent(stage=stage, elapsed_ms=elapsed_ms, detail=detail)
        state.events.append(event)
        self.metrics.publish(event)


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]
