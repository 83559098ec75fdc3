"""FastAPI entrypoint for voice-query/document/trace endpoints."""

from __future__ import annotations

import base64
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from farmvoice.generation.providers import ChatCompletionsClient, ChatModel
from farmvoice.generation.racer import GenerationRacer
from farmvoice.ingest.corpus import KnowledgeIndex
from farmvoice.obs.logging import configure_logging
from farmvoice.obs.tracing import MetricsChannel, TraceStore
from farmvoice.pipeline.analysis import DocumentAnalyzer
from farmvoice.pipeline.location import StaticLocationLookup
from farmvoice.pipeline.orchestrator import VoicePipeline
from farmvoice.retrieval.context_filter import ContextFilter
from farmvoice.settings import Settings, get_settings
from farmvoice.speech.synthesis import TextToSpeechClient
from farmvoice.speech.transcription import SpeechToTextClient
from farmvoice.types import AudioQuery, PipelineResult, PipelineStatus

_STATUS_CODES = {
    PipelineStatus.OK: 200,
    PipelineStatus.TRANSCRIPTION_FAILED: 503,
    PipelineStatus.GENERATION_FAILED: 502,
    PipelineStatus.FAILED: 500,
}


class DocumentRequest(BaseModel):
    text: str = Field(min_length=1)
    language: str = "en"


def build_components(settings: Settings) -> dict[str, Any]:
    """Wire providers, retrieval and the pipeline from deployment settings."""
    config = settings.pipeline_config()
    index = KnowledgeIndex.from_path(settings.KNOWLEDGE_PATH)

    generation_client = ChatCompletionsClient(
        api_key=settings.GENERATION_API_KEY, base_url=settings.GENERATION_BASE_URL
    )
    racer = GenerationRacer(
        ChatModel(generation_client, settings.PRIMARY_MODEL),
        ChatModel(generation_client, settings.SECONDARY_MODEL),
        config.race,
    )
    transcriber = SpeechToTextClient(
        api_key=settings.STT_API_KEY,
        url=settings.STT_URL,
        model=settings.STT_MODEL,
        timeout=settings.STT_TIMEOUT_S,
    )
    synthesizer = TextToSpeechClient(
        api_key=settings.TTS_API_KEY,
        base_url=settings.TTS_BASE_URL,
        voice_ids=settings.voice_ids(),
        model_id=settings.TTS_MODEL_ID,
        timeout=settings.TTS_TIMEOUT_S,
    )
    trace_store = TraceStore()
    pipeline = VoicePipeline(
        transcriber=transcriber,
        racer=racer,
        synthesizer=synthesizer,
        context_filter=ContextFilter(index, config=config.filter),
        locations=StaticLocationLookup.from_json(settings.DISTRICTS_PATH),
        config=config,
        metrics=MetricsChannel(),
        trace_store=trace_store,
    )
    return {
        "index": index,
        "pipeline": pipeline,
        "analyzer": DocumentAnalyzer(racer=racer, index=index),
        "trace_store": trace_store,
        "closers": [generation_client.aclose, transcriber.aclose, synthesizer.aclose],
        "providers_configured": {
            "generation": bool(settings.GENERATION_API_KEY),
            "transcription": bool(settings.STT_API_KEY),
            "synthesis": bool(settings.TTS_API_KEY),
        },
    }


def create_app(
    *,
    pipeline: VoicePipeline,
    analyzer: DocumentAnalyzer,
    index: KnowledgeIndex,
    trace_store: TraceStore,
    closers: list[Callable[[], Awaitable[None]]] | None = None,
    providers_configured: dict[str, bool] | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        for close in closers or []:
            await close()

    app = FastAPI(title="FarmVoice", version="0.1.0", lifespan=lifespan)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "knowledge_available": index.is_available,
            "knowledge_sections": len(index),
            "providers_configured": providers_configured or {},
            "trace_count": len(trace_store.list_recent(limit=1000)),
        }

    @app.post("/voice-query")
    async def voice_query(
        audio: UploadFile = File(...),
        language: str = Form("en"),
        district: str | None = Form(None),
    ) -> JSONResponse:
        payload = await audio.read()
        if not payload:
            raise HTTPException(status_code=400, detail="No audio file uploaded")
        result = await pipeline.run(
            AudioQuery(
                audio=payload,
                mime_type=audio.content_type or "audio/wav",
                language=language,
                district=district,
                filename=audio.filename,
            )
        )
        return JSONResponse(status_code=_STATUS_CODES[result.status], content=_to_payload(result))

    @app.post("/analyze-document")
    async def analyze_document(request: DocumentRequest) -> dict[str, Any]:
        try:
            analysis = await analyzer.analyze(request.text, request.language)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            raise HTTPException(status_code=500, detail=f"Document analysis failed: {exc}") from exc
        return asdict(analysis)

    @app.get("/knowledge/sections")
    def knowledge_sections() -> dict[str, Any]:
        return {
            "items": [
                {"title": title, "chars": len(body)} for title, body in index.sections.items()
            ]
        }

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return trace_store.summary()

    return app


def _to_payload(result: PipelineResult) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "status": result.status.value,
        "transcript": result.transcript,
        "response": result.answer,
        "language": result.language,
        "detected_language": result.detected_language,
        "route": result.route.value if result.route else None,
        "model": result.model,
        "fallback_used": result.fallback_used,
        "hidden_risks": result.hidden_risks,
        "explanation": result.explanation,
        "sources": result.sources,
        "audio_base64": base64.b64encode(result.audio).decode("ascii") if result.audio else None,
        "audio_content_type": result.audio_content_type,
        "phonetic_accuracy": result.confidence,
        "info_density": result.info_density,
        "latency_ms": result.timing.total_ms,
        "breakdown": {
            "transcription_ms": result.timing.transcription_ms,
            "generation_ms": result.timing.generation_ms,
            "synthesis_ms": result.timing.synthesis_ms,
            "total_ms": result.timing.total_ms,
        },
        "met_budget": result.met_budget,
        "trace_id": result.trace_id,
    }
    if result.status is not PipelineStatus.OK:
        payload["error"] = result.answer
        payload["details"] = result.error
    return payload


_settings = get_settings()
configure_logging(_settings.LOG_LEVEL)
app = create_app(**build_components(_settings))
