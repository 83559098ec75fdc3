"""Shared fakes for provider-facing tests."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import pytest

from farmvoice.config import PipelineConfig, RaceConfig
from farmvoice.errors import SynthesisFailure
from farmvoice.generation.racer import GenerationRacer
from farmvoice.ingest.corpus import KnowledgeIndex
from farmvoice.obs.tracing import MetricsChannel, TraceStore
from farmvoice.pipeline.location import StaticLocationLookup
from farmvoice.pipeline.orchestrator import VoicePipeline
from farmvoice.retrieval.context_filter import ContextFilter
from farmvoice.types import GenerationRequest, SynthesisResult, TranscriptionResult


@dataclass(slots=True)
class RecordedCall:
    request: GenerationRequest
    timeout: float
    started: float
    cancelled_at: float | None = None


class FakeModel:
    """Text generator with scripted latency, output and failure."""

    def __init__(
        self,
        model: str,
        *,
        text: str = "ok",
        delay: float = 0.0,
        error: BaseException | None = None,
        ignore_cancel: bool = False,
        late_delay: float = 0.05,
    ) -> None:
        self.model = model
        self.text = text
        self.delay = delay
        self.error = error
        self.ignore_cancel = ignore_cancel
        self.late_delay = late_delay
        self.calls: list[RecordedCall] = []

    async def generate(self, request: GenerationRequest, *, timeout: float) -> str:
        call = RecordedCall(request=request, timeout=timeout, started=time.monotonic())
        self.calls.append(call)
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            call.cancelled_at = time.monotonic()
            if not self.ignore_cancel:
                raise
            await asyncio.sleep(self.late_delay)
        if self.error is not None:
            raise self.error
        return self.text


class FakeTranscriber:
    def __init__(
        self,
        transcript: str = "",
        *,
        detected_language: str | None = "en-IN",
        confidence: float = 92.0,
        error: BaseException | None = None,
    ) -> None:
        self.transcript = transcript
        self.detected_language = detected_language
        self.confidence = confidence
        self.error = error
        self.calls: list[dict[str, object]] = []

    async def transcribe(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str,
        filename: str | None = None,
    ) -> TranscriptionResult:
        self.calls.append(
            {"audio": audio, "mime_type": mime_type, "language": language, "filename": filename}
        )
        if self.error is not None:
            raise self.error
        return TranscriptionResult(
            transcript=self.transcript,
            confidence=self.confidence,
            language=language,
            detected_language=self.detected_language,
            latency_ms=1.0,
        )


class FakeSynthesizer:
    def __init__(self, *, audio: bytes = b"ID3-fake-mp3", fail: bool = False) -> None:
        self.audio = audio
        self.fail = fail
        self.calls: list[tuple[str, str]] = []

    async def synthesize(self, text: str, language: str) -> SynthesisResult:
        self.calls.append((text, language))
        if self.fail:
            raise SynthesisFailure("tts [500]: upstream error")
        return SynthesisResult(audio=self.audio, content_type="audio/mpeg", latency_ms=1.0)


@dataclass(slots=True)
class PipelineHarness:
    pipeline: VoicePipeline
    transcriber: FakeTranscriber
    primary: FakeModel
    secondary: FakeModel
    synthesizer: FakeSynthesizer
    trace_store: TraceStore
    metrics: MetricsChannel
    index: KnowledgeIndex
    racer: GenerationRacer
    events: list[object] = field(default_factory=list)


def build_harness(
    *,
    transcriber: FakeTranscriber,
    primary: FakeModel | None = None,
    secondary: FakeModel | None = None,
    synthesizer: FakeSynthesizer | None = None,
    race: RaceConfig | None = None,
) -> PipelineHarness:
    index = KnowledgeIndex.from_path()
    primary = primary or FakeModel("primary-70b", text="Apply N 48 kg/acre in two splits.")
    secondary = secondary or FakeModel("secondary-8b", text="Vanakkam! Ask me about your crop.")
    synthesizer = synthesizer or FakeSynthesizer()
    racer = GenerationRacer(
        primary,
        secondary,
        race or RaceConfig(soft_deadline_s=0.2, clearance_pause_s=0.05, primary_timeout_s=1.0),
    )
    trace_store = TraceStore()
    metrics = MetricsChannel()
    harness = PipelineHarness(
        pipeline=VoicePipeline(
            transcriber=transcriber,
            racer=racer,
            synthesizer=synthesizer,
            context_filter=ContextFilter(index),
            locations=StaticLocationLookup(
                {"coimbatore": {"name": "Coimbatore", "soil_type": "red loam", "avg_rainfall_mm": 650}}
            ),
            config=PipelineConfig(),
            metrics=metrics,
            trace_store=trace_store,
        ),
        transcriber=transcriber,
        primary=primary,
        secondary=secondary,
        synthesizer=synthesizer,
        trace_store=trace_store,
        metrics=metrics,
        index=index,
        racer=racer,
    )
    metrics.subscribe(harness.events.append)
    return harness


@pytest.fixture
def knowledge_index() -> KnowledgeIndex:
    return KnowledgeIndex.from_path()


@pytest.fixture
def harness_factory():
    return build_harness
