"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class LocationContext:
    """Farmer location details folded into the generation prompt."""

    name: str
    soil_type: str
    avg_rainfall_mm: float


@dataclass(frozen=True, slots=True)
class Query:
    """One transcribed farmer question."""

    transcript: str
    language: str
    location: LocationContext | None = None


@dataclass(frozen=True, slots=True)
class AudioQuery:
    """Inbound recorded question plus language and location hints."""

    audio: bytes
    mime_type: str = "audio/wav"
    language: str = "en"
    district: str | None = None
    filename: str | None = None


@dataclass(frozen=True, slots=True)
class ChatMessage:
    role: str
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Immutable message list plus sampling parameters for one generation."""

    messages: tuple[ChatMessage, ...]
    max_tokens: int
    temperature: float


@dataclass(frozen=True, slots=True)
class GenerationResult:
    """The single winning output of a generation race."""

    text: str
    model: str
    latency_ms: float
    fallback_used: bool = False


@dataclass(frozen=True, slots=True)
class TranscriptionResult:
    transcript: str
    confidence: float
    language: str
    detected_language: str | None
    latency_ms: float


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    audio: bytes
    content_type: str
    latency_ms: float


class QueryRoute(str, Enum):
    GREETING = "greeting"
    SHORT = "short"
    NORMAL = "normal"


class PipelineStatus(str, Enum):
    OK = "ok"
    TRANSCRIPTION_FAILED = "transcription_failed"
    GENERATION_FAILED = "generation_failed"
    FAILED = "failed"


@dataclass(slots=True)
class TimingBreakdown:
    transcription_ms: float = 0.0
    generation_ms: float = 0.0
    synthesis_ms: float = 0.0
    total_ms: float = 0.0


@dataclass(slots=True)
class PipelineResult:
    """Externally visible outcome of one voice query.

    Failure outcomes are still well-formed: `answer` carries the localized
    message shown to the farmer and `error` the diagnostic detail.
    """

    status: PipelineStatus
    transcript: str
    answer: str
    language: str
    timing: TimingBreakdown
    met_budget: bool
    audio: bytes | None = None
    audio_content_type: str | None = None
    detected_language: str | None = None
    route: QueryRoute | None = None
    model: str | None = None
    fallback_used: bool = False
    confidence: float = 0.0
    info_density: float = 0.0
    hidden_risks: list[Any] = field(default_factory=list)
    explanation: str = ""
    sources: list[Any] = field(default_factory=list)
    error: str | None = None
    trace_id: str | None = None


@dataclass(slots=True)
class DocumentAnalysis:
    """Structured risk report produced for an uploaded field document."""

    summary: str
    hidden_risks: list[Any]
    recommendations: list[Any]
    fertilizer_ratios: dict[str, Any] | None
    explanation: str
    sources: list[Any]
    model: str
    latency_ms: float
    info_density: float
