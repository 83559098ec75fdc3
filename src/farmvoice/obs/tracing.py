"""Stage timing, live metrics fan-out, and pipeline trace storage."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from farmvoice.types import PipelineResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class StageEvent:
    """One stage timing sample pushed to metrics subscribers."""

    stage: str
    elapsed_ms: float
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class TraceRecord:
    trace_id: str
    timestamp_utc: str
    status: str
    route: str | None
    language: str
    model: str | None
    transcript: str
    answer: str
    transcription_ms: float
    generation_ms: float
    synthesis_ms: float
    total_ms: float
    met_budget: bool
    fallback_used: bool
    confidence: float
    info_density: float
    has_audio: bool
    stage_events: list[StageEvent]
    error: str | None


class MetricsChannel:
    """Fans stage events out to subscribers (dashboards, trace store, tests).

    Publishing is advisory: a failing subscriber is logged and skipped, it
    never changes the pipeline outcome.
    """

    def __init__(self) -> None:
        self._subscribers: list[Callable[[StageEvent], None]] = []

    def subscribe(self, callback: Callable[[StageEvent], None]) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[StageEvent], None]) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def publish(self, event: StageEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("metrics subscriber failed for stage %s", event.stage)


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, *, max_records: int = 1000) -> None:
        self._records: dict[str, TraceRecord] = {}
        self._max_records = max_records

    def record(
        self,
        result: PipelineResult,
        *,
        stage_events: list[StageEvent] | None = None,
    ) -> TraceRecord:
        trace_id = str(uuid.uuid4())
        record = TraceRecord(
            trace_id=trace_id,
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            status=result.status.value,
            route=result.route.value if result.route else None,
            language=result.language,
            model=result.model,
            transcript=result.transcript,
            answer=result.answer,
            transcription_ms=result.timing.transcription_ms,
            generation_ms=result.timing.generation_ms,
            synthesis_ms=result.timing.synthesis_ms,
            total_ms=result.timing.total_ms,
            met_budget=result.met_budget,
            fallback_used=result.fallback_used,
            confidence=result.confidence,
            info_density=result.info_density,
            has_audio=result.audio is not None,
            stage_events=list(stage_events or []),
            error=result.error,
        )
        self._records[trace_id] = record
        while len(self._records) > self._max_records:
            self._records.pop(next(iter(self._records)))
        return record

    def get(self, trace_id: str) -> TraceRecord:
        record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate latency and budget metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        if total == 0:
            return {
                "total_requests": 0,
                "ok_requests": 0,
                "avg_total_ms": 0.0,
                "p95_total_ms": 0.0,
                "budget_hit_rate": 0.0,
                "fallback_rate": 0.0,
                "avg_info_density": 0.0,
                "avg_confidence": 0.0,
            }

        latencies = sorted(record.total_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        ok = [record for record in records if record.status == "ok"]

        return {
            "total_requests": total,
            "ok_requests": len(ok),
            "avg_total_ms": sum(latencies) / total,
            "p95_total_ms": latencies[p95_index],
            "budget_hit_rate": sum(1 for record in records if record.met_budget) / total,
            "fallback_rate": sum(1 for record in records if record.fallback_used) / total,
            "avg_info_density": sum(record.info_density for record in records) / total,
            "avg_confidence": sum(record.confidence for record in records) / total,
        }


class Timer:
    """Simple context timer used by the pipeline stages."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
