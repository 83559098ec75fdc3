"""Speech-to-text client."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Protocol

import httpx

from farmvoice.errors import TranscriptionFailure
from farmvoice.speech.languages import busy_message, to_locale
from farmvoice.types import TranscriptionResult

logger = logging.getLogger(__name__)

# Providers reject uploads without a file extension.
_FILENAME_BY_MIME = {
    "audio/m4a": "recording.m4a",
    "audio/x-m4a": "recording.m4a",
    "audio/mp4": "recording.m4a",
    "audio/aac": "recording.aac",
    "audio/wav": "recording.wav",
    "audio/wave": "recording.wav",
    "audio/x-wav": "recording.wav",
    "audio/mpeg": "recording.mp3",
    "audio/mp3": "recording.mp3",
    "audio/ogg": "recording.ogg",
    "audio/webm": "recording.webm",
    "audio/flac": "recording.flac",
}

DEFAULT_CONFIDENCE = 85.0


class Transcriber(Protocol):
    async def transcribe(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str,
        filename: str | None = None,
    ) -> TranscriptionResult:
        """Return a transcript or raise `TranscriptionFailure`."""


def filename_for(mime_type: str | None, filename: str | None = None) -> str:
    if filename:
        return filename
    return _FILENAME_BY_MIME.get((mime_type or "").lower(), "recording.wav")


class SpeechToTextClient:
    """Multipart upload client for the transcription service."""

    def __init__(
        self,
        *,
        api_key: str,
        url: str,
        model: str = "saaras:v3",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._url = url
        self._model = model
        self._timeout = timeout
        self._client = http_client or httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=5, keepalive_expiry=120.0),
        )

    async def transcribe(
        self,
        audio: bytes,
        *,
        mime_type: str,
        language: str,
        filename: str | None = None,
    ) -> TranscriptionResult:
        start = perf_counter()
        locale = to_locale(language)
        if not self._api_key:
            logger.error("STT_API_KEY is not set")
            raise TranscriptionFailure("STT_API_KEY not configured", busy_message(language))

        name = filename_for(mime_type, filename)
        content_type = mime_type or "audio/wav"
        logger.info(
            "transcribing %s (%s, %d bytes, lang=%s)", name, content_type, len(audio), locale
        )
        try:
            response = await self._client.post(
                self._url,
                files={"file": (name, audio, content_type)},
                data={
                    "language_code": locale,
                    "model": self._model,
                    "mode": "transcribe",
                    "with_timestamps": "false",
                },
                headers={"api-subscription-key": self._api_key},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("transcription transport error: %s", exc)
            raise TranscriptionFailure(f"stt [N/A]: {exc}", busy_message(language)) from exc

        if not response.is_success:
            detail = _error_detail(response)
            logger.error("transcription failed [%s]: %s", response.status_code, detail)
            raise TranscriptionFailure(
                f"stt [{response.status_code}]: {detail}", busy_message(language)
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise TranscriptionFailure("stt: malformed response body", busy_message(language)) from exc
        if not isinstance(data, dict):
            raise TranscriptionFailure("stt: malformed response body", busy_message(language))

        transcript = str(data.get("transcript") or data.get("text") or "")
        confidence = _confidence(data.get("confidence"))
        latency_ms = (perf_counter() - start) * 1000.0
        logger.info("transcribed [%s] %r (%.0f ms)", locale, transcript[:80], latency_ms)
        return TranscriptionResult(
            transcript=transcript,
            confidence=max(0.0, min(100.0, confidence)),
            language=language,
            detected_language=data.get("language_code") or locale,
            latency_ms=latency_ms,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def _confidence(raw: object) -> float:
    """Provider confidence is 0-1; absent or unparseable values use the default."""
    if not raw:
        return DEFAULT_CONFIDENCE
    try:
        return float(raw) * 100.0
    except (TypeError, ValueError):
        logger.warning("ignoring non-numeric transcription confidence %r", raw)
        return DEFAULT_CONFIDENCE


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)[:300]
    return str(payload)[:300]
