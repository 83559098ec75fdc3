"""Text-to-speech client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from time import perf_counter
from typing import Protocol

import httpx

from farmvoice.errors import ConfigurationError, SynthesisFailure
from farmvoice.speech.languages import DEFAULT_LANGUAGE, normalize_language
from farmvoice.types import SynthesisResult

logger = logging.getLogger(__name__)

_VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.75,
    "style": 0.3,
    "use_speaker_boost": True,
}


class Synthesizer(Protocol):
    async def synthesize(self, text: str, language: str) -> SynthesisResult:
        """Return audio for `text` or raise `SynthesisFailure`."""


class TextToSpeechClient:
    """Multilingual TTS client; the language picks the voice."""

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        voice_ids: Mapping[str, str],
        model_id: str = "eleven_multilingual_v2",
        timeout: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._base_url = base_url.rstrip("/")
        self._voice_ids = dict(voice_ids)
        self._model_id = model_id
        self._timeout = timeout
        self._client = http_client or httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=5, keepalive_expiry=120.0),
        )

    def voice_for(self, language: str) -> str:
        language = normalize_language(language)
        voice = self._voice_ids.get(language) or self._voice_ids.get(DEFAULT_LANGUAGE)
        if not voice:
            raise ConfigurationError(f"no TTS voice configured for language {language!r}")
        return voice

    async def synthesize(self, text: str, language: str) -> SynthesisResult:
        start = perf_counter()
        if not self._api_key:
            raise SynthesisFailure("TTS_API_KEY not configured")
        try:
            voice_id = self.voice_for(language)
        except ConfigurationError as exc:
            raise SynthesisFailure(str(exc)) from exc

        try:
            response = await self._client.post(
                f"{self._base_url}/text-to-speech/{voice_id}",
                json={
                    "text": text,
                    "model_id": self._model_id,
                    "voice_settings": _VOICE_SETTINGS,
                    "language_code": normalize_language(language),
                },
                headers={
                    "Accept": "audio/mpeg",
                    "Content-Type": "application/json",
                    "xi-api-key": self._api_key,
                },
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise SynthesisFailure(f"tts transport error: {exc}") from exc

        if not response.is_success:
            raise SynthesisFailure(f"tts [{response.status_code}]: {response.text[:300]}")

        latency_ms = (perf_counter() - start) * 1000.0
        logger.info(
            "synthesized %d chars -> %d bytes (%.0f ms)", len(text), len(response.content), latency_ms
        )
        return SynthesisResult(
            audio=response.content,
            content_type=response.headers.get("content-type", "audio/mpeg"),
            latency_ms=latency_ms,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
