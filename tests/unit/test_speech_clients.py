import json

import httpx
import pytest

from farmvoice.errors import ConfigurationError, SynthesisFailure, TranscriptionFailure
from farmvoice.speech.languages import SERVICE_BUSY_MESSAGES
from farmvoice.speech.synthesis import TextToSpeechClient
from farmvoice.speech.transcription import SpeechToTextClient, filename_for

_VOICES = {"en": "voice-en", "ta": "voice-ta", "ml": "voice-ml"}


def _stt(handler, api_key: str = "stt-key") -> SpeechToTextClient:
    return SpeechToTextClient(
        api_key=api_key,
        url="https://stt.test/speech-to-text",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _tts(handler, api_key: str = "tts-key", voice_ids: dict[str, str] | None = None) -> TextToSpeechClient:
    return TextToSpeechClient(
        api_key=api_key,
        base_url="https://tts.test/v1",
        voice_ids=_VOICES if voice_ids is None else voice_ids,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_filename_for_uses_mime_extension() -> None:
    assert filename_for("audio/m4a") == "recording.m4a"
    assert filename_for("audio/webm") == "recording.webm"
    assert filename_for("application/octet-stream") == "recording.wav"
    assert filename_for("audio/m4a", "field.m4a") == "field.m4a"


@pytest.mark.asyncio
async def test_transcribe_sends_multipart_upload_with_locale() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"transcript": "தென்னைக்கு எவ்வளவு உரம்", "language_code": "ta-IN", "confidence": 0.93},
        )

    result = await _stt(handler).transcribe(b"RIFFdata", mime_type="audio/m4a", language="ta")

    assert result.transcript == "தென்னைக்கு எவ்வளவு உரம்"
    assert result.detected_language == "ta-IN"
    assert result.confidence == pytest.approx(93.0)
    request = seen[0]
    assert request.headers["api-subscription-key"] == "stt-key"
    body = request.content
    assert b'name="language_code"' in body
    assert b"ta-IN" in body
    assert b'filename="recording.m4a"' in body
    assert b"saaras:v3" in body


@pytest.mark.asyncio
async def test_transcribe_defaults_confidence_and_detected_language() -> None:
    client = _stt(lambda request: httpx.Response(200, json={"transcript": "rice fertilizer"}))

    result = await client.transcribe(b"audio", mime_type="audio/wav", language="en")

    assert result.confidence == 85.0
    assert result.detected_language == "en-IN"


@pytest.mark.asyncio
async def test_transcribe_http_error_carries_localized_busy_message() -> None:
    client = _stt(lambda request: httpx.Response(500, json={"message": "internal error"}))

    with pytest.raises(TranscriptionFailure) as exc_info:
        await client.transcribe(b"audio", mime_type="audio/wav", language="ta")

    assert exc_info.value.fallback_message == SERVICE_BUSY_MESSAGES["ta"]
    assert "500" in exc_info.value.error
    assert "internal error" in exc_info.value.error


@pytest.mark.asyncio
async def test_transcribe_transport_error_raises_transcription_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TranscriptionFailure) as exc_info:
        await _stt(handler).transcribe(b"audio", mime_type="audio/wav", language="ml")

    assert exc_info.value.fallback_message == SERVICE_BUSY_MESSAGES["ml"]


@pytest.mark.asyncio
async def test_transcribe_without_key_returns_busy_message() -> None:
    client = _stt(lambda request: httpx.Response(200, json={}), api_key="")

    with pytest.raises(TranscriptionFailure) as exc_info:
        await client.transcribe(b"audio", mime_type="audio/wav", language="en")

    assert exc_info.value.fallback_message == SERVICE_BUSY_MESSAGES["en"]


@pytest.mark.asyncio
async def test_synthesize_posts_to_language_voice() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"mp3-bytes", headers={"content-type": "audio/mpeg"})

    result = await _tts(handler).synthesize("വളം 48 കിലോ", "ml-IN")

    assert result.audio == b"mp3-bytes"
    assert result.content_type == "audio/mpeg"
    request = seen[0]
    assert request.url.path == "/v1/text-to-speech/voice-ml"
    assert request.headers["xi-api-key"] == "tts-key"
    body = json.loads(request.content)
    assert body["model_id"] == "eleven_multilingual_v2"
    assert body["voice_settings"]["similarity_boost"] == 0.75


@pytest.mark.asyncio
async def test_synthesize_error_status_raises_synthesis_failure() -> None:
    client = _tts(lambda request: httpx.Response(401, text="invalid key"))

    with pytest.raises(SynthesisFailure, match="401"):
        await client.synthesize("hello", "en")


@pytest.mark.asyncio
async def test_synthesize_without_key_raises_synthesis_failure() -> None:
    client = _tts(lambda request: httpx.Response(200, content=b""), api_key="")

    with pytest.raises(SynthesisFailure):
        await client.synthesize("hello", "en")


def test_voice_for_falls_back_to_default_language() -> None:
    client = _tts(lambda request: httpx.Response(200), voice_ids={"en": "voice-en"})

    assert client.voice_for("ta") == "voice-en"


def test_voice_for_without_any_voice_raises_configuration_error() -> None:
    client = _tts(lambda request: httpx.Response(200), voice_ids={})

    with pytest.raises(ConfigurationError):
        client.voice_for("en")


@pytest.mark.asyncio
async def test_transcribe_non_object_body_raises_transcription_failure() -> None:
    client = _stt(lambda request: httpx.Response(200, json=["x"]))

    with pytest.raises(TranscriptionFailure) as exc_info:
        await client.transcribe(b"audio", mime_type="audio/wav", language="ta")

    assert exc_info.value.error == "stt: malformed response body"
    assert exc_info.value.fallback_message == SERVICE_BUSY_MESSAGES["ta"]


@pytest.mark.asyncio
async def test_transcribe_non_numeric_confidence_uses_default() -> None:
    client = _stt(
        lambda request: httpx.Response(200, json={"transcript": "hi", "confidence": "high"})
    )

    result = await client.transcribe(b"audio", mime_type="audio/wav", language="en")

    assert result.transcript == "hi"
    assert result.confidence == 85.0
