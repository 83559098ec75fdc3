"""Async client for OpenAI-compatible chat-completion endpoints."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Protocol

import httpx

from farmvoice.errors import (
    ConfigurationError,
    ProviderAuthError,
    ProviderError,
    RateLimitedError,
)
from farmvoice.types import GenerationRequest

logger = logging.getLogger(__name__)

_PROVIDER = "generation"


class TextGenerator(Protocol):
    """One text-generation endpoint the racer can dispatch to."""

    model: str

    async def generate(self, request: GenerationRequest, *, timeout: float) -> str:
        """Return generated text or raise a `ProviderError` subclass."""


class ChatCompletionsClient:
    """Shared keep-alive HTTP session for one generation provider.

    Every model bound to the same provider reuses this client so repeated
    calls skip the TCP/TLS handshake.
    """

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = (api_key or "").strip()
        self._base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            limits=httpx.Limits(max_keepalive_connections=10, keepalive_expiry=120.0),
        )

    async def complete(
        self,
        *,
        model: str,
        request: GenerationRequest,
        timeout: float,
    ) -> str:
        if not self._api_key:
            raise ConfigurationError("GENERATION_API_KEY is not set")

        body: dict[str, Any] = {
            "model": model,
            "messages": [message.to_dict() for message in request.messages],
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        start = perf_counter()
        try:
            response = await self._client.post(
                f"{self._base_url}/chat/completions",
                json=body,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise ProviderError(_PROVIDER, f"{model} timed out after {timeout}s") from exc
        except httpx.TransportError as exc:
            raise ProviderError(_PROVIDER, f"{model} transport error: {exc}") from exc

        _raise_for_status(response, model)
        content = _extract_content(response, model)
        logger.info(
            "generation model=%s latency_ms=%.0f chars=%d",
            _short_name(model),
            (perf_counter() - start) * 1000.0,
            len(content),
        )
        return content

    async def aclose(self) -> None:
        await self._client.aclose()


class ChatModel:
    """Binds a model id to a provider client."""

    def __init__(self, client: ChatCompletionsClient, model: str) -> None:
        self.client = client
        self.model = model

    async def generate(self, request: GenerationRequest, *, timeout: float) -> str:
        return await self.client.complete(model=self.model, request=request, timeout=timeout)


def _raise_for_status(response: httpx.Response, model: str) -> None:
    if response.is_success:
        return
    detail = response.text[:500]
    status = response.status_code
    if status == 429:
        raise RateLimitedError(_PROVIDER, f"{model}: {detail}", status_code=status)
    if status in (401, 403):
        raise ProviderAuthError(_PROVIDER, f"{model}: {detail}", status_code=status)
    raise ProviderError(_PROVIDER, f"{model}: {detail}", status_code=status)


def _extract_content(response: httpx.Response, model: str) -> str:
    try:
        payload = response.json()
        choices = payload.get("choices") or []
        if not choices:
            return ""
        message = choices[0].get("message") or {}
        return str(message.get("content") or "")
    except (ValueError, AttributeError, IndexError) as exc:
        raise ProviderError(
            _PROVIDER, f"{model}: malformed response body", status_code=response.status_code
        ) from exc


def _short_name(model: str) -> str:
    return model.rsplit("/", 1)[-1]
