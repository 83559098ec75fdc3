"""Error taxonomy for provider calls and pipeline stages."""

from __future__ import annotations


class FarmVoiceError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(FarmVoiceError):
    """A required credential or setting is missing."""


class ProviderError(FarmVoiceError):
    """A remote model provider returned an error or could not be reached."""

    def __init__(self, provider: str, detail: str, *, status_code: int | None = None) -> None:
        self.provider = provider
        self.detail = detail
        self.status_code = status_code
        status = status_code if status_code is not None else "N/A"
        super().__init__(f"{provider} [{status}]: {detail}")


class RateLimitedError(ProviderError):
    """Provider answered with an explicit rate-limit status (HTTP 429)."""


class ProviderAuthError(ProviderError):
    """Provider rejected the credentials (HTTP 401/403)."""


class TranscriptionFailure(FarmVoiceError):
    """Speech-to-text failed or produced nothing usable."""

    def __init__(self, error: str, fallback_message: str) -> None:
        self.error = error
        self.fallback_message = fallback_message
        super().__init__(error)


class GenerationFailure(FarmVoiceError):
    """Both the primary and the secondary model failed to answer."""

    def __init__(
        self,
        *,
        primary_error: BaseException | str | None,
        secondary_error: BaseException | str | None,
    ) -> None:
        self.primary_error = primary_error
        self.secondary_error = secondary_error
        super().__init__(
            f"generation failed: primary={primary_error!s}; secondary={secondary_error!s}"
        )


class SynthesisFailure(FarmVoiceError):
    """Text-to-speech failed; the pipeline degrades to a text-only answer."""
