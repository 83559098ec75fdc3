"""Environment-driven deployment settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from farmvoice.config import FilterConfig, PipelineConfig, RaceConfig, RoutingConfig


class Settings(BaseSettings):
    """Provider credentials, endpoints, and tunable timing constants."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Text generation (OpenAI-compatible chat completions)
    GENERATION_API_KEY: str = Field(default="", description="Bearer key for the generation API")
    GENERATION_BASE_URL: str = Field(default="https://api.featherless.ai/v1")
    PRIMARY_MODEL: str = Field(default="meta-llama/Meta-Llama-3-70B-Instruct")
    SECONDARY_MODEL: str = Field(default="meta-llama/Meta-Llama-3-8B-Instruct")

    # Speech-to-text
    STT_API_KEY: str = Field(default="")
    STT_URL: str = Field(default="https://api.sarvam.ai/speech-to-text")
    STT_MODEL: str = Field(default="saaras:v3")
    STT_TIMEOUT_S: float = Field(default=60.0, gt=0.0)

    # Text-to-speech
    TTS_API_KEY: str = Field(default="")
    TTS_BASE_URL: str = Field(default="https://api.elevenlabs.io/v1")
    TTS_MODEL_ID: str = Field(default="eleven_multilingual_v2")
    TTS_VOICE_EN: str = Field(default="pNInz6obpgDQGcFmaJgB")
    TTS_VOICE_TA: str = Field(default="pNInz6obpgDQGcFmaJgB")
    TTS_VOICE_ML: str = Field(default="Lcf7135Sc6Sjn9as9vmb")
    TTS_TIMEOUT_S: float = Field(default=15.0, gt=0.0)

    # Knowledge + location data
    KNOWLEDGE_PATH: str | None = Field(default=None, description="Override for the bundled corpus")
    DISTRICTS_PATH: str | None = Field(default=None, description="JSON district table")

    # Race timing and sampling
    PRIMARY_TIMEOUT_S: float = Field(default=60.0, gt=0.0)
    SOFT_DEADLINE_S: float = Field(default=8.0, gt=0.0)
    CLEARANCE_PAUSE_S: float = Field(default=1.5, ge=0.0)
    SECONDARY_TIMEOUT_S: float = Field(default=30.0, gt=0.0)
    FALLBACK_TEMPERATURE: float = Field(default=0.6, ge=0.0, le=2.0)
    RATE_LIMIT_TEMPERATURE: float = Field(default=0.6, ge=0.0, le=2.0)

    # Query routing
    SHORT_QUERY_MAX_WORDS: int = Field(default=4, ge=1)
    FAST_PATH_MAX_TOKENS: int = Field(default=150, ge=16)
    FAST_PATH_TEMPERATURE: float = Field(default=0.6, ge=0.0, le=2.0)
    NORMAL_MAX_TOKENS: int = Field(default=350, ge=16)
    NORMAL_TEMPERATURE: float = Field(default=0.4, ge=0.0, le=2.0)

    LATENCY_BUDGET_MS: float = Field(default=3000.0, gt=0.0)
    LOG_LEVEL: str = Field(default="INFO")

    def voice_ids(self) -> dict[str, str]:
        return {"en": self.TTS_VOICE_EN, "ta": self.TTS_VOICE_TA, "ml": self.TTS_VOICE_ML}

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            latency_budget_ms=self.LATENCY_BUDGET_MS,
            race=RaceConfig(
                primary_timeout_s=self.PRIMARY_TIMEOUT_S,
                soft_deadline_s=self.SOFT_DEADLINE_S,
                clearance_pause_s=self.CLEARANCE_PAUSE_S,
                secondary_timeout_s=self.SECONDARY_TIMEOUT_S,
                fallback_temperature=self.FALLBACK_TEMPERATURE,
                rate_limit_temperature=self.RATE_LIMIT_TEMPERATURE,
            ),
            filter=FilterConfig(),
            routing=RoutingConfig(
                short_query_max_words=self.SHORT_QUERY_MAX_WORDS,
                fast_path_max_tokens=self.FAST_PATH_MAX_TOKENS,
                fast_path_temperature=self.FAST_PATH_TEMPERATURE,
                normal_max_tokens=self.NORMAL_MAX_TOKENS,
                normal_temperature=self.NORMAL_TEMPERATURE,
            ),
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
