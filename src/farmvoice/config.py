"""Configuration models for the voice pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class RaceConfig(BaseModel):
    """Configures the primary/secondary generation race and its timers."""

    primary_timeout_s: float = Field(default=60.0, gt=0.0)
    soft_deadline_s: float = Field(default=8.0, gt=0.0)
    clearance_pause_s: float = Field(default=1.5, ge=0.0)
    secondary_timeout_s: float = Field(default=30.0, gt=0.0)
    fallback_temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    rate_limit_temperature: float = Field(default=0.6, ge=0.0, le=2.0)

    @model_validator(mode="after")
    def _check_deadlines(self) -> "RaceConfig":
        if self.soft_deadline_s >= self.primary_timeout_s:
            raise ValueError("soft_deadline_s must be shorter than primary_timeout_s")
        return self


class FilterConfig(BaseModel):
    """Configures tiered knowledge-section selection."""

    long_query_threshold: int = Field(default=50, ge=1)
    slim_sections: list[str] = Field(
        default_factory=lambda: [
            "HIDDEN RISK DETECTION RULES",
            "INTEGRATED PEST MANAGEMENT (IPM)",
        ]
    )


class RoutingConfig(BaseModel):
    """Configures greeting/short-query routing and per-route sampling."""

    short_query_max_words: int = Field(default=4, ge=1)
    fast_path_max_tokens: int = Field(default=150, ge=16)
    fast_path_temperature: float = Field(default=0.6, ge=0.0, le=2.0)
    normal_max_tokens: int = Field(default=350, ge=16)
    normal_temperature: float = Field(default=0.4, ge=0.0, le=2.0)


class PipelineConfig(BaseModel):
    """Configures the end-to-end latency budget and nested stage configs."""

    latency_budget_ms: float = Field(default=3000.0, gt=0.0)
    race: RaceConfig = Field(default_factory=RaceConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
