"""FarmVoice package."""

from .config import FilterConfig, PipelineConfig, RaceConfig, RoutingConfig

__all__ = ["FilterConfig", "PipelineConfig", "RaceConfig", "RoutingConfig"]
