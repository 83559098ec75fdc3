import json

import pytest
from pydantic import ValidationError

from farmvoice.config import PipelineConfig, RoutingConfig
from farmvoice.pipeline.location import StaticLocationLookup
from farmvoice.settings import Settings


def test_settings_read_timing_overrides_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("SOFT_DEADLINE_S", "4")
    monkeypatch.setenv("CLEARANCE_PAUSE_S", "0.5")
    monkeypatch.setenv("TTS_VOICE_TA", "tamil-voice")

    settings = Settings(_env_file=None)
    config = settings.pipeline_config()

    assert config.race.soft_deadline_s == 4.0
    assert config.race.clearance_pause_s == 0.5
    assert config.race.primary_timeout_s == 60.0
    assert settings.voice_ids()["ta"] == "tamil-voice"


def test_pipeline_defaults_match_latency_budget() -> None:
    config = PipelineConfig()

    assert config.latency_budget_ms == 3000.0
    assert config.race.soft_deadline_s == 8.0
    assert config.race.clearance_pause_s == 1.5
    assert config.filter.long_query_threshold == 50
    assert config.routing.fast_path_max_tokens == 150


def test_routing_config_rejects_invalid_bounds() -> None:
    with pytest.raises(ValidationError):
        RoutingConfig(short_query_max_words=0)


def test_location_lookup_is_case_insensitive_and_skips_bad_rows() -> None:
    lookup = StaticLocationLookup(
        {
            "Coimbatore": {"name": "Coimbatore", "soil_type": "red loam", "avg_rainfall_mm": 650},
            "broken": {"soil_type": "laterite"},
        }
    )

    location = lookup.get(" COIMBATORE ")

    assert location is not None
    assert location.soil_type == "red loam"
    assert location.avg_rainfall_mm == 650.0
    assert lookup.get("broken") is None
    assert lookup.get(None) is None
    assert len(lookup) == 1


def test_location_lookup_from_json(tmp_path) -> None:
    path = tmp_path / "districts.json"
    path.write_text(
        json.dumps({"districts": {"wayanad": {"name": "Wayanad", "soil_type": "laterite"}}}),
        encoding="utf-8",
    )

    lookup = StaticLocationLookup.from_json(path)

    assert lookup.get("wayanad").name == "Wayanad"
    assert len(StaticLocationLookup.from_json(tmp_path / "missing.json")) == 0


def test_settings_expose_sampling_and_routing_overrides(monkeypatch) -> None:
    monkeypatch.setenv("RATE_LIMIT_TEMPERATURE", "0.9")
    monkeypatch.setenv("FALLBACK_TEMPERATURE", "0.7")
    monkeypatch.setenv("FAST_PATH_MAX_TOKENS", "120")
    monkeypatch.setenv("NORMAL_TEMPERATURE", "0.3")
    monkeypatch.setenv("SHORT_QUERY_MAX_WORDS", "3")

    config = Settings(_env_file=None).pipeline_config()

    assert config.race.rate_limit_temperature == 0.9
    assert config.race.fallback_temperature == 0.7
    assert config.routing.fast_path_max_tokens == 120
    assert config.routing.normal_temperature == 0.3
    assert config.routing.short_query_max_words == 3
    assert config.routing.normal_max_tokens == 350
