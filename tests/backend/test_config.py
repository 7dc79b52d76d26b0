from pathlib import Path

import pytest

from backend.config import ConfigError, PipelineConfig
from backend.engine import build_orchestrator
from ingestion.contracts import PayloadFormat


def test_defaults_from_empty_environment():
    config = PipelineConfig.from_env({})

    assert config.inference.api_key is None
    assert config.inference.model == "gemini-2.5-flash"
    assert config.rate_limit.max_calls == 30
    assert config.rate_limit.window_seconds == 60.0
    assert config.rate_limit.min_interval_seconds == 2.0
    assert config.rate_limit.scrape_calls_per_second == 1.0
    assert config.rate_limit.analyze_calls_per_second == 0.25
    assert config.fetch.inter_source_delay == 2.0
    assert config.fetch.throttle_cooldown == 60.0
    assert config.storage.db_path == Path("data") / "pulse.db"
    assert config.logging.level == "INFO"


def test_values_read_from_environment():
    config = PipelineConfig.from_env({
        "GEMINI_API_KEY": "secret",
        "PULSE_GEMINI_MODEL": "gemini-2.0-flash",
        "PULSE_DB_PATH": "/tmp/pulse-test.db",
        "PULSE_PAYLOAD_FORMAT": "feed",
        "PULSE_AI_MAX_CALLS": "10",
        "PULSE_ANALYZE_RATE": "0.5",
        "PULSE_LOG_JSON": "1",
    })

    assert config.inference.api_key == "secret"
    assert config.inference.model == "gemini-2.0-flash"
    assert config.storage.db_path == Path("/tmp/pulse-test.db")
    assert config.fetch.payload_format == PayloadFormat.FEED
    assert config.rate_limit.max_calls == 10
    assert config.rate_limit.analyze_calls_per_second == 0.5
    assert config.logging.json_output is True


def test_blank_api_key_is_absent():
    assert PipelineConfig.from_env({"GEMINI_API_KEY": ""}).inference.api_key is None


@pytest.mark.parametrize("env", [
    {"PULSE_FETCH_TIMEOUT": "soon"},
    {"PULSE_PAYLOAD_FORMAT": "xml"},
])
def test_bad_values_raise_config_error(env):
    with pytest.raises(ConfigError):
        PipelineConfig.from_env(env)


def test_with_db_path_replaces_only_storage():
    config = PipelineConfig.from_env({"GEMINI_API_KEY": "k"}).with_db_path("/tmp/other.db")

    assert config.storage.db_path == Path("/tmp/other.db")
    assert config.inference.api_key == "k"


def test_build_without_key_starts_degraded(tmp_path):
    config = PipelineConfig.from_env({}).with_db_path(tmp_path / "pulse.db")

    orchestrator = build_orchestrator(config)
    try:
        assert orchestrator.engine.degraded
        assert orchestrator.status()["engine"]["provider"] is None
        assert orchestrator.stats().total == 0
    finally:
        orchestrator.close()


def test_build_with_key_starts_primary(tmp_path):
    config = PipelineConfig.from_env({"GEMINI_API_KEY": "k"}).with_db_path(tmp_path / "pulse.db")

    orchestrator = build_orchestrator(config)
    try:
        assert not orchestrator.engine.degraded
        assert orchestrator.status()["engine"]["provider"] == "gemini"
    finally:
        orchestrator.close()
