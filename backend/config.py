"""
Pipeline Configuration

Frozen configuration for every layer, read from the environment.

Environment variables (all optional):
    GEMINI_API_KEY              Inference key; absent → engine starts degraded
    PULSE_GEMINI_MODEL          Model id (default gemini-2.5-flash)
    PULSE_DB_PATH               SQLite path (default ./data/pulse.db)
    PULSE_SOURCES_CONFIG        Path to sources.json
    PULSE_PAYLOAD_FORMAT        "listing" | "feed" for unconfigured sources
    PULSE_FETCH_TIMEOUT         Seconds per source request (default 10)
    PULSE_INTER_SOURCE_DELAY    Seconds between sources (default 2)
    PULSE_THROTTLE_COOLDOWN     Seconds after an upstream 429 (default 60)
    PULSE_AI_MAX_CALLS          Remote calls per window (default 30)
    PULSE_AI_WINDOW_SECONDS     Window length (default 60)
    PULSE_AI_MIN_INTERVAL       Seconds between remote calls (default 2)
    PULSE_SCRAPE_RATE           Analyze ceiling during scrape runs, calls/s (default 1)
    PULSE_ANALYZE_RATE          Analyze ceiling during analyze-only runs, calls/s (default 0.25)
    PULSE_LOG_LEVEL             Log level (default INFO)
    PULSE_LOG_JSON              "1" for JSON log lines
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional
import os

from ingestion.contracts import PayloadFormat


class ConfigError(ValueError):
    """Raised when an environment value cannot be interpreted."""


@dataclass(frozen=True)
class FetchConfig:
    sources_config: Optional[Path] = None
    payload_format: Optional[PayloadFormat] = None
    timeout_seconds: float = 10.0
    inter_source_delay: float = 2.0
    throttle_cooldown: float = 60.0
    throttle_retries: int = 1
    recency_window: str = "week"


@dataclass(frozen=True)
class InferenceConfig:
    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    timeout_seconds: float = 30.0
    throttle_retries: int = 1
    throttle_backoff: float = 5.0


@dataclass(frozen=True)
class RateLimitConfig:
    max_calls: int = 30
    window_seconds: float = 60.0
    min_interval_seconds: float = 2.0
    safety_margin_seconds: float = 1.0
    scrape_calls_per_second: float = 1.0
    analyze_calls_per_second: float = 0.25


@dataclass(frozen=True)
class StorageConfig:
    db_path: Path = Path("data") / "pulse.db"


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    json_output: bool = False


@dataclass(frozen=True)
class PipelineConfig:
    """Unified configuration for the whole pipeline."""
    fetch: FetchConfig = field(default_factory=FetchConfig)
    inference: InferenceConfig = field(default_factory=InferenceConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_db_path(self, db_path) -> 'PipelineConfig':
        return replace(self, storage=StorageConfig(db_path=Path(db_path)))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'PipelineConfig':
        env = os.environ if environ is None else environ

        sources_config = env.get("PULSE_SOURCES_CONFIG")
        payload_format = env.get("PULSE_PAYLOAD_FORMAT")
        try:
            fmt = PayloadFormat(payload_format) if payload_format else None
        except ValueError:
            raise ConfigError(f"PULSE_PAYLOAD_FORMAT must be 'listing' or 'feed', got {payload_format!r}")

        return cls(
            fetch=FetchConfig(
                sources_config=Path(sources_config) if sources_config else None,
                payload_format=fmt,
                timeout_seconds=_float(env, "PULSE_FETCH_TIMEOUT", 10.0),
                inter_source_delay=_float(env, "PULSE_INTER_SOURCE_DELAY", 2.0),
                throttle_cooldown=_float(env, "PULSE_THROTTLE_COOLDOWN", 60.0),
            ),
            inference=InferenceConfig(
                api_key=env.get("GEMINI_API_KEY") or None,
                model=env.get("PULSE_GEMINI_MODEL", "gemini-2.5-flash"),
            ),
            rate_limit=RateLimitConfig(
                max_calls=int(_float(env, "PULSE_AI_MAX_CALLS", 30)),
                window_seconds=_float(env, "PULSE_AI_WINDOW_SECONDS", 60.0),
                min_interval_seconds=_float(env, "PULSE_AI_MIN_INTERVAL", 2.0),
                scrape_calls_per_second=_float(env, "PULSE_SCRAPE_RATE", 1.0),
                analyze_calls_per_second=_float(env, "PULSE_ANALYZE_RATE", 0.25),
            ),
            storage=StorageConfig(
                db_path=Path(env.get("PULSE_DB_PATH", os.path.join("data", "pulse.db"))),
            ),
            logging=LoggingConfig(
                level=env.get("PULSE_LOG_LEVEL", "INFO"),
                json_output=env.get("PULSE_LOG_JSON", "") in ("1", "true", "yes"),
            ),
        )


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")
