"""Load settings.yaml into typed dataclasses. Environment can override the base URL."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

BASE_URL_ENV = "ARENA_BASE_URL"

_STREAM_FORMATS = ("raw", "event")


@dataclass
class ProviderConfig:
    name: str
    display_name: str
    stream_format: str               # "raw" or "event"
    reveal_interval_sec: float = 0.05


@dataclass
class EndpointsConfig:
    base_url: str
    pitch_path: str = "/api/pitch"
    judge_path: str = "/api/judge"
    health_path: str = "/api/health"


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay_sec: float = 1.0
    backoff_factor: float = 2.0
    max_delay_sec: float = 30.0


@dataclass
class TimeoutsConfig:
    pitch_sec: float = 30.0
    judge_sec: float = 15.0
    stream_sec: float = 60.0
    connect_sec: float = 10.0


@dataclass
class StreamingConfig:
    stagger_sec: float = 0.5
    batch_min_chars: int = 5
    batch_interval_sec: float = 0.05
    debounce_sec: float = 0.1
    min_content_length: int = 50


@dataclass
class TopicsConfig:
    concepts: list[str] = field(default_factory=list)
    user_groups: list[str] = field(default_factory=list)


@dataclass
class AppConfig:
    endpoints: EndpointsConfig
    providers: dict[str, ProviderConfig]
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeouts: TimeoutsConfig = field(default_factory=TimeoutsConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    topics: TopicsConfig = field(default_factory=TopicsConfig)

    @property
    def provider_names(self) -> list[str]:
        """Provider keys in declaration order. This order breaks score ties."""
        return list(self.providers)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError if the
    provider section is unusable. ARENA_BASE_URL wins over the file's base_url.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    endpoints_raw = raw["endpoints"]
    base_url = os.environ.get(BASE_URL_ENV, "").strip() or str(endpoints_raw["base_url"])
    endpoints = EndpointsConfig(
        base_url=base_url.rstrip("/"),
        pitch_path=str(endpoints_raw.get("pitch_path", "/api/pitch")),
        judge_path=str(endpoints_raw.get("judge_path", "/api/judge")),
        health_path=str(endpoints_raw.get("health_path", "/api/health")),
    )

    providers: dict[str, ProviderConfig] = {}
    for name, provider_raw in raw["providers"].items():
        stream_format = str(provider_raw.get("stream_format", "raw"))
        if stream_format not in _STREAM_FORMATS:
            raise ValueError(f"Provider '{name}': unknown stream_format '{stream_format}'")
        providers[name] = ProviderConfig(
            name=name,
            display_name=str(provider_raw.get("display_name", name)),
            stream_format=stream_format,
            reveal_interval_sec=float(provider_raw.get("reveal_interval_sec", 0.05)),
        )

    if len(providers) != 3:
        raise ValueError(f"Exactly 3 providers are required, got {len(providers)}")

    retry_raw = raw.get("retry", {})
    retry = RetryConfig(
        max_attempts=int(retry_raw.get("max_attempts", 3)),
        base_delay_sec=float(retry_raw.get("base_delay_sec", 1.0)),
        backoff_factor=float(retry_raw.get("backoff_factor", 2.0)),
        max_delay_sec=float(retry_raw.get("max_delay_sec", 30.0)),
    )

    timeouts_raw = raw.get("timeouts", {})
    timeouts = TimeoutsConfig(
        pitch_sec=float(timeouts_raw.get("pitch_sec", 30.0)),
        judge_sec=float(timeouts_raw.get("judge_sec", 15.0)),
        stream_sec=float(timeouts_raw.get("stream_sec", 60.0)),
        connect_sec=float(timeouts_raw.get("connect_sec", 10.0)),
    )

    streaming_raw = raw.get("streaming", {})
    streaming = StreamingConfig(
        stagger_sec=float(streaming_raw.get("stagger_sec", 0.5)),
        batch_min_chars=int(streaming_raw.get("batch_min_chars", 5)),
        batch_interval_sec=float(streaming_raw.get("batch_interval_sec", 0.05)),
        debounce_sec=float(streaming_raw.get("debounce_sec", 0.1)),
        min_content_length=int(streaming_raw.get("min_content_length", 50)),
    )

    topics_raw = raw.get("topics", {})
    topics = TopicsConfig(
        concepts=[str(c) for c in topics_raw.get("concepts", [])],
        user_groups=[str(g) for g in topics_raw.get("user_groups", [])],
    )

    logger.debug("Loaded %d providers, base URL %s", len(providers), endpoints.base_url)

    return AppConfig(
        endpoints=endpoints,
        providers=providers,
        retry=retry,
        timeouts=timeouts,
        streaming=streaming,
        topics=topics,
    )
