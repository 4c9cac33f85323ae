"""Shared pytest fixtures."""

import json
from collections.abc import Callable

import httpx
import pytest

from arena.models import ProviderSlot, RequestContext
from config.config_loader import (
    AppConfig,
    EndpointsConfig,
    ProviderConfig,
    RetryConfig,
    StreamingConfig,
    TimeoutsConfig,
    TopicsConfig,
)

BASE_URL = "http://arena.test"

PITCHES = {
    "groq": "MEAL KIT for RETIREES. Fresh, portioned dinners delivered weekly with large-print recipes.",
    "openai": "Problem: retirees cook for one or two. Solution: a meal kit sized for small households.",
    "anthropic": "Executive summary: a meal kit that respects dietary needs and fixed incomes for retirees.",
}


@pytest.fixture
def sample_app_config() -> AppConfig:
    """Production shape with every delay at zero so tests run instantly."""
    return AppConfig(
        endpoints=EndpointsConfig(base_url=BASE_URL),
        providers={
            "groq": ProviderConfig("groq", "LLAMA 3.3", "event", reveal_interval_sec=0.0),
            "openai": ProviderConfig("openai", "GPT-4o", "raw", reveal_interval_sec=0.0),
            "anthropic": ProviderConfig("anthropic", "SONNET 4", "raw", reveal_interval_sec=0.0),
        },
        retry=RetryConfig(max_attempts=3, base_delay_sec=0.0, backoff_factor=2.0, max_delay_sec=0.0),
        timeouts=TimeoutsConfig(pitch_sec=5.0, judge_sec=5.0, stream_sec=5.0, connect_sec=5.0),
        streaming=StreamingConfig(
            stagger_sec=0.0,
            batch_min_chars=5,
            batch_interval_sec=0.0,
            debounce_sec=0.0,
            min_content_length=50,
        ),
        topics=TopicsConfig(concepts=["meal kit", "tool rental"], user_groups=["retirees", "gamers"]),
    )


@pytest.fixture
def sample_context() -> RequestContext:
    return RequestContext(topic_a="meal kit", topic_b="retirees")


@pytest.fixture
def sample_slot(sample_context: RequestContext) -> ProviderSlot:
    return ProviderSlot(provider="openai", round_id=sample_context.round_id)


def event_line(**payload) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def event_body(text: str, size: int = 8) -> list[bytes]:
    """A pitch as groq-style event lines, one per ``size`` characters, then done."""
    lines = [event_line(type="text", content=text[i:i + size]) for i in range(0, len(text), size)]
    lines.append(event_line(type="done"))
    return lines


def chunked(parts: list[bytes]):
    """Async byte stream for httpx.Response(content=...), one chunk per item."""

    async def gen():
        for part in parts:
            yield part

    return gen()


def verdict_json(scores: dict[str, float], winner: str, reasoning: str = "Clear winner.") -> dict:
    return {
        "scores": {name: {"score": score, "reasoning": f"{name} notes"} for name, score in scores.items()},
        "winner": winner,
        "overallReasoning": reasoning,
    }


class FakeBackend:
    """Routes MockTransport requests to per-path handlers and records every call."""

    def __init__(self) -> None:
        self.routes: dict[str, Callable] = {}
        self.calls: list[str] = []

    def route(self, path: str, handler: Callable) -> None:
        self.routes[path] = handler

    def count(self, path: str) -> int:
        return self.calls.count(path)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append(path)
        handler = self.routes.get(path)
        if handler is None:
            return httpx.Response(404, json={"code": "NOT_FOUND", "message": path})
        response = handler(request)
        if not isinstance(response, httpx.Response):
            response = await response
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def serve_pitches(backend: FakeBackend, pitches: dict[str, str] = PITCHES) -> None:
    """Stream every provider's pitch in the format its config declares."""

    def make(name: str, text: str):
        def handler(request: httpx.Request) -> httpx.Response:
            if name == "groq":
                return httpx.Response(
                    200, headers={"content-type": "text/event-stream"}, content=chunked(event_body(text))
                )
            parts = [text[i:i + 10].encode("utf-8") for i in range(0, len(text), 10)]
            return httpx.Response(200, headers={"content-type": "text/plain"}, content=chunked(parts))

        return handler

    for name, text in pitches.items():
        backend.route(f"/api/pitch/{name}", make(name, text))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()
