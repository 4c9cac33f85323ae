"""Tests for arena/fallback.py."""

from arena.fallback import mock_pitch, mock_verdict, pick_winner
from arena.models import RequestContext, TypedError

PROVIDERS = ["groq", "openai", "anthropic"]


def test_mock_pitch_mentions_topics(sample_context):
    pitch = mock_pitch("groq", sample_context)
    assert "MEAL KIT" in pitch
    assert "RETIREES" in pitch
    assert len(pitch) > 50


def test_mock_pitch_is_deterministic(sample_context):
    other = RequestContext(topic_a="meal kit", topic_b="retirees")
    assert mock_pitch("openai", sample_context) == mock_pitch("openai", other)


def test_mock_pitch_differs_per_provider(sample_context):
    pitches = {mock_pitch(name, sample_context) for name in PROVIDERS}
    assert len(pitches) == 3


def test_mock_pitch_unknown_provider_uses_generic(sample_context):
    pitch = mock_pitch("mistral", sample_context)
    assert "mistral" in pitch
    assert "MEAL KIT" in pitch


def test_pick_winner_tie_goes_to_first_listed():
    assert pick_winner({"groq": 8, "openai": 8, "anthropic": 7}, PROVIDERS) == "groq"
    assert pick_winner({"groq": 6, "openai": 9, "anthropic": 9}, PROVIDERS) == "openai"


def test_mock_verdict_shape(sample_context):
    error = TypedError(code="PARSE_ERROR", message="garbage", retryable=True)
    verdict = mock_verdict(sample_context, {}, PROVIDERS, error=error)
    assert verdict.degraded
    assert verdict.error is error
    assert set(verdict.scores) == set(PROVIDERS)
    assert all(7 <= s.score <= 9 for s in verdict.scores.values())
    assert verdict.winner == pick_winner(verdict.scores_by_provider, PROVIDERS)
    assert verdict.reasoning


def test_mock_verdict_seed_is_reproducible(sample_context):
    a = mock_verdict(sample_context, {}, PROVIDERS, seed=42)
    b = mock_verdict(sample_context, {}, PROVIDERS, seed=42)
    assert a.scores_by_provider == b.scores_by_provider
    assert a.winner == b.winner


def test_mock_verdict_without_seed_derives_from_inputs(sample_context):
    pitches = {name: f"pitch from {name}" for name in PROVIDERS}
    a = mock_verdict(sample_context, pitches, PROVIDERS)
    b = mock_verdict(RequestContext("meal kit", "retirees"), dict(pitches), PROVIDERS)
    assert a.scores_by_provider == b.scores_by_provider
