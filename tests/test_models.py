"""Tests for arena/models.py."""

from arena.models import ProviderScore, ProviderSlot, RequestContext, TypedError, VerdictResult


def _error(code: str = "NETWORK_ERROR") -> TypedError:
    return TypedError(code=code, message="boom", retryable=True, provider="openai")


def test_request_context_payload_uses_wire_names():
    ctx = RequestContext(topic_a="meal kit", topic_b="retirees")
    assert ctx.to_payload() == {"topicA": "meal kit", "topicB": "retirees"}


def test_request_context_round_ids_are_unique():
    a = RequestContext("x", "y")
    b = RequestContext("x", "y")
    assert a.round_id != b.round_id


def test_typed_error_cancelled_flag():
    assert TypedError(code="CANCELLED", message="", retryable=False).cancelled
    assert not _error().cancelled


def test_slot_starts_idle(sample_slot):
    assert sample_slot.status == "idle"
    assert sample_slot.content == ""
    assert not sample_slot.terminal
    assert not sample_slot.degraded


def test_slot_append_and_complete(sample_slot):
    sample_slot.append("Hello ")
    assert sample_slot.status == "streaming"
    sample_slot.append("world")
    sample_slot.complete()
    assert sample_slot.content == "Hello world"
    assert sample_slot.status == "complete"
    assert sample_slot.errored is None


def test_slot_begin_attempt_discards_partial_text(sample_slot):
    sample_slot.append("half a pit")
    sample_slot.mark_retrying(_error())
    sample_slot.begin_attempt()
    assert sample_slot.content == ""
    assert sample_slot.retrying  # cleared by the first append
    sample_slot.append("new")
    assert not sample_slot.retrying


def test_slot_fall_back_is_degraded(sample_slot):
    err = _error()
    sample_slot.fall_back("placeholder pitch", err)
    assert sample_slot.terminal
    assert sample_slot.degraded
    assert sample_slot.errored is err
    assert sample_slot.status == "fallback"


def test_slot_reset_for_retry(sample_slot):
    sample_slot.fall_back("placeholder pitch", _error())
    sample_slot.reset_for_retry()
    assert sample_slot.content == ""
    assert sample_slot.errored is None
    assert sample_slot.retrying
    assert not sample_slot.terminal
    assert sample_slot.status == "retrying"


def test_slot_snapshot_is_independent(sample_slot):
    sample_slot.append("abc")
    snap = sample_slot.snapshot()
    sample_slot.append("def")
    assert snap.content == "abc"
    assert snap.round_id == sample_slot.round_id


def test_verdict_scores_by_provider():
    verdict = VerdictResult(
        scores={"groq": ProviderScore("groq", 8), "openai": ProviderScore("openai", 6)},
        winner="groq",
        reasoning="Sharper.",
    )
    assert verdict.scores_by_provider == {"groq": 8, "openai": 6}
    assert not verdict.degraded
