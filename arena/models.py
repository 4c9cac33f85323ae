"""Dataclasses for one pitch battle: context, slots, errors, verdicts. No I/O."""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

CANCELLED_CODE = "CANCELLED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_round_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class RequestContext:
    topic_a: str           # the concept, e.g. "meal kit"
    topic_b: str           # the audience, e.g. "retirees"
    round_id: str = field(default_factory=new_round_id)

    def to_payload(self) -> dict[str, str]:
        return {"topicA": self.topic_a, "topicB": self.topic_b}


@dataclass(frozen=True)
class TypedError:
    code: str
    message: str
    retryable: bool
    provider: str | None = None
    timestamp: datetime = field(default_factory=_utcnow)
    status: int | None = None          # HTTP status when the failure was a response
    retry_after: float | None = None   # seconds, rate limits only

    @property
    def cancelled(self) -> bool:
        return self.code == CANCELLED_CODE


@dataclass
class ProviderSlot:
    """Per-provider state for one round.

    Mutated only by that provider's fetcher and by a manual retry.
    """

    provider: str
    round_id: str
    content: str = ""
    terminal: bool = False
    errored: TypedError | None = None
    retrying: bool = False

    def begin_attempt(self) -> None:
        """A fresh stream never interleaves with a previous attempt's text."""
        self.content = ""
        self.terminal = False

    def append(self, text: str) -> None:
        self.content += text
        self.retrying = False

    def mark_retrying(self, error: TypedError) -> None:
        self.errored = error
        self.retrying = True

    def complete(self) -> None:
        self.terminal = True
        self.errored = None
        self.retrying = False

    def fall_back(self, content: str, error: TypedError) -> None:
        self.content = content
        self.terminal = True
        self.errored = error
        self.retrying = False

    def reset_for_retry(self) -> None:
        self.content = ""
        self.errored = None
        self.retrying = True
        self.terminal = False

    @property
    def degraded(self) -> bool:
        return self.terminal and self.errored is not None

    @property
    def status(self) -> str:
        if self.terminal:
            return "fallback" if self.errored is not None else "complete"
        if self.retrying:
            return "retrying"
        if self.content:
            return "streaming"
        return "idle"

    def snapshot(self) -> "ProviderSlot":
        return replace(self)


@dataclass(frozen=True)
class ProviderScore:
    provider: str
    score: int             # always within [1, 10]
    reasoning: str = ""


@dataclass
class VerdictResult:
    scores: dict[str, ProviderScore]
    winner: str
    reasoning: str
    degraded: bool = False
    error: TypedError | None = None

    @property
    def scores_by_provider(self) -> dict[str, int]:
        return {name: s.score for name, s in self.scores.items()}


@dataclass
class BattleResult:
    context: RequestContext
    pitches: dict[str, ProviderSlot]
    verdict: VerdictResult
    duration_sec: float
