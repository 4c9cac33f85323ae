"""Judge invocation: one request scoring all pitches, sanitized, with retry and fallback."""

import asyncio
import json
import logging
import math
import re
from collections.abc import Callable
from typing import Any

import httpx

from arena.cancel import CancelToken
from arena.errors import ParseError
from arena.fallback import mock_verdict, pick_winner
from arena.models import ProviderScore, RequestContext, TypedError, VerdictResult
from arena.retry import OperationError, retry
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)

MIN_SCORE = 1
MAX_SCORE = 10


def extract_json(text: str) -> dict[str, Any]:
    """Return the first well-formed JSON object in ``text``.

    Handles a bare JSON body as well as JSON wrapped in prose or code fences.
    """
    stripped = _CODE_FENCE.sub("", text).strip()
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError:
        pass
    else:
        if isinstance(data, dict):
            return data

    decoder = json.JSONDecoder()
    start = stripped.find("{")
    while start != -1:
        try:
            data, _ = decoder.raw_decode(stripped, start)
        except json.JSONDecodeError:
            start = stripped.find("{", start + 1)
            continue
        if isinstance(data, dict):
            return data
        start = stripped.find("{", start + 1)
    raise ParseError("No JSON object found in judge response")


def clamp_score(value: int | float) -> int:
    """Round half up, then clamp into [1, 10]. Infinities and huge ints clamp by sign."""
    if isinstance(value, int):
        rounded = value
    elif math.isinf(value):
        return MAX_SCORE if value > 0 else MIN_SCORE
    else:
        rounded = math.floor(value + 0.5)
    return max(MIN_SCORE, min(MAX_SCORE, rounded))


def _as_number(value: Any, provider: str) -> int | float:
    if isinstance(value, bool):
        raise ParseError(f"Score for {provider} is not numeric")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise ParseError(f"Score for {provider} is not numeric: {value!r}") from exc
    # ints stay ints; a float() of a 400-digit score would overflow
    if isinstance(value, int):
        return value
    if not isinstance(value, float) or math.isnan(value):
        raise ParseError(f"Score for {provider} is not numeric")
    return value


def sanitize_verdict(data: dict[str, Any], providers: list[str]) -> VerdictResult:
    """Validate an upstream verdict and coerce it into the VerdictResult invariants.

    The upstream model's output is untrusted: scores are clamped and the
    winner is recomputed from the clamped scores.

    Raises:
        ParseError: Missing scores, unknown winner or empty reasoning.
    """
    scores_raw = data.get("scores")
    if not isinstance(scores_raw, dict):
        raise ParseError("Judge response has no scores object")

    scores: dict[str, ProviderScore] = {}
    for name in providers:
        if name not in scores_raw:
            raise ParseError(f"Judge response is missing a score for {name}")
        entry = scores_raw[name]
        reasoning = ""
        if isinstance(entry, dict):
            reasoning = str(entry.get("reasoning") or "")
            entry = entry.get("score")
        scores[name] = ProviderScore(
            provider=name,
            score=clamp_score(_as_number(entry, name)),
            reasoning=reasoning,
        )

    claimed_winner = data.get("winner")
    if claimed_winner not in providers:
        raise ParseError(f"Judge named an unknown winner: {claimed_winner!r}")

    reasoning = data.get("overallReasoning") or data.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        raise ParseError("Judge response has no reasoning")

    winner = pick_winner({n: s.score for n, s in scores.items()}, providers)
    if winner != claimed_winner:
        logger.warning("Judge claimed %s won but scores favour %s; using scores", claimed_winner, winner)

    return VerdictResult(scores=scores, winner=winner, reasoning=reasoning.strip())


class JudgeInvoker:
    """Sends all pitches to the judge endpoint and returns a sanitized verdict.

    Never fails for network, parse or validation reasons: after the retry
    budget it returns a degraded mock verdict instead.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: AppConfig,
        *,
        seed: int | None = None,
        on_retry: Callable[[TypedError, int], None] | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._seed = seed
        self._on_retry = on_retry
        self._timeout = httpx.Timeout(config.timeouts.judge_sec, connect=config.timeouts.connect_sec)

    @property
    def url(self) -> str:
        return f"{self._config.endpoints.base_url}{self._config.endpoints.judge_path}"

    async def invoke(
        self,
        context: RequestContext,
        pitches: dict[str, str],
        token: CancelToken | None = None,
    ) -> VerdictResult:
        """Score the pitches.

        Raises:
            CancellationError: ``token`` was cancelled.
        """
        providers = self._config.provider_names
        try:
            verdict = await retry(
                lambda: self._attempt(context, pitches, providers),
                self._config.retry,
                token=token,
                on_retry=self._on_retry,
                provider="judge",
            )
        except OperationError as exc:
            logger.warning("Judge failed (%s), using fallback verdict", exc.error.code)
            return mock_verdict(context, pitches, providers, seed=self._seed, error=exc.error)

        logger.info("Verdict: %s wins (%s)", verdict.winner, verdict.scores_by_provider)
        return verdict

    async def _attempt(
        self,
        context: RequestContext,
        pitches: dict[str, str],
        providers: list[str],
    ) -> VerdictResult:
        payload = {
            **context.to_payload(),
            "pitches": {name: pitches.get(name, "") for name in providers},
        }
        response = await asyncio.wait_for(
            self._client.post(self.url, json=payload, timeout=self._timeout),
            timeout=self._config.timeouts.judge_sec,
        )
        response.raise_for_status()
        return sanitize_verdict(extract_json(response.text), providers)
