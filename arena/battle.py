"""Battle orchestration: three staggered pitch fetches, a completion gate, then the judge."""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace

import httpx

from arena.cancel import CancelToken
from arena.errors import CancellationError
from arena.fetcher import ProviderFetcher
from arena.gate import CompletionGate
from arena.judge import JudgeInvoker
from arena.models import BattleResult, ProviderSlot, RequestContext, TypedError, VerdictResult, new_round_id
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)


class BattleOrchestrator:
    """Owns the lifecycle of battle rounds against one set of endpoints.

    Construct one explicitly and pass it to whatever drives the UI. Slot
    changes reach ``on_slot_update`` as snapshots; ``on_pitches_complete``
    fires once per round, ``on_verdict`` once the judge answers.

    Starting a round cancels everything belonging to the previous one.
    Updates tagged with an old round id are dropped.
    """

    def __init__(
        self,
        config: AppConfig,
        client: httpx.AsyncClient | None = None,
        *,
        on_slot_update: Callable[[ProviderSlot], None] | None = None,
        on_pitches_complete: Callable[[dict[str, str]], None] | None = None,
        on_verdict: Callable[[VerdictResult], None] | None = None,
        on_judge_retry: Callable[[TypedError, int], None] | None = None,
        judge_seed: int | None = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeouts.pitch_sec, connect=config.timeouts.connect_sec),
        )
        self._on_slot_update = on_slot_update
        self._on_pitches_complete = on_pitches_complete
        self._on_verdict = on_verdict

        self._fetchers = {
            name: ProviderFetcher(provider, self._client, config, self._publish)
            for name, provider in config.providers.items()
        }
        self._judge = JudgeInvoker(self._client, config, seed=judge_seed, on_retry=on_judge_retry)

        self._context: RequestContext | None = None
        self._token: CancelToken | None = None
        self._provider_tokens: dict[str, CancelToken] = {}
        self._slots: dict[str, ProviderSlot] = {}
        self._gate: CompletionGate | None = None
        self._pitches_ready: asyncio.Future | None = None

    async def __aenter__(self) -> "BattleOrchestrator":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def context(self) -> RequestContext | None:
        return self._context

    @property
    def slots(self) -> dict[str, ProviderSlot]:
        """Snapshots of the active round's slots."""
        return {name: slot.snapshot() for name, slot in self._slots.items()}

    def start_round(self, context: RequestContext) -> RequestContext:
        """Cancel any previous round and launch the three pitch fetches.

        Every round gets a fresh round id, even when ``context`` is reused,
        so stale updates can always be told apart. Returns the round's context.
        """
        self.cancel()
        context = replace(context, round_id=new_round_id())
        self._context = context
        self._token = CancelToken()
        providers = self._config.provider_names
        self._slots = {name: ProviderSlot(provider=name, round_id=context.round_id) for name in providers}
        self._pitches_ready = asyncio.get_running_loop().create_future()
        self._gate = CompletionGate(
            providers,
            self._on_gate,
            min_content_length=self._config.streaming.min_content_length,
            debounce_sec=self._config.streaming.debounce_sec,
        )

        logger.info(
            "Round %s: %r for %r with %s",
            context.round_id[:8], context.topic_a, context.topic_b, ", ".join(providers),
        )
        stagger = self._config.streaming.stagger_sec
        for index, name in enumerate(providers):
            self._launch(name, delay=index * stagger)
        return context

    def retry_now(self, provider: str) -> asyncio.Task:
        """Manual retry: reset the slot and fetch again with a fresh attempt budget."""
        if self._context is None:
            raise RuntimeError("No active round")
        if provider not in self._slots:
            raise KeyError(f"Unknown provider: {provider}")

        slot = self._slots[provider]
        slot.reset_for_retry()
        logger.info("Manual retry for %s", provider)
        self._publish(slot)
        return self._launch(provider)

    async def wait_for_pitches(self) -> dict[str, str]:
        """Wait for the completion gate of the active round.

        Raises:
            CancellationError: The round was replaced or cancelled meanwhile.
        """
        pitches_ready = self._pitches_ready
        if pitches_ready is None:
            raise RuntimeError("No active round")
        try:
            return await asyncio.shield(pitches_ready)
        except asyncio.CancelledError:
            if pitches_ready.cancelled() and not _current_task_cancelling():
                raise CancellationError("Round was superseded") from None
            raise

    async def judge(self, pitches: dict[str, str]) -> VerdictResult:
        """Run the judge for the active round. Always yields a verdict unless cancelled."""
        if self._context is None or self._token is None:
            raise RuntimeError("No active round")
        token = self._token.child()
        task = token.attach(asyncio.create_task(self._judge.invoke(self._context, pitches, token), name="judge"))
        try:
            verdict = await task
        except asyncio.CancelledError:
            if token.cancelled and not _current_task_cancelling():
                raise CancellationError("Round was superseded") from None
            raise

        if self._on_verdict is not None:
            self._on_verdict(verdict)
        return verdict

    async def run_round(self, context: RequestContext) -> BattleResult:
        """Start a round, wait for all pitches, judge them.

        Raises:
            CancellationError: Another round started before this one finished.
        """
        start = time.monotonic()
        context = self.start_round(context)
        pitches = await self.wait_for_pitches()
        verdict = await self.judge(pitches)
        return BattleResult(
            context=context,
            pitches=self.slots,
            verdict=verdict,
            duration_sec=time.monotonic() - start,
        )

    def cancel(self) -> None:
        """Abort the active round: in-flight requests, backoff waits, gate and judge."""
        if self._token is not None:
            self._token.cancel()
        if self._gate is not None:
            self._gate.cancel()
        if self._pitches_ready is not None and not self._pitches_ready.done():
            self._pitches_ready.cancel()
        self._provider_tokens.clear()

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_client:
            await self._client.aclose()

    def _launch(self, provider: str, delay: float = 0.0) -> asyncio.Task:
        assert self._token is not None and self._context is not None
        previous = self._provider_tokens.get(provider)
        if previous is not None:
            previous.cancel()
        token = self._token.child()
        self._provider_tokens[provider] = token
        task = asyncio.create_task(
            self._run_provider(provider, self._context, self._slots[provider], token, delay),
            name=f"pitch-{provider}",
        )
        return token.attach(task)

    async def _run_provider(
        self,
        provider: str,
        context: RequestContext,
        slot: ProviderSlot,
        token: CancelToken,
        delay: float,
    ) -> None:
        if delay > 0:
            try:
                await token.sleep(delay)
            except CancellationError:
                return
        await self._fetchers[provider].run(context, slot, token)

    def _publish(self, slot: ProviderSlot) -> None:
        if self._context is None or slot.round_id != self._context.round_id:
            logger.debug("Dropping stale update from %s (round %s)", slot.provider, slot.round_id[:8])
            return
        if self._on_slot_update is not None:
            self._on_slot_update(slot.snapshot())
        if self._gate is not None:
            self._gate.notify(self._slots)

    def _on_gate(self, pitches: dict[str, str]) -> None:
        if self._pitches_ready is not None and not self._pitches_ready.done():
            self._pitches_ready.set_result(pitches)
        if self._on_pitches_complete is not None:
            self._on_pitches_complete(pitches)


def _current_task_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0
