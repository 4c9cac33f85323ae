"""Per-provider pitch fetcher: one cancellable request, streamed into a slot, with retry and fallback."""

import asyncio
import logging
import time
from collections.abc import Callable

import httpx

from arena.cancel import CancelToken
from arena.decoder import StreamDecoder, StreamEvent
from arena.errors import CancellationError, EmptyResponseError, ParseError, StreamError
from arena.fallback import mock_pitch
from arena.models import ProviderSlot, RequestContext, TypedError
from arena.retry import OperationError, retry
from config.config_loader import AppConfig, ProviderConfig

logger = logging.getLogger(__name__)

SlotListener = Callable[[ProviderSlot], None]


class _UpdateBatcher:
    """Publishes slot changes at most every few characters or milliseconds."""

    def __init__(self, slot: ProviderSlot, publish: SlotListener, min_chars: int, interval_sec: float) -> None:
        self._slot = slot
        self._publish = publish
        self._min_chars = min_chars
        self._interval = interval_sec
        self._pending = 0
        self._last = time.monotonic()

    def add(self, chars: int) -> None:
        self._pending += chars
        now = time.monotonic()
        if self._pending >= self._min_chars or now - self._last >= self._interval:
            self._emit(now)

    def flush(self) -> None:
        if self._pending:
            self._emit(time.monotonic())

    def _emit(self, now: float) -> None:
        self._pending = 0
        self._last = now
        self._publish(self._slot)


class ProviderFetcher:
    """Fetches one provider's pitch for a round and keeps its slot current.

    The endpoint may answer with a raw text stream, an event-line stream or
    a single JSON document; the slot sees the same incremental appends in
    every case.
    """

    def __init__(
        self,
        provider: ProviderConfig,
        client: httpx.AsyncClient,
        config: AppConfig,
        publish: SlotListener,
    ) -> None:
        self._provider = provider
        self._client = client
        self._config = config
        self._publish = publish
        self._timeout = httpx.Timeout(config.timeouts.pitch_sec, connect=config.timeouts.connect_sec)

    @property
    def name(self) -> str:
        return self._provider.name

    @property
    def url(self) -> str:
        endpoints = self._config.endpoints
        return f"{endpoints.base_url}{endpoints.pitch_path}/{self._provider.name}"

    async def run(self, context: RequestContext, slot: ProviderSlot, token: CancelToken) -> None:
        """Drive ``slot`` to a terminal state. Never raises except for task cancellation."""
        start = time.monotonic()

        def on_retry(error: TypedError, attempt: int) -> None:
            if token.cancelled:
                return
            slot.mark_retrying(error)
            self._publish(slot)

        try:
            await retry(
                lambda: self._attempt(context, slot, token),
                self._config.retry,
                token=token,
                on_retry=on_retry,
                provider=self.name,
            )
        except CancellationError:
            logger.debug("Pitch fetch for %s cancelled", self.name)
            return
        except OperationError as exc:
            if token.cancelled:
                return
            logger.warning(
                "Provider %s exhausted retries (%s), using fallback pitch",
                self.name, exc.error.code,
            )
            slot.fall_back(mock_pitch(self.name, context), exc.error)
            self._publish(slot)
            return

        if token.cancelled:
            return
        slot.complete()
        self._publish(slot)
        logger.info("Pitch %s complete: %.2fs, %d chars", self.name, time.monotonic() - start, len(slot.content))

    async def _attempt(self, context: RequestContext, slot: ProviderSlot, token: CancelToken) -> None:
        token.raise_if_cancelled()
        slot.begin_attempt()
        self._publish(slot)
        await asyncio.wait_for(
            self._stream(context, slot, token),
            timeout=self._config.timeouts.stream_sec,
        )
        min_length = self._config.streaming.min_content_length
        if len(slot.content.strip()) <= min_length:
            raise EmptyResponseError(
                f"Pitch has {len(slot.content.strip())} characters, need more than {min_length}",
                self.name,
            )

    async def _stream(self, context: RequestContext, slot: ProviderSlot, token: CancelToken) -> None:
        async with self._client.stream(
            "POST", self.url, json=context.to_payload(), timeout=self._timeout
        ) as response:
            if response.is_error:
                await response.aread()
                response.raise_for_status()

            content_type = response.headers.get("content-type", "").lower()
            if "application/json" in content_type:
                await response.aread()
                await self._reveal(self._json_content(response), slot, token)
                return

            mode = "event" if "text/event-stream" in content_type else self._provider.stream_format
            decoder = StreamDecoder(mode)
            batcher = _UpdateBatcher(
                slot,
                self._publish,
                self._config.streaming.batch_min_chars,
                self._config.streaming.batch_interval_sec,
            )
            async for chunk in response.aiter_bytes():
                token.raise_if_cancelled()
                if self._apply(decoder.feed(chunk), slot, batcher):
                    return
            token.raise_if_cancelled()
            self._apply(decoder.flush(), slot, batcher)
            batcher.flush()

    def _apply(self, events: list[StreamEvent], slot: ProviderSlot, batcher: _UpdateBatcher) -> bool:
        """Apply decoded events to the slot. Returns True once the stream says it is done."""
        for event in events:
            if event.type == "text":
                slot.append(event.value)
                batcher.add(len(event.value))
            elif event.type == "done":
                batcher.flush()
                return True
            elif event.type == "error":
                batcher.flush()
                raise StreamError(event.value, self.name)
        return False

    def _json_content(self, response: httpx.Response) -> str:
        data = response.json()
        content = None
        if isinstance(data, dict):
            content = data.get("content") or data.get("pitch")
        if not isinstance(content, str) or not content.strip():
            raise ParseError("JSON response carried no pitch content", self.name)
        return content

    async def _reveal(self, content: str, slot: ProviderSlot, token: CancelToken) -> None:
        """Release a complete pitch word by word so every backend streams alike."""
        interval = self._provider.reveal_interval_sec
        for i, word in enumerate(content.split(" ")):
            await token.sleep(interval)
            slot.append(word if i == 0 else f" {word}")
            self._publish(slot)
