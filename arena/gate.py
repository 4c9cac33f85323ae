"""Completion gate: fires once per round when every slot is terminal with real content."""

import asyncio
import logging
from collections.abc import Callable, Mapping

from arena.models import ProviderSlot

logger = logging.getLogger(__name__)


class CompletionGate:
    """Debounced, one-shot "all pitches ready" signal.

    ``notify`` is called after every slot mutation. Several slots can turn
    terminal within the same loop tick; the debounce collapses those into
    a single check, and ``fired`` keeps the callback to one call per gate.
    A new round uses a new gate.
    """

    def __init__(
        self,
        providers: list[str],
        on_complete: Callable[[dict[str, str]], None],
        *,
        min_content_length: int = 50,
        debounce_sec: float = 0.1,
    ) -> None:
        self._providers = list(providers)
        self._on_complete = on_complete
        self._min_content_length = min_content_length
        self._debounce_sec = debounce_sec
        self._handle: asyncio.TimerHandle | None = None
        self._slots: Mapping[str, ProviderSlot] = {}
        self.fired = False

    def is_ready(self, slots: Mapping[str, ProviderSlot]) -> bool:
        for name in self._providers:
            slot = slots.get(name)
            if slot is None or not slot.terminal:
                return False
            if len(slot.content.strip()) <= self._min_content_length:
                return False
        return True

    def notify(self, slots: Mapping[str, ProviderSlot]) -> None:
        if self.fired:
            return
        self._slots = slots
        if self._handle is not None:
            self._handle.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._debounce_sec, self._check)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _check(self) -> None:
        self._handle = None
        if self.fired or not self.is_ready(self._slots):
            return
        self.fired = True
        pitches = {name: self._slots[name].content for name in self._providers}
        logger.info("All %d pitches ready", len(pitches))
        self._on_complete(pitches)
