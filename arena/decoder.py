"""Incremental decoding of pitch response bodies into text/done/error events."""

import codecs
import json
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)

EVENT_MARKER = "data:"
_DONE_SENTINEL = "[DONE]"

MODES = ("raw", "event")


@dataclass(frozen=True)
class StreamEvent:
    type: str              # "text", "done" or "error"
    value: str = ""

    @classmethod
    def text(cls, value: str) -> "StreamEvent":
        return cls("text", value)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls("done")

    @classmethod
    def error(cls, value: str) -> "StreamEvent":
        return cls("error", value)


class StreamDecoder:
    """Turns byte chunks into StreamEvents.

    ``raw`` mode emits one text event per chunk. ``event`` mode reads
    ``data: {json}`` lines, dispatching on the payload's ``type``. Both
    modes decode UTF-8 incrementally, so a character split across two
    chunks comes out whole with the later chunk. Call ``flush`` once the
    body ends.
    """

    def __init__(self, mode: str = "raw", marker: str = EVENT_MARKER) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown decoder mode: {mode}")
        self.mode = mode
        self._marker = marker
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._residual = ""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        text = self._utf8.decode(chunk)
        if self.mode == "raw":
            return [StreamEvent.text(text)] if text else []
        return self._feed_lines(text)

    def flush(self) -> list[StreamEvent]:
        text = self._utf8.decode(b"", final=True)
        if self.mode == "raw":
            return [StreamEvent.text(text)] if text else []
        events = self._feed_lines(text)
        if self._residual:
            line, self._residual = self._residual, ""
            events.extend(self._parse_line(line, terminated=False))
        return events

    def _feed_lines(self, text: str) -> list[StreamEvent]:
        if not text:
            return []
        buffer = self._residual + text
        lines = buffer.split("\n")
        # last element is an unterminated line (possibly empty)
        self._residual = lines.pop()
        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._parse_line(line, terminated=True))
        return events

    def _parse_line(self, line: str, terminated: bool) -> list[StreamEvent]:
        line = line.rstrip("\r")
        if not line.strip():
            return []

        verbatim = line + "\n" if terminated else line
        if not line.startswith(self._marker):
            return [StreamEvent.text(verbatim)]

        payload = line[len(self._marker):].strip()
        if not payload:
            return []
        if payload == _DONE_SENTINEL:
            return [StreamEvent.done()]

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Unparseable event line kept as text: %r", line[:80])
            return [StreamEvent.text(verbatim)]

        if not isinstance(data, dict):
            return [StreamEvent.text(verbatim)]

        event_type = data.get("type")
        if event_type == "text":
            content = data.get("content")
            return [StreamEvent.text(content)] if isinstance(content, str) and content else []
        if event_type == "done":
            return [StreamEvent.done()]
        if event_type == "error":
            return [StreamEvent.error(str(data.get("error") or data.get("message") or "Stream error"))]

        logger.debug("Ignoring event of unknown type %r", event_type)
        return []
