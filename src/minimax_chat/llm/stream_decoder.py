"""Incremental decoding of the MiniMax server-sent-event stream.

The response body arrives as arbitrarily sized byte chunks.  Chunks are
decoded incrementally (a multi-byte character may straddle two reads) and
appended to a text buffer.  Only complete lines are parsed; the trailing
fragment stays in the buffer until its newline arrives.

Event order for a well-formed stream::

    StreamStart, [TextStart(id), TextDelta(id)..., TextEnd(id)], Finish

``Finish`` appears exactly once.  A frame with ``finish_reason`` emits it;
``data: [DONE]`` or physical end-of-stream emit it only if no finish frame
was seen.  A mid-stream failure ends the sequence with ``ErrorEvent``
instead.
"""

from __future__ import annotations

import codecs
import json
import logging
import uuid
from typing import Any, AsyncGenerator, AsyncIterator

import httpx

from minimax_chat.errors import MiniMaxError, ProtocolError, TransportError
from minimax_chat.types import (
    ErrorEvent,
    Finish,
    FinishKind,
    FinishReason,
    StreamEvent,
    StreamStart,
    TextDelta,
    TextEnd,
    TextStart,
    Usage,
)

from .error_classifier import ErrorClassifier

_logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"


def new_text_id() -> str:
    return f"text-{uuid.uuid4().hex[:12]}"


class StreamDecoder:
    """Stateful SSE decoder for one stream.  Not reusable across streams.

    ``feed()`` and ``finish()`` are the synchronous core and return the
    events produced so far; ``decode()`` drives them from an async byte
    iterator one read at a time.
    """

    def __init__(
        self,
        text_id: str | None = None,
        warnings: tuple[str, ...] = (),
        classifier: ErrorClassifier | None = None,
    ) -> None:
        self.text_id = text_id or new_text_id()
        self._warnings = warnings
        self._classifier = classifier or ErrorClassifier()
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._started = False
        self._text_open = False
        self._finish_sent = False
        self._done = False
        self._usage = Usage()

    @property
    def done(self) -> bool:
        """True once a terminal event has been produced."""
        return self._done

    @property
    def usage(self) -> Usage:
        return self._usage

    # ------------------------------------------------------------------
    # Synchronous core
    # ------------------------------------------------------------------

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Consume one network read and return the events it completes."""
        if self._done:
            return []
        self._buffer += self._utf8.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")

        events: list[StreamEvent] = []
        for line in lines:
            events.extend(self._handle_line(line.rstrip("\r")))
            if self._done:
                self._buffer = ""
                break
        return events

    def finish(self) -> list[StreamEvent]:
        """Handle physical end-of-stream."""
        if self._done:
            return []
        tail = (self._buffer + self._utf8.decode(b"", final=True)).strip()
        if tail:
            _logger.debug("Discarding unterminated trailing fragment: %r", tail[:200])
        self._buffer = ""
        return self._terminate()

    def fail(self, error: MiniMaxError) -> list[StreamEvent]:
        """End the stream with *error* after closing any open text run.

        Once ``Finish`` has been emitted the generation is complete, so a
        late failure is only logged.
        """
        if self._done:
            return []
        if self._finish_sent:
            _logger.warning("Ignoring failure after finish: %s", error.message)
            self._done = True
            return []
        events = self._ensure_started()
        events.extend(self._close_text())
        events.append(ErrorEvent(error))
        self._done = True
        return events

    # ------------------------------------------------------------------
    # Async driver
    # ------------------------------------------------------------------

    async def decode(
        self, chunks: AsyncIterator[bytes],
    ) -> AsyncGenerator[StreamEvent, None]:
        """Yield events lazily; the next read happens only on demand.

        Transport failures after the stream has started are reported as a
        terminal :class:`ErrorEvent`; they are never retried here because
        delivered text cannot be replayed.
        """
        try:
            async for chunk in chunks:
                for event in self.feed(chunk):
                    yield event
                if self._done:
                    return
        except (httpx.TransportError, OSError) as e:
            _logger.warning("Stream interrupted: %r", e)
            error = TransportError(f"MiniMax stream interrupted: {e!r}")
            error.__cause__ = e
            for event in self.fail(error):
                yield event
            return

        for event in self.finish():
            yield event

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ensure_started(self) -> list[StreamEvent]:
        if self._started:
            return []
        self._started = True
        return [StreamStart(self._warnings)]

    def _close_text(self) -> list[StreamEvent]:
        if not self._text_open:
            return []
        self._text_open = False
        return [TextEnd(self.text_id)]

    def _terminate(self) -> list[StreamEvent]:
        events = self._ensure_started()
        events.extend(self._close_text())
        if not self._finish_sent:
            self._finish_sent = True
            events.append(Finish(FinishReason(FinishKind.STOP), self._usage))
        self._done = True
        return events

    def _handle_line(self, line: str) -> list[StreamEvent]:
        if not line.startswith(DATA_PREFIX):
            return []
        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            return []
        if payload == DONE_TOKEN:
            return self._terminate()

        try:
            frame = json.loads(payload)
        except (json.JSONDecodeError, ValueError):
            _logger.debug("Skipping malformed frame: %r", payload[:200])
            return []

        events = self._ensure_started()
        if self._finish_sent:
            _logger.debug("Ignoring frame after finish")
            return events
        if not isinstance(frame, dict):
            events.append(ErrorEvent(ProtocolError(
                f"Expected a JSON object frame, got {type(frame).__name__}",
            )))
            return events

        error = self._classifier.in_band(frame)
        if error is not None:
            events.extend(self._close_text())
            events.append(ErrorEvent(error))
            self._done = True
            return events

        usage = frame.get("usage")
        if usage:
            try:
                self._usage = Usage.from_provider(usage)
            except (TypeError, ValueError) as e:
                events.append(ErrorEvent(ProtocolError(f"Malformed usage in stream frame: {e}")))

        choice = self._first_choice(frame, events)
        if choice is None:
            return events

        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, dict) else None
        if content is not None and not isinstance(content, str):
            events.append(ErrorEvent(ProtocolError(
                f"Expected string delta content, got {type(content).__name__}",
            )))
        elif content:
            if not self._text_open:
                self._text_open = True
                events.append(TextStart(self.text_id))
            events.append(TextDelta(self.text_id, content))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            events.extend(self._close_text())
            self._finish_sent = True
            events.append(Finish(FinishReason.from_provider(finish_reason), self._usage))
        return events

    @staticmethod
    def _first_choice(frame: dict[str, Any], events: list[StreamEvent]) -> dict[str, Any] | None:
        choices = frame.get("choices")
        if choices is None or choices == []:
            return None
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            events.append(ErrorEvent(ProtocolError("Malformed 'choices' in stream frame")))
            return None
        return choices[0]
