"""Tests for incremental SSE decoding."""

from __future__ import annotations

import json
from typing import AsyncIterator

import httpx
import pytest

from minimax_chat.errors import ProtocolError, ProviderError, TransportError
from minimax_chat.llm.stream_decoder import StreamDecoder
from minimax_chat.types import (
    ErrorEvent,
    Finish,
    FinishKind,
    StreamStart,
    TextDelta,
    TextEnd,
    TextStart,
    Usage,
)

TEXT_ID = "text-test"


def _frame(content: str | None = None, finish: str | None = None, usage: dict | None = None) -> str:
    delta = {} if content is None else {"content": content}
    data: dict = {
        "id": "mock-1",
        "object": "chat.completion.chunk",
        "model": "MiniMax-M2.1",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish}],
    }
    if usage is not None:
        data["usage"] = usage
    return f"data: {json.dumps(data, ensure_ascii=False)}\n"


STREAM = (
    _frame("Hello")
    + _frame("!")
    + _frame(" World", finish="stop", usage={"prompt_tokens": 10, "completion_tokens": 3, "total_tokens": 13})
    + "data: [DONE]\n"
).encode()


def _decode_all(chunks: list[bytes]) -> list:
    decoder = StreamDecoder(text_id=TEXT_ID)
    events = []
    for chunk in chunks:
        events.extend(decoder.feed(chunk))
    events.extend(decoder.finish())
    return events


async def _aiter(chunks: list[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


class TestWellFormedStream:
    def test_event_sequence(self):
        events = _decode_all([STREAM])
        assert events == [
            StreamStart(),
            TextStart(TEXT_ID),
            TextDelta(TEXT_ID, "Hello"),
            TextDelta(TEXT_ID, "!"),
            TextDelta(TEXT_ID, " World"),
            TextEnd(TEXT_ID),
            Finish(events[-1].reason, Usage(10, 3)),
        ]
        assert events[-1].reason.kind is FinishKind.STOP
        assert events[-1].reason.raw == "stop"

    def test_text_reassembles(self):
        events = _decode_all([STREAM])
        text = "".join(e.text for e in events if isinstance(e, TextDelta))
        assert text == "Hello! World"

    def test_done_without_finish_frame(self):
        data = (_frame("a") + _frame("b") + "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert isinstance(events[-1], Finish)
        assert events[-1].reason.kind is FinishKind.STOP
        assert events[-1].reason.raw is None
        assert events[-2] == TextEnd(TEXT_ID)

    def test_length_finish_reason(self):
        data = (_frame("cut", finish="length") + "data: [DONE]\n").encode()
        finish = _decode_all([data])[-1]
        assert finish.reason.kind is FinishKind.LENGTH

    def test_other_finish_reason_keeps_raw(self):
        data = (_frame("x", finish="content_filter") + "data: [DONE]\n").encode()
        finish = _decode_all([data])[-1]
        assert finish.reason.kind is FinishKind.OTHER
        assert finish.reason.raw == "content_filter"


class TestChunking:
    def test_every_two_way_split(self):
        expected = _decode_all([STREAM])
        for i in range(1, len(STREAM)):
            assert _decode_all([STREAM[:i], STREAM[i:]]) == expected, i

    def test_byte_at_a_time(self):
        expected = _decode_all([STREAM])
        assert _decode_all([STREAM[i:i + 1] for i in range(len(STREAM))]) == expected

    def test_multibyte_character_split(self):
        data = (_frame("héllo 世界") + "data: [DONE]\n").encode()
        expected = _decode_all([data])
        pieces = [data[i:i + 1] for i in range(len(data))]
        assert _decode_all(pieces) == expected
        assert TextDelta(TEXT_ID, "héllo 世界") in expected

    def test_incomplete_line_not_parsed(self):
        decoder = StreamDecoder(text_id=TEXT_ID)
        line = _frame("Hello").encode()
        assert decoder.feed(line[:-1]) == []
        assert decoder.feed(line[-1:]) == [StreamStart(), TextStart(TEXT_ID), TextDelta(TEXT_ID, "Hello")]

    def test_crlf_line_endings(self):
        data = STREAM.replace(b"\n", b"\r\n")
        assert _decode_all([data]) == _decode_all([STREAM])


class TestNoise:
    def test_blank_and_comment_lines_ignored(self):
        data = (": keepalive\n\nevent: ping\n" + _frame("x") + "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert [type(e) for e in events] == [StreamStart, TextStart, TextDelta, TextEnd, Finish]

    def test_malformed_json_skipped(self):
        data = ("data: {not json\n" + _frame("ok") + "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert TextDelta(TEXT_ID, "ok") in events
        assert not any(isinstance(e, ErrorEvent) for e in events)

    def test_role_only_delta_opens_no_text_run(self):
        data = ('data: {"choices":[{"delta":{"role":"assistant"},"finish_reason":null}]}\n'
                "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert [type(e) for e in events] == [StreamStart, Finish]

    def test_non_object_frame_is_protocol_error(self):
        data = ("data: [1, 2]\n" + _frame("ok") + "data: [DONE]\n").encode()
        events = _decode_all([data])
        errors = [e for e in events if isinstance(e, ErrorEvent)]
        assert len(errors) == 1
        assert isinstance(errors[0].error, ProtocolError)
        assert isinstance(events[-1], Finish)

    def test_non_string_content_is_protocol_error(self):
        data = ('data: {"choices":[{"delta":{"content":42}}]}\n' "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert isinstance(events[1], ErrorEvent)
        assert isinstance(events[1].error, ProtocolError)


class TestTermination:
    def test_single_finish_when_done_follows_finish_frame(self):
        events = _decode_all([STREAM])
        assert sum(isinstance(e, Finish) for e in events) == 1
        assert sum(isinstance(e, StreamStart) for e in events) == 1

    def test_physical_eof_without_done(self):
        data = (_frame("partial") + _frame(" text")).encode()
        events = _decode_all([data])
        assert events[-2:] == [TextEnd(TEXT_ID), Finish(events[-1].reason, Usage())]
        assert events[-1].reason.kind is FinishKind.STOP

    def test_empty_stream_still_terminates(self):
        events = _decode_all([])
        assert [type(e) for e in events] == [StreamStart, Finish]

    def test_trailing_fragment_discarded(self):
        data = _frame("a").encode() + b'data: {"choices":[{"delta":{"content":"lost"'
        events = _decode_all([data])
        assert TextDelta(TEXT_ID, "lost") not in events
        assert isinstance(events[-1], Finish)

    def test_nothing_after_done(self):
        decoder = StreamDecoder(text_id=TEXT_ID)
        decoder.feed(b"data: [DONE]\n")
        assert decoder.done
        assert decoder.feed(_frame("late").encode()) == []
        assert decoder.finish() == []

    def test_in_band_error_terminates(self):
        err = {"base_resp": {"status_code": 1002, "status_msg": "rate limited"}}
        data = (_frame("Hi") + f"data: {json.dumps(err)}\n" + _frame("more")).encode()
        events = _decode_all([data])
        assert events[-2] == TextEnd(TEXT_ID)
        assert isinstance(events[-1], ErrorEvent)
        assert isinstance(events[-1].error, ProviderError)
        assert events[-1].error.code == 1002
        assert not any(isinstance(e, Finish) for e in events)


class TestUsage:
    def test_finish_usage_is_authoritative(self):
        partial = {"prompt_tokens": 10, "completion_tokens": 1}
        data = (
            _frame("a", usage=partial)
            + _frame("b", usage={"prompt_tokens": 10, "completion_tokens": 2})
            + _frame("c", usage={"prompt_tokens": 10, "completion_tokens": 3})
            + _frame(None, finish="stop", usage={"prompt_tokens": 10, "completion_tokens": 7})
            + "data: [DONE]\n"
        ).encode()
        finish = _decode_all([data])[-1]
        assert finish.usage == Usage(input_tokens=10, output_tokens=7)
        assert finish.usage.total_tokens == 17

    def test_malformed_usage_is_protocol_error(self):
        bad = {"prompt_tokens": "n/a", "completion_tokens": 2}
        data = (
            _frame("a", usage=bad)
            + _frame(None, finish="stop", usage={"prompt_tokens": 3, "completion_tokens": 2})
            + "data: [DONE]\n"
        ).encode()
        events = _decode_all([data])
        errors = [e for e in events if isinstance(e, ErrorEvent)]
        assert len(errors) == 1
        assert isinstance(errors[0].error, ProtocolError)
        assert TextDelta(TEXT_ID, "a") in events
        assert events[-1].usage == Usage(input_tokens=3, output_tokens=2)

    def test_non_object_usage_is_protocol_error(self):
        data = (_frame("a", usage=[1, 2]) + "data: [DONE]\n").encode()
        events = _decode_all([data])
        assert isinstance(events[1], ErrorEvent)
        assert isinstance(events[1].error, ProtocolError)
        assert isinstance(events[-1], Finish)
        assert events[-1].usage == Usage()


class TestAsyncDecode:
    @pytest.mark.asyncio
    async def test_failure_after_finish_is_ignored(self, caplog):
        async def source():
            yield (_frame("Hi") + _frame(None, finish="stop")).encode()
            raise httpx.ReadError("connection reset")

        with caplog.at_level("WARNING"):
            events = [e async for e in StreamDecoder(text_id=TEXT_ID).decode(source())]
        assert [type(e) for e in events] == [StreamStart, TextStart, TextDelta, TextEnd, Finish]
        assert events[-1].reason.kind is FinishKind.STOP
        assert "after finish" in caplog.text

    @pytest.mark.asyncio
    async def test_decode_matches_sync_core(self):
        decoder = StreamDecoder(text_id=TEXT_ID)
        chunks = [STREAM[i:i + 7] for i in range(0, len(STREAM), 7)]
        events = [e async for e in decoder.decode(_aiter(chunks))]
        assert events == _decode_all([STREAM])

    @pytest.mark.asyncio
    async def test_stops_reading_after_done(self):
        reads = 0

        async def source():
            nonlocal reads
            for chunk in (b"data: [DONE]\n", _frame("late").encode()):
                reads += 1
                yield chunk

        events = [e async for e in StreamDecoder(text_id=TEXT_ID).decode(source())]
        assert [type(e) for e in events] == [StreamStart, Finish]
        assert reads == 1

    @pytest.mark.asyncio
    async def test_mid_stream_failure_becomes_error_event(self):
        async def source():
            yield _frame("Hello").encode()
            raise httpx.ReadError("connection reset")

        events = [e async for e in StreamDecoder(text_id=TEXT_ID).decode(source())]
        assert events[:3] == [StreamStart(), TextStart(TEXT_ID), TextDelta(TEXT_ID, "Hello")]
        assert events[3] == TextEnd(TEXT_ID)
        assert isinstance(events[4], ErrorEvent)
        assert isinstance(events[4].error, TransportError)
        assert len(events) == 5

    @pytest.mark.asyncio
    async def test_pull_based(self):
        reads = 0

        async def source():
            nonlocal reads
            for line in (_frame("a"), _frame("b"), "data: [DONE]\n"):
                reads += 1
                yield line.encode()

        gen = StreamDecoder(text_id=TEXT_ID).decode(source())
        assert isinstance(await gen.__anext__(), StreamStart)
        assert reads == 1
        await gen.aclose()
        assert reads == 1


@pytest.mark.parametrize("size", [1, 3, 17, 64])
def test_fixed_size_chunks(size):
    chunks = [STREAM[i:i + size] for i in range(0, len(STREAM), size)]
    assert _decode_all(chunks) == _decode_all([STREAM])
