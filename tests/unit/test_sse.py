"""Unit tests for SSE framing."""

import json

import pytest

from sumstream.events import EndEvent, ErrorEvent, TokenEvent
from sumstream.sse import FrameDecoder, encode_frame, parse_frame, sse_generator


class TestEncodeFrame:
    def test_single_data_line_and_blank_line(self):
        encoded = encode_frame(ErrorEvent(message="boom"))
        assert encoded == 'data: {"type": "error", "message": "boom"}\n\n'

    def test_non_ascii_kept_verbatim(self):
        encoded = encode_frame(TokenEvent(token="요약 ", index=1, total=1, progress=1.0))
        assert "요약" in encoded
        assert encoded.endswith("\n\n")

    def test_newlines_in_payload_are_escaped(self):
        encoded = encode_frame(ErrorEvent(message="a\n\nb"))
        assert encoded.count("\n\n") == 1

    @pytest.mark.asyncio
    async def test_sse_generator_preserves_order(self):
        async def events():
            yield ErrorEvent(message="x")
            yield EndEvent()

        frames = [f async for f in sse_generator(events())]
        assert [json.loads(f[len("data: "):])["type"] for f in frames] == ["error", "end"]


class TestParseFrame:
    def test_multi_line_data_joined_with_newline(self):
        frame = parse_frame("data: first\ndata: second")
        assert frame.data == "first\nsecond"

    def test_event_name_captured(self):
        frame = parse_frame("event: token\ndata: {}")
        assert frame.event == "token"
        assert frame.data == "{}"

    def test_comment_only_block_is_skipped(self):
        assert parse_frame(": keep-alive") is None

    def test_block_without_data_is_skipped(self):
        assert parse_frame("event: ping") is None

    def test_single_leading_space_stripped(self):
        assert parse_frame("data:  padded").data == " padded"
        assert parse_frame("data:tight").data == "tight"

    def test_done_sentinel(self):
        assert parse_frame("data: [DONE]").is_done


class TestFrameDecoder:
    def test_complete_frames_in_one_chunk(self):
        decoder = FrameDecoder()
        frames = decoder.feed(b"data: a\n\ndata: b\n\n")
        assert [f.data for f in frames] == ["a", "b"]
        assert decoder.pending == ""

    def test_frame_split_across_chunks(self):
        decoder = FrameDecoder()
        assert decoder.feed(b"data: {\"type\"") == []
        assert decoder.feed(b": \"end\"}\n") == []
        frames = decoder.feed(b"\n")
        assert [f.data for f in frames] == ['{"type": "end"}']

    def test_byte_at_a_time(self):
        decoder = FrameDecoder()
        raw = b"data: one\n\ndata: two\n\n"
        frames = []
        for i in range(len(raw)):
            frames += decoder.feed(raw[i:i + 1])
        assert [f.data for f in frames] == ["one", "two"]

    def test_multibyte_character_split_across_chunks(self):
        decoder = FrameDecoder()
        raw = "data: 요약\n\n".encode("utf-8")
        split = raw.index("요".encode("utf-8")) + 1
        assert decoder.feed(raw[:split]) == []
        frames = decoder.feed(raw[split:])
        assert frames[0].data == "요약"

    def test_crlf_delimiters(self):
        decoder = FrameDecoder()
        frames = decoder.feed(b"data: a\r\n\r\ndata: b\r\n")
        assert [f.data for f in frames] == ["a"]
        frames = decoder.feed(b"\r\n")
        assert [f.data for f in frames] == ["b"]

    def test_bare_cr_delimiters(self):
        decoder = FrameDecoder()
        frames = decoder.feed(b"data: a\r\rdata: b\rdata: c\r")
        assert [f.data for f in frames] == ["a"]
        assert [f.data for f in decoder.feed(b"\r")] == ["b\nc"]

    def test_bare_cr_at_chunk_end_not_mistaken_for_crlf(self):
        decoder = FrameDecoder()
        assert decoder.feed(b"data: a\r") == []
        assert [f.data for f in decoder.feed(b"\rdata: b\r\r")] == ["a", "b"]

    def test_crlf_split_between_cr_and_lf(self):
        decoder = FrameDecoder()
        assert [f.data for f in decoder.feed(b"data: a\r\n\r")] == ["a"]
        assert decoder.feed(b"\n") == []
        assert decoder.pending == ""
        assert [f.data for f in decoder.feed(b"data: b\n\n")] == ["b"]

    def test_partial_frame_kept_pending(self):
        decoder = FrameDecoder()
        decoder.feed(b"data: a\n\ndata: trunc")
        assert decoder.pending == "data: trunc"

    def test_accepts_text_chunks(self):
        decoder = FrameDecoder()
        assert [f.data for f in decoder.feed("data: x\n\n")] == ["x"]
