"""Tests for the incremental Server-Sent-Events decoder."""

from __future__ import annotations

import json
from typing import AsyncIterator, Iterable

import pytest

from advisor.client.decoder import (
    FrameKind,
    StreamDecoder,
    classify_line,
    extract_delta,
    iter_deltas,
)
from advisor.client.errors import IncompleteFrameError, StreamDecodeError


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def frame(content: str | None = None, **extra: object) -> str:
    delta: dict[str, object] = dict(extra)
    if content is not None:
        delta["content"] = content
    chunk = {"choices": [{"index": 0, "delta": delta}]}
    return f"data: {json.dumps(chunk, ensure_ascii=False)}\n"


def decode(chunks: Iterable[bytes]) -> tuple[str, StreamDecoder]:
    decoder = StreamDecoder()
    parts: list[str] = []
    for chunk in chunks:
        parts.extend(decoder.feed(chunk))
    parts.extend(decoder.finish())
    return "".join(parts), decoder


SAMPLE_STREAM = (
    ": OPENROUTER PROCESSING\n"
    + frame(role="assistant")
    + frame("Épargne ")
    + "\n"
    + frame("diversifiée 💶, ")
    + ": keep-alive\r\n"
    + frame("ETF à impact.").replace("\n", "\r\n")
    + "event: ignored\n"
    + 'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}\n'
    + "data: [DONE]\n"
).encode("utf-8")

SAMPLE_TEXT = "Épargne diversifiée 💶, ETF à impact."


def test_concatenates_deltas_until_done() -> None:
    stream = frame("Hel") + frame("lo") + "data: [DONE]\n"

    text, decoder = decode([stream.encode()])

    assert text == "Hello"
    assert decoder.done is True
    assert decoder.incomplete is None


def test_frame_split_inside_json_waits_for_the_rest() -> None:
    raw = frame("Hi").encode()
    middle = raw.index(b'"delta"')
    decoder = StreamDecoder()

    assert decoder.feed(raw[:middle]) == []
    assert decoder.pending == raw[:middle].decode()
    assert decoder.feed(raw[middle:]) == ["Hi"]
    assert decoder.finish() == []
    assert decoder.incomplete is None


def test_same_result_for_every_two_way_split() -> None:
    expected, _ = decode([SAMPLE_STREAM])
    assert expected == SAMPLE_TEXT

    for offset in range(1, len(SAMPLE_STREAM)):
        text, decoder = decode([SAMPLE_STREAM[:offset], SAMPLE_STREAM[offset:]])
        assert text == expected, f"split at byte {offset}"
        assert decoder.done is True


def test_same_result_when_fed_byte_by_byte() -> None:
    chunks = [SAMPLE_STREAM[i : i + 1] for i in range(len(SAMPLE_STREAM))]

    text, decoder = decode(chunks)

    assert text == SAMPLE_TEXT
    assert decoder.done is True


def test_multibyte_character_split_across_chunks() -> None:
    raw = frame("💶").encode("utf-8")
    start = raw.index("💶".encode("utf-8"))
    decoder = StreamDecoder()

    assert decoder.feed(raw[: start + 2]) == []
    assert decoder.feed(raw[start + 2 :]) == ["💶"]


def test_frames_without_content_contribute_nothing() -> None:
    stream = (
        frame(role="assistant")
        + frame("")
        + frame("A")
        + 'data: {"choices":[]}\n'
        + 'data: {"usage":{"total_tokens":12}}\n'
        + 'data: {"choices":[{"delta":{"content":null}}]}\n'
        + frame("B")
    )

    text, decoder = decode([stream.encode()])

    assert text == "AB"
    assert decoder.incomplete is None


def test_frames_after_done_are_not_processed() -> None:
    head = frame("fin") + "data: [DONE]\n"
    tail = frame(" ignoré") + "data: {broken\n"

    text_with_tail, decoder = decode([(head + tail).encode()])
    text_without_tail, _ = decode([head.encode()])

    assert text_with_tail == text_without_tail == "fin"
    assert decoder.incomplete is None
    assert decoder.feed(frame("encore").encode()) == []


def test_comments_and_blank_lines_do_not_change_content() -> None:
    plain = frame("un ") + frame("deux")
    noisy = "\n: ping\n\n" + frame("un ") + "   \n: ping\n" + frame("deux") + "\n\n"

    assert decode([plain.encode()])[0] == decode([noisy.encode()])[0] == "un deux"


def test_unrecognized_lines_are_skipped() -> None:
    stream = "id: 7\nretry: 100\nevent: message\ndata:" + frame("x")[6:]

    text, _ = decode([stream.encode()])

    assert text == "x"


def test_clean_end_without_terminator() -> None:
    text, decoder = decode([frame("ok").encode()])

    assert text == "ok"
    assert decoder.done is False
    assert decoder.incomplete is None


def test_unterminated_last_frame_is_still_read() -> None:
    raw = frame("dernier").rstrip("\n").encode()

    text, decoder = decode([raw])

    assert text == "dernier"
    assert decoder.incomplete is None


def test_stream_ending_inside_a_frame_is_reported() -> None:
    decoder = StreamDecoder()

    assert decoder.feed(frame("a").encode()) == ["a"]
    assert decoder.feed(b'data: {"choices":[{"del') == []
    assert decoder.finish() == []
    assert decoder.incomplete == 'data: {"choices":[{"del'


def test_unparseable_frame_is_held_rather_than_dropped() -> None:
    decoder = StreamDecoder()

    assert decoder.feed(b'data: {"choices": oops}\n') == []
    assert decoder.feed(frame("after").encode()) == []
    assert decoder.pending.startswith('data: {"choices": oops}\n')

    decoder.finish()
    assert decoder.incomplete is not None


def test_invalid_utf8_is_a_decode_error() -> None:
    decoder = StreamDecoder()

    with pytest.raises(StreamDecodeError):
        decoder.feed(b"data: \xff\xfe\n")


def test_stream_ending_inside_a_character_is_a_decode_error() -> None:
    decoder = StreamDecoder()
    decoder.feed("data: é".encode("utf-8")[:-1])

    with pytest.raises(StreamDecodeError):
        decoder.finish()


@pytest.mark.parametrize(
    ("line", "kind", "payload"),
    [
        ("", FrameKind.BLANK, ""),
        ("   ", FrameKind.BLANK, ""),
        (": comment", FrameKind.COMMENT, ""),
        ("data: [DONE]", FrameKind.DONE, "[DONE]"),
        ("data:  {\"a\": 1}  ", FrameKind.DATA, '{"a": 1}'),
        ("event: message", FrameKind.OTHER, ""),
    ],
)
def test_classify_line(line: str, kind: FrameKind, payload: str) -> None:
    assert classify_line(line) == (kind, payload)


def test_extract_delta_tolerates_unexpected_shapes() -> None:
    assert extract_delta({"choices": [{"delta": {"content": "x"}}]}) == "x"
    assert extract_delta({"choices": [{"delta": {"content": ["x"]}}]}) is None
    assert extract_delta({"choices": "nope"}) is None
    assert extract_delta([1, 2]) is None


async def _chunks(parts: list[bytes], consumed: list[int]) -> AsyncIterator[bytes]:
    for index, part in enumerate(parts):
        consumed.append(index)
        yield part


@pytest.mark.anyio
async def test_iter_deltas_stops_reading_at_done() -> None:
    consumed: list[int] = []
    parts = [
        frame("a").encode(),
        (frame("b") + "data: [DONE]\n").encode(),
        frame("never").encode(),
    ]

    deltas = [delta async for delta in iter_deltas(_chunks(parts, consumed))]

    assert deltas == ["a", "b"]
    assert consumed == [0, 1]


@pytest.mark.anyio
async def test_iter_deltas_raises_on_incomplete_tail() -> None:
    consumed: list[int] = []
    parts = [frame("partiel").encode(), b'data: {"choices":[{"delta":{"con']
    received: list[str] = []

    with pytest.raises(IncompleteFrameError) as excinfo:
        async for delta in iter_deltas(_chunks(parts, consumed)):
            received.append(delta)

    assert received == ["partiel"]
    assert excinfo.value.fragment.startswith("data: {")
