# tests/unit/test_framing.py

from __future__ import annotations
import sys
from pathlib import Path

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from chatdeck.providers.framing import LineBuffer, iter_lines, iter_ndjson, iter_sse


def test_ndjson_object_split_across_chunks_yields_once():
    line = b'{"message": {"content": "hello"}}\n'
    for cut in range(1, len(line)):
        frames = list(iter_ndjson([line[:cut], line[cut:]]))
        assert frames == [{"message": {"content": "hello"}}], cut


def test_malformed_frame_is_skipped():
    chunks = [b'{"n": 1}\nnot json\n{"n": 2}\n']
    assert [f["n"] for f in iter_ndjson(chunks)] == [1, 2]


def test_tail_without_newline_is_parsed_at_end():
    assert list(iter_ndjson([b'{"n": 1}\n{"n"', b': 2}'])) == [{"n": 1}, {"n": 2}]


def test_multibyte_character_split_between_chunks():
    raw = '{"t": "café"}\n'.encode("utf-8")
    cut = raw.index(b"\xc3") + 1
    assert list(iter_ndjson([raw[:cut], raw[cut:]])) == [{"t": "café"}]


def test_crlf_lines_are_trimmed():
    assert list(iter_lines([b"a\r\nb\r\n"])) == ["a", "b"]


def test_sse_stops_at_done_and_ignores_other_fields():
    chunks = [
        b": keep-alive\n",
        b'event: message\ndata: {"x": 1}\n\n',
        b"data: [DONE]\n\n",
        b'data: {"x": 2}\n',
    ]
    assert list(iter_sse(chunks)) == [{"x": 1}]


def test_sse_data_line_split_across_chunks():
    chunks = [b'data: {"choices": [{"del', b'ta": {"content": "He"}}]}\n\n']
    frames = list(iter_sse(chunks))
    assert frames[0]["choices"][0]["delta"]["content"] == "He"


def test_line_buffer_flush_blank_tail():
    buf = LineBuffer()
    assert list(buf.feed(b"x\n   ")) == ["x"]
    assert buf.flush() is None
