from __future__ import annotations

import json

import pytest

from qwen_imagegen.errors import NO_RESOURCE_FOUND, NoResourceFound
from qwen_imagegen.providers.stream import (
    cdn_or_scheme_predicate,
    cdn_predicate,
    extract_resource_url,
    iter_stream_events,
    iter_stream_lines,
)

CDN = "cdn.qwenlm.ai"


def _record(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


def test_iter_stream_lines_is_lazy_and_keeps_trailing_line() -> None:
    lines = iter_stream_lines("a\nb\nc")
    assert next(lines) == "a"
    assert list(lines) == ["b", "c"]
    assert list(iter_stream_lines("")) == []


def test_events_skip_malformed_and_fieldless_lines() -> None:
    raw = "\n".join(
        [
            "data: {not json",
            "event: ping",
            'data: {"choices": []}',
            'data: {"choices": [{"delta": {}}]}',
            "data: [1, 2, 3]",
            _record("hello"),
            "",
        ]
    )
    events = list(iter_stream_events(raw))
    assert [event.content for event in events] == ["hello"]
    assert events[0].index == 5


def test_accepts_line_without_frame_prefix() -> None:
    raw = json.dumps({"choices": [{"delta": {"content": f"https://{CDN}/x.png"}}]})
    assert extract_resource_url(raw, cdn_predicate(CDN)) == f"https://{CDN}/x.png"


def test_first_qualifying_line_wins() -> None:
    raw = "\n".join(
        [
            _record("thinking"),
            _record(f"https://{CDN}/first.png"),
            _record(f"https://{CDN}/second.png"),
            "data: {broken",
        ]
    )
    assert extract_resource_url(raw, cdn_predicate(CDN)) == f"https://{CDN}/first.png"


def test_generation_predicate_rejects_non_cdn_urls() -> None:
    raw = _record("https://other.example.com/a.png")
    with pytest.raises(NoResourceFound):
        extract_resource_url(raw, cdn_predicate(CDN))


def test_composition_predicate_accepts_scheme_marker() -> None:
    raw = "\n".join([_record("working"), _record("https://other.example.com/a.png")])
    accepts = cdn_or_scheme_predicate(CDN, "http")
    assert extract_resource_url(raw, accepts) == "https://other.example.com/a.png"


def test_no_resource_found_carries_capped_excerpt() -> None:
    raw = "\n".join("garbage line %d %s" % (idx, "x" * 50) for idx in range(100))
    with pytest.raises(NoResourceFound) as excinfo:
        extract_resource_url(raw, cdn_predicate(CDN), excerpt_chars=1000)
    assert excinfo.value.reason == NO_RESOURCE_FOUND
    assert excinfo.value.excerpt == raw[:1000]
    assert len(excinfo.value.excerpt) <= 1000


def test_cdn_marker_in_raw_line_but_not_in_content_is_ignored() -> None:
    raw = 'data: {"choices": [{"delta": {"content": "done"}}], "host": "cdn.qwenlm.ai"}'
    with pytest.raises(NoResourceFound):
        extract_resource_url(raw, cdn_predicate(CDN))


def test_deeply_nested_line_is_skipped() -> None:
    raw = "data: " + "[" * 100_000 + "\n" + _record(f"https://{CDN}/a.png") + "\n"
    assert extract_resource_url(raw, cdn_predicate(CDN)) == f"https://{CDN}/a.png"
