"""Scanner for the pseudo-SSE completion stream.

The completion endpoint answers with newline-separated records such as::

    data: {"choices": [{"delta": {"content": "https://cdn.qwenlm.ai/..."}}]}

Only records that parse as JSON and expose ``choices[0].delta.content`` are
considered. Everything else is skipped without logging.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from ..errors import NoResourceFound
from ..utils import truncate

FRAME_PREFIX = "data:"


@dataclass(frozen=True)
class StreamEvent:
    index: int
    line: str
    content: str


def iter_stream_lines(raw: str) -> Iterator[str]:
    start = 0
    length = len(raw)
    while start < length:
        end = raw.find("\n", start)
        if end == -1:
            yield raw[start:]
            return
        yield raw[start:end]
        start = end + 1


def strip_frame(line: str) -> str:
    text = line.strip()
    if text.startswith(FRAME_PREFIX):
        text = text[len(FRAME_PREFIX):].lstrip()
    return text


def delta_content(record: Any) -> str | None:
    try:
        content = record["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content


def iter_stream_events(raw: str) -> Iterator[StreamEvent]:
    for index, line in enumerate(iter_stream_lines(raw)):
        body = strip_frame(line)
        if not body:
            continue
        try:
            record = json.loads(body)
        except (ValueError, RecursionError):
            continue
        content = delta_content(record)
        if content is None:
            continue
        yield StreamEvent(index=index, line=line, content=content)


def cdn_predicate(cdn_marker: str) -> Callable[[str], bool]:
    def accepts(content: str) -> bool:
        return cdn_marker in content

    return accepts


def cdn_or_scheme_predicate(cdn_marker: str, scheme_marker: str) -> Callable[[str], bool]:
    def accepts(content: str) -> bool:
        return cdn_marker in content or scheme_marker in content

    return accepts


def extract_resource_url(
    raw: str,
    accepts: Callable[[str], bool],
    *,
    excerpt_chars: int = 1000,
) -> str:
    """Return the content of the first accepted record.

    Raises ``NoResourceFound`` with the head of ``raw`` when no record
    qualifies.
    """
    for event in iter_stream_events(raw or ""):
        if event.content and accepts(event.content):
            return event.content.strip()
    raise NoResourceFound(
        "No image URL in response",
        excerpt=truncate(raw or "", excerpt_chars),
    )
