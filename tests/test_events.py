from __future__ import annotations

import json
from pathlib import Path

from qwen_imagegen.runs.events import EventLogger, EventWriter


def test_event_writer(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "run-123")
    writer.emit("run_started", out_dir="/tmp/run")
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    assert payload["type"] == "run_started"
    assert payload["run_id"] == "run-123"
    assert "ts" in payload
    assert payload["out_dir"] == "/tmp/run"


def test_event_writer_masks_tokens_and_bytes(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    writer = EventWriter(path, "run-1")
    event = writer.emit("generation_failed", token="secret", image_bytes=b"abcd")
    assert event["token"] == "<redacted>"
    assert event["image_bytes"] == "<bytes:4>"


def test_event_logger_levels(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    logger = EventLogger(EventWriter(path, "run-1"))
    logger.info("Image generated: https://cdn.qwenlm.ai/abc.png...")
    logger.error("Image operation failed", reason="FetchFailed")
    events = [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
    assert [event["type"] for event in events] == ["log", "log"]
    assert [event["level"] for event in events] == ["info", "error"]
    assert events[1]["reason"] == "FetchFailed"


def test_sanitize_payload_redacts_tokens_and_sizes_bytes() -> None:
    from qwen_imagegen.utils import sanitize_payload

    payload = {"Authorization": "Bearer x", "nested": [{"token": "t", "image_bytes": b"123"}], "url": "u"}
    assert sanitize_payload(payload) == {
        "Authorization": "<redacted>",
        "nested": [{"token": "<redacted>", "image_bytes": "<bytes:3>"}],
        "url": "u",
    }
