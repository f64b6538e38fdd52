from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

from qwen_imagegen import cli
from qwen_imagegen.providers.base import ImageFailure, ImageSuccess
from qwen_imagegen.runs.receipts import GenerationRequest


def _run_cli(monkeypatch, argv: list[str]) -> int:
    monkeypatch.setattr(sys, "argv", ["qwen-imagegen", *argv])
    monkeypatch.setattr(cli, "load_dotenv", lambda: False)
    with pytest.raises(SystemExit) as excinfo:
        cli.main()
    return int(excinfo.value.code)


def test_cli_generate_dryrun_writes_image_and_receipt(tmp_path: Path, monkeypatch) -> None:
    out_dir = tmp_path / "run"
    code = _run_cli(monkeypatch, ["generate", "--prompt", "boat", "--out", str(out_dir), "--dryrun"])

    assert code == 0
    images = list(out_dir.glob("artifact-*.png"))
    receipts = list(out_dir.glob("receipt-*.json"))
    assert len(images) == 1 and len(receipts) == 1
    receipt = json.loads(receipts[0].read_text(encoding="utf-8"))
    assert receipt["request"]["prompt"] == "boat"
    assert receipt["result"]["image_bytes"].startswith("<bytes:")
    events = [json.loads(line) for line in (out_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    types = [event["type"] for event in events]
    assert types[0] == "run_started"
    assert "artifact_created" in types


def test_cli_compose_dryrun(tmp_path: Path, monkeypatch) -> None:
    out_dir = tmp_path / "run"
    code = _run_cli(
        monkeypatch,
        [
            "compose",
            "--image",
            "https://a.test/1.png",
            "--image",
            "https://a.test/2.png",
            "--prompt",
            "merge",
            "--out",
            str(out_dir),
            "--dryrun",
        ],
    )
    assert code == 0
    receipt = json.loads(next(out_dir.glob("receipt-*.json")).read_text(encoding="utf-8"))
    assert receipt["request"]["mode"] == "image_edit"
    assert receipt["request"]["source_images"] == ["https://a.test/1.png", "https://a.test/2.png"]


def test_cli_without_token_fails(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("QWEN_TOKEN", raising=False)
    monkeypatch.setattr(cli, "_session_provider", lambda args: cli.DryRunSessionProvider())
    out_dir = tmp_path / "run"
    code = _run_cli(monkeypatch, ["generate", "--prompt", "boat", "--out", str(out_dir)])

    assert code == 1
    events = [json.loads(line) for line in (out_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    failed = [event for event in events if event["type"] == "generation_failed"]
    assert failed and failed[0]["error"] == "CredentialUnavailable"


def test_save_result_skips_image_on_failure(tmp_path: Path) -> None:
    request = GenerationRequest.text_to_image("boat")
    image_path, receipt_path = cli.save_result(
        tmp_path, request, ImageFailure(error="NoResourceFound", debug_excerpt="data: nope")
    )
    assert image_path is None
    receipt = json.loads(receipt_path.read_text(encoding="utf-8"))
    assert receipt["result"] == {"error": "NoResourceFound", "debug_excerpt": "data: nope"}


def test_save_result_uses_detected_extension(tmp_path: Path) -> None:
    request = GenerationRequest.text_to_image("boat")
    result = ImageSuccess(url="https://cdn.qwenlm.ai/a.jpg", image_bytes=b"jpeg", image_format="jpeg")
    image_path, _ = cli.save_result(tmp_path, request, result)
    assert image_path is not None
    assert image_path.suffix == ".jpg"
    assert image_path.read_bytes() == b"jpeg"


class DryRunBackedPlaywright(cli.PlaywrightSessionProvider):
    def __init__(self, *, fail_start: bool = False, fail_stop: bool = False) -> None:
        super().__init__()
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.dryrun = cli.DryRunSessionProvider()
        self.started = False

    def browser_context(self):
        return self.dryrun.browser_context() if self.started else None

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("chromium missing")
        self.started = True

    async def new_page(self):
        return await self.dryrun.new_page()

    async def stop(self) -> None:
        self.started = False
        if self.fail_stop:
            raise RuntimeError("browser already gone")


def test_cli_stop_failure_keeps_fetched_image(tmp_path: Path, monkeypatch) -> None:
    sessions = DryRunBackedPlaywright(fail_stop=True)
    monkeypatch.setattr(cli, "_session_provider", lambda args: sessions)
    out_dir = tmp_path / "run"
    code = _run_cli(monkeypatch, ["generate", "--prompt", "boat", "--out", str(out_dir), "--token", "tok"])

    assert code == 0
    assert len(list(out_dir.glob("artifact-*.png"))) == 1
    events = [json.loads(line) for line in (out_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    assert any(event.get("message") == "Browser session shutdown failed" for event in events)


def test_cli_start_failure_is_environment_not_ready(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(cli, "_session_provider", lambda args: DryRunBackedPlaywright(fail_start=True))
    out_dir = tmp_path / "run"
    code = _run_cli(monkeypatch, ["generate", "--prompt", "boat", "--out", str(out_dir), "--token", "tok"])

    assert code == 1
    events = [json.loads(line) for line in (out_dir / "events.jsonl").read_text(encoding="utf-8").splitlines()]
    failed = [event for event in events if event["type"] == "generation_failed"]
    assert failed[0]["error"] == "EnvironmentNotReady"
