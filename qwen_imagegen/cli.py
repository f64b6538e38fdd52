"""qwen-imagegen CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import time
import uuid
from pathlib import Path
from typing import Any

from .engine import QwenImageEngine
from .errors import ENVIRONMENT_NOT_READY, INTERNAL_ERROR
from .providers import DryRunSessionProvider, PlaywrightSessionProvider, StaticTokenProvider
from .providers.base import Credential, ImageFailure, ImageSuccess, OperationResult
from .runs.events import EventLogger, EventWriter
from .runs.receipts import GenerationRequest, build_receipt, write_receipt
from .settings import QwenSettings
from .utils import load_dotenv

_EXTENSIONS = {"png": "png", "jpeg": "jpg", "webp": "webp", "gif": "gif"}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="qwen-imagegen", description="Qwen chat image generation")
    sub = parser.add_subparsers(dest="command")

    generate = sub.add_parser("generate", help="Generate an image from a prompt")
    generate.add_argument("--prompt", required=True)
    generate.add_argument("--size", default="1:1", help="Aspect ratio token, e.g. 1:1 or 16:9")
    _add_common_arguments(generate)

    compose = sub.add_parser("compose", help="Compose source images with a prompt")
    compose.add_argument("--image", dest="images", action="append", required=True, help="Source image URL (repeatable)")
    compose.add_argument("--prompt", required=True)
    _add_common_arguments(compose)

    return parser


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--out", required=True, help="Output directory")
    parser.add_argument("--events", help="Path to events.jsonl")
    parser.add_argument("--token", help="Bearer token (defaults to QWEN_TOKEN)")
    parser.add_argument("--dryrun", action="store_true", help="Use the offline session")
    parser.add_argument("--storage-state", dest="storage_state", help="Playwright storage state file")
    parser.add_argument("--headless", action=argparse.BooleanOptionalAction, default=None)


def _token_provider(args: argparse.Namespace) -> StaticTokenProvider:
    if args.token:
        return StaticTokenProvider([Credential(token=args.token)])
    if args.dryrun:
        return StaticTokenProvider([Credential(token="dryrun", owner="dryrun")])
    return StaticTokenProvider.from_env()


def _session_provider(args: argparse.Namespace) -> DryRunSessionProvider | PlaywrightSessionProvider:
    if args.dryrun:
        return DryRunSessionProvider()
    sessions = PlaywrightSessionProvider.from_env()
    if args.headless is not None:
        sessions.headless = args.headless
    if args.storage_state:
        sessions.storage_state = Path(args.storage_state).expanduser()
    return sessions


async def _execute(args: argparse.Namespace, engine: QwenImageEngine, sessions: Any) -> OperationResult:
    if not isinstance(sessions, PlaywrightSessionProvider):
        return await _dispatch(args, engine)
    try:
        await sessions.start()
    except Exception as exc:
        engine.logger.error("Browser session start failed", reason=ENVIRONMENT_NOT_READY, detail=str(exc))
        return ImageFailure(error=ENVIRONMENT_NOT_READY, message=f"Browser session failed: {exc}")
    try:
        return await _dispatch(args, engine)
    finally:
        try:
            await sessions.stop()
        except Exception as exc:
            engine.logger.error("Browser session shutdown failed", detail=str(exc))


async def _dispatch(args: argparse.Namespace, engine: QwenImageEngine) -> OperationResult:
    if args.command == "compose":
        return await engine.compose_images(args.images, args.prompt)
    return await engine.generate_image(args.prompt, args.size)


def save_result(
    out_dir: Path,
    request: GenerationRequest | None,
    result: OperationResult,
    metadata: dict[str, Any] | None = None,
) -> tuple[Path | None, Path]:
    out_dir.mkdir(parents=True, exist_ok=True)
    stamp = int(time.time() * 1000)
    artifact_id = f"{stamp}-{uuid.uuid4().hex[:8]}"
    image_path: Path | None = None
    if isinstance(result, ImageSuccess) and result.image_bytes is not None:
        ext = _EXTENSIONS.get(result.image_format or "", "png")
        image_path = out_dir / f"artifact-{artifact_id}.{ext}"
        image_path.write_bytes(result.image_bytes)
    receipt_path = out_dir / f"receipt-{artifact_id}.json"
    if request is not None:
        receipt = build_receipt(
            request=request,
            result=result,
            image_path=image_path,
            receipt_path=receipt_path,
            metadata=metadata,
        )
        write_receipt(receipt_path, receipt)
    return image_path, receipt_path


def _handle_operation(args: argparse.Namespace) -> int:
    out_dir = Path(args.out)
    events_path = Path(args.events) if args.events else out_dir / "events.jsonl"
    events = EventWriter(events_path, out_dir.name or str(uuid.uuid4()))
    settings = QwenSettings.from_env()
    sessions = _session_provider(args)
    engine = QwenImageEngine(sessions, _token_provider(args), logger=EventLogger(events), settings=settings)

    events.emit("run_started", command=args.command, out_dir=str(out_dir))
    started = time.monotonic()
    try:
        result = asyncio.run(_execute(args, engine, sessions))
    except Exception as exc:
        result = ImageFailure(error=INTERNAL_ERROR, message=str(exc))
    elapsed = max(time.monotonic() - started, 0.0)
    image_path, receipt_path = save_result(
        out_dir,
        engine.last_request,
        result,
        metadata={"elapsed_s": elapsed, "model": settings.model, "dryrun": bool(args.dryrun)},
    )
    if isinstance(result, ImageSuccess):
        events.emit(
            "artifact_created",
            url=result.url,
            image_path=str(image_path) if image_path else None,
            receipt_path=str(receipt_path),
            width=result.width,
            height=result.height,
        )
        print(f"Image saved to {image_path} ({elapsed:.1f}s)")
        return 0
    events.emit("generation_failed", **result.to_dict())
    print(f"Generation failed: {result.error}" + (f" ({result.message})" if result.message else ""))
    if result.debug_excerpt:
        print(f"Response excerpt: {result.debug_excerpt[:200]}")
    return 1


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    if args.command in {"generate", "compose"}:
        raise SystemExit(_handle_operation(args))
    parser.print_help()
    raise SystemExit(1)


if __name__ == "__main__":
    main()
