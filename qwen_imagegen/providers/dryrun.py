"""Dry-run browser session (offline)."""

from __future__ import annotations

import hashlib
import json
import uuid
from io import BytesIO
from typing import Any, Mapping

from PIL import Image, ImageDraw, ImageFont

from ..settings import DEFAULT_CDN_MARKER

_DRYRUN_SIZE = (512, 512)


class DryRunResponse:
    def __init__(self, status: int, payload: bytes) -> None:
        self.status = status
        self._payload = payload

    async def body(self) -> bytes:
        return self._payload


class DryRunPage:
    """Answers the chat endpoints locally and serves a rendered PNG."""

    def __init__(self, cdn_host: str = DEFAULT_CDN_MARKER) -> None:
        self.cdn_host = cdn_host
        self.closed = False
        self.visited: list[str] = []
        self._images: dict[str, bytes] = {}

    async def navigate(
        self,
        url: str,
        *,
        wait_until: str = "load",
        timeout_ms: int | None = None,
    ) -> DryRunResponse:
        self.visited.append(url)
        if url in self._images:
            return DryRunResponse(200, self._images[url])
        if self.cdn_host in url:
            return DryRunResponse(404, b"")
        return DryRunResponse(200, b"<html></html>")

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        request = arg if isinstance(arg, Mapping) else {}
        url = str(request.get("url") or "")
        if url.endswith("/api/v2/chats/new"):
            return {"success": True, "data": {"id": str(uuid.uuid4())}}
        if "/api/v2/chat/completions" in url:
            return self._completion_stream(request.get("body") or {})
        return None

    async def close(self) -> None:
        self.closed = True

    def _completion_stream(self, body: Mapping[str, Any]) -> str:
        messages = body.get("messages") or [{}]
        prompt = str(messages[0].get("content") or "")
        digest = hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:16]
        image_url = f"https://{self.cdn_host}/dryrun/{digest}.png"
        self._images[image_url] = _render_png(prompt, digest)
        records = [
            {"choices": [{"delta": {"content": "", "phase": "image_gen"}}]},
            {"choices": [{"delta": {"content": image_url, "phase": "image_gen"}}]},
            {"choices": [{"delta": {"content": "", "status": "finished"}}]},
        ]
        return "".join(f"data: {json.dumps(record)}\n\n" for record in records)


class DryRunSessionProvider:
    def __init__(self, cdn_host: str = DEFAULT_CDN_MARKER) -> None:
        self.cdn_host = cdn_host
        self.pages: list[DryRunPage] = []

    def browser_context(self) -> Any | None:
        return self

    async def new_page(self) -> DryRunPage:
        page = DryRunPage(cdn_host=self.cdn_host)
        self.pages.append(page)
        return page


def _render_png(prompt: str, digest: str) -> bytes:
    color = _color_from_digest(digest)
    image = Image.new("RGB", _DRYRUN_SIZE, color)
    draw = ImageDraw.Draw(image)
    draw.text((20, 20), f"dryrun\n{prompt[:60]}", fill=(255, 255, 255), font=ImageFont.load_default())
    buffer = BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _color_from_digest(digest: str) -> tuple[int, int, int]:
    raw = bytes.fromhex(digest)
    return raw[0], raw[1], raw[2]
